"""Track identifier extraction from chat messages.

Two strategies, picked per deployment:

- ``LinkExtractor`` reads Spotify track links out of the message text.
- ``AttachmentExtractor`` reads the link unfurl/attachment fields.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from urllib.parse import urlsplit

from ..core.config import ExtractionMode, LinkMatch, Settings
from ..models import Attachment, ChatMessage, TrackID

LOGGER = logging.getLogger("PlaylistMaker.Extractor")

SPOTIFY_DOMAIN = "spotify.com"
SPOTIFY_SERVICE_NAME = "Spotify"
TRACK_SEGMENT = "track"

# Slack wraps links as <url> or <url|label>
_LINK_DELIMITERS = "<>"


def track_id_from_url(
    raw: str,
    match: LinkMatch = LinkMatch.STRICT_HOST,
    domain: str = SPOTIFY_DOMAIN,
) -> TrackID | None:
    """Return the track id of a Spotify track URL, or None if *raw* is not one."""
    try:
        url = urlsplit(raw)
    except ValueError:
        return None

    segments = [s for s in url.path.split("/") if s]
    if TRACK_SEGMENT not in segments[:-1]:
        return None
    if match is LinkMatch.STRICT_HOST and domain not in url.netloc.lower():
        return None

    # Spotify ids are base62
    track_id = segments[-1]
    if not (track_id.isascii() and track_id.isalnum()):
        return None
    return track_id


def clean_token(word: str) -> str:
    """Strip chat link formatting from a whitespace-separated token."""
    word = word.strip(_LINK_DELIMITERS)
    url, _, _label = word.partition("|")
    return url


class TrackExtractor(ABC):
    """Turns a chat message into zero or more track ids."""

    name: str = "base"

    @abstractmethod
    def extract(self, message: ChatMessage) -> Iterator[TrackID]:
        """Yield track ids in the order they appear in *message*."""


class LinkExtractor(TrackExtractor):
    name = "link"

    def __init__(self, match: LinkMatch = LinkMatch.STRICT_HOST, domain: str = SPOTIFY_DOMAIN):
        self.match = match
        self.domain = domain

    def extract(self, message: ChatMessage) -> Iterator[TrackID]:
        for word in message.text.split():
            track_id = track_id_from_url(clean_token(word), self.match, self.domain)
            if track_id:
                yield track_id


class AttachmentExtractor(TrackExtractor):
    name = "attachment"

    SERVICE_TITLES = ("service", "Service")
    LINK_TITLE = "title_link"

    def __init__(self, service_name: str = SPOTIFY_SERVICE_NAME):
        self.service_name = service_name

    def extract(self, message: ChatMessage) -> Iterator[TrackID]:
        for index, attachment in enumerate(message.attachments):
            track_id = self._from_attachment(attachment)
            if track_id is None:
                LOGGER.debug(f"Skipping attachment {index}: {attachment}")
                continue
            yield track_id

    def _from_attachment(self, attachment: Attachment) -> TrackID | None:
        service = attachment.get(*self.SERVICE_TITLES)
        if service is None:
            LOGGER.info("Attachment has no service field")
            return None
        if service.value != self.service_name:
            LOGGER.info(f"Attachment service '{service.value}' is not {self.service_name}")
            return None

        link = attachment.get(self.LINK_TITLE)
        if link is None:
            LOGGER.info("Attachment has no title_link field")
            return None

        return track_id_from_url(link.value.strip(_LINK_DELIMITERS), LinkMatch.PATH_SHAPE)


def build_extractor(settings: Settings) -> TrackExtractor:
    """Create the extractor selected by ``EXTRACTION_MODE``."""
    if settings.extraction_mode is ExtractionMode.ATTACHMENT:
        return AttachmentExtractor()
    return LinkExtractor(match=settings.link_match)
