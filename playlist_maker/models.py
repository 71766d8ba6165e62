"""Data models shared by the chat and playlist sides of the pipeline."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

TrackID = str


@dataclass(frozen=True)
class AttachmentField:
    """One title/value pair of a chat attachment."""

    title: str
    value: str


@dataclass(frozen=True)
class Attachment:
    """Structured attachment on a chat message."""

    fields: tuple[AttachmentField, ...] = ()

    def get(self, *titles: str) -> AttachmentField | None:
        """Return the first field whose title is one of *titles*."""
        for attachment_field in self.fields:
            if attachment_field.title in titles:
                return attachment_field
        return None

    @classmethod
    def from_slack(cls, payload: Mapping[str, Any]) -> Attachment:
        """Build from a Slack attachment dict.

        Link unfurls carry ``service_name`` and ``title_link`` as top-level
        keys; they are exposed as fields next to the explicit ``fields`` list.
        """
        fields: list[AttachmentField] = []
        if payload.get("service_name"):
            fields.append(AttachmentField("service", str(payload["service_name"])))
        if payload.get("title_link"):
            fields.append(AttachmentField("title_link", str(payload["title_link"])))
        for item in payload.get("fields") or []:
            fields.append(AttachmentField(str(item.get("title", "")), str(item.get("value", ""))))
        return cls(fields=tuple(fields))


@dataclass(frozen=True)
class ChatMessage:
    """Chat message text plus its attachments."""

    text: str = ""
    attachments: tuple[Attachment, ...] = ()
    channel: str | None = None
    user: str | None = None

    @classmethod
    def from_slack(cls, event: Mapping[str, Any]) -> ChatMessage:
        """Build from a Slack ``message`` event payload."""
        attachments: Iterable[Mapping[str, Any]] = event.get("attachments") or []
        return cls(
            text=event.get("text") or "",
            attachments=tuple(Attachment.from_slack(a) for a in attachments),
            channel=event.get("channel"),
            user=event.get("user"),
        )


# === Chat events ===


@dataclass(frozen=True)
class Connected:
    info: Mapping[str, Any] = field(default_factory=dict)
    connection_count: int = 0


@dataclass(frozen=True)
class MessageReceived:
    message: ChatMessage


@dataclass(frozen=True)
class ProtocolError:
    error: str


@dataclass(frozen=True)
class InvalidAuth:
    reason: str = "invalid credentials"


@dataclass(frozen=True)
class OtherEvent:
    kind: str
    payload: Mapping[str, Any] = field(default_factory=dict)


ChatEvent = Union[Connected, MessageReceived, ProtocolError, InvalidAuth, OtherEvent]


@dataclass
class PlaylistTarget:
    """Playlist the worker appends to, validated once after authorization."""

    playlist_id: str
    name: str = ""
    is_public: bool = False
