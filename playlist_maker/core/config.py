"""Playlist maker configuration"""

import logging
from enum import Enum
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

SPOTIFY_SCOPES = [
    "playlist-modify-public",  # Append to public playlists
]

DEFAULT_CALLBACK_PATH = "/spotify/callback/"


class ExtractionMode(str, Enum):
    """Where track identifiers are read from in a chat message."""

    LINK = "link"
    ATTACHMENT = "attachment"


class LinkMatch(str, Enum):
    """How strictly a link must look like a Spotify track link."""

    STRICT_HOST = "strict_host"
    PATH_SHAPE = "path_shape"


class Settings(BaseSettings):
    """Playlist maker settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # HTTP listener for the OAuth callback
    listen_address: str = Field(
        default=":8080",
        alias="listen_addr",
        description="Listen address for the http server",
    )

    # Slack
    slack_app_token: str = Field(..., description="Slack app-level token (xapp-...)")
    slack_bot_token: str = Field(default="", description="Slack bot token (xoxb-...)")

    # Spotify OAuth
    spotify_id: str = Field(..., description="Spotify Client ID")
    spotify_secret: str = Field(..., description="Spotify Client Secret")
    spotify_redirect_uri: str = Field(
        default=f"http://localhost:8080{DEFAULT_CALLBACK_PATH}",
        description="Spotify Redirect URI",
    )
    spotify_playlist_id: str = Field(..., description="Spotify Playlist ID")

    # Extraction
    extraction_mode: ExtractionMode = Field(default=ExtractionMode.LINK)
    link_match: LinkMatch = Field(default=LinkMatch.STRICT_HOST)

    # Pipeline
    track_queue_size: int = Field(default=10, ge=1, description="Pending track capacity")
    fatal_on_disconnect: bool = Field(
        default=False, description="Treat the chat stream closing as a hard error"
    )
    shutdown_timeout: float = Field(
        default=10.0, gt=0, description="Seconds to wait for components on shutdown"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("listen_address")
    @classmethod
    def validate_listen_address(cls, v: str) -> str:
        """Validate listen address is host:port or :port"""
        _, sep, port = v.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError("LISTEN_ADDR must look like 'host:port' or ':port'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def listen_host(self) -> str:
        host = self.listen_address.rpartition(":")[0]
        return host or "0.0.0.0"

    @property
    def listen_port(self) -> int:
        return int(self.listen_address.rpartition(":")[2])

    @property
    def callback_path(self) -> str:
        """Route the OAuth redirect lands on, taken from the redirect URI."""
        return urlsplit(self.spotify_redirect_uri).path or DEFAULT_CALLBACK_PATH
