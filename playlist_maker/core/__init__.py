"""Core modules for the playlist maker."""

from .config import (
    DEFAULT_CALLBACK_PATH,
    SPOTIFY_SCOPES,
    ExtractionMode,
    LinkMatch,
    Settings,
)
from .errors import (
    CallbackServerError,
    ChatDisconnectedError,
    ComponentCrashedError,
    HardError,
    InvalidCredentialsError,
    PlaylistMakerError,
    PlaylistUnusableError,
    SpotifyAPIError,
    TokenExchangeError,
)
from .logging import setup_logging
from .signals import Handoff, HardErrorSignal, ShutdownRequested, ShutdownSignal

__all__ = [
    # Settings
    "Settings",
    "ExtractionMode",
    "LinkMatch",
    # Constants
    "DEFAULT_CALLBACK_PATH",
    "SPOTIFY_SCOPES",
    # Setup functions
    "setup_logging",
    # Signals
    "ShutdownSignal",
    "ShutdownRequested",
    "HardErrorSignal",
    "Handoff",
    # Errors
    "PlaylistMakerError",
    "TokenExchangeError",
    "SpotifyAPIError",
    "HardError",
    "InvalidCredentialsError",
    "ChatDisconnectedError",
    "PlaylistUnusableError",
    "CallbackServerError",
    "ComponentCrashedError",
]
