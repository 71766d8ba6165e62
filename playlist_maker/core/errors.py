"""Exception hierarchy for the playlist maker.

Only ``HardError`` subclasses end the process. Everything else is handled
where it is raised: logged and skipped.
"""


class PlaylistMakerError(Exception):
    """Base exception for playlist maker errors."""


class TokenExchangeError(PlaylistMakerError):
    """OAuth callback could not be turned into an access token."""


class SpotifyAPIError(PlaylistMakerError):
    """Spotify Web API request failed."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base} (HTTP {self.status})" if self.status else base


class HardError(PlaylistMakerError):
    """A subsystem cannot continue. The first one escalated stops the process."""


class InvalidCredentialsError(HardError):
    """Chat service rejected the configured token."""


class ChatDisconnectedError(HardError):
    """Chat event stream ended while disconnects are configured as fatal."""


class PlaylistUnusableError(HardError):
    """Target playlist is unreachable or not public."""


class CallbackServerError(HardError):
    """Authorization callback server could not be started."""


class ComponentCrashedError(HardError):
    """A component task raised an unexpected exception."""
