from .slack_transport import ChatTransport, SlackTransport
from .spotify_api import SpotifyAuthenticator, SpotifyClient, SpotifyToken

__all__ = [
    "ChatTransport",
    "SlackTransport",
    "SpotifyAuthenticator",
    "SpotifyClient",
    "SpotifyToken",
]
