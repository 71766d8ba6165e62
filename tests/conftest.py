"""
Shared fixtures for playlist maker tests

Provides:
- Test settings
- Fake chat transport
- Fake Spotify client and callback server factory
"""

import asyncio
from typing import Any

import httpx
import pytest

from playlist_maker.core.config import Settings
from playlist_maker.core.errors import SpotifyAPIError
from playlist_maker.core.signals import Handoff, HardErrorSignal, ShutdownSignal
from playlist_maker.services.spotify_api import (
    PlaylistInfo,
    SpotifyAuthenticator,
    SpotifyUser,
    TrackInfo,
)

PLAYLIST_ID = "playlist123"


# ============================================================================
# Fakes
# ============================================================================


class FakeTransport:
    """Chat transport yielding a fixed list of events.

    With ``hold_open`` the stream stays open after the last event until
    ``close()`` is called, like a live connection.
    """

    def __init__(self, events: list[Any] | None = None, *, hold_open: bool = False):
        self._events = list(events or [])
        self.hold_open = hold_open
        self.closed = False
        self._released = asyncio.Event()

    async def events(self):
        for event in self._events:
            yield event
        if self.hold_open:
            await self._released.wait()

    async def close(self) -> None:
        self.closed = True
        self._released.set()


class FakeSpotifyClient:
    """Records appends instead of calling Spotify."""

    def __init__(
        self,
        *,
        public: bool = True,
        playlist_error: Exception | None = None,
        user_error: Exception | None = None,
        failing_tracks: tuple[str, ...] = (),
    ):
        self.public = public
        self.playlist_error = playlist_error
        self.user_error = user_error
        self.failing_tracks = set(failing_tracks)
        self.appended: list[tuple[str, str]] = []
        self.looked_up: list[str] = []

    async def current_user(self) -> SpotifyUser:
        if self.user_error:
            raise self.user_error
        return SpotifyUser(id="tester")

    async def get_playlist(self, playlist_id: str) -> PlaylistInfo:
        if self.playlist_error:
            raise self.playlist_error
        return PlaylistInfo(id=playlist_id, name="Team Jams", is_public=self.public)

    async def get_track(self, track_id: str) -> TrackInfo:
        self.looked_up.append(track_id)
        if track_id in self.failing_tracks:
            raise SpotifyAPIError("GET /tracks: non existing id", status=404)
        return TrackInfo(id=track_id, name=f"Song {track_id}", artists=["Artist A", "Artist B"])

    async def add_track_to_playlist(self, playlist_id: str, track_id: str) -> str:
        self.appended.append((playlist_id, track_id))
        return f"snap-{len(self.appended)}"


class FakeCallbackServer:
    def __init__(self, factory: "FakeServerFactory", state: str, handoff: Handoff, options: dict):
        self.factory = factory
        self.state = state
        self.handoff = handoff
        self.options = options
        self.started = False
        self.stop_calls = 0

    async def start(self) -> None:
        if self.factory.start_error is not None:
            raise self.factory.start_error
        self.started = True
        if self.factory.client is not None:
            self.handoff.deliver(self.factory.client)

    async def stop(self) -> None:
        self.stop_calls += 1


class FakeServerFactory:
    """Stands in for CallbackServer; delivers ``client`` as soon as it starts."""

    def __init__(self, client: Any = None, start_error: Exception | None = None):
        self.client = client
        self.start_error = start_error
        self.servers: list[FakeCallbackServer] = []

    def __call__(self, authenticator, state, handoff, **options) -> FakeCallbackServer:
        server = FakeCallbackServer(self, state, handoff, options)
        self.servers.append(server)
        return server


async def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll *predicate* until it is true or fail after *timeout* seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        listen_addr="127.0.0.1:0",
        slack_app_token="xapp-test",
        spotify_id="client-id",
        spotify_secret="client-secret",
        spotify_redirect_uri="http://localhost:8080/spotify/callback/",
        spotify_playlist_id=PLAYLIST_ID,
        shutdown_timeout=1.0,
    )


@pytest.fixture
async def http_client():
    def reject(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "unexpected request in test"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(reject))
    yield client
    await client.aclose()


@pytest.fixture
def authenticator(http_client: httpx.AsyncClient) -> SpotifyAuthenticator:
    return SpotifyAuthenticator(
        "client-id", "client-secret", "http://localhost:8080/spotify/callback/", http_client
    )


@pytest.fixture
def shutdown() -> ShutdownSignal:
    return ShutdownSignal()


@pytest.fixture
def hard_errors() -> HardErrorSignal:
    return HardErrorSignal()


@pytest.fixture
def tracks() -> asyncio.Queue:
    return asyncio.Queue(maxsize=10)
