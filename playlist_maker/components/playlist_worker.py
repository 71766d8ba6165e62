"""Playlist worker: authorize once, validate the playlist, then append queued tracks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from ..core.callback_server import CallbackServer, new_state
from ..core.config import DEFAULT_CALLBACK_PATH
from ..core.errors import (
    CallbackServerError,
    HardError,
    PlaylistUnusableError,
    SpotifyAPIError,
)
from ..core.signals import Handoff, HardErrorSignal, ShutdownRequested, ShutdownSignal
from ..models import PlaylistTarget, TrackID
from ..services.spotify_api import SpotifyAuthenticator, SpotifyClient

LOGGER = logging.getLogger("PlaylistMaker.Worker")

ServerFactory = Callable[..., Any]


class WorkerState(str, Enum):
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    VALIDATING_TARGET = "validating_target"
    DRAINING = "draining"
    CANCELLED = "cancelled"
    FATAL = "fatal"


class PlaylistWorker:
    def __init__(
        self,
        authenticator: SpotifyAuthenticator,
        playlist_id: str,
        tracks: asyncio.Queue[TrackID],
        hard_errors: HardErrorSignal,
        shutdown: ShutdownSignal,
        *,
        host: str = "0.0.0.0",
        port: int = 8080,
        callback_path: str = DEFAULT_CALLBACK_PATH,
        server_factory: ServerFactory = CallbackServer,
    ) -> None:
        self.authenticator = authenticator
        self.target = PlaylistTarget(playlist_id=playlist_id)
        self.tracks = tracks
        self.hard_errors = hard_errors
        self.shutdown = shutdown
        self.host = host
        self.port = port
        self.callback_path = callback_path
        self.server_factory = server_factory
        self.state = WorkerState.AWAITING_AUTHORIZATION

    async def run(self) -> None:
        client = await self.authorize()
        if client is None:
            return

        if not await self.validate_target(client):
            return

        await self.drain(client)

    async def authorize(self) -> SpotifyClient | None:
        """Serve the OAuth callback until a client arrives or shutdown fires."""
        self.state = WorkerState.AWAITING_AUTHORIZATION
        state = new_state()
        handoff: Handoff[SpotifyClient] = Handoff()
        server = self.server_factory(
            self.authenticator,
            state,
            handoff,
            host=self.host,
            port=self.port,
            callback_path=self.callback_path,
        )

        try:
            await server.start()
        except CallbackServerError as e:
            LOGGER.error(f"HTTP server encountered an error: {e}")
            self._fail(e)
            return None

        try:
            LOGGER.info(f"Visit this link to login to Spotify: {self.authenticator.auth_url(state)}")
            return await self.shutdown.until_shutdown(handoff.wait())
        except ShutdownRequested:
            LOGGER.info("Shutdown before Spotify authorization completed")
            self.state = WorkerState.CANCELLED
            return None
        finally:
            await server.stop()

    async def validate_target(self, client: SpotifyClient) -> bool:
        """Check the playlist once. Escalates and returns False if it is unusable."""
        self.state = WorkerState.VALIDATING_TARGET

        try:
            user = await client.current_user()
            LOGGER.info(f"Logged in as '{user.id}'.")
        except SpotifyAPIError as e:
            LOGGER.warning(f"Failed getting user: {e}")

        playlist_id = self.target.playlist_id
        try:
            playlist = await client.get_playlist(playlist_id)
        except SpotifyAPIError as e:
            LOGGER.error(f"Failed getting playlist {playlist_id}: {e}")
            self._fail(PlaylistUnusableError(f"playlist unreachable: {playlist_id}: {e}"))
            return False

        self.target.name = playlist.name
        self.target.is_public = playlist.is_public
        LOGGER.info(f"Playlist found: {playlist.name}, is public: {playlist.is_public}")

        if not playlist.is_public:
            LOGGER.error("Playlist is not public, cannot use it.")
            self._fail(PlaylistUnusableError(f"playlist not public: {playlist.name}"))
            return False
        return True

    async def drain(self, client: SpotifyClient) -> None:
        self.state = WorkerState.DRAINING
        while True:
            try:
                track_id = await self.shutdown.until_shutdown(self.tracks.get())
            except ShutdownRequested:
                LOGGER.info(f"Playlist worker stopping: {self.shutdown.reason}")
                self.state = WorkerState.CANCELLED
                return

            LOGGER.info(f"Spotify: Got track: {track_id}")
            try:
                await self.process_track(client, track_id)
            except SpotifyAPIError as e:
                LOGGER.error(f"Error processing track {track_id}: {e}")
            finally:
                self.tracks.task_done()

    async def process_track(self, client: SpotifyClient, track_id: TrackID) -> str:
        track = await client.get_track(track_id)
        LOGGER.info(f"Adding track: {track_id} -> {track.name} by {', '.join(track.artists)}")

        snapshot_id = await client.add_track_to_playlist(self.target.playlist_id, track_id)
        LOGGER.info(f"Successfully added track: {track_id}. Snapshot: {snapshot_id}")
        return snapshot_id

    def _fail(self, error: HardError) -> None:
        self.state = WorkerState.FATAL
        self.hard_errors.escalate(error)
