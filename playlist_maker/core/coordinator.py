"""Wires the chat listener and playlist worker together and decides shutdown."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

import httpx

from ..components.chat_listener import ChatListener
from ..components.extractor import TrackExtractor, build_extractor
from ..components.playlist_worker import PlaylistWorker, ServerFactory
from ..models import TrackID
from ..services.slack_transport import ChatTransport, SlackTransport
from ..services.spotify_api import SpotifyAuthenticator
from .callback_server import CallbackServer
from .config import Settings
from .errors import ComponentCrashedError, HardError
from .signals import HardErrorSignal, ShutdownSignal

LOGGER = logging.getLogger("PlaylistMaker")


class Coordinator:
    """Owns the shared handles and signals for one process run.

    Everything a component needs is built here and passed down; nothing is
    shared through module globals.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: ChatTransport | None = None,
        http: httpx.AsyncClient | None = None,
        extractor: TrackExtractor | None = None,
        server_factory: ServerFactory = CallbackServer,
    ) -> None:
        self.settings = settings
        self.shutdown = ShutdownSignal()
        self.hard_errors = HardErrorSignal()
        self.tracks: asyncio.Queue[TrackID] = asyncio.Queue(maxsize=settings.track_queue_size)

        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(timeout=10.0)
        self.authenticator = SpotifyAuthenticator(
            settings.spotify_id,
            settings.spotify_secret,
            settings.spotify_redirect_uri,
            self.http,
        )
        self.transport = transport or SlackTransport(
            settings.slack_app_token, settings.slack_bot_token
        )
        self.extractor = extractor or build_extractor(settings)

        self.listener = ChatListener(
            self.transport,
            self.extractor,
            self.tracks,
            self.hard_errors,
            self.shutdown,
            fatal_on_disconnect=settings.fatal_on_disconnect,
        )
        self.worker = PlaylistWorker(
            self.authenticator,
            settings.spotify_playlist_id,
            self.tracks,
            self.hard_errors,
            self.shutdown,
            host=settings.listen_host,
            port=settings.listen_port,
            callback_path=settings.callback_path,
            server_factory=server_factory,
        )

    async def run(self) -> HardError | None:
        """Run until the first hard error or an external shutdown request."""
        LOGGER.info(
            f"Starting playlist maker: playlist={self.settings.spotify_playlist_id}, "
            f"extractor={self.extractor.name}, queue size={self.settings.track_queue_size}"
        )
        tasks = [
            asyncio.create_task(self._supervise("chat-listener", self.listener.run())),
            asyncio.create_task(self._supervise("playlist-worker", self.worker.run())),
        ]

        hard_error_waiter = asyncio.create_task(self.hard_errors.wait())
        shutdown_waiter = asyncio.create_task(self.shutdown.wait())
        try:
            await asyncio.wait(
                {hard_error_waiter, shutdown_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
            error = self.hard_errors.error
            if error is not None:
                LOGGER.error(f"Got hard error, stopping: {error}")
                self.shutdown.trigger(f"hard error: {error}")
            await self._stop_tasks(tasks)
        finally:
            hard_error_waiter.cancel()
            shutdown_waiter.cancel()
            self.shutdown.trigger("coordinator exiting")
            for task in tasks:
                task.cancel()
            # Let component cleanup (transport close, server stop) run
            await asyncio.gather(*tasks, return_exceptions=True)
            if self._owns_http:
                await self.http.aclose()

        LOGGER.info("Playlist maker stopped")
        return self.hard_errors.error

    async def _supervise(self, name: str, coro: Coroutine[Any, Any, None]) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            LOGGER.info(f"{name} cancelled")
            raise
        except Exception as e:
            LOGGER.exception(f"{name} crashed: {e}")
            self.hard_errors.escalate(ComponentCrashedError(f"{name} crashed: {e}"))
        else:
            LOGGER.debug(f"{name} finished")

    async def _stop_tasks(self, tasks: list[asyncio.Task]) -> None:
        """Give components the shutdown timeout to return, then cancel them."""
        _, pending = await asyncio.wait(tasks, timeout=self.settings.shutdown_timeout)
        for task in pending:
            LOGGER.warning(f"Task {task.get_name()} did not stop in time, cancelling")
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
