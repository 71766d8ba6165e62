"""HTTP listener that completes the Spotify OAuth handshake once."""

from __future__ import annotations

import logging
import secrets
import string
from enum import Enum
from typing import TYPE_CHECKING

from aiohttp import web

from .config import DEFAULT_CALLBACK_PATH
from .errors import CallbackServerError, TokenExchangeError
from .signals import Handoff

if TYPE_CHECKING:
    from ..services.spotify_api import SpotifyAuthenticator, SpotifyClient

logger = logging.getLogger("PlaylistMaker.Callback")

STATE_LENGTH = 16
_STATE_ALPHABET = string.ascii_letters

HEALTHCHECK_BODY = "\\0/\n"


def new_state(length: int = STATE_LENGTH) -> str:
    """Unpredictable, fixed-length nonce tying the auth URL to its callback."""
    return "".join(secrets.choice(_STATE_ALPHABET) for _ in range(length))


class ServerState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    COMPLETED = "completed"
    STOPPED = "stopped"


class CallbackServer:
    """Health check plus OAuth callback route"""

    def __init__(
        self,
        authenticator: SpotifyAuthenticator,
        state: str,
        handoff: Handoff[SpotifyClient],
        host: str = "0.0.0.0",
        port: int = 8080,
        callback_path: str = DEFAULT_CALLBACK_PATH,
    ):
        self.authenticator = authenticator
        self.state = state
        self.handoff = handoff
        self.host = host
        self.port = port
        self.callback_path = callback_path
        self.status = ServerState.IDLE
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._stopped = False
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/healthcheck", self.handle_healthcheck)
        self.app.router.add_get(self.callback_path, self.handle_callback)

    async def handle_healthcheck(self, request: web.Request) -> web.Response:
        return web.Response(text=HEALTHCHECK_BODY)

    async def handle_callback(self, request: web.Request) -> web.Response:
        received = request.query.get("state", "")
        if received != self.state:
            logger.warning(f"State does not match: {self.state} != {received}")
            return web.Response(status=404, text="404 page not found")

        try:
            token = await self.authenticator.exchange_code(request.query)
        except TokenExchangeError as e:
            logger.warning(f"Failed getting token: {e}")
            return web.Response(status=400, text="Failed getting token")

        if self.handoff.deliver(self.authenticator.new_client(token)):
            self.status = ServerState.COMPLETED
            logger.info("Spotify login successful")
        else:
            logger.warning("Authorization already completed, ignoring repeated callback")
        return web.Response(text="Login Successful")

    async def start(self) -> None:
        """Bind the listener. Raises CallbackServerError if that fails."""
        try:
            self.runner = web.AppRunner(self.app, access_log=None)
            await self.runner.setup()

            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()
        except OSError as e:
            await self.stop()
            raise CallbackServerError(
                f"HTTP server could not listen on {self.host}:{self.port}: {e}"
            ) from e

        self.status = ServerState.LISTENING
        logger.info(f"Callback server started on {self.host}:{self.port}")
        logger.info(f"  GET http://{self.host}:{self.port}/healthcheck - Health check")
        logger.info(f"  GET http://{self.host}:{self.port}{self.callback_path} - OAuth callback")

    async def stop(self) -> None:
        """Stop the listener. Only the first call does anything."""
        if self._stopped:
            return
        self._stopped = True

        if self.status is not ServerState.COMPLETED:
            self.status = ServerState.STOPPED
        if self.runner:
            try:
                await self.runner.cleanup()
                logger.info("Callback server stopped")
            except Exception as e:
                logger.exception(f"Error stopping callback server: {e}")
