"""Chat listener: turns chat events into queued track ids."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from enum import Enum

from ..core.errors import ChatDisconnectedError, InvalidCredentialsError
from ..core.signals import HardErrorSignal, ShutdownRequested, ShutdownSignal
from ..models import (
    ChatEvent,
    Connected,
    InvalidAuth,
    MessageReceived,
    ProtocolError,
    TrackID,
)
from ..services.slack_transport import ChatTransport
from .extractor import TrackExtractor

LOGGER = logging.getLogger("PlaylistMaker.Chat")


class ListenerState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    EVENT_ERROR = "event_error"
    DISCONNECTED = "disconnected"
    CANCELLED = "cancelled"


class ChatListener:
    def __init__(
        self,
        transport: ChatTransport,
        extractor: TrackExtractor,
        tracks: asyncio.Queue[TrackID],
        hard_errors: HardErrorSignal,
        shutdown: ShutdownSignal,
        *,
        fatal_on_disconnect: bool = False,
    ) -> None:
        self.transport = transport
        self.extractor = extractor
        self.tracks = tracks
        self.hard_errors = hard_errors
        self.shutdown = shutdown
        self.fatal_on_disconnect = fatal_on_disconnect
        self.state = ListenerState.CONNECTING

    async def run(self) -> None:
        events = self.transport.events()
        try:
            while True:
                event = await self.shutdown.until_shutdown(self._next_event(events))
                if event is None:
                    self._stream_closed()
                    return
                if not await self.process_event(event):
                    return
        except ShutdownRequested:
            LOGGER.info(f"Chat listener stopping: {self.shutdown.reason}")
            self.state = ListenerState.CANCELLED
        finally:
            await self.transport.close()

    async def process_event(self, event: ChatEvent) -> bool:
        """Handle one event. Returns False when the listener must stop."""
        if isinstance(event, Connected):
            self.state = ListenerState.STREAMING
            LOGGER.info(f"Infos: {dict(event.info)}")
            LOGGER.info(f"Connection counter: {event.connection_count}")

        elif isinstance(event, MessageReceived):
            self.state = ListenerState.STREAMING
            try:
                await self.process_message(event)
            except ShutdownRequested:
                raise
            except Exception as e:
                LOGGER.exception(f"Failed processing message {event.message}: {e}")

        elif isinstance(event, ProtocolError):
            LOGGER.error(f"Error: {event.error}")

        elif isinstance(event, InvalidAuth):
            LOGGER.error(f"Invalid credentials: {event.reason}")
            self.state = ListenerState.EVENT_ERROR
            self.hard_errors.escalate(InvalidCredentialsError(f"invalid credentials: {event.reason}"))
            return False

        else:
            LOGGER.debug(f"Ignoring event: {event}")

        return True

    async def process_message(self, event: MessageReceived) -> None:
        for track_id in self.extractor.extract(event.message):
            LOGGER.info(f"Pushing track: {track_id}")
            await self.shutdown.until_shutdown(self.tracks.put(track_id))

    def _stream_closed(self) -> None:
        self.state = ListenerState.DISCONNECTED
        LOGGER.info("Chat event stream closed.")
        if self.fatal_on_disconnect:
            self.hard_errors.escalate(ChatDisconnectedError("chat event stream closed"))

    @staticmethod
    async def _next_event(events: AsyncIterator[ChatEvent]) -> ChatEvent | None:
        try:
            return await events.__anext__()
        except StopAsyncIteration:
            return None
