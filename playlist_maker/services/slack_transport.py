"""Slack Socket Mode connection exposed as a stream of chat events."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

from slack_sdk.errors import SlackApiError
from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.async_client import AsyncBaseSocketModeClient
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient

from ..models import (
    ChatEvent,
    ChatMessage,
    Connected,
    InvalidAuth,
    MessageReceived,
    OtherEvent,
    ProtocolError,
)

LOGGER = logging.getLogger("PlaylistMaker.Slack")

# Slack API error codes that mean the token itself is unusable
INVALID_AUTH_ERRORS = frozenset({"invalid_auth", "not_authed", "account_inactive", "token_revoked"})

# Message subtypes that are edits/deletions rather than new posts
_IGNORED_SUBTYPES = frozenset({"message_deleted", "channel_join", "channel_leave"})

_CLOSED = object()


class ChatTransport(Protocol):
    """What the chat listener needs from a chat connection."""

    def events(self) -> AsyncIterator[ChatEvent]: ...

    async def close(self) -> None: ...


class SlackTransport:
    """Adapts ``SocketModeClient`` callbacks into an async event stream.

    The client manages the websocket and reconnects on its own; this class
    only normalizes what it receives.
    """

    def __init__(
        self,
        app_token: str,
        bot_token: str = "",
        client: AsyncBaseSocketModeClient | None = None,
    ):
        self._client = client or SocketModeClient(
            app_token=app_token,
            web_client=AsyncWebClient(token=bot_token or None),
            logger=logging.getLogger("slack_sdk.socket_mode"),
        )
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    async def events(self) -> AsyncIterator[ChatEvent]:
        self._client.message_listeners.append(self._on_message)
        self._client.socket_mode_request_listeners.append(self._on_request)

        try:
            await self._client.connect()
        except SlackApiError as e:
            error = e.response.get("error", "")
            if error in INVALID_AUTH_ERRORS:
                yield InvalidAuth(reason=error)
            else:
                yield ProtocolError(error=f"Slack connection failed: {error or e}")
            return

        while True:
            event = await self._queue.get()
            if event is _CLOSED:
                return
            yield event

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        try:
            await self._client.close()
        except Exception as e:
            LOGGER.warning(f"Error closing Slack connection: {e}")

    async def _on_message(
        self, client: AsyncBaseSocketModeClient, message: dict, raw_message: str | None
    ) -> None:
        kind = message.get("type")
        if kind == "hello":
            await self._queue.put(
                Connected(
                    info=message.get("connection_info", {}),
                    connection_count=message.get("num_connections", 0),
                )
            )
        elif kind == "disconnect":
            # SocketModeClient reconnects by itself
            await self._queue.put(OtherEvent(kind="disconnect", payload=message))

    async def _on_request(self, client: AsyncBaseSocketModeClient, req: SocketModeRequest) -> None:
        await client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))

        if req.type != "events_api":
            await self._queue.put(OtherEvent(kind=req.type, payload=req.payload))
            return

        event = req.payload.get("event", {})
        if event.get("type") == "message" and event.get("subtype") not in _IGNORED_SUBTYPES:
            await self._queue.put(MessageReceived(ChatMessage.from_slack(event)))
        else:
            await self._queue.put(OtherEvent(kind=event.get("type", "unknown"), payload=event))
