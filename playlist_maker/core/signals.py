"""Coordination primitives shared by the pipeline components.

All three are built on ``asyncio.Event`` so they can be created outside a
running loop and awaited from any task on it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Generic, TypeVar

from .errors import HardError

LOGGER = logging.getLogger("PlaylistMaker.Signals")

T = TypeVar("T")


class ShutdownRequested(Exception):
    """Raised by ``ShutdownSignal.until_shutdown`` when shutdown wins the race."""


class ShutdownSignal:
    """Process-wide cancellation, triggered at most once."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    def trigger(self, reason: str = "shutdown requested") -> bool:
        """Fire the signal. Returns False if it had already fired."""
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        LOGGER.info(f"Shutdown triggered: {reason}")
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    async def until_shutdown(self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless shutdown fires first.

        Raises ``ShutdownRequested`` (after cancelling the awaitable) when the
        signal is, or becomes, set. A result that lands together with the
        signal is discarded.
        """
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            task.cancel()
            raise ShutdownRequested(self.reason)

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        if self._event.is_set():
            if task.done() and not task.cancelled():
                # Retrieve so a failed awaitable does not log "never retrieved"
                task.exception()
            raise ShutdownRequested(self.reason)
        return task.result()


class HardErrorSignal:
    """First-write-wins slot for the error that ends the process."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._error: HardError | None = None

    @property
    def error(self) -> HardError | None:
        return self._error

    def escalate(self, error: HardError) -> bool:
        """Record *error* if no hard error was recorded yet."""
        if self._error is not None:
            LOGGER.warning(f"Ignoring hard error, already stopping: {error}")
            return False
        self._error = error
        self._event.set()
        return True

    async def wait(self) -> HardError:
        await self._event.wait()
        assert self._error is not None
        return self._error


class Handoff(Generic[T]):
    """Single-slot, single-use delivery of one value to one waiter."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._value: T | None = None

    @property
    def delivered(self) -> bool:
        return self._event.is_set()

    def deliver(self, value: T) -> bool:
        """Hand *value* over. Returns False if something was delivered already."""
        if self._event.is_set():
            return False
        self._value = value
        self._event.set()
        return True

    async def wait(self) -> T:
        await self._event.wait()
        return self._value  # type: ignore[return-value]
