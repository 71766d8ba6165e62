"""End-to-end tests for the coordinator with fake chat and Spotify sides."""

import asyncio

import pytest
from conftest import PLAYLIST_ID, FakeServerFactory, FakeSpotifyClient, FakeTransport, wait_for

from playlist_maker.core.config import ExtractionMode
from playlist_maker.core.coordinator import Coordinator
from playlist_maker.core.errors import (
    ComponentCrashedError,
    InvalidCredentialsError,
    PlaylistUnusableError,
)
from playlist_maker.models import (
    Attachment,
    AttachmentField,
    ChatMessage,
    Connected,
    InvalidAuth,
    MessageReceived,
)


class BrokenTransport(FakeTransport):
    async def events(self):
        yield Connected()
        raise RuntimeError("socket exploded")


class GatedTransport(FakeTransport):
    """Yields ``before``, waits for ``gate``, then yields ``after``."""

    def __init__(self, before, gate: asyncio.Event, after):
        super().__init__(before)
        self.gate = gate
        self.after = list(after)

    async def events(self):
        async for event in super().events():
            yield event
        await self.gate.wait()
        for event in self.after:
            yield event


class SlowSpotifyClient(FakeSpotifyClient):
    """Holds each append open until ``release`` is set."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.append_started = asyncio.Event()
        self.release = asyncio.Event()

    async def add_track_to_playlist(self, playlist_id: str, track_id: str) -> str:
        self.append_started.set()
        await self.release.wait()
        return await super().add_track_to_playlist(playlist_id, track_id)


def make_coordinator(settings, http_client, transport, servers) -> Coordinator:
    return Coordinator(settings, transport=transport, http=http_client, server_factory=servers)


async def test_message_link_reaches_playlist(settings, http_client, caplog):
    caplog.set_level("INFO")
    client = FakeSpotifyClient()
    transport = FakeTransport(
        [
            Connected(connection_count=1),
            MessageReceived(
                ChatMessage(text="check this out <https://open.spotify.com/track/abc123>")
            ),
        ],
        hold_open=True,
    )
    coordinator = make_coordinator(
        settings, http_client, transport, FakeServerFactory(client=client)
    )
    task = asyncio.create_task(coordinator.run())

    await wait_for(lambda: client.appended)
    coordinator.shutdown.trigger("test done")
    error = await asyncio.wait_for(task, 2)

    assert error is None
    assert client.appended == [(PLAYLIST_ID, "abc123")]
    assert "Snapshot: snap-1" in caplog.text
    assert transport.closed


async def test_invalid_auth_stops_everything(settings, http_client, caplog):
    caplog.set_level("INFO")
    transport = FakeTransport(
        [
            MessageReceived(ChatMessage(text="https://open.spotify.com/track/early")),
            InvalidAuth(reason="invalid_auth"),
        ]
    )
    # No client is ever delivered: the worker is still waiting for the login
    servers = FakeServerFactory()
    coordinator = make_coordinator(settings, http_client, transport, servers)

    error = await asyncio.wait_for(coordinator.run(), 2)

    assert isinstance(error, InvalidCredentialsError)
    assert "Got hard error, stopping:" in caplog.text
    assert coordinator.tracks.qsize() == 1
    assert servers.servers[0].stop_calls == 1


async def test_invalid_auth_while_draining(settings, http_client):
    client = SlowSpotifyClient()
    gate = asyncio.Event()
    transport = GatedTransport(
        [
            MessageReceived(
                ChatMessage(
                    text="https://open.spotify.com/track/A "
                    "https://open.spotify.com/track/B https://open.spotify.com/track/C"
                )
            )
        ],
        gate,
        [InvalidAuth(reason="token_revoked")],
    )
    coordinator = make_coordinator(
        settings, http_client, transport, FakeServerFactory(client=client)
    )
    task = asyncio.create_task(coordinator.run())

    await asyncio.wait_for(client.append_started.wait(), 2)
    gate.set()
    await wait_for(coordinator.shutdown.is_set)
    client.release.set()
    error = await asyncio.wait_for(task, 2)

    assert isinstance(error, InvalidCredentialsError)
    # The in-flight append finishes; queued tracks are left alone
    assert client.appended == [(PLAYLIST_ID, "A")]
    assert coordinator.tracks.qsize() == 2


async def test_cancelled_run_still_cleans_up(settings, http_client):
    transport = FakeTransport([], hold_open=True)
    servers = FakeServerFactory()
    coordinator = make_coordinator(settings, http_client, transport, servers)
    task = asyncio.create_task(coordinator.run())

    await wait_for(lambda: bool(servers.servers) and servers.servers[0].started)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await asyncio.wait_for(task, 2)

    assert transport.closed
    assert servers.servers[0].stop_calls == 1


async def test_private_playlist_stops_listener(settings, http_client):
    transport = FakeTransport([], hold_open=True)
    coordinator = make_coordinator(
        settings, http_client, transport, FakeServerFactory(client=FakeSpotifyClient(public=False))
    )

    error = await asyncio.wait_for(coordinator.run(), 2)

    assert isinstance(error, PlaylistUnusableError)
    assert transport.closed


async def test_external_shutdown_is_clean(settings, http_client):
    transport = FakeTransport([], hold_open=True)
    coordinator = make_coordinator(
        settings, http_client, transport, FakeServerFactory(client=FakeSpotifyClient())
    )
    task = asyncio.create_task(coordinator.run())

    await asyncio.sleep(0.05)
    coordinator.shutdown.trigger("received SIGTERM")

    assert await asyncio.wait_for(task, 2) is None
    assert transport.closed


async def test_component_crash_is_a_hard_error(settings, http_client):
    coordinator = make_coordinator(
        settings, http_client, BrokenTransport(), FakeServerFactory(client=FakeSpotifyClient())
    )

    error = await asyncio.wait_for(coordinator.run(), 2)

    assert isinstance(error, ComponentCrashedError)
    assert "chat-listener" in str(error)


async def test_does_not_close_borrowed_http_client(settings, http_client):
    coordinator = make_coordinator(
        settings, http_client, FakeTransport([], hold_open=True), FakeServerFactory()
    )
    task = asyncio.create_task(coordinator.run())
    await asyncio.sleep(0.01)
    coordinator.shutdown.trigger("test")
    await asyncio.wait_for(task, 2)

    assert not http_client.is_closed


async def test_tracks_are_appended_in_posted_order(settings, http_client):
    client = FakeSpotifyClient()
    transport = FakeTransport(
        [
            MessageReceived(ChatMessage(text="https://open.spotify.com/track/A")),
            MessageReceived(
                ChatMessage(
                    text="https://open.spotify.com/track/B <https://open.spotify.com/track/C>"
                )
            ),
        ],
        hold_open=True,
    )
    coordinator = make_coordinator(
        settings, http_client, transport, FakeServerFactory(client=client)
    )
    task = asyncio.create_task(coordinator.run())

    await wait_for(lambda: len(client.appended) == 3)
    coordinator.shutdown.trigger("test done")
    await asyncio.wait_for(task, 2)

    assert [track for _, track in client.appended] == ["A", "B", "C"]


async def test_attachment_mode(settings, http_client):
    client = FakeSpotifyClient()
    unfurl = Attachment(
        fields=(
            AttachmentField("service", "Spotify"),
            AttachmentField("title_link", "https://open.spotify.com/track/xyz789"),
        )
    )
    transport = FakeTransport(
        [MessageReceived(ChatMessage(text="", attachments=(unfurl,)))], hold_open=True
    )
    attachment_settings = settings.model_copy(
        update={"extraction_mode": ExtractionMode.ATTACHMENT}
    )
    coordinator = make_coordinator(
        attachment_settings, http_client, transport, FakeServerFactory(client=client)
    )
    task = asyncio.create_task(coordinator.run())

    await wait_for(lambda: client.appended)
    coordinator.shutdown.trigger("test done")
    await asyncio.wait_for(task, 2)

    assert client.appended == [(PLAYLIST_ID, "xyz789")]
