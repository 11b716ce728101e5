"""Shared pytest fixtures."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from netpinger.observer import NullObserver
from netpinger.probe.transport import ReplyEvent, TransportError


class FakeTransport:
    """In-memory probe channel.

    Addresses in ``responsive`` answer every echo request. Replies go to
    ``on_reply`` when set (single-round tests) or to the ``replies()`` stream.
    """

    def __init__(self, identifier=4242, responsive=()):
        self.identifier = identifier
        self.responsive = set(responsive)
        self.failing = set()
        self.sent = []
        self.on_reply = None
        self.closed = False
        self.stream = asyncio.Queue()

    def send(self, address, identifier, sequence):
        if address in self.failing:
            raise TransportError(f"send to {address} failed: network unreachable")
        self.sent.append((address, identifier, sequence))
        if address in self.responsive:
            self.emit(ReplyEvent(address, identifier, sequence))

    def emit(self, event):
        if self.on_reply is not None:
            self.on_reply(event)
        else:
            self.stream.put_nowait(event)

    async def replies(self):
        while True:
            item = await self.stream.get()
            if isinstance(item, Exception):
                raise item
            yield item

    def close(self):
        self.closed = True


class RecordingObserver(NullObserver):
    """Observer that keeps every notification for assertions."""

    def __init__(self):
        self.events = []

    def send_failed(self, address, error):
        self.events.append(("send_failed", address))

    def reply_received(self, address, streak):
        self.events.append(("replied", address, streak))

    def reply_discarded(self, event, reason):
        self.events.append(("discarded", event.address, reason))

    def probe_timed_out(self, address, streak):
        self.events.append(("timed_out", address, streak))

    def host_changed(self, transition):
        self.events.append(("host", transition.address, transition.state.value))

    def group_changed(self, transition):
        self.events.append(("group", transition.verdict.value, transition.up_count))

    def of_kind(self, kind):
        return [e for e in self.events if e[0] == kind]


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def recording_observer():
    return RecordingObserver()


@pytest.fixture
def mock_dispatcher():
    """Dispatcher stand-in with awaitable triggers."""
    return SimpleNamespace(on_alive=AsyncMock(), on_dead=AsyncMock())


@pytest.fixture
def make_engine(fake_transport, recording_observer, mock_dispatcher):
    """Build a PingEngine wired to the fake transport for round-by-round tests."""
    from netpinger.scheduler.round_scheduler import PingEngine

    def _make(addresses, **kwargs):
        kwargs.setdefault("wait_timeout", 0.01)
        kwargs.setdefault("pause_duration", 0)
        kwargs.setdefault("dispatcher", mock_dispatcher)
        kwargs.setdefault("observer", recording_observer)
        engine = PingEngine(fake_transport, addresses, **kwargs)
        fake_transport.on_reply = engine.deliver
        return engine

    return _make


@pytest.fixture
def sample_settings():
    """Settings-like object as consumed by the from_settings constructors."""
    return SimpleNamespace(
        target_list=["10.0.0.1", "10.0.0.2", "10.0.0.3"],
        alive_count=3,
        dead_count=3,
        group_alive=None,
        group_dead=0,
        wait_timeout=1.0,
        pause_duration=5.0,
        alive_cmd="systemctl start vpn",
        dead_cmd="systemctl stop vpn",
        webhook_url=None,
        action_timeout=30.0,
    )
