import asyncio
import itertools
import json

import pytest

from signalrelay.core.config import RelayConfig
from signalrelay.core.exceptions import SendFailure
from signalrelay.relay.connection import Connection
from signalrelay.relay.relay import Relay


class FakeConnection(Connection):
    """In-memory connection that records every envelope sent to it."""

    def __init__(self, name="peer", fail=False):
        self.name = name
        self.fail = fail
        self.sent = []
        self._closed = False

    @property
    def closed(self):
        return self._closed

    @property
    def remote(self):
        return self.name

    async def send(self, text):
        if self.fail or self._closed:
            raise SendFailure("peer gone", {"remote": self.name})
        self.sent.append(json.loads(text))

    async def close(self):
        self._closed = True

    def of_type(self, message_type):
        return [m for m in self.sent if m.get('type') == message_type]

    def rosters(self):
        return [m['users'] for m in self.of_type('userList')]


class StalledConnection(FakeConnection):
    """Connection whose sends time out while the transport still looks open."""

    def __init__(self, name="stalled"):
        super().__init__(name)
        self.stalled = False

    async def send(self, text):
        if self.stalled:
            raise SendFailure("Send timed out", {"remote": self.name, "timeout": 5.0})
        await super().send(text)


def sequential_ids(*ids):
    """Id factory yielding the given ids, then id-N."""
    return itertools.chain(ids, (f"id-{n}" for n in itertools.count())).__next__


@pytest.fixture(autouse=True)
def clean_relay_env(monkeypatch):
    for name in ('RELAY_HOST', 'RELAY_PORT', 'RELAY_WS_PATH', 'RELAY_HEARTBEAT',
                 'RELAY_SEND_TIMEOUT', 'RELAY_MAX_MESSAGE_SIZE', 'RELAY_NOTIFY_MALFORMED',
                 'RELAY_LOG_LEVEL', 'STUN_URL', 'TURN_ADDRESS', 'TURN_USERNAME', 'TURN_PASSWORD'):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def run():
    return asyncio.run


@pytest.fixture
def relay():
    return Relay(RelayConfig(), id_factory=sequential_ids("a1", "b1", "c1", "d1"))
