"""
Pytest configuration and fixtures for nodelink tests.
"""

import os
import sys
from collections import deque

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from nodelink.codecs import Codecs
from nodelink.config import EngineSettings, PeerSettings
from nodelink.errors import TransportError
from nodelink.transport import Packet, Transport
from nodelink.transports.memory import MemoryNetwork
from nodelink.wire import unpack_frame


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now=0.0):
        self.now = float(now)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingTransport(Transport):
    """Transport double that records every send and replays queued packets."""

    name = "recording"

    def __init__(self, fail_open=None):
        self.fail_open = fail_open
        self.sent = []
        self.inbox = deque()
        self.closed = []
        self.connects = 0
        self.fail_sends = 0
        self.shutdowns = 0

    @property
    def mtu(self):
        return 65536

    @property
    def local_endpoint(self):
        return ("127.0.0.1", 9000)

    def open(self):
        if self.fail_open is not None:
            raise self.fail_open

    def connect(self, peer):
        self.connects += 1
        return ("handle", peer.peer_id)

    def send(self, handle, frame):
        if self.fail_sends:
            self.fail_sends -= 1
            raise TransportError("link down")
        self.sent.append((handle[1], frame))

    def poll_receive(self):
        return self.inbox.popleft() if self.inbox else None

    def close(self, handle):
        self.closed.append(handle)

    def shutdown(self):
        self.shutdowns += 1

    # ---- helpers for tests ----

    def inject(self, frame_bytes, source=None):
        self.inbox.append(Packet(frame_bytes, source))

    def decoded(self, codec="msgpack"):
        return [(peer_id, unpack_frame(raw, Codecs.get(codec))) for peer_id, raw in self.sent]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def network():
    return MemoryNetwork()


@pytest.fixture
def recording_transport():
    return RecordingTransport()


@pytest.fixture
def make_settings():
    """Settings for node 0 with peers 1..n on localhost:7001.."""

    def _make(peers=3, **overrides):
        values = {
            "node_id": 0,
            "transport": "memory",
            "host_address": "localhost",
            "port": 7000,
            "peers": [PeerSettings("localhost", 7000 + i, i) for i in range(1, peers + 1)],
            "scheduling": "cooperative",
        }
        values.update(overrides)
        settings = EngineSettings(**values)
        settings.validate()
        return settings

    return _make


@pytest.fixture
def engines():
    """Collects engines created by a test and shuts them all down afterwards."""
    created = []
    yield created
    for engine in created:
        engine.shutdown()
