"""
Tests for the host-facing driver facade and the legacy NetDriver contract.
"""

import pytest

from nodelink.driver import CMD_GET, CMD_SEND, INVALID_NODE, DriverFacade, NetDriver
from nodelink.engine import Engine
from nodelink.message import Frame, SendStatus
from nodelink.peers import PeerState


@pytest.fixture
def engine(make_settings, recording_transport):
    e = Engine(make_settings(queue_capacity=2), recording_transport)
    yield e
    e.shutdown()


def _deliver_to(engine, payload, sender=1):
    engine.inbound.push(Frame(payload, sender, engine.node_id, 0.0))


class TestDriverFacade:

    def test_send_ok(self, engine):
        assert DriverFacade(engine).send(b"abc", 1) is SendStatus.OK
        frame = engine.outbound.try_pop()
        assert (frame.payload, frame.sender_id, frame.recipient_id) == (b"abc", 0, 1)

    def test_queue_full_keeps_existing_order(self, engine):
        facade = DriverFacade(engine)
        assert facade.send(b"1", 1) is SendStatus.OK
        assert facade.send(b"2", 2) is SendStatus.OK
        assert facade.send(b"3", 3) is SendStatus.QUEUE_FULL

        assert [engine.outbound.try_pop().payload for _ in range(2)] == [b"1", b"2"]

    def test_payload_over_limit(self, engine):
        assert DriverFacade(engine).send(b"x" * 513, 1) is SendStatus.TOO_LARGE
        assert DriverFacade(engine).send(b"x" * 512, 1) is SendStatus.OK

    def test_no_route_rejected_at_enqueue(self, engine):
        for i in (1, 2, 3):
            engine.peers.set_state(i, PeerState.INACTIVE, 0.0)
        assert DriverFacade(engine).send(b"x", 2) is SendStatus.NO_ROUTE
        assert len(engine.outbound) == 0

    def test_unknown_node_is_no_route(self, engine):
        assert DriverFacade(engine).send(b"x", 7) is SendStatus.NO_ROUTE

    def test_closed(self, engine):
        engine.shutdown()
        assert DriverFacade(engine).send(b"x", 1) is SendStatus.CLOSED
        assert DriverFacade(engine).receive() is None

    def test_receive(self, engine):
        facade = DriverFacade(engine)
        assert facade.receive() is None
        _deliver_to(engine, b"packet", sender=3)
        assert facade.receive() == (b"packet", 3)
        assert facade.receive() is None


class TestNetDriver:

    def test_send_uses_length(self, engine):
        driver = NetDriver(engine)
        assert driver.send(bytearray(b"abcdef"), 3, 2) is SendStatus.OK
        assert engine.outbound.try_pop().payload == b"abc"

    def test_send_rejects_bad_length(self, engine):
        with pytest.raises(ValueError):
            NetDriver(engine).send(b"abc", 4, 1)

    def test_receive_idle_reports_invalid_node(self, engine):
        buf = bytearray(16)
        assert NetDriver(engine).receive(buf) == (0, INVALID_NODE)
        assert buf == bytearray(16)

    def test_receive_fills_buffer(self, engine):
        _deliver_to(engine, b"\x01\x02\x03", sender=2)
        buf = bytearray(8)
        assert NetDriver(engine).receive(buf) == (3, 2)
        assert bytes(buf[:3]) == b"\x01\x02\x03"

    def test_receive_truncates_to_buffer(self, engine):
        _deliver_to(engine, b"0123456789")
        buf = bytearray(4)
        assert NetDriver(engine).receive(buf) == (4, 1)
        assert buf == bytearray(b"0123")

    def test_dispatch_commands(self, engine):
        driver = NetDriver(engine)
        buf = bytearray(b"ticcmd" + bytes(10))
        assert driver.dispatch(CMD_SEND, buf, 6, 1) == (6, 1)
        assert engine.outbound.try_pop().payload == b"ticcmd"

        assert driver.dispatch(CMD_GET, buf) == (0, INVALID_NODE)
        _deliver_to(engine, b"reply", sender=1)
        assert driver.dispatch(CMD_GET, buf) == (5, 1)

        with pytest.raises(ValueError):
            driver.dispatch(99, buf)
