"""
Tests for nodelink.factory and the logging helpers it wires up.
"""

import json
import logging

import pytest

from nodelink import logging_setup
from nodelink.config import EngineSettings
from nodelink.engine import Engine
from nodelink.errors import ConfigError
from nodelink.events import log_event, log_transition
from nodelink.factory import Nodelink, build_transport
from nodelink.peers import PeerState, PeerTransition
from nodelink.transports.datagram import DatagramTransport
from nodelink.transports.memory import MemoryNetwork, MemoryTransport


class TestBuildTransport:

    @pytest.mark.parametrize("label", ["datagram", "udp", "UDP"])
    def test_datagram_labels(self, label):
        t = build_transport(EngineSettings(transport=label, port=0))
        assert isinstance(t, DatagramTransport)

    def test_memory_uses_given_network(self, network):
        t = build_transport(EngineSettings(transport="memory", port=7000), network=network)
        assert isinstance(t, MemoryTransport)
        assert t.network is network

    def test_memory_without_network_gets_a_private_one(self):
        t = build_transport(EngineSettings(transport="memory"))
        assert isinstance(t.network, MemoryNetwork)

    def test_rpc_label(self):
        pytest.importorskip("grpc")
        from nodelink.transports.rpc import RpcTransport

        assert isinstance(build_transport(EngineSettings(transport="grpc")), RpcTransport)

    def test_stream_label(self):
        pytest.importorskip("websockets")
        from nodelink.transports.stream import StreamTransport

        assert isinstance(build_transport(EngineSettings(transport="websocket")), StreamTransport)

    def test_unknown_label(self):
        with pytest.raises(ValueError):
            build_transport(EngineSettings(transport="carrier-pigeon"))


class TestNodelink:

    SETTINGS = {
        "node_id": 0,
        "transport": "memory",
        "host_address": "localhost",
        "port": 7000,
        "peer_list": ["localhost:7001"],
        "scheduling": "cooperative",
    }

    def test_from_dict(self, network, engines):
        engine = Nodelink(dict(self.SETTINGS), network=network)
        engines.append(engine)

        assert isinstance(engine, Engine)
        assert engine.running
        assert engine.peers.active_ids() == [1]
        assert engine.transport.local_endpoint == ("localhost", 7000)

    def test_from_path(self, tmp_path, network, engines):
        path = tmp_path / "netgame.json"
        path.write_text(json.dumps(self.SETTINGS))

        engine = Nodelink(str(path), network=network, auto_start=False)
        engines.append(engine)
        assert not engine.running
        assert engine.settings.peers[0].port == 7001

    def test_explicit_transport_and_clock(self, recording_transport, clock, engines):
        engine = Nodelink(EngineSettings.from_dict(self.SETTINGS), transport=recording_transport, clock=clock)
        engines.append(engine)
        assert engine.transport is recording_transport
        assert engine.monitor.clock is clock

    def test_defaults(self, network, engines):
        engine = Nodelink(None, transport=MemoryTransport(network, "localhost", 0), auto_start=False)
        engines.append(engine)
        assert engine.settings.node_id == 0
        assert len(engine.peers) == 0

    def test_invalid_settings(self, network):
        with pytest.raises(ConfigError):
            Nodelink({"node_id": 9}, network=network)

    def test_transition_listener_is_registered(self, recording_transport, clock, engines):
        transitions = []
        engine = Nodelink(dict(self.SETTINGS), transport=recording_transport, clock=clock,
                          on_transition=transitions.append)
        engines.append(engine)

        clock.advance(10.0)
        engine.tick()
        assert [(t.peer_id, t.new) for t in transitions] == [(1, "INACTIVE")]


class TestLogging:

    @pytest.fixture
    def fresh_logger(self, monkeypatch):
        monkeypatch.setattr(logging_setup, "_configured", False)
        logger = logging.getLogger(logging_setup.LOGGER_NAME)
        before = list(logger.handlers)
        yield logger
        for handler in logger.handlers[len(before):]:
            handler.close()
        logger.handlers = before
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    def test_setup_logging_once(self, fresh_logger, tmp_path):
        log_file = tmp_path / "logs" / "nodelink.log"
        logger = logging_setup.setup_logging("debug", log_file, stream=False)
        assert logger is fresh_logger
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert not logger.propagate

        logging_setup.setup_logging("warning", log_file, stream=False)
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING

        logging_setup.get_logger("host").warning("peer lost")
        logger.handlers[-1].flush()
        assert "nodelink.host: peer lost" in log_file.read_text()

    def test_log_event_writes_one_json_line(self, caplog):
        logger = logging.getLogger("nodelink.test")
        with caplog.at_level(logging.INFO, logger="nodelink"):
            log_event(logger, "peer_demoted", peer=2, old="ACTIVE", new="INACTIVE")

        record = json.loads(caplog.records[-1].getMessage())
        assert record["event"] == "peer_demoted"
        assert record["peer"] == 2
        assert "ts_ms" in record

    def test_transition_levels(self, caplog):
        logger = logging.getLogger("nodelink.test")
        down = PeerTransition(2, PeerState.ACTIVE, PeerState.INACTIVE, 10.0)
        up = PeerTransition(2, PeerState.INACTIVE, PeerState.ACTIVE, 12.0)
        with caplog.at_level(logging.INFO, logger="nodelink"):
            log_transition(logger, down)
            log_transition(logger, up)

        levels = [r.levelno for r in caplog.records]
        events = [json.loads(r.getMessage()) for r in caplog.records]
        assert levels == [logging.WARNING, logging.INFO]
        assert [(e["event"], e["peer_id"], e["at"]) for e in events] == [
            ("peer_demoted", 2, 10.0),
            ("peer_reactivated", 2, 12.0),
        ]
