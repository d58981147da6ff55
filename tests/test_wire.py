"""
Tests for frame construction, codecs and the wire record.
"""

import base64

import msgpack
import pytest

from nodelink.builder import FrameBuilder, parse_endpoint
from nodelink.codecs import Codecs
from nodelink.errors import DecodeError
from nodelink.message import Frame, FrameKind
from nodelink.wire import WIRE_VERSION, pack_frame, unpack_frame


def _record(**overrides):
    record = {"v": WIRE_VERSION, "kind": "DATA", "payload": b"x", "recipient": 1, "sender": 0, "ts": 1.0}
    record.update(overrides)
    return record


class TestFrameBuilder:

    def test_data_frame(self):
        frame = FrameBuilder(3, clock=lambda: 42.0).data(b"ticcmd").to(1).build()

        assert frame == Frame(b"ticcmd", sender_id=3, recipient_id=1, timestamp=42.0, kind=FrameKind.DATA)
        assert not frame.is_control

    def test_heartbeat_carries_endpoint(self):
        frame = FrameBuilder(0).heartbeat(("10.0.0.5", 5029)).to(2).build()

        assert frame.kind is FrameKind.HEARTBEAT
        assert frame.is_control
        assert parse_endpoint(frame.payload) == ("10.0.0.5", 5029)

    def test_build_requires_recipient(self):
        with pytest.raises(ValueError):
            FrameBuilder(0).data(b"x").build()

    def test_builder_resets_after_build(self):
        b = FrameBuilder(0)
        b.heartbeat_ack().to(1).build()
        with pytest.raises(ValueError):
            b.build()

    @pytest.mark.parametrize("payload", [b"", b"no-port", b"host:abc", b"\xff\xfe:1"])
    def test_parse_endpoint_rejects_garbage(self, payload):
        assert parse_endpoint(payload) is None


class TestWire:

    def test_msgpack_preserves_fields(self):
        codec = Codecs.get("msgpack")
        frame = Frame(bytes(range(256)), sender_id=2, recipient_id=5, timestamp=1700000000.25)

        assert unpack_frame(pack_frame(frame, codec), codec) == frame

    def test_json_codec_base64_payload(self):
        codec = Codecs.get("json")
        frame = Frame(b"\x00\x01binary", sender_id=1, recipient_id=0, timestamp=3.5, kind=FrameKind.HEARTBEAT_ACK)
        raw = pack_frame(frame, codec)

        assert b"AAFiaW5hcnk=" in raw
        assert unpack_frame(raw, codec) == frame

    def test_unknown_codec(self):
        with pytest.raises(ValueError):
            Codecs.get("protobuf")

    def test_garbage_bytes(self):
        with pytest.raises(DecodeError):
            unpack_frame(b"\xc1\xc1not msgpack", Codecs.get("msgpack"))

    def test_not_a_mapping(self):
        with pytest.raises(DecodeError):
            unpack_frame(msgpack.packb([1, 2, 3]), Codecs.get("msgpack"))

    def test_wrong_version(self):
        raw = msgpack.packb(_record(v=99), use_bin_type=True)
        with pytest.raises(DecodeError):
            unpack_frame(raw, Codecs.get("msgpack"))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"kind": "PING"},
            {"payload": "text"},
            {"sender": "0"},
            {"recipient": True},
            {"sender": -1},
            {"sender": 4242},
            {"recipient": 8},
            {"ts": "yesterday"},
        ],
    )
    def test_invalid_fields(self, overrides):
        raw = msgpack.packb(_record(**overrides), use_bin_type=True)
        with pytest.raises(DecodeError):
            unpack_frame(raw, Codecs.get("msgpack"))

    def test_missing_field(self):
        record = _record()
        del record["sender"]
        with pytest.raises(DecodeError):
            unpack_frame(msgpack.packb(record, use_bin_type=True), Codecs.get("msgpack"))

    def test_json_bad_base64(self):
        codec = Codecs.get("json")
        raw = codec.dumps(_record(payload="***"))
        with pytest.raises(DecodeError):
            unpack_frame(raw, codec)

    def test_json_rejects_raw_payload_type(self):
        codec = Codecs.get("json")
        raw = codec.dumps(_record(payload=[1, 2]))
        with pytest.raises(DecodeError):
            unpack_frame(raw, codec)

    def test_json_accepts_valid_base64(self):
        codec = Codecs.get("json")
        raw = codec.dumps(_record(payload=base64.b64encode(b"ok").decode()))
        assert unpack_frame(raw, codec).payload == b"ok"
