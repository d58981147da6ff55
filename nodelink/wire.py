from __future__ import annotations
import base64
import binascii

from .codecs import Codec
from .errors import DecodeError
from .message import MAX_NODES, Frame, FrameKind

WIRE_VERSION = 1

def pack_frame(frame: Frame, codec: Codec) -> bytes:
    payload = frame.payload
    if not codec.binary:
        payload = base64.b64encode(payload).decode("ascii")
    record = {
        "v":         WIRE_VERSION,
        "kind":      str(frame.kind),
        "payload":   payload,
        "recipient": frame.recipient_id,
        "sender":    frame.sender_id,
        "ts":        frame.timestamp,
    }
    return codec.dumps(record)

def unpack_frame(data: bytes, codec: Codec) -> Frame:
    """Decode one wire record; anything malformed raises DecodeError."""
    try:
        record = codec.loads(data)
    except Exception as exc:
        raise DecodeError(f"undecodable frame ({codec.name}): {exc}") from exc
    if not isinstance(record, dict):
        raise DecodeError("frame record is not a mapping")
    if record.get("v") != WIRE_VERSION:
        raise DecodeError(f"unsupported wire version: {record.get('v')!r}")

    try:
        kind = FrameKind(record["kind"])
        payload = record["payload"]
        recipient = record["recipient"]
        sender = record["sender"]
        ts = record["ts"]
    except (KeyError, ValueError) as exc:
        raise DecodeError(f"invalid frame field: {exc}") from exc

    if not codec.binary:
        if not isinstance(payload, str):
            raise DecodeError("payload must be base64 text")
        try:
            payload = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError(f"bad base64 payload: {exc}") from exc

    if not isinstance(payload, bytes):
        raise DecodeError("payload must be bytes")
    for name, value in (("recipient", recipient), ("sender", sender)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise DecodeError(f"{name} must be an integer node id")
        if not 0 <= value < MAX_NODES:
            raise DecodeError(f"{name} {value} outside node range 0..{MAX_NODES - 1}")
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        raise DecodeError("ts must be numeric")

    return Frame(payload=payload, sender_id=sender,
                 recipient_id=recipient, timestamp=float(ts), kind=kind)
