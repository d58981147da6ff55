from __future__ import annotations
import time
from typing import Any, Callable, Dict, Optional, Tuple

from .message import Frame, FrameKind

class FrameBuilder:
    """
    Builder that always produces a valid Frame for one local node.
     - DATA frames need a recipient and bytes payload
     - HEARTBEAT carries the sender's advertised "host:port" so the
       receiver can answer and register us on first contact
    """
    def __init__(self, sender_id: int, clock: Callable[[], float] = time.time):
        self._sender_id = sender_id
        self._clock = clock
        self._reset()

    def _reset(self) -> None:
        self._frame: Dict[str, Any] = {
            "kind":         FrameKind.DATA,
            "payload":      b"",
            "recipient_id": None,
        }

    def data(self, payload: bytes):
        self._frame["kind"]    = FrameKind.DATA
        self._frame["payload"] = bytes(payload)
        return self

    def heartbeat(self, endpoint: Tuple[str, int]):
        host, port = endpoint
        self._frame["kind"]    = FrameKind.HEARTBEAT
        self._frame["payload"] = f"{host}:{int(port)}".encode("ascii")
        return self

    def heartbeat_ack(self):
        self._frame["kind"]    = FrameKind.HEARTBEAT_ACK
        self._frame["payload"] = b""
        return self

    def to(self, recipient_id: int):
        self._frame["recipient_id"] = recipient_id
        return self

    def build(self) -> Frame:
        recipient: Optional[int] = self._frame["recipient_id"]
        if recipient is None:
            raise ValueError("Frames require a recipient node id.")
        if not isinstance(self._frame["payload"], (bytes, bytearray)):
            raise ValueError("Frame payload must be bytes.")
        frame = Frame(
            payload=bytes(self._frame["payload"]),
            sender_id=self._sender_id,
            recipient_id=int(recipient),
            timestamp=self._clock(),
            kind=self._frame["kind"],
        )
        self._reset()
        return frame

def parse_endpoint(payload: bytes) -> Optional[Tuple[str, int]]:
    """Inverse of the HEARTBEAT payload; None if it is not ``host:port``."""
    try:
        host, _, port = payload.decode("ascii").rpartition(":")
        return (host, int(port)) if host else None
    except (UnicodeDecodeError, ValueError):
        return None
