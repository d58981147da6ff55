from __future__ import annotations
from dataclasses import dataclass
from enum import StrEnum

# Node ids on the wire are 0..MAX_NODES-1
MAX_NODES = 8

# Frame kinds. HEARTBEAT/HEARTBEAT_ACK are control plane and never reach the host.
class FrameKind(StrEnum):
    DATA          = "DATA"
    HEARTBEAT     = "HEARTBEAT"
    HEARTBEAT_ACK = "HEARTBEAT_ACK"

# Outcome of a host send, returned by the driver facade
class SendStatus(StrEnum):
    OK         = "ok"
    QUEUE_FULL = "queue_full"
    NO_ROUTE   = "no_route"
    TOO_LARGE  = "too_large"
    CLOSED     = "closed"

@dataclass(frozen=True)
class Frame:
    """
    One message unit plus routing metadata
    """
    payload: bytes               # opaque host bytes (endpoint text for HEARTBEAT)
    sender_id: int               # node id of the originating engine
    recipient_id: int            # node id the host addressed
    timestamp: float             # sender's wall-clock time
    kind: FrameKind = FrameKind.DATA

    @property
    def is_control(self) -> bool:
        return self.kind is not FrameKind.DATA
