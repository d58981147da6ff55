"""
Public API:
- Nodelink: one-call factory (settings -> transport -> started Engine)
- Engine: queues + peer table + liveness + delivery loop for one node
- DriverFacade, NetDriver: host-facing send/receive
- EngineSettings, PeerSettings: configuration surface
- Frame, FrameKind, SendStatus: message types
- Transport, Packet: contract transports must implement
- PeerTable, Peer, PeerState, PeerTransition: liveness state
- pack_frame, unpack_frame: versioned wire record through a codec
"""

# Core runtime
from .engine import Engine
from .factory import Nodelink, build_transport

# Host facade
from .driver import DriverFacade, NetDriver, INVALID_NODE

# Configuration
from .config import EngineSettings, PeerSettings, MAX_NODES

# Message types
from .message import Frame, FrameKind, SendStatus

# Transport contract
from .transport import Transport, Packet

# Peers
from .peers import Peer, PeerState, PeerTable, PeerTransition

# Framing helpers
from .wire import pack_frame, unpack_frame
from .codecs import Codecs

from .errors import (
    NodelinkError,
    QueueFull,
    NoRoute,
    TransportError,
    DecodeError,
    EngineClosed,
    ConfigError,
)

__all__ = [
    "Nodelink",
    "build_transport",
    "Engine",
    "DriverFacade",
    "NetDriver",
    "INVALID_NODE",
    "EngineSettings",
    "PeerSettings",
    "MAX_NODES",
    "Frame",
    "FrameKind",
    "SendStatus",
    "Transport",
    "Packet",
    "Peer",
    "PeerState",
    "PeerTable",
    "PeerTransition",
    "pack_frame",
    "unpack_frame",
    "Codecs",
    "NodelinkError",
    "QueueFull",
    "NoRoute",
    "TransportError",
    "DecodeError",
    "EngineClosed",
    "ConfigError",
]

__version__ = "0.1.0"
