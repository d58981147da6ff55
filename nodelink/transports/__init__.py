"""
Transport backends. Each is imported lazily by the factory so a missing
optional library only matters when that backend is selected.
"""

from .memory import MemoryNetwork, MemoryTransport

LABELS = {
    "rpc":           "rpc",
    "grpc":          "rpc",
    "datagram":      "datagram",
    "udp":           "datagram",
    "stream":        "stream",
    "stream-socket": "stream",
    "websocket":     "stream",
    "memory":        "memory",
}

__all__ = ["LABELS", "MemoryNetwork", "MemoryTransport"]
