from __future__ import annotations
import itertools
import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from ..errors import TransportError
from ..transport import Endpoint, Packet, Transport

class MemoryNetwork:
    """In-process network shared by MemoryTransport instances.

    Every successful delivery is appended to ``log`` as
    ``(source, destination, frame)`` so tests can see where a frame went.
    """

    def __init__(self) -> None:
        self._inboxes: Dict[Endpoint, Deque[Packet]] = {}
        self._lock = threading.Lock()
        self._ports = itertools.count(40000)
        self.log: List[Tuple[Endpoint, Endpoint, bytes]] = []

    def attach(self, endpoint: Endpoint) -> Endpoint:
        host, port = endpoint
        with self._lock:
            if port == 0:
                port = next(self._ports)
                while (host, port) in self._inboxes:
                    port = next(self._ports)
            if (host, port) in self._inboxes:
                raise TransportError(f"address in use: {host}:{port}")
            self._inboxes[(host, port)] = deque()
            return (host, port)

    def detach(self, endpoint: Endpoint) -> None:
        with self._lock:
            self._inboxes.pop(endpoint, None)

    def deliver(self, source: Endpoint, dest: Endpoint, frame: bytes) -> None:
        with self._lock:
            inbox = self._inboxes.get(dest)
            if inbox is None:
                raise TransportError(f"unreachable: {dest[0]}:{dest[1]}")
            inbox.append(Packet(frame, source))
            self.log.append((source, dest, frame))

    def take(self, endpoint: Endpoint) -> Optional[Packet]:
        with self._lock:
            inbox = self._inboxes.get(endpoint)
            return inbox.popleft() if inbox else None

    def sent_to(self, dest: Endpoint) -> List[bytes]:
        with self._lock:
            return [frame for _, d, frame in self.log if d == dest]

class MemoryTransport(Transport):
    """Simulated transport: no sockets, frames move between deques."""

    name = "memory"

    def __init__(self, network: MemoryNetwork, host: str = "memory", port: int = 0, *, mtu: int = 65536):
        self.network = network
        self._requested = (host, port)
        self._endpoint: Optional[Endpoint] = None
        self._mtu = mtu
        self.connects = 0
        self.closed_handles: List[Endpoint] = []
        self.shutdowns = 0

    @property
    def mtu(self) -> int:
        return self._mtu

    @property
    def local_endpoint(self) -> Endpoint:
        if self._endpoint is None:
            raise TransportError("transport not open")
        return self._endpoint

    def open(self) -> None:
        self._endpoint = self.network.attach(self._requested)

    def connect(self, peer) -> Endpoint:
        self.connects += 1
        return peer.endpoint

    def send(self, handle: Endpoint, frame: bytes) -> None:
        if len(frame) > self._mtu:
            raise TransportError(f"frame of {len(frame)} bytes exceeds mtu {self._mtu}")
        self.network.deliver(self.local_endpoint, handle, frame)

    def poll_receive(self) -> Optional[Packet]:
        if self._endpoint is None:
            return None
        return self.network.take(self._endpoint)

    def close(self, handle: Endpoint) -> None:
        self.closed_handles.append(handle)

    def shutdown(self) -> None:
        self.shutdowns += 1
        if self._endpoint is not None:
            self.network.detach(self._endpoint)
            self._endpoint = None
