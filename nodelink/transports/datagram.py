from __future__ import annotations
import socket
from typing import Optional

from ..errors import TransportError
from ..transport import Endpoint, Packet, Transport

MAX_DATAGRAM = 65507

class DatagramTransport(Transport):
    """Transport over a single non-blocking UDP socket.

    Mapping:
    - connect -> resolve the peer to a (host, port) tuple, no socket state
    - send    -> sendto()
    - poll    -> recvfrom(); the source address is reported so unknown
                 senders can be answered
    """

    name = "datagram"

    def __init__(self, host: str = "0.0.0.0", port: int = 0, **kwargs):
        self._bind = (host, port)
        self._sock: Optional[socket.socket] = None

    @property
    def mtu(self) -> int:
        return MAX_DATAGRAM

    @property
    def local_endpoint(self) -> Endpoint:
        if self._sock is None:
            raise TransportError("transport not open")
        host, port = self._sock.getsockname()[:2]
        return (self._bind[0] if self._bind[0] not in ("", "0.0.0.0") else host, port)

    def open(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(self._bind)
            sock.setblocking(False)
        except OSError as exc:
            sock.close()
            raise TransportError(f"cannot bind udp {self._bind[0]}:{self._bind[1]}: {exc}") from exc
        self._sock = sock

    def connect(self, peer) -> Endpoint:
        try:
            info = socket.getaddrinfo(peer.address, peer.port, socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as exc:
            raise TransportError(f"cannot resolve {peer.address}: {exc}") from exc
        return info[0][4][:2]

    def send(self, handle: Endpoint, frame: bytes) -> None:
        if self._sock is None:
            raise TransportError("transport not open")
        if len(frame) > MAX_DATAGRAM:
            raise TransportError(f"frame of {len(frame)} bytes exceeds datagram limit")
        try:
            self._sock.sendto(frame, handle)
        except OSError as exc:
            raise TransportError(f"sendto {handle[0]}:{handle[1]} failed: {exc}") from exc

    def poll_receive(self) -> Optional[Packet]:
        if self._sock is None:
            return None
        try:
            data, addr = self._sock.recvfrom(65535)
        except (BlockingIOError, InterruptedError):
            return None
        except ConnectionResetError:
            # ICMP port unreachable from an earlier sendto (Windows)
            return None
        except OSError as exc:
            raise TransportError(f"recvfrom failed: {exc}") from exc
        return Packet(data, (addr[0], addr[1]))

    def close(self, handle: Endpoint) -> None:
        # connectionless
        return

    def shutdown(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None
