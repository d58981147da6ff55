from __future__ import annotations
import logging
import queue
import threading
from typing import Optional

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import ClientConnection, connect
from websockets.sync.server import ServerConnection, serve

from ..errors import TransportError
from ..transport import Endpoint, Packet, Transport

logger = logging.getLogger(__name__)

class StreamTransport(Transport):
    """Transport over WebSocket connections (websockets sync API).

    Mapping:
    - connect -> one client connection per peer, kept as the peer handle
    - send    -> one binary message per frame
    - inbound -> the server runs on its own thread; each connection's
                 handler pushes binary messages into an inbox that
                 poll_receive drains without blocking
    """

    name = "stream"

    def __init__(self, host: str = "localhost", port: int = 0, *,
                 connect_timeout: float = 2.0, inbox_capacity: int = 1024, **kwargs):
        self._host = host
        self._port = port
        self._connect_timeout = connect_timeout
        self._inbox: "queue.Queue[Packet]" = queue.Queue(maxsize=inbox_capacity)
        self._server = None
        self._thread: Optional[threading.Thread] = None

    @property
    def mtu(self) -> int:
        # websockets default max_size
        return 1024 * 1024

    @property
    def local_endpoint(self) -> Endpoint:
        if self._server is None:
            raise TransportError("transport not open")
        return (self._host, self._server.socket.getsockname()[1])

    def open(self) -> None:
        try:
            self._server = serve(self._handle, self._host, self._port)
        except OSError as exc:
            raise TransportError(f"cannot listen on {self._host}:{self._port}: {exc}") from exc
        self._thread = threading.Thread(target=self._server.serve_forever,
                                        name="nodelink-stream-server", daemon=True)
        self._thread.start()

    def _handle(self, ws: ServerConnection) -> None:
        try:
            for message in ws:
                if not isinstance(message, bytes):
                    continue
                # blocks the connection while the engine catches up
                self._inbox.put(Packet(message))
        except ConnectionClosed:
            pass

    def connect(self, peer) -> ClientConnection:
        uri = f"ws://{peer.address}:{peer.port}"
        try:
            return connect(uri, open_timeout=self._connect_timeout)
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise TransportError(f"cannot connect to {uri}: {exc}") from exc

    def send(self, handle: ClientConnection, frame: bytes) -> None:
        try:
            handle.send(frame)
        except (ConnectionClosed, OSError) as exc:
            raise TransportError(f"stream send failed: {exc}") from exc

    def poll_receive(self) -> Optional[Packet]:
        try:
            return self._inbox.get_nowait()
        except queue.Empty:
            return None

    def close(self, handle: ClientConnection) -> None:
        handle.close()

    def shutdown(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            self._server = None
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
