from __future__ import annotations
import logging
import queue
from concurrent import futures
from dataclasses import dataclass
from typing import Any, Optional

try:
    import grpc
except Exception as e:
    raise RuntimeError("grpcio is required for the rpc transport. Error: %r" % (e,))

from ..errors import TransportError
from ..transport import Endpoint, Packet, Transport

logger = logging.getLogger(__name__)

SERVICE = "nodelink.Relay"
METHOD = "Deliver"
_METHOD_PATH = f"/{SERVICE}/{METHOD}"
_EMPTY = b""

@dataclass
class RpcHandle:
    target: str
    channel: Any
    call: Any

class RpcTransport(Transport):
    """Transport over a gRPC unary call.

    Mapping:
    - one generic method carrying raw frame bytes (no generated stubs,
      no serializers, so request and response are plain bytes)
    - the server side only enqueues the request and answers b""
    - the client side calls with a deadline and discards the answer
      (fire-and-forget; the host polls for replies separately)
    """

    name = "rpc"

    def __init__(self, host: str = "localhost", port: int = 50051, *,
                 timeout: float = 0.5, workers: int = 4, inbox_capacity: int = 1024, **kwargs):
        self._host = host
        self._port = port
        self._timeout = timeout
        self._workers = workers
        self._inbox: "queue.Queue[Packet]" = queue.Queue(maxsize=inbox_capacity)
        self._server = None
        self._bound_port: Optional[int] = None

    @property
    def mtu(self) -> int:
        # grpc default max receive message length
        return 4 * 1024 * 1024

    @property
    def local_endpoint(self) -> Endpoint:
        if self._bound_port is None:
            raise TransportError("transport not open")
        return (self._host, self._bound_port)

    def open(self) -> None:
        server = grpc.server(futures.ThreadPoolExecutor(max_workers=self._workers))
        handler = grpc.method_handlers_generic_handler(
            SERVICE, {METHOD: grpc.unary_unary_rpc_method_handler(self._deliver)}
        )
        server.add_generic_rpc_handlers((handler,))
        try:
            bound = server.add_insecure_port(f"{self._host}:{self._port}")
        except RuntimeError as exc:
            raise TransportError(f"cannot bind rpc {self._host}:{self._port}: {exc}") from exc
        if not bound:
            raise TransportError(f"cannot bind rpc {self._host}:{self._port}")
        server.start()
        self._server = server
        self._bound_port = bound

    def _deliver(self, request: bytes, context) -> bytes:
        try:
            self._inbox.put_nowait(Packet(bytes(request)))
        except queue.Full:
            context.abort(grpc.StatusCode.RESOURCE_EXHAUSTED, "inbox full")
        return _EMPTY

    def connect(self, peer) -> RpcHandle:
        target = f"{peer.address}:{peer.port}"
        channel = grpc.insecure_channel(target)
        return RpcHandle(target, channel, channel.unary_unary(_METHOD_PATH))

    def send(self, handle: RpcHandle, frame: bytes) -> None:
        try:
            handle.call(frame, timeout=self._timeout)
        except grpc.RpcError as exc:
            code = exc.code() if hasattr(exc, "code") else None
            raise TransportError(f"rpc to {handle.target} failed: {code}") from exc

    def poll_receive(self) -> Optional[Packet]:
        try:
            return self._inbox.get_nowait()
        except queue.Empty:
            return None

    def close(self, handle: RpcHandle) -> None:
        handle.channel.close()

    def shutdown(self) -> None:
        if self._server is not None:
            self._server.stop(grace=None).wait()
            self._server = None
            logger.debug("rpc server on port %s stopped", self._bound_port)
