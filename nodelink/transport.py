from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Tuple

if TYPE_CHECKING:
    from .peers import Peer

Endpoint = Tuple[str, int]   # (host, port)
Handle = Any                 # backend-specific connection object

@dataclass(frozen=True)
class Packet:
    payload: bytes
    source: Optional[Endpoint] = None   # return address when the backend knows it

class Transport(ABC):
    """
    Uniform send-and-poll surface every backend implements.
    All failures are raised as TransportError.
    """

    name: str = "abstract"

    @property
    @abstractmethod
    def mtu(self) -> int:
        """Best-effort max frame size in bytes."""
        raise NotImplementedError

    @property
    @abstractmethod
    def local_endpoint(self) -> Endpoint:
        """Address peers can reach us on (valid after open())."""
        raise NotImplementedError

    @abstractmethod
    def open(self) -> None:
        """Bind local resources. Failure here is fatal to the engine."""
        raise NotImplementedError

    @abstractmethod
    def connect(self, peer: "Peer") -> Handle:
        raise NotImplementedError

    @abstractmethod
    def send(self, handle: Handle, frame: bytes) -> None:
        """Send one encoded frame over a handle returned by connect()."""
        raise NotImplementedError

    @abstractmethod
    def poll_receive(self) -> Optional[Packet]:
        """Return one received packet or None. Never blocks."""
        raise NotImplementedError

    @abstractmethod
    def close(self, handle: Handle) -> None:
        raise NotImplementedError

    @abstractmethod
    def shutdown(self) -> None:
        """Release listener resources. Called once, after all handles are closed."""
        raise NotImplementedError
