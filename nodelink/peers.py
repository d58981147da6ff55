from __future__ import annotations
from dataclasses import dataclass, field
from enum import StrEnum
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple

from .errors import NoRoute
from .message import MAX_NODES

class PeerState(StrEnum):
    ACTIVE   = "ACTIVE"
    INACTIVE = "INACTIVE"

@dataclass(slots=True)
class Peer:
    peer_id: int
    address: str
    port: int
    state: PeerState = PeerState.ACTIVE
    last_heartbeat: float = 0.0
    transport_handle: Any = None

    @property
    def active(self) -> bool:
        return self.state is PeerState.ACTIVE

    @property
    def endpoint(self) -> Tuple[str, int]:
        return (self.address, self.port)

@dataclass(frozen=True)
class PeerTransition:
    peer_id: int
    old: PeerState
    new: PeerState
    timestamp: float

@dataclass
class PeerTable:
    """
    Known peers in configuration order. One entry per id; inactive peers stay
    in the table for recovery but are skipped by resolve().
    """
    local_id: int
    max_peers: int = MAX_NODES - 1
    _peers: Dict[int, Peer] = field(default_factory=dict)
    _lock: RLock = field(default_factory=RLock, repr=False)

    def add(self, peer: Peer) -> None:
        with self._lock:
            if peer.peer_id == self.local_id:
                raise ValueError(f"peer id {peer.peer_id} is the local node id")
            if peer.peer_id in self._peers:
                raise ValueError(f"duplicate peer id {peer.peer_id}")
            self._peers[peer.peer_id] = peer

    def observe(self, peer_id: int, address: str, port: int, now: float) -> bool:
        """Register a peer seen for the first time. Returns True if it was new."""
        with self._lock:
            if peer_id == self.local_id or peer_id in self._peers:
                return False
            if not 0 <= peer_id < MAX_NODES or len(self._peers) >= self.max_peers:
                return False
            self._peers[peer_id] = Peer(peer_id, address, port, last_heartbeat=now)
            return True

    def get(self, peer_id: int) -> Optional[Peer]:
        with self._lock:
            return self._peers.get(peer_id)

    def all(self) -> List[Peer]:
        with self._lock:
            return list(self._peers.values())

    def active_ids(self) -> List[int]:
        with self._lock:
            return [p.peer_id for p in self._peers.values() if p.active]

    def __contains__(self, peer_id: int) -> bool:
        with self._lock:
            return peer_id in self._peers

    def __len__(self) -> int:
        with self._lock:
            return len(self._peers)

    # ---- routing ----
    def resolve(self, recipient_id: int, *, reroute: bool = True) -> Peer:
        """
        Addressed peer if active, else the next ACTIVE peer after it in table
        order (wrapping). Raises NoRoute when nothing is reachable.
        """
        with self._lock:
            peer = self._peers.get(recipient_id)
            if peer is None:
                raise NoRoute(f"unknown node {recipient_id}")
            if peer.active or not reroute:
                return peer
            order = list(self._peers)
            start = order.index(recipient_id)
            for offset in range(1, len(order)):
                candidate = self._peers[order[(start + offset) % len(order)]]
                if candidate.active:
                    return candidate
            raise NoRoute(f"node {recipient_id} inactive and no active fallback")

    def has_route(self, recipient_id: int, *, reroute: bool = True) -> bool:
        try:
            self.resolve(recipient_id, reroute=reroute)
        except NoRoute:
            return False
        return True

    # ---- liveness ----
    def set_state(self, peer_id: int, state: PeerState, now: float) -> Optional[PeerTransition]:
        with self._lock:
            peer = self._peers.get(peer_id)
            if peer is None or peer.state is state:
                return None
            old, peer.state = peer.state, state
            return PeerTransition(peer_id, old, state, now)

    def touch(self, peer_id: int, now: float) -> bool:
        with self._lock:
            peer = self._peers.get(peer_id)
            if peer is None:
                return False
            peer.last_heartbeat = now
            return True

    def reset_heartbeats(self, now: float) -> None:
        with self._lock:
            for peer in self._peers.values():
                peer.last_heartbeat = now

    def expired(self, now: float, timeout: float) -> List[int]:
        with self._lock:
            return [p.peer_id for p in self._peers.values()
                    if p.active and now - p.last_heartbeat >= timeout]

    def demote_expired(self, now: float, timeout: float) -> List[PeerTransition]:
        """Mark every active peer silent for ``timeout`` or longer INACTIVE.

        Expiry is evaluated and applied under one lock hold, so a response
        recorded concurrently either lands before (and saves the peer) or
        after (and reactivates it).
        """
        with self._lock:
            return [self.set_state(peer_id, PeerState.INACTIVE, now)
                    for peer_id in self.expired(now, timeout)]

    # ---- transport handles ----
    def bind_handle(self, peer_id: int, handle: Any) -> None:
        with self._lock:
            peer = self._peers.get(peer_id)
            if peer is not None:
                peer.transport_handle = handle

    def release_handle(self, peer_id: int) -> Any:
        with self._lock:
            peer = self._peers.get(peer_id)
            if peer is None:
                return None
            handle, peer.transport_handle = peer.transport_handle, None
            return handle

    def release_handles(self) -> List[Any]:
        with self._lock:
            handles = []
            for peer in self._peers.values():
                if peer.transport_handle is not None:
                    handles.append(peer.transport_handle)
                    peer.transport_handle = None
            return handles

    def stats(self) -> Dict[str, int]:
        with self._lock:
            total = len(self._peers)
            active = sum(1 for p in self._peers.values() if p.active)
        return {"total": total, "active": active, "inactive": total - active}
