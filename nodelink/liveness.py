"""Heartbeat-based failure detection for the peer table."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

from .builder import FrameBuilder, parse_endpoint
from .errors import QueueFull
from .events import PEER_DISCOVERED, log_event, log_transition
from .frame_queue import FrameQueue
from .message import Frame
from .peers import PeerState, PeerTable, PeerTransition

logger = logging.getLogger(__name__)

TransitionListener = Callable[[PeerTransition], None]


class LivenessMonitor:
    """Sends heartbeats and moves peers between ACTIVE and INACTIVE.

    This is the only writer of peer state. Heartbeats go onto the control
    queue, which the delivery loop flushes straight to the named peer, so
    they never mix with host data. A peer whose last heartbeat response is
    ``timeout`` or more in the past is demoted; a response from an inactive
    peer reactivates it.

    With ``enabled=False`` nothing is sent or demoted, but responses and
    first contacts are still recorded.
    """

    def __init__(
        self,
        table: PeerTable,
        control: FrameQueue,
        builder: FrameBuilder,
        endpoint: Callable[[], Tuple[str, int]],
        *,
        interval: float = 5.0,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        enabled: bool = True,
    ) -> None:
        self.table = table
        self.control = control
        self.builder = builder
        self.interval = interval
        self.timeout = timeout
        self.clock = clock
        self.enabled = enabled
        self._endpoint = endpoint
        # check() and acknowledge() run on different threads when threaded
        self._build_lock = threading.Lock()
        self._last_check: Optional[float] = None
        self._listeners: List[TransitionListener] = []
        self.control_queued = 0

    def add_listener(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    def start_window(self, now: Optional[float] = None) -> None:
        """Start every peer's timeout window at ``now``."""
        self.table.reset_heartbeats(self.clock() if now is None else now)
        self._last_check = None

    # ---- periodic work ----
    def check(self, now: Optional[float] = None) -> List[PeerTransition]:
        """Demote timed-out peers, then queue a heartbeat to every peer."""
        if not self.enabled:
            return []
        now = self.clock() if now is None else now
        self._last_check = now
        transitions = self.table.demote_expired(now, self.timeout)
        for transition in transitions:
            self._emit(transition)
        endpoint = self._endpoint()
        for peer in self.table.all():
            with self._build_lock:
                frame = self.builder.heartbeat(endpoint).to(peer.peer_id).build()
            self._queue_control(frame)
        return transitions

    def poll(self, now: Optional[float] = None) -> List[PeerTransition]:
        """Cooperative variant of the timer: check only once ``interval`` has elapsed."""
        if not self.enabled:
            return []
        now = self.clock() if now is None else now
        if self._last_check is not None and now - self._last_check < self.interval:
            return []
        return self.check(now)

    def run(self, stop: threading.Event) -> None:
        """Threaded loop: check, then sleep ``interval`` until ``stop`` is set."""
        while not stop.is_set():
            try:
                self.check()
            except Exception:
                logger.exception("liveness check failed")
            stop.wait(self.interval)

    # ---- inbound control frames ----
    def record_response(self, peer_id: int, now: Optional[float] = None) -> Optional[PeerTransition]:
        now = self.clock() if now is None else now
        if not self.table.touch(peer_id, now):
            logger.debug("heartbeat ack from unknown node %s ignored", peer_id)
            return None
        transition = self.table.set_state(peer_id, PeerState.ACTIVE, now)
        if transition is not None:
            self._emit(transition)
        return transition

    def acknowledge(self, heartbeat: Frame, source: Optional[Tuple[str, int]] = None) -> None:
        """Answer a peer's heartbeat, registering the peer if it is new."""
        endpoint = parse_endpoint(heartbeat.payload) or source
        if endpoint is not None:
            self.observe_contact(heartbeat.sender_id, endpoint)
        if heartbeat.sender_id not in self.table:
            logger.debug("heartbeat from unregistered node %s not answered", heartbeat.sender_id)
            return
        with self._build_lock:
            ack = self.builder.heartbeat_ack().to(heartbeat.sender_id).build()
        self._queue_control(ack)

    def observe_contact(self, peer_id: int, endpoint: Tuple[str, int]) -> bool:
        host, port = endpoint
        added = self.table.observe(peer_id, host, port, self.clock())
        if added:
            log_event(logger, PEER_DISCOVERED, peer_id=peer_id, address=host, port=port)
        return added

    # ---- helpers ----
    def _queue_control(self, frame: Frame) -> None:
        try:
            self.control.push(frame)
        except QueueFull:
            logger.debug("control queue full, skipping %s to node %s", frame.kind, frame.recipient_id)
            return
        self.control_queued += 1

    def _emit(self, transition: PeerTransition) -> None:
        log_transition(logger, transition)
        for listener in self._listeners:
            try:
                listener(transition)
            except Exception:
                logger.exception("peer transition listener failed")
