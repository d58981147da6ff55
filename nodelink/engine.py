"""
Engine: owns the queues, the peer table, the liveness monitor, the
delivery loop and the transport for one node.

Two scheduling models share the same ``DeliveryLoop.tick``:
- threaded: ``start()`` runs delivery and liveness on their own threads
- cooperative: no threads; the host calls ``tick()`` from its own scheduler
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from .builder import FrameBuilder
from .codecs import Codecs
from .config import EngineSettings
from .delivery import DeliveryLoop
from .errors import EngineClosed, NoRoute, TransportError
from .frame_queue import FrameQueue
from .liveness import LivenessMonitor, TransitionListener
from .message import Frame
from .peers import Peer, PeerTable
from .transport import Transport

logger = logging.getLogger(__name__)


class Engine:
    def __init__(
        self,
        settings: EngineSettings,
        transport: Transport,
        *,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        on_transition: Optional[TransitionListener] = None,
    ) -> None:
        settings.validate()
        self.settings = settings
        self.transport = transport
        self.clock = clock
        self.node_id = settings.node_id
        blocking = not settings.cooperative

        self.outbound = FrameQueue(settings.queue_capacity, blocking=blocking, name="outbound")
        self.inbound = FrameQueue(settings.queue_capacity, blocking=blocking, name="inbound")
        self.control = FrameQueue(settings.control_capacity, blocking=False, name="control")

        self.peers = PeerTable(local_id=settings.node_id)
        for node_id, entry in settings.peer_entries():
            self.peers.add(Peer(node_id, entry.address, entry.port))

        self.codec = Codecs.get(settings.codec)
        self.builder = FrameBuilder(settings.node_id, clock=wall_clock)
        self.monitor = LivenessMonitor(
            self.peers,
            self.control,
            FrameBuilder(settings.node_id, clock=wall_clock),
            self._advertised_endpoint,
            interval=settings.heartbeat_interval,
            timeout=settings.heartbeat_timeout,
            clock=clock,
            enabled=settings.redundancy_enabled,
        )
        if on_transition is not None:
            self.monitor.add_listener(on_transition)
        self.loop = DeliveryLoop(
            transport,
            self.codec,
            self.peers,
            self.monitor,
            self.outbound,
            self.inbound,
            self.control,
            reroute=settings.redundancy_enabled,
        )

        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []
        self._lifecycle = threading.Lock()
        self._send_lock = threading.Lock()
        self._started = False
        self._window_open = False
        self._closed = False

        # no degraded start: without a transport the host cannot play
        try:
            transport.open()
        except OSError as exc:
            raise TransportError(f"{transport.name} transport failed to open: {exc}") from exc
        logger.info(
            "node %s ready on %s %s:%s with %d peers (%s)",
            self.node_id, transport.name, *self._advertised_endpoint(),
            len(self.peers), settings.scheduling,
        )

    # ---- lifecycle ----
    @property
    def accepting(self) -> bool:
        return not self._closed and not self._stop.is_set()

    @property
    def running(self) -> bool:
        return self._started and self.accepting

    def start(self) -> "Engine":
        with self._lifecycle:
            if self._closed:
                raise EngineClosed("engine has been shut down")
            if self._started:
                return self
            self._open_window()
            self._started = True
            if self.settings.cooperative:
                return self
            self._spawn("nodelink-delivery", self._delivery_loop)
            if self.settings.redundancy_enabled:
                self._spawn("nodelink-liveness", self.monitor.run, self._stop)
        return self

    def _open_window(self) -> None:
        # peers get a full timeout from the first scheduled step, not from construction
        if not self._window_open:
            self.monitor.start_window(self.clock())
            self._window_open = True

    def _spawn(self, name: str, target, *args) -> None:
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()

    def _delivery_loop(self) -> None:
        wait = self.settings.tick_interval
        while not self._stop.is_set():
            try:
                self.loop.tick(wait)
            except Exception:
                logger.exception("delivery tick failed")
                self._stop.wait(wait)

    def tick(self) -> bool:
        """One cooperative step: throttled liveness check plus one delivery tick."""
        if self._threads:
            raise RuntimeError("tick() is for cooperative engines; this one runs its own threads")
        if not self.accepting:
            return False
        if not self._window_open:
            with self._lifecycle:
                self._open_window()
        self.monitor.poll()
        return self.loop.tick()

    def shutdown(self) -> None:
        """Stop loops, join threads, release every handle and the transport.

        Safe to call more than once; later calls are no-ops.
        """
        with self._lifecycle:
            if self._closed:
                return
            self._stop.set()
            for thread in self._threads:
                if thread is not threading.current_thread():
                    thread.join()
            self._threads.clear()
            for handle in self.peers.release_handles():
                try:
                    self.transport.close(handle)
                except TransportError as exc:
                    logger.debug("closing handle: %s", exc)
            try:
                self.transport.shutdown()
            except TransportError as exc:
                logger.warning("transport shutdown: %s", exc)
            self._closed = True
            logger.info("node %s shut down", self.node_id)

    def __enter__(self) -> "Engine":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    # ---- host-facing ----
    def submit(self, payload: bytes, recipient_id: int) -> Frame:
        """Build a data frame and enqueue it for delivery.

        Raises:
            EngineClosed: shutdown has begun
            NoRoute: neither the recipient nor a fallback peer is active
            QueueFull: the outbound queue is at capacity
        """
        if not self.accepting:
            raise EngineClosed("engine is shutting down")
        if not self.peers.has_route(recipient_id, reroute=self.settings.redundancy_enabled):
            raise NoRoute(f"no active route to node {recipient_id}")
        with self._send_lock:
            frame = self.builder.data(payload).to(recipient_id).build()
        self.outbound.push(frame)
        return frame

    def next_frame(self, wait: Optional[float] = None) -> Optional[Frame]:
        if self._closed:
            return None
        return self.inbound.pop(self.settings.receive_wait if wait is None else wait)

    # ---- observability ----
    def _advertised_endpoint(self):
        host, port = self.transport.local_endpoint
        if host in ("", "0.0.0.0"):
            host = self.settings.host_address
        return (host, port)

    def stats(self) -> Dict[str, int]:
        stats = dict(self.loop.counters)
        stats.update({f"peers_{k}": v for k, v in self.peers.stats().items()})
        stats["outbound_queued"] = len(self.outbound)
        stats["inbound_queued"] = len(self.inbound)
        stats["inbound_backlog"] = len(self.loop.backlog)
        stats["control_queued"] = self.monitor.control_queued
        return stats
