"""The tick that moves frames between the queues and the transport."""
from __future__ import annotations

import logging
from typing import Dict, Optional

from .codecs import Codec
from .errors import DecodeError, NoRoute, QueueFull, TransportError
from .events import log_reroute
from .frame_queue import FrameQueue
from .liveness import LivenessMonitor
from .message import Frame, FrameKind
from .peers import Peer, PeerTable
from .transport import Packet, Transport
from .wire import pack_frame, unpack_frame

logger = logging.getLogger(__name__)


class DeliveryLoop:
    """One delivery step, shared by the threaded and the cooperative engine.

    Per tick:
      0. flush queued heartbeats/acks directly to their peers
      1. take at most one outbound frame, resolve (and maybe reroute) its
         destination, send it
      2. move data waiting in the backlog to the inbound queue, then poll the
         transport once and dispatch what arrived

    Control frames are handled as they arrive even while the host is behind.
    Data that finds the inbound queue full waits in a bounded backlog and is
    moved over, in arrival order, as the host drains the inbound queue; data
    arriving with the backlog full too is dropped and counted.

    Transport and decode failures are logged and counted; nothing raised
    by the transport escapes ``tick``.
    """

    def __init__(
        self,
        transport: Transport,
        codec: Codec,
        table: PeerTable,
        monitor: LivenessMonitor,
        outbound: FrameQueue,
        inbound: FrameQueue,
        control: FrameQueue,
        *,
        reroute: bool = True,
        backlog_capacity: Optional[int] = None,
    ) -> None:
        self.transport = transport
        self.codec = codec
        self.table = table
        self.monitor = monitor
        self.outbound = outbound
        self.inbound = inbound
        self.control = control
        self.reroute = reroute
        self.backlog = FrameQueue(backlog_capacity or inbound.capacity, blocking=False, name="backlog")
        self.counters: Dict[str, int] = {
            "sent": 0,
            "rerouted": 0,
            "send_failures": 0,
            "no_route": 0,
            "received": 0,
            "decode_errors": 0,
            "inbound_dropped": 0,
            "control_sent": 0,
        }

    def tick(self, wait: float = 0.0) -> bool:
        """Run one step. ``wait`` bounds how long to wait for outbound work.

        Returns True if anything was sent or received.
        """
        busy = self._flush_control()

        frame = self.outbound.pop(wait)
        if frame is not None:
            self._dispatch(frame)
            busy = True

        self._drain_backlog()
        packet = self._poll()
        if packet is not None:
            self._handle_packet(packet)
            busy = True
        return busy

    # ---- outbound ----
    def _flush_control(self) -> bool:
        busy = False
        for _ in range(self.control.capacity):
            frame = self.control.try_pop()
            if frame is None:
                break
            busy = True
            peer = self.table.get(frame.recipient_id)
            if peer is None:
                continue
            if self._transmit(peer, frame):
                self.counters["control_sent"] += 1
        return busy

    def _dispatch(self, frame: Frame) -> None:
        try:
            peer = self.table.resolve(frame.recipient_id, reroute=self.reroute)
        except NoRoute as exc:
            self.counters["no_route"] += 1
            logger.warning("dropping frame for node %s: %s", frame.recipient_id, exc)
            return
        if peer.peer_id != frame.recipient_id:
            self.counters["rerouted"] += 1
            log_reroute(logger, frame.recipient_id, peer.peer_id)
        if self._transmit(peer, frame):
            self.counters["sent"] += 1

    def _transmit(self, peer: Peer, frame: Frame) -> bool:
        data = pack_frame(frame, self.codec)
        try:
            handle = peer.transport_handle
            if handle is None:
                handle = self.transport.connect(peer)
                self.table.bind_handle(peer.peer_id, handle)
            self.transport.send(handle, data)
        except TransportError as exc:
            self.counters["send_failures"] += 1
            logger.warning("%s to node %s failed: %s", frame.kind, peer.peer_id, exc)
            self._drop_handle(peer)
            return False
        return True

    def _drop_handle(self, peer: Peer) -> None:
        handle = self.table.release_handle(peer.peer_id)
        if handle is None:
            return
        try:
            self.transport.close(handle)
        except TransportError as exc:
            logger.debug("closing handle for node %s: %s", peer.peer_id, exc)

    # ---- inbound ----
    def _poll(self) -> Optional[Packet]:
        try:
            return self.transport.poll_receive()
        except TransportError as exc:
            logger.warning("receive failed: %s", exc)
            return None

    def _handle_packet(self, packet: Packet) -> None:
        try:
            frame = unpack_frame(packet.payload, self.codec)
        except DecodeError as exc:
            self.counters["decode_errors"] += 1
            logger.warning("discarding malformed frame from %s: %s", packet.source, exc)
            return

        if frame.kind is FrameKind.HEARTBEAT:
            self.monitor.acknowledge(frame, packet.source)
            return
        if frame.kind is FrameKind.HEARTBEAT_ACK:
            self.monitor.record_response(frame.sender_id)
            return

        if packet.source is not None and frame.sender_id not in self.table:
            self.monitor.observe_contact(frame.sender_id, packet.source)
        self._accept(frame)

    def _accept(self, frame: Frame) -> None:
        if len(self.backlog) == 0 and not self.inbound.full():
            self.inbound.push(frame)
            self.counters["received"] += 1
            return
        try:
            self.backlog.push(frame)
        except QueueFull:
            self.counters["inbound_dropped"] += 1
            logger.warning("host is behind, dropped frame from node %s", frame.sender_id)

    def _drain_backlog(self) -> None:
        while not self.inbound.full():
            frame = self.backlog.try_pop()
            if frame is None:
                return
            self.inbound.push(frame)
            self.counters["received"] += 1
