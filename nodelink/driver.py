from __future__ import annotations
import logging
from typing import Optional, Tuple, Union

from .engine import Engine
from .errors import EngineClosed, NoRoute, QueueFull
from .message import SendStatus

logger = logging.getLogger(__name__)

INVALID_NODE = -1
CMD_SEND = 1
CMD_GET = 2

class DriverFacade:
    """
    Blocking-looking send/receive for the host. Never raises for delivery
    problems; every outcome of send() is a SendStatus.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def send(self, payload: bytes, recipient_id: int) -> SendStatus:
        if len(payload) > self.engine.settings.max_payload_bytes:
            return SendStatus.TOO_LARGE
        try:
            self.engine.submit(bytes(payload), recipient_id)
        except EngineClosed:
            return SendStatus.CLOSED
        except NoRoute as exc:
            logger.debug("send rejected: %s", exc)
            return SendStatus.NO_ROUTE
        except QueueFull:
            return SendStatus.QUEUE_FULL
        return SendStatus.OK

    def receive(self) -> Optional[Tuple[bytes, int]]:
        """(payload, sender_id), or None if nothing arrived within the short wait."""
        frame = self.engine.next_frame()
        if frame is None:
            return None
        return frame.payload, frame.sender_id

class NetDriver:
    """
    The host's legacy fixed-buffer driver contract on top of DriverFacade:
      send(buffer, length, destination_id)
      receive(buffer) -> (length, source_id), (0, INVALID_NODE) when idle
    """

    def __init__(self, engine: Engine):
        self.facade = DriverFacade(engine)

    def send(self, buffer: Union[bytes, bytearray, memoryview], length: int, destination_id: int) -> SendStatus:
        if length < 0 or length > len(buffer):
            raise ValueError(f"length {length} outside buffer of {len(buffer)} bytes")
        return self.facade.send(bytes(buffer[:length]), destination_id)

    def receive(self, buffer: Union[bytearray, memoryview]) -> Tuple[int, int]:
        got = self.facade.receive()
        if got is None:
            return 0, INVALID_NODE
        payload, source = got
        if len(payload) > len(buffer):
            logger.warning("truncating %d byte packet from node %s to %d", len(payload), source, len(buffer))
            payload = payload[:len(buffer)]
        buffer[:len(payload)] = payload
        return len(payload), source

    def dispatch(self, command: int, buffer: Union[bytearray, memoryview], length: int = 0,
                 node: int = INVALID_NODE) -> Tuple[int, int]:
        """
        Command-code entry point: CMD_SEND sends ``length`` bytes to ``node``
        and echoes (length, node); CMD_GET behaves like receive().
        """
        if command == CMD_SEND:
            status = self.send(buffer, length, node)
            if status is not SendStatus.OK:
                logger.debug("send to node %s: %s", node, status)
            return length, node
        if command == CMD_GET:
            return self.receive(buffer)
        raise ValueError(f"unknown driver command {command}")
