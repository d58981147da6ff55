"""Bounded FIFO of frames shared between the driver facade and the delivery loop."""
from __future__ import annotations

import queue
from typing import Optional

from .errors import QueueFull
from .message import Frame


class FrameQueue:
    """FIFO with a hard capacity and reject-new overflow.

    ``blocking=False`` is the cooperative mode: there is no concurrent
    writer, so ``pop`` never waits and behaves like ``try_pop``.
    """

    def __init__(self, capacity: int, *, blocking: bool = True, name: str = "frames") -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.name = name
        self.blocking = blocking
        self._capacity = capacity
        self._q: "queue.Queue[Frame]" = queue.Queue(maxsize=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, frame: Frame) -> None:
        """Append ``frame`` and wake one waiting consumer.

        Raises:
            QueueFull: the queue already holds ``capacity`` frames.
        """
        try:
            self._q.put_nowait(frame)
        except queue.Full:
            raise QueueFull(f"{self.name} queue at capacity ({self._capacity})") from None

    def pop(self, timeout: float = 0.0) -> Optional[Frame]:
        if not self.blocking or timeout <= 0:
            return self.try_pop()
        try:
            return self._q.get(timeout=timeout)
        except queue.Empty:
            return None

    def try_pop(self) -> Optional[Frame]:
        try:
            return self._q.get_nowait()
        except queue.Empty:
            return None

    def full(self) -> bool:
        return self._q.full()

    def clear(self) -> int:
        dropped = 0
        while self.try_pop() is not None:
            dropped += 1
        return dropped

    def __len__(self) -> int:
        return self._q.qsize()
