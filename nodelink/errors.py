"""
Error taxonomy for nodelink.

The engine raises these internally; the driver facade turns them into
``SendStatus`` values so the host never sees an exception.
"""


class NodelinkError(Exception):
    """Base exception for all nodelink errors."""
    pass


class QueueFull(NodelinkError):
    """A frame queue is at capacity; the new frame was rejected."""
    pass


class NoRoute(NodelinkError):
    """Neither the addressed peer nor any fallback peer is active."""
    pass


class TransportError(NodelinkError):
    """Connect, send, receive or bind failure inside a transport backend."""
    pass


class DecodeError(NodelinkError):
    """An inbound frame could not be decoded."""
    pass


class EngineClosed(NodelinkError):
    """The engine has been shut down and accepts no new work."""
    pass


class ConfigError(NodelinkError, ValueError):
    """Invalid engine settings."""
    pass
