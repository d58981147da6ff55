"""Engine settings: the configuration surface handed over by the host launcher.

Settings come from a dict or a JSON file; ``validate`` enforces the limits
the engine relies on (node count, port range, heartbeat cadence shorter
than the timeout).
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .codecs import Codecs
from .errors import ConfigError
from .message import MAX_NODES
from .transports import LABELS

DEFAULT_PORT = 50051
MAX_PAYLOAD_BYTES = 512
MIN_PORT = 0  # 0 = let the OS pick
MAX_PORT = 65535
SCHEDULING_MODES = ("threaded", "cooperative")


def validate_port(port: Any, what: str = "port") -> int:
    if isinstance(port, bool) or not isinstance(port, int):
        raise ConfigError(f"{what} must be an integer, got {type(port).__name__}")
    if port < MIN_PORT or port > MAX_PORT:
        raise ConfigError(f"{what} must be between {MIN_PORT} and {MAX_PORT}, got {port}")
    return port


def validate_node_id(node_id: Any, what: str = "node_id") -> int:
    if isinstance(node_id, bool) or not isinstance(node_id, int):
        raise ConfigError(f"{what} must be an integer, got {type(node_id).__name__}")
    if node_id < 0 or node_id >= MAX_NODES:
        raise ConfigError(f"{what} must be between 0 and {MAX_NODES - 1}, got {node_id}")
    return node_id


@dataclass(slots=True)
class PeerSettings:
    """One entry of the static peer list."""

    address: str
    port: int = DEFAULT_PORT
    node_id: Optional[int] = None

    @classmethod
    def parse(cls, text: str) -> "PeerSettings":
        """Parse ``host``, ``host:port``, ``[v6]`` or ``[v6]:port``."""
        if text.startswith("["):
            host, sep, rest = text[1:].partition("]")
            if not sep or not host or (rest and not rest.startswith(":")):
                raise ConfigError(f"invalid peer address {text!r}")
            port = rest[1:]
        elif text.count(":") > 1:
            raise ConfigError(f"IPv6 peer address must be bracketed: {text!r}")
        else:
            host, _, port = text.partition(":")
        if not host:
            raise ConfigError(f"invalid peer address {text!r}")
        if not port:
            return cls(address=host)
        try:
            return cls(address=host, port=int(port))
        except ValueError:
            raise ConfigError(f"invalid peer address {text!r}") from None

    @classmethod
    def from_dict(cls, raw: Any) -> "PeerSettings":
        if isinstance(raw, PeerSettings):
            return raw
        if isinstance(raw, str):
            return cls.parse(raw)
        if not isinstance(raw, dict) or "address" not in raw:
            raise ConfigError(f"peer entry needs an address: {raw!r}")
        return cls(
            address=raw["address"],
            port=raw.get("port", DEFAULT_PORT),
            node_id=raw.get("node_id", raw.get("id")),
        )


@dataclass(slots=True)
class EngineSettings:
    """Central engine parameters.

    Time values are in seconds. ``heartbeat_interval`` and
    ``heartbeat_timeout`` default to 5 and 10 so a peer always gets at least
    one heartbeat before it can be demoted.
    """

    node_id: int = 0
    transport: str = "rpc"
    host_address: str = "localhost"
    port: int = DEFAULT_PORT
    peers: List[PeerSettings] = field(default_factory=list)
    redundancy_enabled: bool = True
    scheduling: str = "threaded"
    codec: str = "msgpack"
    queue_capacity: int = 256
    control_capacity: int = 64
    max_payload_bytes: int = MAX_PAYLOAD_BYTES
    tick_interval: float = 0.001
    receive_wait: float = 0.001
    heartbeat_interval: float = 5.0
    heartbeat_timeout: float = 10.0
    rpc_timeout: float = 0.5
    connect_timeout: float = 2.0
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    config_file: Optional[Path] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def cooperative(self) -> bool:
        return self.scheduling == "cooperative"

    @property
    def transport_label(self) -> str:
        return LABELS.get(self.transport.lower(), self.transport.lower())

    def peer_entries(self) -> List[Tuple[int, PeerSettings]]:
        """Peers with resolved node ids.

        Entries without an explicit id take the lowest free id in list
        order, skipping the local node and ids claimed explicitly.
        """
        taken = {self.node_id} | {p.node_id for p in self.peers if p.node_id is not None}
        free = (i for i in range(MAX_NODES) if i not in taken)
        resolved: List[Tuple[int, PeerSettings]] = []
        for peer in self.peers:
            if peer.node_id is not None:
                resolved.append((peer.node_id, peer))
                continue
            try:
                resolved.append((next(free), peer))
            except StopIteration:
                raise ConfigError(f"more than {MAX_NODES - 1} peers configured") from None
        return resolved

    def validate(self) -> None:
        """Check every field.

        Raises:
            ConfigError: if any field is out of bounds.
        """
        validate_node_id(self.node_id)
        validate_port(self.port)
        if self.transport_label not in set(LABELS.values()):
            raise ConfigError(f"unknown transport {self.transport!r}")
        if self.scheduling not in SCHEDULING_MODES:
            raise ConfigError(f"scheduling must be one of {SCHEDULING_MODES}, got {self.scheduling!r}")
        if self.codec not in Codecs.names():
            raise ConfigError(f"unknown codec {self.codec!r}")
        if len(self.peers) > MAX_NODES - 1:
            raise ConfigError(f"at most {MAX_NODES - 1} peers, got {len(self.peers)}")
        seen = set()
        for node_id, peer in self.peer_entries():
            validate_node_id(node_id, "peer node_id")
            validate_port(peer.port, "peer port")
            if not peer.address:
                raise ConfigError("peer address cannot be empty")
            if node_id == self.node_id:
                raise ConfigError(f"peer uses the local node id {node_id}")
            if node_id in seen:
                raise ConfigError(f"duplicate peer node_id {node_id}")
            seen.add(node_id)
        if self.queue_capacity < 1 or self.control_capacity < 1:
            raise ConfigError("queue capacities must be positive")
        if self.max_payload_bytes < 1:
            raise ConfigError("max_payload_bytes must be positive")
        for name in ("tick_interval", "receive_wait", "rpc_timeout", "connect_timeout"):
            if getattr(self, name) < 0:
                raise ConfigError(f"{name} cannot be negative")
        if self.heartbeat_interval <= 0:
            raise ConfigError("heartbeat_interval must be positive")
        if self.heartbeat_interval >= self.heartbeat_timeout:
            raise ConfigError(
                f"heartbeat_interval ({self.heartbeat_interval}) must be shorter than "
                f"heartbeat_timeout ({self.heartbeat_timeout})"
            )

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], *, config_file: Optional[Path] = None) -> "EngineSettings":
        known_fields = {f.name for f in fields(cls)} - {"config_file", "extra"}
        init_kwargs: Dict[str, Any] = {
            key: value for key, value in raw.items() if key in known_fields
        }
        # the host launcher names this list peer_list
        if "peer_list" in raw and "peers" not in init_kwargs:
            init_kwargs["peers"] = raw["peer_list"]
        init_kwargs["peers"] = [PeerSettings.from_dict(p) for p in init_kwargs.get("peers", [])]
        if init_kwargs.get("log_file"):
            init_kwargs["log_file"] = Path(init_kwargs["log_file"])
        extra = {key: value for key, value in raw.items()
                 if key not in known_fields and key != "peer_list"}
        settings = cls(**init_kwargs, config_file=config_file)
        settings.extra.update(extra)
        settings.validate()
        return settings

    @classmethod
    def from_file(cls, path: Path) -> "EngineSettings":
        """Load settings from a JSON file."""
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as fp:
                raw_data = json.load(fp)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"cannot read settings from {path}: {exc}") from exc
        if not isinstance(raw_data, dict):
            raise ConfigError(f"{path} must contain a JSON object")
        return cls.from_dict(raw_data, config_file=path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "transport": self.transport_label,
            "host_address": self.host_address,
            "port": self.port,
            "peers": [
                {"node_id": node_id, "address": p.address, "port": p.port}
                for node_id, p in self.peer_entries()
            ],
            "redundancy_enabled": self.redundancy_enabled,
            "scheduling": self.scheduling,
            "codec": self.codec,
            "queue_capacity": self.queue_capacity,
            "max_payload_bytes": self.max_payload_bytes,
            "heartbeat_interval": self.heartbeat_interval,
            "heartbeat_timeout": self.heartbeat_timeout,
            "log_level": self.log_level,
            "log_file": str(self.log_file) if self.log_file else None,
            "extra": self.extra,
        }
