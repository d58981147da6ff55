
from __future__ import annotations
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .config import EngineSettings
from .engine import Engine
from .liveness import TransitionListener
from .logging_setup import setup_logging
from .transport import Transport

def build_transport(settings: EngineSettings, **transport_kwargs) -> Transport:
    """Instantiate the backend named by ``settings.transport``."""
    label = settings.transport_label
    host, port = settings.host_address, settings.port
    if label == "rpc":
        from .transports.rpc import RpcTransport
        return RpcTransport(host, port, timeout=settings.rpc_timeout, **transport_kwargs)
    if label == "datagram":
        from .transports.datagram import DatagramTransport
        return DatagramTransport(host, port, **transport_kwargs)
    if label == "stream":
        from .transports.stream import StreamTransport
        return StreamTransport(host, port, connect_timeout=settings.connect_timeout, **transport_kwargs)
    if label == "memory":
        from .transports.memory import MemoryNetwork, MemoryTransport
        network = transport_kwargs.pop("network", None) or MemoryNetwork()
        return MemoryTransport(network, host, port, **transport_kwargs)
    raise ValueError(f"Unknown transport label: {settings.transport}")

def Nodelink(settings: Union[EngineSettings, Dict[str, Any], str, Path, None] = None,
             *,
             transport: Optional[Transport] = None,
             clock: Optional[Callable[[], float]] = None,
             on_transition: Optional[TransitionListener] = None,
             auto_start: bool = True,
             configure_logging: bool = False,
             **transport_kwargs) -> Engine:
    """
    One-liner factory:
      Nodelink({"node_id": 0, "transport": "datagram", "port": 5029, "peer_list": ["10.0.0.2:5029"]})
      Nodelink("netgame.json")
      Nodelink(settings, transport=my_transport_instance)

    - settings: EngineSettings | dict | path to a JSON file | None (defaults)
    - transport: Transport instance; otherwise built from settings.transport
    - clock: monotonic time source for liveness (tests pass a fake)
    - auto_start: start scheduling immediately (threads when threaded)
    - configure_logging: apply settings.log_level / log_file via setup_logging
    - **transport_kwargs: passed to the transport constructor
    """
    if settings is None:
        settings = EngineSettings()
    elif isinstance(settings, dict):
        settings = EngineSettings.from_dict(settings)
    elif isinstance(settings, (str, Path)):
        settings = EngineSettings.from_file(Path(settings))
    settings.validate()

    if configure_logging:
        setup_logging(settings.log_level, settings.log_file)

    t = transport if transport is not None else build_transport(settings, **transport_kwargs)

    kwargs: Dict[str, Any] = {"on_transition": on_transition}
    if clock is not None:
        kwargs["clock"] = clock
    engine = Engine(settings, t, **kwargs)

    if auto_start:
        engine.start()
    return engine
