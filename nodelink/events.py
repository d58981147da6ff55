"""Structured log lines for peer and routing events.

Each event is one JSON object on one line, so a node's log can be grepped
or loaded line by line when reconstructing what happened to a session.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any

from .peers import PeerState, PeerTransition

PEER_DEMOTED = "peer_demoted"
PEER_REACTIVATED = "peer_reactivated"
PEER_DISCOVERED = "peer_discovered"
FRAME_REROUTED = "frame_rerouted"


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Log ``event`` with ``fields`` as a single JSON line."""
    if not logger.isEnabledFor(level):
        return
    record = dict(fields, event=event, ts_ms=int(time.time() * 1000))
    logger.log(level, json.dumps(record, sort_keys=True, separators=(",", ":"), default=str))


def log_transition(logger: logging.Logger, transition: PeerTransition, **fields: Any) -> None:
    """Demotions log at WARNING, reactivations at INFO."""
    demoted = transition.new is PeerState.INACTIVE
    log_event(
        logger,
        PEER_DEMOTED if demoted else PEER_REACTIVATED,
        level=logging.WARNING if demoted else logging.INFO,
        peer_id=transition.peer_id,
        old=str(transition.old),
        new=str(transition.new),
        at=transition.timestamp,
        **fields,
    )


def log_reroute(logger: logging.Logger, addressed: int, via: int, **fields: Any) -> None:
    log_event(logger, FRAME_REROUTED, addressed=addressed, via=via, **fields)
