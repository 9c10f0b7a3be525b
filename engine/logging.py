"""engine.logging

Logger setup and run-log export.

A run export is JSON-serializable so a whole session (seed, config,
initial state, week summaries) can be stored and replayed later.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Union

from core.state import GameState, WeekSummary

EXPORT_VERSION = 2
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# loggers owned by this project
LOGGER_NAMES = ("engine", "content", "core")


def configure_logging(level: Union[int, str] = "INFO") -> None:
    """Attach one stream handler to the project loggers (idempotent)."""
    lvl = logging.getLevelName(str(level).upper()) if isinstance(level, str) else int(level)
    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(lvl)
        if not any(getattr(h, "_labelsim", False) for h in logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handler._labelsim = True  # type: ignore[attr-defined]
            logger.addHandler(handler)
        logger.propagate = False


def make_run_export(
    *,
    seed: int,
    config: Dict[str, Any],
    initial_state: GameState,
    summaries: List[WeekSummary],
) -> Dict[str, Any]:
    return {
        "version": EXPORT_VERSION,
        "seed": int(seed),
        "config": dict(config),
        "initial_state": asdict(initial_state),
        "weeks": [s.to_dict() for s in summaries],
    }


def dumps_run_export(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=True, default=str)
