"""content.parsing

Loading of the JSON data files (balance tables, competitor catalog,
meeting catalog).

Any I/O or decode problem surfaces as ConfigurationError, never as a
partially-loaded table.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from core.actions import Meeting
from core.balance import BalanceConfig
from core.charts import Competitor
from core.errors import ConfigurationError

from .schemas import balance_from_mapping, competitors_from_list, meetings_from_mapping

_LOGGER = logging.getLogger("content.parsing")

PathLike = Union[str, Path]

BALANCE_FILE = "balance.json"
COMPETITORS_FILE = "competitors.json"
MEETINGS_FILE = "meetings.json"


def default_data_dir() -> Path:
    """Directory of the bundled data files."""
    return Path(__file__).resolve().parent / "data"


def _resolve(path: Optional[PathLike], default_name: str) -> Path:
    if path is None:
        return default_data_dir() / default_name
    p = Path(path)
    return p / default_name if p.is_dir() else p


def read_json(path: PathLike) -> Any:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"cannot read {p}: {e}") from e
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{p}: invalid JSON at line {e.lineno} col {e.colno}: {e.msg}") from e


def load_balance(path: Optional[PathLike] = None) -> BalanceConfig:
    p = _resolve(path, BALANCE_FILE)
    cfg = balance_from_mapping(read_json(p))
    _LOGGER.debug("Loaded balance tables v%s from %s", cfg.version, p)
    return cfg


def load_competitors(path: Optional[PathLike] = None) -> List[Competitor]:
    p = _resolve(path, COMPETITORS_FILE)
    catalog = competitors_from_list(read_json(p))
    _LOGGER.debug("Loaded %d competitors from %s", len(catalog), p)
    return catalog


def load_meetings(path: Optional[PathLike] = None) -> Dict[str, Meeting]:
    p = _resolve(path, MEETINGS_FILE)
    meetings = meetings_from_mapping(read_json(p))
    _LOGGER.debug("Loaded %d meetings from %s", len(meetings), p)
    return meetings
