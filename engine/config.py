"""engine.config

Engine configuration passed from the UI / host process.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from content.parsing import BALANCE_FILE, COMPETITORS_FILE, MEETINGS_FILE, default_data_dir
from core.errors import ConfigurationError

ENV_DATA_DIR = "LABELSIM_DATA_DIR"
ENV_LOG_LEVEL = "LABELSIM_LOG_LEVEL"
ENV_SEED = "LABELSIM_SEED"


@dataclass(frozen=True)
class EngineConfig:
    data_dir: Path
    balance_file: str = BALANCE_FILE
    competitors_file: str = COMPETITORS_FILE
    meetings_file: str = MEETINGS_FILE
    log_level: str = "INFO"
    default_seed: int = 123

    @property
    def balance_path(self) -> Path:
        return self.data_dir / self.balance_file

    @property
    def competitors_path(self) -> Path:
        return self.data_dir / self.competitors_file

    @property
    def meetings_path(self) -> Path:
        return self.data_dir / self.meetings_file

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        env = os.environ if env is None else env

        raw_dir = str(env.get(ENV_DATA_DIR) or "").strip()
        data_dir = Path(raw_dir) if raw_dir else default_data_dir()

        level = str(env.get(ENV_LOG_LEVEL) or "INFO").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ConfigurationError(f"{ENV_LOG_LEVEL}: unknown log level {level!r}")

        raw_seed = str(env.get(ENV_SEED) or "").strip()
        try:
            seed = int(raw_seed) if raw_seed else 123
        except ValueError:
            raise ConfigurationError(f"{ENV_SEED}: expected an integer, got {raw_seed!r}") from None

        return cls(data_dir=data_dir, log_level=level, default_seed=seed)
