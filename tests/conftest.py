from __future__ import annotations

from dataclasses import replace
from typing import Dict, List

import pytest

from content.parsing import load_balance, load_competitors, load_meetings
from core.actions import Meeting
from core.balance import BalanceConfig
from core.charts import Competitor
from engine.pipeline import TurnEngine, new_game


@pytest.fixture(scope="session")
def balance() -> BalanceConfig:
    return load_balance()


@pytest.fixture(scope="session")
def catalog() -> List[Competitor]:
    return load_competitors()


@pytest.fixture(scope="session")
def meetings() -> Dict[str, Meeting]:
    return load_meetings()


@pytest.fixture()
def synthetic_catalog() -> List[Competitor]:
    """150 competitors, 200k streams down to 51k in 1k steps."""
    return [
        Competitor(id=f"c{i:03d}", title=f"Song {i}", artist=f"Act {i}", base_streams=200_000 - i * 1000)
        for i in range(150)
    ]


@pytest.fixture()
def flat_chart_spec(balance: BalanceConfig):
    return replace(balance.chart, competitor_variance_min=1.0, competitor_variance_max=1.0)


@pytest.fixture()
def start_state(balance: BalanceConfig):
    return new_game(7, balance, game_id="test-game")


@pytest.fixture()
def engine(balance, catalog, meetings) -> TurnEngine:
    return TurnEngine(balance=balance, catalog=catalog, meetings=meetings)
