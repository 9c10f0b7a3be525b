"""content.providers.memory

In-process StateStore. Good for tests, the headless runner and the playtest UI.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from core.state import GameState, WeekSummary

from .base import ProviderStatus


class InMemoryStateStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: Dict[str, GameState] = {}
        self._history: Dict[str, List[Tuple[GameState, WeekSummary]]] = {}

    def status(self) -> ProviderStatus:
        return ProviderStatus(ok=True, backend="memory", note=f"{len(self._states)} game(s)")

    def put_state(self, state: GameState) -> None:
        """Seed a game without a summary (new game / import)."""
        with self._lock:
            self._states[state.game_id] = state
            self._history.setdefault(state.game_id, [])

    def save_week(self, game_id: str, state: GameState, summary: WeekSummary) -> None:
        with self._lock:
            self._states[game_id] = state
            self._history.setdefault(game_id, []).append((state, summary))

    def load_state(self, game_id: str) -> Optional[GameState]:
        with self._lock:
            return self._states.get(game_id)

    def summaries(self, game_id: str) -> List[WeekSummary]:
        with self._lock:
            return [s for _, s in self._history.get(game_id, [])]
