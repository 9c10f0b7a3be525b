"""content.providers.base

Collaborator interfaces.

The engine resolves a week, then hands the result to:
- a StateStore (persistence: save the resolved week, load the latest state)
- a Narrator (presentation text for the week; never feeds back into state)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from core.state import GameState, WeekSummary


@dataclass(frozen=True)
class ProviderStatus:
    ok: bool
    backend: str
    note: str = ""
    error: str = ""


class StateStore(Protocol):
    def status(self) -> ProviderStatus: ...

    def save_week(self, game_id: str, state: GameState, summary: WeekSummary) -> None:
        """Persist the post-week state and its summary (one atomic write)."""
        ...

    def load_state(self, game_id: str) -> Optional[GameState]:
        """Latest persisted state, or None for an unknown game."""
        ...


class Narrator(Protocol):
    def status(self) -> ProviderStatus: ...

    def render_week(self, state: GameState, summary: WeekSummary) -> str: ...
