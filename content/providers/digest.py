"""content.providers.digest

Plain-text week digest narrator (no network, deterministic).
"""

from __future__ import annotations

from typing import List

from core.state import GameState, WeekSummary

from .base import ProviderStatus


def _money(x: int) -> str:
    sign = "-" if int(x) < 0 else ""
    return f"{sign}${abs(int(x)):,}"


class DigestNarrator:
    def __init__(self, *, max_changes: int = 12) -> None:
        self.max_changes = int(max_changes)

    def status(self) -> ProviderStatus:
        return ProviderStatus(ok=True, backend="digest")

    def render_week(self, state: GameState, summary: WeekSummary) -> str:
        lines: List[str] = [f"Week {summary.week} report"]
        lines.append(
            f"Revenue {_money(summary.revenue)} | Expenses {_money(summary.expenses)} | "
            f"Cash {_money(summary.starting_money)} -> {_money(summary.ending_money)}"
        )
        if summary.bankrupt:
            lines.append("WARNING: cash is below the bankruptcy line.")

        charted = [u for u in summary.chart_updates if u.position is not None]
        for u in sorted(charted, key=lambda x: int(x.position or 0)):
            tag = "NEW" if u.is_debut else f"{u.movement:+d}"
            lines.append(f"  #{u.position} {u.title} ({tag})")

        for c in summary.changes[: self.max_changes]:
            lines.append(f"- {c.description}")
        hidden = len(summary.changes) - self.max_changes
        if hidden > 0:
            lines.append(f"  ... and {hidden} more")

        for d in summary.diagnostics:
            lines.append(f"! {d.code}: {d.message}")

        lines.append(f"Reputation {state.reputation} | Next up: week {state.week}")
        return "\n".join(lines)
