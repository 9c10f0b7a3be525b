"""
core.selfcheck
Minimal "it runs" proof: 12 scripted weeks with the bundled data.

Run:
  python -m core.selfcheck
"""

from __future__ import annotations

from engine.sim_runner import run_headless_sim

from .state import RECORDING_STAGES, TOUR_STAGES


def run_12_weeks_smoke() -> None:
    out = run_headless_sim(12, seed=42)
    state = out["final"]
    summaries = out["summaries"]

    money = int(out["initial"].money)
    for s in summaries:
        # closure: money moves exactly by revenue - expenses
        assert s.starting_money == money
        assert s.ending_money == money + s.revenue - s.expenses
        assert s.expense_breakdown.total == s.expenses
        assert s.revenue_breakdown.total == s.revenue
        money = s.ending_money

    assert state.week == 13
    assert state.money == money
    assert 0 <= state.reputation <= 100
    for a in state.artists:
        assert 0 <= a.mood <= 100 and 0 <= a.loyalty <= 100 and 0 <= a.popularity <= 100
    for p in state.projects:
        assert p.stage in (TOUR_STAGES if p.type == "tour" else RECORDING_STAGES)
    for song in state.songs:
        assert 25 <= song.quality <= 98

    print("OK: 12-week core smoke test passed.")
    print(f"Final week={state.week} money={state.money} reputation={state.reputation}")
    print(f"Songs={len(state.songs)} releases={len(state.releases)} projects={len(state.projects)}")
    print(out["narratives"][-1])


if __name__ == "__main__":
    run_12_weeks_smoke()
