"""engine.sim_runner

Headless runner for quick sanity checks and determinism runs.

A tiny scripted player stands in for the UI: it records, releases, signs,
holds meetings and books a small tour, all derived from the visible state
so the same seed always produces the same action stream.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from content.providers.digest import DigestNarrator
from content.providers.memory import InMemoryStateStore
from core.actions import Action, RoleMeeting, ScheduleRelease, SignArtist, StartProject
from core.lifecycle import is_terminal, reserved_song_ids
from core.state import GameState, WeekSummary

from .config import EngineConfig
from .pipeline import TurnEngine

MEETING_ROTATION = [
    ("exec_cmo", "cmo_press_push", "grassroots", None),
    ("exec_ar", "ar_direction_check", "let_them_lead", "art_nova"),
    ("exec_dist", "dist_playlist_pitch", "pitch_curators", None),
    ("exec_cco", "cco_studio_review", "keep_setup", None),
]


@dataclass
class ScriptedPlayer:
    """Deterministic player for tests (no UI)."""

    sign_week: int = 2
    tour_week: int = 6

    def actions_for(self, state: GameState) -> List[Action]:
        week = int(state.week)
        out: List[Action] = []
        artists = {a.id: a for a in state.artists}
        busy = {p.artist_id for p in state.projects if not is_terminal(p)}

        if week == self.sign_week and not artists["art_vellums"].signed:
            out.append(SignArtist(artist_id="art_vellums"))

        for aid in ("art_nova", "art_vellums"):
            a = artists.get(aid)
            if a is None or not a.signed or aid in busy or len(out) >= 2:
                continue
            n = sum(1 for p in state.projects if p.artist_id == aid) + 1
            out.append(
                StartProject(
                    project_id=f"{aid}-p{n}",
                    artist_id=aid,
                    title=f"{a.name} Session {n}",
                    project_type="single" if n % 2 else "ep",
                    song_count=1 if n % 2 else 4,
                    budget_per_song=6000 if n % 2 else 4000,
                    producer_tier="local",
                    time_investment="standard",
                )
            )

        if week == self.tour_week and state.venue_access != "none" and not any(p.type == "tour" for p in state.projects):
            out.append(
                StartProject(
                    project_id="art_nova-tour",
                    artist_id="art_nova",
                    title="Nova Lane Club Run",
                    project_type="tour",
                    cities=3,
                    venue_capacity=300,
                    marketing_budget=3000,
                )
            )

        reserved = reserved_song_ids(state.releases)
        by_project: Dict[str, List[str]] = {}
        for s in sorted(state.songs, key=lambda x: x.id):
            if s.recorded and not s.released and s.id not in reserved:
                by_project.setdefault(s.project_id, []).append(s.id)
        for pid, song_ids in sorted(by_project.items()):
            first = next(s for s in state.songs if s.id == song_ids[0])
            out.append(
                ScheduleRelease(
                    release_id=f"rel-{pid}",
                    artist_id=first.artist_id,
                    title=f"{pid} release",
                    song_ids=song_ids,
                    scheduled_week=week + 1,
                    marketing={"digital": 2000, "pr": 1000},
                )
            )

        exec_id, meeting_id, choice_id, artist_id = MEETING_ROTATION[week % len(MEETING_ROTATION)]
        out.append(RoleMeeting(executive_id=exec_id, meeting_id=meeting_id, choice_id=choice_id, artist_id=artist_id))
        return out


def run_headless_sim(
    weeks: int = 12,
    *,
    seed: int = 123,
    engine: Optional[TurnEngine] = None,
    player: Optional[ScriptedPlayer] = None,
) -> Dict[str, Any]:
    """Run a deterministic simulation and return summary."""
    if engine is None:
        engine = TurnEngine.from_config(
            EngineConfig.from_env({}),
            store=InMemoryStateStore(),
            narrator=DigestNarrator(),
        )
    player = player or ScriptedPlayer()

    state = engine.new_game(seed, game_id=f"sim-{seed}")
    initial = state
    summaries: List[WeekSummary] = []
    narratives: List[str] = []

    for _ in range(int(weeks)):
        result = engine.advance(state, player.actions_for(state))
        state = result.state
        summaries.append(result.summary)
        narratives.append(result.narrative)

    return {
        "weeks": int(weeks),
        "initial": initial,
        "final": state,
        "summaries": summaries,
        "narratives": narratives,
    }
