"""engine.pipeline

Core week flow (headless).

advance_week() is a pure function: it never mutates its input and either
returns a complete (state, summary) pair or raises before anything is
published. Fixed step order:

0. repair pass, restore rng, copy state into a WeekWorld
1. due delayed effects, then player actions (invalid ones become diagnostics)
2. project lifecycle, then releases that are due
3. finances (money changes exactly once)
4. chart
5. passive decay and progression
6. summary
7. week + 1

TurnEngine wraps it with per-game serialization and the persistence /
narrative hand-off. This layer is UI-agnostic.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from content.parsing import load_balance, load_competitors, load_meetings
from content.providers.base import Narrator, StateStore
from core.actions import Action, Meeting, action_from_dict, apply_action, slot_cost
from core.balance import BalanceConfig
from core.charts import Competitor, chart_reputation, chart_updates, player_candidates, resolve_chart
from core.effects import (
    apply_effects,
    decay_executive,
    drift_artist,
    due_delayed_effects,
    focus_slots_for,
    update_access_tiers,
)
from core.errors import StaleTurnError, ValidationError
from core.finance import (
    WeekLedger,
    advance_song_streams,
    apply_finances,
    book_song_revenue,
    per_song_marketing,
    resolve_finances,
)
from core.lifecycle import advance_projects, fire_releases, is_terminal, repair_state
from core.rng import Pcg32
from core.state import (
    ArtistDelta,
    Diagnostic,
    GameState,
    WeekSummary,
    WeekWorld,
    clamp,
    default_start_state,
)

from .config import EngineConfig

_LOGGER = logging.getLogger("engine.pipeline")

ActionInput = Union[Action, Mapping[str, Any]]


def new_game(seed: int, balance: BalanceConfig, *, game_id: str = "game-1") -> GameState:
    """Fresh week-1 state using the balance table's starting economy."""
    rep = int(balance.economy.starting_reputation)
    state = default_start_state(
        int(seed),
        money=int(balance.economy.starting_money),
        reputation=rep,
        focus_slots=int(balance.focus.base_slots),
        game_id=game_id,
    )
    return replace(
        state,
        playlist_access=balance.tier_for_reputation("playlist", rep).name,
        press_access=balance.tier_for_reputation("press", rep).name,
        venue_access=balance.tier_for_reputation("venue", rep).name,
    )


# -------------------------
# Steps
# -------------------------


def _apply_delayed(world: WeekWorld) -> None:
    due, remaining = due_delayed_effects(world.delayed_effects, world.week)
    world.delayed_effects = remaining
    for ev in due:
        apply_effects(
            world,
            ev.effects,
            artist_ids=list(ev.artist_ids),
            executive_id=ev.executive_id,
            source=f"{ev.source} (week {ev.from_week})",
        )


def _apply_actions(
    world: WeekWorld,
    actions: Sequence[ActionInput],
    ledger: WeekLedger,
    balance: BalanceConfig,
    meetings: Dict[str, Meeting],
) -> None:
    for i, raw in enumerate(actions):
        try:
            action = action_from_dict(raw) if isinstance(raw, Mapping) else raw
            cost = slot_cost(action)
            if world.used_focus_slots + cost > world.focus_slots:
                raise ValidationError(
                    f"{action.kind} needs {cost} focus slot(s); {world.focus_slots - world.used_focus_slots} left",
                    code="focus_slots_exhausted",
                )
            apply_action(action, world, ledger, balance, meetings)
        except ValidationError as e:
            _LOGGER.warning("Week %d: dropped action %d (%s): %s", world.week, i, e.code, e)
            world.diagnostics.append(Diagnostic.from_error(e, action_index=i))
            continue
        world.used_focus_slots += cost


def _resolve_chart(world: WeekWorld, catalog: List[Competitor], rng: Pcg32, balance: BalanceConfig) -> None:
    candidates = player_candidates(world.songs.values(), world.artists)
    entries = resolve_chart(world.week, candidates, catalog, world.chart_entries, rng, balance.chart)

    for e in entries:
        if e.is_competitor or not e.is_debut:
            continue
        world.change("chart_debut", f"'{e.title}' debuted at #{e.position}", amount=int(e.position or 0), song_id=e.song_id)

    gain = chart_reputation(entries, balance.chart)
    if gain:
        world.reputation = int(clamp(world.reputation + gain, 0, 100))
        world.change("reputation", f"Chart success: reputation +{gain}", amount=gain)

    # unplaced competitors carry no history worth keeping
    world.chart_entries = [e for e in entries if e.position is not None or not e.is_competitor]


def _passive_progression(world: WeekWorld, balance: BalanceConfig) -> None:
    for sid in sorted(world.songs):
        song = world.songs[sid]
        release = world.releases.get(song.release_id or "")
        marketing = per_song_marketing(release.marketing, len(release.song_ids)) if release else {}
        artist = world.artists.get(song.artist_id)
        updated, broke = advance_song_streams(
            song,
            marketing=marketing,
            popularity=artist.popularity if artist else 0,
            reputation=world.reputation,
            week=world.week,
            balance=balance,
        )
        world.songs[sid] = updated
        if broke:
            world.change("breakthrough", f"'{song.title}' broke through", song_id=sid, artist_id=song.artist_id)

    for aid in sorted(world.artists):
        artist = world.artists[aid]
        if not artist.signed:
            continue
        active = sum(1 for p in world.projects.values() if p.artist_id == aid and not is_terminal(p))
        world.artists[aid] = drift_artist(artist, active, balance.drift)

    for eid in sorted(world.executives):
        world.executives[eid] = decay_executive(world.executives[eid], world.week, balance.drift)

    update_access_tiers(world, balance)

    slots = focus_slots_for(world.reputation, world.focus_slots, balance)
    if slots > world.focus_slots:
        world.change("unlock", f"Focus slots increased to {slots}", amount=slots - world.focus_slots)
    world.focus_slots = slots


def advance_week(
    state: GameState,
    actions: Sequence[ActionInput],
    *,
    balance: BalanceConfig,
    catalog: List[Competitor],
    meetings: Dict[str, Meeting],
) -> Tuple[GameState, WeekSummary]:
    """Resolve one week. Returns (next_state, summary); `state` is untouched."""
    # 0) repair + working copy
    state, repairs, repair_diags = repair_state(state, balance)
    rng = Pcg32.from_state(state.rng)
    world = WeekWorld.from_state(state)
    world.diagnostics.extend(repair_diags)
    ledger = WeekLedger()
    week = int(world.week)
    before = {a.id: (a.mood, a.loyalty) for a in state.artists}
    if repairs:
        _LOGGER.info("Week %d: repair pass applied %d fix(es)", week, len(repairs))

    # 1) delayed effects, then actions
    _apply_delayed(world)
    _apply_actions(world, actions, ledger, balance, meetings)
    _LOGGER.debug("Week %d: actions done (%d slot(s) used)", week, world.used_focus_slots)

    # 2) lifecycle + releases
    advance_projects(world, balance, rng, ledger)
    fire_releases(world, balance, rng, ledger)
    _LOGGER.debug("Week %d: lifecycle done (%d draw(s))", week, rng.draws)

    # 3) finances
    fin = resolve_finances(world, ledger, balance)
    book_song_revenue(world, fin.song_revenue)
    money, bankrupt = apply_finances(world.money, fin, balance)
    if fin.revenue.total:
        world.change("revenue", f"Revenue ${fin.revenue.total:,}", amount=fin.revenue.total)
    world.change("expense", f"Expenses ${fin.expenses.total:,}", amount=fin.expenses.total)
    if bankrupt:
        _LOGGER.warning("Week %d: cash %d below bankruptcy threshold %d", week, money, balance.economy.bankruptcy_threshold)
        world.change("bankruptcy_warning", f"Cash fell to ${money:,}", amount=money)
    _LOGGER.debug("Week %d: finances revenue=%d expenses=%d", week, fin.revenue.total, fin.expenses.total)

    # 4) chart
    _resolve_chart(world, catalog, rng, balance)
    _LOGGER.debug("Week %d: chart resolved", week)

    # 5) passive decay + progression
    _passive_progression(world, balance)

    # 6) summary
    deltas = []
    for aid in sorted(world.artists):
        a = world.artists[aid]
        mood0, loyalty0 = before.get(aid, (a.mood, a.loyalty))
        if a.mood != mood0 or a.loyalty != loyalty0:
            deltas.append(ArtistDelta(artist_id=aid, mood=int(a.mood - mood0), loyalty=int(a.loyalty - loyalty0)))

    summary = WeekSummary(
        week=week,
        changes=list(world.changes),
        revenue=int(fin.revenue.total),
        expenses=int(fin.expenses.total),
        revenue_breakdown=fin.revenue,
        expense_breakdown=fin.expenses,
        chart_updates=chart_updates(world.chart_entries),
        artist_deltas=deltas,
        diagnostics=list(world.diagnostics),
        repairs=list(repairs),
        starting_money=int(state.money),
        ending_money=int(money),
        bankrupt=bool(bankrupt),
        focus_slots_used=int(world.used_focus_slots),
        rng_draws=int(rng.draws),
    )

    # 7) next week
    next_state = world.to_state(week=week + 1, money=money, rng=rng.snapshot())
    _LOGGER.info(
        "Week %d resolved for %s: revenue=%d expenses=%d money=%d diagnostics=%d",
        week, state.game_id, summary.revenue, summary.expenses, money, len(summary.diagnostics),
    )
    return next_state, summary


# -------------------------
# Composition root
# -------------------------


@dataclass(frozen=True)
class WeekResult:
    state: GameState
    summary: WeekSummary
    narrative: str = ""


class TurnEngine:
    """Serializes weeks per game and hands results to the collaborators.

    Different games resolve concurrently; one game never resolves two
    weeks at once, and a state for an already-resolved week is rejected.
    """

    def __init__(
        self,
        *,
        balance: BalanceConfig,
        catalog: List[Competitor],
        meetings: Dict[str, Meeting],
        store: Optional[StateStore] = None,
        narrator: Optional[Narrator] = None,
    ) -> None:
        self.balance = balance
        self.catalog = list(catalog)
        self.meetings = dict(meetings)
        self.store = store
        self.narrator = narrator
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._resolved: Dict[str, int] = {}

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        *,
        store: Optional[StateStore] = None,
        narrator: Optional[Narrator] = None,
    ) -> "TurnEngine":
        return cls(
            balance=load_balance(config.balance_path),
            catalog=load_competitors(config.competitors_path),
            meetings=load_meetings(config.meetings_path),
            store=store,
            narrator=narrator,
        )

    def _lock_for(self, game_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(game_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[game_id] = lock
            return lock

    def new_game(self, seed: int, *, game_id: str = "game-1") -> GameState:
        return new_game(seed, self.balance, game_id=game_id)

    def load(self, game_id: str) -> Optional[GameState]:
        """Latest persisted state, self-healed by the repair pass."""
        if self.store is None:
            return None
        state = self.store.load_state(game_id)
        if state is None:
            return None
        repaired, repairs, _ = repair_state(state, self.balance)
        if repairs:
            _LOGGER.info("Loaded %s with %d repair(s)", game_id, len(repairs))
        return repaired

    def advance(self, state: GameState, actions: Sequence[ActionInput]) -> WeekResult:
        with self._lock_for(state.game_id):
            last = self._resolved.get(state.game_id)
            if last is None and self.store is not None:
                stored = self.store.load_state(state.game_id)
                if stored is not None:
                    last = int(stored.week) - 1
            if last is not None and int(state.week) <= last:
                raise StaleTurnError(f"{state.game_id}: week {state.week} already resolved (latest {last})")

            next_state, summary = advance_week(
                state,
                actions,
                balance=self.balance,
                catalog=self.catalog,
                meetings=self.meetings,
            )
            if self.store is not None:
                self.store.save_week(state.game_id, next_state, summary)
            self._resolved[state.game_id] = int(summary.week)

        narrative = self.narrator.render_week(next_state, summary) if self.narrator is not None else ""
        return WeekResult(state=next_state, summary=summary, narrative=narrative)
