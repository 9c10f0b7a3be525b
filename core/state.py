"""
core.state
Core domain data models (UI/persistence independent).

Records are frozen dataclasses; a week is resolved on a WeekWorld copy and
frozen back into a new GameState, so the input state is never mutated.
Money is integer dollars everywhere.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar, Union

from .errors import ConsistencyWarning, LabelSimError
from .rng import RngState, new_rng


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def round_half_up(x: float) -> int:
    return int(math.floor(float(x) + 0.5))


RECORDING_TYPES = ("single", "ep", "album")
PROJECT_TYPES = RECORDING_TYPES + ("tour",)
RECORDING_STAGES = ("planning", "writing", "recording", "recorded", "released")
TOUR_STAGES = ("planning", "production", "touring", "completed")
RELEASE_STATUSES = ("planned", "released", "cancelled")
ACCESS_KINDS = ("playlist", "press", "venue")


@dataclass(frozen=True)
class Artist:
    id: str
    name: str
    genre: str = "pop"
    talent: int = 50
    work_ethic: int = 50
    popularity: int = 0
    mood: int = 50           # 0..100
    loyalty: int = 50        # 0..100
    temperament: int = 50
    energy: int = 50
    signed: bool = False
    signing_cost: int = 0
    weekly_cost: int = 0


@dataclass(frozen=True)
class Executive:
    id: str
    role: str
    name: str = ""
    mood: int = 50
    loyalty: int = 50
    salary: int = 0          # monthly, paid every 4th week
    last_action_week: int = 0


# -------------------------
# Tagged metadata variants
# -------------------------


@dataclass(frozen=True)
class TourCity:
    city_number: int
    venue_capacity: int
    sell_through: float
    ticket_price: float
    ticket_revenue: int
    merch_revenue: int
    venue_fee: int
    production_fee: int
    marketing_cost: int
    week: int = 0

    @property
    def revenue(self) -> int:
        return int(self.ticket_revenue + self.merch_revenue)

    @property
    def costs(self) -> int:
        return int(self.venue_fee + self.production_fee + self.marketing_cost)

    @property
    def profit(self) -> int:
        return self.revenue - self.costs


@dataclass(frozen=True)
class TourStats:
    cities: List[TourCity] = field(default_factory=list)
    settled_week: Optional[int] = None
    kind: str = "tour_stats"


@dataclass(frozen=True)
class RecordingSession:
    week: int
    producer_tier: str
    time_investment: str
    budget_per_song: int
    budget_factor: float
    song_ids: List[str] = field(default_factory=list)
    kind: str = "recording_session"


@dataclass(frozen=True)
class RepairRecord:
    """Provenance of an automatic forward-only correction."""
    week: int
    target: str              # project | release | song
    target_id: str
    before: str
    after: str
    reason: str
    kind: str = "auto_fix"


Metadata = Union[TourStats, RecordingSession, RepairRecord]
_META_KINDS: Dict[str, Type[Any]] = {
    "tour_stats": TourStats,
    "recording_session": RecordingSession,
    "auto_fix": RepairRecord,
}

M = TypeVar("M")


def find_metadata(items: List[Metadata], cls: Type[M]) -> Optional[M]:
    for item in items:
        if isinstance(item, cls):
            return item
    return None


def replace_metadata(items: List[Metadata], new: Metadata) -> List[Metadata]:
    """Replace the first item of new's kind (or append)."""
    out: List[Metadata] = []
    replaced = False
    for item in items:
        if not replaced and type(item) is type(new):
            out.append(new)
            replaced = True
        else:
            out.append(item)
    if not replaced:
        out.append(new)
    return out


def metadata_from_dict(d: Mapping[str, Any]) -> Metadata:
    kind = str(d.get("kind", ""))
    if kind not in _META_KINDS:
        raise ValueError(f"unknown metadata kind: {kind!r}")
    if kind == "tour_stats":
        return TourStats(
            cities=[_build(TourCity, c) for c in list(d.get("cities") or [])],
            settled_week=d.get("settled_week"),
        )
    if kind == "recording_session":
        return RecordingSession(
            week=int(d["week"]),
            producer_tier=str(d["producer_tier"]),
            time_investment=str(d["time_investment"]),
            budget_per_song=int(d["budget_per_song"]),
            budget_factor=float(d["budget_factor"]),
            song_ids=[str(x) for x in list(d.get("song_ids") or [])],
        )
    return RepairRecord(
        week=int(d["week"]),
        target=str(d["target"]),
        target_id=str(d["target_id"]),
        before=str(d["before"]),
        after=str(d["after"]),
        reason=str(d["reason"]),
    )


# -------------------------
# Projects, songs, releases, chart
# -------------------------


@dataclass(frozen=True)
class Project:
    id: str
    artist_id: str
    title: str
    type: str                       # single | ep | album | tour
    stage: str = "planning"
    start_week: int = 1
    stage_started_week: int = 1
    budget_per_song: int = 0
    producer_tier: str = "local"
    time_investment: str = "standard"
    song_count: int = 1
    songs_created: int = 0
    cost_spent: int = 0
    cities: int = 0
    venue_capacity: int = 0
    marketing_budget: int = 0
    metadata: List[Metadata] = field(default_factory=list)


@dataclass(frozen=True)
class Song:
    id: str
    title: str
    artist_id: str
    project_id: str
    quality: int
    recorded: bool = True
    released: bool = False
    release_id: Optional[str] = None
    release_week: Optional[int] = None
    initial_streams: int = 0
    weekly_streams: int = 0
    total_streams: int = 0
    total_revenue: int = 0
    last_week_revenue: int = 0
    awareness: float = 0.0
    breakthrough: bool = False
    dormant: bool = False


@dataclass(frozen=True)
class Release:
    id: str
    artist_id: str
    title: str
    song_ids: List[str]
    scheduled_week: int
    marketing: Dict[str, int] = field(default_factory=dict)
    status: str = "planned"
    metadata: List[Metadata] = field(default_factory=list)

    @property
    def marketing_total(self) -> int:
        return int(sum(int(v) for v in self.marketing.values()))


@dataclass(frozen=True)
class ChartEntry:
    chart_week: int
    entry_id: str
    title: str
    artist: str
    streams: int
    position: Optional[int] = None
    movement: int = 0
    is_debut: bool = False
    peak_position: Optional[int] = None
    weeks_on_chart: int = 0
    is_competitor: bool = True
    song_id: Optional[str] = None


@dataclass(frozen=True)
class DelayedEffect:
    """Effects that will apply at a future week."""
    due_week: int
    effects: Dict[str, int]
    source: str
    from_week: int
    artist_ids: List[str] = field(default_factory=list)
    executive_id: Optional[str] = None


# -------------------------
# Week summary
# -------------------------


@dataclass(frozen=True)
class GameChange:
    kind: str
    description: str
    amount: int = 0
    artist_id: Optional[str] = None
    project_id: Optional[str] = None
    song_id: Optional[str] = None
    release_id: Optional[str] = None


@dataclass(frozen=True)
class Diagnostic:
    severity: str            # validation | consistency
    code: str
    message: str
    action_index: Optional[int] = None

    @classmethod
    def from_error(cls, err: LabelSimError, *, action_index: Optional[int] = None) -> "Diagnostic":
        severity = "consistency" if isinstance(err, ConsistencyWarning) else "validation"
        return cls(severity=severity, code=str(getattr(err, "code", "error")), message=str(err), action_index=action_index)


@dataclass(frozen=True)
class ExpenseBreakdown:
    operations: int = 0
    artist_salaries: int = 0
    executive_salaries: int = 0
    signing_bonuses: int = 0
    project_costs: int = 0
    marketing_costs: int = 0
    role_meeting_costs: int = 0

    @property
    def total(self) -> int:
        return int(sum(int(getattr(self, f.name)) for f in fields(self)))


@dataclass(frozen=True)
class RevenueBreakdown:
    streaming: int = 0
    tours: int = 0

    @property
    def total(self) -> int:
        return int(self.streaming + self.tours)


@dataclass(frozen=True)
class ChartUpdate:
    song_id: str
    title: str
    position: Optional[int]
    movement: int
    is_debut: bool
    peak_position: Optional[int]


@dataclass(frozen=True)
class ArtistDelta:
    artist_id: str
    mood: int
    loyalty: int


@dataclass(frozen=True)
class WeekSummary:
    week: int
    changes: List[GameChange]
    revenue: int
    expenses: int
    revenue_breakdown: RevenueBreakdown
    expense_breakdown: ExpenseBreakdown
    chart_updates: List[ChartUpdate]
    artist_deltas: List[ArtistDelta]
    diagnostics: List[Diagnostic]
    repairs: List[RepairRecord]
    starting_money: int
    ending_money: int
    bankrupt: bool = False
    focus_slots_used: int = 0
    rng_draws: int = 0

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["revenue_breakdown"]["total"] = int(self.revenue_breakdown.total)
        out["expense_breakdown"]["total"] = int(self.expense_breakdown.total)
        return out


# -------------------------
# Game state
# -------------------------


@dataclass(frozen=True)
class GameState:
    """Root of one game session. Replaced (never mutated) by the turn orchestrator."""
    game_id: str
    week: int
    money: int
    reputation: int
    playlist_access: str
    press_access: str
    venue_access: str
    focus_slots: int
    seed: int
    rng: RngState
    used_focus_slots: int = 0
    flags: Dict[str, Any] = field(default_factory=dict)
    artists: List[Artist] = field(default_factory=list)
    executives: List[Executive] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)
    songs: List[Song] = field(default_factory=list)
    releases: List[Release] = field(default_factory=list)
    chart_entries: List[ChartEntry] = field(default_factory=list)
    delayed_effects: List[DelayedEffect] = field(default_factory=list)
    tier_unlock_history: Dict[str, int] = field(default_factory=dict)

    def access(self, kind: str) -> str:
        return str(getattr(self, f"{kind}_access"))


@dataclass
class WeekWorld:
    """Mutable working copy used while a single week resolves.

    Built fresh from a GameState; collections are new dicts/lists so the
    caller's state is untouched if resolution fails midway.
    """
    game_id: str
    week: int
    money: int
    reputation: int
    access: Dict[str, str]
    focus_slots: int
    used_focus_slots: int
    seed: int
    flags: Dict[str, Any]
    artists: Dict[str, Artist]
    executives: Dict[str, Executive]
    projects: Dict[str, Project]
    songs: Dict[str, Song]
    releases: Dict[str, Release]
    chart_entries: List[ChartEntry]
    delayed_effects: List[DelayedEffect]
    tier_unlock_history: Dict[str, int]
    changes: List[GameChange] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @classmethod
    def from_state(cls, state: GameState) -> "WeekWorld":
        return cls(
            game_id=str(state.game_id),
            week=int(state.week),
            money=int(state.money),
            reputation=int(state.reputation),
            access={k: state.access(k) for k in ACCESS_KINDS},
            focus_slots=int(state.focus_slots),
            used_focus_slots=0,
            seed=int(state.seed),
            flags=dict(state.flags),
            artists={a.id: a for a in state.artists},
            executives={e.id: e for e in state.executives},
            projects={p.id: p for p in state.projects},
            songs={s.id: s for s in state.songs},
            releases={r.id: r for r in state.releases},
            chart_entries=list(state.chart_entries),
            delayed_effects=list(state.delayed_effects),
            tier_unlock_history=dict(state.tier_unlock_history),
        )

    def signed_artists(self) -> List[Artist]:
        return [a for a in self.artists.values() if a.signed]

    def change(self, kind: str, description: str, **kw: Any) -> None:
        self.changes.append(GameChange(kind=kind, description=description, **kw))

    def to_state(self, *, week: int, money: int, rng: RngState) -> GameState:
        return GameState(
            game_id=self.game_id,
            week=int(week),
            money=int(money),
            reputation=int(self.reputation),
            playlist_access=self.access["playlist"],
            press_access=self.access["press"],
            venue_access=self.access["venue"],
            focus_slots=int(self.focus_slots),
            used_focus_slots=0,
            seed=int(self.seed),
            rng=rng,
            flags=dict(self.flags),
            artists=list(self.artists.values()),
            executives=list(self.executives.values()),
            projects=list(self.projects.values()),
            songs=list(self.songs.values()),
            releases=list(self.releases.values()),
            chart_entries=list(self.chart_entries),
            delayed_effects=list(self.delayed_effects),
            tier_unlock_history=dict(self.tier_unlock_history),
        )


# -------------------------
# Dict bridge (persistence / export)
# -------------------------

T = TypeVar("T")


def _build(cls: Type[T], d: Mapping[str, Any]) -> T:
    names = {f.name for f in fields(cls) if f.init}  # type: ignore[arg-type]
    return cls(**{k: v for k, v in dict(d).items() if k in names})


def state_to_dict(s: GameState) -> Dict[str, Any]:
    return asdict(s)


def state_from_mapping(d: Mapping[str, Any]) -> GameState:
    """Rebuild a GameState from state_to_dict() output (or a persisted copy)."""
    data = dict(d)
    projects = []
    for p in list(data.get("projects") or []):
        raw = dict(p)
        raw["metadata"] = [metadata_from_dict(m) for m in list(raw.get("metadata") or [])]
        projects.append(_build(Project, raw))
    releases = []
    for r in list(data.get("releases") or []):
        raw = dict(r)
        raw["metadata"] = [metadata_from_dict(m) for m in list(raw.get("metadata") or [])]
        raw["song_ids"] = [str(x) for x in list(raw.get("song_ids") or [])]
        raw["marketing"] = {str(k): int(v) for k, v in dict(raw.get("marketing") or {}).items()}
        releases.append(_build(Release, raw))
    return GameState(
        game_id=str(data.get("game_id", "game-1")),
        week=int(data.get("week", 1)),
        money=int(data.get("money", 0)),
        reputation=int(data.get("reputation", 0)),
        playlist_access=str(data.get("playlist_access", "none")),
        press_access=str(data.get("press_access", "none")),
        venue_access=str(data.get("venue_access", "none")),
        focus_slots=int(data.get("focus_slots", 3)),
        used_focus_slots=int(data.get("used_focus_slots", 0)),
        seed=int(data.get("seed", 0)),
        rng=_build(RngState, data["rng"]),
        flags=dict(data.get("flags") or {}),
        artists=[_build(Artist, a) for a in list(data.get("artists") or [])],
        executives=[_build(Executive, e) for e in list(data.get("executives") or [])],
        projects=projects,
        songs=[_build(Song, s) for s in list(data.get("songs") or [])],
        releases=releases,
        chart_entries=[_build(ChartEntry, c) for c in list(data.get("chart_entries") or [])],
        delayed_effects=[_build(DelayedEffect, x) for x in list(data.get("delayed_effects") or [])],
        tier_unlock_history={str(k): int(v) for k, v in dict(data.get("tier_unlock_history") or {}).items()},
    )


def default_start_state(
    seed: int,
    *,
    money: int = 150_000,
    reputation: int = 5,
    focus_slots: int = 3,
    game_id: str = "game-1",
) -> GameState:
    """Baseline start state: one signed artist, two prospects, four executives.

    Keep it in core so headless tests and UI share the same baseline.
    """
    return GameState(
        game_id=game_id,
        week=1,
        money=int(money),
        reputation=int(reputation),
        playlist_access="none",
        press_access="none",
        venue_access="none",
        focus_slots=int(focus_slots),
        seed=int(seed),
        rng=new_rng(int(seed)).snapshot(),
        artists=[
            Artist(id="art_nova", name="Nova Lane", genre="pop", talent=62, work_ethic=55, popularity=25,
                   mood=60, loyalty=55, temperament=50, energy=70, signed=True, signing_cost=0, weekly_cost=1200),
            Artist(id="art_vellums", name="The Vellums", genre="indie", talent=70, work_ethic=45, popularity=15,
                   mood=50, loyalty=50, temperament=65, energy=60, signed=False, signing_cost=8000, weekly_cost=1500),
            Artist(id="art_keon", name="Keon Rivers", genre="hip-hop", talent=55, work_ethic=75, popularity=35,
                   mood=55, loyalty=45, temperament=40, energy=80, signed=False, signing_cost=12000, weekly_cost=1800),
        ],
        executives=[
            Executive(id="exec_ar", role="head_ar", name="Mara Quinn", salary=4000),
            Executive(id="exec_cmo", role="cmo", name="Dev Okafor", salary=4500),
            Executive(id="exec_cco", role="cco", name="Ines Varga", salary=4000),
            Executive(id="exec_dist", role="head_distribution", name="Sol Park", salary=3500),
        ],
    )
