"""content.schemas

Contracts for the external data the engine consumes:
- balance tables  -> core.balance.BalanceConfig
- competitor list -> List[core.charts.Competitor]
- meeting catalog -> Dict[str, core.actions.Meeting]

Validation is strict: a missing or malformed value raises ConfigurationError
with the dotted path of the offending key. Nothing is defaulted for values
that affect money or quality.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Tuple

from core.actions import TARGET_SCOPES, Meeting, MeetingChoice
from core.balance import (
    AccessTier,
    AwarenessSpec,
    BalanceConfig,
    BudgetCurve,
    ChartSpec,
    DriftSpec,
    EconomySpec,
    FocusSpec,
    MarketingChannel,
    ProducerTier,
    ProjectSpec,
    QualitySpec,
    StreamingSpec,
    TimeTier,
    TourSpec,
    VarianceSpec,
)
from core.charts import Competitor
from core.effects import EFFECT_KEYS
from core.errors import ConfigurationError
from core.state import ACCESS_KINDS, RECORDING_TYPES

BREAKPOINT_KEYS = (
    "penalty_threshold",
    "minimum_viable",
    "optimal_efficiency",
    "luxury_threshold",
    "diminishing_threshold",
)
SEASONS = ("q1", "q2", "q3", "q4")


# =========================
# Field helpers
# =========================


def _section(d: Mapping[str, Any], key: str, path: str) -> Mapping[str, Any]:
    v = d.get(key)
    if not isinstance(v, Mapping):
        raise ConfigurationError(f"{path}.{key}: expected an object")
    return v


def _num(d: Mapping[str, Any], key: str, path: str) -> float:
    if key not in d:
        raise ConfigurationError(f"{path}.{key}: missing")
    v = d[key]
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ConfigurationError(f"{path}.{key}: expected a number, got {v!r}")
    return float(v)


def _int(d: Mapping[str, Any], key: str, path: str) -> int:
    v = _num(d, key, path)
    if v != int(v):
        raise ConfigurationError(f"{path}.{key}: expected an integer, got {v!r}")
    return int(v)


def _pair(d: Mapping[str, Any], key: str, path: str) -> Tuple[float, float]:
    v = d.get(key)
    if not isinstance(v, (list, tuple)) or len(v) != 2:
        raise ConfigurationError(f"{path}.{key}: expected [min, max]")
    lo, hi = _num({"min": v[0]}, "min", f"{path}.{key}"), _num({"max": v[1]}, "max", f"{path}.{key}")
    if lo > hi:
        raise ConfigurationError(f"{path}.{key}: min > max")
    return lo, hi


def _per_type(d: Mapping[str, Any], key: str, path: str) -> Dict[str, float]:
    sec = _section(d, key, path)
    return {t: _num(sec, t, f"{path}.{key}") for t in RECORDING_TYPES}


def _str(d: Mapping[str, Any], key: str, path: str) -> str:
    v = str(d.get(key) or "").strip()
    if not v:
        raise ConfigurationError(f"{path}.{key}: missing")
    return v


# =========================
# Balance
# =========================


def _economy(d: Mapping[str, Any]) -> EconomySpec:
    sec = _section(d, "economy", "balance")
    p = "balance.economy"
    interval = _int(sec, "executive_salary_interval", p)
    if interval < 1:
        raise ConfigurationError(f"{p}.executive_salary_interval: must be >= 1")
    return EconomySpec(
        starting_money=_int(sec, "starting_money", p),
        starting_reputation=_int(sec, "starting_reputation", p),
        weekly_operations=_int(sec, "weekly_operations", p),
        bankruptcy_threshold=_int(sec, "bankruptcy_threshold", p),
        default_artist_weekly_cost=_int(sec, "default_artist_weekly_cost", p),
        executive_salary_interval=interval,
    )


def _projects(d: Mapping[str, Any]) -> ProjectSpec:
    sec = _section(d, "projects", "balance")
    p = "balance.projects"

    scale_raw = sec.get("economies_of_scale")
    if not isinstance(scale_raw, list) or not scale_raw:
        raise ConfigurationError(f"{p}.economies_of_scale: expected a non-empty list")
    scale = sorted(
        (
            (_int(x, "max_songs", f"{p}.economies_of_scale[{i}]"), _num(x, "multiplier", f"{p}.economies_of_scale[{i}]"))
            for i, x in enumerate(scale_raw)
        ),
        key=lambda t: t[0],
    )

    limits_sec = _section(sec, "song_count_limits", p)
    limits: Dict[str, Tuple[int, int]] = {}
    for t in RECORDING_TYPES:
        lo, hi = _pair(limits_sec, t, f"{p}.song_count_limits")
        if lo < 1:
            raise ConfigurationError(f"{p}.song_count_limits.{t}: minimum must be >= 1")
        limits[t] = (int(lo), int(hi))

    shares_sec = _section(sec, "stage_cost_shares", p)
    shares = {k: _num(shares_sec, k, f"{p}.stage_cost_shares") for k in shares_sec}
    if not shares or abs(sum(shares.values()) - 1.0) > 1e-9:
        raise ConfigurationError(f"{p}.stage_cost_shares: shares must sum to 1.0")
    if any(k not in ("writing", "recording") for k in shares):
        raise ConfigurationError(f"{p}.stage_cost_shares: only writing/recording may carry cost")

    dur_sec = _section(sec, "stage_durations", p)
    durations = {k: _int(dur_sec, k, f"{p}.stage_durations") for k in ("planning", "writing", "recording", "production")}

    return ProjectSpec(
        base_per_song_cost={t: int(v) for t, v in _per_type(sec, "base_per_song_cost", p).items()},
        economies_of_scale=scale,
        baseline_quality_multiplier=_per_type(sec, "baseline_quality_multiplier", p),
        song_count_limits=limits,
        stage_cost_shares=shares,
        stage_durations=durations,
        max_active_projects=_int(sec, "max_active_projects", p),
    )


def _producers(d: Mapping[str, Any]) -> Dict[str, ProducerTier]:
    sec = _section(d, "producer_tiers", "balance")
    if not sec:
        raise ConfigurationError("balance.producer_tiers: empty")
    out: Dict[str, ProducerTier] = {}
    for name, raw in sec.items():
        p = f"balance.producer_tiers.{name}"
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"{p}: expected an object")
        out[str(name)] = ProducerTier(
            name=str(name),
            unlock_reputation=_int(raw, "unlock_reputation", p),
            cost_multiplier=_num(raw, "cost_multiplier", p),
            quality_bonus=_num(raw, "quality_bonus", p),
            skill=_num(raw, "skill", p),
        )
    return out


def _time_tiers(d: Mapping[str, Any]) -> Dict[str, TimeTier]:
    sec = _section(d, "time_investment", "balance")
    if not sec:
        raise ConfigurationError("balance.time_investment: empty")
    out: Dict[str, TimeTier] = {}
    for name, raw in sec.items():
        p = f"balance.time_investment.{name}"
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"{p}: expected an object")
        out[str(name)] = TimeTier(
            name=str(name),
            quality_multiplier=_num(raw, "quality_multiplier", p),
            cost_multiplier=_num(raw, "cost_multiplier", p),
            duration_modifier=_int(raw, "duration_modifier", p),
        )
    return out


def _quality(d: Mapping[str, Any]) -> QualitySpec:
    sec = _section(d, "quality", "balance")
    p = "balance.quality"
    var = _section(sec, "variance", p)
    vp = f"{p}.variance"
    we, pop, mood, focus = (_section(sec, k, p) for k in ("work_ethic", "popularity", "mood", "focus"))
    spec = QualitySpec(
        floor=_int(sec, "floor", p),
        ceiling=_int(sec, "ceiling", p),
        work_ethic_base=_num(we, "base", f"{p}.work_ethic"),
        work_ethic_scale=_num(we, "scale", f"{p}.work_ethic"),
        popularity_base=_num(pop, "base", f"{p}.popularity"),
        popularity_scale=_num(pop, "scale", f"{p}.popularity"),
        mood_base=_num(mood, "base", f"{p}.mood"),
        mood_scale=_num(mood, "scale", f"{p}.mood"),
        focus_free_songs=_int(focus, "free_songs", f"{p}.focus"),
        focus_fatigue_rate=_num(focus, "fatigue_rate", f"{p}.focus"),
        variance=VarianceSpec(
            base_range=_num(var, "base_range", vp),
            skill_reduction=_num(var, "skill_reduction", vp),
            breakout_chance=_num(var, "breakout_chance", vp),
            failure_chance=_num(var, "failure_chance", vp),
            breakout_min=_num(var, "breakout_min", vp),
            breakout_max=_num(var, "breakout_max", vp),
            failure_min=_num(var, "failure_min", vp),
            failure_max=_num(var, "failure_max", vp),
        ),
    )
    if not 0 < spec.floor <= spec.ceiling:
        raise ConfigurationError(f"{p}: need 0 < floor <= ceiling")
    if spec.variance.breakout_chance + spec.variance.failure_chance > 1.0:
        raise ConfigurationError(f"{vp}: outlier chances exceed 1.0")
    return spec


def _budget(d: Mapping[str, Any]) -> BudgetCurve:
    sec = _section(d, "budget_quality", "balance")
    p = "balance.budget_quality"
    bp_sec = _section(sec, "breakpoints", p)
    points = tuple(_num(bp_sec, k, f"{p}.breakpoints") for k in BREAKPOINT_KEYS)
    if any(b <= a for a, b in zip(points, points[1:])):
        raise ConfigurationError(f"{p}.breakpoints: must be strictly increasing")
    mults = sec.get("segment_multipliers")
    if not isinstance(mults, list) or len(mults) != len(BREAKPOINT_KEYS):
        raise ConfigurationError(f"{p}.segment_multipliers: expected {len(BREAKPOINT_KEYS)} numbers")
    values = tuple(_num({"v": m}, "v", f"{p}.segment_multipliers") for m in mults)
    curve = BudgetCurve(
        dampening_factor=_num(sec, "dampening_factor", p),
        breakpoints=points,  # type: ignore[arg-type]
        segment_multipliers=values,  # type: ignore[arg-type]
        min_multiplier=_num(sec, "min_multiplier", p),
        max_multiplier=_num(sec, "max_multiplier", p),
        diminishing_returns_factor=_num(sec, "diminishing_returns_factor", p),
    )
    if curve.min_multiplier > curve.max_multiplier:
        raise ConfigurationError(f"{p}: min_multiplier > max_multiplier")
    return curve


def _streaming(d: Mapping[str, Any]) -> StreamingSpec:
    sec = _section(d, "streaming", "balance")
    p = "balance.streaming"
    vmin, vmax = _pair(sec, "variance_range", p)
    decay = _num(sec, "weekly_decay_rate", p)
    if not 0.0 <= decay < 1.0:
        raise ConfigurationError(f"{p}.weekly_decay_rate: must be in [0, 1)")
    return StreamingSpec(
        quality_weight=_num(sec, "quality_weight", p),
        playlist_weight=_num(sec, "playlist_weight", p),
        reputation_weight=_num(sec, "reputation_weight", p),
        marketing_weight=_num(sec, "marketing_weight", p),
        popularity_weight=_num(sec, "popularity_weight", p),
        star_power_max=_num(sec, "star_power_max", p),
        base_streams_per_point=_num(sec, "base_streams_per_point", p),
        first_week_multiplier=_num(sec, "first_week_multiplier", p),
        variance_min=vmin,
        variance_max=vmax,
        weekly_decay_rate=decay,
        max_decay_weeks=_int(sec, "max_decay_weeks", p),
        revenue_per_stream=_num(sec, "revenue_per_stream", p),
        reputation_bonus_factor=_num(sec, "reputation_bonus_factor", p),
        minimum_revenue_threshold=_int(sec, "minimum_revenue_threshold", p),
    )


def _channels(d: Mapping[str, Any]) -> Dict[str, MarketingChannel]:
    sec = _section(d, "marketing_channels", "balance")
    out: Dict[str, MarketingChannel] = {}
    for name, raw in sec.items():
        p = f"balance.marketing_channels.{name}"
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"{p}: expected an object")
        out[str(name)] = MarketingChannel(
            name=str(name),
            awareness_per_1k=_num(raw, "awareness_per_1k", p),
            stream_boost_per_1k=_num(raw, "stream_boost_per_1k", p),
        )
    return out


def _awareness(d: Mapping[str, Any]) -> AwarenessSpec:
    sec = _section(d, "awareness", "balance")
    p = "balance.awareness"
    return AwarenessSpec(
        gain_cap=_num(sec, "gain_cap", p),
        sustain_weeks=_int(sec, "sustain_weeks", p),
        sustain_share=_num(sec, "sustain_share", p),
        decay_rate=_num(sec, "decay_rate", p),
        breakthrough_threshold=_num(sec, "breakthrough_threshold", p),
        breakthrough_min_quality=_int(sec, "breakthrough_min_quality", p),
        breakthrough_multiplier=_num(sec, "breakthrough_multiplier", p),
        early_impact=_num(sec, "early_impact", p),
        late_impact=_num(sec, "late_impact", p),
        modifier_cap=_num(sec, "modifier_cap", p),
        marketing_factor_cap=_num(sec, "marketing_factor_cap", p),
    )


def _access_tiers(d: Mapping[str, Any]) -> Dict[str, List[AccessTier]]:
    sec = _section(d, "access_tiers", "balance")
    out: Dict[str, List[AccessTier]] = {}
    for kind in ACCESS_KINDS:
        raw = sec.get(kind)
        p = f"balance.access_tiers.{kind}"
        if not isinstance(raw, list) or not raw:
            raise ConfigurationError(f"{p}: expected a non-empty list")
        tiers: List[AccessTier] = []
        for i, t in enumerate(raw):
            tp = f"{p}[{i}]"
            if not isinstance(t, Mapping):
                raise ConfigurationError(f"{tp}: expected an object")
            cap_min, cap_max = _pair(t, "capacity", tp) if "capacity" in t else (0.0, 0.0)
            tiers.append(
                AccessTier(
                    name=_str(t, "name", tp),
                    threshold=_int(t, "threshold", tp),
                    revenue_multiplier=_num(t, "revenue_multiplier", tp),
                    reach_multiplier=_num(t, "reach_multiplier", tp),
                    capacity_min=int(cap_min),
                    capacity_max=int(cap_max),
                )
            )
        if tiers[0].threshold != 0:
            raise ConfigurationError(f"{p}: first tier must have threshold 0")
        if any(b.threshold <= a.threshold for a, b in zip(tiers, tiers[1:])):
            raise ConfigurationError(f"{p}: thresholds must be strictly increasing")
        out[kind] = tiers
    return out


def _seasonal(d: Mapping[str, Any], key: str) -> Dict[str, float]:
    sec = _section(d, key, "balance")
    out = {q: _num(sec, q, f"balance.{key}") for q in SEASONS}
    for q, v in out.items():
        if v <= 0:
            raise ConfigurationError(f"balance.{key}.{q}: must be > 0")
    return out


def _tour(d: Mapping[str, Any]) -> TourSpec:
    sec = _section(d, "tour", "balance")
    p = "balance.tour"
    return TourSpec(
        sell_through_base=_num(sec, "sell_through_base", p),
        reputation_modifier=_num(sec, "reputation_modifier", p),
        local_popularity_weight=_num(sec, "local_popularity_weight", p),
        marketing_effectiveness=_num(sec, "marketing_effectiveness", p),
        venue_size_bonus=_num(sec, "venue_size_bonus", p),
        popularity_scaling_factor=_num(sec, "popularity_scaling_factor", p),
        ticket_price_base=_num(sec, "ticket_price_base", p),
        ticket_price_per_seat=_num(sec, "ticket_price_per_seat", p),
        scarcity_base=_num(sec, "scarcity_base", p),
        scarcity_slope=_num(sec, "scarcity_slope", p),
        merch_percentage=_num(sec, "merch_percentage", p),
        venue_fee_per_seat=_num(sec, "venue_fee_per_seat", p),
        production_fee_per_seat=_num(sec, "production_fee_per_seat", p),
        max_cities=_int(sec, "max_cities", p),
    )


def _chart(d: Mapping[str, Any]) -> ChartSpec:
    sec = _section(d, "chart", "balance")
    p = "balance.chart"
    exit_sec = _section(sec, "exit", p)
    rep_sec = _section(sec, "reputation", p)
    vmin, vmax = _pair(sec, "competitor_variance_range", p)
    size = _int(sec, "size", p)
    if size < 1:
        raise ConfigurationError(f"{p}.size: must be >= 1")
    return ChartSpec(
        size=size,
        competitor_variance_min=vmin,
        competitor_variance_max=vmax,
        long_tenure_weeks=_int(exit_sec, "long_tenure_weeks", f"{p}.exit"),
        long_tenure_position=_int(exit_sec, "long_tenure_position", f"{p}.exit"),
        low_streams_threshold=_int(exit_sec, "low_streams_threshold", f"{p}.exit"),
        low_streams_position=_int(exit_sec, "low_streams_position", f"{p}.exit"),
        top10_reputation=_int(rep_sec, "top_10", f"{p}.reputation"),
        number_one_reputation=_int(rep_sec, "number_one", f"{p}.reputation"),
    )


def _drift(d: Mapping[str, Any]) -> DriftSpec:
    sec = _section(d, "drift", "balance")
    p = "balance.drift"
    return DriftSpec(
        neutral=_int(sec, "neutral", p),
        mood_upper=_int(sec, "mood_upper", p),
        mood_lower=_int(sec, "mood_lower", p),
        mood_step=_int(sec, "mood_step", p),
        loyalty_step=_int(sec, "loyalty_step", p),
        overload_threshold=_int(sec, "overload_threshold", p),
        overload_penalty=_int(sec, "overload_penalty", p),
        exec_unused_weeks=_int(sec, "exec_unused_weeks", p),
        exec_loyalty_penalty=_int(sec, "exec_loyalty_penalty", p),
        exec_mood_step=_int(sec, "exec_mood_step", p),
    )


def balance_from_mapping(d: Mapping[str, Any]) -> BalanceConfig:
    """Build a validated BalanceConfig from the raw balance JSON."""
    if not isinstance(d, Mapping):
        raise ConfigurationError("balance: expected an object")
    focus_sec = _section(d, "focus_slots", "balance")
    focus = FocusSpec(
        base_slots=_int(focus_sec, "base", "balance.focus_slots"),
        max_slots=_int(focus_sec, "max", "balance.focus_slots"),
        unlock_reputation=_int(focus_sec, "unlock_reputation", "balance.focus_slots"),
    )
    if focus.base_slots > focus.max_slots:
        raise ConfigurationError("balance.focus_slots: base > max")

    cfg = BalanceConfig(
        version=_str(d, "version", "balance"),
        economy=_economy(d),
        focus=focus,
        projects=_projects(d),
        producer_tiers=_producers(d),
        time_tiers=_time_tiers(d),
        quality=_quality(d),
        budget=_budget(d),
        streaming=_streaming(d),
        channels=_channels(d),
        awareness=_awareness(d),
        seasonal=_seasonal(d, "seasonal_modifiers"),
        seasonal_cost=_seasonal(d, "seasonal_cost_multipliers"),
        access_tiers=_access_tiers(d),
        tour=_tour(d),
        chart=_chart(d),
        drift=_drift(d),
    )
    if "local" not in cfg.producer_tiers or "standard" not in cfg.time_tiers:
        raise ConfigurationError("balance: 'local' producer and 'standard' time tier are required")
    return cfg


# =========================
# Competitor catalog
# =========================


def competitors_from_list(items: Any) -> List[Competitor]:
    if not isinstance(items, list) or not items:
        raise ConfigurationError("competitors: expected a non-empty list")
    out: List[Competitor] = []
    seen = set()
    for i, raw in enumerate(items):
        p = f"competitors[{i}]"
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"{p}: expected an object")
        cid = _str(raw, "id", p)
        if cid in seen:
            raise ConfigurationError(f"{p}.id: duplicate {cid!r}")
        seen.add(cid)
        streams = _int(raw, "base_streams", p)
        if streams < 0:
            raise ConfigurationError(f"{p}.base_streams: must be >= 0")
        out.append(
            Competitor(
                id=cid,
                title=_str(raw, "title", p),
                artist=_str(raw, "artist", p),
                base_streams=streams,
                genre=str(raw.get("genre") or ""),
            )
        )
    return out


# =========================
# Meeting catalog
# =========================


def _effects(raw: Any, path: str) -> Dict[str, int]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{path}: expected an object")
    unknown = set(raw) - EFFECT_KEYS
    if unknown:
        raise ConfigurationError(f"{path}: unknown effect keys {sorted(unknown)}")
    return {str(k): _int(raw, k, path) for k in raw}


def meetings_from_mapping(d: Mapping[str, Any]) -> Dict[str, Meeting]:
    if not isinstance(d, Mapping):
        raise ConfigurationError("meetings: expected an object")
    items = d.get("meetings")
    if not isinstance(items, list):
        raise ConfigurationError("meetings.meetings: expected a list")

    out: Dict[str, Meeting] = {}
    for i, raw in enumerate(items):
        p = f"meetings[{i}]"
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"{p}: expected an object")
        mid = _str(raw, "id", p)
        if mid in out:
            raise ConfigurationError(f"{p}.id: duplicate {mid!r}")
        scope = _str(raw, "target_scope", p)
        if scope not in TARGET_SCOPES:
            raise ConfigurationError(f"{p}.target_scope: {scope!r} not in {sorted(TARGET_SCOPES)}")

        choices: List[MeetingChoice] = []
        for j, c in enumerate(list(raw.get("choices") or [])):
            cp = f"{p}.choices[{j}]"
            if not isinstance(c, Mapping):
                raise ConfigurationError(f"{cp}: expected an object")
            cost = _int(c, "cost", cp)
            if cost < 0:
                raise ConfigurationError(f"{cp}.cost: must be >= 0")
            choices.append(
                MeetingChoice(
                    id=_str(c, "id", cp),
                    label=_str(c, "label", cp),
                    cost=cost,
                    immediate=_effects(c.get("immediate"), f"{cp}.immediate"),
                    delayed=_effects(c.get("delayed"), f"{cp}.delayed"),
                )
            )
        if not choices:
            raise ConfigurationError(f"{p}.choices: at least one choice required")

        out[mid] = Meeting(
            id=mid,
            role=_str(raw, "role", p),
            title=_str(raw, "title", p),
            target_scope=scope,
            choices=choices,
        )
    return out
