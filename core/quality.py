"""
core.quality
Song quality calculator (pure).

quality = base x time x popularity x focus x budget x mood x variance,
rounded half-up and clamped to [floor, ceiling].

The preview path (estimate_quality) and the authoritative path
(compute_quality) share quality_breakdown(); only the variance draw differs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .balance import BalanceConfig, BudgetCurve, ProducerTier, ProjectSpec, QualitySpec, TimeTier, VarianceSpec
from .errors import ConfigurationError, ValidationError
from .rng import Pcg32
from .state import RECORDING_TYPES, Artist, clamp, round_half_up


@dataclass(frozen=True)
class QualityBreakdown:
    base: float
    time: float
    popularity: float
    focus: float
    budget: float
    mood: float
    variance: float
    outcome: str             # normal | breakout | failure | preview
    raw: float
    quality: int


def time_factor(work_ethic: float, tier: TimeTier, spec: QualitySpec) -> float:
    return float(tier.quality_multiplier) * (spec.work_ethic_base + spec.work_ethic_scale * float(work_ethic) / 100.0)


def popularity_factor(popularity: float, spec: QualitySpec) -> float:
    return spec.popularity_base + spec.popularity_scale * float(popularity) / 100.0


def focus_factor(song_count: int, spec: QualitySpec) -> float:
    # session fatigue past the first few songs
    if int(song_count) <= spec.focus_free_songs:
        return 1.0
    return float(spec.focus_fatigue_rate) ** (int(song_count) - spec.focus_free_songs)


def mood_factor(mood: float, spec: QualitySpec) -> float:
    return spec.mood_base + spec.mood_scale * float(mood) / 100.0


def economies_of_scale(song_count: int, spec: ProjectSpec) -> float:
    for max_songs, mult in spec.economies_of_scale:
        if int(song_count) <= int(max_songs):
            return float(mult)
    return float(spec.economies_of_scale[-1][1])


def minimum_viable_cost(project_type: str, song_count: int, balance: BalanceConfig) -> float:
    """Per-song budget below which the budget factor penalizes quality.

    Producer and time multipliers are deliberately not applied here.
    """
    spec = balance.projects
    if project_type not in spec.base_per_song_cost:
        raise ConfigurationError(f"no per-song cost for project type {project_type!r}")
    base = float(spec.base_per_song_cost[project_type])
    baseline = float(spec.baseline_quality_multiplier[project_type])
    return base * economies_of_scale(song_count, spec) * baseline


def dampen_ratio(ratio: float, factor: float) -> float:
    return 1.0 + (float(ratio) - 1.0) * float(factor)


def budget_curve(ratio: float, curve: BudgetCurve) -> float:
    """Six-segment piecewise map from (dampened) efficiency ratio to multiplier."""
    p0, p1, p2, p3, p4 = curve.breakpoints
    m0, m1, m2, m3, m4 = curve.segment_multipliers
    r = float(ratio)

    if r < p0:
        mult = m0
    elif r < p1:
        mult = m0 + (m1 - m0) * (r - p0) / (p1 - p0)
    elif r < p2:
        mult = m1 + (m2 - m1) * (r - p1) / (p2 - p1)
    elif r <= p3:
        mult = m2 + (m3 - m2) * (r - p2) / (p3 - p2)
    elif r <= p4:
        mult = m3 + (m4 - m3) * (r - p3) / (p4 - p3)
    else:
        excess = r - p4
        mult = m4 + math.log(1.0 + excess) * curve.diminishing_returns_factor * 0.1

    return float(clamp(mult, curve.min_multiplier, curve.max_multiplier))


def budget_factor(budget_per_song: float, project_type: str, song_count: int, balance: BalanceConfig) -> float:
    mvc = minimum_viable_cost(project_type, song_count, balance)
    if mvc <= 0:
        raise ConfigurationError(f"minimum viable cost must be positive for {project_type!r}")
    ratio = float(budget_per_song) / mvc
    return budget_curve(dampen_ratio(ratio, balance.budget.dampening_factor), balance.budget)


def variance_multiplier(talent: float, producer: ProducerTier, rng: Pcg32, spec: VarianceSpec) -> Tuple[float, str]:
    """Return (multiplier, outcome).

    Always consumes exactly two draws (outlier roll, then spread) so the
    draw count per song is independent of the outcome.
    """
    skill = (float(talent) + float(producer.skill)) / 2.0
    spread_pct = max(0.0, spec.base_range - spec.skill_reduction * skill / 100.0)

    roll = rng.random()
    spread = rng.random()

    if roll < spec.breakout_chance:
        # low-skill acts break out bigger
        return spec.breakout_min + (spec.breakout_max - spec.breakout_min) * (1.0 - skill / 100.0), "breakout"
    if roll < spec.breakout_chance + spec.failure_chance:
        # high-skill acts fail softer
        return spec.failure_min + (spec.failure_max - spec.failure_min) * (skill / 100.0), "failure"
    return 1.0 + (spread * 2.0 - 1.0) * spread_pct / 100.0, "normal"


def quality_breakdown(
    artist: Artist,
    producer_tier: str,
    time_tier: str,
    budget_per_song: float,
    project_type: str,
    song_count: int,
    balance: BalanceConfig,
    rng: Optional[Pcg32] = None,
) -> QualityBreakdown:
    if project_type not in RECORDING_TYPES:
        raise ValidationError(f"quality applies to recordings, not {project_type!r}", code="invalid_project_type")
    spec = balance.quality
    producer = balance.producer(producer_tier)
    tier = balance.time_tier(time_tier)

    base = float(artist.talent) + float(producer.quality_bonus)
    tf = time_factor(artist.work_ethic, tier, spec)
    pf = popularity_factor(artist.popularity, spec)
    ff = focus_factor(song_count, spec)
    bf = budget_factor(budget_per_song, project_type, song_count, balance)
    mf = mood_factor(artist.mood, spec)

    if rng is None:
        var, outcome = 1.0, "preview"
    else:
        var, outcome = variance_multiplier(artist.talent, producer, rng, spec.variance)

    raw = base * tf * pf * ff * bf * mf * var
    q = int(clamp(round_half_up(raw), spec.floor, spec.ceiling))
    return QualityBreakdown(
        base=base, time=tf, popularity=pf, focus=ff, budget=bf, mood=mf,
        variance=float(var), outcome=outcome, raw=float(raw), quality=q,
    )


def compute_quality(
    artist: Artist,
    producer_tier: str,
    time_tier: str,
    budget_per_song: float,
    project_type: str,
    song_count: int,
    rng: Pcg32,
    balance: BalanceConfig,
) -> int:
    """Authoritative quality for one song (consumes two rng draws)."""
    return quality_breakdown(artist, producer_tier, time_tier, budget_per_song, project_type, song_count, balance, rng).quality


def estimate_quality(
    artist: Artist,
    producer_tier: str,
    time_tier: str,
    budget_per_song: float,
    project_type: str,
    song_count: int,
    balance: BalanceConfig,
) -> int:
    """Preview without variance. Same factors as compute_quality()."""
    return quality_breakdown(artist, producer_tier, time_tier, budget_per_song, project_type, song_count, balance).quality
