"""
core.balance
Typed, read-only balance tables consumed by every subsystem.

Instances are built (and validated) by content.schemas.balance_from_mapping();
core never falls back to guessed constants for anything affecting money.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

from .errors import ConfigurationError


@dataclass(frozen=True)
class EconomySpec:
    starting_money: int
    starting_reputation: int
    weekly_operations: int
    bankruptcy_threshold: int
    default_artist_weekly_cost: int
    executive_salary_interval: int


@dataclass(frozen=True)
class FocusSpec:
    base_slots: int
    max_slots: int
    unlock_reputation: int


@dataclass(frozen=True)
class ProjectSpec:
    base_per_song_cost: Dict[str, int]
    economies_of_scale: List[Tuple[int, float]]       # (max_songs, multiplier), ascending
    baseline_quality_multiplier: Dict[str, float]
    song_count_limits: Dict[str, Tuple[int, int]]
    stage_cost_shares: Dict[str, float]               # stage entered -> share of total cost
    stage_durations: Dict[str, int]
    max_active_projects: int


@dataclass(frozen=True)
class ProducerTier:
    name: str
    unlock_reputation: int
    cost_multiplier: float
    quality_bonus: float
    skill: float


@dataclass(frozen=True)
class TimeTier:
    name: str
    quality_multiplier: float
    cost_multiplier: float
    duration_modifier: int


@dataclass(frozen=True)
class VarianceSpec:
    base_range: float
    skill_reduction: float
    breakout_chance: float
    failure_chance: float
    breakout_min: float
    breakout_max: float
    failure_min: float
    failure_max: float


@dataclass(frozen=True)
class QualitySpec:
    floor: int
    ceiling: int
    work_ethic_base: float
    work_ethic_scale: float
    popularity_base: float
    popularity_scale: float
    mood_base: float
    mood_scale: float
    focus_free_songs: int
    focus_fatigue_rate: float
    variance: VarianceSpec


@dataclass(frozen=True)
class BudgetCurve:
    dampening_factor: float
    breakpoints: Tuple[float, float, float, float, float]
    segment_multipliers: Tuple[float, float, float, float, float]
    min_multiplier: float
    max_multiplier: float
    diminishing_returns_factor: float


@dataclass(frozen=True)
class StreamingSpec:
    quality_weight: float
    playlist_weight: float
    reputation_weight: float
    marketing_weight: float
    popularity_weight: float
    star_power_max: float
    base_streams_per_point: float
    first_week_multiplier: float
    variance_min: float
    variance_max: float
    weekly_decay_rate: float
    max_decay_weeks: int
    revenue_per_stream: float
    reputation_bonus_factor: float
    minimum_revenue_threshold: int


@dataclass(frozen=True)
class MarketingChannel:
    name: str
    awareness_per_1k: float
    stream_boost_per_1k: float


@dataclass(frozen=True)
class AwarenessSpec:
    gain_cap: float
    sustain_weeks: int
    sustain_share: float
    decay_rate: float
    breakthrough_threshold: float
    breakthrough_min_quality: int
    breakthrough_multiplier: float
    early_impact: float
    late_impact: float
    modifier_cap: float
    marketing_factor_cap: float


@dataclass(frozen=True)
class AccessTier:
    name: str
    threshold: int
    revenue_multiplier: float
    reach_multiplier: float
    capacity_min: int = 0
    capacity_max: int = 0


@dataclass(frozen=True)
class TourSpec:
    sell_through_base: float
    reputation_modifier: float
    local_popularity_weight: float
    marketing_effectiveness: float
    venue_size_bonus: float
    popularity_scaling_factor: float
    ticket_price_base: float
    ticket_price_per_seat: float
    scarcity_base: float
    scarcity_slope: float
    merch_percentage: float
    venue_fee_per_seat: float
    production_fee_per_seat: float
    max_cities: int


@dataclass(frozen=True)
class ChartSpec:
    size: int
    competitor_variance_min: float
    competitor_variance_max: float
    long_tenure_weeks: int
    long_tenure_position: int
    low_streams_threshold: int
    low_streams_position: int
    top10_reputation: int
    number_one_reputation: int


@dataclass(frozen=True)
class DriftSpec:
    neutral: int
    mood_upper: int
    mood_lower: int
    mood_step: int
    loyalty_step: int
    overload_threshold: int
    overload_penalty: int
    exec_unused_weeks: int
    exec_loyalty_penalty: int
    exec_mood_step: int


@dataclass(frozen=True)
class BalanceConfig:
    version: str
    economy: EconomySpec
    focus: FocusSpec
    projects: ProjectSpec
    producer_tiers: Dict[str, ProducerTier]
    time_tiers: Dict[str, TimeTier]
    quality: QualitySpec
    budget: BudgetCurve
    streaming: StreamingSpec
    channels: Dict[str, MarketingChannel]
    awareness: AwarenessSpec
    seasonal: Dict[str, float]                        # q1..q4 -> revenue multiplier
    seasonal_cost: Dict[str, float]                   # q1..q4 -> release marketing cost multiplier
    access_tiers: Dict[str, List[AccessTier]]         # ordered by threshold
    tour: TourSpec
    chart: ChartSpec
    drift: DriftSpec

    def producer(self, name: str) -> ProducerTier:
        try:
            return self.producer_tiers[str(name)]
        except KeyError:
            raise ConfigurationError(f"unknown producer tier: {name!r}") from None

    def time_tier(self, name: str) -> TimeTier:
        try:
            return self.time_tiers[str(name)]
        except KeyError:
            raise ConfigurationError(f"unknown time investment tier: {name!r}") from None

    def access_tier(self, kind: str, name: str) -> AccessTier:
        for tier in self.access_tiers.get(kind, []):
            if tier.name == name:
                return tier
        raise ConfigurationError(f"unknown {kind} access tier: {name!r}")

    def tier_for_reputation(self, kind: str, reputation: int) -> AccessTier:
        """Highest tier whose threshold the reputation reaches."""
        tiers = self.access_tiers.get(kind)
        if not tiers:
            raise ConfigurationError(f"no access tiers configured for {kind!r}")
        best = tiers[0]
        for tier in tiers:
            if int(reputation) >= tier.threshold:
                best = tier
        return best

    def tier_rank(self, kind: str, name: str) -> int:
        for i, tier in enumerate(self.access_tiers.get(kind, [])):
            if tier.name == name:
                return i
        raise ConfigurationError(f"unknown {kind} access tier: {name!r}")

    @staticmethod
    def quarter(week: int) -> str:
        """Quarter of the (52-week) year."""
        w = (int(week) - 1) % 52 + 1
        if w <= 13:
            return "q1"
        if w <= 26:
            return "q2"
        if w <= 39:
            return "q3"
        return "q4"

    def seasonal_multiplier(self, week: int) -> float:
        return float(self.seasonal[self.quarter(week)])

    def seasonal_cost_multiplier(self, week: int) -> float:
        return float(self.seasonal_cost[self.quarter(week)])
