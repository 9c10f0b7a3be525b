"""
core.finance
Financial subsystem (pure):
- streaming: first-week outcome, weekly decay, awareness, access-tier revenue
- tours: per-city settlement (sell-through x ticket price x capacity - costs)
- expenses: operations, salaries (executives every 4th week), one-off costs
- closure: sum(expense breakdown) == expenses; money' = money + revenue - expenses
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Tuple

from .balance import AccessTier, AwarenessSpec, BalanceConfig, StreamingSpec, TourSpec
from .rng import Pcg32
from .state import (
    RECORDING_STAGES,
    RECORDING_TYPES,
    Artist,
    ExpenseBreakdown,
    Executive,
    Project,
    RevenueBreakdown,
    Song,
    TourCity,
    TourStats,
    WeekWorld,
    clamp,
    round_half_up,
)


@dataclass
class WeekLedger:
    """One-off money materialized by actions and lifecycle during the week."""
    signing_bonuses: int = 0
    project_costs: int = 0
    marketing_costs: int = 0
    role_meeting_costs: int = 0
    tour_revenue: int = 0


@dataclass(frozen=True)
class FinancialBreakdown:
    revenue: RevenueBreakdown
    expenses: ExpenseBreakdown
    song_revenue: Dict[str, int] = field(default_factory=dict)

    @property
    def net(self) -> int:
        return int(self.revenue.total - self.expenses.total)


def split_evenly(total: int, parts: int) -> List[int]:
    """Integer split whose pieces sum exactly to total (remainder on the last)."""
    n = max(1, int(parts))
    share = int(total) // n
    out = [share] * n
    out[-1] += int(total) - share * n
    return out


# -------------------------
# Streaming
# -------------------------


def access_revenue_multiplier(access: Dict[str, str], balance: BalanceConfig) -> float:
    """Playlist, press and venue tiers each scale revenue independently."""
    mult = 1.0
    for kind, name in sorted(access.items()):
        mult *= float(balance.access_tier(kind, name).revenue_multiplier)
    return mult


def reputation_bonus(reputation: int, spec: StreamingSpec) -> float:
    return 1.0 + (float(reputation) - 50.0) * spec.reputation_bonus_factor


def first_week_streams(
    *,
    quality: int,
    popularity: int,
    reputation: int,
    playlist_tier: AccessTier,
    marketing_total: float,
    week: int,
    balance: BalanceConfig,
    rng: Pcg32,
) -> int:
    """Streams in a song's release week (one rng draw)."""
    spec = balance.streaming
    base = (
        float(quality) * spec.quality_weight
        + float(playlist_tier.reach_multiplier) * spec.playlist_weight * 100.0
        + float(reputation) * spec.reputation_weight
        + math.sqrt(max(0.0, float(marketing_total)) / 1000.0) * spec.marketing_weight * 50.0
        + float(popularity) * spec.popularity_weight
    )
    star_power = 1.0 + float(popularity) / 100.0 * spec.star_power_max
    variance = rng.uniform(spec.variance_min, spec.variance_max)
    streams = base * star_power * variance * spec.first_week_multiplier * spec.base_streams_per_point
    return max(0, round_half_up(streams * balance.seasonal_multiplier(week)))


def awareness_gain(marketing: Dict[str, float], quality: int, popularity: int, balance: BalanceConfig) -> float:
    raw = 0.0
    for channel, amount in sorted(marketing.items()):
        raw += float(amount) / 1000.0 * balance.channels[channel].awareness_per_1k
    gain = raw * float(quality) / 100.0 * (1.0 + float(popularity) / 200.0)
    return float(min(balance.awareness.gain_cap, gain))


def marketing_factor(marketing: Dict[str, float], balance: BalanceConfig) -> float:
    boost = 0.0
    for channel, amount in sorted(marketing.items()):
        boost += float(amount) / 1000.0 * balance.channels[channel].stream_boost_per_1k
    return float(min(balance.awareness.marketing_factor_cap, 1.0 + boost))


def awareness_modifier(awareness: float, weeks_since_release: int, spec: AwarenessSpec) -> float:
    """Audience familiarity lifts streams from the fifth week on."""
    if weeks_since_release < spec.sustain_weeks:
        return 1.0
    impact = spec.early_impact if weeks_since_release < spec.sustain_weeks + 2 else spec.late_impact
    return float(min(spec.modifier_cap, 1.0 + float(awareness) / 100.0 * impact))


def advance_song_streams(
    song: Song,
    *,
    marketing: Dict[str, float],
    popularity: int,
    reputation: int,
    week: int,
    balance: BalanceConfig,
) -> Tuple[Song, bool]:
    """Decay a released song into next week's streams and awareness.

    Returns (song, broke_through_now).
    """
    if not song.released or song.dormant or song.release_week is None:
        return song, False
    spec = balance.streaming
    aw_spec = balance.awareness
    weeks = int(week) + 1 - int(song.release_week)

    # awareness: sustained by marketing early, then decays
    awareness = float(song.awareness)
    if weeks < aw_spec.sustain_weeks:
        awareness += aw_spec.sustain_share * awareness_gain(marketing, song.quality, popularity, balance)
    else:
        awareness *= 1.0 - aw_spec.decay_rate
    awareness = float(clamp(awareness, 0.0, 100.0))

    broke = False
    breakthrough = bool(song.breakthrough)
    if not breakthrough and awareness >= aw_spec.breakthrough_threshold and song.quality >= aw_spec.breakthrough_min_quality:
        breakthrough = True
        broke = True

    if weeks > spec.max_decay_weeks:
        return replace(song, weekly_streams=0, awareness=awareness, breakthrough=breakthrough, dormant=True), broke

    mkt = marketing_factor(marketing, balance) if weeks < aw_spec.sustain_weeks else 1.0
    streams = (
        float(song.initial_streams)
        * (1.0 - spec.weekly_decay_rate) ** weeks
        * reputation_bonus(reputation, spec)
        * mkt
        * awareness_modifier(awareness, weeks, aw_spec)
        * (aw_spec.breakthrough_multiplier if breakthrough else 1.0)
    )
    return replace(song, weekly_streams=max(0, round_half_up(streams)), awareness=awareness, breakthrough=breakthrough), broke


def song_revenue(streams: int, access_mult: float, spec: StreamingSpec) -> int:
    revenue = round_half_up(float(streams) * spec.revenue_per_stream * access_mult)
    if revenue < spec.minimum_revenue_threshold:
        return 0
    return revenue


def streaming_revenue(songs: Iterable[Song], access: Dict[str, str], balance: BalanceConfig) -> Tuple[int, Dict[str, int]]:
    mult = access_revenue_multiplier(access, balance)
    per_song: Dict[str, int] = {}
    for song in songs:
        if not song.released or song.dormant or song.weekly_streams <= 0:
            continue
        per_song[song.id] = song_revenue(song.weekly_streams, mult, balance.streaming)
    return int(sum(per_song.values())), per_song


# -------------------------
# Tours
# -------------------------


def venue_position_in_tier(capacity: int, tier: AccessTier) -> float:
    span = int(tier.capacity_max) - int(tier.capacity_min)
    if span <= 0:
        return 0.0
    return float(clamp((int(capacity) - int(tier.capacity_min)) / float(span), 0.0, 1.0))


def sell_through_rate(
    *,
    capacity: int,
    marketing_per_city: int,
    reputation: int,
    popularity: int,
    position: float,
    spec: TourSpec,
) -> float:
    popularity_effect = 1.0 - position * spec.popularity_scaling_factor
    marketing_bonus = (float(marketing_per_city) / float(capacity)) * spec.marketing_effectiveness if capacity > 0 else 0.0
    rate = (
        spec.sell_through_base
        + float(reputation) / 100.0 * spec.reputation_modifier
        + float(popularity) / 100.0 * spec.local_popularity_weight * popularity_effect
        + marketing_bonus
        + (1.0 - position) * spec.venue_size_bonus
    )
    return float(min(1.0, max(0.0, rate)))


def ticket_price(capacity: int, popularity: int, position: float, spec: TourSpec) -> float:
    base = spec.ticket_price_base + float(capacity) * spec.ticket_price_per_seat
    # popular acts in small rooms charge a premium
    scarcity = 1.0 + float(popularity) / 100.0 * (spec.scarcity_base - position * spec.scarcity_slope)
    return float(base * scarcity)


def tour_city(
    *,
    city_number: int,
    week: int,
    capacity: int,
    marketing_per_city: int,
    reputation: int,
    popularity: int,
    venue_tier: AccessTier,
    spec: TourSpec,
) -> TourCity:
    pos = venue_position_in_tier(capacity, venue_tier)
    rate = sell_through_rate(
        capacity=capacity,
        marketing_per_city=marketing_per_city,
        reputation=reputation,
        popularity=popularity,
        position=pos,
        spec=spec,
    )
    price = ticket_price(capacity, popularity, pos, spec)
    ticket_rev = round_half_up(capacity * rate * price)
    return TourCity(
        city_number=int(city_number),
        venue_capacity=int(capacity),
        sell_through=rate,
        ticket_price=price,
        ticket_revenue=ticket_rev,
        merch_revenue=round_half_up(ticket_rev * spec.merch_percentage),
        venue_fee=round_half_up(capacity * spec.venue_fee_per_seat),
        production_fee=round_half_up(capacity * spec.production_fee_per_seat),
        marketing_cost=int(marketing_per_city),
        week=int(week),
    )


def settle_tour(stats: TourStats) -> Tuple[int, int, int]:
    """Return (gross revenue, venue+production costs, marketing costs)."""
    revenue = sum(c.revenue for c in stats.cities)
    production = sum(c.venue_fee + c.production_fee for c in stats.cities)
    marketing = sum(c.marketing_cost for c in stats.cities)
    return int(revenue), int(production), int(marketing)


# -------------------------
# Expenses
# -------------------------


def project_total_cost(project: Project, balance: BalanceConfig) -> int:
    if project.type not in RECORDING_TYPES:
        return 0
    producer = balance.producer(project.producer_tier)
    tier = balance.time_tier(project.time_investment)
    return round_half_up(
        float(project.budget_per_song) * int(project.song_count) * producer.cost_multiplier * tier.cost_multiplier
    )


def stage_cost(project: Project, entering: str, balance: BalanceConfig) -> int:
    """Budget consumed when a recording project enters `entering`.

    The final charged stage takes whatever is left, so shares sum exactly.
    """
    shares = balance.projects.stage_cost_shares
    if project.type not in RECORDING_TYPES or entering not in shares:
        return 0
    total = project_total_cost(project, balance)
    last = max(shares, key=lambda s: RECORDING_STAGES.index(s))
    if entering == last:
        return max(0, total - int(project.cost_spent))
    return round_half_up(total * float(shares[entering]))


def is_salary_week(week: int, balance: BalanceConfig) -> bool:
    return int(week) % int(balance.economy.executive_salary_interval) == 0


def artist_salaries(artists: Iterable[Artist], balance: BalanceConfig) -> int:
    total = 0
    for a in artists:
        if a.signed:
            total += int(a.weekly_cost) if a.weekly_cost > 0 else balance.economy.default_artist_weekly_cost
    return int(total)


def executive_salaries(executives: Iterable[Executive], week: int, balance: BalanceConfig) -> int:
    """Executives are paid in one batch every 4th week, never weekly."""
    if not is_salary_week(week, balance):
        return 0
    return int(sum(int(e.salary) for e in executives))


def resolve_finances(world: WeekWorld, ledger: WeekLedger, balance: BalanceConfig) -> FinancialBreakdown:
    streaming, per_song = streaming_revenue(world.songs.values(), world.access, balance)
    revenue = RevenueBreakdown(streaming=int(streaming), tours=int(ledger.tour_revenue))
    expenses = ExpenseBreakdown(
        operations=int(balance.economy.weekly_operations),
        artist_salaries=artist_salaries(world.artists.values(), balance),
        executive_salaries=executive_salaries(world.executives.values(), world.week, balance),
        signing_bonuses=int(ledger.signing_bonuses),
        project_costs=int(ledger.project_costs),
        marketing_costs=int(ledger.marketing_costs),
        role_meeting_costs=int(ledger.role_meeting_costs),
    )
    return FinancialBreakdown(revenue=revenue, expenses=expenses, song_revenue=per_song)


def book_song_revenue(world: WeekWorld, song_revenue_map: Dict[str, int]) -> None:
    """Accumulate this week's streams/revenue onto songs."""
    for sid, song in list(world.songs.items()):
        if not song.released or song.dormant:
            continue
        rev = int(song_revenue_map.get(sid, 0))
        world.songs[sid] = replace(
            song,
            total_streams=int(song.total_streams) + int(song.weekly_streams),
            total_revenue=int(song.total_revenue) + rev,
            last_week_revenue=rev,
        )


def apply_finances(money: int, breakdown: FinancialBreakdown, balance: BalanceConfig) -> Tuple[int, bool]:
    """Return (money', bankrupt_flag). Negative cash is allowed, never clamped."""
    new_money = int(money) + int(breakdown.revenue.total) - int(breakdown.expenses.total)
    return new_money, new_money < int(balance.economy.bankruptcy_threshold)


def per_song_marketing(marketing: Dict[str, int], song_count: int) -> Dict[str, float]:
    n = max(1, int(song_count))
    return {str(k): float(v) / n for k, v in marketing.items()}
