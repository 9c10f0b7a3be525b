"""
core.effects
Relationship / progression rules:
- effect application (artists, executives, reputation) with clamp rules
- delayed effects queue
- passive weekly drift (artist mood/loyalty, executive decay)
- access tier + focus slot progression
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from .balance import BalanceConfig, DriftSpec
from .state import ACCESS_KINDS, Artist, DelayedEffect, Executive, WeekWorld, clamp

ARTIST_KEYS = {"artist_mood", "artist_loyalty", "artist_popularity"}
EXECUTIVE_KEYS = {"executive_mood", "executive_loyalty"}
EFFECT_KEYS = ARTIST_KEYS | EXECUTIVE_KEYS | {"reputation"}


def _bounded(value: int, delta: int) -> int:
    return int(clamp(int(value) + int(delta), 0, 100))


def apply_artist_effects(artist: Artist, effects: Dict[str, int]) -> Artist:
    """Apply artist_* keys with clamp rules (pure function)."""
    return replace(
        artist,
        mood=_bounded(artist.mood, effects.get("artist_mood", 0)),
        loyalty=_bounded(artist.loyalty, effects.get("artist_loyalty", 0)),
        popularity=_bounded(artist.popularity, effects.get("artist_popularity", 0)),
    )


def apply_executive_effects(executive: Executive, effects: Dict[str, int]) -> Executive:
    return replace(
        executive,
        mood=_bounded(executive.mood, effects.get("executive_mood", 0)),
        loyalty=_bounded(executive.loyalty, effects.get("executive_loyalty", 0)),
    )


def apply_effects(
    world: WeekWorld,
    effects: Dict[str, int],
    *,
    artist_ids: List[str],
    executive_id: Optional[str],
    source: str,
) -> None:
    """Apply an effect map to the working world and record the interactions."""
    rep = int(effects.get("reputation", 0))
    if rep:
        world.reputation = int(clamp(world.reputation + rep, 0, 100))
        world.change("reputation", f"{source}: reputation {rep:+d}", amount=rep)

    if any(k in effects for k in ARTIST_KEYS):
        for aid in artist_ids:
            artist = world.artists.get(aid)
            if artist is None:
                continue
            world.artists[aid] = apply_artist_effects(artist, effects)
            world.change("artist_interaction", f"{source}: {artist.name}", artist_id=aid)

    if executive_id and any(k in effects for k in EXECUTIVE_KEYS):
        ex = world.executives.get(executive_id)
        if ex is not None:
            world.executives[executive_id] = apply_executive_effects(ex, effects)


def due_delayed_effects(queue: List[DelayedEffect], week: int) -> Tuple[List[DelayedEffect], List[DelayedEffect]]:
    due = [x for x in queue if int(x.due_week) <= int(week)]
    remaining = [x for x in queue if int(x.due_week) > int(week)]
    return due, remaining


def schedule_delayed_effect(
    queue: List[DelayedEffect],
    *,
    week: int,
    effects: Dict[str, int],
    source: str,
    artist_ids: List[str],
    executive_id: Optional[str],
    delay_weeks: int = 1,
) -> List[DelayedEffect]:
    """Enqueue a delayed effect. Returns the new queue."""
    if not effects:
        return queue
    item = DelayedEffect(
        due_week=int(week) + int(delay_weeks),
        effects=dict(effects),
        source=str(source),
        from_week=int(week),
        artist_ids=list(artist_ids),
        executive_id=executive_id,
    )
    return [*queue, item]


# -------------------------
# Passive weekly drift
# -------------------------


def drift_artist(artist: Artist, active_projects: int, spec: DriftSpec) -> Artist:
    """Mood and loyalty drift toward neutral; overloaded artists lose mood."""
    mood = int(artist.mood)
    if mood > spec.mood_upper:
        mood = max(spec.neutral, mood - spec.mood_step)
    elif mood < spec.mood_lower:
        mood = min(spec.neutral, mood + spec.mood_step)
    overload = max(0, int(active_projects) - spec.overload_threshold)
    mood -= overload * spec.overload_penalty

    loyalty = int(artist.loyalty)
    if loyalty > spec.neutral:
        loyalty = max(spec.neutral, loyalty - spec.loyalty_step)
    elif loyalty < spec.neutral:
        loyalty = min(spec.neutral, loyalty + spec.loyalty_step)

    return replace(artist, mood=int(clamp(mood, 0, 100)), loyalty=int(clamp(loyalty, 0, 100)))


def decay_executive(executive: Executive, week: int, spec: DriftSpec) -> Executive:
    """Unused executives lose loyalty; idle moods settle toward neutral."""
    if int(executive.last_action_week) == int(week):
        return executive
    loyalty = int(executive.loyalty)
    if int(week) - int(executive.last_action_week) >= spec.exec_unused_weeks:
        loyalty = int(clamp(loyalty - spec.exec_loyalty_penalty, 0, 100))
    mood = int(executive.mood)
    if mood > spec.neutral:
        mood = max(spec.neutral, mood - spec.exec_mood_step)
    elif mood < spec.neutral:
        mood = min(spec.neutral, mood + spec.exec_mood_step)
    return replace(executive, mood=mood, loyalty=loyalty)


# -------------------------
# Progression
# -------------------------


def update_access_tiers(world: WeekWorld, balance: BalanceConfig) -> None:
    """Advance access tiers reached by reputation. Tiers never drop."""
    for kind in ACCESS_KINDS:
        current = world.access[kind]
        target = balance.tier_for_reputation(kind, world.reputation)
        if balance.tier_rank(kind, target.name) <= balance.tier_rank(kind, current):
            continue
        world.access[kind] = target.name
        world.tier_unlock_history[f"{kind}:{target.name}"] = int(world.week)
        world.change("unlock", f"{kind.capitalize()} access unlocked: {target.name}")


def focus_slots_for(reputation: int, current: int, balance: BalanceConfig) -> int:
    spec = balance.focus
    slots = max(int(current), spec.base_slots)
    if int(reputation) >= spec.unlock_reputation:
        slots = max(slots, spec.max_slots)
    return min(slots, spec.max_slots)
