"""
core.charts
Competitive 100-position chart simulation.

Steps: competitor noise -> merge with player songs -> rank -> annotate.
Ranking is (streams desc, entry_id asc) so ties, including the one at the
position-100 cutoff, resolve the same way every run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .balance import ChartSpec
from .rng import Pcg32
from .state import Artist, ChartEntry, ChartUpdate, Song, round_half_up


@dataclass(frozen=True)
class Competitor:
    id: str
    title: str
    artist: str
    base_streams: int
    genre: str = ""


@dataclass(frozen=True)
class ChartCandidate:
    entry_id: str
    title: str
    artist: str
    streams: int
    is_competitor: bool
    song_id: Optional[str] = None


def player_entry_id(song_id: str) -> str:
    return f"player_{song_id}"


def competitor_performance(catalog: List[Competitor], rng: Pcg32, spec: ChartSpec) -> List[ChartCandidate]:
    """One variance draw per competitor, in catalog order."""
    out: List[ChartCandidate] = []
    for comp in catalog:
        variance = rng.uniform(spec.competitor_variance_min, spec.competitor_variance_max)
        out.append(
            ChartCandidate(
                entry_id=comp.id,
                title=comp.title,
                artist=comp.artist,
                streams=round_half_up(comp.base_streams * variance),
                is_competitor=True,
            )
        )
    return out


def player_candidates(songs: Iterable[Song], artists: Dict[str, Artist]) -> List[ChartCandidate]:
    out: List[ChartCandidate] = []
    for song in sorted(songs, key=lambda s: s.id):
        if not song.released or song.weekly_streams <= 0:
            continue
        artist = artists.get(song.artist_id)
        out.append(
            ChartCandidate(
                entry_id=player_entry_id(song.id),
                title=song.title,
                artist=artist.name if artist else "Unknown Artist",
                streams=int(song.weekly_streams),
                is_competitor=False,
                song_id=song.id,
            )
        )
    return out


def rank_candidates(candidates: List[ChartCandidate]) -> List[ChartCandidate]:
    return sorted(candidates, key=lambda c: (-int(c.streams), c.entry_id))


def should_remain_on_chart(streams: int, weeks_on_chart: int, position: int, spec: ChartSpec) -> bool:
    if position > spec.size:
        return False
    if weeks_on_chart > spec.long_tenure_weeks and position > spec.long_tenure_position:
        return False
    if streams < spec.low_streams_threshold and position > spec.low_streams_position:
        return False
    return True


def resolve_chart(
    week: int,
    player_songs: List[ChartCandidate],
    catalog: List[Competitor],
    prior_entries: List[ChartEntry],
    rng: Pcg32,
    spec: ChartSpec,
) -> List[ChartEntry]:
    """Rank every candidate; the top `spec.size` get positions, the rest are unplaced."""
    ranked = rank_candidates([*player_songs, *competitor_performance(catalog, rng, spec)])
    prior = {e.entry_id: e for e in prior_entries}

    entries: List[ChartEntry] = []
    for idx, cand in enumerate(ranked):
        rank = idx + 1
        prev = prior.get(cand.entry_id)
        prev_pos = prev.position if prev is not None else None
        prev_weeks = prev.weeks_on_chart if prev is not None and prev_pos is not None else 0

        position: Optional[int] = rank if rank <= spec.size else None
        # an exited player song leaves its rank empty; lower entries keep their numbers
        if position is not None and not cand.is_competitor:
            if not should_remain_on_chart(cand.streams, prev_weeks, rank, spec):
                position = None

        if position is None:
            entries.append(
                ChartEntry(
                    chart_week=int(week),
                    entry_id=cand.entry_id,
                    title=cand.title,
                    artist=cand.artist,
                    streams=int(cand.streams),
                    position=None,
                    movement=0,
                    is_debut=False,
                    peak_position=prev.peak_position if prev is not None else None,
                    weeks_on_chart=0,
                    is_competitor=cand.is_competitor,
                    song_id=cand.song_id,
                )
            )
            continue

        # re-entry after dropping out counts as a fresh debut
        debut = prev_pos is None
        peak = position
        if not debut and prev is not None and prev.peak_position is not None:
            peak = min(int(prev.peak_position), position)
        entries.append(
            ChartEntry(
                chart_week=int(week),
                entry_id=cand.entry_id,
                title=cand.title,
                artist=cand.artist,
                streams=int(cand.streams),
                position=position,
                movement=0 if debut else int(prev_pos) - position,
                is_debut=debut,
                peak_position=peak,
                weeks_on_chart=1 if debut else prev_weeks + 1,
                is_competitor=cand.is_competitor,
                song_id=cand.song_id,
            )
        )
    return entries


def chart_updates(entries: List[ChartEntry]) -> List[ChartUpdate]:
    return [
        ChartUpdate(
            song_id=str(e.song_id),
            title=e.title,
            position=e.position,
            movement=e.movement,
            is_debut=e.is_debut,
            peak_position=e.peak_position,
        )
        for e in entries
        if not e.is_competitor and e.song_id is not None
    ]


def chart_reputation(entries: List[ChartEntry], spec: ChartSpec) -> int:
    """Reputation earned by player songs in the top 10 (more for #1)."""
    gain = 0
    for e in entries:
        if e.is_competitor or e.position is None:
            continue
        if e.position == 1:
            gain += spec.number_one_reputation
        elif e.position <= 10:
            gain += spec.top10_reputation
    return int(gain)
