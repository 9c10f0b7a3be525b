"""
core.lifecycle
Project / song lifecycle.

Recording projects: planning -> writing -> recording -> recorded -> released
Tours:              planning -> production -> touring -> completed

A project moves at most one stage per week and never backwards. The
`recorded -> released` edge is driven only by its release firing.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from .balance import AccessTier, BalanceConfig
from .errors import ConsistencyWarning, ReleaseConflictError, ValidationError
from .finance import (
    WeekLedger,
    awareness_gain,
    first_week_streams,
    per_song_marketing,
    settle_tour,
    split_evenly,
    stage_cost,
    tour_city,
)
from .quality import compute_quality, quality_breakdown
from .rng import Pcg32
from .state import (
    RECORDING_STAGES,
    RECORDING_TYPES,
    TOUR_STAGES,
    Diagnostic,
    GameState,
    Project,
    RecordingSession,
    Release,
    RepairRecord,
    Song,
    TourStats,
    WeekWorld,
    find_metadata,
    replace_metadata,
    round_half_up,
)


def stage_sequence(project_type: str) -> Tuple[str, ...]:
    return TOUR_STAGES if project_type == "tour" else RECORDING_STAGES


def stage_index(project: Project) -> int:
    return stage_sequence(project.type).index(project.stage)


def is_terminal(project: Project) -> bool:
    return project.stage == stage_sequence(project.type)[-1]


def next_stage(project: Project) -> Optional[str]:
    seq = stage_sequence(project.type)
    i = seq.index(project.stage)
    return seq[i + 1] if i + 1 < len(seq) else None


def stage_duration(project: Project, balance: BalanceConfig) -> Optional[int]:
    """Weeks the current stage lasts; None when an external trigger ends it."""
    durations = balance.projects.stage_durations
    stage = project.stage
    if project.type == "tour":
        if stage == "touring":
            return max(1, int(project.cities))
        if stage in ("planning", "production"):
            return int(durations[stage])
        return None
    if stage == "planning":
        return int(durations["planning"])
    if stage in ("writing", "recording"):
        modifier = balance.time_tier(project.time_investment).duration_modifier
        return max(1, int(durations[stage]) + int(modifier))
    return None


def song_title(project: Project, n: int) -> str:
    if project.type == "single" and project.song_count == 1:
        return project.title
    return f"{project.title} (Track {n})"


def make_songs(project: Project, world: WeekWorld, balance: BalanceConfig, rng: Pcg32) -> Tuple[List[Song], RecordingSession]:
    """Record every planned song (two quality draws per song, in track order)."""
    artist = world.artists[project.artist_id]
    songs: List[Song] = []
    for n in range(int(project.songs_created) + 1, int(project.song_count) + 1):
        q = compute_quality(
            artist,
            project.producer_tier,
            project.time_investment,
            project.budget_per_song,
            project.type,
            project.song_count,
            rng,
            balance,
        )
        songs.append(
            Song(
                id=f"{project.id}-t{n}",
                title=song_title(project, n),
                artist_id=project.artist_id,
                project_id=project.id,
                quality=q,
            )
        )
    preview = quality_breakdown(
        artist, project.producer_tier, project.time_investment, project.budget_per_song,
        project.type, project.song_count, balance,
    )
    session = RecordingSession(
        week=int(world.week),
        producer_tier=project.producer_tier,
        time_investment=project.time_investment,
        budget_per_song=int(project.budget_per_song),
        budget_factor=float(preview.budget),
        song_ids=[s.id for s in songs],
    )
    return songs, session


def _venue_tier_for(capacity: int, world: WeekWorld, balance: BalanceConfig) -> AccessTier:
    current = balance.access_tier("venue", world.access["venue"])
    for tier in balance.access_tiers["venue"]:
        if tier.capacity_min <= capacity <= tier.capacity_max and tier.capacity_max > 0:
            if balance.tier_rank("venue", tier.name) <= balance.tier_rank("venue", current.name):
                return tier
    return current


def _play_city(project: Project, world: WeekWorld, balance: BalanceConfig, ledger: WeekLedger) -> Project:
    stats = find_metadata(project.metadata, TourStats) or TourStats()
    if len(stats.cities) < int(project.cities):
        artist = world.artists[project.artist_id]
        n = len(stats.cities) + 1
        city = tour_city(
            city_number=n,
            week=world.week,
            capacity=int(project.venue_capacity),
            marketing_per_city=split_evenly(project.marketing_budget, project.cities)[n - 1],
            reputation=world.reputation,
            popularity=artist.popularity,
            venue_tier=_venue_tier_for(int(project.venue_capacity), world, balance),
            spec=balance.tour,
        )
        stats = TourStats(cities=[*stats.cities, city], settled_week=stats.settled_week)
    project = replace(project, metadata=replace_metadata(project.metadata, stats))

    if len(stats.cities) < int(project.cities):
        return project
    if stats.settled_week is not None:
        return replace(project, stage="completed", stage_started_week=int(world.week))

    # last city played: settle the whole tour once
    revenue, production, marketing = settle_tour(stats)
    ledger.tour_revenue += revenue
    ledger.project_costs += production
    ledger.marketing_costs += marketing
    stats = replace(stats, settled_week=int(world.week))
    profit = revenue - production - marketing
    world.change(
        "project_complete",
        f"Tour '{project.title}' finished {len(stats.cities)} cities (net ${profit:,})",
        amount=profit,
        artist_id=project.artist_id,
        project_id=project.id,
    )
    return replace(
        project,
        stage="completed",
        stage_started_week=int(world.week),
        cost_spent=int(project.cost_spent) + production + marketing,
        metadata=replace_metadata(project.metadata, stats),
    )


def advance_project(project: Project, world: WeekWorld, balance: BalanceConfig, rng: Pcg32, ledger: WeekLedger) -> Project:
    if is_terminal(project) or project.stage == "recorded":
        return project

    if project.type == "tour" and project.stage == "touring":
        if int(world.week) > int(project.stage_started_week):
            return _play_city(project, world, balance, ledger)
        return project

    duration = stage_duration(project, balance)
    if duration is None or int(world.week) - int(project.stage_started_week) < duration:
        return project

    target = next_stage(project)
    if target is None:
        return project

    if project.type in RECORDING_TYPES and project.stage == "recording":
        songs, session = make_songs(project, world, balance, rng)
        for song in songs:
            world.songs[song.id] = song
        world.change(
            "songs_recorded",
            f"'{project.title}' recorded {len(songs)} song(s)",
            amount=len(songs),
            artist_id=project.artist_id,
            project_id=project.id,
        )
        return replace(
            project,
            stage=target,
            stage_started_week=int(world.week),
            songs_created=int(project.songs_created) + len(songs),
            metadata=[*project.metadata, session],
        )

    cost = stage_cost(project, target, balance)
    if cost:
        ledger.project_costs += cost
    world.change(
        "project_stage",
        f"'{project.title}' moved to {target}",
        amount=cost,
        artist_id=project.artist_id,
        project_id=project.id,
    )
    return replace(project, stage=target, stage_started_week=int(world.week), cost_spent=int(project.cost_spent) + cost)


def advance_projects(world: WeekWorld, balance: BalanceConfig, rng: Pcg32, ledger: WeekLedger) -> None:
    """Advance every active project one step (project id order)."""
    for pid in sorted(world.projects):
        world.projects[pid] = advance_project(world.projects[pid], world, balance, rng, ledger)


# -------------------------
# Releases
# -------------------------


def reserved_song_ids(releases: List[Release]) -> Dict[str, str]:
    """song_id -> release_id for every planned release."""
    out: Dict[str, str] = {}
    for r in sorted(releases, key=lambda x: x.id):
        if r.status != "planned":
            continue
        for sid in r.song_ids:
            out.setdefault(sid, r.id)
    return out


def schedule_release(releases: List[Release], songs: Dict[str, Song], release: Release, *, week: int) -> List[Release]:
    """Return releases + release, or raise without touching the inputs."""
    if not release.song_ids:
        raise ValidationError("release has no songs", code="empty_release")
    if len(set(release.song_ids)) != len(release.song_ids):
        raise ValidationError("release lists a song twice", code="duplicate_song")
    if any(r.id == release.id for r in releases):
        raise ValidationError(f"release id already used: {release.id}", code="duplicate_release")
    if int(release.scheduled_week) < int(week):
        raise ValidationError("release cannot be scheduled in the past", code="past_release")

    reserved = reserved_song_ids(releases)
    for sid in release.song_ids:
        song = songs.get(sid)
        if song is None:
            raise ValidationError(f"unknown song: {sid}", code="unknown_song")
        if song.artist_id != release.artist_id:
            raise ValidationError(f"song {sid} belongs to {song.artist_id}, not {release.artist_id}", code="artist_mismatch")
        if not song.recorded or song.released:
            raise ValidationError(f"song not releasable: {sid}", code="song_not_releasable")
        if sid in reserved:
            raise ReleaseConflictError(f"song {sid} is already reserved by release {reserved[sid]}")
    return [*releases, release]


def fire_releases(world: WeekWorld, balance: BalanceConfig, rng: Pcg32, ledger: WeekLedger) -> None:
    """Publish releases due this week; one stream-variance draw per song."""
    due = [r for r in world.releases.values() if r.status == "planned" and int(r.scheduled_week) == int(world.week)]
    playlist = balance.access_tier("playlist", world.access["playlist"])
    touched: List[str] = []

    for release in sorted(due, key=lambda r: (int(r.scheduled_week), r.id)):
        marketing = per_song_marketing(release.marketing, len(release.song_ids))
        charged = round_half_up(release.marketing_total * balance.seasonal_cost_multiplier(world.week))
        ledger.marketing_costs += charged
        for sid in release.song_ids:
            song = world.songs.get(sid)
            if song is None:
                world.diagnostics.append(
                    Diagnostic(severity="consistency", code="missing_song", message=f"release {release.id} lists unknown song {sid}")
                )
                continue
            artist = world.artists[song.artist_id]
            streams = first_week_streams(
                quality=song.quality,
                popularity=artist.popularity,
                reputation=world.reputation,
                playlist_tier=playlist,
                marketing_total=sum(marketing.values()),
                week=world.week,
                balance=balance,
                rng=rng,
            )
            world.songs[sid] = replace(
                song,
                released=True,
                release_id=release.id,
                release_week=int(world.week),
                initial_streams=streams,
                weekly_streams=streams,
                awareness=awareness_gain(marketing, song.quality, artist.popularity, balance),
            )
            if song.project_id not in touched:
                touched.append(song.project_id)
        world.releases[release.id] = replace(release, status="released")
        world.change(
            "release",
            f"Released '{release.title}' ({len(release.song_ids)} song(s))",
            amount=charged,
            artist_id=release.artist_id,
            release_id=release.id,
        )

    for pid in sorted(touched):
        project = world.projects.get(pid)
        if project is None or project.stage != "recorded":
            continue
        songs = [s for s in world.songs.values() if s.project_id == pid]
        if len(songs) >= int(project.song_count) and all(s.released for s in songs):
            world.projects[pid] = replace(project, stage="released", stage_started_week=int(world.week))
            world.change(
                "project_complete",
                f"'{project.title}' fully released",
                artist_id=project.artist_id,
                project_id=pid,
            )


# -------------------------
# Repair pass
# -------------------------


def repair_state(state: GameState, balance: BalanceConfig) -> Tuple[GameState, List[RepairRecord], List[Diagnostic]]:
    """Forward-only, idempotent self-healing of stuck lifecycle state (pure).

    Corrections are tagged onto the corrected record and returned; state
    without anything to fix comes back as the same object.
    """
    week = int(state.week)
    records: List[RepairRecord] = []
    diagnostics: List[Diagnostic] = []
    songs = {s.id: s for s in state.songs}
    releases = {r.id: r for r in state.releases}
    projects = {p.id: p for p in state.projects}

    # 1) songs of fired releases that never got flagged
    for r in state.releases:
        if r.status != "released":
            continue
        for sid in r.song_ids:
            song = songs.get(sid)
            if song is not None and not song.released:
                songs[sid] = replace(song, released=True, release_id=r.id, release_week=int(r.scheduled_week))
                records.append(RepairRecord(week, "song", sid, "unreleased", "released", f"release {r.id} already fired"))

    # 2) planned releases whose week has passed fire now
    for r in state.releases:
        if r.status == "planned" and int(r.scheduled_week) < week:
            rec = RepairRecord(week, "release", r.id, f"week {r.scheduled_week}", f"week {week}", "past-due planned release")
            releases[r.id] = replace(r, scheduled_week=week, metadata=[*r.metadata, rec])
            records.append(rec)

    # 3) double reservations have no safe correction
    seen: Dict[str, str] = {}
    for r in sorted(releases.values(), key=lambda x: x.id):
        if r.status != "planned":
            continue
        for sid in r.song_ids:
            if sid in seen:
                diagnostics.append(
                    Diagnostic.from_error(
                        ConsistencyWarning(
                            f"song {sid} is in planned releases {seen[sid]} and {r.id}",
                            code="song_double_reserved",
                        )
                    )
                )
            else:
                seen[sid] = r.id

    # 4) projects behind their songs or settlement
    for pid in sorted(projects):
        p = projects[pid]
        if p.type == "tour":
            stats = find_metadata(p.metadata, TourStats)
            if p.stage == "touring" and stats is not None and stats.settled_week is not None:
                rec = RepairRecord(week, "project", pid, "touring", "completed", "tour already settled")
                projects[pid] = replace(p, stage="completed", metadata=[*p.metadata, rec])
                records.append(rec)
            continue
        if p.type not in RECORDING_TYPES:
            continue
        own = [s for s in songs.values() if s.project_id == pid]
        if p.stage in ("planning", "writing", "recording") and p.song_count > 0 and len(own) >= p.song_count:
            rec = RepairRecord(week, "project", pid, p.stage, "recorded", "songs already recorded")
            p = replace(p, stage="recorded", songs_created=len(own), metadata=[*p.metadata, rec])
            records.append(rec)
        if p.stage == "recorded" and len(own) >= p.song_count > 0 and all(s.released for s in own):
            rec = RepairRecord(week, "project", pid, "recorded", "released", "all songs already released")
            p = replace(p, stage="released", metadata=[*p.metadata, rec])
            records.append(rec)
        projects[pid] = p

    if not records:
        return state, [], diagnostics
    repaired = replace(
        state,
        songs=[songs[s.id] for s in state.songs],
        releases=[releases[r.id] for r in state.releases],
        projects=[projects[p.id] for p in state.projects],
    )
    return repaired, records, diagnostics
