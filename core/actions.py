"""
core.actions
Player actions for a week and their immediate effects.

Contracts:
- Action: typed intent (sign, start project, schedule release, role meeting)
- validate_* raise ValidationError; the orchestrator turns that into a
  diagnostic and drops the action, the week still resolves.
- apply_action mutates only the WeekWorld working copy.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .balance import BalanceConfig
from .effects import apply_effects, schedule_delayed_effect
from .errors import ValidationError
from .finance import WeekLedger
from .lifecycle import is_terminal, schedule_release
from .state import PROJECT_TYPES, Project, Release, WeekWorld

TARGET_SCOPES = {"global", "predetermined", "user_selected"}


# -------------------------
# Meeting catalog
# -------------------------


@dataclass(frozen=True)
class MeetingChoice:
    id: str
    label: str
    cost: int
    immediate: Dict[str, int] = field(default_factory=dict)
    delayed: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Meeting:
    id: str
    role: str
    title: str
    target_scope: str
    choices: List[MeetingChoice]

    def choice(self, choice_id: str) -> Optional[MeetingChoice]:
        return next((c for c in self.choices if c.id == str(choice_id)), None)


# -------------------------
# Actions
# -------------------------


@dataclass(frozen=True)
class SignArtist:
    artist_id: str
    kind: str = "sign_artist"


@dataclass(frozen=True)
class StartProject:
    project_id: str
    artist_id: str
    title: str
    project_type: str
    song_count: int = 1
    budget_per_song: int = 0
    producer_tier: str = "local"
    time_investment: str = "standard"
    cities: int = 0
    venue_capacity: int = 0
    marketing_budget: int = 0
    kind: str = "start_project"


@dataclass(frozen=True)
class ScheduleRelease:
    release_id: str
    artist_id: str
    title: str
    song_ids: List[str]
    scheduled_week: int
    marketing: Dict[str, int] = field(default_factory=dict)
    kind: str = "schedule_release"


@dataclass(frozen=True)
class RoleMeeting:
    executive_id: str
    meeting_id: str
    choice_id: str
    artist_id: Optional[str] = None
    kind: str = "role_meeting"


Action = Union[SignArtist, StartProject, ScheduleRelease, RoleMeeting]

SLOT_COST = {"sign_artist": 1, "start_project": 1, "role_meeting": 1, "schedule_release": 0}


def slot_cost(action: Action) -> int:
    return int(SLOT_COST.get(action.kind, 1))


def action_from_dict(d: Mapping[str, Any]) -> Action:
    """Parse a raw action mapping (e.g. from a request body)."""
    data = dict(d)
    kind = str(data.pop("kind", "")).strip()
    try:
        if kind == "sign_artist":
            return SignArtist(artist_id=str(data["artist_id"]))
        if kind == "start_project":
            return StartProject(
                project_id=str(data["project_id"]),
                artist_id=str(data["artist_id"]),
                title=str(data.get("title") or data["project_id"]),
                project_type=str(data["project_type"]),
                song_count=int(data.get("song_count", 1)),
                budget_per_song=int(data.get("budget_per_song", 0)),
                producer_tier=str(data.get("producer_tier", "local")),
                time_investment=str(data.get("time_investment", "standard")),
                cities=int(data.get("cities", 0)),
                venue_capacity=int(data.get("venue_capacity", 0)),
                marketing_budget=int(data.get("marketing_budget", 0)),
            )
        if kind == "schedule_release":
            return ScheduleRelease(
                release_id=str(data["release_id"]),
                artist_id=str(data["artist_id"]),
                title=str(data.get("title") or data["release_id"]),
                song_ids=[str(x) for x in list(data["song_ids"])],
                scheduled_week=int(data["scheduled_week"]),
                marketing={str(k): int(v) for k, v in dict(data.get("marketing") or {}).items()},
            )
        if kind == "role_meeting":
            aid = data.get("artist_id")
            return RoleMeeting(
                executive_id=str(data["executive_id"]),
                meeting_id=str(data["meeting_id"]),
                choice_id=str(data["choice_id"]),
                artist_id=None if aid is None else str(aid),
            )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"malformed {kind or 'action'}: {e}", code="malformed_action") from e
    raise ValidationError(f"unknown action kind: {kind!r}", code="unknown_action")


# -------------------------
# Validation
# -------------------------


def _signed_artist(world: WeekWorld, artist_id: str):
    artist = world.artists.get(str(artist_id))
    if artist is None:
        raise ValidationError(f"unknown artist: {artist_id}", code="unknown_artist")
    if not artist.signed:
        raise ValidationError(f"artist not signed: {artist_id}", code="artist_not_signed")
    return artist


def validate_start_project(action: StartProject, world: WeekWorld, balance: BalanceConfig) -> None:
    _signed_artist(world, action.artist_id)
    if action.project_id in world.projects:
        raise ValidationError(f"project id already used: {action.project_id}", code="duplicate_project")
    if action.project_type not in PROJECT_TYPES:
        raise ValidationError(f"unknown project type: {action.project_type}", code="invalid_project_type")

    active = [p for p in world.projects.values() if p.artist_id == action.artist_id and not is_terminal(p)]
    if len(active) >= balance.projects.max_active_projects:
        raise ValidationError(f"artist {action.artist_id} has too many active projects", code="artist_busy")

    if action.project_type == "tour":
        venue = balance.access_tier("venue", world.access["venue"])
        if venue.capacity_max <= 0:
            raise ValidationError("no venue access yet", code="venue_locked")
        if not 1 <= int(action.cities) <= balance.tour.max_cities:
            raise ValidationError(f"cities must be 1..{balance.tour.max_cities}", code="invalid_cities")
        if not 0 < int(action.venue_capacity) <= venue.capacity_max:
            raise ValidationError(f"venue capacity above {venue.name} access", code="venue_locked")
        if int(action.marketing_budget) < 0:
            raise ValidationError("negative marketing budget", code="invalid_budget")
        return

    lo, hi = balance.projects.song_count_limits[action.project_type]
    if not lo <= int(action.song_count) <= hi:
        raise ValidationError(f"{action.project_type} needs {lo}..{hi} songs", code="invalid_song_count")
    if int(action.budget_per_song) < 0:
        raise ValidationError("negative budget", code="invalid_budget")
    if action.producer_tier not in balance.producer_tiers:
        raise ValidationError(f"unknown producer tier: {action.producer_tier}", code="invalid_producer")
    if world.reputation < balance.producer_tiers[action.producer_tier].unlock_reputation:
        raise ValidationError(f"producer tier locked: {action.producer_tier}", code="producer_locked")
    if action.time_investment not in balance.time_tiers:
        raise ValidationError(f"unknown time investment: {action.time_investment}", code="invalid_time_tier")


def validate_role_meeting(
    action: RoleMeeting, world: WeekWorld, meetings: Dict[str, Meeting]
) -> Tuple[Meeting, MeetingChoice]:
    ex = world.executives.get(action.executive_id)
    if ex is None:
        raise ValidationError(f"unknown executive: {action.executive_id}", code="unknown_executive")
    if int(ex.last_action_week) == int(world.week):
        raise ValidationError(f"executive already met this week: {action.executive_id}", code="executive_busy")
    meeting = meetings.get(action.meeting_id)
    if meeting is None:
        raise ValidationError(f"unknown meeting: {action.meeting_id}", code="unknown_meeting")
    if meeting.role != ex.role:
        raise ValidationError(f"meeting {meeting.id} is not for role {ex.role}", code="wrong_role")
    choice = meeting.choice(action.choice_id)
    if choice is None:
        raise ValidationError(f"unknown choice: {action.choice_id}", code="unknown_choice")
    if meeting.target_scope == "user_selected":
        if not action.artist_id:
            raise ValidationError("meeting needs an artist", code="missing_target")
        _signed_artist(world, action.artist_id)
    return meeting, choice


def meeting_targets(meeting: Meeting, action: RoleMeeting, world: WeekWorld) -> List[str]:
    signed = world.signed_artists()
    if meeting.target_scope == "user_selected":
        return [str(action.artist_id)]
    if meeting.target_scope == "predetermined":
        if not signed:
            return []
        top = sorted(signed, key=lambda a: (-int(a.popularity), a.id))[0]
        return [top.id]
    return [a.id for a in signed]


# -------------------------
# Application
# -------------------------


def apply_action(
    action: Action,
    world: WeekWorld,
    ledger: WeekLedger,
    balance: BalanceConfig,
    meetings: Dict[str, Meeting],
) -> None:
    """Validate and apply one action. Raises ValidationError before mutating."""
    if isinstance(action, SignArtist):
        artist = world.artists.get(action.artist_id)
        if artist is None:
            raise ValidationError(f"unknown artist: {action.artist_id}", code="unknown_artist")
        if artist.signed:
            raise ValidationError(f"artist already signed: {action.artist_id}", code="already_signed")
        weekly = artist.weekly_cost if artist.weekly_cost > 0 else balance.economy.default_artist_weekly_cost
        world.artists[artist.id] = replace(artist, signed=True, weekly_cost=int(weekly))
        ledger.signing_bonuses += int(artist.signing_cost)
        world.change("signing", f"Signed {artist.name}", amount=int(artist.signing_cost), artist_id=artist.id)
        return

    if isinstance(action, StartProject):
        validate_start_project(action, world, balance)
        is_tour = action.project_type == "tour"
        world.projects[action.project_id] = Project(
            id=action.project_id,
            artist_id=action.artist_id,
            title=action.title,
            type=action.project_type,
            stage="planning",
            start_week=int(world.week),
            stage_started_week=int(world.week),
            budget_per_song=0 if is_tour else int(action.budget_per_song),
            producer_tier=action.producer_tier,
            time_investment=action.time_investment,
            song_count=0 if is_tour else int(action.song_count),
            cities=int(action.cities) if is_tour else 0,
            venue_capacity=int(action.venue_capacity) if is_tour else 0,
            marketing_budget=int(action.marketing_budget) if is_tour else 0,
        )
        world.change("project_started", f"Started {action.project_type} '{action.title}'",
                     artist_id=action.artist_id, project_id=action.project_id)
        return

    if isinstance(action, ScheduleRelease):
        _signed_artist(world, action.artist_id)
        for channel, amount in action.marketing.items():
            if channel not in balance.channels:
                raise ValidationError(f"unknown marketing channel: {channel}", code="invalid_channel")
            if int(amount) < 0:
                raise ValidationError("negative marketing spend", code="invalid_budget")
        release = Release(
            id=action.release_id,
            artist_id=action.artist_id,
            title=action.title,
            song_ids=list(action.song_ids),
            scheduled_week=int(action.scheduled_week),
            marketing=dict(action.marketing),
        )
        updated = schedule_release(list(world.releases.values()), world.songs, release, week=world.week)
        world.releases = {r.id: r for r in updated}
        world.change("release_scheduled", f"Scheduled '{action.title}' for week {action.scheduled_week}",
                     artist_id=action.artist_id, release_id=action.release_id)
        return

    if isinstance(action, RoleMeeting):
        meeting, choice = validate_role_meeting(action, world, meetings)
        targets = meeting_targets(meeting, action, world)
        ex = world.executives[action.executive_id]
        world.executives[ex.id] = replace(ex, last_action_week=int(world.week))
        ledger.role_meeting_costs += int(choice.cost)
        apply_effects(world, choice.immediate, artist_ids=targets, executive_id=ex.id, source=meeting.title)
        world.delayed_effects = schedule_delayed_effect(
            world.delayed_effects,
            week=world.week,
            effects=choice.delayed,
            source=meeting.title,
            artist_ids=targets,
            executive_id=ex.id,
        )
        world.change("meeting", f"{meeting.title}: {choice.label}", amount=int(choice.cost))
        return

    raise ValidationError(f"unsupported action: {type(action).__name__}", code="unknown_action")

