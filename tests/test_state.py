from dataclasses import replace

import pytest

from core.errors import ConsistencyWarning, ValidationError
from core.state import (
    Diagnostic,
    Project,
    RecordingSession,
    RepairRecord,
    TourCity,
    TourStats,
    WeekWorld,
    find_metadata,
    metadata_from_dict,
    replace_metadata,
    state_from_mapping,
    state_to_dict,
)
from engine.sim_runner import run_headless_sim


def test_state_round_trips_through_dict() -> None:
    final = run_headless_sim(8, seed=3)["final"]
    assert state_from_mapping(state_to_dict(final)) == final


def test_metadata_variants_round_trip() -> None:
    city = TourCity(
        city_number=1, venue_capacity=300, sell_through=0.7, ticket_price=26.0, ticket_revenue=5460,
        merch_revenue=819, venue_fee=1200, production_fee=810, marketing_cost=500, week=4,
    )
    items = [
        TourStats(cities=[city], settled_week=4),
        RecordingSession(week=3, producer_tier="local", time_investment="rushed", budget_per_song=2000,
                         budget_factor=0.85, song_ids=["p1-t1"]),
        RepairRecord(week=5, target="project", target_id="p1", before="writing", after="recorded", reason="songs exist"),
    ]
    project = Project(id="p1", artist_id="a", title="T", type="single", metadata=items)
    raw = state_to_dict(replace(run_headless_sim(1, seed=1)["final"], projects=[project]))
    rebuilt = state_from_mapping(raw).projects[0]
    assert rebuilt.metadata == items
    assert find_metadata(rebuilt.metadata, TourStats).cities[0].profit == city.profit


def test_unknown_metadata_kind_is_rejected() -> None:
    with pytest.raises(ValueError):
        metadata_from_dict({"kind": "mystery"})


def test_replace_metadata_keeps_one_per_kind() -> None:
    first = TourStats(settled_week=None)
    second = TourStats(settled_week=6)
    audit = RepairRecord(week=1, target="release", target_id="r1", before="3", after="5", reason="late")
    items = replace_metadata([first, audit], second)
    assert items == [second, audit]
    assert replace_metadata([], audit) == [audit]


def test_world_copy_is_isolated(start_state) -> None:
    world = WeekWorld.from_state(start_state)
    world.money = 0
    world.artists.clear()
    world.change("note", "scratch")
    assert start_state.money != 0
    assert start_state.artists


def test_diagnostic_from_error() -> None:
    d = Diagnostic.from_error(ValidationError("no such artist", code="unknown_artist"), action_index=2)
    assert (d.severity, d.code, d.action_index) == ("validation", "unknown_artist", 2)
    w = Diagnostic.from_error(ConsistencyWarning("double booked", code="song_double_reserved"))
    assert (w.severity, w.code, w.action_index) == ("consistency", "song_double_reserved", None)
