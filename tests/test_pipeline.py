from dataclasses import replace

import pytest

from core.actions import RoleMeeting, ScheduleRelease, SignArtist, StartProject
from core.errors import StaleTurnError
from core.state import Project, Song, state_to_dict
from engine.pipeline import advance_week
from engine.sim_runner import run_headless_sim


def _run(state, weeks, balance, catalog, meetings, actions_by_week=None):
    summaries = []
    for _ in range(weeks):
        acts = (actions_by_week or {}).get(state.week, [])
        state, summary = advance_week(state, acts, balance=balance, catalog=catalog, meetings=meetings)
        summaries.append(summary)
    return state, summaries


def test_headless_run_is_deterministic() -> None:
    a = run_headless_sim(10, seed=5)
    b = run_headless_sim(10, seed=5)
    assert state_to_dict(a["final"]) == state_to_dict(b["final"])
    assert [s.to_dict() for s in a["summaries"]] == [s.to_dict() for s in b["summaries"]]


def test_different_seeds_differ() -> None:
    a = run_headless_sim(4, seed=5)
    b = run_headless_sim(4, seed=6)
    assert a["final"].rng != b["final"].rng


def test_financial_closure_every_week() -> None:
    out = run_headless_sim(12, seed=9)
    money = out["initial"].money
    for s in out["summaries"]:
        assert s.starting_money == money
        assert s.ending_money == s.starting_money + s.revenue - s.expenses
        assert s.expense_breakdown.total == s.expenses
        assert s.revenue_breakdown.total == s.revenue
        money = s.ending_money
    assert out["final"].money == money


def test_headless_run_records_and_releases() -> None:
    out = run_headless_sim(12, seed=9)
    final = out["final"]
    assert final.week == 13
    assert final.songs
    assert any(s.released for s in final.songs)
    assert any(r.status == "released" for r in final.releases)


def test_input_state_is_not_mutated(start_state, balance, catalog, meetings) -> None:
    before = state_to_dict(start_state)
    advance_week(start_state, [SignArtist(artist_id="art_vellums")], balance=balance, catalog=catalog, meetings=meetings)
    assert state_to_dict(start_state) == before


def test_empty_week_charges_fixed_costs(start_state, balance, catalog, meetings) -> None:
    state, summary = advance_week(start_state, [], balance=balance, catalog=catalog, meetings=meetings)
    assert summary.expense_breakdown.operations == 2500
    assert summary.expense_breakdown.artist_salaries == 1200
    assert summary.expenses == 3700
    assert summary.revenue == 0
    assert state.money == start_state.money - 3700
    assert state.week == 2
    assert summary.rng_draws == len(catalog)


def test_executive_salary_cadence(start_state, balance, catalog, meetings) -> None:
    _, summaries = _run(start_state, 12, balance, catalog, meetings)
    paid = {s.week: s.expense_breakdown.executive_salaries for s in summaries}
    assert {w for w, amt in paid.items() if amt} == {4, 8, 12}
    assert paid[4] == 4000 + 4500 + 4000 + 3500


def test_invalid_action_becomes_diagnostic(start_state, balance, catalog, meetings) -> None:
    actions = [SignArtist(artist_id="nobody"), SignArtist(artist_id="art_vellums")]
    state, summary = advance_week(start_state, actions, balance=balance, catalog=catalog, meetings=meetings)
    assert [(d.severity, d.code, d.action_index) for d in summary.diagnostics] == [("validation", "unknown_artist", 0)]
    assert summary.focus_slots_used == 1
    assert summary.expense_breakdown.signing_bonuses == 8000
    assert next(a for a in state.artists if a.id == "art_vellums").signed


def test_focus_slots_limit_actions(start_state, balance, catalog, meetings) -> None:
    actions = [
        RoleMeeting(executive_id="exec_ar", meeting_id="ar_scouting_trip", choice_id="stay_local"),
        RoleMeeting(executive_id="exec_cmo", meeting_id="cmo_press_push", choice_id="grassroots"),
        RoleMeeting(executive_id="exec_cco", meeting_id="cco_studio_review", choice_id="keep_setup"),
        RoleMeeting(executive_id="exec_dist", meeting_id="dist_playlist_pitch", choice_id="skip_pitch"),
    ]
    _, summary = advance_week(start_state, actions, balance=balance, catalog=catalog, meetings=meetings)
    assert summary.focus_slots_used == 3
    assert [(d.code, d.action_index) for d in summary.diagnostics] == [("focus_slots_exhausted", 3)]


def test_one_meeting_per_executive_per_week(start_state, balance, catalog, meetings) -> None:
    actions = [
        RoleMeeting(executive_id="exec_cmo", meeting_id="cmo_press_push", choice_id="grassroots"),
        RoleMeeting(executive_id="exec_cmo", meeting_id="cmo_spotlight", choice_id="hold_budget"),
    ]
    _, summary = advance_week(start_state, actions, balance=balance, catalog=catalog, meetings=meetings)
    assert [d.code for d in summary.diagnostics] == ["executive_busy"]
    assert summary.expense_breakdown.role_meeting_costs == 500


def test_meeting_with_wrong_role_or_missing_target(start_state, balance, catalog, meetings) -> None:
    actions = [
        RoleMeeting(executive_id="exec_cco", meeting_id="cmo_press_push", choice_id="grassroots"),
        RoleMeeting(executive_id="exec_ar", meeting_id="ar_direction_check", choice_id="let_them_lead"),
        RoleMeeting(executive_id="exec_cmo", meeting_id="cmo_press_push", choice_id="bribe_critics"),
    ]
    _, summary = advance_week(start_state, actions, balance=balance, catalog=catalog, meetings=meetings)
    assert [d.code for d in summary.diagnostics] == ["wrong_role", "missing_target", "unknown_choice"]
    assert summary.focus_slots_used == 0


def test_delayed_meeting_effect_lands_next_week(start_state, balance, catalog, meetings) -> None:
    pitch = RoleMeeting(executive_id="exec_dist", meeting_id="dist_playlist_pitch", choice_id="pitch_curators")
    state, summaries = _run(start_state, 2, balance, catalog, meetings, {1: [pitch]})
    assert summaries[0].expense_breakdown.role_meeting_costs == 2000
    # 5 start, +2 now, +3 next week
    assert state.reputation == 10
    assert state.playlist_access == "niche"
    assert state.tier_unlock_history.get("playlist:niche") == 2
    assert any(c.kind == "unlock" for c in summaries[1].changes)
    assert state.delayed_effects == []


def test_dict_actions_are_parsed(start_state, balance, catalog, meetings) -> None:
    actions = [{"kind": "sign_artist", "artist_id": "art_keon"}, {"kind": "teleport"}]
    state, summary = advance_week(start_state, actions, balance=balance, catalog=catalog, meetings=meetings)
    assert next(a for a in state.artists if a.id == "art_keon").signed
    assert [(d.code, d.action_index) for d in summary.diagnostics] == [("unknown_action", 1)]


def test_project_validation(start_state, balance, catalog, meetings) -> None:
    actions = [
        StartProject(project_id="x1", artist_id="art_nova", title="X", project_type="ep", song_count=2),
        StartProject(project_id="x2", artist_id="art_nova", title="X", project_type="single", producer_tier="legendary"),
        StartProject(project_id="x3", artist_id="art_vellums", title="X", project_type="single"),
    ]
    _, summary = advance_week(start_state, actions, balance=balance, catalog=catalog, meetings=meetings)
    assert [d.code for d in summary.diagnostics] == ["invalid_song_count", "producer_locked", "artist_not_signed"]


def test_release_conflict_in_week(start_state, balance, catalog, meetings) -> None:
    song = Song(id="p1-t1", title="Hit", artist_id="art_nova", project_id="p1", quality=70)
    project = Project(id="p1", artist_id="art_nova", title="Hit", type="single", stage="recorded", songs_created=1)
    state = replace(start_state, songs=[song], projects=[project])
    actions = [
        ScheduleRelease(release_id="r1", artist_id="art_nova", title="Hit", song_ids=["p1-t1"], scheduled_week=3),
        ScheduleRelease(release_id="r2", artist_id="art_nova", title="Hit again", song_ids=["p1-t1"], scheduled_week=4),
    ]
    state, summary = advance_week(state, actions, balance=balance, catalog=catalog, meetings=meetings)
    assert [d.code for d in summary.diagnostics] == ["release_conflict"]
    assert [r.id for r in state.releases] == ["r1"]
    assert summary.focus_slots_used == 0


def test_release_must_name_the_songs_signed_artist(start_state, balance, catalog, meetings) -> None:
    artists = [replace(a, signed=True) if a.id == "art_vellums" else a for a in start_state.artists]
    songs = [
        Song(id="p1-t1", title="Hit", artist_id="art_nova", project_id="p1", quality=70),
        Song(id="v1-t1", title="Theirs", artist_id="art_vellums", project_id="v1", quality=70),
    ]
    state = replace(start_state, artists=artists, songs=songs)
    actions = [
        ScheduleRelease(release_id="r1", artist_id="ghost", title="Hit", song_ids=["p1-t1"], scheduled_week=3),
        ScheduleRelease(release_id="r2", artist_id="art_keon", title="Hit", song_ids=["p1-t1"], scheduled_week=3),
        ScheduleRelease(release_id="r3", artist_id="art_nova", title="Split", song_ids=["p1-t1", "v1-t1"], scheduled_week=3),
        ScheduleRelease(release_id="r4", artist_id="art_vellums", title="Theirs", song_ids=["v1-t1"], scheduled_week=3),
    ]
    state, summary = advance_week(state, actions, balance=balance, catalog=catalog, meetings=meetings)
    assert [(d.code, d.action_index) for d in summary.diagnostics] == [
        ("unknown_artist", 0),
        ("artist_not_signed", 1),
        ("artist_mismatch", 2),
    ]
    assert [(r.id, r.artist_id) for r in state.releases] == [("r4", "art_vellums")]


def test_q4_release_marketing_costs_more(start_state, balance, catalog, meetings) -> None:
    song = Song(id="p1-t1", title="Holiday", artist_id="art_nova", project_id="p1", quality=70)
    project = Project(id="p1", artist_id="art_nova", title="Holiday", type="single", stage="recorded", songs_created=1)
    state = replace(start_state, week=44, songs=[song], projects=[project])
    release = ScheduleRelease(
        release_id="r1", artist_id="art_nova", title="Holiday", song_ids=["p1-t1"], scheduled_week=45,
        marketing={"digital": 3000},
    )
    state, summaries = _run(state, 2, balance, catalog, meetings, {44: [release]})
    week45 = summaries[1]
    assert balance.seasonal_cost_multiplier(45) == pytest.approx(1.4)
    assert week45.expense_breakdown.marketing_costs == 4200
    assert next(c for c in week45.changes if c.kind == "release").amount == 4200
    assert week45.ending_money == week45.starting_money + week45.revenue - week45.expenses
    assert state.money == start_state.money + sum(s.revenue - s.expenses for s in summaries)


def test_release_flows_into_streams_and_chart(start_state, balance, catalog, meetings) -> None:
    song = Song(id="p1-t1", title="Hit", artist_id="art_nova", project_id="p1", quality=80)
    project = Project(id="p1", artist_id="art_nova", title="Hit", type="single", stage="recorded", songs_created=1)
    state = replace(start_state, songs=[song], projects=[project])
    release = ScheduleRelease(
        release_id="r1", artist_id="art_nova", title="Hit", song_ids=["p1-t1"], scheduled_week=2,
        marketing={"digital": 3000},
    )
    state, summaries = _run(state, 3, balance, catalog, meetings, {1: [release]})

    week2 = summaries[1]
    assert week2.expense_breakdown.marketing_costs == 3000
    assert week2.revenue_breakdown.streaming > 0
    assert [u.song_id for u in week2.chart_updates] == ["p1-t1"]
    assert next(p for p in state.projects if p.id == "p1").stage == "released"

    final = next(s for s in state.songs if s.id == "p1-t1")
    assert final.total_streams > final.initial_streams
    assert final.total_revenue == sum(s.revenue_breakdown.streaming for s in summaries)


def test_tour_through_the_pipeline(start_state, balance, catalog, meetings) -> None:
    tour = StartProject(
        project_id="t1", artist_id="art_nova", title="Club Run", project_type="tour",
        cities=2, venue_capacity=250, marketing_budget=2000,
    )
    state, summaries = _run(start_state, 6, balance, catalog, meetings, {1: [tour]})
    settled = summaries[4]
    assert settled.revenue_breakdown.tours > 0
    assert settled.expense_breakdown.marketing_costs == 2000
    assert settled.expense_breakdown.project_costs == 2 * (250 * 4 + 675)
    assert all(s.revenue_breakdown.tours == 0 for i, s in enumerate(summaries) if i != 4)
    assert next(p for p in state.projects if p.id == "t1").stage == "completed"


def test_tour_above_venue_access_is_rejected(start_state, balance, catalog, meetings) -> None:
    tour = StartProject(
        project_id="t1", artist_id="art_nova", title="Arena", project_type="tour",
        cities=2, venue_capacity=5000, marketing_budget=0,
    )
    _, summary = advance_week(start_state, [tour], balance=balance, catalog=catalog, meetings=meetings)
    assert [d.code for d in summary.diagnostics] == ["venue_locked"]


def test_bankruptcy_is_flagged_not_clamped(start_state, balance, catalog, meetings) -> None:
    broke = replace(start_state, money=-22_000)
    state, summary = advance_week(broke, [], balance=balance, catalog=catalog, meetings=meetings)
    assert summary.bankrupt is True
    assert state.money == -25_700
    assert any(c.kind == "bankruptcy_warning" for c in summary.changes)


def test_turn_engine_rejects_stale_week(engine, start_state) -> None:
    result = engine.advance(start_state, [])
    assert result.state.week == 2
    with pytest.raises(StaleTurnError):
        engine.advance(start_state, [])
    engine.advance(result.state, [])
