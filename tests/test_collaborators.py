import json
import logging
import threading
from dataclasses import replace

import pytest

from content.providers.digest import DigestNarrator
from content.providers.memory import InMemoryStateStore
from core.errors import StaleTurnError
from core.state import Project, Song
from engine.logging import dumps_run_export, make_run_export
from engine.pipeline import TurnEngine


@pytest.fixture()
def wired(balance, catalog, meetings):
    store = InMemoryStateStore()
    engine = TurnEngine(
        balance=balance, catalog=catalog, meetings=meetings, store=store, narrator=DigestNarrator(max_changes=3)
    )
    return engine, store


def test_engine_persists_each_week(wired, start_state) -> None:
    engine, store = wired
    r1 = engine.advance(start_state, [])
    r2 = engine.advance(r1.state, [])
    assert store.load_state("test-game") == r2.state
    assert [s.week for s in store.summaries("test-game")] == [1, 2]
    assert store.status().ok and store.status().backend == "memory"


def test_stale_week_detected_from_store(balance, catalog, meetings, start_state) -> None:
    store = InMemoryStateStore()
    store.put_state(replace(start_state, week=4))
    engine = TurnEngine(balance=balance, catalog=catalog, meetings=meetings, store=store)
    with pytest.raises(StaleTurnError):
        engine.advance(start_state, [])
    engine.advance(replace(start_state, week=4), [])


def test_narrator_renders_digest(wired, start_state) -> None:
    engine, _ = wired
    result = engine.advance(start_state, [{"kind": "sign_artist", "artist_id": "ghost"}])
    text = result.narrative
    assert text.startswith("Week 1 report")
    assert "Expenses $3,700" in text
    assert "! unknown_artist:" in text
    assert text.rstrip().endswith("Next up: week 2")


def test_narrator_truncates_changes(start_state, engine) -> None:
    narrator = DigestNarrator(max_changes=1)
    result = engine.advance(start_state, [{"kind": "sign_artist", "artist_id": "art_vellums"}])
    text = narrator.render_week(result.state, result.summary)
    assert [c.kind for c in result.summary.changes] == ["signing", "expense"]
    assert "... and 1 more" in text


def test_load_applies_repair(wired, start_state) -> None:
    engine, store = wired
    stuck = Project(id="p1", artist_id="art_nova", title="Stuck", type="single", stage="writing")
    song = Song(id="p1-t1", title="Stuck", artist_id="art_nova", project_id="p1", quality=55)
    store.put_state(replace(start_state, projects=[stuck], songs=[song]))

    loaded = engine.load("test-game")
    assert loaded is not None
    assert loaded.projects[0].stage == "recorded"
    assert engine.load("missing") is None


def test_engine_without_store_has_nothing_to_load(engine) -> None:
    assert engine.load("test-game") is None


def test_run_export_is_json(start_state, engine) -> None:
    result = engine.advance(start_state, [])
    export = make_run_export(seed=7, config={"weeks": 1}, initial_state=start_state, summaries=[result.summary])
    data = json.loads(dumps_run_export(export))
    assert data["version"] == 2
    assert data["initial_state"]["game_id"] == "test-game"
    assert data["weeks"][0]["expense_breakdown"]["total"] == result.summary.expenses


def test_week_resolution_is_logged(caplog, start_state, engine) -> None:
    with caplog.at_level(logging.INFO, logger="engine.pipeline"):
        engine.advance(start_state, [{"kind": "sign_artist", "artist_id": "ghost"}])
    messages = [r.getMessage() for r in caplog.records if r.name == "engine.pipeline"]
    assert any("dropped action 0 (unknown_artist)" in m for m in messages)
    assert any(m.startswith("Week 1 resolved for test-game") for m in messages)


def _race(engine, states):
    results, stale = [], []
    barrier = threading.Barrier(len(states))

    def run(state):
        barrier.wait()
        try:
            results.append(engine.advance(state, []))
        except StaleTurnError as exc:
            stale.append(exc)

    threads = [threading.Thread(target=run, args=(s,)) for s in states]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results, stale


def test_same_week_resolves_once_under_concurrency(start_state, engine) -> None:
    results, stale = _race(engine, [start_state, start_state])
    assert len(results) == 1
    assert len(stale) == 1
    assert results[0].state.week == 2


def test_different_games_resolve_concurrently(start_state, engine) -> None:
    other = replace(start_state, game_id="other-game")
    results, stale = _race(engine, [start_state, other])
    assert stale == []
    assert sorted(r.state.game_id for r in results) == ["other-game", "test-game"]
    assert all(r.state.week == 2 for r in results)
