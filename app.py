"""Label Sim playtest console (Streamlit)

Principles:
- UI only renders + triggers advance_week. No game rules live here.
- Core domain and engine are pure Python modules.
- Every number shown comes from GameState / WeekSummary.

Run locally: streamlit run app.py
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List

import streamlit as st

from content.providers.digest import DigestNarrator
from content.providers.memory import InMemoryStateStore
from core.actions import RoleMeeting, ScheduleRelease, SignArtist, StartProject
from core.errors import LabelSimError
from core.lifecycle import reserved_song_ids
from core.quality import estimate_quality
from core.state import state_from_mapping
from engine.config import EngineConfig
from engine.logging import configure_logging, dumps_run_export, make_run_export
from engine.pipeline import TurnEngine

APP_TITLE = "Label Sim"
APP_SUBTITLE = "Weekly turn console: queue actions, resolve the week, read the summary."
APP_VERSION = "1.0.0"

st.set_page_config(page_title=APP_TITLE, page_icon="🎧", layout="wide", initial_sidebar_state="expanded")

CSS = """
<style>
.block-container {padding-top: 3.2rem; padding-bottom: 2rem;}
.card {
  border: 1px solid rgba(255,255,255,0.08);
  border-radius: 16px;
  padding: 14px 16px;
  background: rgba(255,255,255,0.03);
}
.small {font-size: 13px; opacity:.75;}
</style>
"""

st.markdown(CSS, unsafe_allow_html=True)


@st.cache_resource
def _engine() -> TurnEngine:
    cfg = EngineConfig.from_env()
    configure_logging(cfg.log_level)
    return TurnEngine.from_config(cfg, store=InMemoryStateStore(), narrator=DigestNarrator())


def _now_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")


def _ensure_state() -> None:
    ss = st.session_state
    if "run_id" not in ss:
        ss.run_id = _now_id()
    if "started" not in ss:
        ss.started = False
    if "seed" not in ss:
        ss.seed = EngineConfig.from_env().default_seed
    if "game_state" not in ss:
        ss.game_state = None
    if "initial_state" not in ss:
        ss.initial_state = None
    if "queued" not in ss:
        ss.queued = []
    if "summaries" not in ss:
        ss.summaries = []
    if "narratives" not in ss:
        ss.narratives = []


def _reset_run() -> None:
    ss = st.session_state
    for k in list(ss.keys()):
        del ss[k]
    _ensure_state()


def _start_run() -> None:
    ss = st.session_state
    state = _engine().new_game(int(ss.seed), game_id=f"ui-{ss.run_id}")
    ss.game_state = state
    ss.initial_state = state
    ss.started = True


def _money(x: int) -> str:
    return f"-${abs(int(x)):,}" if int(x) < 0 else f"${int(x):,}"


# =========================
# Pages
# =========================


def _queue_forms() -> None:
    ss = st.session_state
    gs = ss.game_state
    eng = _engine()
    signed = [a for a in gs.artists if a.signed]
    unsigned = [a for a in gs.artists if not a.signed]

    tabs = st.tabs(["Sign", "Record", "Tour", "Release", "Meeting"])

    with tabs[0]:
        if not unsigned:
            st.caption("No unsigned artists.")
        else:
            pick = st.selectbox("Artist", unsigned, format_func=lambda a: f"{a.name} ({_money(a.signing_cost)})")
            if st.button("Queue signing", key="q_sign"):
                ss.queued.append(SignArtist(artist_id=pick.id))

    with tabs[1]:
        if signed:
            artist = st.selectbox("Artist", signed, format_func=lambda a: a.name, key="rec_artist")
            ptype = st.selectbox("Type", ["single", "ep", "album"])
            lo, hi = eng.balance.projects.song_count_limits[ptype]
            songs = st.number_input("Songs", min_value=lo, max_value=hi, value=lo, step=1)
            budget = st.number_input("Budget per song", min_value=0, value=4000, step=500)
            producer = st.selectbox("Producer", list(eng.balance.producer_tiers))
            time_tier = st.selectbox("Time", list(eng.balance.time_tiers), index=1)
            preview = estimate_quality(artist, producer, time_tier, budget, ptype, int(songs), eng.balance)
            st.caption(f"Estimated quality (no variance): {preview}")
            title = st.text_input("Title", value=f"{artist.name} {ptype.upper()}")
            if st.button("Queue project", key="q_rec"):
                ss.queued.append(
                    StartProject(
                        project_id=f"p{gs.week}-{len(gs.projects) + len(ss.queued) + 1}",
                        artist_id=artist.id,
                        title=title,
                        project_type=ptype,
                        song_count=int(songs),
                        budget_per_song=int(budget),
                        producer_tier=producer,
                        time_investment=time_tier,
                    )
                )

    with tabs[2]:
        if signed:
            artist = st.selectbox("Artist", signed, format_func=lambda a: a.name, key="tour_artist")
            cities = st.number_input("Cities", min_value=1, max_value=eng.balance.tour.max_cities, value=3, step=1)
            cap = st.number_input("Venue capacity", min_value=1, value=300, step=50)
            mkt = st.number_input("Marketing budget", min_value=0, value=2000, step=500)
            if st.button("Queue tour", key="q_tour"):
                ss.queued.append(
                    StartProject(
                        project_id=f"t{gs.week}-{len(gs.projects) + len(ss.queued) + 1}",
                        artist_id=artist.id,
                        title=f"{artist.name} Tour",
                        project_type="tour",
                        cities=int(cities),
                        venue_capacity=int(cap),
                        marketing_budget=int(mkt),
                    )
                )

    with tabs[3]:
        reserved = reserved_song_ids(gs.releases)
        free = [s for s in gs.songs if s.recorded and not s.released and s.id not in reserved]
        if not free:
            st.caption("No recorded songs waiting for a release.")
        else:
            picked = st.multiselect("Songs", free, format_func=lambda s: f"{s.title} (q{s.quality})")
            week = st.number_input("Release week", min_value=gs.week, value=gs.week + 1, step=1)
            spend: Dict[str, int] = {}
            for ch in eng.balance.channels:
                spend[ch] = int(st.number_input(f"{ch} spend", min_value=0, value=0, step=500, key=f"mkt_{ch}"))
            if st.button("Queue release", key="q_rel", disabled=not picked):
                ss.queued.append(
                    ScheduleRelease(
                        release_id=f"r{gs.week}-{len(gs.releases) + len(ss.queued) + 1}",
                        artist_id=picked[0].artist_id,
                        title=picked[0].title,
                        song_ids=[s.id for s in picked],
                        scheduled_week=int(week),
                        marketing={k: v for k, v in spend.items() if v},
                    )
                )

    with tabs[4]:
        execs = {e.role: e for e in gs.executives}
        meetings = [m for m in eng.meetings.values() if m.role in execs]
        if meetings:
            meeting = st.selectbox("Meeting", meetings, format_func=lambda m: m.title)
            choice = st.radio("Choice", meeting.choices, format_func=lambda c: f"{c.label} ({_money(c.cost)})")
            target = None
            if meeting.target_scope == "user_selected" and signed:
                target = st.selectbox("Artist", signed, format_func=lambda a: a.name, key="mtg_artist").id
            if st.button("Queue meeting", key="q_mtg"):
                ss.queued.append(
                    RoleMeeting(
                        executive_id=execs[meeting.role].id,
                        meeting_id=meeting.id,
                        choice_id=choice.id,
                        artist_id=target,
                    )
                )


def page_run() -> None:
    ss = st.session_state
    gs = ss.game_state

    a, b, c, d = st.columns(4)
    a.metric("Week", gs.week)
    b.metric("Cash", _money(gs.money))
    c.metric("Reputation", gs.reputation)
    d.metric("Focus slots", gs.focus_slots)
    st.caption(f"Access: playlist={gs.playlist_access} · press={gs.press_access} · venue={gs.venue_access}")

    _queue_forms()

    st.markdown("#### Queued actions")
    if not ss.queued:
        st.caption("Nothing queued. Resolving an empty week still runs the economy.")
    for i, act in enumerate(ss.queued):
        st.markdown(f"{i + 1}. `{act.kind}` {asdict(act)}")

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Resolve week", use_container_width=True):
            result = _engine().advance(gs, list(ss.queued))
            ss.game_state = result.state
            ss.summaries.append(result.summary)
            ss.narratives.append(result.narrative)
            ss.queued = []
            st.rerun()
    with c2:
        if st.button("Clear queue", use_container_width=True):
            ss.queued = []
            st.rerun()

    if ss.narratives:
        st.markdown("#### Last week")
        st.code(ss.narratives[-1])


def page_history() -> None:
    ss = st.session_state
    if not ss.summaries:
        st.info("No weeks resolved yet.")
        return
    rows: List[Dict[str, Any]] = []
    for s in ss.summaries:
        rows.append(
            {
                "week": s.week,
                "revenue": s.revenue,
                "expenses": s.expenses,
                "ending_money": s.ending_money,
                "diagnostics": len(s.diagnostics),
                "bankrupt": s.bankrupt,
            }
        )
    st.dataframe(rows, use_container_width=True)
    for s in reversed(ss.summaries):
        with st.expander(f"Week {s.week}"):
            st.json(s.to_dict())


def page_debug() -> None:
    ss = st.session_state
    st.markdown("#### Engine")
    st.json({"balance_version": _engine().balance.version, "store": asdict(_engine().store.status())})
    st.markdown("#### Game state")
    st.json(asdict(ss.game_state) if ss.game_state else {})


def export_import_controls() -> None:
    ss = st.session_state
    st.sidebar.markdown("---")
    st.sidebar.markdown("### Run Export / Import")

    if ss.get("started") and ss.initial_state is not None:
        payload = make_run_export(
            seed=int(ss.seed),
            config={"app_version": APP_VERSION, "balance_version": _engine().balance.version},
            initial_state=ss.initial_state,
            summaries=list(ss.summaries),
        )
        payload["current_state"] = asdict(ss.game_state)
        st.sidebar.download_button(
            "Download run",
            data=dumps_run_export(payload).encode("utf-8"),
            file_name=f"label_sim_run_{ss.get('run_id', 'run')}.json",
            mime="application/json",
        )

    up = st.sidebar.file_uploader("Load run", type=["json"], accept_multiple_files=False)
    if up is not None:
        try:
            data = json.loads(up.read().decode("utf-8"))
            ss.seed = int(data.get("seed", ss.seed))
            ss.initial_state = state_from_mapping(data["initial_state"])
            ss.game_state = state_from_mapping(data.get("current_state") or data["initial_state"])
            ss.summaries = []
            ss.narratives = []
            ss.queued = []
            ss.started = True
            st.sidebar.success("Run loaded.")
        except (KeyError, TypeError, ValueError, LabelSimError) as e:
            st.sidebar.error(f"Import failed: {e}")


def sidebar() -> str:
    ss = st.session_state
    st.sidebar.markdown(f"**{APP_TITLE}**  ")
    st.sidebar.caption(f"v{APP_VERSION} · {APP_SUBTITLE}")
    st.sidebar.markdown("---")

    ss.seed = st.sidebar.number_input("Seed", value=int(ss.seed), step=1, disabled=ss.started)

    cols = st.sidebar.columns(2)
    with cols[0]:
        if st.button("Start", disabled=ss.started, use_container_width=True):
            _start_run()
            st.rerun()
    with cols[1]:
        if st.button("Reset", use_container_width=True):
            _reset_run()
            st.rerun()

    export_import_controls()

    st.sidebar.markdown("---")
    return st.sidebar.radio("Page", ["Play", "History", "Debug"], index=0)


def main() -> None:
    _ensure_state()
    page = sidebar()
    ss = st.session_state

    if not ss.started:
        st.title(APP_TITLE)
        st.write(APP_SUBTITLE)
        return

    if page == "Play":
        try:
            page_run()
        except LabelSimError as e:
            st.error(f"Week could not be resolved: {e}")
    elif page == "History":
        page_history()
    else:
        page_debug()


if __name__ == "__main__":
    main()
