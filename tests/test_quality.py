from dataclasses import replace

import pytest

from core.balance import ProducerTier
from core.errors import ValidationError
from core.quality import (
    budget_curve,
    budget_factor,
    compute_quality,
    estimate_quality,
    minimum_viable_cost,
    quality_breakdown,
    variance_multiplier,
)
from core.rng import new_rng
from core.state import Artist


def _artist(**kw) -> Artist:
    base = dict(id="a", name="A", talent=60, work_ethic=60, popularity=30, mood=60, signed=True)
    base.update(kw)
    return Artist(**base)


def test_quality_always_within_bounds(balance) -> None:
    rng = new_rng(11)
    extremes = [
        _artist(talent=0, work_ethic=0, popularity=0, mood=0),
        _artist(talent=100, work_ethic=100, popularity=100, mood=100),
        _artist(),
    ]
    for artist in extremes:
        for producer in balance.producer_tiers:
            for tier in balance.time_tiers:
                for budget in (0, 2000, 50_000, 1_000_000):
                    for ptype, count in (("single", 1), ("ep", 5), ("album", 14)):
                        q = compute_quality(artist, producer, tier, budget, ptype, count, rng, balance)
                        assert 25 <= q <= 98


def test_compute_quality_consumes_two_draws(balance) -> None:
    rng = new_rng(4)
    compute_quality(_artist(), "local", "standard", 4000, "single", 1, rng, balance)
    assert rng.draws == 2


def test_estimate_matches_breakdown_without_variance(balance) -> None:
    artist = _artist()
    preview = quality_breakdown(artist, "regional", "extended", 6000, "ep", 4, balance)
    assert preview.variance == 1.0
    assert preview.outcome == "preview"
    assert estimate_quality(artist, "regional", "extended", 6000, "ep", 4, balance) == preview.quality


def test_quality_rejects_tour(balance) -> None:
    with pytest.raises(ValidationError):
        estimate_quality(_artist(), "local", "standard", 4000, "tour", 1, balance)


def test_minimum_viable_cost_ignores_producer_and_time(balance) -> None:
    # ep base 4000 x 0.8 scale (4-7 songs) x 1.25 baseline
    assert minimum_viable_cost("ep", 5, balance) == pytest.approx(4000.0)
    assert minimum_viable_cost("single", 1, balance) == pytest.approx(5250.0)
    assert minimum_viable_cost("album", 12, balance) == pytest.approx(3500.0)


def test_budget_curve_breakpoints(balance) -> None:
    curve = balance.budget
    assert budget_curve(0.1, curve) == pytest.approx(0.65)
    assert budget_curve(0.8, curve) == pytest.approx(0.85)
    assert budget_curve(1.2, curve) == pytest.approx(1.05)
    assert budget_curve(2.0, curve) == pytest.approx(1.20)
    assert budget_curve(3.5, curve) == pytest.approx(1.35)
    assert 1.35 < budget_curve(10.0, curve) <= curve.max_multiplier


def test_budget_scenario_ep_rushed_local(balance) -> None:
    undamped = replace(balance, budget=replace(balance.budget, dampening_factor=1.0))
    assert budget_factor(3200, "ep", 5, undamped) == pytest.approx(0.85)
    assert budget_factor(8000, "ep", 5, undamped) == pytest.approx(1.20)

    # default dampening: spending exactly the minimum viable cost
    assert budget_factor(4000, "ep", 5, balance) == pytest.approx(0.95)

    # rushed local EP: budget factor is unaffected by the time tier
    low = quality_breakdown(_artist(), "local", "rushed", 3200, "ep", 5, undamped)
    high = quality_breakdown(_artist(), "local", "rushed", 8000, "ep", 5, undamped)
    assert low.budget == pytest.approx(0.85)
    assert high.budget == pytest.approx(1.20)
    assert high.quality > low.quality


def test_budget_factor_is_monotonic(balance) -> None:
    values = [budget_factor(b, "album", 10, balance) for b in range(0, 40_000, 500)]
    assert values == sorted(values)


def test_skill_100_variance_stays_within_five_percent(balance) -> None:
    master = ProducerTier(name="master", unlock_reputation=0, cost_multiplier=1.0, quality_bonus=0, skill=100)
    rng = new_rng(21)
    seen = 0
    for _ in range(2000):
        mult, outcome = variance_multiplier(100, master, rng, balance.quality.variance)
        if outcome == "normal":
            seen += 1
            assert 0.95 - 1e-9 <= mult <= 1.05 + 1e-9
        elif outcome == "breakout":
            assert mult == pytest.approx(1.5)
        else:
            assert mult == pytest.approx(0.7)
    assert seen > 1500


def test_outlier_rate_is_about_ten_percent(balance) -> None:
    producer = balance.producer("local")
    rng = new_rng(33)
    n = 10_000
    outcomes = [variance_multiplier(50, producer, rng, balance.quality.variance)[1] for _ in range(n)]
    breakout = outcomes.count("breakout") / n
    failure = outcomes.count("failure") / n
    assert 0.035 < breakout < 0.065
    assert 0.035 < failure < 0.065
    assert rng.draws == 2 * n


def test_minimum_viable_cost_needs_baseline_for_type(balance) -> None:
    partial = replace(balance, projects=replace(balance.projects, baseline_quality_multiplier={"single": 1.5}))
    assert minimum_viable_cost("single", 1, partial) == pytest.approx(5250.0)
    with pytest.raises(KeyError):
        minimum_viable_cost("ep", 5, partial)
