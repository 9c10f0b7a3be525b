from dataclasses import replace

import pytest

from core.errors import ConfigurationError
from core.rng import RNG_ALGORITHM, RNG_VERSION, Pcg32, new_rng, stable_int_seed


def test_same_seed_same_stream() -> None:
    a = new_rng(99)
    b = new_rng(99)
    assert [a.next_u32() for _ in range(50)] == [b.next_u32() for _ in range(50)]


def test_different_seeds_diverge() -> None:
    a = new_rng(1)
    b = new_rng(2)
    assert [a.random() for _ in range(5)] != [b.random() for _ in range(5)]


def test_snapshot_restores_exact_position() -> None:
    rng = new_rng(5)
    for _ in range(17):
        rng.random()
    snap = rng.snapshot()
    expected = [rng.random() for _ in range(10)]

    restored = Pcg32.from_state(snap)
    assert [restored.random() for _ in range(10)] == expected


def test_snapshot_is_versioned() -> None:
    snap = new_rng(5).snapshot()
    assert snap.algorithm == RNG_ALGORITHM
    assert snap.version == RNG_VERSION


def test_restore_rejects_other_algorithm_or_version() -> None:
    snap = new_rng(5).snapshot()
    with pytest.raises(ConfigurationError):
        Pcg32.from_state(replace(snap, version=RNG_VERSION + 1))
    with pytest.raises(ConfigurationError):
        Pcg32.from_state(replace(snap, algorithm="mt19937"))


def test_random_range_and_draw_count() -> None:
    rng = new_rng(3)
    values = [rng.random() for _ in range(2000)]
    assert all(0.0 <= v < 1.0 for v in values)
    assert rng.draws == 2000
    assert 0.45 < sum(values) / len(values) < 0.55


def test_uniform_bounds() -> None:
    rng = new_rng(8)
    for _ in range(500):
        assert 0.8 <= rng.uniform(0.8, 1.2) < 1.2


def test_stable_int_seed_is_stable_and_distinct() -> None:
    assert stable_int_seed("game", 1) == stable_int_seed("game", 1)
    assert stable_int_seed("game", 1) != stable_int_seed("game", 2)
    assert stable_int_seed("game", 1, salt="a") != stable_int_seed("game", 1, salt="b")
    assert 0 <= stable_int_seed("x") < 2**64
