"""
core.rng
Deterministic random source that does NOT rely on Python's built-in hash() or random module.

Goal:
- Same (seed + draw order) => same stream across platforms, runtimes & library versions.
- The generator is a named, versioned algorithm (PCG32, XSH-RR output).
  Changing it is a compatibility break and must bump RNG_VERSION.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any

from .errors import ConfigurationError

RNG_ALGORITHM = "pcg32-xsh-rr"
RNG_VERSION = 1

_MASK64 = (1 << 64) - 1
_MASK32 = (1 << 32) - 1
_PCG_MULT = 6364136223846793005


def stable_int_seed(*parts: Any, salt: str = "label-sim") -> int:
    """Return a stable 64-bit integer seed derived from arbitrary inputs.

    Uses SHA-256 over a canonical JSON representation of `parts`.
    This avoids Python's randomized hash() and is stable across processes/platforms.
    """
    payload = json.dumps(parts, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)
    h = hashlib.sha256((salt + "|" + payload).encode("utf-8")).digest()
    return int.from_bytes(h[:8], "big", signed=False)


@dataclass(frozen=True)
class RngState:
    """Serializable snapshot of a generator (stored on GameState)."""

    algorithm: str
    version: int
    state: int
    inc: int


class Pcg32:
    """PCG32 (64-bit LCG state, 32-bit XSH-RR output).

    Reference: O'Neill, "PCG: A Family of Simple Fast Space-Efficient
    Statistically Good Algorithms for Random Number Generation".
    """

    def __init__(self, seed: int, stream: int = 54) -> None:
        self._inc = ((int(stream) << 1) | 1) & _MASK64
        self._state = 0
        self.draws = 0
        self._step()
        self._state = (self._state + (int(seed) & _MASK64)) & _MASK64
        self._step()

    @classmethod
    def from_state(cls, snap: RngState) -> "Pcg32":
        if snap.algorithm != RNG_ALGORITHM or int(snap.version) != RNG_VERSION:
            raise ConfigurationError(
                f"unsupported rng {snap.algorithm!r} v{snap.version}; expected {RNG_ALGORITHM!r} v{RNG_VERSION}"
            )
        rng = cls.__new__(cls)
        rng._state = int(snap.state) & _MASK64
        rng._inc = int(snap.inc) & _MASK64
        rng.draws = 0
        return rng

    def snapshot(self) -> RngState:
        return RngState(algorithm=RNG_ALGORITHM, version=RNG_VERSION, state=self._state, inc=self._inc)

    def _step(self) -> None:
        self._state = (self._state * _PCG_MULT + self._inc) & _MASK64

    def next_u32(self) -> int:
        old = self._state
        self._step()
        xorshifted = (((old >> 18) ^ old) >> 27) & _MASK32
        rot = old >> 59
        return ((xorshifted >> rot) | (xorshifted << ((-rot) & 31))) & _MASK32

    def random(self) -> float:
        """Float in [0, 1) with 53 bits of precision."""
        a = self.next_u32() >> 5
        b = self.next_u32() >> 6
        self.draws += 1
        return (a * 67108864 + b) / 9007199254740992.0

    def uniform(self, lo: float, hi: float) -> float:
        return float(lo) + (float(hi) - float(lo)) * self.random()


def new_rng(seed: int) -> Pcg32:
    """Generator for a new game, derived from the persisted game seed."""
    return Pcg32(stable_int_seed("game", int(seed)), stream=stable_int_seed("stream", int(seed)) & _MASK32)