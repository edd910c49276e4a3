"""Round seeds and the Mulberry32 generator.

Every round of a match runs under its own 31-bit seed. The seed is stored
with the round result, and the generator built from it must reproduce the
exact same stream later when the round is replayed, so the Mulberry32
transition below is part of the stored-data contract.

Seeds are drawn from an isolated ``random.Random`` by default. A
``SeedManager`` built with a master seed instead derives round seeds via
HMAC-SHA256, so batch runs are reproducible end to end.
"""

from __future__ import annotations

import hashlib
import hmac
import random
import threading

_MASK32 = 0xFFFFFFFF
_INCREMENT = 0x6D2B79F5
_TWO_POW_32 = 4294967296
SEED_LIMIT = 2147483647  # seeds are drawn from [0, SEED_LIMIT)


def _imul(a: int, b: int) -> int:
    """32-bit wrapping multiply."""
    return (a * b) & _MASK32


class Mulberry32:
    """Small, fast 32-bit PRNG with a fully specified transition function.

    Exposes ``random()`` like ``random.Random`` so simulator backends can
    take either.
    """

    def __init__(self, seed: int) -> None:
        self._state = seed & _MASK32

    @property
    def state(self) -> int:
        return self._state

    def next_uint32(self) -> int:
        self._state = (self._state + _INCREMENT) & _MASK32
        a = self._state
        t = _imul(a ^ (a >> 15), a | 1)
        t = ((t + _imul(t ^ (t >> 7), t | 61)) & _MASK32) ^ t
        return (t ^ (t >> 14)) & _MASK32

    def random(self) -> float:
        """Next value in [0, 1)."""
        return self.next_uint32() / _TWO_POW_32

    def randrange(self, n: int) -> int:
        """Integer in [0, n), drawn the way the simulator places warriors."""
        if n <= 0:
            raise ValueError(f"randrange() needs a positive bound, got {n}")
        return int(self.random() * n)


class SeedManager:
    """Hands out round seeds and builds per-round generators."""

    def __init__(
        self,
        master_seed: int | None = None,
        source: random.Random | None = None,
    ) -> None:
        self._master_seed = master_seed
        self._source = source or random.Random()
        self._counter = 0
        self._lock = threading.Lock()

    @property
    def deterministic(self) -> bool:
        return self._master_seed is not None

    def next_seed(self) -> int:
        """Return a fresh seed in [0, SEED_LIMIT)."""
        if self._master_seed is None:
            return self._source.randrange(SEED_LIMIT)
        with self._lock:
            self._counter += 1
            index = self._counter
        return self.derive_seed("round", index)

    def derive_seed(self, label: str, index: int) -> int:
        """Derive a seed via HMAC. Same inputs always produce the same seed."""
        if self._master_seed is None:
            raise ValueError("derive_seed() needs a master seed")
        key = self._master_seed.to_bytes(8, byteorder="big", signed=True)
        msg = f"{label}:{index}".encode("utf-8")
        digest = hmac.new(key, msg, hashlib.sha256).digest()
        return int.from_bytes(digest[:8], byteorder="big") % SEED_LIMIT

    @staticmethod
    def get_rng(seed: int) -> Mulberry32:
        """Return an isolated generator. Never touches global state."""
        return Mulberry32(seed)
