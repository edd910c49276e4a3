"""Hill registry — the fixed table of contest variants.

Each hill fixes the core size, cycle and task budgets, the warrior length
limit, the minimum separation between warriors and the number of rounds
per match. The table is keyed by the ``Hill`` enum and checked at import
time so a misdeclared slug fails loudly instead of at challenge time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType


class Hill(str, Enum):
    BIG = "big"
    NOP94 = "94nop"
    MEGACORE = "megacore"


@dataclass(frozen=True)
class SimSettings:
    """The subset of a hill handed to the instruction simulator."""

    core_size: int
    max_cycles: int
    max_length: int
    max_tasks: int
    min_separation: int


@dataclass(frozen=True)
class HillConfig:
    slug: str
    name: str
    description: str
    core_size: int
    max_cycles: int
    max_tasks: int
    max_length: int
    min_separation: int
    num_rounds: int

    @property
    def settings(self) -> SimSettings:
        return SimSettings(
            core_size=self.core_size,
            max_cycles=self.max_cycles,
            max_length=self.max_length,
            max_tasks=self.max_tasks,
            min_separation=self.min_separation,
        )


_TABLE: dict[Hill, HillConfig] = {
    Hill.BIG: HillConfig(
        slug="big",
        name="Big Hill",
        description="Large core, high process count",
        core_size=55440,
        max_cycles=500000,
        max_tasks=10000,
        max_length=200,
        min_separation=200,
        num_rounds=5,
    ),
    Hill.NOP94: HillConfig(
        slug="94nop",
        name="94nop",
        description="ICWS '94 No Pspace — Standard competitive format",
        core_size=8000,
        max_cycles=80000,
        max_tasks=8000,
        max_length=100,
        min_separation=100,
        num_rounds=5,
    ),
    Hill.MEGACORE: HillConfig(
        slug="megacore",
        name="Megacore",
        description="Massive 1M-cell core — extreme scale warfare",
        core_size=1000000,
        max_cycles=10000000,
        max_tasks=100000,
        max_length=1000,
        min_separation=1000,
        num_rounds=5,
    ),
}


def _build_registry(table: dict[Hill, HillConfig]) -> MappingProxyType:
    """Check every entry against its key and freeze the slug lookup."""
    missing = [h.value for h in Hill if h not in table]
    if missing:
        raise ValueError(f"Hill registry is missing entries: {missing}")
    by_slug: dict[str, HillConfig] = {}
    for key, config in table.items():
        if config.slug != key.value:
            raise ValueError(
                f"Hill registry key {key.value!r} declares slug {config.slug!r}"
            )
        by_slug[key.value] = config
    return MappingProxyType(by_slug)


HILLS = _build_registry(_TABLE)

DEFAULT_HILL = Hill.BIG.value
HILL_SLUGS = tuple(HILLS)
# Upload-time limit: the loosest length any hill accepts.
MAX_WARRIOR_LENGTH = max(h.max_length for h in HILLS.values())


def get_hill(slug: str) -> HillConfig | None:
    """Return the hill for ``slug``, or None if there is no such hill."""
    return HILLS.get(slug)


def is_valid_hill(slug: str) -> bool:
    return slug in HILLS
