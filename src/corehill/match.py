"""MatchRunner — plays a multi-round match between two warriors.

Validates both warriors against the hill's length limit, then runs
``num_rounds`` rounds. Each round gets a fresh seed and its own Mulberry32
generator, which is passed to the simulator explicitly. Odd-indexed rounds
swap the warriors' simulator slots so neither side keeps the first-mover
advantage the simulator gives slot 0.

A simulator fault in any round aborts the whole match; no partial verdict
is ever returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from corehill.core.errors import SimulatorError, ValidationError
from corehill.core.seed import SeedManager
from corehill.core.simulator import Simulator
from corehill.core.validator import validate_program
from corehill.hills import HillConfig, SimSettings

logger = logging.getLogger(__name__)

CHALLENGER = "challenger"
DEFENDER = "defender"
TIE = "tie"

CHALLENGER_WIN = "challenger_win"
DEFENDER_WIN = "defender_win"


@dataclass(frozen=True)
class RoundResult:
    round: int  # 1-based
    winner: str  # "challenger" | "defender" | "tie"
    seed: int

    def to_dict(self) -> dict:
        return {"round": self.round, "winner": self.winner, "seed": self.seed}

    @classmethod
    def from_dict(cls, d: dict) -> RoundResult:
        return cls(round=int(d["round"]), winner=d["winner"], seed=int(d["seed"]))


@dataclass(frozen=True)
class RoundPlay:
    """Outcome of playing one round, including its true length."""

    winner: str
    cycles: int


@dataclass
class MatchVerdict:
    rounds: list[RoundResult] = field(default_factory=list)
    challenger_wins: int = 0
    defender_wins: int = 0
    ties: int = 0

    @property
    def overall_result(self) -> str:
        if self.challenger_wins > self.defender_wins:
            return CHALLENGER_WIN
        if self.defender_wins > self.challenger_wins:
            return DEFENDER_WIN
        return TIE

    def add(self, result: RoundResult) -> None:
        self.rounds.append(result)
        if result.winner == CHALLENGER:
            self.challenger_wins += 1
        elif result.winner == DEFENDER:
            self.defender_wins += 1
        else:
            self.ties += 1


def player_result(overall_result: str, is_challenger: bool) -> str:
    """'win' | 'loss' | 'tie' from one side's point of view."""
    if overall_result == TIE:
        return "tie"
    if overall_result == CHALLENGER_WIN:
        return "win" if is_challenger else "loss"
    return "loss" if is_challenger else "win"


def is_swapped(round_index: int) -> bool:
    """Odd-indexed rounds put the defender in slot 0."""
    return round_index % 2 != 0


def slot_roles(round_index: int) -> tuple[str, str]:
    """Logical role occupying each simulator slot for this round."""
    if is_swapped(round_index):
        return (DEFENDER, CHALLENGER)
    return (CHALLENGER, DEFENDER)


def winner_for_slot(winner_slot: int | None, round_index: int) -> str:
    if winner_slot is None:
        return TIE
    return slot_roles(round_index)[winner_slot]


def slot_programs(challenger: Any, defender: Any, round_index: int) -> list[Any]:
    if is_swapped(round_index):
        return [defender, challenger]
    return [challenger, defender]


class MatchRunner:
    """Runs matches against one simulator backend.

    Holds no per-match state, so one runner may serve concurrent matches.
    """

    def __init__(
        self,
        simulator: Simulator,
        seed_mgr: SeedManager | None = None,
    ) -> None:
        self.simulator = simulator
        self.seed_mgr = seed_mgr or SeedManager()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run_match(
        self,
        challenger_source: str,
        defender_source: str,
        hill: HillConfig,
    ) -> MatchVerdict:
        """Play every round of ``hill`` and return the verdict."""
        challenger, defender = self._parse_pair(
            challenger_source, defender_source, hill.max_length
        )

        verdict = MatchVerdict()
        for i in range(hill.num_rounds):
            seed = self.seed_mgr.next_seed()
            play = self.play_round(challenger, defender, hill.settings, i, seed)
            verdict.add(RoundResult(round=i + 1, winner=play.winner, seed=seed))
            logger.debug(
                "round %d/%d on %s: %s after %d cycles (seed=%d)",
                i + 1, hill.num_rounds, hill.slug, play.winner, play.cycles, seed,
            )

        logger.info(
            "match on %s: %s (%d-%d-%d)",
            hill.slug, verdict.overall_result,
            verdict.challenger_wins, verdict.defender_wins, verdict.ties,
        )
        return verdict

    def play_round(
        self,
        challenger: Any,
        defender: Any,
        settings: SimSettings,
        round_index: int,
        seed: int,
    ) -> RoundPlay:
        """Run one round to completion from parsed programs."""
        rng = self.seed_mgr.get_rng(seed)
        programs = slot_programs(challenger, defender, round_index)
        try:
            handle = self.simulator.initialize(settings, programs, rng)
            outcome = handle.run()
        except SimulatorError:
            raise
        except Exception as exc:
            raise SimulatorError(
                f"round {round_index + 1} (seed={seed}): {exc}"
            ) from exc
        return RoundPlay(
            winner=winner_for_slot(outcome.winner_slot, round_index),
            cycles=outcome.cycles,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _parse_pair(
        self, challenger_source: str, defender_source: str, max_length: int
    ) -> tuple[Any, Any]:
        """Validate both warriors even if the caller already did."""
        challenger = validate_program(self.simulator, challenger_source, max_length)
        defender = validate_program(self.simulator, defender_source, max_length)
        if not challenger.success or not defender.success:
            diagnostics = (
                [f"challenger: {e}" for e in challenger.errors]
                + [f"defender: {e}" for e in defender.errors]
            )
            raise ValidationError("Cannot battle with invalid warriors", diagnostics)
        return challenger.program, defender.program


def run_match(
    simulator: Simulator,
    challenger_source: str,
    defender_source: str,
    hill: HillConfig,
    seed_mgr: SeedManager | None = None,
) -> MatchVerdict:
    """Convenience wrapper around ``MatchRunner.run_match``."""
    return MatchRunner(simulator, seed_mgr).run_match(
        challenger_source, defender_source, hill
    )
