"""Arena — the challenge and replay operations behind the hill.

A challenge loads both players and their warriors, plays the match on the
chosen hill, updates both Glicko-2 ratings and commits the ratings and
the battle record in one store transaction. Nothing is written unless
every step succeeds.

Replay lookups return everything a ``ReplayReconstructor`` needs for one
stored round, or a distinct error when the battle predates source
retention.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import corehill
from corehill.core.errors import (
    MissingReplayDataError,
    NotFoundError,
    ValidationError,
)
from corehill.core.glicko import RatingTriple, update_ratings
from corehill.core.schemas import validate_battle_doc
from corehill.core.simulator import Simulator
from corehill.core.store import BattleRecord, BattleStore, Player, Warrior
from corehill.core.telemetry import BattleLogger, RoundEntry
from corehill.core.validator import validate_program
from corehill.hills import (
    DEFAULT_HILL,
    HILLS,
    MAX_WARRIOR_LENGTH,
    HillConfig,
    SimSettings,
    get_hill,
)
from corehill.match import (
    CHALLENGER_WIN,
    DEFENDER_WIN,
    TIE,
    MatchRunner,
    MatchVerdict,
    RoundResult,
    is_swapped,
)

logger = logging.getLogger(__name__)

_OUTCOME = {
    CHALLENGER_WIN: "a_win",
    DEFENDER_WIN: "b_win",
    TIE: "tie",
}


@dataclass(frozen=True)
class RatingChange:
    name: str
    before: RatingTriple
    after: RatingTriple

    @property
    def change(self) -> float:
        return self.after.rating - self.before.rating


@dataclass(frozen=True)
class ChallengeResult:
    battle: BattleRecord
    verdict: MatchVerdict
    challenger: RatingChange
    defender: RatingChange


@dataclass(frozen=True)
class ReplayData:
    battle_id: int
    hill: str
    settings: SimSettings
    challenger_name: str
    challenger_redcode: str
    defender_name: str
    defender_redcode: str
    round_results: list[RoundResult]

    def round(self, number: int) -> RoundResult:
        """Return the stored result for 1-based round ``number``."""
        for r in self.round_results:
            if r.round == number:
                return r
        raise NotFoundError("round", number)


class Arena:
    """Challenge and replay operations over a store and a simulator."""

    def __init__(
        self,
        store: BattleStore,
        simulator: Simulator,
        runner: MatchRunner | None = None,
        default_hill: str = DEFAULT_HILL,
        battle_log_dir: Path | None = None,
    ) -> None:
        if get_hill(default_hill) is None:
            raise ValueError(f"Unknown hill: {default_hill!r}")
        self.store = store
        self.simulator = simulator
        self.runner = runner or MatchRunner(simulator)
        self.default_hill = default_hill
        self.battle_log_dir = battle_log_dir

    # ------------------------------------------------------------------
    # Players and warriors
    # ------------------------------------------------------------------

    def register_player(self, name: str) -> Player:
        name = name.strip()
        if not name:
            raise ValueError("Player name must not be empty")
        player = self.store.create_player(name)
        logger.info("registered player %d (%s)", player.id, player.name)
        return player

    def upload_warrior(self, player_id: int, name: str, redcode: str) -> Warrior:
        """Validate against the loosest hill limit and store the warrior."""
        if self.store.get_player(player_id) is None:
            raise NotFoundError("player", player_id)
        result = validate_program(self.simulator, redcode, MAX_WARRIOR_LENGTH)
        if not result.success:
            raise ValidationError("Invalid warrior", result.errors)
        return self.store.save_warrior(player_id, name, redcode)

    # ------------------------------------------------------------------
    # Challenge
    # ------------------------------------------------------------------

    def challenge(
        self,
        challenger_id: int,
        defender_id: int,
        hill: str | None = None,
    ) -> ChallengeResult:
        hill_cfg = get_hill(hill or self.default_hill)
        if hill_cfg is None:
            raise ValueError(f"Unknown hill: {hill!r}. Available: {list(HILLS)}")
        if challenger_id == defender_id:
            raise ValueError("You cannot challenge yourself")

        challenger = self._require_player(challenger_id)
        defender = self._require_player(defender_id)
        challenger_warrior = self._require_warrior(challenger_id)
        defender_warrior = self._require_warrior(defender_id)

        try:
            verdict = self.runner.run_match(
                challenger_warrior.redcode, defender_warrior.redcode, hill_cfg
            )
            challenger_after, defender_after = update_ratings(
                challenger.rating, defender.rating, _OUTCOME[verdict.overall_result]
            )
            record = BattleRecord(
                challenger_id=challenger.id,
                defender_id=defender.id,
                hill=hill_cfg.slug,
                result=verdict.overall_result,
                round_results=list(verdict.rounds),
                challenger_wins=verdict.challenger_wins,
                defender_wins=verdict.defender_wins,
                ties=verdict.ties,
                challenger_redcode=challenger_warrior.redcode,
                defender_redcode=defender_warrior.redcode,
                challenger_before=challenger.rating,
                challenger_after=challenger_after,
                defender_before=defender.rating,
                defender_after=defender_after,
            )
            stored = self.store.commit_challenge(record, challenger_after, defender_after)
        except (ValidationError, NotFoundError) as exc:
            logger.warning(
                "challenge %d vs %d on %s rejected: %s",
                challenger_id, defender_id, hill_cfg.slug, exc,
            )
            raise
        except Exception:
            logger.exception(
                "challenge %d vs %d on %s aborted", challenger_id, defender_id, hill_cfg.slug,
            )
            raise

        logger.info(
            "battle %s: %s vs %s on %s -> %s (%d-%d-%d)",
            stored.battle_id, challenger.name, defender.name, hill_cfg.slug,
            stored.result, stored.challenger_wins, stored.defender_wins, stored.ties,
        )
        if self.battle_log_dir is not None:
            self._log_battle(stored, hill_cfg)

        return ChallengeResult(
            battle=stored,
            verdict=verdict,
            challenger=RatingChange(challenger.name, challenger.rating, challenger_after),
            defender=RatingChange(defender.name, defender.rating, defender_after),
        )

    # ------------------------------------------------------------------
    # Lookup / replay
    # ------------------------------------------------------------------

    def get_battle(self, battle_id: int) -> BattleRecord:
        battle = self.store.get_battle(battle_id)
        if battle is None:
            raise NotFoundError("battle", battle_id)
        return battle

    def get_replay(self, battle_id: int) -> ReplayData:
        battle = self.get_battle(battle_id)
        if not battle.challenger_redcode or not battle.defender_redcode:
            raise MissingReplayDataError(battle_id)
        if not battle.round_results:
            raise MissingReplayDataError(battle_id)
        validate_battle_doc(battle.to_doc())

        # Records from before hills existed ran on the default hill
        hill_cfg = get_hill(battle.hill or DEFAULT_HILL) or HILLS[DEFAULT_HILL]
        challenger = self.store.get_player(battle.challenger_id)
        defender = self.store.get_player(battle.defender_id)

        return ReplayData(
            battle_id=battle_id,
            hill=hill_cfg.slug,
            settings=hill_cfg.settings,
            challenger_name=challenger.name if challenger else f"Player #{battle.challenger_id}",
            challenger_redcode=battle.challenger_redcode,
            defender_name=defender.name if defender else f"Player #{battle.defender_id}",
            defender_redcode=battle.defender_redcode,
            round_results=list(battle.round_results),
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _require_player(self, player_id: int) -> Player:
        player = self.store.get_player(player_id)
        if player is None:
            raise NotFoundError("player", player_id)
        return player

    def _require_warrior(self, player_id: int) -> Warrior:
        warrior = self.store.get_warrior(player_id)
        if warrior is None:
            raise NotFoundError("warrior", player_id)
        return warrior

    def _log_battle(self, battle: BattleRecord, hill_cfg: HillConfig) -> None:
        log = BattleLogger(self.battle_log_dir, battle.battle_id)
        for r in battle.round_results:
            log.log_round(RoundEntry(
                round=r.round,
                winner=r.winner,
                seed=r.seed,
                hill=hill_cfg.slug,
                challenger_id=battle.challenger_id,
                defender_id=battle.defender_id,
                swapped=is_swapped(r.round - 1),
                engine_version=corehill.__version__,
            ))
        log.finalize_battle({
            "hill": hill_cfg.slug,
            "result": battle.result,
            "challenger_wins": battle.challenger_wins,
            "defender_wins": battle.defender_wins,
            "ties": battle.ties,
            "ratings": {
                "challenger": [battle.challenger_before.rating, battle.challenger_after.rating],
                "defender": [battle.defender_before.rating, battle.defender_after.rating],
            },
        })
