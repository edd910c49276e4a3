"""BattleStore — persistence boundary for players, warriors and battles.

The arena only needs a handful of operations, the important one being
``commit_challenge``: both players' new ratings and the battle record are
written together or not at all.

Provides the ABC and an in-process implementation:
- MemoryStore: lock-guarded dicts, commits by staging then swapping
MongoStore lives in ``corehill.core.mongo_store``.
"""

from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from corehill.core.errors import ConflictError, NotFoundError
from corehill.core.glicko import RatingTriple
from corehill.core.schemas import validate_battle_doc
from corehill.match import RoundResult, player_result


@dataclass
class Player:
    id: int
    name: str
    rating: RatingTriple = field(default_factory=RatingTriple)
    wins: int = 0
    losses: int = 0
    ties: int = 0

    def record(self, result: str) -> None:
        if result == "win":
            self.wins += 1
        elif result == "loss":
            self.losses += 1
        else:
            self.ties += 1


@dataclass
class Warrior:
    id: int
    player_id: int
    name: str
    redcode: str


@dataclass
class BattleRecord:
    challenger_id: int
    defender_id: int
    hill: str
    result: str
    round_results: list[RoundResult]
    challenger_wins: int
    defender_wins: int
    ties: int
    challenger_redcode: str | None
    defender_redcode: str | None
    challenger_before: RatingTriple
    challenger_after: RatingTriple
    defender_before: RatingTriple
    defender_after: RatingTriple
    battle_id: int | None = None
    created_at: str | None = None

    def to_doc(self) -> dict:
        doc = {
            "battle_id": self.battle_id,
            "challenger_id": self.challenger_id,
            "defender_id": self.defender_id,
            "hill": self.hill,
            "result": self.result,
            "round_results": [r.to_dict() for r in self.round_results],
            "challenger_wins": self.challenger_wins,
            "defender_wins": self.defender_wins,
            "ties": self.ties,
            "challenger_redcode": self.challenger_redcode,
            "defender_redcode": self.defender_redcode,
            "created_at": self.created_at,
        }
        for key in ("challenger_before", "challenger_after", "defender_before", "defender_after"):
            doc[key] = asdict(getattr(self, key))
        return doc

    @classmethod
    def from_doc(cls, doc: dict) -> BattleRecord:
        return cls(
            battle_id=doc.get("battle_id"),
            challenger_id=doc["challenger_id"],
            defender_id=doc["defender_id"],
            hill=doc["hill"],
            result=doc["result"],
            round_results=[RoundResult.from_dict(r) for r in doc["round_results"]],
            challenger_wins=doc["challenger_wins"],
            defender_wins=doc["defender_wins"],
            ties=doc["ties"],
            challenger_redcode=doc.get("challenger_redcode"),
            defender_redcode=doc.get("defender_redcode"),
            challenger_before=RatingTriple(**doc["challenger_before"]),
            challenger_after=RatingTriple(**doc["challenger_after"]),
            defender_before=RatingTriple(**doc["defender_before"]),
            defender_after=RatingTriple(**doc["defender_after"]),
            created_at=doc.get("created_at"),
        )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class BattleStore(ABC):
    """Abstract base for arena persistence."""

    @abstractmethod
    def create_player(self, name: str) -> Player:
        """Create a player with default ratings. ConflictError if the name is taken."""

    @abstractmethod
    def get_player(self, player_id: int) -> Player | None:
        """Return the player or None."""

    @abstractmethod
    def list_players(self) -> list[Player]:
        """Return every player."""

    @abstractmethod
    def save_warrior(self, player_id: int, name: str, redcode: str) -> Warrior:
        """Create or replace the player's warrior."""

    @abstractmethod
    def get_warrior(self, player_id: int) -> Warrior | None:
        """Return the player's current warrior or None."""

    @abstractmethod
    def commit_challenge(
        self,
        record: BattleRecord,
        challenger_after: RatingTriple,
        defender_after: RatingTriple,
    ) -> BattleRecord:
        """Atomically update both players and insert ``record``.

        Returns the stored record with ``battle_id`` and ``created_at`` set.
        """

    @abstractmethod
    def get_battle(self, battle_id: int) -> BattleRecord | None:
        """Return the battle or None."""

    @abstractmethod
    def list_battles(self, player_id: int | None = None) -> list[BattleRecord]:
        """Battles newest first, optionally only those involving ``player_id``."""


class MemoryStore(BattleStore):
    """In-process store for tests and single-process runs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._players: dict[int, Player] = {}
        self._warriors: dict[int, Warrior] = {}
        self._battles: dict[int, dict] = {}
        self._next_warrior_id = 1

    def create_player(self, name: str) -> Player:
        with self._lock:
            if any(p.name == name for p in self._players.values()):
                raise ConflictError(f"Player name already taken: {name!r}")
            player = Player(id=len(self._players) + 1, name=name)
            self._players[player.id] = player
            return copy.deepcopy(player)

    def get_player(self, player_id: int) -> Player | None:
        with self._lock:
            player = self._players.get(player_id)
            return copy.deepcopy(player) if player else None

    def list_players(self) -> list[Player]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._players.values()]

    def save_warrior(self, player_id: int, name: str, redcode: str) -> Warrior:
        with self._lock:
            if player_id not in self._players:
                raise NotFoundError("player", player_id)
            existing = self._warriors.get(player_id)
            warrior_id = existing.id if existing else self._next_warrior_id
            if not existing:
                self._next_warrior_id += 1
            warrior = Warrior(id=warrior_id, player_id=player_id, name=name, redcode=redcode)
            self._warriors[player_id] = warrior
            return copy.deepcopy(warrior)

    def get_warrior(self, player_id: int) -> Warrior | None:
        with self._lock:
            warrior = self._warriors.get(player_id)
            return copy.deepcopy(warrior) if warrior else None

    def commit_challenge(
        self,
        record: BattleRecord,
        challenger_after: RatingTriple,
        defender_after: RatingTriple,
    ) -> BattleRecord:
        with self._lock:
            challenger = self._players.get(record.challenger_id)
            defender = self._players.get(record.defender_id)
            if challenger is None:
                raise NotFoundError("player", record.challenger_id)
            if defender is None:
                raise NotFoundError("player", record.defender_id)

            # Stage everything before touching live state
            stored = copy.deepcopy(record)
            stored.battle_id = len(self._battles) + 1
            stored.created_at = _now()
            doc = stored.to_doc()
            validate_battle_doc(doc)

            new_challenger = copy.deepcopy(challenger)
            new_challenger.rating = challenger_after
            new_challenger.record(player_result(record.result, True))
            new_defender = copy.deepcopy(defender)
            new_defender.rating = defender_after
            new_defender.record(player_result(record.result, False))

            self._players[new_challenger.id] = new_challenger
            self._players[new_defender.id] = new_defender
            self._battles[stored.battle_id] = doc
            return copy.deepcopy(stored)

    def get_battle(self, battle_id: int) -> BattleRecord | None:
        with self._lock:
            doc = self._battles.get(battle_id)
            return BattleRecord.from_doc(doc) if doc else None

    def list_battles(self, player_id: int | None = None) -> list[BattleRecord]:
        with self._lock:
            docs = sorted(self._battles.values(), key=lambda d: d["battle_id"], reverse=True)
            if player_id is not None:
                docs = [
                    d for d in docs
                    if player_id in (d["challenger_id"], d["defender_id"])
                ]
            return [BattleRecord.from_doc(d) for d in docs]
