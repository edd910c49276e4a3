"""MongoStore — BattleStore backed by MongoDB.

Players, warriors and battles live in three collections. Integer ids come
from a ``counters`` collection. ``commit_challenge`` runs inside a
multi-document transaction, so it needs a replica set (a single-node one
is enough). Storage failures are logged and re-raised as-is after the
transaction aborts.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from corehill.core.errors import ConflictError, NotFoundError
from corehill.core.glicko import RatingTriple
from corehill.core.schemas import validate_battle_doc
from corehill.core.store import BattleRecord, BattleStore, Player, Warrior
from corehill.match import player_result

logger = logging.getLogger(__name__)

_RESULT_FIELD = {"win": "wins", "loss": "losses", "tie": "ties"}


def _player_from_doc(doc: dict) -> Player:
    return Player(
        id=doc["_id"],
        name=doc["name"],
        rating=RatingTriple(
            rating=doc["rating"],
            rd=doc["rd"],
            volatility=doc["volatility"],
        ),
        wins=doc.get("wins", 0),
        losses=doc.get("losses", 0),
        ties=doc.get("ties", 0),
    )


class MongoStore(BattleStore):
    """BattleStore on a pymongo database."""

    def __init__(self, uri: str, db_name: str = "corehill") -> None:
        self._client = MongoClient(uri, serverSelectionTimeoutMS=5000)
        self._db = self._client[db_name]
        self._ensure_indexes()

    @classmethod
    def from_env(cls, env_var: str = "COREHILL_MONGO_URI", db_name: str = "corehill") -> MongoStore:
        uri = os.environ.get(env_var)
        if not uri:
            raise ValueError(f"No MongoDB URI provided and {env_var} not set")
        return cls(uri, db_name)

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Players / warriors
    # ------------------------------------------------------------------

    def create_player(self, name: str) -> Player:
        player = Player(id=self._next_id("players"), name=name)
        doc = {
            "_id": player.id,
            "name": name,
            "rating": player.rating.rating,
            "rd": player.rating.rd,
            "volatility": player.rating.volatility,
            "wins": 0,
            "losses": 0,
            "ties": 0,
            "created_at": datetime.now(timezone.utc),
        }
        try:
            self._db["players"].insert_one(doc)
        except DuplicateKeyError:
            raise ConflictError(f"Player name already taken: {name!r}") from None
        return player

    def get_player(self, player_id: int) -> Player | None:
        doc = self._db["players"].find_one({"_id": player_id})
        return _player_from_doc(doc) if doc else None

    def list_players(self) -> list[Player]:
        return [_player_from_doc(d) for d in self._db["players"].find()]

    def save_warrior(self, player_id: int, name: str, redcode: str) -> Warrior:
        if self._db["players"].count_documents({"_id": player_id}, limit=1) == 0:
            raise NotFoundError("player", player_id)
        existing = self._db["warriors"].find_one({"player_id": player_id})
        warrior_id = existing["_id"] if existing else self._next_id("warriors")
        self._db["warriors"].replace_one(
            {"_id": warrior_id},
            {
                "_id": warrior_id,
                "player_id": player_id,
                "name": name,
                "redcode": redcode,
                "updated_at": datetime.now(timezone.utc),
            },
            upsert=True,
        )
        return Warrior(id=warrior_id, player_id=player_id, name=name, redcode=redcode)

    def get_warrior(self, player_id: int) -> Warrior | None:
        doc = self._db["warriors"].find_one({"player_id": player_id})
        if not doc:
            return None
        return Warrior(
            id=doc["_id"], player_id=doc["player_id"], name=doc["name"], redcode=doc["redcode"],
        )

    # ------------------------------------------------------------------
    # Battles
    # ------------------------------------------------------------------

    def commit_challenge(
        self,
        record: BattleRecord,
        challenger_after: RatingTriple,
        defender_after: RatingTriple,
    ) -> BattleRecord:
        def _txn(session) -> dict:
            battle_id = self._next_id("battles", session=session)
            doc = record.to_doc()
            doc["battle_id"] = battle_id
            doc["created_at"] = datetime.now(timezone.utc).isoformat()
            validate_battle_doc(doc)

            self._apply_rating(
                record.challenger_id, challenger_after,
                player_result(record.result, True), session,
            )
            self._apply_rating(
                record.defender_id, defender_after,
                player_result(record.result, False), session,
            )
            self._db["battles"].insert_one({"_id": battle_id, **doc}, session=session)
            return doc

        try:
            with self._client.start_session() as session:
                doc = session.with_transaction(_txn)
        except PyMongoError as exc:
            logger.warning("Challenge commit aborted: %s", exc)
            raise
        return BattleRecord.from_doc(doc)

    def get_battle(self, battle_id: int) -> BattleRecord | None:
        doc = self._db["battles"].find_one({"_id": battle_id}, {"_id": 0})
        return BattleRecord.from_doc(doc) if doc else None

    def list_battles(self, player_id: int | None = None) -> list[BattleRecord]:
        query: dict = {}
        if player_id is not None:
            query = {"$or": [{"challenger_id": player_id}, {"defender_id": player_id}]}
        cursor = self._db["battles"].find(query, {"_id": 0}).sort("battle_id", DESCENDING)
        return [BattleRecord.from_doc(d) for d in cursor]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _apply_rating(self, player_id: int, rating: RatingTriple, result: str, session) -> None:
        updated = self._db["players"].update_one(
            {"_id": player_id},
            {
                "$set": {
                    "rating": rating.rating,
                    "rd": rating.rd,
                    "volatility": rating.volatility,
                    "updated_at": datetime.now(timezone.utc),
                },
                "$inc": {_RESULT_FIELD[result]: 1},
            },
            session=session,
        )
        if updated.matched_count == 0:
            raise NotFoundError("player", player_id)

    def _next_id(self, name: str, session=None) -> int:
        doc = self._db["counters"].find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return doc["seq"]

    def _ensure_indexes(self) -> None:
        """Create indexes for efficient querying."""
        try:
            self._db["players"].create_index("name", unique=True)
            self._db["warriors"].create_index("player_id", unique=True)
            battles = self._db["battles"]
            battles.create_index([("battle_id", DESCENDING)])
            battles.create_index([("challenger_id", ASCENDING), ("battle_id", DESCENDING)])
            battles.create_index([("defender_id", ASCENDING), ("battle_id", DESCENDING)])
        except PyMongoError as exc:
            logger.warning("Failed to create indexes: %s", exc)
