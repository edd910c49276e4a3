"""BattleLogger — JSONL battle logging.

One logger per battle. Writes one JSONL line per round plus a battle
summary as the final line. All entries include schema version and
battle ID.
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

import corehill

_SCHEMA_VERSION = "1.0.0"


@dataclass
class RoundEntry:
    """One round of battle telemetry."""

    round: int
    winner: str
    seed: int
    hill: str
    challenger_id: int
    defender_id: int
    swapped: bool
    engine_version: str


class BattleLogger:
    """Writes JSONL telemetry for a single battle."""

    def __init__(self, output_dir: Path, battle_id: int | str):
        self._output_dir = Path(output_dir)
        self._battle_id = battle_id
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._output_dir / f"battle-{battle_id}.jsonl"

    @property
    def file_path(self) -> Path:
        return self._file_path

    def log_round(self, entry: RoundEntry) -> None:
        record = asdict(entry)
        record["schema_version"] = _SCHEMA_VERSION
        record["battle_id"] = self._battle_id
        record["timestamp"] = datetime.now(timezone.utc).isoformat()
        self._append(record)

    def finalize_battle(self, summary: dict, extra: dict | None = None) -> None:
        record = {
            "schema_version": _SCHEMA_VERSION,
            "record_type": "battle_summary",
            "battle_id": self._battle_id,
            "engine_version": corehill.__version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **summary,
        }
        if extra:
            record.update(extra)
        self._append(record)

    def _append(self, record: dict) -> None:
        with open(self._file_path, "a") as f:
            f.write(json.dumps(record, default=str) + "\n")
