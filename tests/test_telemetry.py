"""Tests for BattleLogger — JSONL battle logging."""

import json

import pytest

import corehill
from corehill.core.telemetry import BattleLogger, RoundEntry


@pytest.fixture
def logger(tmp_path):
    return BattleLogger(output_dir=tmp_path, battle_id=17)


def _make_entry(round_number=1, winner="challenger"):
    return RoundEntry(
        round=round_number,
        winner=winner,
        seed=123456,
        hill="big",
        challenger_id=1,
        defender_id=2,
        swapped=round_number % 2 == 0,
        engine_version=corehill.__version__,
    )


class TestBattleLogger:
    def test_file_name(self, logger, tmp_path):
        assert logger.file_path == tmp_path / "battle-17.jsonl"

    def test_creates_output_dir(self, tmp_path):
        nested = tmp_path / "a" / "b"
        BattleLogger(output_dir=nested, battle_id=1)
        assert nested.is_dir()

    def test_log_round_writes_valid_jsonl(self, logger):
        logger.log_round(_make_entry(1))
        logger.log_round(_make_entry(2, winner="tie"))
        lines = logger.file_path.read_text().strip().split("\n")
        assert len(lines) == 2
        for line in lines:
            parsed = json.loads(line)
            assert parsed["schema_version"] == "1.0.0"
            assert parsed["battle_id"] == 17
            assert "timestamp" in parsed

    def test_round_fields(self, logger):
        logger.log_round(_make_entry(2, winner="defender"))
        parsed = json.loads(logger.file_path.read_text())
        assert parsed["round"] == 2
        assert parsed["winner"] == "defender"
        assert parsed["seed"] == 123456
        assert parsed["swapped"] is True

    def test_finalize_battle(self, logger):
        logger.log_round(_make_entry(1))
        logger.finalize_battle({"result": "challenger_win"}, extra={"note": "rerun"})
        last = json.loads(logger.file_path.read_text().strip().split("\n")[-1])
        assert last["record_type"] == "battle_summary"
        assert last["result"] == "challenger_win"
        assert last["note"] == "rerun"
        assert last["engine_version"] == corehill.__version__
