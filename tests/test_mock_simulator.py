"""Tests for MockSimulator and the SimulationHandle base class."""

import pytest

from corehill.core.seed import Mulberry32
from corehill.core.simulator import AccessKind, MockProgram, MockSimulator
from corehill.hills import SimSettings

SETTINGS = SimSettings(core_size=800, max_cycles=2000, max_length=100, max_tasks=64, min_separation=100)


class TestParse:
    def test_dwarf(self, mock_sim, dwarf):
        result = mock_sim.parse(dwarf)
        assert result.success
        assert result.instruction_count == 4
        assert result.program == MockProgram(("ADD", "MOV", "JMP", "DAT"))

    def test_comments_and_blank_lines(self, mock_sim):
        result = mock_sim.parse("; only a comment\n\n  mov.i 0, 1 ; trailing\n")
        assert result.program == MockProgram(("MOV",))

    def test_stops_at_end(self, mock_sim):
        result = mock_sim.parse("MOV 0, 1\nEND\nBOGUS 1")
        assert result.success
        assert result.instruction_count == 1

    def test_unknown_opcode(self, mock_sim):
        result = mock_sim.parse("MOV 0, 1\nFOO 1, 2")
        assert not result.success
        assert result.diagnostics[0].line == 2
        assert result.diagnostics[0].message == "Unknown opcode 'FOO'"
        assert result.program is None

    def test_empty(self, mock_sim):
        result = mock_sim.parse(";nothing here")
        assert not result.success
        assert result.diagnostics[0].message == "No instructions found"


class TestInitialize:
    def _programs(self, mock_sim, *sources):
        return [mock_sim.parse(s).program for s in sources]

    def test_needs_two_programs(self, mock_sim, imp):
        with pytest.raises(ValueError):
            mock_sim.initialize(SETTINGS, self._programs(mock_sim, imp), Mulberry32(1))

    def test_rejects_foreign_program(self, mock_sim, imp):
        with pytest.raises(TypeError):
            mock_sim.initialize(SETTINGS, [mock_sim.parse(imp).program, "MOV 0, 1"], Mulberry32(1))

    def test_rejects_too_long(self, mock_sim):
        long_program = MockProgram(("MOV",) * 101)
        with pytest.raises(ValueError, match="instruction limit"):
            mock_sim.initialize(SETTINGS, [long_program, long_program], Mulberry32(1))

    def test_placement_respects_separation(self, mock_sim, imp, dwarf):
        programs = self._programs(mock_sim, imp, dwarf)
        for seed in range(50):
            handle = mock_sim.initialize(SETTINGS, programs, Mulberry32(seed))
            report = handle.step()
            starts = {e.slot: e.address for e in report.events if e.kind is AccessKind.EXECUTE}
            assert starts[0] == 0
            assert 100 <= starts[1] <= 700


class TestRun:
    def test_same_seed_same_outcome(self, mock_sim, imp, dwarf):
        programs = [mock_sim.parse(s).program for s in (imp, dwarf)]
        a = mock_sim.initialize(SETTINGS, programs, Mulberry32(9)).run()
        b = mock_sim.initialize(SETTINGS, programs, Mulberry32(9)).run()
        assert a == b

    def test_rounds_end_within_budget(self, mock_sim, imp, dwarf):
        programs = [mock_sim.parse(s).program for s in (imp, dwarf)]
        for seed in range(5):
            outcome = mock_sim.initialize(SETTINGS, programs, Mulberry32(seed)).run()
            assert 0 < outcome.cycles <= SETTINGS.max_cycles
            assert outcome.winner_slot in (0, 1, None)

    def test_step_after_end_raises(self, mock_sim, imp, dwarf):
        programs = [mock_sim.parse(s).program for s in (imp, dwarf)]
        handle = mock_sim.initialize(SETTINGS, programs, Mulberry32(1))
        handle.run()
        assert handle.ended
        with pytest.raises(RuntimeError):
            handle.step()

    def test_cycle_budget_ends_in_tie(self, mock_sim, paper):
        programs = [mock_sim.parse(paper).program] * 2
        tight = SimSettings(core_size=800, max_cycles=3, max_length=100, max_tasks=64, min_separation=100)
        handle = mock_sim.initialize(tight, programs, Mulberry32(1))
        outcome = handle.run()
        assert outcome.cycles == 3
        assert outcome.winner_slot is None
