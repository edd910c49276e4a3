"""Shared test fixtures for corehill."""

from dataclasses import dataclass
from pathlib import Path

import pytest

from corehill.core.simulator import (
    AccessKind,
    CycleReport,
    Diagnostic,
    MockSimulator,
    ParseOutcome,
    SimulationHandle,
    Simulator,
    SlotAccess,
)
from corehill.core.store import MemoryStore
from corehill.hills import HillConfig

WARRIORS_DIR = Path(__file__).resolve().parent.parent / "warriors"


@dataclass
class InitCall:
    settings: object
    programs: list
    rng: object
    rng_state: int


class ScriptedHandle(SimulationHandle):
    """Round whose winner slot and length are fixed up front.

    Every cycle slot 0 executes at ``cycle`` and slot 1 writes at
    ``cycle + 100``.
    """

    def __init__(self, max_cycles, winner_slot, end_cycle):
        super().__init__(max_cycles)
        self._scripted_winner = winner_slot
        self._end_cycle = end_cycle

    def _execute_cycle(self):
        c = self.cycle
        events = (
            SlotAccess(0, c, AccessKind.EXECUTE),
            SlotAccess(1, c + 100, AccessKind.WRITE),
        )
        if c + 1 >= self._end_cycle:
            counts = (
                1 if self._scripted_winner != 1 else 0,
                1 if self._scripted_winner != 0 else 0,
            )
            return CycleReport(events, counts, ended=True, winner_slot=self._scripted_winner)
        return CycleReport(events, (1, 1))


class ScriptedSimulator(Simulator):
    """Simulator double with scripted round outcomes.

    Programs are the source strings themselves. Any line containing ``BAD``
    is a parse error. ``winners`` lists the winning slot (or None) for
    successive ``initialize`` calls, cycling when exhausted.
    """

    def __init__(self, winners=(0,), end_cycle=10, fail_on_call=None):
        self.winners = list(winners)
        self.end_cycle = end_cycle
        self.fail_on_call = fail_on_call
        self.calls: list[InitCall] = []

    def parse(self, source):
        lines = [line for line in source.splitlines() if line.strip()]
        diagnostics = tuple(
            Diagnostic(i, "Unknown opcode 'BAD'")
            for i, line in enumerate(source.splitlines(), start=1)
            if "BAD" in line
        )
        if not lines and not diagnostics:
            diagnostics = (Diagnostic(1, "No instructions found"),)
        return ParseOutcome(
            success=not diagnostics,
            diagnostics=diagnostics,
            instruction_count=len(lines),
            program=source if not diagnostics else None,
        )

    def initialize(self, settings, programs, rng):
        index = len(self.calls)
        self.calls.append(InitCall(settings, list(programs), rng, rng.state))
        if self.fail_on_call is not None and index == self.fail_on_call:
            raise RuntimeError("core dumped")
        winner = self.winners[index % len(self.winners)]
        return ScriptedHandle(settings.max_cycles, winner, self.end_cycle)


@pytest.fixture
def scripted():
    return ScriptedSimulator()


@pytest.fixture
def make_scripted():
    """Factory for simulators with custom round scripts."""
    return ScriptedSimulator


@pytest.fixture
def mock_sim():
    return MockSimulator()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def small_hill():
    """A cheap hill so MockSimulator rounds finish quickly."""
    return HillConfig(
        slug="94nop",
        name="Small",
        description="Test hill",
        core_size=800,
        max_cycles=2000,
        max_tasks=64,
        max_length=100,
        min_separation=100,
        num_rounds=5,
    )


@pytest.fixture
def dwarf():
    return (WARRIORS_DIR / "dwarf.red").read_text()


@pytest.fixture
def imp():
    return (WARRIORS_DIR / "imp.red").read_text()


@pytest.fixture
def paper():
    return (WARRIORS_DIR / "paper.red").read_text()
