"""Simulator — uniform interface to the Redcode instruction simulator.

The arena never interprets Redcode itself. It drives a backend through two
capabilities:

- ``parse(source)`` → ``ParseOutcome``
- ``initialize(settings, programs, rng)`` → ``SimulationHandle``, which is
  stepped one cycle at a time (replay) or run to completion (scoring).

The generator passed to ``initialize`` is the only randomness a backend may
use. Nothing here reads or replaces process-wide random state.

Provides the ABCs and one concrete backend:
- MockSimulator: deterministic toy MARS for offline runs and tests
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Sequence

from corehill.hills import SimSettings


class AccessKind(str, Enum):
    READ = "READ"
    WRITE = "WRITE"
    EXECUTE = "EXECUTE"


@dataclass(frozen=True)
class Diagnostic:
    line: int
    message: str


@dataclass(frozen=True)
class ParseOutcome:
    """Result of parsing one warrior.

    ``program`` is backend-specific and is handed back to ``initialize``
    untouched.
    """

    success: bool
    diagnostics: tuple[Diagnostic, ...] = ()
    instruction_count: int = 0
    program: Any = None


@dataclass(frozen=True)
class SlotAccess:
    """One core access, tagged with the simulator slot that made it."""

    slot: int
    address: int
    kind: AccessKind


@dataclass(frozen=True)
class CycleReport:
    events: tuple[SlotAccess, ...]
    task_counts: tuple[int, int]
    ended: bool = False
    winner_slot: int | None = None


@dataclass(frozen=True)
class RunOutcome:
    winner_slot: int | None  # None = no decisive winner
    cycles: int


class SimulationHandle(ABC):
    """One initialized round.

    Subclasses implement ``_execute_cycle``. The base class owns the cycle
    counter and the cycle budget: a round that reaches ``max_cycles``
    without a winner ends as a tie.
    """

    def __init__(self, max_cycles: int) -> None:
        self._max_cycles = max_cycles
        self._cycle = 0
        self._ended = False
        self._winner_slot: int | None = None

    @property
    def cycle(self) -> int:
        return self._cycle

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def winner_slot(self) -> int | None:
        return self._winner_slot

    def step(self) -> CycleReport:
        """Advance exactly one cycle."""
        if self._ended:
            raise RuntimeError("step() called after the round ended")
        report = self._execute_cycle()
        self._cycle += 1
        if report.ended:
            self._ended = True
            self._winner_slot = report.winner_slot
        elif self._cycle >= self._max_cycles:
            self._ended = True
            report = replace(report, ended=True, winner_slot=None)
        return report

    def run(self) -> RunOutcome:
        """Run to completion. Backends with a fast path may override."""
        while not self._ended:
            self.step()
        return RunOutcome(winner_slot=self._winner_slot, cycles=self._cycle)

    @abstractmethod
    def _execute_cycle(self) -> CycleReport:
        """Execute one cycle and report its accesses and any round end."""


class Simulator(ABC):
    """Abstract base for simulator backends."""

    @abstractmethod
    def parse(self, source: str) -> ParseOutcome:
        """Parse Redcode source. Never raises on bad input."""

    @abstractmethod
    def initialize(
        self,
        settings: SimSettings,
        programs: Sequence[Any],
        rng,
    ) -> SimulationHandle:
        """Load ``programs`` (slot order) into a fresh core.

        ``rng`` exposes ``random()`` and ``randrange(n)``; it is the
        round's sole randomness source.
        """


# ----------------------------------------------------------------------
# MockSimulator
# ----------------------------------------------------------------------

_OPCODES = frozenset({
    "DAT", "MOV", "ADD", "SUB", "MUL", "DIV", "MOD", "JMP", "JMZ", "JMN",
    "DJN", "CMP", "SEQ", "SNE", "SLT", "SPL", "NOP", "LDP", "STP",
})
_PSEUDO_OPS = frozenset({"ORG", "EQU", "FOR", "ROF", "PIN"})


@dataclass(frozen=True)
class MockProgram:
    opcodes: tuple[str, ...]


def _opcode_of(token: str) -> str:
    """'mov.i' -> 'MOV'."""
    return token.split(".", 1)[0].upper()


class MockSimulator(Simulator):
    """Deterministic offline backend.

    Only opcodes are recognised, not operands. Execution is a toy: each
    instruction bombs a moving pointer with DAT, SPL forks a task, JMP
    loops back to the start, and a task that executes a DAT dies. Enough
    to produce realistic access traces and decisive rounds.
    """

    def parse(self, source: str) -> ParseOutcome:
        opcodes: list[str] = []
        diagnostics: list[Diagnostic] = []

        for lineno, raw in enumerate(source.splitlines(), start=1):
            line = raw.split(";", 1)[0].strip()
            if not line:
                continue
            tokens = line.replace(",", " ").split()
            head = _opcode_of(tokens[0])
            if head == "END":
                break
            if head not in _OPCODES and head not in _PSEUDO_OPS and len(tokens) > 1:
                # Leading label
                head = _opcode_of(tokens[1])
                if head == "END":
                    break
            if head in _PSEUDO_OPS:
                continue
            if head not in _OPCODES:
                diagnostics.append(Diagnostic(lineno, f"Unknown opcode '{tokens[0]}'"))
                continue
            opcodes.append(head)

        if not opcodes and not diagnostics:
            diagnostics.append(Diagnostic(1, "No instructions found"))

        return ParseOutcome(
            success=not diagnostics,
            diagnostics=tuple(diagnostics),
            instruction_count=len(opcodes),
            program=MockProgram(tuple(opcodes)) if not diagnostics else None,
        )

    def initialize(
        self,
        settings: SimSettings,
        programs: Sequence[Any],
        rng,
    ) -> SimulationHandle:
        if len(programs) != 2:
            raise ValueError(f"MockSimulator runs exactly 2 warriors, got {len(programs)}")
        for program in programs:
            if not isinstance(program, MockProgram):
                raise TypeError(f"Not a MockProgram: {program!r}")
            if len(program.opcodes) > settings.max_length:
                raise ValueError(
                    f"Program of {len(program.opcodes)} instructions exceeds "
                    f"instruction limit {settings.max_length}"
                )
        return _MockHandle(settings, list(programs), rng)


@dataclass
class _Warrior:
    slot: int
    start: int
    length: int
    tasks: list[int] = field(default_factory=list)
    bomb_ptr: int = 0
    stride: int = 1


class _MockHandle(SimulationHandle):
    def __init__(self, settings: SimSettings, programs: list[MockProgram], rng) -> None:
        super().__init__(settings.max_cycles)
        self._size = settings.core_size
        self._max_tasks = settings.max_tasks
        self._core: dict[int, tuple[int, str]] = {}

        spread = max(1, self._size - 2 * settings.min_separation + 1)
        starts = [0, (settings.min_separation + rng.randrange(spread)) % self._size]

        self._warriors: list[_Warrior] = []
        for slot, (program, start) in enumerate(zip(programs, starts)):
            for offset, opcode in enumerate(program.opcodes):
                self._core[(start + offset) % self._size] = (slot, opcode)
            length = len(program.opcodes)
            self._warriors.append(_Warrior(
                slot=slot,
                start=start,
                length=length,
                tasks=[start],
                bomb_ptr=(start + length) % self._size,
                stride=2 * length + 3,
            ))

    def _owns(self, warrior: _Warrior, address: int) -> bool:
        return (address - warrior.start) % self._size < warrior.length

    def _next_bomb_target(self, warrior: _Warrior) -> int:
        target = (warrior.bomb_ptr + warrior.stride) % self._size
        while self._owns(warrior, target):
            target = (target + warrior.stride) % self._size
        warrior.bomb_ptr = target
        return target

    def _execute_cycle(self) -> CycleReport:
        events: list[SlotAccess] = []

        for warrior in self._warriors:
            if not warrior.tasks:
                continue
            pc = warrior.tasks.pop(0)
            events.append(SlotAccess(warrior.slot, pc, AccessKind.EXECUTE))
            _owner, opcode = self._core.get(pc, (None, "DAT"))
            if opcode == "DAT":
                continue

            following = (pc + 1) % self._size
            if not self._owns(warrior, following):
                following = warrior.start

            if opcode == "JMP":
                warrior.tasks.append(warrior.start)
            elif opcode == "SPL":
                warrior.tasks.append(following)
                if len(warrior.tasks) < self._max_tasks:
                    warrior.tasks.append(warrior.start)
            else:
                events.append(SlotAccess(warrior.slot, pc, AccessKind.READ))
                target = self._next_bomb_target(warrior)
                self._core[target] = (warrior.slot, "DAT")
                events.append(SlotAccess(warrior.slot, target, AccessKind.WRITE))
                warrior.tasks.append(following)

        counts = (len(self._warriors[0].tasks), len(self._warriors[1].tasks))
        alive = [i for i, n in enumerate(counts) if n > 0]
        if len(alive) == 1:
            return CycleReport(tuple(events), counts, ended=True, winner_slot=alive[0])
        if not alive:
            return CycleReport(tuple(events), counts, ended=True, winner_slot=None)
        return CycleReport(tuple(events), counts)
