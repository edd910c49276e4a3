"""Replay — rebuild a stored round cycle by cycle.

``ReplayReconstructor`` re-drives the simulator from a round's stored seed
with exactly the slot assignment and generator the match used, so the
replayed winner matches the recorded one. Its access events fold into a
``CoreView`` (territory + activity maps) for display.

Replays run off the caller's thread: ``ReplayWorker`` owns a reconstructor
on a daemon thread and talks to a ``ReplaySession`` through two queues. The
session allows one outstanding request at a time, and ``PlaybackPacer``
decides how many cycles each display frame asks for.
"""

from __future__ import annotations

import logging
import math
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

from corehill.core.errors import ValidationError
from corehill.core.seed import Mulberry32
from corehill.core.simulator import AccessKind, SimulationHandle, Simulator
from corehill.hills import SimSettings
from corehill.match import slot_programs, slot_roles, winner_for_slot

logger = logging.getLogger(__name__)

ACTIVITY_PEAK = 3
_DECAY = bytes(max(0, i - 1) for i in range(256))


@dataclass(frozen=True)
class AccessEvent:
    role: str  # "challenger" | "defender"
    address: int
    kind: AccessKind


@dataclass(frozen=True)
class RoundEnd:
    winner: str
    cycle: int


@dataclass(frozen=True)
class StepBatch:
    """Everything one ``step``/``run_to_end`` call produced."""

    events: list[AccessEvent]
    cycle: int
    challenger_tasks: int
    defender_tasks: int
    round_end: RoundEnd | None = None


@dataclass(frozen=True)
class PrescanResult:
    end_cycle: int
    winner: str


# ======================================================================
# Reconstructor
# ======================================================================

class ReplayReconstructor:
    """Steps one stored round through the simulator."""

    def __init__(self, simulator: Simulator) -> None:
        self.simulator = simulator
        self._handle: SimulationHandle | None = None
        self._programs: list[Any] = []
        self._settings: SimSettings | None = None
        self._seed = 0
        self._round_index = 0
        self._roles: tuple[str, str] = slot_roles(0)
        self._tasks = [0, 0]
        self._round_end: RoundEnd | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def init(
        self,
        challenger_source: str,
        defender_source: str,
        seed: int,
        settings: SimSettings,
        round_index: int,
    ) -> None:
        """Prepare round ``round_index`` (0-based) under ``seed``."""
        if round_index < 0:
            raise ValueError(f"round_index must be >= 0, got {round_index}")
        challenger = self.simulator.parse(challenger_source)
        defender = self.simulator.parse(defender_source)
        if not challenger.success or not defender.success:
            raise ValidationError("Failed to parse warrior Redcode")

        self._programs = slot_programs(challenger.program, defender.program, round_index)
        self._settings = settings
        self._seed = seed
        self._round_index = round_index
        self._roles = slot_roles(round_index)
        self._handle = self._fresh_handle()
        self._tasks = [0, 0]
        self._round_end = None

    def prescan(self) -> PrescanResult:
        """Run an independent copy of the round silently to learn its length."""
        handle = self._fresh_handle()
        outcome = handle.run()
        return PrescanResult(
            end_cycle=outcome.cycles,
            winner=winner_for_slot(outcome.winner_slot, self._round_index),
        )

    def step(self, count: int = 1) -> StepBatch:
        """Advance up to ``count`` cycles, stopping early at round end."""
        handle = self._require_handle()
        events: list[AccessEvent] = []
        for _ in range(max(1, count)):
            if handle.ended:
                break
            self._advance(handle, events)
        return self._batch(handle, events)

    def run_to_end(self) -> StepBatch:
        """Advance until a winner emerges or the cycle budget runs out."""
        handle = self._require_handle()
        events: list[AccessEvent] = []
        while not handle.ended:
            self._advance(handle, events)
        return self._batch(handle, events)

    @property
    def cycle(self) -> int:
        return self._handle.cycle if self._handle else 0

    @property
    def round_end(self) -> RoundEnd | None:
        return self._round_end

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _fresh_handle(self) -> SimulationHandle:
        if self._settings is None:
            raise RuntimeError("init() must be called first")
        return self.simulator.initialize(
            self._settings, self._programs, Mulberry32(self._seed)
        )

    def _require_handle(self) -> SimulationHandle:
        if self._handle is None:
            raise RuntimeError("init() must be called first")
        return self._handle

    def _advance(self, handle: SimulationHandle, events: list[AccessEvent]) -> None:
        report = handle.step()
        for access in report.events:
            events.append(AccessEvent(
                role=self._roles[access.slot],
                address=access.address,
                kind=access.kind,
            ))
        for slot, count in enumerate(report.task_counts):
            self._tasks[slot] = count
        if report.ended:
            self._round_end = RoundEnd(
                winner=winner_for_slot(report.winner_slot, self._round_index),
                cycle=handle.cycle,
            )

    def _batch(self, handle: SimulationHandle, events: list[AccessEvent]) -> StepBatch:
        by_role = dict(zip(self._roles, self._tasks))
        return StepBatch(
            events=events,
            cycle=handle.cycle,
            challenger_tasks=by_role["challenger"],
            defender_tasks=by_role["defender"],
            round_end=self._round_end if handle.ended else None,
        )


# ======================================================================
# Territory / activity
# ======================================================================

class Owner(IntEnum):
    UNCLAIMED = 0
    CHALLENGER = 1
    DEFENDER = 2


_ROLE_OWNER = {"challenger": Owner.CHALLENGER, "defender": Owner.DEFENDER}


class CoreView:
    """Per-address owner and decaying activity, one byte per cell."""

    def __init__(self, core_size: int) -> None:
        if core_size <= 0:
            raise ValueError(f"core_size must be positive, got {core_size}")
        self.core_size = core_size
        self.territory = bytearray(core_size)
        self.activity = bytearray(core_size)

    def apply(self, events: list[AccessEvent]) -> None:
        """Fold one batch of events.

        Every address decays by one first, so addresses touched in this
        batch end at the peak and the rest fade.
        """
        self.activity = bytearray(self.activity.translate(_DECAY))
        for event in events:
            addr = event.address % self.core_size
            owner = _ROLE_OWNER[event.role]
            if event.kind is AccessKind.WRITE:
                self.territory[addr] = owner
            elif event.kind is AccessKind.EXECUTE and self.territory[addr] == Owner.UNCLAIMED:
                self.territory[addr] = owner
            self.activity[addr] = ACTIVITY_PEAK

    def owner_at(self, address: int) -> Owner:
        return Owner(self.territory[address % self.core_size])

    def counts(self) -> dict[Owner, int]:
        return {o: self.territory.count(o) for o in Owner}


# ======================================================================
# Viewing state
# ======================================================================

class ReplayStatus(Enum):
    LOADING = "loading"
    SCANNING = "scanning"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"
    ERROR = "error"


def format_cycle(n: int) -> str:
    return f"{n:,}"


@dataclass
class ReplayState:
    """What a viewer needs to draw one moment of a replay."""

    view: CoreView
    max_cycles: int
    status: ReplayStatus = ReplayStatus.LOADING
    cycle: int = 0
    end_cycle: int | None = None
    challenger_tasks: int = 0
    defender_tasks: int = 0
    winner: str | None = None
    error_message: str | None = None

    @property
    def challenger_alive(self) -> bool:
        return self.challenger_tasks > 0

    @property
    def defender_alive(self) -> bool:
        return self.defender_tasks > 0

    def progress(self) -> float:
        """Percent of the round shown so far."""
        effective_max = self.end_cycle if self.end_cycle is not None else self.max_cycles
        return (self.cycle / effective_max) * 100 if effective_max > 0 else 0.0

    def initialized(self) -> None:
        self.status = ReplayStatus.SCANNING

    def prescanned(self, end_cycle: int) -> None:
        self.status = ReplayStatus.READY
        self.end_cycle = end_cycle

    def play(self) -> None:
        self.status = ReplayStatus.PLAYING

    def pause(self) -> None:
        if self.status is ReplayStatus.PLAYING:
            self.status = ReplayStatus.PAUSED

    def fail(self, message: str) -> None:
        self.status = ReplayStatus.ERROR
        self.error_message = message

    def apply(self, batch: StepBatch) -> None:
        self.view.apply(batch.events)
        self.cycle = batch.cycle
        self.challenger_tasks = batch.challenger_tasks
        self.defender_tasks = batch.defender_tasks
        if batch.round_end is not None:
            self.status = ReplayStatus.FINISHED
            self.winner = batch.round_end.winner
            self.cycle = batch.round_end.cycle
            self.end_cycle = batch.round_end.cycle


# ======================================================================
# Pacing
# ======================================================================

@dataclass(frozen=True)
class PlaybackPacer:
    """Cycles per frame and frame skip for a round of known length.

    Long rounds step several cycles every frame. Short rounds step one
    cycle every ``frame_skip`` frames, with the skip capped at
    ``max_frame_skip`` so very short rounds stay watchable.
    """

    cycles_per_frame: int
    frame_skip: int

    @classmethod
    def for_round(
        cls,
        end_cycle: int,
        target_seconds: float = 15,
        fps: int = 60,
        max_frame_skip: int = 10,
    ) -> PlaybackPacer:
        target_frames = max(1, int(target_seconds * fps))
        if end_cycle <= 0:
            return cls(cycles_per_frame=1, frame_skip=1)
        if end_cycle <= target_frames:
            skip = max(1, math.floor(target_frames / end_cycle + 0.5))
            return cls(cycles_per_frame=1, frame_skip=min(max_frame_skip, skip))
        return cls(cycles_per_frame=math.ceil(end_cycle / target_frames), frame_skip=1)

    def cycles_for_frame(self, frame_number: int) -> int:
        """Cycles to request on 1-based ``frame_number`` (0 = skip it)."""
        return self.cycles_per_frame if frame_number % self.frame_skip == 0 else 0


# ======================================================================
# Worker / session
# ======================================================================

_SENTINEL = object()


@dataclass(frozen=True)
class ReplayRequest:
    kind: str  # "init" | "prescan" | "step" | "run_to_end"
    payload: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ReplayReply:
    kind: str  # "initialized" | "prescan_done" | "events" | "error"
    payload: Any = None


class ReplayWorker:
    """Background thread owning one reconstructor.

    Requests are handled strictly in order. ``terminate`` drops any
    in-flight work; there is no mid-round cancellation.
    """

    def __init__(self, simulator: Simulator) -> None:
        self._reconstructor = ReplayReconstructor(simulator)
        self.inbox: queue.Queue = queue.Queue()
        self.outbox: queue.Queue = queue.Queue()
        self._terminated = threading.Event()
        self._thread = threading.Thread(
            target=self._loop, daemon=True, name="replay-worker",
        )
        self._thread.start()

    @property
    def alive(self) -> bool:
        return self._thread.is_alive() and not self._terminated.is_set()

    def terminate(self) -> None:
        self._terminated.set()
        self.inbox.put(_SENTINEL)

    def _loop(self) -> None:
        while True:
            request = self.inbox.get()
            if request is _SENTINEL or self._terminated.is_set():
                return
            reply = self._handle(request)
            if not self._terminated.is_set():
                self.outbox.put(reply)

    def _handle(self, request: ReplayRequest) -> ReplayReply:
        rec = self._reconstructor
        try:
            if request.kind == "init":
                rec.init(**request.payload)
                return ReplayReply("initialized")
            if request.kind == "prescan":
                return ReplayReply("prescan_done", rec.prescan())
            if request.kind == "step":
                return ReplayReply("events", rec.step(request.payload.get("count", 1)))
            if request.kind == "run_to_end":
                return ReplayReply("events", rec.run_to_end())
            return ReplayReply("error", f"Unknown request: {request.kind!r}")
        except Exception as exc:
            logger.warning("replay worker failed on %s: %s", request.kind, exc)
            return ReplayReply("error", str(exc))


class ReplayError(RuntimeError):
    pass


class ReplaySession:
    """Controller side of a replay: one request in flight at a time."""

    def __init__(self, simulator: Simulator, timeout_s: float | None = None) -> None:
        self._worker = ReplayWorker(simulator)
        self._timeout_s = timeout_s
        self._lock = threading.Lock()

    def __enter__(self) -> ReplaySession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def init(
        self,
        challenger_source: str,
        defender_source: str,
        seed: int,
        settings: SimSettings,
        round_index: int,
    ) -> None:
        self._request("init", {
            "challenger_source": challenger_source,
            "defender_source": defender_source,
            "seed": seed,
            "settings": settings,
            "round_index": round_index,
        })

    def prescan(self) -> PrescanResult:
        return self._request("prescan")

    def step(self, count: int = 1) -> StepBatch:
        return self._request("step", {"count": count})

    def run_to_end(self) -> StepBatch:
        return self._request("run_to_end")

    def close(self) -> None:
        self._worker.terminate()

    def _request(self, kind: str, payload: dict | None = None) -> Any:
        with self._lock:
            if not self._worker.alive:
                raise ReplayError("replay worker has been terminated")
            self._worker.inbox.put(ReplayRequest(kind, payload or {}))
            try:
                reply: ReplayReply = self._worker.outbox.get(timeout=self._timeout_s)
            except queue.Empty:
                # The request is still running; a late reply must never answer
                # the next one, so the session is finished.
                self._worker.terminate()
                raise ReplayError(
                    f"replay worker timed out on {kind!r}; session terminated"
                ) from None
        if reply.kind == "error":
            raise ReplayError(reply.payload)
        return reply.payload


def replay_round(
    simulator: Simulator,
    challenger_source: str,
    defender_source: str,
    seed: int,
    settings: SimSettings,
    round_index: int,
) -> tuple[StepBatch, CoreView]:
    """Replay one round to the end in-process and return its final view."""
    rec = ReplayReconstructor(simulator)
    rec.init(challenger_source, defender_source, seed, settings, round_index)
    view = CoreView(settings.core_size)
    batch = rec.run_to_end()
    view.apply(batch.events)
    return batch, view
