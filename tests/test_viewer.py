"""Tests for the terminal replay viewer."""

import io

from rich.console import Console

from corehill.core.simulator import AccessKind
from corehill.hills import HILLS
from corehill.match import CHALLENGER, DEFENDER
from corehill.replay import (
    AccessEvent,
    CoreView,
    PlaybackPacer,
    ReplaySession,
    ReplayState,
    ReplayStatus,
)
from corehill.reporting import render, render_core, watch

CHAMP = "MOV 0, 1\nJMP -1"
CONTENDER = "SPL 0\nMOV 0, 1\nDAT 0, 0"


def _text(renderable, width=120):
    console = Console(record=True, width=width, file=io.StringIO())
    console.print(renderable)
    return console.export_text()


class TestRenderCore:
    def test_grid_shape(self):
        state = ReplayState(view=CoreView(8000), max_cycles=80000)
        rows = render_core(state, width=32, height=4).plain.split("\n")
        assert len(rows) == 4
        assert all(len(r) == 32 for r in rows)

    def test_empty_core_is_dots(self):
        state = ReplayState(view=CoreView(64), max_cycles=10)
        assert set(render_core(state, width=8, height=8).plain.replace("\n", "")) == {"·"}

    def test_owned_block_is_coloured(self):
        view = CoreView(64)
        view.apply([AccessEvent(CHALLENGER, 0, AccessKind.WRITE)])
        text = render_core(ReplayState(view=view, max_cycles=10), width=8, height=8)
        assert text.plain[0] == "█"
        assert any("cyan" in str(span.style) for span in text.spans)

    def test_core_smaller_than_grid(self):
        state = ReplayState(view=CoreView(10), max_cycles=10)
        plain = render_core(state, width=8, height=2).plain
        assert plain.count("·") == 10


class TestRenderPanel:
    def test_names_and_cycle(self):
        state = ReplayState(view=CoreView(8000), max_cycles=80000, cycle=12345)
        state.challenger_tasks = 3
        out = _text(render(state, "alice", "bob", title="Battle #1"))
        assert "alice" in out
        assert "bob" in out
        assert "12,345" in out
        assert "dead" in out  # bob has no tasks

    def test_winner_shown_when_finished(self):
        state = ReplayState(view=CoreView(100), max_cycles=100)
        state.status = ReplayStatus.FINISHED
        state.winner = DEFENDER
        assert "Winner: defender" in _text(render(state, "alice", "bob"))


class TestWatch:
    def test_plays_session_to_end(self, scripted):
        settings = HILLS["94nop"].settings
        state = ReplayState(view=CoreView(settings.core_size), max_cycles=settings.max_cycles)
        console = Console(file=io.StringIO(), width=100)
        with ReplaySession(scripted, timeout_s=5) as session:
            session.init(CHAMP, CONTENDER, 5, settings, 0)
            state.initialized()
            prescan = session.prescan()
            state.prescanned(prescan.end_cycle)
            pacer = PlaybackPacer.for_round(prescan.end_cycle, target_seconds=0.01, fps=1000)
            watch(session, state, pacer, "alice", "bob", fps=1000, console=console)

        assert state.status is ReplayStatus.FINISHED
        assert state.winner == CHALLENGER
        assert state.cycle == 10
