"""Terminal replay viewer.

Draws the core as a down-sampled grid: each character covers a block of
addresses, coloured by whichever side owns most of it and shaded by the
hottest address in the block.
"""

from __future__ import annotations

import time

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from corehill.replay import (
    ACTIVITY_PEAK,
    Owner,
    PlaybackPacer,
    ReplaySession,
    ReplayState,
    ReplayStatus,
    format_cycle,
)

GRID_WIDTH = 64
GRID_HEIGHT = 16

# Player color scheme
OWNER_COLORS = {
    Owner.CHALLENGER: "cyan",
    Owner.DEFENDER: "magenta",
}

_SHADES = {0: "░", 1: "▒", 2: "▓", ACTIVITY_PEAK: "█"}


def _cell(territory: bytes, activity: bytes) -> tuple[str, str]:
    """Glyph and style for one block of addresses."""
    challenger = territory.count(Owner.CHALLENGER)
    defender = territory.count(Owner.DEFENDER)
    heat = max(activity) if activity else 0
    if challenger == 0 and defender == 0:
        return ("·", "bright_black") if heat == 0 else (_SHADES[heat], "white")
    owner = Owner.CHALLENGER if challenger >= defender else Owner.DEFENDER
    return _SHADES[heat], OWNER_COLORS[owner]


def render_core(state: ReplayState, width: int = GRID_WIDTH, height: int = GRID_HEIGHT) -> Text:
    view = state.view
    cells = width * height
    block = max(1, -(-view.core_size // cells))  # ceil
    text = Text()
    for row in range(height):
        for col in range(width):
            start = (row * width + col) * block
            if start >= view.core_size:
                text.append(" ")
                continue
            end = min(view.core_size, start + block)
            glyph, style = _cell(view.territory[start:end], view.activity[start:end])
            text.append(glyph, style=style)
        if row < height - 1:
            text.append("\n")
    return text


def render_status(state: ReplayState, challenger_name: str, defender_name: str) -> Table:
    table = Table.grid(padding=(0, 2))
    table.add_column()
    table.add_column(justify="right")
    table.add_column()
    for name, tasks, alive, color in (
        (challenger_name, state.challenger_tasks, state.challenger_alive, "cyan"),
        (defender_name, state.defender_tasks, state.defender_alive, "magenta"),
    ):
        table.add_row(
            Text(name, style=f"bold {color}"),
            f"{tasks} tasks",
            "" if alive else Text("dead", style="red"),
        )
    cycle = f"cycle {format_cycle(state.cycle)}"
    if state.end_cycle is not None:
        cycle += f" / {format_cycle(state.end_cycle)}"
    table.add_row(Text(cycle, style="dim"), f"{state.progress():.0f}%", "")
    if state.status is ReplayStatus.FINISHED:
        table.add_row(Text(f"Winner: {state.winner}", style="bold green"), "", "")
    return table


def render(state: ReplayState, challenger_name: str, defender_name: str, title: str = "") -> Panel:
    return Panel(
        Group(render_core(state), Text(""), render_status(state, challenger_name, defender_name)),
        title=title or None,
        border_style="blue",
    )


def watch(
    session: ReplaySession,
    state: ReplayState,
    pacer: PlaybackPacer,
    challenger_name: str,
    defender_name: str,
    *,
    fps: int = 60,
    title: str = "",
    console: Console | None = None,
) -> ReplayState:
    """Play a prescanned session to the end, one request per drawn frame."""
    state.play()
    frame = 0
    with Live(
        render(state, challenger_name, defender_name, title),
        console=console,
        refresh_per_second=min(fps, 30),
    ) as live:
        while state.status is ReplayStatus.PLAYING:
            frame += 1
            cycles = pacer.cycles_for_frame(frame)
            if cycles:
                state.apply(session.step(cycles))
                live.update(render(state, challenger_name, defender_name, title))
            time.sleep(1 / fps)
    return state
