"""Leaderboard and per-player history helpers.

Players are ranked by a conservative rating (rating minus two deviations),
so a new player with a lucky first win does not jump straight to the top.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from rich.table import Table

from corehill.core.store import BattleRecord, Player

PROVISIONAL_RD_THRESHOLD = 200

_BLOCKS = ["▁", "▂", "▃", "▄", "▅", "▆", "▇", "█"]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def conservative_rating(rating: float, rd: float | None) -> float:
    return _round_half_up(rating - 2 * rd) if rd is not None else rating


def build_rating_history(player_id: int, battles: list[BattleRecord]) -> list[float]:
    """Conservative rating after every battle, oldest first.

    ``battles`` is newest first, as stores return them. The first point is
    the rating before the player's earliest battle.
    """
    points: list[float] = []
    for b in reversed(battles):
        if b.challenger_id == player_id:
            before, after = b.challenger_before, b.challenger_after
        else:
            before, after = b.defender_before, b.defender_after
        if not points:
            points.append(conservative_rating(before.rating, before.rd))
        points.append(conservative_rating(after.rating, after.rd))
    return points


def ascii_sparkline(values: list[float]) -> str:
    if len(values) < 2:
        return ""
    lo = min(values)
    span = (max(values) - lo) or 1
    return "".join(
        _BLOCKS[_round_half_up((v - lo) / span * (len(_BLOCKS) - 1))] for v in values
    )


def find_decisive_round(
    round_results: list,
    challenger_wins: int,
    defender_wins: int,
) -> int:
    """Round in which the overall winner took its third round."""
    overall = "challenger" if challenger_wins > defender_wins else "defender"
    count = 0
    for r in round_results:
        if r.winner == overall:
            count += 1
            if count == 3:
                return r.round
    return round_results[-1].round if round_results else 5


@dataclass(frozen=True)
class Standing:
    rank: int
    player: Player
    score: float

    @property
    def provisional(self) -> bool:
        return self.player.rating.rd > PROVISIONAL_RD_THRESHOLD


def leaderboard(players: list[Player]) -> list[Standing]:
    ranked = sorted(
        players,
        key=lambda p: (conservative_rating(p.rating.rating, p.rating.rd), p.rating.rating),
        reverse=True,
    )
    return [
        Standing(rank=i, player=p, score=conservative_rating(p.rating.rating, p.rating.rd))
        for i, p in enumerate(ranked, 1)
    ]


def leaderboard_table(standings: list[Standing], title: str = "Leaderboard") -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Player")
    table.add_column("Score", justify="right")
    table.add_column("Rating", justify="right")
    table.add_column("RD", justify="right")
    table.add_column("W-L-T", justify="right")
    for s in standings:
        p = s.player
        name = f"{p.name} [dim](provisional)[/dim]" if s.provisional else p.name
        table.add_row(
            str(s.rank),
            name,
            f"{s.score:.0f}",
            f"{p.rating.rating:.0f}",
            f"{p.rating.rd:.2f}",
            f"{p.wins}-{p.losses}-{p.ties}",
        )
    return table
