"""corehill reporting module.

Usage:
    from corehill.reporting import leaderboard, leaderboard_table, watch

    standings = leaderboard(store.list_players())
    Console().print(leaderboard_table(standings))
"""

from corehill.match import player_result

from .standings import (
    PROVISIONAL_RD_THRESHOLD,
    Standing,
    ascii_sparkline,
    build_rating_history,
    conservative_rating,
    find_decisive_round,
    leaderboard,
    leaderboard_table,
)
from .viewer import render, render_core, watch

__all__ = [
    "PROVISIONAL_RD_THRESHOLD",
    "Standing",
    "ascii_sparkline",
    "build_rating_history",
    "conservative_rating",
    "find_decisive_round",
    "leaderboard",
    "leaderboard_table",
    "player_result",
    "render",
    "render_core",
    "watch",
]
