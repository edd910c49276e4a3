"""CLI entry point: python -m corehill <command> ..."""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console

from corehill.arena import Arena, ReplayData
from corehill.config import ArenaConfig, load_config, load_simulator
from corehill.core.errors import ArenaError
from corehill.core.seed import SeedManager
from corehill.core.store import BattleStore, MemoryStore
from corehill.hills import HILLS, SimSettings, get_hill
from corehill.match import MatchRunner
from corehill.replay import CoreView, PlaybackPacer, ReplaySession, ReplayState
from corehill.reporting import leaderboard, leaderboard_table, watch


def _build_store(config: ArenaConfig) -> BattleStore:
    if config.storage.backend == "mongo":
        from corehill.core.mongo_store import MongoStore

        return MongoStore.from_env(config.storage.mongo_uri_env, config.storage.db_name)
    return MemoryStore()


def build_arena(config: ArenaConfig) -> Arena:
    simulator = load_simulator(config.simulator)
    runner = MatchRunner(simulator, SeedManager(config.seed))
    return Arena(
        _build_store(config),
        simulator,
        runner,
        default_hill=config.default_hill,
        battle_log_dir=config.logging.battle_log_dir,
    )


def _cmd_hills(args) -> None:
    for hill in HILLS.values():
        print(f"  {hill.slug:10s} {hill.name}")
        print(f"    {hill.description}")
        print(
            f"    core={hill.core_size} cycles={hill.max_cycles} tasks={hill.max_tasks} "
            f"length={hill.max_length} separation={hill.min_separation} "
            f"rounds={hill.num_rounds}"
        )
        print()


def _cmd_battle(args, config: ArenaConfig) -> None:
    arena = build_arena(config)
    players = []
    for path in (args.challenger, args.defender):
        player = arena.register_player(path.stem)
        arena.upload_warrior(player.id, path.stem, path.read_text())
        players.append(player)

    result = arena.challenge(players[0].id, players[1].id, hill=args.hill)
    battle = result.battle

    print("=" * 60)
    print(f"BATTLE #{battle.battle_id} on {battle.hill}")
    print("=" * 60)
    for r in battle.round_results:
        print(f"  Round {r.round}: {r.winner:10s} (seed={r.seed})")
    print()
    print(
        f"  Result: {battle.result}  "
        f"({battle.challenger_wins}-{battle.defender_wins}-{battle.ties})"
    )
    for change in (result.challenger, result.defender):
        print(
            f"    {change.name:20s} {change.before.rating:>6.0f} -> {change.after.rating:>6.0f} "
            f"({change.change:+.0f})  rd {change.before.rd:.2f} -> {change.after.rd:.2f}"
        )
    print()
    Console().print(leaderboard_table(leaderboard(arena.store.list_players())))

    if args.watch:
        _watch_stored(arena.simulator, config, arena.get_replay(battle.battle_id), args.watch)


def _cmd_replay(args, config: ArenaConfig) -> None:
    if args.battle is not None:
        arena = build_arena(config)
        _watch_stored(arena.simulator, config, arena.get_replay(args.battle), args.round)
        return

    if args.challenger is None or args.defender is None or args.seed is None:
        print(
            "Error: replay needs --battle, or two warrior files and --seed",
            file=sys.stderr,
        )
        sys.exit(2)
    if args.round < 1:
        print(f"Error: --round must be 1 or more, got {args.round}", file=sys.stderr)
        sys.exit(2)
    hill = get_hill(args.hill or config.default_hill)
    if hill is None:
        print(f"Error: unknown hill {args.hill!r}", file=sys.stderr)
        sys.exit(2)
    state = _watch(
        load_simulator(config.simulator),
        config,
        hill.settings,
        (args.challenger.stem, args.challenger.read_text()),
        (args.defender.stem, args.defender.read_text()),
        args.seed,
        args.round,
        title=f"{args.challenger.stem} vs {args.defender.stem} — round {args.round} ({hill.slug})",
    )
    print(f"Winner: {state.winner} after {state.cycle:,} cycles")


def _watch_stored(simulator, config: ArenaConfig, data: ReplayData, round_number: int) -> None:
    stored = data.round(round_number)
    state = _watch(
        simulator,
        config,
        data.settings,
        (data.challenger_name, data.challenger_redcode),
        (data.defender_name, data.defender_redcode),
        stored.seed,
        round_number,
        title=f"Battle #{data.battle_id} — round {round_number} ({data.hill})",
    )
    print(f"Recorded winner: {stored.winner}  Replayed winner: {state.winner}")


def _watch(
    simulator,
    config: ArenaConfig,
    settings: SimSettings,
    challenger: tuple[str, str],
    defender: tuple[str, str],
    seed: int,
    round_number: int,
    title: str = "",
) -> ReplayState:
    state = ReplayState(view=CoreView(settings.core_size), max_cycles=settings.max_cycles)
    with ReplaySession(simulator) as session:
        session.init(challenger[1], defender[1], seed, settings, round_number - 1)
        state.initialized()
        prescan = session.prescan()
        state.prescanned(prescan.end_cycle)
        pacer = PlaybackPacer.for_round(
            prescan.end_cycle,
            target_seconds=config.replay.target_seconds,
            fps=config.replay.fps,
            max_frame_skip=config.replay.max_frame_skip,
        )
        watch(
            session,
            state,
            pacer,
            challenger[0],
            defender[0],
            fps=config.replay.fps,
            title=title,
        )
    return state


def main() -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="corehill",
        description="Core War hill: matches, ratings and replays",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("hills", help="List the available hills")

    p_battle = sub.add_parser("battle", help="Run one match between two warrior files")
    p_battle.add_argument("config", type=Path, help="Path to arena YAML config file")
    p_battle.add_argument("challenger", type=Path, help="Challenger Redcode file")
    p_battle.add_argument("defender", type=Path, help="Defender Redcode file")
    p_battle.add_argument("--hill", default=None, help="Hill slug (default: from config)")
    p_battle.add_argument(
        "--watch", type=int, default=None, metavar="ROUND",
        help="Replay this round in the terminal afterwards",
    )

    p_replay = sub.add_parser(
        "replay", help="Replay one round, from a stored battle or from warrior files"
    )
    p_replay.add_argument("config", type=Path, help="Path to arena YAML config file")
    p_replay.add_argument("challenger", type=Path, nargs="?", help="Challenger Redcode file")
    p_replay.add_argument("defender", type=Path, nargs="?", help="Defender Redcode file")
    p_replay.add_argument("--battle", type=int, default=None, help="Stored battle ID")
    p_replay.add_argument("--seed", type=int, default=None, help="Round seed (file replays)")
    p_replay.add_argument("--hill", default=None, help="Hill slug (file replays)")
    p_replay.add_argument("--round", type=int, default=1, help="1-based round number")

    args = parser.parse_args()

    if args.command == "hills":
        _cmd_hills(args)
        return

    if not args.config.exists():
        print(f"Error: config file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    config = load_config(args.config)
    logging.basicConfig(
        level=getattr(logging, config.logging.level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "battle":
            _cmd_battle(args, config)
        else:
            _cmd_replay(args, config)
    except ArenaError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        for line in getattr(exc, "diagnostics", []):
            print(f"  {line}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
