import argparse
import os
import time

import numpy as np
from loguru import logger

from trouble.config import Config
from trouble.simulator import run_many
from trouble.strategy import STRATEGY_REGISTRY, create


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Simulate Trouble games between automated players")
    parser.add_argument(
        "--players",
        type=int,
        default=int(os.getenv("TROUBLE_NUM_PLAYERS", 4)),
        help="Number of players (2-4)",
    )
    parser.add_argument("--games", type=int, default=10, help="Number of games to play")
    parser.add_argument("--seed", type=int, default=42, help="Base seed (game i uses seed + i)")
    parser.add_argument(
        "--strategies",
        type=str,
        default="random",
        help=f"Comma separated strategy per seat, cycled. Available: {list(STRATEGY_REGISTRY)}",
    )
    parser.add_argument("--max-rolls", type=int, default=5000, help="Roll cap per game")
    parser.add_argument("--track-length", type=int, default=None)
    parser.add_argument("--finish-length", type=int, default=None)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if not 2 <= args.players <= 4:
        raise SystemExit("--players must be between 2 and 4")

    names = [s.strip() for s in args.strategies.split(",") if s.strip()]
    seat_strategies = [names[i % len(names)] for i in range(args.players)]
    player_ids = [f"p{i + 1}" for i in range(args.players)]

    cfg = Config.from_mapping(
        {"trackLength": args.track_length, "finishLength": args.finish_length}
    )
    logger.info(f"Config: {cfg.to_dict()}")
    logger.info(f"Seats: {dict(zip(player_ids, seat_strategies))}")

    def strategies_factory(seed):
        out = []
        for i, name in enumerate(seat_strategies):
            kwargs = {"rng_seed": None if seed is None else seed * 10 + i} if name == "random" else {}
            out.append(create(name, **kwargs))
        return out

    start_time = time.time()
    results = run_many(
        args.games,
        player_ids,
        strategies_factory,
        seed=args.seed,
        max_rolls=args.max_rolls,
        cfg=cfg,
    )
    elapsed = time.time() - start_time

    firsts = np.zeros(args.players, dtype=np.int64)
    for res in results:
        if res.finish_order:
            firsts[player_ids.index(res.finish_order[0])] += 1
    rolls = np.asarray([r.rolls for r in results], dtype=np.float64)
    captures = np.asarray([r.captures for r in results], dtype=np.float64)

    print("\n--- SIMULATION COMPLETE ---")
    print(f"Games: {len(results)} ({sum(r.completed for r in results)} completed)")
    print(f"Mean rolls per game: {rolls.mean():.1f}")
    print(f"Mean captures per game: {captures.mean():.2f}")
    for pid, strat, wins in zip(player_ids, seat_strategies, firsts):
        print(f"  {pid} ({strat}): first to finish {wins}/{len(results)}")
    print(f"Simulation Time: {elapsed:.2f} seconds")


if __name__ == "__main__":
    main()
