from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from . import events as ev
from .config import Config, config
from .engine import TroubleEngine
from .events import EventBus
from .game import Game
from .state import GameState
from .strategy import RandomStrategy, Strategy
from .types import ChoiceSelection, PendingChoice


@dataclass(slots=True)
class SimulationResult:
    finish_order: List[str]
    rolls: int
    turns: int
    captures: int
    completed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finishOrder": list(self.finish_order),
            "rolls": self.rolls,
            "turns": self.turns,
            "captures": self.captures,
            "completed": self.completed,
        }


@dataclass(slots=True)
class Simulator:
    """Plays whole games through the engine with automated clients.

    The game stops once a single player is left without all pieces done, or
    after ``max_rolls``.
    """

    player_ids: Sequence[str] = ("p1", "p2", "p3", "p4")
    strategies: Optional[Sequence[Strategy]] = None
    seed: Optional[int] = None
    max_rolls: int = 5000
    cfg: Config = field(default_factory=lambda: config)

    def __post_init__(self) -> None:
        if len(self.player_ids) < 2:
            raise ValueError("A simulation needs at least two players")
        if self.strategies is None:
            base = self.seed if self.seed is not None else 0
            self.strategies = [RandomStrategy(rng_seed=base + i) for i in range(len(self.player_ids))]
        if len(self.strategies) != len(self.player_ids):
            raise ValueError("One strategy per player is required")

    def run(self) -> SimulationResult:
        state = GameState.for_players(*self.player_ids)
        game = Game(state=state, cfg=self.cfg, rng=random.Random(self.seed))
        bus = EventBus()
        finish_order: List[str] = []
        counters = {"turns": 0, "captures": 0}

        def on_won(payload: Dict[str, Any]) -> None:
            finish_order.append(payload["playerId"])

        def on_turn(payload: Dict[str, Any]) -> None:
            counters["turns"] += 1

        def on_capture(payload: Dict[str, Any]) -> None:
            counters["captures"] += 1

        subs = [
            bus.on(ev.PLAYER_WON, on_won),
            bus.on(ev.TURN_ENDED, on_turn),
            bus.on(ev.PIECE_CAPTURED, on_capture),
        ]
        rolls = 0
        target = len(self.player_ids) - 1
        with TroubleEngine(state, game, cfg=self.cfg, bus=bus) as engine:
            while rolls < self.max_rolls and len(engine.winners) < target:
                engine.play_roll()
                rolls += 1
                self._resolve_pending(engine, game)
        for sub in subs:
            sub.release()

        completed = len(finish_order) >= target
        if not completed:
            logger.warning(f"Simulation stopped after {rolls} rolls without a result")
        return SimulationResult(
            finish_order=finish_order,
            rolls=rolls,
            turns=counters["turns"],
            captures=counters["captures"],
            completed=completed,
        )

    def _resolve_pending(self, engine: TroubleEngine, game: Game) -> None:
        while engine.pending_choice is not None:
            player = engine.state.get_current_player()
            strategy = self.strategies[engine.state.current_player_index]
            decision = engine.decision
            if decision.pending is PendingChoice.START_OR_BOARD:
                bring_out = strategy.choose_bring_out(
                    game.board, player, decision.start_moves, decision.board_moves
                )
                engine.resolve_choice(
                    ChoiceSelection.BRING_OUT if bring_out else ChoiceSelection.MOVE_ON_BOARD
                )
                continue
            move = strategy.select_move(game.board, player, decision.targets) or decision.targets[0]
            result = engine.request_move(player.player_id, move.piece_id, move.target_space_id)
            if not result.success:
                raise RuntimeError(f"Strategy {strategy.name} picked an illegal move: {result.error}")


def run_many(
    games: int,
    player_ids: Sequence[str],
    strategies_factory,
    seed: Optional[int] = None,
    max_rolls: int = 5000,
    cfg: Optional[Config] = None,
) -> List[SimulationResult]:
    results: List[SimulationResult] = []
    for i in range(games):
        game_seed = None if seed is None else seed + i
        sim = Simulator(
            player_ids=player_ids,
            strategies=strategies_factory(game_seed),
            seed=game_seed,
            max_rolls=max_rolls,
            cfg=cfg or config,
        )
        results.append(sim.run())
        logger.debug(f"Game {i + 1}/{games}: {results[-1].to_dict()}")
    return results
