from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, Protocol, Sequence, Type

from .board import Board
from .player import Player
from .types import Move, PieceState


class Strategy(Protocol):
    name: str

    def choose_bring_out(
        self, board: Board, player: Player, start_moves: Sequence[Move], board_moves: Sequence[Move]
    ) -> bool:
        ...

    def select_move(self, board: Board, player: Player, legal_moves: Sequence[Move]) -> Move | None:
        ...


@dataclass(slots=True)
class RandomStrategy:
    name = "random"
    rng_seed: int | None = None
    rng: random.Random = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.rng = random.Random(self.rng_seed)

    def choose_bring_out(self, board, player, start_moves, board_moves) -> bool:
        return self.rng.random() < 0.5

    def select_move(self, board, player, legal_moves):
        if not legal_moves:
            return None
        return self.rng.choice(list(legal_moves))


@dataclass(slots=True)
class CaptureFirstStrategy:
    """Greedy: capture, then finish, then avoid landing within reach of opponents."""

    name = "capture_first"
    capture_bonus: float = 10.0
    done_bonus: float = 8.0
    finish_bonus: float = 4.0
    start_bonus: float = 3.0
    threat_penalty: float = 2.0

    def score(self, board: Board, player: Player, move: Move) -> float:
        player_index = board.state.player_index(player.player_id)
        if move.target_state is PieceState.DONE:
            return self.done_bonus
        if move.target_state is PieceState.FINISH:
            return self.finish_bonus + move.progress * 0.01
        value = move.progress * 0.01
        occupying = board.find_piece_on_space(move.target_space_id)
        if occupying is not None and occupying[1] != player_index:
            value += self.capture_bonus
        if move.is_start_move:
            value += self.start_bonus
        t = board.track_index(move.target_space_id)
        if t is not None:
            value -= self.threat_penalty * float(board.threat_counts(player_index)[t])
        return value

    def choose_bring_out(self, board, player, start_moves, board_moves) -> bool:
        best_start = max(self.score(board, player, m) for m in start_moves)
        best_board = max(self.score(board, player, m) for m in board_moves)
        return best_start >= best_board

    def select_move(self, board, player, legal_moves):
        if not legal_moves:
            return None
        return max(legal_moves, key=lambda m: self.score(board, player, m))


STRATEGY_REGISTRY: Dict[str, Type] = {
    RandomStrategy.name: RandomStrategy,
    CaptureFirstStrategy.name: CaptureFirstStrategy,
}


def create(strategy_name: str, **kwargs) -> Strategy:
    cls = STRATEGY_REGISTRY.get(strategy_name.lower())
    if cls is None:
        raise KeyError(f"Unknown strategy '{strategy_name}'. Available: {list(STRATEGY_REGISTRY)}")
    return cls(**kwargs)
