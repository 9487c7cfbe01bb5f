from __future__ import annotations

from typing import List, Optional, Protocol, Sequence

from .piece import Piece
from .player import Player
from .state import GameState
from .types import Move, MoveOutcome


class RulesPlugin(Protocol):
    """Capability set the turn engine needs from a ruleset.

    The engine holds a reference to an implementation (``Game`` for Trouble)
    and never subclasses it.
    """

    def setup_pieces(self) -> None:
        ...

    def bind_state(self, state: GameState) -> None:
        ...

    def roll_dice(self) -> int:
        ...

    @property
    def winners(self) -> frozenset[str]:
        ...

    def legal_moves(self, player: Player, roll: Optional[int]) -> List[Move]:
        ...

    def move_for_piece(self, piece: Piece, player_index: int, roll: int) -> Optional[Move]:
        ...

    def apply_move(self, player: Player, piece: Piece, move: Move) -> MoveOutcome:
        ...

    def check_winner(self, player: Player) -> bool:
        ...

    def record_winner(self, player: Player) -> bool:
        ...

    def on_turn_start(self, player: Player, moves: Sequence[Move]) -> None:
        ...

    def on_turn_end(self, player: Optional[Player]) -> None:
        ...
