from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

if TYPE_CHECKING:
    from .piece import Piece


class PieceState(str, Enum):
    HOME = "home"
    TRACK = "track"
    FINISH = "finish"
    DONE = "done"


class TurnPhase(str, Enum):
    AWAITING_ROLL = "awaiting_roll"
    ROLLED_NO_MOVES = "rolled_no_moves"
    ROLLED_SINGLE_MOVE = "rolled_single_move"
    ROLLED_CHOICE_PENDING = "rolled_choice_pending"
    MOVE_APPLIED = "move_applied"
    TURN_ENDED = "turn_ended"
    EXTRA_ROLL = "extra_roll"


class PendingChoice(str, Enum):
    """What the engine is waiting on while in ROLLED_CHOICE_PENDING."""

    START_OR_BOARD = "start_or_board"
    TARGET = "target"


class ChoiceSelection(str, Enum):
    BRING_OUT = "bring_out"
    MOVE_ON_BOARD = "move_on_board"


@dataclass(frozen=True, slots=True)
class Move:
    piece_id: str
    target_space_id: str
    target_state: PieceState
    progress: int
    finish_index: Optional[int] = None

    @property
    def is_start_move(self) -> bool:
        return self.target_state is PieceState.TRACK and self.progress == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pieceId": self.piece_id,
            "targetSpaceId": self.target_space_id,
            "targetState": self.target_state.value,
            "progress": self.progress,
            "finishIndex": self.finish_index,
        }


@dataclass(slots=True)
class MoveOutcome:
    move: Move
    applied: bool = True
    captured: Optional["Piece"] = None
    captured_player_index: Optional[int] = None


@dataclass(frozen=True, slots=True)
class MoveResult:
    """Answer to a move request. Failures carry a message instead of raising."""

    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, piece_id: str, to_space_id: str, state: PieceState) -> "MoveResult":
        return cls(
            success=True,
            data={"pieceId": piece_id, "toSpaceId": to_space_id, "state": state.value},
        )

    @classmethod
    def fail(cls, error: str) -> "MoveResult":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "data": dict(self.data or {})}
        return {"success": False, "error": self.error}


@dataclass(frozen=True, slots=True)
class Decision:
    """Turn-scoped decision window. Replaced wholesale at every transition."""

    roll: Optional[int] = None
    moves: Tuple[Move, ...] = ()
    pending: Optional[PendingChoice] = None
    targets: Tuple[Move, ...] = ()

    @property
    def available_moves(self) -> Dict[str, Move]:
        return {mv.piece_id: mv for mv in self.moves}

    @property
    def target_moves(self) -> Dict[str, Move]:
        out: Dict[str, Move] = {}
        for mv in self.targets:
            # first candidate for a space wins
            out.setdefault(mv.target_space_id, mv)
        return out

    @property
    def awaiting_move_choice(self) -> bool:
        return self.pending is PendingChoice.TARGET

    @property
    def start_moves(self) -> Tuple[Move, ...]:
        return tuple(mv for mv in self.moves if mv.is_start_move)

    @property
    def board_moves(self) -> Tuple[Move, ...]:
        return tuple(mv for mv in self.moves if not mv.is_start_move)

    def with_moves(self, moves: Tuple[Move, ...]) -> "Decision":
        return replace(self, moves=tuple(moves), pending=None, targets=())

    def awaiting(self, pending: PendingChoice, targets: Tuple[Move, ...] = ()) -> "Decision":
        return replace(self, pending=pending, targets=tuple(targets))


EMPTY_DECISION = Decision()
