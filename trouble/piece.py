from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .types import PieceState


@dataclass(slots=True)
class Piece:
    """Piece state only. Legality and capture live in the rules (``Game``).

    ``steps_from_start`` and ``finish_index`` are both None while at home.
    """

    id: str
    player_id: str
    home_index: int
    state: PieceState = PieceState.HOME
    steps_from_start: Optional[int] = None
    finish_index: Optional[int] = None
    current_space_id: Optional[str] = None
    start_index: Optional[int] = None
    start_space_id: Optional[str] = None
    is_selectable: bool = False

    @staticmethod
    def make_id(player_id: str, home_index: int) -> str:
        return f"{player_id}-piece-{home_index + 1}"

    def is_home(self) -> bool:
        return self.state is PieceState.HOME

    def is_done(self) -> bool:
        return self.state is PieceState.DONE

    def occupies_space(self) -> bool:
        """Home and done pieces are off the board for blocking and capture."""
        return self.state in (PieceState.TRACK, PieceState.FINISH)

    def move_to(
        self,
        state: PieceState,
        space_id: str,
        steps_from_start: int,
        finish_index: Optional[int],
    ) -> None:
        self.state = state
        self.steps_from_start = steps_from_start
        self.finish_index = finish_index
        self.current_space_id = space_id
        self.is_selectable = False

    def send_home(self, home_space_id: str) -> None:
        self.state = PieceState.HOME
        self.steps_from_start = None
        self.finish_index = None
        self.current_space_id = home_space_id
        self.is_selectable = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "playerId": self.player_id,
            "state": self.state.value,
            "startIndex": self.start_index,
            "startSpaceId": self.start_space_id,
            "currentSpaceId": self.current_space_id,
            "homeIndex": self.home_index,
            "stepsFromStart": self.steps_from_start,
            "finishIndex": self.finish_index,
            "isSelectable": self.is_selectable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Piece":
        # Missing placement fields are filled in later by Game.setup_pieces
        def _opt_int(value: Any) -> Optional[int]:
            try:
                return int(value) if value is not None else None
            except (TypeError, ValueError):
                return None

        state = PieceState(data.get("state") or PieceState.HOME.value)
        steps = _opt_int(data.get("stepsFromStart"))
        finish_index = _opt_int(data.get("finishIndex"))
        if state is PieceState.HOME:
            steps, finish_index = None, None
        home_index = _opt_int(data.get("homeIndex"))
        return cls(
            id=str(data.get("id") or ""),
            player_id=str(data.get("playerId") or ""),
            home_index=home_index if home_index is not None else -1,
            state=state,
            steps_from_start=steps,
            finish_index=finish_index,
            current_space_id=data.get("currentSpaceId") or None,
            start_index=_opt_int(data.get("startIndex")),
            start_space_id=data.get("startSpaceId") or None,
            is_selectable=bool(data.get("isSelectable", False)),
        )

    def __str__(self) -> str:
        return f"Piece({self.id}: {self.state.value} at {self.current_space_id})"
