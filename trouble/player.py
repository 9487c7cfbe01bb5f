from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .piece import Piece

ACTIVE = "active"
WON = "won"


@dataclass(slots=True)
class Player:
    player_id: str
    nickname: str = ""
    pieces: List[Piece] = field(default_factory=list)
    start_index: Optional[int] = None
    status: str = ACTIVE

    def __post_init__(self) -> None:
        if not self.nickname:
            self.nickname = self.player_id

    def get_piece(self, piece_id: str) -> Optional[Piece]:
        return next((p for p in self.pieces if p.id == piece_id), None)

    def all_home(self) -> bool:
        return all(p.is_home() for p in self.pieces)

    def all_done(self) -> bool:
        return bool(self.pieces) and all(p.is_done() for p in self.pieces)

    def finished_count(self) -> int:
        return sum(1 for p in self.pieces if p.is_done())

    def has_won(self) -> bool:
        return self.status == WON

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playerId": self.player_id,
            "nickname": self.nickname,
            "startIndex": self.start_index,
            "status": self.status,
            "pieces": [p.to_dict() for p in self.pieces],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Player":
        pieces = data.get("pieces")
        if not isinstance(pieces, list):
            pieces = []
        start = data.get("startIndex")
        return cls(
            player_id=str(data.get("playerId") or ""),
            nickname=str(data.get("nickname") or ""),
            pieces=[Piece.from_dict(p) for p in pieces],
            start_index=int(start) if start is not None else None,
            status=str(data.get("status") or ACTIVE),
        )

    def __str__(self) -> str:
        return f"Player({self.nickname}, pieces: {[str(p) for p in self.pieces]})"
