from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from loguru import logger

from .player import Player

IN_PROGRESS = "in_progress"
GAME_ENDED = "game_ended"


@dataclass(slots=True)
class GameState:
    """Single authoritative game state, owned by the host.

    The engine mutates pieces and advances ``current_player_index`` during a
    turn; everything else (game phase, which seats are local) is host policy.
    """

    players: List[Player] = field(default_factory=list)
    current_player_index: int = 0
    game_phase: str = IN_PROGRESS
    # Seats driven from this process; None means every seat is local.
    client_player_ids: Optional[Set[str]] = None

    def get_current_player(self) -> Optional[Player]:
        if not self.players:
            return None
        return self.players[self.current_player_index % len(self.players)]

    def get_player_by_id(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.player_id == player_id), None)

    def player_index(self, player_id: str) -> int:
        for idx, pl in enumerate(self.players):
            if pl.player_id == player_id:
                return idx
        return -1

    def next_player_turn(self) -> Optional[Player]:
        if not self.players:
            return None
        self.current_player_index = (self.current_player_index + 1) % len(self.players)
        nxt = self.players[self.current_player_index]
        logger.debug(f"Turn passes to {nxt.nickname}")
        return nxt

    def is_client_turn(self) -> bool:
        current = self.get_current_player()
        if current is None:
            return False
        if self.client_player_ids is None:
            return True
        return current.player_id in self.client_player_ids

    def is_game_ended(self) -> bool:
        return self.game_phase == GAME_ENDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "players": [p.to_dict() for p in self.players],
            "currentPlayerIndex": self.current_player_index,
            "gamePhase": self.game_phase,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GameState":
        players = data.get("players")
        if not isinstance(players, list):
            players = []
        return cls(
            players=[Player.from_dict(p) for p in players],
            current_player_index=int(data.get("currentPlayerIndex") or 0),
            game_phase=str(data.get("gamePhase") or IN_PROGRESS),
        )

    @classmethod
    def for_players(cls, *player_ids: str) -> "GameState":
        """Fresh state with empty players; ``Game.setup_pieces`` fills pieces."""
        return cls(players=[Player(player_id=pid) for pid in player_ids])
