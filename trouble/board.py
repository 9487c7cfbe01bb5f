from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .config import DICE_SIDES, Config, config
from .piece import Piece
from .state import GameState
from .types import PieceState


@dataclass(slots=True)
class Board:
    """Space naming and occupancy lookups over the shared game state (no rule logic)."""

    state: GameState
    cfg: Config = field(default_factory=lambda: config)

    # --- Space ids ---
    def track_space_id(self, index: int) -> str:
        n = self.cfg.TRACK_LENGTH
        return f"t{((index % n) + n) % n}"

    @staticmethod
    def finish_space_id(player_index: int, finish_index: int) -> str:
        return f"p{player_index}-f{finish_index}"

    @staticmethod
    def home_space_id(player_index: int, home_index: int) -> str:
        return f"p{player_index}-home-{home_index}"

    def start_index_for_player(self, player_index: int) -> int:
        offsets = self.cfg.START_OFFSETS
        return offsets[player_index % len(offsets)]

    def start_space_id(self, player_index: int) -> str:
        return self.track_space_id(self.start_index_for_player(player_index))

    def track_index(self, space_id: str) -> Optional[int]:
        """Absolute track index for a ``t{i}`` id, None for lane/home ids."""
        if not space_id or not space_id.startswith("t"):
            return None
        try:
            return int(space_id[1:])
        except ValueError:
            return None

    # --- Occupancy ---
    def find_piece_on_space(
        self, space_id: str, ignore_piece_id: str | None = None
    ) -> Optional[Tuple[Piece, int]]:
        for idx, player in enumerate(self.state.players):
            for pc in player.pieces:
                if pc.id == ignore_piece_id:
                    continue
                if pc.current_space_id == space_id and pc.occupies_space():
                    return pc, idx
        return None

    def is_blocked_by_own(self, player_index: int, space_id: str) -> bool:
        occupying = self.find_piece_on_space(space_id)
        return occupying is not None and occupying[1] == player_index

    def occupancy(self) -> np.ndarray:
        """(num_players, TRACK_LENGTH) counts of pieces per absolute track space."""
        grid = np.zeros((len(self.state.players), self.cfg.TRACK_LENGTH), dtype=np.int64)
        for idx, player in enumerate(self.state.players):
            for pc in player.pieces:
                if pc.state is not PieceState.TRACK:
                    continue
                t = self.track_index(pc.current_space_id or "")
                if t is not None:
                    grid[idx, t] += 1
        return grid

    def threat_counts(self, player_index: int) -> np.ndarray:
        """Per track space, how many opposing pieces sit within one roll behind it."""
        grid = self.occupancy()
        if grid.shape[0] == 0:
            return np.zeros(self.cfg.TRACK_LENGTH, dtype=np.int64)
        opponents = grid.sum(axis=0) - grid[player_index]
        threats = np.zeros_like(opponents)
        for distance in range(1, DICE_SIDES + 1):
            threats += np.roll(opponents, distance)
        return threats

    def __str__(self) -> str:
        result = "Board State:\n"
        for idx, player in enumerate(self.state.players):
            placed = [str(pc) for pc in player.pieces if not pc.is_home()]
            if placed:
                result += f"Player {idx} ({player.nickname}): {placed}\n"
        return result
