from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set

from loguru import logger

from .board import Board
from .config import BRING_OUT_ROLL, DICE_SIDES, Config, config
from .piece import Piece
from .player import WON, Player
from .state import GameState
from .types import Move, MoveOutcome, PieceState


@dataclass(slots=True)
class Game:
    """Trouble ruleset: legality, move application, capture and win detection."""

    state: GameState
    cfg: Config = field(default_factory=lambda: config)
    board: Board = field(init=False)
    rng: random.Random = field(default_factory=random.Random)
    _winners: Set[str] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        self.board = Board(state=self.state, cfg=self.cfg)

    def bind_state(self, state: GameState) -> None:
        self.state = state
        self.board.state = state

    @property
    def winners(self) -> frozenset[str]:
        return frozenset(self._winners)

    # --- Dice ---
    def roll_dice(self) -> int:
        return self.rng.randint(1, DICE_SIDES)

    # --- Setup ---
    def setup_pieces(self) -> None:
        """Create missing pieces and fill in missing placement fields."""
        for idx, player in enumerate(self.state.players):
            start = self.board.start_index_for_player(idx)
            start_space = self.board.track_space_id(start)
            if player.has_won():
                self._winners.add(player.player_id)
            if player.start_index is None:
                player.start_index = start
            if not player.pieces:
                player.pieces = [
                    Piece(
                        id=Piece.make_id(player.player_id, i),
                        player_id=player.player_id,
                        home_index=i,
                        current_space_id=self.board.home_space_id(idx, i),
                        start_index=start,
                        start_space_id=start_space,
                    )
                    for i in range(self.cfg.PIECES_PER_PLAYER)
                ]
                continue
            for i, pc in enumerate(player.pieces):
                if pc.start_index is None:
                    pc.start_index = start
                    pc.start_space_id = start_space
                if pc.home_index < 0:
                    pc.home_index = i
                if not pc.player_id:
                    pc.player_id = player.player_id
                if not pc.id:
                    pc.id = Piece.make_id(player.player_id, pc.home_index)
                if pc.is_home():
                    if not pc.current_space_id:
                        pc.current_space_id = self.board.home_space_id(idx, pc.home_index)
                else:
                    self._restore_progress(pc, idx, start)
        logger.debug(f"Pieces ready for {len(self.state.players)} players")

    def _restore_progress(self, piece: Piece, player_index: int, start: int) -> None:
        """Fill position fields missing from a loaded piece that is on the board."""
        track_len = self.cfg.TRACK_LENGTH
        if piece.state is PieceState.TRACK:
            if piece.steps_from_start is None:
                t = self.board.track_index(piece.current_space_id or "")
                if t is None:
                    raise ValueError(f"{piece.id} is on the track without a position")
                piece.steps_from_start = (t - start) % track_len
            if not piece.current_space_id:
                piece.current_space_id = self.board.track_space_id(start + piece.steps_from_start)
            return
        if piece.finish_index is None and piece.steps_from_start is not None:
            piece.finish_index = max(0, piece.steps_from_start - track_len)
        if piece.finish_index is None:
            raise ValueError(f"{piece.id} is {piece.state.value} without a lane position")
        if piece.steps_from_start is None:
            piece.steps_from_start = track_len + piece.finish_index
        if not piece.current_space_id:
            piece.current_space_id = self.board.finish_space_id(player_index, piece.finish_index)

    # --- Rules: destinations and legality ---
    def move_for_piece(self, piece: Piece, player_index: int, roll: int) -> Optional[Move]:
        if piece is None or piece.is_done():
            return None

        track_len = self.cfg.TRACK_LENGTH

        if piece.is_home():
            if roll != BRING_OUT_ROLL:
                return None
            target = self.board.start_space_id(player_index)
            if self.board.is_blocked_by_own(player_index, target):
                return None
            return Move(piece.id, target, PieceState.TRACK, progress=0)

        if piece.state is PieceState.TRACK:
            progress = (piece.steps_from_start or 0) + roll
            if progress < track_len:
                idx = self.board.start_index_for_player(player_index) + progress
                target = self.board.track_space_id(idx)
                if self.board.is_blocked_by_own(player_index, target):
                    return None
                return Move(piece.id, target, PieceState.TRACK, progress=progress)
            return self._lane_move(piece, player_index, progress - track_len)

        if piece.state is PieceState.FINISH:
            current = piece.finish_index
            if current is None:
                current = max(0, (piece.steps_from_start or track_len) - track_len)
            return self._lane_move(piece, player_index, current + roll)

        return None

    def _lane_move(self, piece: Piece, player_index: int, finish_index: int) -> Optional[Move]:
        # exact count: overshooting the lane is illegal
        if finish_index >= self.cfg.FINISH_LENGTH:
            return None
        target = self.board.finish_space_id(player_index, finish_index)
        if self.board.is_blocked_by_own(player_index, target):
            return None
        state = PieceState.DONE if finish_index == self.cfg.LAST_FINISH_INDEX else PieceState.FINISH
        return Move(
            piece.id,
            target,
            state,
            progress=self.cfg.TRACK_LENGTH + finish_index,
            finish_index=finish_index,
        )

    def legal_moves(self, player: Player, roll: Optional[int]) -> List[Move]:
        if player is None or not roll or not player.pieces:
            return []
        if player.player_id in self._winners:
            return []
        player_index = self.state.player_index(player.player_id)
        if player_index == -1:
            return []
        moves: List[Move] = []
        for pc in player.pieces:
            mv = self.move_for_piece(pc, player_index, roll)
            if mv is not None:
                moves.append(mv)
        return moves

    # --- Applying a move ---
    def apply_move(self, player: Player, piece: Piece, move: Move) -> MoveOutcome:
        player_index = self.state.player_index(player.player_id)
        outcome = MoveOutcome(move=move)

        if move.target_state is PieceState.TRACK:
            occupying = self.board.find_piece_on_space(move.target_space_id, piece.id)
            if occupying is not None:
                other, other_index = occupying
                if other_index == player_index:
                    logger.warning(
                        f"{piece.id} cannot land on own piece {other.id} at {move.target_space_id}"
                    )
                    outcome.applied = False
                    return outcome
                self.send_home(other, other_index)
                outcome.captured = other
                outcome.captured_player_index = other_index

        finish_index = move.finish_index
        if finish_index is None and move.target_state in (PieceState.FINISH, PieceState.DONE):
            finish_index = max(0, move.progress - self.cfg.TRACK_LENGTH)
        piece.move_to(move.target_state, move.target_space_id, move.progress, finish_index)
        logger.debug(f"{piece.id} -> {move.target_space_id} ({move.target_state.value})")
        return outcome

    def send_home(self, piece: Piece, player_index: int) -> None:
        piece.send_home(self.board.home_space_id(player_index, max(piece.home_index, 0)))
        logger.info(f"{piece.id} captured and sent home")

    # --- Win detection ---
    def check_winner(self, player: Player) -> bool:
        return player is not None and player.all_done()

    def record_winner(self, player: Player) -> bool:
        """Add ``player`` to the winners. False if it was already there."""
        if player.player_id in self._winners:
            return False
        self._winners.add(player.player_id)
        player.status = WON
        return True

    # --- Turn hooks ---
    def mark_selectable(self, player: Optional[Player], moves: Sequence[Move]) -> None:
        selectable = {mv.piece_id for mv in moves}
        for pl in self.state.players:
            for pc in pl.pieces:
                pc.is_selectable = bool(
                    player is not None
                    and pl.player_id == player.player_id
                    and pc.id in selectable
                )

    def on_turn_start(self, player: Player, moves: Sequence[Move]) -> None:
        self.mark_selectable(player, moves)

    def on_turn_end(self, player: Optional[Player]) -> None:
        self.mark_selectable(None, [])
