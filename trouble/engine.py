"""
Turn and roll lifecycle for Trouble.

Per turn: roll -> legal moves for the current player -> (optionally wait for a
choice) -> apply one move -> win check -> extra roll or next player.
"""

from __future__ import annotations

import random
from typing import Any, Callable, Dict, List, Optional, Union

from loguru import logger

from . import events as ev
from .config import BRING_OUT_ROLL, DICE_SIDES, Config, config
from .events import EventBus, GameEvent, Subscription
from .game import Game
from .player import Player
from .plugin import RulesPlugin
from .state import GameState
from .types import (
    EMPTY_DECISION,
    ChoiceSelection,
    Decision,
    Move,
    MoveResult,
    PendingChoice,
    PieceState,
    TurnPhase,
)
from .ui import REQUIRED_UI_COMPONENTS, ROLL_BUTTON, UIComponents

ROLL_FIRST = "Roll the die first"
INVALID_PLAYER = "Invalid player"
NO_PIECE = "No piece selected"
TARGET_REQUIRED = "Target space required"
INVALID_MOVE = "Invalid move for this roll"

StateListener = Callable[[GameState], None]


class TroubleEngine:
    """Drives turns over a host-owned ``GameState``.

    The engine is the only writer of piece state during a turn. Every rules
    question goes through ``self.rules`` (a ``RulesPlugin``); every outward
    notification goes through ``self.bus`` or ``on_state_change``.
    """

    engine_type = "trouble"
    piece_manager_type = "trouble"

    def __init__(
        self,
        state: GameState,
        rules: Optional[RulesPlugin] = None,
        *,
        cfg: Optional[Config] = None,
        bus: Optional[EventBus] = None,
        ui: Union[UIComponents, Dict[str, Any], None] = None,
        on_state_change: Optional[StateListener] = None,
        rng: Optional[random.Random] = None,
    ):
        self.state = state
        self.cfg = cfg or config
        self.rules: RulesPlugin = (
            rules if rules is not None
            else Game(state=state, cfg=self.cfg, rng=rng or random.Random())
        )
        self.bus = bus if bus is not None else EventBus()
        self.ui = ui if isinstance(ui, UIComponents) else UIComponents(ui)
        self.on_state_change = on_state_change

        self.decision: Decision = EMPTY_DECISION
        self.phase = TurnPhase.AWAITING_ROLL
        self.selected_piece_id: Optional[str] = None
        self._subscriptions: List[Subscription] = []

    # --- Lifecycle ---
    def init(self) -> "TroubleEngine":
        self.rules.setup_pieces()
        self.register_event_listeners()
        self.wire_roll_control()
        self.phase = TurnPhase.AWAITING_ROLL
        self._set_roll_control_active(self.state.is_client_turn())
        logger.info(f"Trouble engine ready for {len(self.state.players)} players")
        return self

    def cleanup(self) -> None:
        for sub in self._subscriptions:
            sub.release()
        self._subscriptions.clear()
        self.decision = EMPTY_DECISION
        self.selected_piece_id = None
        logger.debug("Trouble engine cleaned up")

    def __enter__(self) -> "TroubleEngine":
        return self.init()

    def __exit__(self, *exc: Any) -> None:
        self.cleanup()

    def register_event_listeners(self) -> None:
        if self._subscriptions:
            return
        self._subscriptions = [
            self.bus.on(ev.PIECE_CLICKED, self._on_piece_clicked),
            self.bus.on(ev.SPACE_CLICKED, self._on_space_clicked),
        ]

    def wire_roll_control(self) -> None:
        register = getattr(self.ui.get(ROLL_BUTTON), "register_callbacks", None)
        if callable(register):
            register(
                on_roll_dice=self.roll_dice_for_current_player,
                on_roll_complete=self.handle_roll,
            )

    @staticmethod
    def get_required_ui_components() -> tuple[str, ...]:
        return REQUIRED_UI_COMPONENTS

    def update_game_state(self, state: GameState) -> None:
        self.state = state
        self.rules.bind_state(state)
        self.rules.setup_pieces()
        self._set_roll_control_active(self.state.is_client_turn())

    # --- Turn state views ---
    @property
    def current_roll(self) -> Optional[int]:
        return self.decision.roll

    @property
    def available_moves(self) -> Dict[str, Move]:
        return self.decision.available_moves

    @property
    def target_moves(self) -> Dict[str, Move]:
        return self.decision.target_moves

    @property
    def awaiting_move_choice(self) -> bool:
        return self.decision.awaiting_move_choice

    @property
    def pending_choice(self) -> Optional[PendingChoice]:
        return self.decision.pending

    @property
    def winners(self) -> frozenset[str]:
        return self.rules.winners

    # --- Rolling ---
    def roll_dice_for_current_player(self) -> Optional[int]:
        player = self.state.get_current_player()
        if player is None:
            return None
        result = self.rules.roll_dice()
        logger.info(f"{player.nickname} rolled a {result}")
        self._emit(ev.player_roll(self.state, result))
        return result

    def play_roll(self) -> Optional[MoveResult]:
        """Roll for the current player and resolve it."""
        roll = self.roll_dice_for_current_player()
        return self.handle_roll(roll) if roll is not None else None

    def handle_roll(self, roll: int) -> Optional[MoveResult]:
        """Resolve a roll for the current player.

        Returns the result of an automatically applied move, or None when the
        turn ended, an extra roll was granted, or a choice is now pending.
        """
        if self.decision.pending is not None:
            logger.warning(f"Roll {roll} ignored while waiting for a move choice")
            return None
        if isinstance(roll, bool) or not isinstance(roll, int) or not 1 <= roll <= DICE_SIDES:
            raise ValueError(f"Die roll must be an integer 1..{DICE_SIDES}, got {roll!r}")

        player = self.state.get_current_player()
        if player is None:
            return None
        self.decision = Decision(roll=roll)

        if player.player_id in self.rules.winners:
            logger.info(f"Skipping turn for winner {player.nickname}")
            self.end_turn(player)
            return None

        moves = self.rules.legal_moves(player, roll)
        logger.debug(f"Roll {roll} for {player.nickname}, legal moves: {[m.to_dict() for m in moves]}")
        self.decision = Decision(roll=roll, moves=tuple(moves))
        self.rules.on_turn_start(player, moves)
        self._set_roll_control_active(False)

        if not moves:
            self.phase = TurnPhase.ROLLED_NO_MOVES
            if roll == BRING_OUT_ROLL:
                self._grant_extra_roll(player)
            else:
                self.end_turn(player)
            return None

        # All pieces home on a six takes precedence over asking
        if (roll == BRING_OUT_ROLL and player.all_home()) or len(moves) == 1:
            self.phase = TurnPhase.ROLLED_SINGLE_MOVE
            priority = next((m for m in moves if m.target_state is PieceState.TRACK), moves[0])
            return self.request_move(player.player_id, priority.piece_id, priority.target_space_id)

        if roll == BRING_OUT_ROLL and self.decision.start_moves and self.decision.board_moves:
            self.phase = TurnPhase.ROLLED_CHOICE_PENDING
            self.decision = self.decision.awaiting(PendingChoice.START_OR_BOARD)
            logger.info(f"{player.nickname} chooses: bring a piece out or move on the board")
            self._propose_state_change()
            return None

        return self._await_move_selection(player, moves)

    def resolve_choice(self, selection: Union[ChoiceSelection, str, bool]) -> Optional[MoveResult]:
        """Answer the bring-out-or-board question. ``True`` means bring out."""
        if self.decision.pending is not PendingChoice.START_OR_BOARD:
            raise RuntimeError("No bring-out choice is pending")
        if isinstance(selection, bool):
            selection = ChoiceSelection.BRING_OUT if selection else ChoiceSelection.MOVE_ON_BOARD
        selection = ChoiceSelection(selection)

        player = self.state.get_current_player()
        if selection is ChoiceSelection.BRING_OUT:
            move = self.decision.start_moves[0]
            return self.request_move(player.player_id, move.piece_id, move.target_space_id)

        board_moves = self.decision.board_moves
        self.decision = self.decision.with_moves(board_moves)
        self.rules.on_turn_start(player, board_moves)
        return self._await_move_selection(player, list(board_moves))

    def _await_move_selection(self, player: Player, moves: List[Move]) -> Optional[MoveResult]:
        if not moves:
            self.end_turn(player)
            return None
        if len(moves) == 1:
            return self.request_move(player.player_id, moves[0].piece_id, moves[0].target_space_id)

        self.phase = TurnPhase.ROLLED_CHOICE_PENDING
        self.decision = self.decision.awaiting(PendingChoice.TARGET, tuple(moves))
        targets = list(self.decision.target_moves)
        logger.debug(f"Highlighting targets {targets}")
        board = self.ui.board()
        if board is not None:
            board.highlight_valid_moves(targets)
        self._set_roll_control_active(False)
        self._propose_state_change()
        return None

    # --- Moves ---
    def valid_moves_for_piece(self, piece_id: str, roll: Optional[int] = None) -> List[Move]:
        roll = roll or self.decision.roll
        if not piece_id or not roll:
            return []
        cached = self.decision.available_moves.get(piece_id)
        if cached is not None:
            return [cached]
        owner = next(
            (p for p in self.state.players if p.get_piece(piece_id) is not None), None
        )
        if owner is None:
            return []
        return [m for m in self.rules.legal_moves(owner, roll) if m.piece_id == piece_id]

    def can_piece_move_to_space(self, piece_id: str, target_space_id: str) -> bool:
        move = self.decision.available_moves.get(piece_id)
        return move is not None and move.target_space_id == target_space_id

    def request_move(
        self, player_id: str, piece_id: Optional[str], target_space_id: Optional[str]
    ) -> MoveResult:
        roll = self.decision.roll
        if not roll:
            return self._reject(ROLL_FIRST)

        player = self.state.get_player_by_id(player_id)
        if player is None:
            return self._reject(INVALID_PLAYER)

        piece = player.get_piece(piece_id) if piece_id else None
        if piece is None:
            return self._reject(NO_PIECE)

        if not target_space_id:
            return self._reject(TARGET_REQUIRED)

        move = self.decision.available_moves.get(piece.id)
        if move is None or move.target_space_id != target_space_id:
            return self._reject(INVALID_MOVE)
        # Cached move must still agree with the board
        fresh = self.rules.move_for_piece(piece, self.state.player_index(player_id), roll)
        if fresh != move:
            return self._reject(INVALID_MOVE)

        outcome = self.rules.apply_move(player, piece, move)
        if not outcome.applied:
            return self._reject(INVALID_MOVE)

        self.phase = TurnPhase.MOVE_APPLIED
        if outcome.captured is not None:
            self._emit(ev.piece_captured(outcome.captured.id, outcome.captured_player_index))
        self._emit(ev.piece_moved(player.player_id, piece.id, move.target_space_id, piece.state.value))
        logger.info(f"{player.nickname} moved {piece.id} to {move.target_space_id}")
        self._clear_highlights()

        self.decision = EMPTY_DECISION
        self.selected_piece_id = None
        result = MoveResult.ok(piece.id, move.target_space_id, piece.state)

        winner = self.rules.check_winner(player)
        if winner:
            self._handle_winner(player)
        if not winner and roll == BRING_OUT_ROLL:
            self._grant_extra_roll(player)
        else:
            self.end_turn(player)
        return result

    def _reject(self, error: str) -> MoveResult:
        logger.debug(f"Move rejected: {error}")
        return MoveResult.fail(error)

    # --- Clicks ---
    def handle_piece_click(self, piece_id: str, player_id: str) -> Optional[MoveResult]:
        current = self.state.get_current_player()
        if current is None or current.player_id != player_id:
            return None
        return self.select_piece(piece_id)

    def select_piece(self, piece_id: str) -> Optional[MoveResult]:
        # the bring-out question is only answered through resolve_choice
        if self.decision.pending is PendingChoice.START_OR_BOARD:
            logger.debug(f"Ignoring selection of {piece_id} until bring-out or board is chosen")
            return None
        self.selected_piece_id = piece_id
        moves = self.valid_moves_for_piece(piece_id)
        board = self.ui.board()
        if board is not None:
            board.highlight_valid_moves([m.target_space_id for m in moves])
        if len(moves) == 1:
            current = self.state.get_current_player()
            if current is not None:
                return self.request_move(current.player_id, piece_id, moves[0].target_space_id)
        return None

    def handle_space_click(self, space_id: Optional[str]) -> Optional[MoveResult]:
        if not self.decision.awaiting_move_choice or not self.state.is_client_turn():
            return None
        current = self.state.get_current_player()
        move = self.decision.target_moves.get(space_id) if space_id else None
        if current is None or move is None:
            return None
        logger.debug(f"Space {space_id} clicked, resolving move for {move.piece_id}")
        return self.request_move(current.player_id, move.piece_id, move.target_space_id)

    def _on_piece_clicked(self, payload: Dict[str, Any]) -> None:
        self.handle_piece_click(payload.get("pieceId"), payload.get("playerId"))

    def _on_space_clicked(self, payload: Dict[str, Any]) -> None:
        space = payload.get("space")
        space_id = payload.get("spaceId")
        if not space_id and isinstance(space, dict):
            space_id = space.get("id") or space.get("spaceId")
        self.handle_space_click(space_id)

    # --- Turn endings ---
    def end_turn(self, player: Optional[Player]) -> None:
        self.phase = TurnPhase.TURN_ENDED
        self.state.next_player_turn()
        self.decision = EMPTY_DECISION
        self.selected_piece_id = None
        self.rules.on_turn_end(player)
        self._emit(ev.turn_ended(player.player_id if player else None))
        self._clear_highlights()
        self.phase = TurnPhase.AWAITING_ROLL
        self._set_roll_control_active(self.state.is_client_turn())
        self._propose_state_change()

    def _grant_extra_roll(self, player: Player) -> None:
        self.phase = TurnPhase.EXTRA_ROLL
        logger.info(f"{player.nickname} rolls again")
        self._emit(ev.extra_roll_granted(player.player_id))
        self.decision = EMPTY_DECISION
        self.rules.on_turn_end(None)
        self.phase = TurnPhase.AWAITING_ROLL
        self._set_roll_control_active(self.state.is_client_turn())
        self._propose_state_change()

    def _handle_winner(self, player: Player) -> None:
        if not self.rules.record_winner(player):
            return
        logger.info(f"{player.nickname} has finished all pieces; remaining players continue")
        self._emit(ev.player_won(player.player_id))
        self._emit(ev.game_won(player.to_dict()))

    # --- Host seams ---
    def _set_roll_control_active(self, active: bool) -> None:
        control = self.ui.roll_control()
        if control is None:
            return
        if self.decision.pending is not None or self.state.is_game_ended():
            active = False
        if active:
            control.activate()
        else:
            control.deactivate()

    def _clear_highlights(self) -> None:
        board = self.ui.board()
        if board is not None:
            board.clear_highlights()

    def _emit(self, event: GameEvent) -> None:
        self.bus.emit(event)

    def _propose_state_change(self) -> None:
        if self.on_state_change is not None:
            self.on_state_change(self.state)
