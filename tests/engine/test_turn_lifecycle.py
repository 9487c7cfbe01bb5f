import random
import unittest

from trouble import events as ev
from trouble.config import Config
from trouble.engine import INVALID_MOVE, INVALID_PLAYER, NO_PIECE, ROLL_FIRST, TARGET_REQUIRED, TroubleEngine
from trouble.events import EventBus
from trouble.game import Game
from trouble.state import GameState
from trouble.types import PendingChoice, PieceState, TurnPhase


class TestTurnLifecycle(unittest.TestCase):
    def setUp(self):
        self.cfg = Config(PIECES_PER_PLAYER=4, TRACK_LENGTH=28, FINISH_LENGTH=4, START_OFFSETS=[0, 7, 14, 21])
        self.state = GameState.for_players("a", "b", "c", "d")
        self.game = Game(state=self.state, cfg=self.cfg, rng=random.Random(7))
        self.bus = EventBus(record_history=True)
        self.changes = []
        self.engine = TroubleEngine(
            self.state, self.game, cfg=self.cfg, bus=self.bus, on_state_change=self.changes.append
        )
        self.engine.init()
        self.board = self.game.board

    def tearDown(self):
        self.engine.cleanup()

    def piece(self, player_idx, piece_idx):
        return self.state.players[player_idx].pieces[piece_idx]

    def force_track(self, player_idx, piece_idx, steps):
        pc = self.piece(player_idx, piece_idx)
        space = self.board.track_space_id(self.board.start_index_for_player(player_idx) + steps)
        pc.move_to(PieceState.TRACK, space, steps, None)
        return pc

    def force_done(self, player_idx, piece_idx):
        pc = self.piece(player_idx, piece_idx)
        pc.move_to(PieceState.DONE, self.board.finish_space_id(player_idx, 3), 31, 3)
        return pc

    def force_finish(self, player_idx, piece_idx, finish_index):
        pc = self.piece(player_idx, piece_idx)
        pc.move_to(
            PieceState.FINISH, self.board.finish_space_id(player_idx, finish_index), 28 + finish_index, finish_index
        )
        return pc

    def event_types(self):
        return [e.type for e in self.bus.history]

    def events_of(self, event_type):
        return [e.payload for e in self.bus.history if e.type == event_type]

    # --- Automatic resolution ---
    def test_all_home_six_brings_first_piece_out_and_rolls_again(self):
        result = self.engine.handle_roll(6)
        self.assertTrue(result.success)
        self.assertEqual(result.data, {"pieceId": "a-piece-1", "toSpaceId": "t0", "state": "track"})
        pc = self.piece(0, 0)
        self.assertEqual(pc.state, PieceState.TRACK)
        self.assertEqual(pc.steps_from_start, 0)
        self.assertEqual(pc.current_space_id, "t0")
        self.assertIn(ev.EXTRA_ROLL_GRANTED, self.event_types())
        self.assertNotIn(ev.TURN_ENDED, self.event_types())
        self.assertEqual(self.state.current_player_index, 0)
        self.assertIsNone(self.engine.current_roll)
        self.assertEqual(self.engine.phase, TurnPhase.AWAITING_ROLL)

    def test_single_home_piece_six_auto_moves(self):
        for i in (1, 2, 3):
            self.force_done(0, i)
        self.engine.handle_roll(6)
        self.assertEqual(self.piece(0, 0).current_space_id, "t0")
        self.assertEqual(self.events_of(ev.EXTRA_ROLL_GRANTED), [{"playerId": "a"}])
        self.assertEqual(self.state.current_player_index, 0)

    def test_no_moves_without_six_ends_turn(self):
        result = self.engine.handle_roll(3)
        self.assertIsNone(result)
        self.assertEqual(self.events_of(ev.TURN_ENDED), [{"playerId": "a"}])
        self.assertEqual(self.state.current_player_index, 1)
        self.assertFalse(self.engine.available_moves)
        self.assertIsNone(self.engine.current_roll)
        self.assertTrue(all(p.is_home() for p in self.state.players[0].pieces))

    def test_no_moves_on_six_grants_extra_roll(self):
        for i in (0, 1, 2):
            self.force_done(0, i)
        self.force_finish(0, 3, 0)
        self.engine.handle_roll(6)
        self.assertEqual(self.events_of(ev.EXTRA_ROLL_GRANTED), [{"playerId": "a"}])
        self.assertNotIn(ev.PIECE_MOVED, self.event_types())
        self.assertEqual(self.state.current_player_index, 0)

    def test_single_move_without_six_passes_turn(self):
        self.force_track(0, 0, 3)
        result = self.engine.handle_roll(2)
        self.assertTrue(result.success)
        self.assertEqual(self.piece(0, 0).current_space_id, "t5")
        self.assertEqual(self.piece(0, 0).steps_from_start, 5)
        self.assertEqual(self.event_types()[-1], ev.TURN_ENDED)
        self.assertEqual(self.state.current_player_index, 1)

    def test_turn_order_wraps(self):
        for expected in (1, 2, 3, 0):
            self.engine.handle_roll(1)
            self.assertEqual(self.state.current_player_index, expected)

    def test_invalid_roll_values_raise(self):
        for roll in (0, 7, -1, True, 2.0, "3"):
            with self.assertRaises(ValueError):
                self.engine.handle_roll(roll)
        self.assertEqual(self.bus.history, [])

    def test_capture_emits_captured_then_moved(self):
        self.force_track(0, 0, 2)
        victim = self.force_track(1, 0, 26)
        self.assertEqual(victim.current_space_id, "t5")
        self.engine.handle_roll(3)

        self.assertEqual(victim.state, PieceState.HOME)
        self.assertIsNone(victim.steps_from_start)
        self.assertEqual(victim.current_space_id, "p1-home-0")
        self.assertEqual(self.piece(0, 0).current_space_id, "t5")
        types = self.event_types()
        self.assertLess(types.index(ev.PIECE_CAPTURED), types.index(ev.PIECE_MOVED))
        self.assertEqual(self.events_of(ev.PIECE_CAPTURED), [{"capturedPieceId": "b-piece-1", "playerIndex": 1}])
        self.assertEqual(
            self.events_of(ev.PIECE_MOVED),
            [{"playerId": "a", "pieceId": "a-piece-1", "toSpaceId": "t5", "state": "track"}],
        )

    def test_bring_out_captures_opponent_on_entry(self):
        victim = self.force_track(1, 0, 21)
        self.assertEqual(victim.current_space_id, "t0")
        self.engine.handle_roll(6)

        self.assertEqual(victim.state, PieceState.HOME)
        self.assertEqual(victim.current_space_id, "p1-home-0")
        self.assertIsNone(victim.steps_from_start)
        self.assertIsNone(victim.finish_index)
        self.assertEqual(self.events_of(ev.PIECE_CAPTURED), [{"capturedPieceId": "b-piece-1", "playerIndex": 1}])
        pc = self.piece(0, 0)
        self.assertEqual(pc.current_space_id, "t0")
        self.assertEqual(pc.steps_from_start, 0)
        self.assertEqual(self.events_of(ev.EXTRA_ROLL_GRANTED), [{"playerId": "a"}])
        self.assertEqual(self.state.current_player_index, 0)

    def test_roll_dice_emits_player_roll(self):
        result = self.engine.roll_dice_for_current_player()
        self.assertTrue(1 <= result <= 6)
        payload = self.events_of(ev.PLAYER_ROLL)[0]
        self.assertEqual(payload["result"], result)
        self.assertIs(payload["gameState"], self.state)

    def test_state_change_proposed_on_turn_end(self):
        self.engine.handle_roll(1)
        self.assertTrue(self.changes)
        self.assertIs(self.changes[-1], self.state)

    # --- Selection and rejections ---
    def make_two_board_moves(self):
        self.force_track(0, 0, 3)
        self.force_track(0, 1, 10)
        self.force_done(0, 2)
        self.force_done(0, 3)
        self.assertIsNone(self.engine.handle_roll(2))

    def test_multiple_moves_wait_for_target(self):
        self.make_two_board_moves()
        self.assertTrue(self.engine.awaiting_move_choice)
        self.assertEqual(self.engine.pending_choice, PendingChoice.TARGET)
        self.assertEqual(set(self.engine.target_moves), {"t5", "t12"})
        self.assertEqual(set(self.engine.available_moves), {"a-piece-1", "a-piece-2"})
        self.assertTrue(self.piece(0, 0).is_selectable)
        self.assertFalse(self.piece(0, 2).is_selectable)
        self.assertEqual(self.engine.current_roll, 2)

    def test_rejections_leave_state_untouched(self):
        self.make_two_board_moves()
        before = self.state.to_dict()
        self.assertEqual(self.engine.request_move("zz", "a-piece-1", "t5").error, INVALID_PLAYER)
        self.assertEqual(self.engine.request_move("a", "nope", "t5").error, NO_PIECE)
        self.assertEqual(self.engine.request_move("a", None, "t5").error, NO_PIECE)
        self.assertEqual(self.engine.request_move("a", "a-piece-1", None).error, TARGET_REQUIRED)
        self.assertEqual(self.engine.request_move("a", "a-piece-1", "t20").error, INVALID_MOVE)
        self.assertEqual(self.engine.request_move("a", "a-piece-3", "p0-f3").error, INVALID_MOVE)
        self.assertEqual(self.engine.request_move("b", "b-piece-1", "t7").error, INVALID_MOVE)
        self.assertEqual(self.state.to_dict(), before)
        self.assertTrue(self.engine.awaiting_move_choice)
        self.assertNotIn(ev.PIECE_MOVED, self.event_types())

    def test_request_without_roll(self):
        result = self.engine.request_move("a", "a-piece-1", "t0")
        self.assertFalse(result.success)
        self.assertEqual(result.error, ROLL_FIRST)
        self.assertEqual(result.to_dict(), {"success": False, "error": ROLL_FIRST})

    def test_stale_cached_move_rejected(self):
        self.make_two_board_moves()
        # another own piece now sits on t5
        self.force_track(0, 1, 5)
        result = self.engine.request_move("a", "a-piece-1", "t5")
        self.assertEqual(result.error, INVALID_MOVE)
        self.assertEqual(self.piece(0, 0).current_space_id, "t3")

    def test_valid_request_applies_and_passes_turn(self):
        self.make_two_board_moves()
        result = self.engine.request_move("a", "a-piece-2", "t12")
        self.assertTrue(result.success)
        self.assertEqual(result.to_dict()["data"]["toSpaceId"], "t12")
        self.assertEqual(self.piece(0, 1).steps_from_start, 12)
        self.assertFalse(self.engine.awaiting_move_choice)
        self.assertEqual(self.engine.available_moves, {})
        self.assertEqual(self.state.current_player_index, 1)
        self.assertFalse(any(p.is_selectable for pl in self.state.players for p in pl.pieces))

    def test_roll_ignored_while_choice_pending(self):
        self.make_two_board_moves()
        decision = self.engine.decision
        self.assertIsNone(self.engine.handle_roll(5))
        self.assertIs(self.engine.decision, decision)
        self.assertEqual(self.state.current_player_index, 0)

    def test_valid_moves_for_piece(self):
        self.make_two_board_moves()
        moves = self.engine.valid_moves_for_piece("a-piece-1")
        self.assertEqual([m.target_space_id for m in moves], ["t5"])
        self.assertEqual(self.engine.valid_moves_for_piece("a-piece-3"), [])
        self.assertTrue(self.engine.can_piece_move_to_space("a-piece-1", "t5"))
        self.assertFalse(self.engine.can_piece_move_to_space("a-piece-1", "t12"))

    # --- Wins ---
    def test_winning_move_ends_turn_without_extra_roll(self):
        for i in (0, 1, 2):
            self.force_done(0, i)
        self.force_track(0, 3, 25)
        self.engine.handle_roll(6)

        self.assertEqual(self.piece(0, 3).state, PieceState.DONE)
        self.assertEqual(self.engine.winners, frozenset({"a"}))
        self.assertEqual(self.state.players[0].status, "won")
        self.assertEqual(self.events_of(ev.PLAYER_WON), [{"playerId": "a"}])
        self.assertEqual(len(self.events_of(ev.GAME_WON)), 1)
        self.assertEqual(self.events_of(ev.GAME_WON)[0]["winner"]["playerId"], "a")
        self.assertNotIn(ev.EXTRA_ROLL_GRANTED, self.event_types())
        self.assertEqual(self.state.current_player_index, 1)

    def test_winner_turn_is_skipped(self):
        for i in (0, 1, 2):
            self.force_done(0, i)
        self.force_finish(0, 3, 1)
        self.engine.handle_roll(2)
        self.assertIn("a", self.engine.winners)

        self.state.current_player_index = 0
        self.bus.history.clear()
        self.assertIsNone(self.engine.handle_roll(6))
        self.assertEqual(self.event_types(), [ev.TURN_ENDED])
        self.assertEqual(self.state.current_player_index, 1)
        self.assertEqual(self.game.legal_moves(self.state.players[0], 6), [])

    def test_win_is_announced_once(self):
        for i in (0, 1, 2):
            self.force_done(0, i)
        self.force_finish(0, 3, 2)
        self.engine.handle_roll(1)
        self.assertFalse(self.game.record_winner(self.state.players[0]))
        self.assertEqual(len(self.events_of(ev.PLAYER_WON)), 1)


if __name__ == "__main__":
    unittest.main()
