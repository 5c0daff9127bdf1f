import random
import threading
import unittest

from game import BOARD_SIZE, ActionScheduler, Phase, PlacedTile, Presenter, SelectedCard, TurnController, new_game_state
from punto_core.turn import MSG_FIRST_MOVE, MSG_INVALID, MSG_STALEMATE

from fakes import INSTANT, ManualTimers, make_state, tiles


class RecordingPresenter(Presenter):
    def __init__(self):
        self.calls = []

    def render_board(self, state):
        self.calls.append(("board", state.snapshot()))

    def render_hand(self, player):
        self.calls.append(("hand", player.id))

    def render_status(self, message):
        self.calls.append(("status", message))


def _controller(state=None, ids=(1, 2), seed=0):
    timers = ManualTimers()
    ctl = TurnController(
        player_ids=ids,
        presenter=RecordingPresenter(),
        scheduler=ActionScheduler(timers),
        rng=random.Random(seed),
        settings=INSTANT,
        state=state,
    )
    return ctl, timers


class TestHumanTurns(unittest.TestCase):
    def test_given_fresh_game_when_selecting_then_only_current_player_and_valid_index(self):
        ctl, _ = _controller()
        self.assertEqual(ctl.phase, Phase.AWAITING_SELECTION)
        self.assertFalse(ctl.select_card(2, 0))
        self.assertFalse(ctl.select_card(1, 3))
        self.assertFalse(ctl.select_card(1, -1))
        self.assertTrue(ctl.select_card(1, 0))
        tile = ctl.state.players[0].hand[0]
        self.assertEqual(ctl.state.selected_card, SelectedCard(1, 0))
        self.assertEqual(ctl.status, f"Selected: red {tile.value}. Place at center (4,4).")
        self.assertEqual(ctl.phase, Phase.AWAITING_PLACEMENT)

    def test_given_no_selection_when_clicking_then_ignored(self):
        ctl, _ = _controller()
        self.assertFalse(ctl.click_cell(4, 4))
        self.assertTrue(ctl.state.board.is_empty())

    def test_given_first_move_when_clicking_off_center_then_status_explains(self):
        ctl, _ = _controller()
        ctl.select_card(1, 0)
        self.assertFalse(ctl.click_cell(0, 0))
        self.assertEqual(ctl.status, MSG_FIRST_MOVE)
        self.assertEqual(ctl.history.undo_depth, 0)
        self.assertTrue(ctl.click_cell(4, 4))
        self.assertEqual(ctl.state.current_player().id, 2)
        self.assertIsNone(ctl.state.selected_card)
        self.assertEqual(ctl.status, "Player 2's turn. Select a card.")
        self.assertEqual(ctl.history.undo_depth, 1)

    def test_given_later_move_when_clicking_illegal_cell_then_invalid_status(self):
        ctl, _ = _controller()
        ctl.select_card(1, 0)
        ctl.click_cell(4, 4)
        ctl.select_card(2, 0)
        self.assertFalse(ctl.click_cell(0, 0))
        self.assertEqual(ctl.status, MSG_INVALID)
        self.assertEqual(ctl.state.current_player().id, 2)

    def test_given_player_with_empty_hand_when_turn_passes_then_skipped(self):
        s = make_state(
            player_ids=(1, 2, 3),
            hands={1: tiles("red", 1, 2), 3: tiles("yellow", 1)},
            placed={(4, 4): (5, "blue", 2)},
        )
        ctl, _ = _controller(state=s)
        ctl.select_card(1, 0)
        self.assertTrue(ctl.click_cell(4, 5))
        self.assertEqual(ctl.state.current_player().id, 3)
        self.assertEqual(ctl.status, "Player 2 cannot play. Turn skipped. Player 3's turn. Select a card.")

    def test_given_winning_placement_when_clicked_then_game_over_and_input_locked(self):
        s = make_state(
            hands={1: tiles("red", 1), 2: tiles("blue", 1)},
            placed={(0, 0): (1, "red", 1), (0, 1): (1, "red", 1), (0, 2): (1, "red", 1)},
        )
        ctl, _ = _controller(state=s)
        ctl.select_card(1, 0)
        self.assertTrue(ctl.click_cell(0, 3))
        self.assertEqual(ctl.winner_id, 1)
        self.assertEqual(ctl.phase, Phase.GAME_OVER)
        self.assertEqual(ctl.status, "Player 1 wins! Four red in a row!")
        self.assertFalse(ctl.select_card(2, 0))

    def test_given_last_tile_when_placed_without_line_then_stalemate(self):
        s = make_state(hands={1: tiles("red", 4)}, placed={(4, 4): (5, "blue", 2)})
        ctl, _ = _controller(state=s)
        ctl.select_card(1, 0)
        ctl.click_cell(4, 5)
        self.assertEqual(ctl.phase, Phase.GAME_OVER)
        self.assertIsNone(ctl.winner_id)
        self.assertEqual(ctl.status, MSG_STALEMATE)

    def test_given_remote_seats_when_selecting_then_only_local_players_act(self):
        ctl, _ = _controller()
        ctl.local_players = {2}
        self.assertFalse(ctl.select_card(1, 0))

    def test_given_placement_when_rendered_then_board_hands_and_status_reported(self):
        ctl, _ = _controller()
        seen = []
        ctl.add_listener(seen.append)
        ctl.select_card(1, 0)
        self.assertEqual(seen, [])
        ctl.presenter.calls.clear()
        ctl.click_cell(4, 4)
        kinds = [k for k, _ in ctl.presenter.calls]
        self.assertEqual(kinds, ["board", "hand", "hand", "status"])
        self.assertEqual(ctl.presenter.calls[0][1], ctl.state)
        self.assertEqual(len(seen), 1)

    def test_given_listener_when_notified_then_snapshot_delivered_with_lock_released(self):
        ctl, _ = _controller()
        seen = []
        reader_done = []
        blocked = []

        def listener(snap):
            seen.append(snap)
            t = threading.Thread(target=lambda: reader_done.append(ctl.phase))
            t.start()
            t.join(2)
            blocked.append(t.is_alive())

        ctl.add_listener(listener)
        ctl.select_card(1, 0)
        ctl.click_cell(4, 4)
        self.assertEqual(blocked, [False])
        self.assertEqual(reader_done, [Phase.AWAITING_SELECTION])
        self.assertEqual(seen, [ctl.state])
        self.assertIsNot(seen[0], ctl.state)


class TestHistoryAndRestart(unittest.TestCase):
    def test_given_move_when_undone_and_redone_then_states_match(self):
        ctl, _ = _controller()
        ctl.select_card(1, 0)
        before = ctl.state.snapshot()
        ctl.click_cell(4, 4)
        after = ctl.state.snapshot()
        self.assertTrue(ctl.undo())
        self.assertEqual(ctl.state, before)
        self.assertEqual(ctl.status, "Move undone")
        self.assertTrue(ctl.redo())
        self.assertEqual(ctl.state, after)
        self.assertEqual(ctl.status, "Move redone")
        self.assertFalse(ctl.redo())

    def test_given_finished_game_when_undone_then_play_resumes(self):
        s = make_state(
            hands={1: tiles("red", 1), 2: tiles("blue", 1)},
            placed={(0, 0): (1, "red", 1), (0, 1): (1, "red", 1), (0, 2): (1, "red", 1)},
        )
        ctl, _ = _controller(state=s)
        ctl.select_card(1, 0)
        ctl.click_cell(0, 3)
        self.assertTrue(ctl.undo())
        self.assertFalse(ctl.state.game_over)
        self.assertIsNone(ctl.winner_id)
        self.assertTrue(ctl.redo())
        self.assertEqual(ctl.winner_id, 1)
        self.assertTrue(ctl.state.game_over)

    def test_given_game_in_progress_when_restarted_then_fresh_state_and_empty_history(self):
        ctl, timers = _controller()
        ctl.set_ai_enabled(2, True)
        ctl.select_card(1, 0)
        ctl.click_cell(4, 4)
        self.assertTrue(ctl.scheduler.pending(2))
        ctl.restart()
        self.assertFalse(ctl.scheduler.pending(2))
        self.assertFalse(ctl.history.can_undo())
        self.assertTrue(ctl.state.first_move)
        self.assertTrue(ctl.state.board.is_empty())
        self.assertEqual([len(p.hand) for p in ctl.state.players], [3, 3])
        self.assertEqual(ctl.status, "Game started! Player 1, place a card in center.")
        timers.fire_stale()
        self.assertTrue(ctl.state.board.is_empty())


class TestComputerPlayers(unittest.TestCase):
    def _after_first_move(self, ids=(1, 2), ai=(2,)):
        ctl, timers = _controller(ids=ids)
        for pid in ai:
            ctl.set_ai_enabled(pid, True)
        ctl.select_card(1, 0)
        ctl.click_cell(4, 4)
        return ctl, timers

    def test_given_ai_turn_when_timer_fires_then_move_committed(self):
        ctl, timers = self._after_first_move()
        self.assertEqual(ctl.phase, Phase.AI_THINKING)
        self.assertTrue(ctl.scheduler.pending(2))
        self.assertEqual(ctl.status, "Player 2 (AI) is thinking...")
        self.assertFalse(ctl.select_card(2, 0))
        timers.fire_all()
        self.assertEqual(len(list(ctl.state.board.placed())), 2)
        self.assertEqual(ctl.state.current_player().id, 1)
        self.assertEqual(ctl.history.undo_depth, 2)

    def test_given_two_ai_players_when_fired_then_each_moves_in_turn(self):
        ctl, timers = self._after_first_move(ids=(1, 2, 3), ai=(2, 3))
        timers.fire_all()
        self.assertEqual(ctl.state.current_player().id, 3)
        self.assertTrue(ctl.scheduler.pending(3))
        timers.fire_all()
        self.assertEqual(ctl.state.current_player().id, 1)
        self.assertEqual(len(list(ctl.state.board.placed())), 3)

    def test_given_pending_ai_when_undo_then_commit_cancelled(self):
        ctl, timers = self._after_first_move()
        ctl.undo()
        self.assertFalse(ctl.scheduler.pending(2))
        timers.fire_stale()
        self.assertTrue(ctl.state.board.is_empty())
        self.assertEqual(ctl.state.current_player().id, 1)

    def test_given_pending_ai_when_redo_then_commit_cancelled(self):
        ctl, timers = self._after_first_move()
        timers.fire_all()
        self.assertTrue(ctl.undo())
        self.assertTrue(ctl.scheduler.pending(2))
        self.assertTrue(ctl.redo())
        self.assertFalse(ctl.scheduler.pending(2))
        self.assertEqual(ctl.state.current_player().id, 1)
        after_redo = ctl.state.snapshot()
        timers.fire_stale()
        self.assertEqual(ctl.state, after_redo)

    def test_given_planned_card_gone_when_timer_fires_then_commit_dropped(self):
        ctl, timers = self._after_first_move()
        ctl.state.players[1].hand.clear()
        timers.fire_all()
        self.assertEqual(len(list(ctl.state.board.placed())), 1)
        self.assertEqual(ctl.state.current_player().id, 2)

    def test_given_planned_cell_illegal_when_timer_fires_then_commit_dropped(self):
        ctl, timers = self._after_first_move()
        for r in range(BOARD_SIZE):
            for c in range(BOARD_SIZE):
                ctl.state.board.set(r, c, PlacedTile(9, "red", 1))
        before = ctl.state.snapshot()
        timers.fire_all()
        self.assertEqual(ctl.state, before)

    def test_given_game_over_when_timer_fires_then_commit_dropped(self):
        ctl, timers = self._after_first_move()
        ctl.state.game_over = True
        before = ctl.state.snapshot()
        timers.fire_all()
        self.assertEqual(ctl.state, before)

    def test_given_received_state_invalidating_plan_when_old_timer_fires_then_ignored(self):
        ctl, timers = self._after_first_move()
        incoming = make_state(
            hands={2: tiles("blue", 1)},
            placed={(r, c): (9, "red", 1) for r in range(BOARD_SIZE) for c in range(BOARD_SIZE)},
            current=1,
        )
        ctl.replace_state(incoming)
        after_replace = ctl.state.snapshot()
        timers.fire_stale()
        self.assertEqual(ctl.state, after_replace)
        self.assertEqual(ctl.state.board.at(4, 4).value, 9)

    def test_given_pending_ai_when_player_no_longer_ai_then_commit_dropped(self):
        ctl, timers = self._after_first_move()
        ctl.ai_players.discard(2)
        timers.fire_all()
        self.assertEqual(len(list(ctl.state.board.placed())), 1)
        self.assertEqual(ctl.state.current_player().id, 2)

    def test_given_pending_ai_when_disabled_then_cancelled_and_human_can_play(self):
        ctl, timers = self._after_first_move()
        ctl.set_ai_enabled(2, False)
        self.assertFalse(ctl.scheduler.pending(2))
        self.assertEqual(ctl.phase, Phase.AWAITING_SELECTION)
        self.assertTrue(ctl.select_card(2, 0))
        timers.fire_stale()
        self.assertEqual(len(list(ctl.state.board.placed())), 1)

    def test_given_peer_not_driving_ai_when_ai_turn_then_nothing_scheduled(self):
        ctl, _ = _controller()
        ctl.drives_ai = False
        ctl.set_ai_enabled(2, True)
        ctl.select_card(1, 0)
        ctl.click_cell(4, 4)
        self.assertEqual(ctl.scheduler.pending_keys(), [])
        self.assertEqual(ctl.phase, Phase.AWAITING_SELECTION)

    def test_given_ai_seat_with_nothing_pending_when_reading_phase_then_not_thinking(self):
        ctl, _ = self._after_first_move()
        self.assertEqual(ctl.phase, Phase.AI_THINKING)
        ctl.scheduler.cancel(2)
        self.assertTrue(ctl.is_ai(2))
        self.assertEqual(ctl.phase, Phase.AWAITING_SELECTION)

    def test_given_received_state_with_ai_to_move_when_replaced_then_scheduled_without_notify(self):
        ctl, _ = _controller()
        ctl.set_ai_enabled(2, True)
        seen = []
        ctl.add_listener(seen.append)
        incoming = new_game_state((1, 2), random.Random(3))
        incoming.set_current(1)
        ctl.replace_state(incoming)
        self.assertEqual(ctl.state, incoming)
        self.assertTrue(ctl.scheduler.pending(2))
        self.assertEqual(seen, [])

    def test_given_real_timers_when_ai_to_move_then_commits_in_background(self):
        done = threading.Event()
        ctl = TurnController((1, 2), rng=random.Random(1), settings=INSTANT)
        ctl.set_ai_enabled(2, True)
        ctl.add_listener(lambda s: done.set() if s.current_player().id == 1 and not s.first_move else None)
        ctl.select_card(1, 0)
        ctl.click_cell(4, 4)
        self.assertTrue(done.wait(5))
        self.assertEqual(len(list(ctl.state.board.placed())), 2)


class TestRoster(unittest.TestCase):
    def test_given_gap_in_ids_when_adding_then_first_free_seat_used(self):
        ctl, _ = _controller(ids=(1, 3))
        p = ctl.add_player()
        self.assertEqual(p.id, 2)
        self.assertEqual([x.id for x in ctl.state.players], [1, 2, 3])
        self.assertEqual(ctl.state.current_player().id, 1)
        ai = ctl.add_ai_player()
        self.assertEqual((ai.id, ai.name), (4, "Player 4 (AI)"))
        self.assertTrue(ctl.is_ai(4))
        self.assertIsNone(ctl.add_player())

    def test_given_taken_id_when_adding_then_refused(self):
        ctl, _ = _controller()
        self.assertIsNone(ctl.add_player(2))
        self.assertIsNone(ctl.add_player(5))

    def test_given_current_player_when_removed_then_next_player_moves(self):
        ctl, _ = _controller(ids=(1, 2, 3))
        self.assertTrue(ctl.remove_player(1))
        self.assertEqual([p.id for p in ctl.state.players], [2, 3])
        self.assertEqual(ctl.state.current_player().id, 2)
        self.assertTrue(ctl.state.players[0].is_current)
        self.assertFalse(ctl.remove_player(1))

    def test_given_undone_move_when_player_added_then_history_cleared_and_player_kept(self):
        ctl, _ = _controller()
        ctl.select_card(1, 0)
        ctl.click_cell(4, 4)
        self.assertTrue(ctl.undo())
        self.assertTrue(ctl.history.can_redo())
        p = ctl.add_player()
        self.assertEqual(p.id, 3)
        self.assertFalse(ctl.history.can_redo())
        self.assertFalse(ctl.history.can_undo())
        self.assertFalse(ctl.redo())
        self.assertIsNotNone(ctl.state.find_player(3))

    def test_given_moves_when_player_removed_then_undo_cannot_bring_them_back(self):
        ctl, _ = _controller(ids=(1, 2, 3))
        ctl.select_card(1, 0)
        ctl.click_cell(4, 4)
        self.assertTrue(ctl.remove_player(3))
        self.assertFalse(ctl.undo())
        self.assertIsNone(ctl.state.find_player(3))
        self.assertEqual(len(list(ctl.state.board.placed())), 1)

    def test_given_single_player_when_vs_computer_then_player_two_is_ai(self):
        ctl, _ = _controller(ids=(1,))
        ctl.start_vs_computer()
        self.assertEqual(ctl.ai_players, {2})
        self.assertEqual([p.id for p in ctl.state.players], [1, 2])
        self.assertTrue(ctl.state.first_move)
        self.assertEqual(ctl.phase, Phase.AWAITING_SELECTION)


if __name__ == "__main__":
    unittest.main(verbosity=2)
