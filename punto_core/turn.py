from __future__ import annotations

import logging
import random
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterable, Iterator, List, Optional, Set

from .ai import AiMove, best_move
from .config import Settings, load_settings
from .deal import deal_player, new_game_state
from .history import HistoryStack
from .presenter import Presenter
from .rules import apply_move, check_win, is_valid_move, player_has_valid_move
from .scheduler import ActionScheduler
from .state import GameState, Player, SelectedCard, MAX_PLAYERS

logger = logging.getLogger(__name__)

StateListener = Callable[[GameState], None]

MSG_FIRST_MOVE = "First move must be center (4,4)."
MSG_INVALID = "Invalid move! Choose an adjacent empty square or valid stack."
MSG_STALEMATE = "Game over! No valid moves remaining."


class Phase(str, Enum):
    AWAITING_SELECTION = "awaiting_selection"
    AWAITING_PLACEMENT = "awaiting_placement"
    AI_THINKING = "ai_thinking"
    GAME_OVER = "game_over"


class TurnController:
    """Owns one game: its state, history, AI players and pending AI moves.

    All public entry points are serialized by a re-entrant lock, so a delayed
    AI commit firing on a timer thread never interleaves with user input.
    Listeners get a snapshot and run after the lock is released, so a listener
    may call into another controller without lock-ordering hazards.
    """

    def __init__(
        self,
        player_ids: Iterable[int] = (1, 2, 3, 4),
        presenter: Optional[Presenter] = None,
        scheduler: Optional[ActionScheduler] = None,
        rng: Optional[random.Random] = None,
        settings: Optional[Settings] = None,
        state: Optional[GameState] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.presenter = presenter or Presenter()
        self.scheduler = scheduler or ActionScheduler()
        self.rng = rng or random.Random()
        self.history = HistoryStack(self.settings.history_limit)
        self.state = state if state is not None else new_game_state(player_ids, self.rng)
        self.ai_players: Set[int] = set()
        # None means every seat is controlled from this process (hot-seat).
        self.local_players: Optional[Set[int]] = None
        self.drives_ai = True
        self.status = ""
        self.winner_id: Optional[int] = None
        self._listeners: List[StateListener] = []
        self._lock = threading.RLock()
        self._depth = 0
        self._outbox: List[GameState] = []
        self._generation = 0

    # ---------- queries ----------

    @property
    def phase(self) -> Phase:
        with self._lock:
            if self.state.game_over:
                return Phase.GAME_OVER
            cur = self.state.current_player()
            if cur is not None and cur.id in self.ai_players and self.drives_ai and self.scheduler.pending(cur.id):
                return Phase.AI_THINKING
            if self.state.selected_card is not None:
                return Phase.AWAITING_PLACEMENT
            return Phase.AWAITING_SELECTION

    def is_ai(self, player_id: int) -> bool:
        return player_id in self.ai_players

    def add_listener(self, fn: StateListener) -> None:
        """Registers a callback invoked after every mutation of the game."""
        self._listeners.append(fn)

    # ---------- input entry points ----------

    def select_card(self, player_id: int, card_index: int) -> bool:
        with self._lock:
            if self.state.game_over:
                return False
            cur = self.state.current_player()
            if cur is None or cur.id != player_id or player_id in self.ai_players:
                return False
            if not self._is_local(player_id):
                return False
            if not 0 <= card_index < len(cur.hand):
                return False
            self.state.selected_card = SelectedCard(player_id, card_index)
            tile = cur.hand[card_index]
            if self.state.first_move:
                self._set_status(f"Selected: {tile.color} {tile.value}. Place at center (4,4).")
            else:
                self._set_status(f"Selected: {tile.color} {tile.value}. Choose a valid board position.")
            self.presenter.render_hand(cur)
            return True

    def click_cell(self, row: int, col: int) -> bool:
        with self._transition():
            sc = self.state.selected_card
            if self.state.game_over or sc is None:
                return False
            player = self.state.require_player(sc.player_id)
            if not player.is_current or not self._is_local(player.id):
                return False
            return self._place(player, sc.card_index, row, col)

    def undo(self) -> bool:
        with self._transition():
            if not self.history.can_undo():
                return False
            self._cancel_all_ai()
            prev = self.history.undo(self.state)
            assert prev is not None
            self.state.restore(prev)
            self.winner_id = None
            self._set_status("Move undone", render=False)
            self._after_mutation()
            return True

    def redo(self) -> bool:
        with self._transition():
            if not self.history.can_redo():
                return False
            self._cancel_all_ai()
            nxt = self.history.redo(self.state)
            assert nxt is not None
            self.state.restore(nxt)
            self.winner_id = self._find_winner()
            self._set_status("Move redone", render=False)
            self._after_mutation()
            return True

    def restart(self) -> None:
        with self._transition():
            self._cancel_all_ai()
            names = {p.id: p.name for p in self.state.players}
            ids = list(names) or list(range(1, MAX_PLAYERS + 1))
            self.state.restore(new_game_state(ids, self.rng, names))
            self.history.clear()
            self.winner_id = None
            first = self.state.current_player()
            who = first.name if first is not None else "Player 1"
            self._set_status(f"Game started! {who}, place a card in center.", render=False)
            self._after_mutation()

    def set_ai_enabled(self, player_id: int, enabled: bool) -> None:
        with self._transition():
            if enabled:
                self.ai_players.add(player_id)
                sc = self.state.selected_card
                if sc is not None and sc.player_id == player_id:
                    self.state.selected_card = None
                self._maybe_schedule_ai()
            else:
                self.ai_players.discard(player_id)
                self.scheduler.cancel(player_id)

    def start_vs_computer(self) -> None:
        """Quick mode: player 1 human, player 2 computer, then a fresh game."""
        with self._transition():
            self._cancel_all_ai()
            self.ai_players = {2}
            if self.state.find_player(2) is None:
                self.state.players.append(deal_player(2, self.rng))
            self.restart()

    # ---------- roster ----------

    def add_player(self, player_id: Optional[int] = None, name: str = "", ai: bool = False) -> Optional[Player]:
        """Seats a new player in the first free id (or ``player_id``). None when full or taken."""
        with self._transition():
            used = {p.id for p in self.state.players}
            if player_id is None:
                free = [i for i in range(1, MAX_PLAYERS + 1) if i not in used]
                if not free:
                    return None
                player_id = free[0]
            elif player_id in used or not 1 <= player_id <= MAX_PLAYERS:
                return None
            if ai and not name:
                name = f"Player {player_id} (AI)"
            player = deal_player(player_id, self.rng, name)
            cur = self.state.current_player()
            self.state.players.append(player)
            self.state.players.sort(key=lambda p: p.id)
            self.state.set_current(self.state.players.index(cur) if cur is not None else 0)
            if ai:
                self.ai_players.add(player_id)
            # Snapshots from before the roster change would unseat or resurrect players.
            self.history.clear()
            logger.debug("seated player %s (ai=%s)", player_id, ai)
            self._set_status(f"{player.name} added.", render=False)
            self._after_mutation()
            return player

    def add_ai_player(self) -> Optional[Player]:
        return self.add_player(ai=True)

    def remove_player(self, player_id: int) -> bool:
        with self._transition():
            player = self.state.find_player(player_id)
            if player is None:
                return False
            self.scheduler.cancel(player_id)
            self.ai_players.discard(player_id)
            cur = self.state.current_player()
            idx = self.state.players.index(player)
            self.state.players.remove(player)
            sc = self.state.selected_card
            if sc is not None and sc.player_id == player_id:
                self.state.selected_card = None
            if not self.state.players:
                self.state.current_player_index = 0
            elif cur is player:
                self.state.set_current(idx % len(self.state.players))
            else:
                self.state.set_current(self.state.players.index(cur))
            self.history.clear()
            self._set_status(f"{player.name} removed.", render=False)
            self._after_mutation()
            return True

    # ---------- network ----------

    def replace_state(self, new_state: GameState) -> None:
        """Adopts a received state wholesale. Listeners are not notified."""
        with self._transition():
            self._cancel_all_ai()
            self.state.restore(new_state)
            self.winner_id = self._find_winner()
            cur = self.state.current_player()
            if self.state.game_over:
                self._set_status(self._game_over_message(), render=False)
            elif cur is not None:
                self._set_status(f"{cur.name}'s turn", render=False)
            self._render()
            self._maybe_schedule_ai()

    # ---------- internals ----------

    def _is_local(self, player_id: int) -> bool:
        return self.local_players is None or player_id in self.local_players

    def _set_status(self, message: str, render: bool = True) -> None:
        self.status = message
        if render:
            self.presenter.render_status(message)

    def _render(self) -> None:
        self.presenter.render_board(self.state)
        for p in self.state.players:
            self.presenter.render_hand(p)
        self.presenter.render_status(self.status)

    @contextmanager
    def _transition(self) -> Iterator[None]:
        """Holds the lock for one state transition, then delivers queued snapshots."""
        with self._lock:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                outbox: List[GameState] = []
                if self._depth == 0:
                    outbox, self._outbox = self._outbox, []
        for snap in outbox:
            for fn in list(self._listeners):
                fn(snap)

    def _notify(self) -> None:
        self._outbox.append(self.state.snapshot())

    def _after_mutation(self) -> None:
        self._render()
        self._notify()
        self._maybe_schedule_ai()

    def _find_winner(self) -> Optional[int]:
        for p in self.state.players:
            if check_win(self.state, p.id):
                return p.id
        return None

    def _game_over_message(self) -> str:
        if self.winner_id is not None:
            p = self.state.require_player(self.winner_id)
            return f"{p.name} wins! Four {p.color} in a row!"
        return MSG_STALEMATE

    def _cancel_all_ai(self) -> None:
        self._generation += 1
        self.scheduler.cancel_all()

    def _place(self, player: Player, card_index: int, row: int, col: int) -> bool:
        snap = self.state.snapshot()
        first = self.state.first_move
        result = apply_move(self.state, player.id, card_index, row, col)
        if not result.applied:
            self._set_status(MSG_FIRST_MOVE if first else MSG_INVALID)
            return False
        self.history.push(snap)
        self.state.selected_card = None
        if result.winner_id is not None:
            self.winner_id = result.winner_id
            self._set_status(self._game_over_message(), render=False)
        elif result.stalemate:
            self._set_status(MSG_STALEMATE, render=False)
        else:
            self._advance()
        self._after_mutation()
        return True

    def _advance(self) -> Optional[Player]:
        """Passes the turn to the next player able to move; ends the game if nobody can."""
        players = self.state.players
        n = len(players)
        start = self.state.current_player_index
        skipped: List[str] = []
        for step in range(1, n + 1):
            idx = (start + step) % n
            p = players[idx]
            if p.hand and player_has_valid_move(self.state, p):
                self.state.set_current(idx)
                prefix = "".join(f"{name} cannot play. Turn skipped. " for name in skipped)
                self._set_status(f"{prefix}{p.name}'s turn. Select a card.", render=False)
                return p
            skipped.append(p.name)
        self.state.game_over = True
        self._set_status(MSG_STALEMATE, render=False)
        return None

    def _maybe_schedule_ai(self) -> None:
        if not self.drives_ai:
            return
        for _ in range(len(self.state.players)):
            if self.state.game_over:
                return
            cur = self.state.current_player()
            if cur is None or cur.id not in self.ai_players or self.scheduler.pending(cur.id):
                return
            move = best_move(self.state, cur.id, self.rng)
            if move is not None:
                self._schedule_commit(cur, move)
                return
            # No legal move for this AI: skip it.
            self._set_status(f"{cur.name} (AI) has no valid move and is skipped.", render=False)
            self._advance()
            self._render()
            self._notify()

    def _schedule_commit(self, player: Player, move: AiMove) -> None:
        lo, hi = self.settings.think_range
        delay = self.rng.uniform(lo, hi)
        generation = self._generation
        player_id = player.id
        logger.debug("AI %s plans card %d at (%d,%d), committing in %.2fs",
                     player_id, move.card_index, move.row, move.col, delay)
        self.scheduler.schedule(player_id, delay, lambda: self._commit_ai(player_id, move, generation))
        self._set_status(f"{player.name} (AI) is thinking...")

    def _commit_ai(self, player_id: int, move: AiMove, generation: int) -> None:
        with self._transition():
            if not self._ai_commit_still_valid(player_id, move, generation):
                logger.debug("dropping stale AI move for player %s", player_id)
                return
            player = self.state.require_player(player_id)
            self._place(player, move.card_index, move.row, move.col)

    def _ai_commit_still_valid(self, player_id: int, move: AiMove, generation: int) -> bool:
        if generation != self._generation or not self.drives_ai:
            return False
        if self.state.game_over or player_id not in self.ai_players:
            return False
        cur = self.state.current_player()
        if cur is None or cur.id != player_id:
            return False
        if not 0 <= move.card_index < len(cur.hand):
            return False
        return is_valid_move(move.row, move.col, cur.hand[move.card_index], self.state)
