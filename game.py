from __future__ import annotations

# Facade module that re-exports Punto core functionality.
# The Flask app, the tools and the tests import from here.
# Single-responsibility modules live under punto_core/*.

from punto_core.board import Board, Coord, PlacedTile, Tile, BOARD_SIZE, CENTER, COLORS
from punto_core.state import EngineError, GameState, Player, SelectedCard, MAX_PLAYERS, color_for
from punto_core.deal import deal_player, full_deck, new_game_state
from punto_core.rules import (
    MoveResult,
    apply_move,
    check_win,
    has_any_valid_move,
    is_valid_move,
    player_has_valid_move,
    valid_moves,
    winning_cells,
)
from punto_core.history import HistoryStack
from punto_core.ai import AiMove, best_move, score_move
from punto_core.scheduler import ActionScheduler
from punto_core.presenter import Presenter, TextPresenter
from punto_core.turn import Phase, TurnController
from punto_core.wire import json_to_state, state_to_json
from punto_core.sync import LocalTransport, SessionHub, SessionTicket, SyncCoordinator


def main() -> None:
    # CLI driver delegated to punto_core.cli
    from punto_core.cli import main as _main
    _main()


if __name__ == '__main__':
    main()
