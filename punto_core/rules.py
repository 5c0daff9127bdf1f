from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Set, Tuple

from .board import Board, Coord, PlacedTile, Tile, BOARD_SIZE, CENTER
from .state import GameState, Player

LINE_LENGTH = 4

# (dr, dc) for rows, columns, down-right and down-left diagonals.
DIRECTIONS: Tuple[Coord, ...] = ((0, 1), (1, 0), (1, 1), (1, -1))

Move = Tuple[int, int, int]  # (card_index, row, col)


@dataclass(frozen=True)
class MoveResult:
    applied: bool
    winner_id: Optional[int] = None
    stalemate: bool = False


def windows() -> Iterator[Tuple[Coord, ...]]:
    """Every run of four cells along a row, column or diagonal."""
    span = LINE_LENGTH - 1
    for r in range(BOARD_SIZE):
        for c in range(BOARD_SIZE):
            for dr, dc in DIRECTIONS:
                er, ec = r + dr * span, c + dc * span
                if Board.in_bounds(er, ec):
                    yield tuple((r + dr * i, c + dc * i) for i in range(LINE_LENGTH))


_WINDOWS: Tuple[Tuple[Coord, ...], ...] = tuple(windows())


def _matches(board: Board, coord: Coord, color: str) -> bool:
    cell = board.at(*coord)
    return cell is not None and cell.color == color


def color_has_line(board: Board, color: str) -> bool:
    return any(all(_matches(board, rc, color) for rc in w) for w in _WINDOWS)


def line_cells(board: Board, color: str) -> Set[Coord]:
    """All cells that belong to at least one complete window of ``color``."""
    out: Set[Coord] = set()
    for w in _WINDOWS:
        if all(_matches(board, rc, color) for rc in w):
            out.update(w)
    return out


def wins_at(board: Board, row: int, col: int, color: str) -> bool:
    """True if treating (row, col) as ``color`` completes a window through that cell."""
    for dr, dc in DIRECTIONS:
        run = 1
        for sign in (1, -1):
            r, c = row + dr * sign, col + dc * sign
            while Board.in_bounds(r, c) and _matches(board, (r, c), color):
                run += 1
                r, c = r + dr * sign, c + dc * sign
        if run >= LINE_LENGTH:
            return True
    return False


def is_valid_move(row: int, col: int, tile: Tile, state: GameState) -> bool:
    """Checks placement legality of ``tile`` at (row, col)."""
    if not Board.in_bounds(row, col):
        return False
    if state.first_move:
        return (row, col) == CENTER
    existing = state.board.at(row, col)
    if existing is not None:
        return tile.value > existing.value
    return state.board.has_occupied_neighbor(row, col)


def valid_moves(state: GameState, player: Player) -> List[Move]:
    """Enumerates legal (card_index, row, col) triples in hand, row, column order."""
    moves: List[Move] = []
    for ci, tile in enumerate(player.hand):
        for r, c in state.board.coords():
            if is_valid_move(r, c, tile, state):
                moves.append((ci, r, c))
    return moves


def player_has_valid_move(state: GameState, player: Player) -> bool:
    for tile in player.hand:
        for r, c in state.board.coords():
            if is_valid_move(r, c, tile, state):
                return True
    return False


def has_any_valid_move(state: GameState) -> bool:
    """True iff some player with a non-empty hand can place somewhere."""
    return any(p.hand and player_has_valid_move(state, p) for p in state.players)


def check_win(state: GameState, player_id: int) -> bool:
    player = state.find_player(player_id)
    if player is None:
        return False
    return color_has_line(state.board, player.color)


def winning_cells(state: GameState, player_id: int) -> Set[Coord]:
    player = state.find_player(player_id)
    if player is None:
        return set()
    return line_cells(state.board, player.color)


def apply_move(state: GameState, player_id: int, card_index: int, row: int, col: int) -> MoveResult:
    """Places a tile from a hand onto the board.

    Nothing is mutated unless the placement is legal. On success the hand is
    refilled from the deck when possible, the first-move flag is cleared and
    win/stalemate are checked (both end the game).
    """
    player = state.find_player(player_id)
    if player is None or not 0 <= card_index < len(player.hand):
        return MoveResult(applied=False)
    tile = player.hand[card_index]
    if not is_valid_move(row, col, tile, state):
        return MoveResult(applied=False)

    state.board.set(row, col, PlacedTile(tile.value, tile.color, player.id))
    del player.hand[card_index]
    player.draw()
    state.first_move = False

    if check_win(state, player.id):
        state.game_over = True
        return MoveResult(applied=True, winner_id=player.id)
    if not has_any_valid_move(state):
        state.game_over = True
        return MoveResult(applied=True, stalemate=True)
    return MoveResult(applied=True)
