from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, Optional

from .board import Tile, CENTER
from .rules import color_has_line, is_valid_move, wins_at
from .state import GameState, Player

WIN_SCORE = 100000.0
STACK_BONUS = 250.0
EXTEND_BONUS = 80.0
BLOCK_BONUS = 450.0
CENTER_PENALTY = 4.0
JITTER = 8.0


@dataclass(frozen=True)
class AiMove:
    card_index: int
    row: int
    col: int
    score: float


def _would_win(state: GameState, row: int, col: int, color: str, existing: Dict[str, bool]) -> bool:
    # A line already on the board still counts, as if the whole board were rescanned.
    if color not in existing:
        existing[color] = color_has_line(state.board, color)
    return existing[color] or wins_at(state.board, row, col, color)


def score_move(
    state: GameState,
    player: Player,
    tile: Tile,
    row: int,
    col: int,
    rng: random.Random,
    _lines: Optional[Dict[str, bool]] = None,
) -> float:
    """Heuristic value of placing ``tile`` at (row, col) for ``player``."""
    lines = _lines if _lines is not None else {}
    if _would_win(state, row, col, player.color, lines):
        return WIN_SCORE

    score = 0.0
    existing = state.board.at(row, col)
    if existing is not None and tile.value > existing.value:
        score += STACK_BONUS

    own = 0
    for nr, nc in state.board.neighbors(row, col):
        cell = state.board.at(nr, nc)
        if cell is not None and cell.color == player.color:
            own += 1
    score += own * EXTEND_BONUS

    # Danger density: each opponent tile that would win here adds up.
    for opp in state.players:
        if opp.id == player.id:
            continue
        for opp_tile in opp.hand:
            if is_valid_move(row, col, opp_tile, state) and _would_win(state, row, col, opp.color, lines):
                score += BLOCK_BONUS

    score -= CENTER_PENALTY * (abs(row - CENTER[0]) + abs(col - CENTER[1]))
    score += rng.random() * JITTER
    return score


def best_move(state: GameState, player_id: int, rng: Optional[random.Random] = None) -> Optional[AiMove]:
    """Picks the highest scoring legal placement, or None if the player cannot move.

    Does not mutate ``state``.
    """
    player = state.find_player(player_id)
    if player is None:
        return None
    rng = rng or random.Random()
    lines: Dict[str, bool] = {}
    best: Optional[AiMove] = None
    for ci, tile in enumerate(player.hand):
        for r, c in state.board.coords():
            if not is_valid_move(r, c, tile, state):
                continue
            sc = score_move(state, player, tile, r, c, rng, lines)
            if sc >= WIN_SCORE:
                return AiMove(ci, r, c, sc)
            if best is None or sc > best.score:
                best = AiMove(ci, r, c, sc)
    return best
