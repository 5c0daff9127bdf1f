from __future__ import annotations

import random
from typing import Iterable, List, Optional

from .board import Tile
from .state import GameState, Player, HAND_SIZE, color_for

SETS_PER_COLOR = 2


def full_deck(color: str) -> List[Tile]:
    """Two full sets of 1..9 in one color (18 tiles), unshuffled."""
    return [Tile(value, color) for _ in range(SETS_PER_COLOR) for value in range(1, 10)]


def deal_player(player_id: int, rng: Optional[random.Random] = None, name: str = "") -> Player:
    """Creates a player with a freshly shuffled deck and a dealt hand."""
    rng = rng or random.Random()
    color = color_for(player_id)
    deck = full_deck(color)
    rng.shuffle(deck)
    return Player(id=player_id, color=color, name=name, hand=deck[:HAND_SIZE], deck=deck[HAND_SIZE:])


def new_game_state(
    player_ids: Iterable[int] = (1, 2, 3, 4),
    rng: Optional[random.Random] = None,
    names: Optional[dict] = None,
) -> GameState:
    """Creates a fresh GameState: empty board, reshuffled decks, first player to move."""
    rng = rng or random.Random()
    names = names or {}
    players = [deal_player(pid, rng, names.get(pid, "")) for pid in sorted(set(player_ids))]
    state = GameState(players=players)
    if players:
        state.set_current(0)
    return state
