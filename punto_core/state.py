from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .board import Board, Tile, COLORS

MAX_PLAYERS = 4
HAND_SIZE = 3


class EngineError(RuntimeError):
    """Raised when the game state breaks one of its own invariants."""


def color_for(player_id: int) -> str:
    if not 1 <= player_id <= MAX_PLAYERS:
        raise ValueError(f"player id out of range: {player_id}")
    return COLORS[player_id - 1]


@dataclass
class Player:
    id: int
    color: str
    name: str = ""
    hand: List[Tile] = field(default_factory=list)
    deck: List[Tile] = field(default_factory=list)
    is_current: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            self.name = f"Player {self.id}"

    def draw(self) -> bool:
        """Moves the front tile of the deck into the hand. Returns False on an empty deck."""
        if not self.deck:
            return False
        self.hand.append(self.deck.pop(0))
        return True

    def copy(self) -> 'Player':
        return Player(
            id=self.id,
            color=self.color,
            name=self.name,
            hand=list(self.hand),
            deck=list(self.deck),
            is_current=self.is_current,
        )


@dataclass(frozen=True)
class SelectedCard:
    player_id: int
    card_index: int


@dataclass
class GameState:
    """Represents the whole game: board, roster, turn pointer and flags.

    Equality is structural, so two snapshots of the same position compare equal.
    """
    board: Board = field(default_factory=Board)
    players: List[Player] = field(default_factory=list)
    current_player_index: int = 0
    first_move: bool = True
    selected_card: Optional[SelectedCard] = None
    game_over: bool = False

    def find_player(self, player_id: int) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def require_player(self, player_id: int) -> Player:
        p = self.find_player(player_id)
        if p is None:
            raise EngineError(f"no player with id {player_id}")
        return p

    def current_player(self) -> Optional[Player]:
        if not self.players:
            return None
        if not 0 <= self.current_player_index < len(self.players):
            raise EngineError(
                f"current player index {self.current_player_index} outside roster of {len(self.players)}"
            )
        return self.players[self.current_player_index]

    def set_current(self, index: int) -> None:
        for i, p in enumerate(self.players):
            p.is_current = i == index
        self.current_player_index = index

    def selected_tile(self) -> Optional[Tile]:
        sc = self.selected_card
        if sc is None:
            return None
        player = self.require_player(sc.player_id)
        if not 0 <= sc.card_index < len(player.hand):
            return None
        return player.hand[sc.card_index]

    def snapshot(self) -> 'GameState':
        """Returns a fully independent deep copy."""
        return GameState(
            board=self.board.copy(),
            players=[p.copy() for p in self.players],
            current_player_index=self.current_player_index,
            first_move=self.first_move,
            selected_card=self.selected_card,
            game_over=self.game_over,
        )

    def restore(self, snap: 'GameState') -> None:
        """Replaces the live contents with a deep copy of ``snap``."""
        fresh = snap.snapshot()
        self.board = fresh.board
        self.players = fresh.players
        self.current_player_index = fresh.current_player_index
        self.first_move = fresh.first_move
        self.selected_card = fresh.selected_card
        self.game_over = fresh.game_over
