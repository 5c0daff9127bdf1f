from __future__ import annotations

import sys
from typing import IO, Optional, Set

from .rules import winning_cells
from .state import GameState, Player


class Presenter:
    """Outward calls the core makes after every externally visible change.

    The base class renders nothing; subclasses override what they display.
    """

    def render_board(self, state: GameState) -> None:
        pass

    def render_hand(self, player: Player) -> None:
        pass

    def render_status(self, message: str) -> None:
        pass


class TextPresenter(Presenter):
    """Plain-text renderer for terminals."""

    def __init__(self, out: Optional[IO[str]] = None, show_hands: bool = True) -> None:
        self.out = out or sys.stdout
        self.show_hands = show_hands

    def render_board(self, state: GameState) -> None:
        marks: Set = set()
        if state.game_over:
            for p in state.players:
                marks |= winning_cells(state, p.id)
        print(state.board.pretty(marks), file=self.out)

    def render_hand(self, player: Player) -> None:
        if not self.show_hands:
            return
        marker = ">" if player.is_current else " "
        cards = " ".join(f"[{i}] {t.short()}" for i, t in enumerate(player.hand)) or "(empty)"
        print(f"{marker} {player.name} ({player.color}, deck {len(player.deck)}): {cards}", file=self.out)

    def render_status(self, message: str) -> None:
        if message:
            print(message, file=self.out)
