#!/usr/bin/env python3
"""
Play computer-vs-computer games and report how they end.

Runs the heuristic evaluator for every seat, committing moves immediately
(no think delay), and prints wins per color, stalemates and game lengths.
Useful for spotting evaluator regressions after changing the weights in
punto_core/ai.py.

Usage:
  python tools/selfplay.py --games 50 --players 4 --seed 1
"""

from __future__ import annotations

import argparse
import os
import random
import sys
from collections import Counter
from typing import Optional, Tuple

try:
    from game import best_move, new_game_state
    from punto_core.turn import TurnController
    from punto_core.presenter import Presenter
except ImportError:
    # Allow running from tools/ directly
    sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
    from game import best_move, new_game_state
    from punto_core.turn import TurnController
    from punto_core.presenter import Presenter


def play_one(players: int, rng: random.Random, max_plies: int = 500) -> Tuple[Optional[str], int]:
    """Returns (winning color or None for stalemate, number of placements)."""
    ctl = TurnController(
        player_ids=range(1, players + 1),
        presenter=Presenter(),
        rng=rng,
        state=new_game_state(range(1, players + 1), rng),
    )
    plies = 0
    while not ctl.state.game_over and plies < max_plies:
        cur = ctl.state.current_player()
        if cur is None:
            break
        move = best_move(ctl.state, cur.id, rng)
        if move is None:
            break
        ctl.select_card(cur.id, move.card_index)
        if not ctl.click_cell(move.row, move.col):
            raise RuntimeError(f"evaluator proposed an illegal move: {move}")
        plies += 1
    if ctl.winner_id is None:
        return None, plies
    return ctl.state.require_player(ctl.winner_id).color, plies


def main() -> None:
    ap = argparse.ArgumentParser(description="Punto AI self-play")
    ap.add_argument("--games", type=int, default=20)
    ap.add_argument("--players", type=int, choices=[2, 3, 4], default=4)
    ap.add_argument("--seed", type=int, default=None)
    args = ap.parse_args()

    rng = random.Random(args.seed)
    results: Counter = Counter()
    lengths = []
    for i in range(args.games):
        color, plies = play_one(args.players, rng)
        results[color or "stalemate"] += 1
        lengths.append(plies)
        print(f"game {i + 1}: {color or 'stalemate'} after {plies} placements")

    print("\nSummary:")
    for key, n in results.most_common():
        print(f"  {key:<10} {n:>4}  ({n / args.games:.0%})")
    if lengths:
        print(f"  placements min/avg/max: {min(lengths)}/{sum(lengths) / len(lengths):.1f}/{max(lengths)}")


if __name__ == "__main__":
    main()
