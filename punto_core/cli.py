from __future__ import annotations

import argparse
import random
import time
from typing import List, Optional, Set

from .config import Settings, configure_logging, load_settings
from .presenter import TextPresenter
from .turn import Phase, TurnController

HELP = "Commands: 'card row col' to play, 'u' undo, 'r' redo, 'n' new game, 'q' quit."


def _parse_ids(text: Optional[str]) -> Set[int]:
    if not text:
        return set()
    return {int(t) for t in text.replace(",", " ").split()}


def _handle_command(ctl: TurnController, text: str) -> bool:
    """Applies one line of human input. Returns False to quit."""
    parts = text.strip().lower().split()
    if not parts:
        return True
    cmd = parts[0]
    if cmd in ("q", "quit", "exit"):
        return False
    if cmd in ("u", "undo"):
        if not ctl.undo():
            print("Nothing to undo.")
        return True
    if cmd in ("r", "redo"):
        if not ctl.redo():
            print("Nothing to redo.")
        return True
    if cmd in ("n", "new"):
        ctl.restart()
        return True
    try:
        card, row, col = (int(p) for p in parts)
    except ValueError:
        print('Could not parse. ' + HELP)
        return True
    cur = ctl.state.current_player()
    if cur is None or not ctl.select_card(cur.id, card):
        print("That card cannot be selected.")
        return True
    ctl.click_cell(row, col)
    return True


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description='Punto: stack tiles, line up four of your color')
    parser.add_argument('--players', type=int, choices=[2, 3, 4], default=4, help='Number of players')
    parser.add_argument('--ai', default='', help='Comma separated player ids played by the computer, e.g. 2,3')
    parser.add_argument('--vs-computer', action='store_true', help='Quick mode: you are Player 1, computer is Player 2')
    parser.add_argument('--seed', type=int, default=None, help='RNG seed for shuffling and AI jitter')
    parser.add_argument('--think-ms', type=int, default=None, help='Fixed AI think delay in milliseconds')
    parser.add_argument('--log-level', default=None, help='Logging level (DEBUG, INFO, ...)')
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    settings = load_settings()
    if args.think_ms is not None:
        settings = Settings(
            think_min_ms=args.think_ms,
            think_max_ms=args.think_ms,
            history_limit=settings.history_limit,
            log_level=settings.log_level,
            port=settings.port,
            debug=settings.debug,
        )

    ctl = TurnController(
        player_ids=range(1, args.players + 1),
        presenter=TextPresenter(),
        rng=random.Random(args.seed),
        settings=settings,
    )
    if args.vs_computer:
        ctl.start_vs_computer()
    else:
        for pid in _parse_ids(args.ai):
            ctl.ai_players.add(pid)
        ctl.restart()

    print(HELP)
    while ctl.phase != Phase.GAME_OVER:
        cur = ctl.state.current_player()
        if cur is not None and ctl.is_ai(cur.id):
            # The AI commits from a timer thread.
            time.sleep(0.05)
            continue
        try:
            text = input('> ')
        except EOFError:
            break
        if not _handle_command(ctl, text):
            break
    ctl.scheduler.cancel_all()


if __name__ == '__main__':
    main()
