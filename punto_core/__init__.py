"""
Punto core Python package.

Pure game logic plus the session plumbing around it, kept apart from the
Flask app so every piece can be unit tested on its own.
Modules:
- board.py: Tile, PlacedTile, Board
- state.py: Player, GameState, snapshot/restore
- deal.py: decks and dealing
- rules.py: move legality, placement, win and stalemate detection
- history.py: bounded undo/redo
- ai.py: heuristic move evaluator
- scheduler.py: cancellable delayed actions
- turn.py: TurnController (phases, turn passing, AI scheduling)
- wire.py: JSON payload codec
- sync.py: session hub, transport and host-authoritative coordinator
"""
