from __future__ import annotations

from typing import Any, Dict, List, Optional

from .board import Board, PlacedTile, Tile, BOARD_SIZE, COLORS
from .state import GameState, Player, SelectedCard

# JSON payload exchanged between session members. Field names are camelCase on the wire.


def tile_to_json(t: Tile) -> Dict[str, Any]:
    return {"value": int(t.value), "color": t.color}


def tile_from_json(obj: Any) -> Tile:
    if not isinstance(obj, dict):
        raise ValueError(f"tile must be an object, got {type(obj).__name__}")
    value = int(obj["value"])
    color = str(obj["color"])
    if not 1 <= value <= 9:
        raise ValueError(f"tile value out of range: {value}")
    if color not in COLORS:
        raise ValueError(f"unknown color: {color}")
    return Tile(value, color)


def board_to_json(b: Board) -> List[List[Optional[Dict[str, Any]]]]:
    return [
        [None if cell is None else {"value": cell.value, "color": cell.color, "ownerId": cell.owner_id} for cell in row]
        for row in b.grid
    ]


def board_from_json(rows: Any) -> Board:
    if not isinstance(rows, list) or len(rows) != BOARD_SIZE:
        raise ValueError(f"board must be a {BOARD_SIZE}x{BOARD_SIZE} array")
    grid: List[List[Optional[PlacedTile]]] = []
    for row in rows:
        if not isinstance(row, list) or len(row) != BOARD_SIZE:
            raise ValueError(f"board must be a {BOARD_SIZE}x{BOARD_SIZE} array")
        out_row: List[Optional[PlacedTile]] = []
        for cell in row:
            if cell is None:
                out_row.append(None)
                continue
            t = tile_from_json(cell)
            out_row.append(PlacedTile(t.value, t.color, int(cell["ownerId"])))
        grid.append(out_row)
    return Board(grid=grid)


def player_to_json(p: Player) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "color": p.color,
        "hand": [tile_to_json(t) for t in p.hand],
        "deck": [tile_to_json(t) for t in p.deck],
        "isCurrent": bool(p.is_current),
    }


def player_from_json(obj: Dict[str, Any]) -> Player:
    color = str(obj["color"])
    if color not in COLORS:
        raise ValueError(f"unknown color: {color}")
    return Player(
        id=int(obj["id"]),
        color=color,
        name=str(obj.get("name") or ""),
        hand=[tile_from_json(t) for t in obj.get("hand", [])],
        deck=[tile_from_json(t) for t in obj.get("deck", [])],
        is_current=bool(obj.get("isCurrent", False)),
    )


def state_to_json(s: GameState) -> Dict[str, Any]:
    sc = s.selected_card
    return {
        "board": board_to_json(s.board),
        "players": [player_to_json(p) for p in s.players],
        "currentPlayerIndex": int(s.current_player_index),
        "firstMove": bool(s.first_move),
        "selectedCard": None if sc is None else {"playerId": sc.player_id, "cardIndex": sc.card_index},
        "gameOver": bool(s.game_over),
    }


def json_to_state(obj: Any) -> GameState:
    """Decodes a wire payload. Raises ValueError on malformed input."""
    if not isinstance(obj, dict):
        raise ValueError("state must be an object")
    try:
        players = [player_from_json(p) for p in obj.get("players", [])]
        idx = int(obj.get("currentPlayerIndex", 0))
        if players and not 0 <= idx < len(players):
            raise ValueError(f"currentPlayerIndex out of range: {idx}")
        sc_in = obj.get("selectedCard")
        selected = None
        if sc_in is not None:
            selected = SelectedCard(int(sc_in["playerId"]), int(sc_in["cardIndex"]))
        return GameState(
            board=board_from_json(obj["board"]),
            players=players,
            current_player_index=idx,
            first_move=bool(obj.get("firstMove", True)),
            selected_card=selected,
            game_over=bool(obj.get("gameOver", False)),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"bad state: {e}") from e
