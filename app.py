from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, jsonify, request

from game import (
    GameState,
    Presenter,
    SessionHub,
    TurnController,
    best_move,
    json_to_state,
    new_game_state,
    state_to_json,
    valid_moves,
)
from punto_core.config import configure_logging, load_settings
from punto_core.state import MAX_PLAYERS
from punto_core.sync import ERR_EXISTS, ERR_FULL, ERR_NOT_FOUND

logger = logging.getLogger(__name__)

app = Flask(__name__)

# Relay shared by every session served from this process.
HUB = SessionHub()

_ERROR_STATUS = {ERR_NOT_FOUND: 404, ERR_FULL: 409, ERR_EXISTS: 409}


def _body() -> Dict[str, Any]:
    return request.get_json(force=True, silent=True) or {}


def _read_state(body: Dict[str, Any]) -> Tuple[Optional[GameState], Optional[Any]]:
    """Decodes body["state"], or returns a ready 400 response."""
    s_in = body.get("state")
    if not isinstance(s_in, dict):
        return None, (jsonify({"ok": False, "error": "state required"}), 400)
    try:
        return json_to_state(s_in), None
    except ValueError as e:
        return None, (jsonify({"ok": False, "error": str(e)}), 400)


def _legal_json(state: GameState, player_id: Optional[int] = None) -> List[List[int]]:
    if player_id is None:
        cur = state.current_player()
        if cur is None:
            return []
        player_id = cur.id
    player = state.find_player(player_id)
    if player is None or state.game_over:
        return []
    return [[ci, r, c] for (ci, r, c) in valid_moves(state, player)]


def _controller_for(state: GameState, seed: Any = None) -> TurnController:
    # Stateless requests: one throwaway controller per call, no AI seats.
    return TurnController(state=state, presenter=Presenter(), rng=random.Random(seed))


def _move_response(ctl: TurnController, extra: Optional[Dict[str, Any]] = None) -> Any:
    out: Dict[str, Any] = {
        "ok": True,
        "state": state_to_json(ctl.state),
        "legalMoves": _legal_json(ctl.state),
        "status": ctl.status,
        "winner": ctl.winner_id,
        "stalemate": bool(ctl.state.game_over and ctl.winner_id is None),
    }
    if extra:
        out.update(extra)
    return jsonify(out)


# ---------- Core Game API ----------

@app.post("/api/new")
def api_new() -> Any:
    body = _body()
    players = body.get("players", MAX_PLAYERS)
    try:
        if isinstance(players, list):
            ids = [int(p) for p in players]
        else:
            ids = list(range(1, int(players) + 1))
        if not ids or any(not 1 <= i <= MAX_PLAYERS for i in ids):
            raise ValueError(f"players must be within 1..{MAX_PLAYERS}")
    except (TypeError, ValueError) as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    state = new_game_state(ids, random.Random(body.get("seed")))
    return jsonify({
        "ok": True,
        "state": state_to_json(state),
        "legalMoves": _legal_json(state),
    })


@app.post("/api/legal")
def api_legal() -> Any:
    body = _body()
    state, err = _read_state(body)
    if err:
        return err
    pid = body.get("playerId")
    try:
        player_id = int(pid) if pid is not None else None
    except (TypeError, ValueError):
        return jsonify({"ok": False, "error": "playerId must be an integer"}), 400
    return jsonify({"ok": True, "legalMoves": _legal_json(state, player_id)})


@app.post("/api/move")
def api_move() -> Any:
    body = _body()
    state, err = _read_state(body)
    if err:
        return err
    cur = state.current_player()
    try:
        card_index = int(body["cardIndex"])
        row, col = int(body["row"]), int(body["col"])
        player_id = int(body.get("playerId", cur.id if cur else 0))
    except (KeyError, TypeError, ValueError):
        return jsonify({"ok": False, "error": "playerId, cardIndex, row and col must be integers"}), 400
    ctl = _controller_for(state)
    if not ctl.select_card(player_id, card_index) or not ctl.click_cell(row, col):
        return jsonify({
            "ok": False,
            "error": ctl.status or "Illegal move",
            "legalMoves": _legal_json(state),
        }), 400
    return _move_response(ctl)


@app.post("/api/ai")
def api_ai() -> Any:
    body = _body()
    state, err = _read_state(body)
    if err:
        return err
    cur = state.current_player()
    if state.game_over or cur is None:
        return jsonify({"ok": False, "error": "Game is over"}), 409
    try:
        player_id = int(body.get("playerId", cur.id))
    except (TypeError, ValueError):
        return jsonify({"ok": False, "error": "playerId must be an integer"}), 400
    if player_id != cur.id:
        return jsonify({"ok": False, "error": "Not this player's turn"}), 409
    seed = body.get("seed")
    move = best_move(state, player_id, random.Random(seed))
    if move is None:
        return jsonify({"ok": False, "error": "No AI move available"}), 409
    ctl = _controller_for(state, seed)
    ctl.select_card(player_id, move.card_index)
    ctl.click_cell(move.row, move.col)
    return _move_response(ctl, {"move": [move.card_index, move.row, move.col]})


# ---------- Session relay (remote peers poll for state) ----------

def _ticket_response(ticket) -> Any:
    if not ticket.ok:
        return jsonify({"ok": False, "error": ticket.error}), _ERROR_STATUS.get(ticket.error, 400)
    return jsonify({
        "ok": True,
        "sessionCode": ticket.session_code,
        "playerId": ticket.player_id,
        "memberId": ticket.member_id,
    })


@app.post("/api/session/create")
def api_session_create() -> Any:
    code = _body().get("code")
    return _ticket_response(HUB.create_session(str(code) if code else None))


@app.post("/api/session/join")
def api_session_join() -> Any:
    code = _body().get("sessionCode")
    if not code:
        return jsonify({"ok": False, "error": "sessionCode required"}), 400
    return _ticket_response(HUB.join_session(str(code)))


@app.post("/api/session/<code>/state")
def api_session_broadcast(code: str) -> Any:
    body = _body()
    member_id = body.get("memberId")
    state, err = _read_state(body)
    if err:
        return err
    version = HUB.broadcast_state(code.upper(), str(member_id), state_to_json(state))
    if version is None:
        return jsonify({"ok": False, "error": "unknown session or member"}), 404
    logger.debug("session %s: state v%d from %s", code, version, member_id)
    return jsonify({"ok": True, "version": version})


@app.get("/api/session/<code>/state")
def api_session_poll(code: str) -> Any:
    code = code.upper()
    if not HUB.session_exists(code):
        return jsonify({"ok": False, "error": ERR_NOT_FOUND}), 404
    since = request.args.get("since", default=0, type=int)
    version, payload = HUB.latest(code)
    return jsonify({
        "ok": True,
        "version": version,
        "state": payload if version > since else None,
        "players": HUB.players(code),
    })


@app.post("/api/session/<code>/leave")
def api_session_leave(code: str) -> Any:
    member_id = _body().get("memberId")
    if not HUB.leave(code.upper(), str(member_id)):
        return jsonify({"ok": False, "error": "unknown session or member"}), 404
    return jsonify({"ok": True})


# Entrypoint for "python app.py"
if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings.log_level)
    app.run(host="0.0.0.0", port=settings.port, debug=settings.debug)
