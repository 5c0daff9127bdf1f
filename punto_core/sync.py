from __future__ import annotations

import logging
import random
import string
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from .state import GameState, Player, MAX_PLAYERS
from .turn import TurnController
from .wire import json_to_state, state_to_json

logger = logging.getLogger(__name__)

CODE_LENGTH = 6
CODE_ALPHABET = string.ascii_uppercase + string.digits

ERR_EXISTS = "Room code already exists"
ERR_NOT_FOUND = "Room not found"
ERR_FULL = "Room is full"

Payload = Dict[str, Any]
PayloadHandler = Callable[[Payload], None]


@dataclass(frozen=True)
class SessionTicket:
    """Outcome of a create/join attempt. Failures carry an error string instead of raising."""
    ok: bool
    session_code: Optional[str] = None
    player_id: Optional[int] = None
    member_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class MembershipEvent:
    session_code: str
    kind: str  # "joined" or "left"
    player_id: int
    players: Tuple[int, ...]


MembershipHandler = Callable[[MembershipEvent], None]


@dataclass
class Member:
    member_id: str
    player_id: int
    on_state: Optional[PayloadHandler] = None
    on_membership: Optional[MembershipHandler] = None


@dataclass
class Session:
    code: str
    members: List[Member] = field(default_factory=list)
    reserved: Set[int] = field(default_factory=set)  # seats held by host-run AI players
    state: Optional[Payload] = None
    version: int = 0

    def used_seats(self) -> Set[int]:
        return {m.player_id for m in self.members} | self.reserved

    def free_seat(self) -> Optional[int]:
        used = self.used_seats()
        for pid in range(1, MAX_PLAYERS + 1):
            if pid not in used:
                return pid
        return None

    def find(self, member_id: str) -> Optional[Member]:
        for m in self.members:
            if m.member_id == member_id:
                return m
        return None


class SessionHub:
    """Relay between the members of each session.

    Keeps membership and the last broadcast payload; it never inspects or
    validates game content. Broadcasts are delivered to every other member and
    whatever arrives last wins on the receiving side.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._rng = rng or random.Random()

    def _new_code(self) -> str:
        while True:
            code = "".join(self._rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if code not in self._sessions:
                return code

    def session_exists(self, code: str) -> bool:
        with self._lock:
            return code in self._sessions

    def players(self, code: str) -> List[int]:
        with self._lock:
            s = self._sessions.get(code)
            return sorted(m.player_id for m in s.members) if s else []

    def create_session(self, code: Optional[str] = None) -> SessionTicket:
        with self._lock:
            if code is not None:
                code = code.strip().upper()
                if code in self._sessions:
                    return SessionTicket(ok=False, session_code=code, error=ERR_EXISTS)
            else:
                code = self._new_code()
            member = Member(member_id=uuid.uuid4().hex, player_id=1)
            self._sessions[code] = Session(code=code, members=[member])
        logger.info("session %s created", code)
        return SessionTicket(ok=True, session_code=code, player_id=1, member_id=member.member_id)

    def join_session(self, code: str) -> SessionTicket:
        code = (code or "").strip().upper()
        with self._lock:
            s = self._sessions.get(code)
            if s is None:
                return SessionTicket(ok=False, session_code=code, error=ERR_NOT_FOUND)
            seat = s.free_seat()
            if len(s.members) >= MAX_PLAYERS or seat is None:
                return SessionTicket(ok=False, session_code=code, error=ERR_FULL)
            member = Member(member_id=uuid.uuid4().hex, player_id=seat)
            others = list(s.members)
            s.members.append(member)
            event = MembershipEvent(code, "joined", seat, tuple(sorted(m.player_id for m in s.members)))
        logger.info("session %s: player %d joined", code, seat)
        self._announce(others, event)
        return SessionTicket(ok=True, session_code=code, player_id=seat, member_id=member.member_id)

    def subscribe(
        self,
        code: str,
        member_id: str,
        on_state: Optional[PayloadHandler] = None,
        on_membership: Optional[MembershipHandler] = None,
    ) -> bool:
        with self._lock:
            s = self._sessions.get(code)
            m = s.find(member_id) if s else None
            if m is None:
                return False
            m.on_state = on_state
            m.on_membership = on_membership
            return True

    def reserve_seat(self, code: str, player_id: int) -> bool:
        with self._lock:
            s = self._sessions.get(code)
            if s is None or player_id in s.used_seats():
                return False
            s.reserved.add(player_id)
            return True

    def release_seat(self, code: str, player_id: int) -> None:
        with self._lock:
            s = self._sessions.get(code)
            if s is not None:
                s.reserved.discard(player_id)

    def broadcast_state(self, code: str, member_id: str, payload: Payload) -> Optional[int]:
        """Stores ``payload`` as the session's latest state and relays it. Returns the new version."""
        with self._lock:
            s = self._sessions.get(code)
            if s is None or s.find(member_id) is None:
                return None
            s.state = payload
            s.version += 1
            version = s.version
            targets = [m.on_state for m in s.members if m.member_id != member_id and m.on_state]
        for deliver in targets:
            try:
                deliver(payload)
            except Exception:
                # One failing receiver must not stop delivery to the rest.
                logger.exception("session %s: state delivery failed", code)
        return version

    def latest(self, code: str) -> Tuple[int, Optional[Payload]]:
        with self._lock:
            s = self._sessions.get(code)
            if s is None:
                return 0, None
            return s.version, s.state

    def leave(self, code: str, member_id: str) -> bool:
        with self._lock:
            s = self._sessions.get(code)
            m = s.find(member_id) if s else None
            if s is None or m is None:
                return False
            s.members.remove(m)
            if not s.members:
                del self._sessions[code]
                logger.info("session %s destroyed (empty)", code)
                return True
            others = list(s.members)
            event = MembershipEvent(code, "left", m.player_id, tuple(sorted(x.player_id for x in s.members)))
        logger.info("session %s: player %d left", code, m.player_id)
        self._announce(others, event)
        return True

    def _announce(self, members: List[Member], event: MembershipEvent) -> None:
        for m in members:
            if m.on_membership is None:
                continue
            try:
                m.on_membership(event)
            except Exception:
                logger.exception("session %s: membership delivery failed", event.session_code)


class LocalTransport:
    """In-process transport: one peer's connection to a SessionHub."""

    def __init__(self, hub: SessionHub) -> None:
        self.hub = hub
        self.session_code: Optional[str] = None
        self.member_id: Optional[str] = None
        self._state_handlers: List[Callable[[GameState], None]] = []
        self._membership_handlers: List[MembershipHandler] = []

    def create_session(self, code: Optional[str] = None) -> SessionTicket:
        return self._attach(self.hub.create_session(code))

    def join_session(self, code: str) -> SessionTicket:
        ticket = self._attach(self.hub.join_session(code))
        if ticket.ok:
            # The host answers the join before we subscribe; pick up what it sent.
            _, payload = self.hub.latest(ticket.session_code)
            if payload is not None:
                self._deliver_state(payload)
        return ticket

    def _attach(self, ticket: SessionTicket) -> SessionTicket:
        if ticket.ok:
            self.session_code = ticket.session_code
            self.member_id = ticket.member_id
            self.hub.subscribe(ticket.session_code, ticket.member_id, self._deliver_state, self._deliver_membership)
        return ticket

    def broadcast_state(self, code: str, state: GameState) -> None:
        if self.member_id is None:
            return
        self.hub.broadcast_state(code, self.member_id, state_to_json(state))

    def on_state_received(self, handler: Callable[[GameState], None]) -> None:
        self._state_handlers.append(handler)

    def on_membership_changed(self, handler: MembershipHandler) -> None:
        self._membership_handlers.append(handler)

    def reserve_seat(self, player_id: int) -> bool:
        if self.session_code is None:
            return True
        return self.hub.reserve_seat(self.session_code, player_id)

    def release_seat(self, player_id: int) -> None:
        if self.session_code is not None:
            self.hub.release_seat(self.session_code, player_id)

    def disconnect(self) -> None:
        if self.session_code is not None and self.member_id is not None:
            self.hub.leave(self.session_code, self.member_id)
        self.session_code = None
        self.member_id = None

    def _deliver_state(self, payload: Payload) -> None:
        state = json_to_state(payload)
        for h in list(self._state_handlers):
            h(state)

    def _deliver_membership(self, event: MembershipEvent) -> None:
        for h in list(self._membership_handlers):
            h(event)


class SyncCoordinator:
    """Replicates one TurnController's game across a session.

    The host owns the canonical state: it seats joining players, runs AI
    players and broadcasts after each mutation. Guests control only their own
    seat. Every peer replaces its state wholesale with whatever it receives.
    """

    def __init__(self, controller: TurnController, transport: LocalTransport) -> None:
        self.controller = controller
        self.transport = transport
        self.is_host = False
        self.session_code: Optional[str] = None
        self.player_id: Optional[int] = None
        transport.on_state_received(self._on_state_received)
        transport.on_membership_changed(self._on_membership_changed)
        controller.add_listener(self._on_local_change)

    def create_session(self, code: Optional[str] = None) -> SessionTicket:
        ticket = self.transport.create_session(code)
        if not ticket.ok:
            return ticket
        self.is_host = True
        self.session_code = ticket.session_code
        self.player_id = ticket.player_id
        c = self.controller
        c.local_players = {1}
        c.drives_ai = True
        c.ai_players = set()
        # A hosted game starts with the host alone; others are seated as they join.
        for p in [p for p in c.state.players if p.id != 1]:
            c.remove_player(p.id)
        if c.state.find_player(1) is None:
            c.add_player(1)
        c.restart()
        return ticket

    def join_session(self, code: str) -> SessionTicket:
        ticket = self.transport.join_session(code)
        if not ticket.ok:
            return ticket
        self.is_host = False
        self.session_code = ticket.session_code
        self.player_id = ticket.player_id
        self.controller.local_players = {ticket.player_id}
        self.controller.drives_ai = False
        return ticket

    def add_ai_player(self) -> Optional[Player]:
        """Host only: seats a computer player in the first free seat."""
        if self.session_code is not None and not self.is_host:
            return None
        used = {p.id for p in self.controller.state.players}
        for pid in range(1, MAX_PLAYERS + 1):
            if pid in used:
                continue
            if not self.transport.reserve_seat(pid):
                continue
            return self.controller.add_player(pid, ai=True)
        return None

    def remove_ai_player(self, player_id: Optional[int] = None) -> bool:
        if self.session_code is not None and not self.is_host:
            return False
        ai_ids = sorted(self.controller.ai_players)
        if not ai_ids:
            return False
        pid = player_id if player_id is not None else ai_ids[-1]
        if pid not in self.controller.ai_players:
            return False
        removed = self.controller.remove_player(pid)
        self.transport.release_seat(pid)
        return removed

    def leave(self) -> None:
        self.transport.disconnect()
        self.session_code = None
        self.is_host = False
        self.controller.local_players = None
        self.controller.drives_ai = True

    def _on_local_change(self, state: GameState) -> None:
        if self.session_code is not None:
            self.transport.broadcast_state(self.session_code, state)

    def _on_state_received(self, state: GameState) -> None:
        self.controller.replace_state(state)

    def _on_membership_changed(self, event: MembershipEvent) -> None:
        logger.debug("session %s: %s player %d", event.session_code, event.kind, event.player_id)
        if not self.is_host:
            return
        if event.kind == "joined":
            self.controller.add_player(event.player_id)
        elif event.kind == "left":
            self.controller.remove_player(event.player_id)
