from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


def _thread_timer(delay: float, fn: Callable[[], None]) -> threading.Timer:
    t = threading.Timer(delay, fn)
    t.daemon = True
    return t


class ScheduledAction:
    """A pending delayed call. Cancelled actions never run."""

    def __init__(self, key: int, delay: float, fn: Callable[[], None]) -> None:
        self.key = key
        self.delay = delay
        self.fn = fn
        self.cancelled = False
        self.timer: Any = None

    def cancel(self) -> None:
        self.cancelled = True
        if self.timer is not None:
            self.timer.cancel()


class ActionScheduler:
    """Cancellable delayed actions, at most one pending per key (player id).

    ``timer_factory(delay, fn)`` must return an object with ``start()`` and
    ``cancel()``; ``threading.Timer`` by default.
    """

    def __init__(self, timer_factory: Optional[TimerFactory] = None) -> None:
        self._timer_factory = timer_factory or _thread_timer
        self._pending: Dict[int, ScheduledAction] = {}
        self._lock = threading.Lock()

    def schedule(self, key: int, delay: float, fn: Callable[[], None]) -> ScheduledAction:
        action = ScheduledAction(key, delay, fn)
        action.timer = self._timer_factory(delay, lambda: self._fire(action))
        with self._lock:
            previous = self._pending.pop(key, None)
            self._pending[key] = action
        if previous is not None:
            logger.debug("replacing pending action for %s", key)
            previous.cancel()
        action.timer.start()
        return action

    def _fire(self, action: ScheduledAction) -> None:
        with self._lock:
            if action.cancelled or self._pending.get(action.key) is not action:
                return
            del self._pending[action.key]
        action.fn()

    def pending(self, key: int) -> bool:
        with self._lock:
            return key in self._pending

    def pending_keys(self) -> List[int]:
        with self._lock:
            return sorted(self._pending)

    def cancel(self, key: int) -> bool:
        with self._lock:
            action = self._pending.pop(key, None)
        if action is None:
            return False
        action.cancel()
        logger.debug("cancelled pending action for %s", key)
        return True

    def cancel_all(self) -> int:
        with self._lock:
            actions = list(self._pending.values())
            self._pending.clear()
        for action in actions:
            action.cancel()
        if actions:
            logger.debug("cancelled %d pending actions", len(actions))
        return len(actions)
