"""
State container: holds the current SessionState, applies the reducer and
fans changes out to subscribers.

A dispatch whose result is the identical object produces no notification.
Listeners run in subscription order with (new_state, previous_state); a
listener that raises is logged and skipped, the rest still run.
"""

from __future__ import annotations

import logging
from typing import Callable

from evenchess.actions import Action
from evenchess.state.contracts import SessionState
from evenchess.state.reducer import reduce

logger = logging.getLogger(__name__)

Listener = Callable[[SessionState, SessionState], None]
Reducer = Callable[[SessionState, Action], SessionState]


class Store:
    def __init__(self, initial: SessionState, reducer: Reducer = reduce) -> None:
        self._state = initial
        self._reducer = reducer
        self._listeners: list[Listener] = []

    def get_state(self) -> SessionState:
        return self._state

    def dispatch(self, action: Action) -> None:
        previous = self._state
        state = self._reducer(previous, action)
        if state is previous:
            return
        self._state = state

        # Snapshot so (un)subscribing from inside a listener is safe.
        for listener in list(self._listeners):
            try:
                listener(state, previous)
            except Exception:
                logger.exception("Store listener %r failed on %s", listener, type(action).__name__)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns an idempotent unsubscribe function."""
        self._listeners.append(listener)
        subscribed = True

        def unsubscribe() -> None:
            nonlocal subscribed
            if not subscribed:
                return
            subscribed = False
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe
