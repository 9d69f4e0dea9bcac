"""
Gesture classifier: raw hub events to semantic actions.

The input ring is noisy. It emits bursts of scroll pulses, and it emits
spurious scrolls while a double-tap is in progress. Three timing windows
filter that out:

  scroll debounce       drop a scroll within scroll_debounce_ms of the last
                        accepted one
  scroll suppression    drop a scroll within scroll_suppress_after_tap_ms
                        of any tap or double-tap
  tap cooldown          drop taps and double-taps until a deadline; the
                        session pushes the deadline out when it enters
                        phases prone to accidental re-selection

The timers belong to one GestureClassifier instance (one per session), and
the clock is injectable so tests can drive time by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from evenchess.actions import Action, DoubleTap, ForegroundEnter, ForegroundExit, Scroll, Tap
from evenchess.events import HubEvent, ListItemEvent, OsEventType, SysItemEvent, TextItemEvent
from evenchess.state.utils import now_ms


@dataclass(frozen=True)
class GestureTiming:
    scroll_debounce_ms: float = 15
    tap_cooldown_ms: float = 400
    scroll_suppress_after_tap_ms: float = 150


class GestureClassifier:
    def __init__(
        self,
        timing: GestureTiming | None = None,
        clock: Callable[[], float] = now_ms,
    ) -> None:
        self.timing = timing or GestureTiming()
        self._clock = clock
        self._last_scroll_time = float("-inf")
        self._tap_cooldown_until = float("-inf")
        self._last_tap_time = float("-inf")

    def reset(self) -> None:
        self._last_scroll_time = float("-inf")
        self._tap_cooldown_until = float("-inf")
        self._last_tap_time = float("-inf")

    def extend_tap_cooldown(self, duration_ms: float | None = None) -> None:
        """Block taps for duration_ms from now. Never shortens an active cooldown."""
        if duration_ms is None:
            duration_ms = self.timing.tap_cooldown_ms
        deadline = self._clock() + duration_ms
        if deadline > self._tap_cooldown_until:
            self._tap_cooldown_until = deadline

    def classify(self, event: HubEvent | None) -> Action | None:
        """Map one hub event to an action, or None when it is malformed or filtered."""
        if event is None:
            return None
        if event.list_event is not None:
            return self._classify_list(event.list_event)
        if event.text_event is not None:
            return self._classify_text(event.text_event)
        if event.sys_event is not None:
            return self._classify_sys(event.sys_event)
        return None

    # ------------------------------------------------------------------ #
    # Per-container rules                                                 #
    # ------------------------------------------------------------------ #

    def _classify_list(self, event: ListItemEvent) -> Action | None:
        action = self._gesture(event.event_type, event.selected_index or 0, event.selected_name or "")
        if action is not None or event.event_type in _GESTURE_TYPES:
            return action
        # The simulator sends list clicks with no type, only a selection.
        if event.event_type is None and event.selected_index is not None:
            return self._tap(event.selected_index, event.selected_name or "")
        return None

    def _classify_text(self, event: TextItemEvent) -> Action | None:
        return self._gesture(event.event_type, 0, "")

    def _classify_sys(self, event: SysItemEvent) -> Action | None:
        match event.event_type:
            case OsEventType.FOREGROUND_ENTER:
                return ForegroundEnter()
            case OsEventType.FOREGROUND_EXIT:
                return ForegroundExit()
            case None:
                # The simulator reports clicks as empty system events.
                return self._tap(0, "")
        return self._gesture(event.event_type, 0, "")

    def _gesture(self, event_type: int | None, index: int, name: str) -> Action | None:
        match event_type:
            case OsEventType.SCROLL_TOP:
                return self._scroll("up")
            case OsEventType.SCROLL_BOTTOM:
                return self._scroll("down")
            case OsEventType.CLICK:
                return self._tap(index, name)
            case OsEventType.DOUBLE_CLICK:
                self._last_tap_time = self._clock()
                return None if self._in_tap_cooldown() else DoubleTap()
        return None

    # ------------------------------------------------------------------ #
    # Timing windows                                                      #
    # ------------------------------------------------------------------ #

    def _scroll(self, direction: str) -> Scroll | None:
        now = self._clock()
        if now - self._last_scroll_time < self.timing.scroll_debounce_ms:
            return None
        self._last_scroll_time = now
        if now - self._last_tap_time < self.timing.scroll_suppress_after_tap_ms:
            return None
        return Scroll(direction)  # type: ignore[arg-type]

    def _tap(self, index: int, name: str) -> Tap | None:
        self._last_tap_time = self._clock()
        if self._in_tap_cooldown():
            return None
        return Tap(selected_index=index, selected_name=name)

    def _in_tap_cooldown(self) -> bool:
        return self._clock() < self._tap_cooldown_until


_GESTURE_TYPES = frozenset(
    {OsEventType.SCROLL_TOP, OsEventType.SCROLL_BOTTOM, OsEventType.CLICK, OsEventType.DOUBLE_CLICK}
)
