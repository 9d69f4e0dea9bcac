"""
Raw input events from the glasses hub, before gesture classification.

The hub delivers three shapes (list, text and system container events), each
carrying an optional event type and an optional selected item. The
simulator is loose about all of it: clicks may arrive without a type, so
every field here is optional and nothing is validated until the gesture
classifier looks at it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any


class OsEventType(IntEnum):
    CLICK = 0
    SCROLL_TOP = 1
    SCROLL_BOTTOM = 2
    DOUBLE_CLICK = 3
    FOREGROUND_ENTER = 4
    FOREGROUND_EXIT = 5
    ABNORMAL_EXIT = 6


@dataclass(frozen=True)
class ListItemEvent:
    event_type: int | None = None
    selected_index: int | None = None
    selected_name: str | None = None


@dataclass(frozen=True)
class TextItemEvent:
    event_type: int | None = None


@dataclass(frozen=True)
class SysItemEvent:
    event_type: int | None = None


@dataclass(frozen=True)
class HubEvent:
    list_event: ListItemEvent | None = None
    text_event: TextItemEvent | None = None
    sys_event: SysItemEvent | None = None


def parse_hub_event(raw: Any) -> HubEvent | None:
    """
    Decode the hub's JSON event shape.

    Accepts {"listEvent": {...}} / {"textEvent": {...}} / {"sysEvent": {...}}
    with camelCase fields "eventType", "currentSelectItemIndex" and
    "currentSelectItemName". Returns None for anything that is not a dict.
    """
    if not isinstance(raw, dict):
        return None

    list_raw = raw.get("listEvent")
    text_raw = raw.get("textEvent")
    sys_raw = raw.get("sysEvent")

    list_event = text_event = sys_event = None
    if isinstance(list_raw, dict):
        list_event = ListItemEvent(
            event_type=_as_int(list_raw.get("eventType")),
            selected_index=_as_int(list_raw.get("currentSelectItemIndex")),
            selected_name=_as_str(list_raw.get("currentSelectItemName")),
        )
    if isinstance(text_raw, dict):
        text_event = TextItemEvent(event_type=_as_int(text_raw.get("eventType")))
    if isinstance(sys_raw, dict):
        sys_event = SysItemEvent(event_type=_as_int(sys_raw.get("eventType")))

    return HubEvent(list_event=list_event, text_event=text_event, sys_event=sys_event)


def _as_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _as_str(value: object) -> str | None:
    return value if isinstance(value, str) else None
