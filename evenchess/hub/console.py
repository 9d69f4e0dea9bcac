"""
Rich console transport: the glasses display simulated in a terminal.

Output is the text container and an ASCII rendering of the board image.
Input is one key per line, translated into the same raw event dicts the
hub sends:

    w / k      scroll up
    s / j      scroll down
    <enter>    tap
    d          double-tap
    q          quit
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from evenchess.events import OsEventType
from evenchess.hub.transport import (
    BOARD_CONTAINER_ID,
    HubTransport,
    PageLayout,
    RawEventHandler,
    TEXT_CONTAINER_ID,
)
from evenchess.renderer import ImageUpdate

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_KEYS: dict[str, OsEventType] = {
    "w": OsEventType.SCROLL_TOP,
    "k": OsEventType.SCROLL_TOP,
    "s": OsEventType.SCROLL_BOTTOM,
    "j": OsEventType.SCROLL_BOTTOM,
    "": OsEventType.CLICK,
    "d": OsEventType.DOUBLE_CLICK,
}

QUIT_KEYS = frozenset({"q", "quit", "exit"})


def key_to_event(key: str) -> dict[str, Any] | None:
    """Console key → raw hub event dict, or None for unknown keys."""
    event_type = _KEYS.get(key.strip().lower())
    if event_type is None:
        return None
    return {"textEvent": {"eventType": int(event_type)}}


class ConsoleTransport(HubTransport):
    def __init__(self, out: Console | None = None) -> None:
        self._console = out or console
        self._handlers: list[RawEventHandler] = []
        self._text = ""
        self._board = ""
        self._brand = ""

    async def connect(self) -> None:
        self._console.print("[dim]Keys: w/s scroll, enter tap, d double-tap, q quit[/]")

    async def create_page(self, layout: PageLayout) -> bool:
        logger.debug("Console page with %d containers", len(layout.containers))
        return True

    async def update_text(self, container_id: int, container_name: str, content: str) -> bool:
        if container_id == TEXT_CONTAINER_ID:
            self._text = content
            self._draw()
        return True

    async def update_image(self, image: ImageUpdate) -> bool:
        if image.container_id == BOARD_CONTAINER_ID:
            self._board = image.ascii
        else:
            self._brand = image.ascii
        self._draw()
        return True

    def on_event(self, handler: RawEventHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def feed(self, raw: Any) -> None:
        """Deliver a raw event to every subscriber, as the hub would."""
        for handler in list(self._handlers):
            handler(raw)

    async def shutdown_page(self, code: int = 0) -> None:
        self._console.print("[dim]Display closed.[/]")

    def _draw(self) -> None:
        body = Text()
        if self._board:
            body.append(self._board, style="green")
            body.append("\n\n")
        body.append(self._text)
        self._console.print(
            Panel(
                body,
                title=f"[bold green] {self._brand or 'EvenChess'} [/]",
                border_style="green",
                expand=False,
            )
        )
