"""
Transport seam between the session and the glasses hub.

The hub shows one page made of containers: a text container for the
carousel and menus, an image container for the board and a small branding
image. A HubTransport moves container updates out and raw hub events in;
concrete transports are the rich console (hub/console.py) and the
WebSocket simulator endpoint (web/app.py).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from evenchess.renderer import ImageUpdate

TEXT_CONTAINER_ID = 1
TEXT_CONTAINER_NAME = "status"
BOARD_CONTAINER_ID = 2
BOARD_CONTAINER_NAME = "board"
BRANDING_CONTAINER_ID = 3
BRANDING_CONTAINER_NAME = "brand"

RawEventHandler = Callable[[Any], None]


class HubError(Exception):
    """A transport call failed; the bridge logs it and carries on."""


@dataclass(frozen=True)
class ContainerSpec:
    container_id: int
    container_name: str
    kind: str          # "text" | "image"
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class PageLayout:
    containers: tuple[ContainerSpec, ...] = field(default_factory=tuple)


def default_layout(image_size: int = 200) -> PageLayout:
    return PageLayout(
        containers=(
            ContainerSpec(BRANDING_CONTAINER_ID, BRANDING_CONTAINER_NAME, "image", 0, 0, image_size, 24),
            ContainerSpec(BOARD_CONTAINER_ID, BOARD_CONTAINER_NAME, "image", 0, 32, image_size, image_size),
            ContainerSpec(TEXT_CONTAINER_ID, TEXT_CONTAINER_NAME, "text", image_size + 16, 0, 360, 288),
        )
    )


class HubTransport(ABC):
    """
    Abstract hub connection.

    Methods may raise HubError (or anything else); EvenHubBridge turns
    failures into a logged False so the session never sees them.
    """

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def create_page(self, layout: PageLayout) -> bool:
        ...

    @abstractmethod
    async def update_text(self, container_id: int, container_name: str, content: str) -> bool:
        ...

    @abstractmethod
    async def update_image(self, image: ImageUpdate) -> bool:
        ...

    @abstractmethod
    def on_event(self, handler: RawEventHandler) -> Callable[[], None]:
        """Register a raw event handler. Returns an unsubscribe function."""
        ...

    @abstractmethod
    async def shutdown_page(self, code: int = 0) -> None:
        ...
