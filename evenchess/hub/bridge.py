"""
EvenHubBridge: page lifecycle and container updates on top of a HubTransport.

Every call degrades to a logged no-op when the hub is unreachable; the
session keeps running and retries on the next flush. Image uploads are
serialized: the hub accepts one at a time, so they go through a queue
drained by whichever caller found it idle.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable

from evenchess.hub.transport import HubTransport, PageLayout, RawEventHandler
from evenchess.renderer import ImageUpdate

logger = logging.getLogger(__name__)


class EvenHubBridge:
    def __init__(self, transport: HubTransport) -> None:
        self._transport = transport
        self._hub: HubTransport | None = None
        self._image_queue: deque[ImageUpdate] = deque()
        self._sending_image = False
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def connected(self) -> bool:
        return self._hub is not None

    async def init(self) -> None:
        try:
            await self._transport.connect()
            self._hub = self._transport
            logger.info("Hub bridge ready")
        except Exception as exc:
            logger.warning("Hub bridge init failed (running outside the hub?): %s", exc)
            self._hub = None

    async def setup_page(self, layout: PageLayout) -> bool:
        if self._hub is None:
            logger.info("No hub, skipping setup_page")
            return False
        try:
            ok = await self._hub.create_page(layout)
        except Exception:
            logger.exception("create_page failed")
            return False
        if not ok:
            logger.error("create_page was refused")
        return ok

    async def update_text(self, container_id: int, container_name: str, content: str) -> bool:
        if self._hub is None:
            return False
        try:
            return await self._hub.update_text(container_id, container_name, content)
        except Exception:
            logger.exception("Text update failed")
            return False

    async def update_board_image(self, image: ImageUpdate) -> None:
        if self._hub is None:
            return
        self._image_queue.append(image)
        await self._drain_images()

    async def _drain_images(self) -> None:
        if self._sending_image or self._hub is None:
            return
        self._sending_image = True
        try:
            while self._image_queue:
                image = self._image_queue.popleft()
                try:
                    if not await self._hub.update_image(image):
                        logger.warning("Image update for %s not successful", image.container_name)
                except Exception:
                    logger.exception("Image update failed")
        finally:
            self._sending_image = False

    def subscribe_events(self, handler: RawEventHandler) -> None:
        """Route hub events to handler, replacing any previous subscription."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._hub is None:
            logger.info("No hub, skipping event subscription")
            return
        try:
            self._unsubscribe = self._hub.on_event(handler)
        except Exception:
            logger.exception("Event subscription failed")
            self._unsubscribe = None

    async def shutdown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._hub is None:
            return
        try:
            await self._hub.shutdown_page(0)
        except Exception:
            logger.exception("Hub shutdown failed")
