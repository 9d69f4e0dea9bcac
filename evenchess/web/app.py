"""
FastAPI application: the glasses simulator backend.

Exposes:
  GET  /api/config         Display and input settings for the simulator UI
  WS   /ws/hub             One game session per connection

The WebSocket speaks the hub's language. The client sends raw hub events
({"listEvent": {...}} / {"textEvent": {...}} / {"sysEvent": {...}}); the
server sends page, text and image updates as JSON objects tagged by "type".
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import logging.handlers
from pathlib import Path
from typing import Any, Callable

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from evenchess.config import Config, load_config
from evenchess.engine.bridge import MoveEngine, StockfishBridge
from evenchess.hub.transport import HubTransport, PageLayout, RawEventHandler
from evenchess.renderer import ImageUpdate
from evenchess.session import GameSession

try:
    config = load_config()
except FileNotFoundError:
    config = Config()

# --------------------------------------------------------------------------- #
# Logging                                                                      #
# --------------------------------------------------------------------------- #

_LOG_FILE = Path(config.logging.file)
_LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    level=config.logging.level,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    handlers=[
        logging.StreamHandler(),                                   # server console
        logging.handlers.RotatingFileHandler(
            _LOG_FILE, maxBytes=2 * 1024 * 1024, backupCount=3,  # 2 MB × 3 files
            encoding="utf-8",
        ),
    ],
)
logger = logging.getLogger("evenchess")


app = FastAPI(title="EvenChess")


def _to_json(data: dict) -> str:
    return json.dumps(data, default=str)


def _make_engine() -> MoveEngine:
    return StockfishBridge(config.engine.path, config.engine.timeout_grace)


# --------------------------------------------------------------------------- #
# Transport                                                                    #
# --------------------------------------------------------------------------- #

class WebSocketTransport(HubTransport):
    """Hub transport over an accepted FastAPI WebSocket."""

    def __init__(self, ws: WebSocket) -> None:
        self._ws = ws
        self._handlers: list[RawEventHandler] = []
        self._send_lock = asyncio.Lock()

    async def _send(self, payload: dict[str, Any]) -> bool:
        async with self._send_lock:
            try:
                await self._ws.send_text(_to_json(payload))
                return True
            except (WebSocketDisconnect, RuntimeError):
                return False

    async def connect(self) -> None:
        pass

    async def create_page(self, layout: PageLayout) -> bool:
        return await self._send(
            {"type": "createPage", "containers": [dataclasses.asdict(c) for c in layout.containers]}
        )

    async def update_text(self, container_id: int, container_name: str, content: str) -> bool:
        return await self._send(
            {
                "type": "textUpdate",
                "containerID": container_id,
                "containerName": container_name,
                "content": content,
            }
        )

    async def update_image(self, image: ImageUpdate) -> bool:
        return await self._send(
            {
                "type": "imageUpdate",
                "containerID": image.container_id,
                "containerName": image.container_name,
                "svg": image.svg,
            }
        )

    def on_event(self, handler: RawEventHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def feed(self, raw: Any) -> None:
        for handler in list(self._handlers):
            handler(raw)

    async def shutdown_page(self, code: int = 0) -> None:
        await self._send({"type": "shutdown", "code": code})


# --------------------------------------------------------------------------- #
# REST                                                                         #
# --------------------------------------------------------------------------- #

@app.get("/api/config")
def get_config():
    return {
        "image_size": config.display.image_size,
        "tap_cooldown_ms": config.input.tap_cooldown_ms,
        "gesture_window_ms": config.input.gesture_window_ms,
    }


# --------------------------------------------------------------------------- #
# WebSocket session                                                            #
# --------------------------------------------------------------------------- #

@app.websocket("/ws/hub")
async def hub_ws(ws: WebSocket) -> None:
    await ws.accept()

    transport = WebSocketTransport(ws)
    session = GameSession(config, transport, engine=_make_engine())

    try:
        await session.start()

        async def _session_loop() -> None:
            await session.closed.wait()

        async def _receive_loop() -> None:
            try:
                while True:
                    msg = await ws.receive_json()
                    if isinstance(msg, dict) and msg.get("type") == "stop":
                        break
                    transport.feed(msg)
            except (WebSocketDisconnect, RuntimeError, json.JSONDecodeError):
                pass

        # Whichever ends first (exit from the menu, or the client leaving)
        # ends the session.
        session_task = asyncio.create_task(_session_loop())
        recv_task = asyncio.create_task(_receive_loop())

        done, pending = await asyncio.wait(
            {session_task, recv_task}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, WebSocketDisconnect):
                pass

        for task in done:
            if task.exception():
                raise task.exception()  # type: ignore[misc]

    except WebSocketDisconnect:
        pass
    except Exception as exc:
        logger.exception("Hub session failed")
        try:
            await ws.send_text(_to_json({"type": "error", "message": str(exc)}))
        except Exception:
            pass
    finally:
        await session.stop()
