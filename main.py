"""
EvenChess: console simulator entry point.

Wires together:  config → console transport → game session → keyboard loop
"""

from __future__ import annotations

import asyncio
import logging
import logging.handlers
import signal
import sys
from pathlib import Path

from evenchess.config import Config, load_config
from evenchess.hub.console import QUIT_KEYS, ConsoleTransport, console, key_to_event
from evenchess.session import GameSession


def _setup_logging(config: Config) -> None:
    log_file = Path(config.logging.file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    # File only: the console belongs to the simulated display.
    logging.basicConfig(
        level=config.logging.level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        handlers=[
            logging.handlers.RotatingFileHandler(
                log_file, maxBytes=2 * 1024 * 1024, backupCount=3,  # 2 MB × 3 files
                encoding="utf-8",
            ),
        ],
    )


async def _keyboard_loop(transport: ConsoleTransport, session: GameSession) -> None:
    loop = asyncio.get_running_loop()
    while not session.closed.is_set():
        key = await loop.run_in_executor(None, input, "")
        if key.strip().lower() in QUIT_KEYS:
            return
        raw = key_to_event(key)
        if raw is None:
            console.print(f"[dim]Unknown key {key!r}[/]")
            continue
        transport.feed(raw)


async def _main(stop_event: asyncio.Event) -> None:
    try:
        config = load_config(Path("config.yaml"))
    except FileNotFoundError:
        config = Config()
    except ValueError as exc:
        console.print(f"[red]Config error:[/] {exc}")
        sys.exit(1)

    _setup_logging(config)

    transport = ConsoleTransport()
    session = GameSession(config, transport)
    await session.start()

    keyboard = asyncio.create_task(_keyboard_loop(transport, session))
    closed = asyncio.create_task(session.closed.wait())
    stopped = asyncio.create_task(stop_event.wait())
    await asyncio.wait({keyboard, closed, stopped}, return_when=asyncio.FIRST_COMPLETED)

    # The executor thread blocked in input() is left to die with the process.
    for task in (keyboard, closed, stopped):
        task.cancel()
    await session.stop()


def main() -> None:
    async def _run() -> None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        original_sigint = signal.getsignal(signal.SIGINT)

        def _on_sigint(sig: int, frame: object) -> None:
            # Schedule the event set on the event loop thread (safe on Windows)
            loop.call_soon_threadsafe(stop_event.set)
            # Restore the original handler so a second Ctrl+C force-quits
            signal.signal(signal.SIGINT, original_sigint)

        signal.signal(signal.SIGINT, _on_sigint)
        await _main(stop_event)

    asyncio.run(_run())


if __name__ == "__main__":
    main()
