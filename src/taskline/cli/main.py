# src/taskline/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the App, mounts the shell, then runs an async console
REPL. Pollers tick on the same event loop while the REPL waits for input in a
worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.bootstrap import App, close_app, create_app
from ..cli.commands import registry as command_registry
from ..config import get_settings
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def handle_line(app: App, user_input: str) -> str | None:
    """Dispatch one console line. Plain text goes to the open chat, if any."""
    if not user_input.startswith("/"):
        if app.shell.conversation is None:
            return "Use /help for commands, or /chat <contact_id> to start talking."
        user_input = "/say " + user_input

    try:
        return await command_registry.handle(app, user_input)
    except Exception:
        logger.exception("Command handler crashed.")
        return "Internal error while handling a command."


async def run_console_loop(app: App) -> None:
    logger.info("Console started (base_url=%s).", app.settings.api_base_url)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        reply = await handle_line(app, user_input)
        if reply is not None:
            _print_ts(reply)


async def _amain() -> None:
    settings = get_settings()
    app = create_app(settings=settings)
    app.shell.mount()
    try:
        await run_console_loop(app)
    finally:
        await close_app(app)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/taskline")
    setup_logging(log_dir=log_dir, console_level=console_level)

    # keep noisy libs readable
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger.info("Starting %s...", getattr(settings, "app_name", "taskline"))

    try:
        asyncio.run(_amain())
    except KeyboardInterrupt:
        print()
        logger.info("KeyboardInterrupt, exiting.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
