"""Runtime logging helpers.

Every record carries an `account` extra. Callers scope records to a Feishu
account with `logger.bind(account=...)`; unbound records show `-`.
"""

from __future__ import annotations

import os
import sys
from logging import Handler
from typing import Literal

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

LogProfile = Literal["default", "cli"]

_DEFAULT_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[account]} | {message}"
)
_CONFIGURED_PROFILE: LogProfile | None = None


def _build_cli_handler() -> Handler:
    return RichHandler(
        console=get_console(),
        show_level=True,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )


def configure_logging(*, profile: LogProfile = "default") -> None:
    """Configure process-level logging once."""
    global _CONFIGURED_PROFILE
    if profile == _CONFIGURED_PROFILE:
        return

    def inject_context(record: loguru.Record) -> None:
        record["extra"].setdefault("account", "-")

    level = os.getenv("BUB_LOG_LEVEL", "INFO").upper()
    logger.remove()
    logger.configure(patcher=inject_context)
    if profile == "cli":
        logger.add(
            _build_cli_handler(),
            level=level,
            format="{message}",
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=level,
            format=_DEFAULT_FORMAT,
            backtrace=False,
            diagnose=False,
        )
    _CONFIGURED_PROFILE = profile
