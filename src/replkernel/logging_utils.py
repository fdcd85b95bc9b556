"""Runtime logging helpers."""

from __future__ import annotations

import sys

import loguru
from loguru import logger

from replkernel.context import current_request_id

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[request]} | {message}"
_CONFIGURED_LEVEL: str | None = None


def _inject_context(record: loguru.Record) -> None:
    record["extra"]["request"] = current_request_id()


def configure_logging(*, level: str = "INFO") -> None:
    """Configure process-level logging once per level.

    The sink is bound to the stderr object present now, so log lines never
    land in a capture proxy installed later.
    """
    global _CONFIGURED_LEVEL
    level = level.upper()
    if level == _CONFIGURED_LEVEL:
        return

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    logger.configure(patcher=_inject_context)
    _CONFIGURED_LEVEL = level
