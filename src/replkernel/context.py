"""Marker for the request currently being handled."""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from replkernel.message import Message

_request_context: ContextVar[Message | None] = ContextVar("request", default=None)


def current_request() -> Message | None:
    """Get the request message in context, if any."""
    return _request_context.get()


def current_request_id() -> str:
    message = _request_context.get()
    if message is None:
        return "-"
    return str(message.header.get("msg_id") or "-")


@contextlib.contextmanager
def request_scope(message: Message) -> Generator[Message, None, None]:
    """Mark ``message`` as the current request until the block exits."""
    reset_token = _request_context.set(message)
    try:
        yield message
    finally:
        _request_context.reset(reset_token)
