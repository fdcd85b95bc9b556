"""Normalized execution responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

TEXT_PLAIN = "text/plain"


class ResponseState(Enum):
    """How an execute request finished."""

    OK = "ok"
    OK_SILENT = "ok_silent"
    ERROR = "error"


def text_result(text: str) -> dict[str, Any]:
    return {TEXT_PLAIN: text}


@dataclass(frozen=True)
class NormalizedResponse:
    """Evaluation outcome reduced to what the protocol needs to report.

    Captured streams are ``None`` rather than empty strings when nothing
    printable was written.
    """

    state: ResponseState
    data: dict[str, Any] = field(default_factory=dict)
    stdout: str | None = None
    stderr: str | None = None

    @property
    def has_stdout(self) -> bool:
        return self.stdout is not None

    @property
    def has_stderr(self) -> bool:
        return self.stderr is not None
