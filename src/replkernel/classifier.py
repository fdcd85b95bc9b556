"""Map evaluation outcomes to normalized responses."""

from __future__ import annotations

from typing import Any

from replkernel.outcomes import (
    CompileFailure,
    HistoryMismatch,
    Incomplete,
    RuntimeFailure,
    UnitValue,
    Value,
)
from replkernel.types import NormalizedResponse, ResponseState, text_result

ERROR_TEXT = "Error!"
OK_TEXT = "OK"


def join_lines(*parts: str | None) -> str | None:
    """Join the non-blank parts with newlines; ``None`` when nothing is left."""

    kept = [part for part in parts if part and not part.isspace()]
    if not kept:
        return None
    return "\n".join(kept)


def _error(stdout: str | None, stderr: str | None, message: str) -> NormalizedResponse:
    return NormalizedResponse(
        state=ResponseState.ERROR,
        data=text_result(ERROR_TEXT),
        stdout=stdout,
        stderr=join_lines(stderr, message),
    )


def classify(outcome: Any, stdout: str | None, stderr: str | None) -> NormalizedResponse:
    """Turn one evaluation outcome plus captured text into a response.

    Pure: the same inputs always produce an equal response. Anything that is
    not a known outcome, including an exception object that escaped the
    engine, becomes an error response rather than raising.
    """

    match outcome:
        case Value(value=value):
            try:
                rendered = str(value)
            except Exception as exc:
                return _error(stdout, stderr, f"Unable to convert result to a string: {exc}")
            return NormalizedResponse(ResponseState.OK, text_result(rendered), stdout, join_lines(stderr))
        case UnitValue():
            return NormalizedResponse(ResponseState.OK_SILENT, text_result(OK_TEXT), stdout, join_lines(stderr))
        case RuntimeFailure(message=message) | CompileFailure(message=message):
            return _error(stdout, stderr, message)
        case Incomplete():
            return _error(stdout, stderr, "Incomplete code")
        case HistoryMismatch():
            return _error(stdout, stderr, "History mismatch")
        case _:
            return _error(stdout, stderr, f"Unexpected result from evaluation: {outcome!r}")
