"""Evaluation engine contract and the bundled Python engine."""

from __future__ import annotations

import ast
import codeop
import traceback
from typing import Any, Protocol

from loguru import logger

from replkernel.outcomes import (
    CheckError,
    CheckIncomplete,
    CheckResult,
    Complete,
    CompileFailure,
    EvaluationOutcome,
    HistoryMismatch,
    Incomplete,
    RuntimeFailure,
    UnitValue,
    Value,
)

CELL_FILENAME = "<cell>"


class Evaluator(Protocol):
    """Engine driven by the kernel; must not raise for user-code failures."""

    def check(self, code: str) -> CheckResult: ...

    def evaluate(self, sequence_id: int, code: str) -> EvaluationOutcome: ...


def _is_unfinished(code: str) -> bool:
    try:
        return codeop.compile_command(code, CELL_FILENAME, "exec") is None
    except (SyntaxError, ValueError, OverflowError):
        return False


def _format_exception(exc: BaseException) -> str:
    return "".join(traceback.format_exception_only(type(exc), exc)).strip()


class PythonEvaluator:
    """Run cells in a persistent namespace, REPL style.

    A trailing expression statement is evaluated separately and becomes the
    cell's value; ``None`` counts as no value.
    """

    def __init__(self, namespace: dict[str, Any] | None = None) -> None:
        self.namespace: dict[str, Any] = namespace if namespace is not None else {"__name__": "__main__"}
        self._last_sequence: int | None = None

    def check(self, code: str) -> CheckResult:
        try:
            ast.parse(code, CELL_FILENAME, "exec")
        except SyntaxError as exc:
            if _is_unfinished(code):
                return CheckIncomplete()
            return CheckError(_format_exception(exc))
        except ValueError as exc:
            return CheckError(_format_exception(exc))
        return Complete()

    def evaluate(self, sequence_id: int, code: str) -> EvaluationOutcome:
        if self._last_sequence is not None and sequence_id <= self._last_sequence:
            logger.warning("evaluate.history_mismatch sequence={} last={}", sequence_id, self._last_sequence)
            return HistoryMismatch()

        try:
            tree = ast.parse(code, CELL_FILENAME, "exec")
        except SyntaxError as exc:
            if _is_unfinished(code):
                return Incomplete()
            return CompileFailure(_format_exception(exc))
        except ValueError as exc:
            return CompileFailure(_format_exception(exc))

        self._last_sequence = sequence_id
        body, last = tree.body, None
        if body and isinstance(body[-1], ast.Expr):
            body, last = body[:-1], ast.Expression(body[-1].value)

        try:
            statements = compile(ast.Module(body=body, type_ignores=[]), CELL_FILENAME, "exec")
            expression = compile(last, CELL_FILENAME, "eval") if last is not None else None
        except (SyntaxError, ValueError) as exc:
            return CompileFailure(_format_exception(exc))

        try:
            exec(statements, self.namespace)  # noqa: S102
            result = eval(expression, self.namespace) if expression is not None else None  # noqa: S307
        except (Exception, SystemExit) as exc:
            return RuntimeFailure(_format_exception(exc))

        if result is None:
            return UnitValue()
        self.namespace["_"] = result
        return Value(result)
