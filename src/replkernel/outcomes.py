"""Closed sets of results produced by an evaluation engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeAlias


@dataclass(frozen=True)
class Value:
    """Evaluation produced a displayable value."""

    value: Any


@dataclass(frozen=True)
class UnitValue:
    """Evaluation succeeded without a value worth displaying."""


@dataclass(frozen=True)
class RuntimeFailure:
    """User code raised while running."""

    message: str


@dataclass(frozen=True)
class CompileFailure:
    """User code could not be compiled."""

    message: str


@dataclass(frozen=True)
class Incomplete:
    """User code is an unfinished fragment."""


@dataclass(frozen=True)
class HistoryMismatch:
    """The engine's history disagrees with the requested sequence id."""


EvaluationOutcome: TypeAlias = Value | UnitValue | RuntimeFailure | CompileFailure | Incomplete | HistoryMismatch


@dataclass(frozen=True)
class Complete:
    """Fragment is ready to evaluate."""


@dataclass(frozen=True)
class CheckIncomplete:
    """Fragment needs more input."""


@dataclass(frozen=True)
class CheckError:
    """Fragment can never compile."""

    message: str = ""


CheckResult: TypeAlias = Complete | CheckIncomplete | CheckError
