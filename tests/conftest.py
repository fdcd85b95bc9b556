from __future__ import annotations

import sys
import uuid
from dataclasses import dataclass, field
from typing import Any

import pytest

from replkernel.capture import CapturingStream, OutputCapture
from replkernel.channels import BROADCAST_CHANNEL, REPLY_CHANNEL, SignalChannel, Transcript
from replkernel.commands import CommandRegistry
from replkernel.config import KernelSettings
from replkernel.context import current_request
from replkernel.counter import ExecutionCounter
from replkernel.dispatcher import MessageDispatcher
from replkernel.kernel import Kernel
from replkernel.message import Message
from replkernel.outcomes import CheckResult, Complete, UnitValue
from replkernel.pipeline import ExecutionPipeline


@dataclass
class FakeEvaluator:
    outcomes: dict[str, Any] = field(default_factory=dict)
    writes: dict[str, tuple[str, str]] = field(default_factory=dict)
    checks: dict[str, CheckResult] = field(default_factory=dict)
    calls: list[tuple[int, str]] = field(default_factory=list)
    seen_requests: list[Message | None] = field(default_factory=list)

    def check(self, code: str) -> CheckResult:
        return self.checks.get(code, Complete())

    def evaluate(self, sequence_id: int, code: str) -> Any:
        self.calls.append((sequence_id, code))
        self.seen_requests.append(current_request())
        out, err = self.writes.get(code, ("", ""))
        if out:
            print(out, end="")
        if err:
            sys.stderr.write(err)
        outcome = self.outcomes.get(code, UnitValue())
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def make_request(msg_type: str, content: dict[str, Any] | None = None, *, session: str = "session-1") -> Message:
    return Message(
        header={
            "msg_id": uuid.uuid4().hex,
            "msg_type": msg_type,
            "session": session,
            "username": "tester",
            "version": "5.3",
        },
        content=content or {},
    )


def execute_request(code: str) -> Message:
    return make_request("execute_request", {"code": code, "silent": False})


@dataclass
class Harness:
    kernel: Kernel
    transcript: Transcript

    def execute(self, code: str) -> Message:
        request = execute_request(code)
        self.kernel.handle(request)
        return request

    def types(self, channel: str | None = None) -> list[str]:
        return self.transcript.types(channel)


def build_harness(evaluator: Any, **settings: Any) -> Harness:
    kernel = Kernel(KernelSettings(**settings), evaluator=evaluator)
    transcript = Transcript([kernel.connection.broadcast, kernel.connection.reply])
    return Harness(kernel=kernel, transcript=transcript)


def build_dispatcher(evaluator: Any = None, *, on_shutdown: Any = None) -> tuple[MessageDispatcher, Transcript]:
    reply = SignalChannel(REPLY_CHANNEL)
    broadcast = SignalChannel(BROADCAST_CHANNEL)
    counter = ExecutionCounter()
    commands = CommandRegistry()
    pipeline = ExecutionPipeline(
        reply=reply,
        broadcast=broadcast,
        counter=counter,
        evaluator=evaluator,
        commands=commands,
        capture=OutputCapture(),
    )
    dispatcher = MessageDispatcher(
        settings=KernelSettings(),
        reply=reply,
        pipeline=pipeline,
        counter=counter,
        evaluator=evaluator,
        commands=commands,
        ports={"hb_port": 1, "shell_port": 2, "control_port": 3, "stdin_port": 4, "iopub_port": 5},
        on_shutdown=on_shutdown,
    )
    return dispatcher, Transcript([broadcast, reply])


@pytest.fixture
def fake_evaluator() -> FakeEvaluator:
    return FakeEvaluator()


@pytest.fixture
def harness(fake_evaluator: FakeEvaluator) -> Harness:
    return build_harness(fake_evaluator)


class RefusingSys:
    """Stand-in for ``sys`` that refuses to put back one stream."""

    def __init__(self, real: Any, refused: str) -> None:
        object.__setattr__(self, "_real", real)
        object.__setattr__(self, "_refused", refused)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._real, name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == self._refused and not isinstance(value, CapturingStream):
            raise OSError(f"sys.{name} is read-only")
        setattr(self._real, name, value)
