"""Execute-request lifecycle.

For one ``execute_request`` the broadcast channel sees, in order::

    status(busy), execute_input, stream(stdout)?, stream(stderr)?, execute_result?, status(idle)

and the reply channel sees exactly one ``execute_reply`` after any result
and before the idle status.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from replkernel.capture import OutputCapture
from replkernel.channels import Channel
from replkernel.classifier import classify
from replkernel.commands import CommandRegistry
from replkernel.context import request_scope
from replkernel.counter import ExecutionCounter
from replkernel.evaluator import Evaluator
from replkernel.message import Message, iso_now, make_reply
from replkernel.outcomes import RuntimeFailure
from replkernel.types import NormalizedResponse, ResponseState

NO_EVALUATOR_MESSAGE = "No evaluator available"


class ExecutionPipeline:
    """Drive one execute request from counter allocation to the idle status."""

    def __init__(
        self,
        *,
        reply: Channel,
        broadcast: Channel,
        counter: ExecutionCounter,
        evaluator: Evaluator | None,
        commands: CommandRegistry,
        capture: OutputCapture,
    ) -> None:
        self._reply = reply
        self._broadcast = broadcast
        self._counter = counter
        self._evaluator = evaluator
        self._commands = commands
        self._capture = capture

    def execute(self, request: Message) -> NormalizedResponse:
        with request_scope(request):
            count = self._counter.allocate()
            started = iso_now()
            code = str(request.content.get("code", ""))
            logger.info("execute.request count={}", count)

            self._publish(request, "status", {"execution_state": "busy"})
            self._publish(request, "execute_input", {"execution_count": count, "code": code})

            if self._commands.is_command(code):
                response = self._commands.run(code)
            else:
                response = self._evaluate(count, code)
            logger.debug("execute.response count={} state={}", count, response.state.value)

            if response.has_stdout:
                self._publish(request, "stream", {"name": "stdout", "text": response.stdout})
            if response.has_stderr:
                self._publish(request, "stream", {"name": "stderr", "text": response.stderr})

            if response.state is ResponseState.ERROR:
                logger.info("execute.abort count={}", count)
                self._reply.send(
                    make_reply(request, "execute_reply", content={"status": "abort", "execution_count": count})
                )
            else:
                if response.state is ResponseState.OK:
                    self._publish(
                        request,
                        "execute_result",
                        {"execution_count": count, "data": response.data, "metadata": {}},
                    )
                self._reply.send(
                    make_reply(
                        request,
                        "execute_reply",
                        metadata={
                            "dependencies_met": True,
                            "engine": request.session,
                            "status": "ok",
                            "started": started,
                        },
                        content={
                            "status": "ok",
                            "execution_count": count,
                            "user_variables": {},
                            "payload": [],
                            "user_expressions": {},
                        },
                    )
                )

            self._publish(request, "status", {"execution_state": "idle"})
            return response

    def _evaluate(self, count: int, code: str) -> NormalizedResponse:
        if self._evaluator is None:
            return classify(RuntimeFailure(NO_EVALUATOR_MESSAGE), None, None)

        # Blocks while another pipeline in this process holds the streams.
        session = self._capture.begin()
        try:
            outcome: Any = self._evaluator.evaluate(count, code)
        except Exception as exc:
            logger.exception("execute.evaluator_error count={}", count)
            outcome = exc
        finally:
            session.restore()
        return classify(outcome, session.stdout_text(), session.stderr_text())

    def _publish(self, request: Message, msg_type: str, content: dict[str, Any]) -> None:
        self._broadcast.send(make_reply(request, msg_type, content=content))
