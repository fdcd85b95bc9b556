"""Route inbound shell messages to their handlers."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from loguru import logger

from replkernel.channels import Channel
from replkernel.commands import CommandRegistry
from replkernel.config import KernelSettings
from replkernel.counter import ExecutionCounter
from replkernel.evaluator import Evaluator
from replkernel.message import Message, make_reply
from replkernel.outcomes import CheckError, CheckIncomplete, Complete
from replkernel.pipeline import ExecutionPipeline

NO_EVALUATOR_STATUS = "error: no evaluator"

Handler = Callable[[Message], None]


class MessageDispatcher:
    """Dispatch by ``header.msg_type``; unknown types get an unsupported reply."""

    def __init__(
        self,
        *,
        settings: KernelSettings,
        reply: Channel,
        pipeline: ExecutionPipeline,
        counter: ExecutionCounter,
        evaluator: Evaluator | None,
        commands: CommandRegistry,
        ports: Mapping[str, int],
        on_shutdown: Callable[[], None] | None = None,
    ) -> None:
        self._settings = settings
        self._reply = reply
        self._pipeline = pipeline
        self._counter = counter
        self._evaluator = evaluator
        self._commands = commands
        self._ports = dict(ports)
        self._on_shutdown = on_shutdown
        self._handlers: dict[str, Handler] = {
            "kernel_info_request": self._handle_kernel_info,
            "history_request": self._handle_history,
            "shutdown_request": self._handle_shutdown,
            "connect_request": self._handle_connect,
            "execute_request": self._handle_execute,
            "is_complete_request": self._handle_is_complete,
        }

    def dispatch(self, message: Message) -> None:
        msg_type = message.msg_type
        logger.debug("dispatch type={}", msg_type)
        handler = self._handlers.get(msg_type, self._handle_unsupported)
        handler(message)

    def kernel_info(self) -> dict[str, Any]:
        settings = self._settings
        return {
            "status": "ok",
            "protocol_version": settings.protocol_version,
            "implementation": settings.implementation,
            "implementation_version": _package_version(),
            "language": settings.language,
            "language_version": settings.language_version,
            "language_info": {
                "name": settings.language_name,
                "version": settings.language_version,
                "file_extension": settings.file_extension,
                "mimetype": settings.mimetype,
            },
            "banner": f"{settings.implementation} ({settings.language} {settings.language_version})",
        }

    def completeness(self, code: str) -> str:
        if self._commands.is_command(code):
            return "complete"
        if self._evaluator is None:
            return NO_EVALUATOR_STATUS
        result = self._evaluator.check(code)
        match result:
            case Complete():
                return "complete"
            case CheckIncomplete():
                return "incomplete"
            case CheckError():
                return "invalid"
            case _:
                logger.warning("is_complete.unexpected result={!r}", result)
                return "unknown"

    def _handle_kernel_info(self, message: Message) -> None:
        self._reply.send(make_reply(message, "kernel_info_reply", content=self.kernel_info()))

    def _handle_history(self, message: Message) -> None:
        self._reply.send(make_reply(message, "history_reply", content={"status": "ok", "history": []}))

    def _handle_shutdown(self, message: Message) -> None:
        self._reply.send(make_reply(message, "shutdown_reply", content=message.content))
        logger.info("shutdown.requested restart={}", message.content.get("restart", False))
        if self._on_shutdown is not None:
            self._on_shutdown()

    def _handle_connect(self, message: Message) -> None:
        self._reply.send(make_reply(message, "connect_reply", content=self._ports))

    def _handle_execute(self, message: Message) -> None:
        self._pipeline.execute(message)

    def _handle_is_complete(self, message: Message) -> None:
        code = str(message.content.get("code", ""))
        status = self.completeness(code)
        logger.debug("is_complete status={} next_count={}", status, self._counter.current)
        self._reply.send(make_reply(message, "is_complete_reply", content={"status": status}))

    def _handle_unsupported(self, message: Message) -> None:
        logger.warning("dispatch.unsupported type={}", message.msg_type)
        self._reply.send(make_reply(message, "unsupported_message_reply"))


def _package_version() -> str:
    from replkernel import __version__

    return __version__
