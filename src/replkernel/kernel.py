"""Kernel runtime: connection state, request loop and assembly."""

from __future__ import annotations

import queue
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field

from loguru import logger

from replkernel.capture import OutputCapture
from replkernel.channels import BROADCAST_CHANNEL, REPLY_CHANNEL, SignalChannel
from replkernel.commands import CommandRegistry
from replkernel.config import SOCKET_NAMES, KernelSettings, load_connection_file
from replkernel.counter import ExecutionCounter
from replkernel.dispatcher import MessageDispatcher
from replkernel.errors import CaptureError, MalformedMessageError
from replkernel.evaluator import Evaluator, PythonEvaluator
from replkernel.message import Message
from replkernel.pipeline import ExecutionPipeline

QUEUE_POLL_SECONDS = 0.2


@dataclass
class KernelConnection:
    """Per-connection state shared by all request handlers."""

    reply: SignalChannel = field(default_factory=lambda: SignalChannel(REPLY_CHANNEL))
    broadcast: SignalChannel = field(default_factory=lambda: SignalChannel(BROADCAST_CHANNEL))
    ports: Mapping[str, int] = field(default_factory=lambda: {f"{name}_port": 0 for name in SOCKET_NAMES})
    counter: ExecutionCounter = field(default_factory=ExecutionCounter)


class KernelLoop:
    """Process inbound messages one at a time on a worker thread."""

    def __init__(self, dispatcher: MessageDispatcher) -> None:
        self._dispatcher = dispatcher
        self._queue: queue.Queue[Message] = queue.Queue()
        self._stop_event = threading.Event()
        self._worker = threading.Thread(target=self._run, name="replkernel-shell", daemon=True)
        self.fatal_error: BaseException | None = None

    def start(self) -> None:
        if not self._worker.is_alive():
            self._worker.start()

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        self._worker.join(timeout)

    @property
    def running(self) -> bool:
        return self._worker.is_alive() and not self._stop_event.is_set()

    def submit(self, message: Message) -> None:
        self._queue.put(message)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                message = self._queue.get(timeout=QUEUE_POLL_SECONDS)
            except queue.Empty:
                continue
            try:
                self._dispatcher.dispatch(message)
            except (MalformedMessageError, CaptureError) as exc:
                logger.exception("kernel.fatal")
                self.fatal_error = exc
                self._stop_event.set()
            except Exception:
                logger.exception("kernel.dispatch.error")
            finally:
                self._queue.task_done()


class Kernel:
    """Assemble the collaborators for one connection."""

    def __init__(
        self,
        settings: KernelSettings | None = None,
        *,
        evaluator: Evaluator | None = None,
        connection: KernelConnection | None = None,
        commands: CommandRegistry | None = None,
    ) -> None:
        self.settings = settings or KernelSettings()
        if connection is None:
            connection = KernelConnection(counter=ExecutionCounter(self.settings.first_execution_count))
            if self.settings.connection_file is not None:
                connection.ports = load_connection_file(self.settings.connection_file).ports()
        self.connection = connection
        self.evaluator = evaluator if evaluator is not None else PythonEvaluator()
        self.commands = commands or CommandRegistry()
        self.commands.register("info", "Show the kernel language and execution count", self._info_command)
        self.capture = OutputCapture(
            capture_stdout=self.settings.capture_stdout,
            capture_stderr=self.settings.capture_stderr,
            encoding=self.settings.output_encoding,
        )
        self.pipeline = ExecutionPipeline(
            reply=connection.reply,
            broadcast=connection.broadcast,
            counter=connection.counter,
            evaluator=self.evaluator,
            commands=self.commands,
            capture=self.capture,
        )
        self.loop: KernelLoop | None = None
        self.dispatcher = MessageDispatcher(
            settings=self.settings,
            reply=connection.reply,
            pipeline=self.pipeline,
            counter=connection.counter,
            evaluator=self.evaluator,
            commands=self.commands,
            ports=connection.ports,
            on_shutdown=self._on_shutdown,
        )

    def handle(self, message: Message) -> None:
        """Dispatch one message synchronously on the calling thread."""
        self.dispatcher.dispatch(message)

    def start(self) -> KernelLoop:
        if self.loop is None:
            self.loop = KernelLoop(self.dispatcher)
        self.loop.start()
        return self.loop

    def _on_shutdown(self) -> None:
        if self.loop is not None:
            self.loop.stop()

    def _info_command(self, _args: list[str]) -> str:
        return (
            f"{self.settings.language} {self.settings.language_version}, "
            f"next execution count {self.connection.counter.current}"
        )
