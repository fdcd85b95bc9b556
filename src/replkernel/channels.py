"""In-process message channels backed by blinker signals."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, Protocol

from blinker import Signal
from loguru import logger

from replkernel.message import Message

MessageHandler = Callable[[Message], None]

REPLY_CHANNEL = "shell"
BROADCAST_CHANNEL = "iopub"


class Channel(Protocol):
    """Anything a message can be sent on."""

    name: str

    def send(self, message: Message) -> None: ...


class SignalChannel:
    """Synchronous fan-out channel; transports attach as subscribers."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._signal = Signal(f"replkernel.{name}")

    def send(self, message: Message) -> None:
        logger.trace("{}.send type={}", self.name, message.header.get("msg_type"))
        self._signal.send(self, message=message)

    def subscribe(self, handler: MessageHandler) -> Callable[[], None]:
        def _receiver(sender: Any, *, message: Message) -> None:
            handler(message)

        self._signal.connect(_receiver, weak=False)
        return lambda: self._signal.disconnect(_receiver)


class Transcript:
    """Record messages from several channels in the order they were sent."""

    def __init__(self, channels: Iterable[SignalChannel]) -> None:
        self.entries: list[tuple[str, Message]] = []
        self._unsubscribers = [self._attach(channel) for channel in channels]

    def _attach(self, channel: SignalChannel) -> Callable[[], None]:
        return channel.subscribe(lambda message: self.entries.append((channel.name, message)))

    def messages(self, channel: str | None = None) -> list[Message]:
        return [message for name, message in self.entries if channel is None or name == channel]

    def types(self, channel: str | None = None) -> list[str]:
        return [message.msg_type for message in self.messages(channel)]

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
