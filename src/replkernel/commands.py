"""Administrative ``:command`` handling, a peer branch to evaluation."""

from __future__ import annotations

import shlex
from collections.abc import Callable
from dataclasses import dataclass

from replkernel.classifier import join_lines
from replkernel.types import NormalizedResponse, ResponseState, text_result

COMMAND_PREFIX = ":"

CommandHandler = Callable[[list[str]], str]


@dataclass(frozen=True)
class CommandDescriptor:
    """One registered meta-command."""

    name: str
    description: str
    handler: CommandHandler


def is_command(code: str) -> bool:
    return code.strip().startswith(COMMAND_PREFIX)


def parse_command(code: str) -> tuple[str, list[str]]:
    """Parse ':name args...' into name and argument tokens."""

    body = code.strip()[len(COMMAND_PREFIX) :].strip()
    try:
        words = shlex.split(body)
    except ValueError:
        words = body.split()
    if not words:
        return "", []
    return words[0], words[1:]


class CommandRegistry:
    """Registry of meta-commands; produces the same response shape as evaluation."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandDescriptor] = {}
        self.register("help", "Show the available commands", self._help)

    def register(self, name: str, description: str, handler: CommandHandler) -> None:
        self._commands[name] = CommandDescriptor(name=name, description=description, handler=handler)

    def names(self) -> list[str]:
        return sorted(self._commands)

    def is_command(self, code: str) -> bool:
        return is_command(code)

    def run(self, code: str) -> NormalizedResponse:
        name, args = parse_command(code)
        descriptor = self._commands.get(name)
        if descriptor is None:
            return NormalizedResponse(
                state=ResponseState.ERROR,
                data=text_result("Error!"),
                stderr=f"Unknown command: {COMMAND_PREFIX}{name}",
            )
        try:
            output = descriptor.handler(args)
        except Exception as exc:
            return NormalizedResponse(
                state=ResponseState.ERROR,
                data=text_result("Error!"),
                stderr=join_lines(f"Command {COMMAND_PREFIX}{name} failed: {exc}"),
            )
        return NormalizedResponse(state=ResponseState.OK, data=text_result(output))

    def _help(self, _args: list[str]) -> str:
        lines = ["Commands:"]
        lines.extend(
            f"  {COMMAND_PREFIX}{descriptor.name} - {descriptor.description}"
            for descriptor in sorted(self._commands.values(), key=lambda item: item.name)
        )
        return "\n".join(lines)
