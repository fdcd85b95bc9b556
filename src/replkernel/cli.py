"""replkernel CLI."""

from __future__ import annotations

import json
import uuid
from pathlib import Path

import typer
from rich.console import Console

from replkernel.channels import Transcript
from replkernel.config import get_settings
from replkernel.kernel import Kernel
from replkernel.message import Message, make_header

app = typer.Typer(name="replkernel", help="Interactive computing kernel core", add_completion=False)


def _request(msg_type: str, session: str, content: dict[str, object]) -> Message:
    header = make_header(msg_type, session=session)
    header["username"] = "cli"
    return Message(header=header, content=content)


def _build_kernel(connection_file: Path | None, log_level: str) -> Kernel:
    overrides: dict[str, object] = {"log_level": log_level}
    if connection_file is not None:
        overrides["connection_file"] = connection_file
    return Kernel(get_settings(**overrides))


@app.command()
def info(
    connection_file: Path | None = typer.Option(None, "--connection-file", "-f", help="Jupyter connection file"),  # noqa: B008
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
) -> None:
    """Print the kernel_info reply content."""

    kernel = _build_kernel(connection_file, log_level)
    Console().print_json(data=kernel.dispatcher.kernel_info())


@app.command()
def check(
    code: str = typer.Argument(..., help="Code fragment to check"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
) -> None:
    """Print whether a code fragment is complete."""

    kernel = _build_kernel(None, log_level)
    typer.echo(kernel.dispatcher.completeness(code))


@app.command()
def execute(
    cells: list[str] = typer.Argument(..., help="Cells to execute in order"),  # noqa: B008
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
) -> None:
    """Execute cells and print every emitted protocol message."""

    kernel = _build_kernel(None, log_level)
    session = uuid.uuid4().hex
    transcript = Transcript([kernel.connection.broadcast, kernel.connection.reply])
    try:
        for cell in cells:
            kernel.handle(_request("execute_request", session, {"code": cell, "silent": False}))
    finally:
        transcript.close()

    for channel, message in transcript.entries:
        typer.echo(f"[{channel}] {message.msg_type} {json.dumps(message.content, ensure_ascii=False, default=str)}")


if __name__ == "__main__":
    app()
