"""Configuration management for replkernel."""

from __future__ import annotations

import json
import platform
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from replkernel.errors import ConfigurationError
from replkernel.logging_utils import configure_logging
from replkernel.message import PROTOCOL_VERSION

SOCKET_NAMES = ("hb", "shell", "control", "stdin", "iopub")


class KernelSettings(BaseSettings):
    """Kernel settings."""

    # Protocol / language identity
    protocol_version: str = Field(default=PROTOCOL_VERSION, description="Messaging protocol version")
    implementation: str = Field(default="replkernel", description="Kernel implementation name")
    language: str = Field(default="Python", description="Language identity reported to clients")
    language_version: str = Field(default_factory=platform.python_version, description="Language version")
    language_name: str = Field(default="python", description="language_info name")
    file_extension: str = Field(default=".py", description="language_info file extension")
    mimetype: str = Field(default="text/x-python", description="language_info mimetype")

    # Execution
    capture_stdout: bool = Field(default=True, description="Send captured stdout back as stream messages")
    capture_stderr: bool = Field(default=False, description="Send captured stderr back as stream messages")
    output_encoding: str = Field(default="utf-8", description="Encoding used to decode captured output")
    first_execution_count: int = Field(default=1, description="First execution counter value")

    # Connection
    connection_file: Optional[Path] = Field(None, description="Jupyter connection file")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")

    model_config = SettingsConfigDict(
        env_prefix="REPLKERNEL_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class ConnectionConfig(BaseModel):
    """Contents of a Jupyter connection file."""

    transport: str = "tcp"
    ip: str = "127.0.0.1"
    hb_port: int = 0
    shell_port: int = 0
    control_port: int = 0
    stdin_port: int = 0
    iopub_port: int = 0
    key: str = ""
    signature_scheme: str = "hmac-sha256"
    kernel_name: str = ""

    def ports(self) -> dict[str, int]:
        return {f"{name}_port": getattr(self, f"{name}_port") for name in SOCKET_NAMES}


def load_connection_file(path: Path) -> ConnectionConfig:
    """Read and validate a connection file."""
    try:
        with open(path, encoding="utf-8") as file:
            data = json.load(file)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"cannot read connection file {path}: {exc}") from exc
    try:
        return ConnectionConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid connection file {path}: {exc}") from exc


def get_settings(**overrides: object) -> KernelSettings:
    """Get kernel settings.

    Args:
        overrides: Explicit values taking precedence over environment variables

    Returns:
        KernelSettings instance
    """
    settings = KernelSettings(**overrides)

    configure_logging(level=settings.log_level)

    return settings
