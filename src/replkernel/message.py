"""Protocol message envelopes and reply construction."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from replkernel.errors import MalformedMessageError

PROTOCOL_VERSION = "5.3"
DEFAULT_USERNAME = "kernel"


class MessageHeader(BaseModel):
    """Validated view of an inbound header."""

    model_config = ConfigDict(extra="allow")

    msg_type: str
    msg_id: str = ""
    session: str = ""
    username: str = DEFAULT_USERNAME
    date: str | None = None
    version: str | None = None


def iso_now() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(frozen=True)
class Message:
    """One protocol message: header, optional parent header, content, metadata."""

    header: dict[str, Any]
    content: dict[str, Any] = field(default_factory=dict)
    parent_header: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    identities: tuple[bytes, ...] = ()

    @property
    def msg_type(self) -> str:
        msg_type = self.header.get("msg_type")
        if not isinstance(msg_type, str) or not msg_type:
            raise MalformedMessageError("message header has no msg_type")
        return msg_type

    @property
    def session(self) -> str:
        return str(self.header.get("session", ""))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Message:
        """Build a message from a parsed envelope mapping, validating its header."""

        raw_header = data.get("header")
        if not isinstance(raw_header, Mapping):
            raise MalformedMessageError("message has no header")
        try:
            MessageHeader.model_validate(dict(raw_header))
        except ValidationError as exc:
            raise MalformedMessageError(f"invalid message header: {exc}") from exc
        parent = data.get("parent_header")
        return cls(
            header=dict(raw_header),
            content=dict(data.get("content") or {}),
            parent_header=dict(parent) if parent else None,
            metadata=dict(data.get("metadata") or {}),
            identities=tuple(data.get("identities") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": dict(self.header),
            "parent_header": dict(self.parent_header or {}),
            "metadata": dict(self.metadata),
            "content": dict(self.content),
        }


def make_header(msg_type: str, incoming: Message | None = None, *, session: str | None = None) -> dict[str, Any]:
    """Create a fresh header, inheriting username and session from ``incoming``."""

    incoming_header = incoming.header if incoming is not None else {}
    return {
        "msg_id": uuid.uuid4().hex,
        "msg_type": msg_type,
        "date": iso_now(),
        "version": PROTOCOL_VERSION,
        "username": incoming_header.get("username") or DEFAULT_USERNAME,
        "session": incoming_header.get("session") or session or uuid.uuid4().hex,
    }


def make_reply(
    incoming: Message,
    msg_type: str,
    *,
    content: Mapping[str, Any] | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> Message:
    """Build a message correlated to ``incoming`` through its parent header."""

    return Message(
        header=make_header(msg_type, incoming),
        parent_header=dict(incoming.header),
        content=dict(content or {}),
        metadata=dict(metadata or {}),
        identities=incoming.identities,
    )
