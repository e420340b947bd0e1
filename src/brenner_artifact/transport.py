from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, Sequence

from brenner_artifact.models.message import Message


@dataclass(frozen=True)
class SentMessage:
    message_id: int
    thread_id: str
    subject: str


class MessageTransport(Protocol):
    def read_thread(self, thread_id: str) -> list[Message]: ...

    def send_message(
        self,
        *,
        subject: str,
        body: str,
        thread_id: str,
        recipients: Sequence[str],
        ack_required: bool = False,
    ) -> SentMessage: ...


def load_messages(path: Path) -> list[Message]:
    """Read messages from a JSON file: either a list, or an object with a ``messages`` list."""
    data: Any = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("messages", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of messages")
    return [Message.model_validate(item) for item in data]


@dataclass
class InMemoryTransport:
    """Transport over a local list of messages, for offline compiles and tests."""

    messages: list[Message] = field(default_factory=list)
    sender: str = "compiler"

    def read_thread(self, thread_id: str) -> list[Message]:
        return [m for m in self.messages if m.thread_id == thread_id]

    def send_message(
        self,
        *,
        subject: str,
        body: str,
        thread_id: str,
        recipients: Sequence[str],
        ack_required: bool = False,
    ) -> SentMessage:
        next_id = max((m.id for m in self.messages), default=0) + 1
        self.messages.append(
            Message(
                id=next_id,
                subject=subject,
                body=body,
                sender=self.sender,
                created_at=datetime.now(timezone.utc),
                thread_id=thread_id,
                to=list(recipients),
                ack_required=ack_required,
            )
        )
        return SentMessage(message_id=next_id, thread_id=thread_id, subject=subject)
