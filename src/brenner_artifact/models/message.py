"""
Thread message as returned by the mailbox transport.

Messages are read-only. Every algorithm orders them by ``(created_at, id)``;
the id only breaks timestamp ties.
"""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from brenner_artifact.models.common import UtcDatetime


class Message(BaseModel):
    """A single thread message."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    id: int = Field(..., description="Transport-assigned message id")
    subject: str = Field(default="", description="Subject line carrying the marker convention")
    body: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("body", "body_md"),
        description="Markdown body",
    )
    sender: Optional[str] = Field(default=None, alias="from", description="Sending agent name")
    created_at: UtcDatetime = Field(
        ...,
        validation_alias=AliasChoices("created_at", "created_ts"),
        description="Creation timestamp",
    )

    # Mailbox record fields
    thread_id: Optional[str] = None
    to: list[str] = Field(default_factory=list)
    cc: list[str] = Field(default_factory=list)
    ack_required: bool = False
    reply_to: Optional[int] = Field(default=None, description="Id of the message being answered")

    @property
    def sort_key(self) -> tuple:
        return (self.created_at, self.id)

    @property
    def recipients(self) -> list[str]:
        """``to`` followed by ``cc``, first occurrence wins."""
        seen: list[str] = []
        for name in [*self.to, *self.cc]:
            if name not in seen:
                seen.append(name)
        return seen


def sort_messages(messages: list[Message]) -> list[Message]:
    return sorted(messages, key=lambda m: m.sort_key)
