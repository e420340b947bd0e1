"""Shared field types."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator


def as_utc(value: datetime) -> datetime:
    """Normalise to UTC; naive timestamps are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_z(value: datetime) -> str:
    """Render a timestamp as ISO-8601 with a trailing Z."""
    text = as_utc(value).isoformat()
    return text.replace("+00:00", "Z")


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
