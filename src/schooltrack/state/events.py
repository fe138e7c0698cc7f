"""Status events surfaced by the sampler."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class StatusKind(StrEnum):
    STARTED = "started"
    STOPPED = "stopped"
    ERROR = "error"


class TrackingStatus(BaseModel):
    """A human-readable status change for the UI."""

    model_config = ConfigDict(frozen=True)

    kind: StatusKind
    message: str
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
