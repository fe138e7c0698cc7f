"""Base model and timestamp helpers for store rows.

Every row model inherits from :class:`TrackBaseModel` which provides:

* frozen instances (samples are append-only and never mutated);
* population by field name *or* by the store's column alias;
* a ``model_validator(mode="before")`` that drops ``None`` and empty
  strings so the field default is used.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator

LatLng = tuple[float, float]
"""A ``(latitude, longitude)`` pair in degrees."""

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce ISO-8601 strings and epoch numbers (s or ms) to an aware UTC datetime.

    Naive datetimes are assumed to be UTC.  Returns ``None`` for ``None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        # fromisoformat() accepts "Z" only from 3.11 on; normalise anyway.
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    raise ValueError(f"unsupported timestamp value: {value!r}")


Timestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces store timestamps to aware UTC datetimes."""


class TrackBaseModel(BaseModel):
    """Base for rows read from (or written to) the store."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_empty_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {key: value for key, value in values.items() if value is not None and value != ""}
