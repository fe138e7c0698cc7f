"""Authenticated subject for store calls."""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field

from schooltrack.config import TrackerConfig

#: Default access token time-to-live in seconds (1 hour), the usual JWT
#: lifetime of the hosted auth service.
DEFAULT_TOKEN_TTL: float = 3600.0


class Session(BaseModel):
    """Signed-in subject whose samples the sampler persists.

    Parameters
    ----------
    user_id : str
        The authenticated user's ID (``user_id`` column of every sample).
    access_token : str
        Bearer token sent as ``Authorization`` on REST and realtime calls.
    created_at : float
        Monotonic timestamp (``time.monotonic()``) when the session
        was created.  Defaults to *now* if not provided.
    ttl : float
        Time-to-live in seconds.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )

    user_id: str = Field(min_length=1)
    access_token: str
    created_at: float = Field(default_factory=time.monotonic)
    ttl: float = DEFAULT_TOKEN_TTL

    @classmethod
    def from_config(cls, config: TrackerConfig) -> Session | None:
        """Build a session from configured credentials, if a subject is set."""
        if not config.user_id:
            return None
        return cls(user_id=config.user_id, access_token=config.access_token or config.api_key)

    @property
    def is_expired(self) -> bool:
        """Whether the token has exceeded its TTL."""
        return (time.monotonic() - self.created_at) >= self.ttl

    @property
    def age(self) -> float:
        """Seconds since the session was created."""
        return time.monotonic() - self.created_at
