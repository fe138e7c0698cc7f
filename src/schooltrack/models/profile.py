"""User profile model."""

from __future__ import annotations

from schooltrack._constants import UNKNOWN_USER_NAME
from schooltrack.models._base import TrackBaseModel


class Profile(TrackBaseModel):
    """Row of the profiles table, used only for display names and role filtering."""

    id: str
    full_name: str | None = None
    email: str | None = None
    role: str | None = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or UNKNOWN_USER_NAME

    @property
    def is_admin(self) -> bool:
        return (self.role or "").strip().lower() == "admin"
