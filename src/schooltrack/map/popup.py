"""Popup markup for map markers."""

from __future__ import annotations

import html
from datetime import datetime
from zoneinfo import ZoneInfo

from schooltrack.models.entity import TrackedEntity
from schooltrack.models.simulation import SimulatedVehicle

DEFAULT_TIME_ZONE = "America/Mexico_City"


def format_capture_time(value: datetime, time_zone: str = DEFAULT_TIME_ZONE) -> str:
    """``dd/mm/YYYY, HH:MM:SS`` in *time_zone*."""
    return value.astimezone(ZoneInfo(time_zone)).strftime("%d/%m/%Y, %H:%M:%S")


def entity_popup_html(entity: TrackedEntity, time_zone: str = DEFAULT_TIME_ZONE) -> str:
    """Display name, capture time and (when known) accuracy of an entity.

    The display name is escaped; it comes from user-editable profile data.
    """
    sample = entity.latest
    lines = [
        f"<strong>{html.escape(entity.display_name)}</strong>",
        html.escape(format_capture_time(sample.captured_at, time_zone)),
    ]
    if sample.accuracy is not None:
        lines.append(f"Precisión: {sample.accuracy:.0f}m")
    return "<br>".join(lines)


def vehicle_popup_html(vehicle: SimulatedVehicle) -> str:
    return f"<strong>{html.escape(vehicle.id)}</strong><br>{html.escape(vehicle.display_name)}"
