"""Simulated vehicle models."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from schooltrack.models._base import LatLng


class Direction(StrEnum):
    FORWARD = "forward"
    BACKWARD = "backward"

    def flipped(self) -> Direction:
        return Direction.BACKWARD if self is Direction.FORWARD else Direction.FORWARD


class DwellPolicy(StrEnum):
    """What a simulated bus does after its last waypoint."""

    WRAP = "wrap"
    """Continue to waypoint 0 without pausing."""

    REVERSE = "reverse"
    """Pause for the dwell time, then travel the route backwards."""


class AnimationState(BaseModel):
    """Position of a simulated bus along its route."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(default=0, ge=0)
    direction: Direction = Direction.FORWARD


class SimulatedVehicle(BaseModel):
    """A synthetic bus looping over hand-authored waypoints."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    waypoints: tuple[LatLng, ...]
    color: str
    state: AnimationState = Field(default_factory=AnimationState)

    @field_validator("waypoints")
    @classmethod
    def _needs_two_waypoints(cls, value: tuple[LatLng, ...]) -> tuple[LatLng, ...]:
        if len(value) < 2:
            raise ValueError("a simulated route needs at least two waypoints")
        return value

    @model_validator(mode="after")
    def _index_in_range(self) -> SimulatedVehicle:
        if not 0 <= self.state.index < len(self.waypoints):
            raise ValueError(f"state index {self.state.index} outside [0, {len(self.waypoints)})")
        return self

    def waypoint(self, state: AnimationState | None = None) -> LatLng:
        """Coordinate of *state* (default: current state), honouring direction."""
        current = state or self.state
        if current.direction is Direction.BACKWARD:
            return self.waypoints[len(self.waypoints) - 1 - current.index]
        return self.waypoints[current.index]

    def with_state(self, state: AnimationState) -> SimulatedVehicle:
        return self.model_copy(update={"state": state})
