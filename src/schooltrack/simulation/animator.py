"""Route animation for simulated buses.

Each bus is a small state machine, ``{index, direction}``.  :func:`plan_step`
is pure: it takes the current state and returns the next one together with
the marker target and how long to wait before stepping again.
:class:`RouteAnimator` drives one chain of single-shot timers per bus
through a :class:`~schooltrack._scheduling.TaskRegistry`.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from schooltrack._scheduling import TaskRegistry
from schooltrack.config import TrackerConfig
from schooltrack.map.renderer import MapRenderer
from schooltrack.models._base import LatLng
from schooltrack.models.simulation import AnimationState, Direction, DwellPolicy, SimulatedVehicle
from schooltrack.simulation.geo import haversine_distance, kmh_to_ms, travel_time_ms

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedStep:
    state: AnimationState
    target: LatLng
    delay: float
    """Seconds until the following step."""


def _waypoint_at(waypoints: Sequence[LatLng], state: AnimationState) -> LatLng:
    if state.direction is Direction.BACKWARD:
        return waypoints[len(waypoints) - 1 - state.index]
    return waypoints[state.index]


def plan_step(
    waypoints: Sequence[LatLng],
    state: AnimationState,
    policy: DwellPolicy = DwellPolicy.REVERSE,
    *,
    speed_m_s: float,
    dwell: float = 30.0,
) -> PlannedStep:
    """Advance *state* by one waypoint.

    ``WRAP`` moves to ``(index + 1) mod n``.  ``REVERSE`` does the same
    until the last waypoint, where it resets to index 0 with the direction
    flipped and waits *dwell* seconds.  A backward bus walks the waypoints
    in reverse order, so index 0 backward is the last forward waypoint and
    the bus turns around in place.
    """
    count = len(waypoints)
    if count < 2:
        raise ValueError("a route needs at least two waypoints")
    if not 0 <= state.index < count:
        raise ValueError(f"index {state.index} outside [0, {count})")

    here = _waypoint_at(waypoints, state)
    if policy is DwellPolicy.REVERSE and state.index == count - 1:
        following = AnimationState(index=0, direction=state.direction.flipped())
        return PlannedStep(state=following, target=_waypoint_at(waypoints, following), delay=dwell)

    following = AnimationState(index=(state.index + 1) % count, direction=state.direction)
    target = _waypoint_at(waypoints, following)
    delay = travel_time_ms(haversine_distance(here, target), speed_m_s) / 1000
    return PlannedStep(state=following, target=target, delay=delay)


class RouteAnimator:
    """Moves simulated-bus markers along their routes.

    Parameters
    ----------
    renderer
        Map renderer holding the vehicle markers.
    vehicles
        Buses to animate, each at its starting state.
    registry
        Owner of the per-vehicle timers.
    policy
        End-of-route behaviour.
    speed_kmh
        Constant speed of every bus.
    dwell
        Pause in seconds at the end of a route (``REVERSE`` only).
    stagger
        Bus *k* takes its first step after ``k * stagger`` seconds.
    """

    def __init__(
        self,
        renderer: MapRenderer,
        vehicles: Iterable[SimulatedVehicle],
        *,
        registry: TaskRegistry | None = None,
        policy: DwellPolicy = DwellPolicy.REVERSE,
        speed_kmh: float = 40.0,
        dwell: float = 30.0,
        stagger: float = 5.0,
    ) -> None:
        self._renderer = renderer
        self._vehicles: dict[str, SimulatedVehicle] = {v.id: v for v in vehicles}
        self._registry = registry or TaskRegistry(name="animator")
        self._policy = DwellPolicy(policy)
        self._speed_m_s = kmh_to_ms(speed_kmh)
        self._dwell = dwell
        self._stagger = stagger
        self._running = False

    @classmethod
    def from_config(
        cls,
        renderer: MapRenderer,
        vehicles: Iterable[SimulatedVehicle],
        config: TrackerConfig,
        *,
        registry: TaskRegistry | None = None,
    ) -> RouteAnimator:
        return cls(
            renderer,
            vehicles,
            registry=registry,
            policy=DwellPolicy(config.dwell_policy),
            speed_kmh=config.simulated_speed_kmh,
            dwell=config.dwell_seconds,
            stagger=config.stagger_seconds,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def policy(self) -> DwellPolicy:
        return self._policy

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def vehicles(self) -> list[SimulatedVehicle]:
        return list(self._vehicles.values())

    def states(self) -> dict[str, AnimationState]:
        return {vehicle_id: vehicle.state for vehicle_id, vehicle in self._vehicles.items()}

    @staticmethod
    def _key(vehicle_id: str) -> str:
        return f"vehicle:{vehicle_id}"

    def start(self) -> None:
        """Place every bus on the map and schedule its first step."""
        if self._running:
            return
        self._running = True
        for k, vehicle in enumerate(self._vehicles.values()):
            self._renderer.add_vehicle_marker(vehicle)
            self._registry.schedule(self._key(vehicle.id), k * self._stagger, functools.partial(self._step, vehicle.id))
        _logger.debug("Animating %d vehicles policy=%s", len(self._vehicles), self._policy)

    def _step(self, vehicle_id: str) -> None:
        if not self._running or not self._renderer.has_marker(vehicle_id):
            return
        vehicle = self._vehicles[vehicle_id]
        planned = plan_step(
            vehicle.waypoints,
            vehicle.state,
            self._policy,
            speed_m_s=self._speed_m_s,
            dwell=self._dwell,
        )
        self._vehicles[vehicle_id] = vehicle.with_state(planned.state)
        self._renderer.move_vehicle_marker(vehicle_id, planned.target)
        self._registry.schedule(self._key(vehicle_id), planned.delay, functools.partial(self._step, vehicle_id))

    def stop(self) -> None:
        """Cancel every pending step; markers stay where they are."""
        self._running = False
        for vehicle_id in self._vehicles:
            self._registry.cancel(self._key(vehicle_id))
