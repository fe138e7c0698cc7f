"""Hand-authored routes of the simulated school buses (San Juan del Río)."""

from __future__ import annotations

from schooltrack.models.entity import RouteLine
from schooltrack.models.simulation import SimulatedVehicle

# Closed loops: the last waypoint is one block away from the first.
RUTA_CENTRO = (
    (20.3880, -99.9960),
    (20.3885, -99.9950),
    (20.3892, -99.9932),
    (20.3898, -99.9911),
    (20.3890, -99.9890),
    (20.3878, -99.9874),
    (20.3866, -99.9892),
    (20.3862, -99.9918),
    (20.3868, -99.9945),
)

RUTA_NORTE = (
    (20.3905, -99.9835),
    (20.3928, -99.9828),
    (20.3951, -99.9817),
    (20.3974, -99.9801),
    (20.3990, -99.9779),
    (20.3972, -99.9760),
    (20.3946, -99.9772),
    (20.3921, -99.9793),
    (20.3908, -99.9814),
)

RUTA_SUR = (
    (20.3860, -99.9830),
    (20.3838, -99.9842),
    (20.3815, -99.9851),
    (20.3792, -99.9846),
    (20.3776, -99.9825),
    (20.3784, -99.9801),
    (20.3806, -99.9793),
    (20.3829, -99.9800),
    (20.3849, -99.9814),
)

SIMULATED_VEHICLES: tuple[SimulatedVehicle, ...] = (
    SimulatedVehicle(id="BUS-001", display_name="Ruta Centro", waypoints=RUTA_CENTRO, color="#3B82F6"),
    SimulatedVehicle(id="BUS-002", display_name="Ruta Norte", waypoints=RUTA_NORTE, color="#10B981"),
    SimulatedVehicle(id="BUS-003", display_name="Ruta Sur", waypoints=RUTA_SUR, color="#F59E0B"),
)


def simulated_vehicles() -> list[SimulatedVehicle]:
    """Fresh vehicles, each at the first waypoint of its route."""
    return list(SIMULATED_VEHICLES)


def route_lines(vehicles: list[SimulatedVehicle] | None = None) -> list[RouteLine]:
    """One closed polyline per vehicle route, in the vehicle's color."""
    lines = []
    for vehicle in vehicles if vehicles is not None else SIMULATED_VEHICLES:
        points = (*vehicle.waypoints, vehicle.waypoints[0])
        lines.append(
            RouteLine(id=vehicle.id, name=f"{vehicle.id} - {vehicle.display_name}", points=points, color=vehicle.color)
        )
    return lines
