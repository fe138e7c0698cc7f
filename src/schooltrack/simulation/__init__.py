"""Simulated buses: geodesy, the route table and the animator."""

from schooltrack.simulation.animator import PlannedStep, RouteAnimator, plan_step
from schooltrack.simulation.geo import haversine_distance, kmh_to_ms, travel_time_ms
from schooltrack.simulation.routes import SIMULATED_VEHICLES, route_lines, simulated_vehicles

__all__ = [
    "SIMULATED_VEHICLES",
    "PlannedStep",
    "RouteAnimator",
    "haversine_distance",
    "kmh_to_ms",
    "plan_step",
    "route_lines",
    "simulated_vehicles",
    "travel_time_ms",
]
