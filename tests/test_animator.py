from __future__ import annotations

import pytest
from conftest import FakeMapBackend, FakeScheduler

from schooltrack._scheduling import TaskRegistry
from schooltrack.config import TrackerConfig
from schooltrack.map.renderer import MapRenderer
from schooltrack.models.simulation import AnimationState, Direction, DwellPolicy, SimulatedVehicle
from schooltrack.simulation.animator import RouteAnimator, plan_step
from schooltrack.simulation.geo import haversine_distance, kmh_to_ms, travel_time_ms
from schooltrack.simulation.routes import SIMULATED_VEHICLES, route_lines, simulated_vehicles

SPEED = kmh_to_ms(40.0)
SQUARE = ((20.0, -100.0), (20.001, -100.0), (20.001, -99.999), (20.0, -99.999))


def test_route_table() -> None:
    assert [(v.id, v.display_name, v.color) for v in SIMULATED_VEHICLES] == [
        ("BUS-001", "Ruta Centro", "#3B82F6"),
        ("BUS-002", "Ruta Norte", "#10B981"),
        ("BUS-003", "Ruta Sur", "#F59E0B"),
    ]
    lines = route_lines()
    assert all(line.points[0] == line.points[-1] for line in lines)


def test_step_moves_to_next_waypoint_after_travel_time() -> None:
    step = plan_step(SQUARE, AnimationState(index=0), DwellPolicy.WRAP, speed_m_s=SPEED)
    assert step.state == AnimationState(index=1)
    assert step.target == SQUARE[1]
    assert step.delay == pytest.approx(travel_time_ms(haversine_distance(SQUARE[0], SQUARE[1]), SPEED) / 1000)


def test_wrap_policy_returns_to_first_waypoint() -> None:
    step = plan_step(SQUARE, AnimationState(index=3), DwellPolicy.WRAP, speed_m_s=SPEED)
    assert step.state == AnimationState(index=0, direction=Direction.FORWARD)
    assert step.target == SQUARE[0]


def test_reverse_policy_dwells_then_flips_direction() -> None:
    step = plan_step(SQUARE, AnimationState(index=3), DwellPolicy.REVERSE, speed_m_s=SPEED, dwell=30.0)
    assert step.state == AnimationState(index=0, direction=Direction.BACKWARD)
    assert step.delay == 30.0
    # Turning around happens in place.
    assert step.target == SQUARE[3]

    back = plan_step(SQUARE, step.state, DwellPolicy.REVERSE, speed_m_s=SPEED)
    assert back.target == SQUARE[2]


@pytest.mark.parametrize("policy", list(DwellPolicy))
def test_index_never_leaves_route(policy: DwellPolicy) -> None:
    state = AnimationState()
    for _ in range(50):
        step = plan_step(SQUARE, state, policy, speed_m_s=SPEED)
        assert 0 <= step.state.index < len(SQUARE)
        assert step.delay >= 0
        state = step.state


def test_plan_step_rejects_out_of_range_state() -> None:
    with pytest.raises(ValueError):
        plan_step(SQUARE, AnimationState(index=4), speed_m_s=SPEED)


def _animator(backend: FakeMapBackend, registry: TaskRegistry, **kwargs) -> tuple[RouteAnimator, MapRenderer]:
    renderer = MapRenderer(backend, TrackerConfig())
    renderer.initialize()
    return RouteAnimator(renderer, simulated_vehicles(), registry=registry, **kwargs), renderer


@pytest.mark.asyncio
async def test_start_places_markers_and_staggers_first_steps(
    backend: FakeMapBackend,
    scheduler: FakeScheduler,
    registry: TaskRegistry,
) -> None:
    animator, _ = _animator(backend, registry)
    animator.start()

    assert [m.coordinate for m in backend.vehicle_markers] == [v.waypoints[0] for v in SIMULATED_VEHICLES]
    assert sorted(t.when for t in scheduler.active) == [0.0, 5.0, 10.0]

    await scheduler.advance(0.0)
    states = animator.states()
    assert states["BUS-001"].index == 1
    assert states["BUS-002"].index == 0
    assert backend.vehicle_markers[0].coordinate == SIMULATED_VEHICLES[0].waypoints[1]
    assert registry.timer_count == 3


@pytest.mark.asyncio
async def test_stop_cancels_every_vehicle_timer(
    backend: FakeMapBackend,
    scheduler: FakeScheduler,
    registry: TaskRegistry,
) -> None:
    animator, _ = _animator(backend, registry)
    animator.start()
    await scheduler.advance(12.0)
    animator.stop()
    moves = [c for c in backend.calls if c[0] == "move"]

    await scheduler.advance(3600.0)

    assert registry.pending == 0
    assert [c for c in backend.calls if c[0] == "move"] == moves


@pytest.mark.asyncio
async def test_step_after_marker_vanished_is_noop(
    backend: FakeMapBackend,
    scheduler: FakeScheduler,
    registry: TaskRegistry,
) -> None:
    animator, renderer = _animator(backend, registry)
    animator.start()
    renderer.remove_vehicle_marker("BUS-002")

    await scheduler.advance(60.0)

    assert animator.states()["BUS-002"] == AnimationState()
    assert not registry.is_scheduled("vehicle:BUS-002")
    assert animator.states()["BUS-001"].index > 0


@pytest.mark.asyncio
async def test_reverse_loop_runs_backwards_after_dwell(
    backend: FakeMapBackend,
    scheduler: FakeScheduler,
    registry: TaskRegistry,
) -> None:
    bus = SimulatedVehicle(id="T", display_name="Test", waypoints=SQUARE, color="#000000")
    renderer = MapRenderer(backend, TrackerConfig())
    renderer.initialize()
    animator = RouteAnimator(renderer, [bus], registry=registry, policy=DwellPolicy.REVERSE, dwell=30.0)
    animator.start()

    # Legs of ~111, ~104 and ~111 m at 40 km/h end at t~29.4 s; the dwell lasts until t~59.4 s.
    await scheduler.advance(45.0)
    assert animator.states()["T"] == AnimationState(index=0, direction=Direction.BACKWARD)
    assert backend.vehicle_markers[0].coordinate == SQUARE[3]

    await scheduler.advance(15.0)
    assert animator.states()["T"] == AnimationState(index=1, direction=Direction.BACKWARD)
    assert backend.vehicle_markers[0].coordinate == SQUARE[2]


def test_from_config_uses_configured_policy(backend: FakeMapBackend) -> None:
    renderer = MapRenderer(backend, TrackerConfig())
    config = TrackerConfig(dwell_policy="wrap", stagger_seconds=2.0)
    animator = RouteAnimator.from_config(renderer, simulated_vehicles(), config)
    assert animator.policy is DwellPolicy.WRAP
