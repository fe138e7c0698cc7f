from __future__ import annotations

from pathlib import Path

from conftest import make_sample

from schooltrack.config import TrackerConfig
from schooltrack.map.folium_backend import FoliumMapBackend
from schooltrack.map.renderer import MapRenderer
from schooltrack.models.entity import TrackedEntity
from schooltrack.simulation.routes import route_lines, simulated_vehicles


def test_renderer_draws_into_folium_tree(tmp_path: Path) -> None:
    backend = FoliumMapBackend()
    renderer = MapRenderer(backend, TrackerConfig())
    renderer.initialize()
    renderer.sync_polylines(route_lines())
    renderer.add_vehicle_marker(simulated_vehicles()[0])
    entity = TrackedEntity(id="a", display_name="Zyxwv Prueba", latest=make_sample("a", 1, accuracy=9.0))
    renderer.sync_markers([entity])

    html = backend.render(renderer.map)
    assert "Zyxwv Prueba" in html
    assert "Precisión: 9m" in html
    assert "#3B82F6" in html

    renderer.sync_markers([])
    assert "Zyxwv" not in backend.render(renderer.map)

    out = backend.save(renderer.map, tmp_path / "map.html")
    assert "<html" in out.read_text(encoding="utf-8")


def test_move_marker_updates_location() -> None:
    backend = FoliumMapBackend()
    m = backend.create_map((20.0, -100.0), 13)
    marker = backend.add_marker(m, (20.0, -100.0), popup_html="x", color="#000000", label="bus")
    backend.move_marker(m, marker, (20.5, -100.5))
    assert list(marker.location) == [20.5, -100.5]
    backend.remove_layer(m, marker)
    assert marker.get_name() not in m._children


def test_remove_layer_only_detaches_that_layer() -> None:
    backend = FoliumMapBackend()
    m = backend.create_map((20.0, -100.0), 13)
    keep = backend.add_marker(m, (20.0, -100.0), popup_html="keep")
    drop = backend.add_marker(m, (20.1, -100.1), popup_html="drop")

    backend.remove_layer(m, drop)
    html = backend.render(m)
    assert keep.get_name() in html
    assert drop.get_name() not in html

    backend.destroy_map(m)
    assert keep.get_name() not in backend.render(m)
