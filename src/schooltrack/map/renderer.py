"""Imperative map renderer.

Owns one map per mounted view plus every layer it adds, keyed so that a
re-sync never leaves stale or duplicate markers behind.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from schooltrack import _constants as const
from schooltrack.config import TrackerConfig
from schooltrack.map.popup import entity_popup_html, vehicle_popup_html
from schooltrack.map.widget import LayerHandle, MapBackend
from schooltrack.models._base import LatLng
from schooltrack.models.entity import RouteLine, TrackedEntity
from schooltrack.models.simulation import SimulatedVehicle

_logger = logging.getLogger(__name__)


class MapRenderer:
    """Clear-and-redraw renderer over a :class:`MapBackend`.

    Entity markers, route polylines and simulated-vehicle markers are kept
    in separate keyed tables.  :meth:`sync_markers` and
    :meth:`sync_polylines` remove everything in their table before drawing
    the new set, so the drawn set always equals the input set.
    """

    def __init__(self, backend: MapBackend, config: TrackerConfig | None = None) -> None:
        self._backend = backend
        self._config = config or TrackerConfig()
        self._map: Any = None
        self._tiles: LayerHandle | None = None
        self._markers: dict[str, LayerHandle] = {}
        self._polylines: dict[str, LayerHandle] = {}
        self._vehicle_markers: dict[str, LayerHandle] = {}

    @property
    def backend(self) -> MapBackend:
        return self._backend

    @property
    def map(self) -> Any:
        """Backend map handle, ``None`` before :meth:`initialize`."""
        return self._map

    @property
    def is_initialized(self) -> bool:
        return self._map is not None

    @property
    def marker_count(self) -> int:
        return len(self._markers)

    @property
    def polyline_count(self) -> int:
        return len(self._polylines)

    @property
    def vehicle_marker_count(self) -> int:
        return len(self._vehicle_markers)

    def marker_ids(self) -> list[str]:
        return list(self._markers)

    def initialize(self, center: LatLng | None = None, zoom: int | None = None) -> bool:
        """Create the map and its tile layer.

        Returns ``False`` without touching anything when a map already
        exists.
        """
        if self._map is not None:
            _logger.debug("Map already initialized; skipping")
            return False
        self._map = self._backend.create_map(center or self._config.map_center, zoom or self._config.map_zoom)
        self._tiles = self._backend.add_tile_layer(self._map, self._config.tile_url, const.TILE_ATTRIBUTION)
        return True

    def _require_map(self, what: str) -> bool:
        if self._map is None:
            _logger.debug("%s before initialize; ignored", what)
            return False
        return True

    def _remove(self, layers: dict[str, LayerHandle]) -> None:
        for layer in layers.values():
            self._backend.remove_layer(self._map, layer)
        layers.clear()

    def sync_markers(self, entities: Iterable[TrackedEntity]) -> None:
        """Redraw one marker per entity at its latest coordinate."""
        if not self._require_map("sync_markers"):
            return
        self._remove(self._markers)
        for entity in entities:
            if entity.id in self._markers:
                _logger.debug("Duplicate entity %s in sync; keeping the first", entity.id)
                continue
            self._markers[entity.id] = self._backend.add_marker(
                self._map,
                entity.coordinate,
                popup_html=entity_popup_html(entity, self._config.time_zone),
                label=entity.display_name,
            )
        _logger.debug("Synced %d markers", len(self._markers))

    def sync_polylines(self, routes: Iterable[RouteLine]) -> None:
        """Redraw one polyline per route, keyed by route id."""
        if not self._require_map("sync_polylines"):
            return
        self._remove(self._polylines)
        for route in routes:
            self._polylines[route.id] = self._backend.add_polyline(self._map, route.points, style=route.style)

    def add_vehicle_marker(self, vehicle: SimulatedVehicle) -> None:
        """Place (or replace) the marker of a simulated vehicle at its current waypoint."""
        if not self._require_map("add_vehicle_marker"):
            return
        self.remove_vehicle_marker(vehicle.id)
        self._vehicle_markers[vehicle.id] = self._backend.add_marker(
            self._map,
            vehicle.waypoint(),
            popup_html=vehicle_popup_html(vehicle),
            color=vehicle.color,
            label=vehicle.id,
        )

    def has_marker(self, vehicle_id: str) -> bool:
        return vehicle_id in self._vehicle_markers

    def move_vehicle_marker(self, vehicle_id: str, coordinate: LatLng) -> bool:
        marker = self._vehicle_markers.get(vehicle_id)
        if marker is None:
            return False
        self._backend.move_marker(self._map, marker, coordinate)
        return True

    def remove_vehicle_marker(self, vehicle_id: str) -> None:
        marker = self._vehicle_markers.pop(vehicle_id, None)
        if marker is not None:
            self._backend.remove_layer(self._map, marker)

    def destroy(self) -> None:
        """Remove every layer this renderer added, then the map itself."""
        if self._map is None:
            return
        self._remove(self._markers)
        self._remove(self._polylines)
        self._remove(self._vehicle_markers)
        if self._tiles is not None:
            self._backend.remove_layer(self._map, self._tiles)
            self._tiles = None
        self._backend.destroy_map(self._map)
        self._map = None
        _logger.debug("Map destroyed")
