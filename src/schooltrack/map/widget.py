"""Contract between the renderers and a concrete map widget.

Handles returned by a backend are opaque to the renderers; they are only
ever passed back to the same backend.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from schooltrack.models._base import LatLng

MapHandle = Any
LayerHandle = Any


class MapBackend(Protocol):
    def create_map(self, center: LatLng, zoom: int) -> MapHandle:
        ...

    def add_tile_layer(self, map_handle: MapHandle, url: str, attribution: str) -> LayerHandle:
        ...

    def add_marker(
        self,
        map_handle: MapHandle,
        coordinate: LatLng,
        *,
        popup_html: str,
        color: str | None = None,
        label: str | None = None,
    ) -> LayerHandle:
        ...

    def move_marker(self, map_handle: MapHandle, marker: LayerHandle, coordinate: LatLng) -> None:
        ...

    def add_polyline(
        self,
        map_handle: MapHandle,
        points: Sequence[LatLng],
        *,
        style: Mapping[str, object],
    ) -> LayerHandle:
        ...

    def remove_layer(self, map_handle: MapHandle, layer: LayerHandle) -> None:
        ...

    def destroy_map(self, map_handle: MapHandle) -> None:
        ...
