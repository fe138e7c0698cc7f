"""folium-backed implementation of :class:`~schooltrack.map.widget.MapBackend`.

folium builds a static Leaflet document, so "live" updates mutate the
element tree and the page is re-rendered with :meth:`FoliumMapBackend.render`
or :meth:`FoliumMapBackend.save`.
"""

from __future__ import annotations

import html
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path

import folium

from schooltrack import _constants as const
from schooltrack.models._base import LatLng

_logger = logging.getLogger(__name__)

_DOT_HTML = (
    '<div title="{label}" style="width:14px;height:14px;border-radius:50%;'
    'background:{color};border:2px solid #ffffff;box-shadow:0 0 3px rgba(0,0,0,.5);"></div>'
)


def _dot_icon(color: str, label: str | None) -> folium.DivIcon:
    return folium.DivIcon(
        html=_DOT_HTML.format(color=html.escape(color, quote=True), label=html.escape(label or "", quote=True)),
        icon_size=(18, 18),
        icon_anchor=(9, 9),
    )


class FoliumMapBackend:
    """Draws maps as folium element trees."""

    def __init__(self, *, popup_max_width: int = 300) -> None:
        self._popup_max_width = popup_max_width

    def create_map(self, center: LatLng, zoom: int) -> folium.Map:
        _logger.debug("Creating map center=%s zoom=%d", center, zoom)
        return folium.Map(location=list(center), zoom_start=zoom, tiles=None, control_scale=True)

    def add_tile_layer(
        self,
        map_handle: folium.Map,
        url: str = const.TILE_URL,
        attribution: str = const.TILE_ATTRIBUTION,
    ) -> folium.TileLayer:
        layer = folium.TileLayer(tiles=url, attr=attribution, name="OpenStreetMap")
        layer.add_to(map_handle)
        return layer

    def add_marker(
        self,
        map_handle: folium.Map,
        coordinate: LatLng,
        *,
        popup_html: str,
        color: str | None = None,
        label: str | None = None,
    ) -> folium.Marker:
        marker = folium.Marker(
            location=list(coordinate),
            popup=folium.Popup(popup_html, max_width=self._popup_max_width),
            tooltip=label,
            icon=_dot_icon(color, label) if color else None,
        )
        marker.add_to(map_handle)
        return marker

    def move_marker(self, map_handle: folium.Map, marker: folium.Marker, coordinate: LatLng) -> None:
        marker.location = list(coordinate)

    def add_polyline(
        self,
        map_handle: folium.Map,
        points: Sequence[LatLng],
        *,
        style: Mapping[str, object],
    ) -> folium.PolyLine:
        line = folium.PolyLine(locations=[list(p) for p in points], **dict(style))
        line.add_to(map_handle)
        return line

    def remove_layer(self, map_handle: folium.Map, layer: folium.MacroElement) -> None:
        _detach_children(map_handle, layer.get_name())

    def destroy_map(self, map_handle: folium.Map) -> None:
        _detach_children(map_handle)

    def render(self, map_handle: folium.Map) -> str:
        """Full HTML document for the current state of *map_handle*."""
        return map_handle.get_root().render()

    def save(self, map_handle: folium.Map, path: str | Path) -> Path:
        target = Path(path)
        map_handle.save(str(target))
        _logger.info("Map written to %s", target)
        return target


def _detach_children(map_handle: folium.Map, name: str | None = None) -> None:
    """Drop one child layer (or all of them) from *map_handle*.

    folium has no public API for removing an element once added, so this
    edits the element tree's ``_children`` mapping directly.
    """
    if name is None:
        map_handle._children.clear()
    else:
        map_handle._children.pop(name, None)
