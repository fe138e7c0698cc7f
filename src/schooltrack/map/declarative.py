"""Declarative map renderer.

Derives a keyed render list from the entity list and reconciles it against
what is on the map: unchanged markers stay, moved markers are moved,
markers whose popup changed are redrawn and vanished keys are removed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from schooltrack.map.popup import entity_popup_html
from schooltrack.map.renderer import MapRenderer
from schooltrack.models._base import LatLng
from schooltrack.models.entity import TrackedEntity

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarkerDescriptor:
    """What one entity marker should look like."""

    key: str
    coordinate: LatLng
    popup_html: str
    label: str


class DeclarativeMapRenderer(MapRenderer):
    """Renderer that only touches markers whose description changed."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._drawn: dict[str, MarkerDescriptor] = {}

    def render_list(self, entities: Iterable[TrackedEntity]) -> list[MarkerDescriptor]:
        by_key: dict[str, MarkerDescriptor] = {}
        for entity in entities:
            if entity.id in by_key:
                continue
            by_key[entity.id] = MarkerDescriptor(
                key=entity.id,
                coordinate=entity.coordinate,
                popup_html=entity_popup_html(entity, self._config.time_zone),
                label=entity.display_name,
            )
        return list(by_key.values())

    def sync_markers(self, entities: Iterable[TrackedEntity]) -> None:
        if not self._require_map("sync_markers"):
            return
        wanted = {desc.key: desc for desc in self.render_list(entities)}

        for key in [k for k in self._markers if k not in wanted]:
            self._backend.remove_layer(self._map, self._markers.pop(key))
            self._drawn.pop(key, None)

        added = moved = 0
        for key, desc in wanted.items():
            current = self._drawn.get(key)
            if current == desc and key in self._markers:
                continue
            if current is not None and key in self._markers and current.popup_html == desc.popup_html:
                self._backend.move_marker(self._map, self._markers[key], desc.coordinate)
                moved += 1
            else:
                if key in self._markers:
                    self._backend.remove_layer(self._map, self._markers.pop(key))
                self._markers[key] = self._backend.add_marker(
                    self._map,
                    desc.coordinate,
                    popup_html=desc.popup_html,
                    label=desc.label,
                )
                added += 1
            self._drawn[key] = desc
        _logger.debug("Reconciled %d markers (added=%d moved=%d)", len(self._markers), added, moved)

    def destroy(self) -> None:
        super().destroy()
        self._drawn.clear()
