"""Map rendering: the widget contract, the folium backend and the renderers."""

from schooltrack.map.declarative import DeclarativeMapRenderer, MarkerDescriptor
from schooltrack.map.folium_backend import FoliumMapBackend
from schooltrack.map.popup import entity_popup_html, format_capture_time, vehicle_popup_html
from schooltrack.map.renderer import MapRenderer
from schooltrack.map.widget import MapBackend

__all__ = [
    "DeclarativeMapRenderer",
    "FoliumMapBackend",
    "MapBackend",
    "MapRenderer",
    "MarkerDescriptor",
    "entity_popup_html",
    "format_capture_time",
    "vehicle_popup_html",
]
