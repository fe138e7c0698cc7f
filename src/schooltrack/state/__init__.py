"""In-memory state layer.

The bounded live-feed window, the latest-sample-per-entity derivation and
the status events the sampler emits live here.  Ingestion components own
one instance each; nothing here is shared between components.
"""

from schooltrack.state.entities import build_tracked_entities, latest_per_subject
from schooltrack.state.events import StatusKind, TrackingStatus
from schooltrack.state.window import RecentWindow

__all__ = [
    "RecentWindow",
    "StatusKind",
    "TrackingStatus",
    "build_tracked_entities",
    "latest_per_subject",
]
