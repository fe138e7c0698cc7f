"""Deriving map entities from a newest-first sample list."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from schooltrack._constants import UNKNOWN_USER_NAME
from schooltrack.models.entity import TrackedEntity
from schooltrack.models.location import LocationSample
from schooltrack.models.profile import Profile


def latest_per_subject(samples: Iterable[LocationSample]) -> dict[str, LocationSample]:
    """Keep the first sample seen per subject in a newest-first scan.

    A subject with no sample in *samples* is absent from the result even if
    it has older history in the store.
    """
    latest: dict[str, LocationSample] = {}
    for sample in samples:
        if sample.subject_id not in latest:
            latest[sample.subject_id] = sample
    return latest


def build_tracked_entities(
    samples: Iterable[LocationSample],
    profiles: Mapping[str, Profile] | None = None,
    *,
    exclude_admins: bool = False,
    require_profile: bool = False,
) -> list[TrackedEntity]:
    """One entity per subject at its latest sample, in newest-first order.

    Parameters
    ----------
    profiles
        Known profiles by id, used for display names.
    exclude_admins
        Drop subjects whose profile role is ``admin``.
    require_profile
        Drop subjects without a known profile.
    """
    known = profiles or {}
    entities: list[TrackedEntity] = []
    for subject_id, sample in latest_per_subject(samples).items():
        profile = known.get(subject_id)
        if profile is None and require_profile:
            continue
        if profile is not None and exclude_admins and profile.is_admin:
            continue
        name = profile.display_name if profile is not None else UNKNOWN_USER_NAME
        entities.append(TrackedEntity(id=subject_id, display_name=name, latest=sample))
    return entities
