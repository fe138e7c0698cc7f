"""Profiles table endpoint."""

from __future__ import annotations

from collections.abc import Iterable

from schooltrack._api._common import expect_rows, in_list, table_path
from schooltrack._transport import Transport
from schooltrack.config import TrackerConfig
from schooltrack.models.profile import Profile


async def fetch_profiles(
    config: TrackerConfig,
    transport: Transport,
    ids: Iterable[str],
) -> list[Profile]:
    """Fetch id, name, email and role for the given profile ids."""
    unique = sorted(set(ids))
    if not unique:
        return []
    path = table_path(config.profiles_table)
    body = await transport.request(
        "GET",
        path,
        params={"select": "id,full_name,email,role", "id": in_list(unique)},
    )
    return [Profile.model_validate(row) for row in expect_rows(body, endpoint=path)]
