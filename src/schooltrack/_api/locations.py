"""Location table endpoints.

  - POST /<location_table>   (insert one sample, return representation)
  - GET  /<location_table>   (most recent samples, newest first)
"""

from __future__ import annotations

import logging

from schooltrack._api._common import eq, expect_rows, order_desc, table_path
from schooltrack._transport import Transport
from schooltrack.config import TrackerConfig
from schooltrack.models.location import LocationSample, PositionFix

_logger = logging.getLogger(__name__)


async def insert_location(
    config: TrackerConfig,
    transport: Transport,
    subject_id: str,
    fix: PositionFix,
) -> LocationSample:
    """Insert one sample for *subject_id* and return the stored row."""
    path = table_path(config.location_table)
    body = await transport.request(
        "POST",
        path,
        payload=fix.to_row(subject_id),
        prefer="return=representation",
    )
    rows = expect_rows(body, endpoint=path)
    if not rows:
        raise ValueError(f"{path} returned no representation for the inserted row")
    sample = LocationSample.from_row(rows[0])
    _logger.debug("Stored sample id=%s subject=%s", sample.id, subject_id)
    return sample


async def select_locations(
    config: TrackerConfig,
    transport: Transport,
    *,
    subject_id: str | None = None,
    limit: int,
) -> list[LocationSample]:
    """Fetch up to *limit* samples ordered by capture time, newest first."""
    path = table_path(config.location_table)
    params: dict[str, str] = {
        "select": "*",
        "order": order_desc("timestamp"),
        "limit": str(limit),
    }
    if subject_id is not None:
        params["user_id"] = eq(subject_id)

    body = await transport.request("GET", path, params=params)
    rows = expect_rows(body, endpoint=path)
    return [LocationSample.from_row(row) for row in rows]
