"""Shared helpers for table endpoint modules.

Centralizes the PostgREST query-string conventions used by the store:
``column=eq.value`` filters, ``in.(a,b)`` lists and ``column.desc`` ordering.

It is internal to schooltrack and may change at any time.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from schooltrack.exceptions import TrackerTransportError


def table_path(table: str) -> str:
    return f"/{table}"


def eq(value: str) -> str:
    return f"eq.{value}"


def in_list(values: Iterable[str]) -> str:
    quoted = ",".join(f'"{value}"' for value in values)
    return f"in.({quoted})"


def order_desc(column: str) -> str:
    return f"{column}.desc"


def expect_rows(body: Any, *, endpoint: str) -> list[dict[str, Any]]:
    """Return *body* as a list of row dicts or raise a transport error."""
    if body is None:
        return []
    if isinstance(body, dict):
        body = [body]
    if not isinstance(body, list) or not all(isinstance(row, dict) for row in body):
        raise TrackerTransportError(f"Unexpected response shape from {endpoint}", endpoint=endpoint)
    return body
