#!/usr/bin/env python3
"""Render the live map to an HTML file.

Mounts a :class:`~schooltrack.views.LiveMapView` against the hosted store
(or an in-process store with ``--offline``), lets the simulated buses run
for ``--duration`` seconds, then writes the folium page.

Usage
-----
Set environment variables and run::

    export SCHOOLTRACK_URL="https://<project>.supabase.co"
    export SCHOOLTRACK_API_KEY="<anon key>"
    python scripts/live_map.py -o map.html

Options::

    --offline            Use an in-process store seeded with demo samples
    --duration SECONDS   Let the buses run before writing (default: 0)
    --declarative        Reconcile markers instead of clear-and-redraw
    --no-routes          Do not draw route polylines
    --no-animate         Do not run the simulated buses
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from schooltrack import (  # noqa: E402
    FoliumMapBackend,
    LiveMapView,
    MemoryLocationStore,
    PositionFix,
    Profile,
    TrackerClient,
    TrackerConfig,
    TrackerError,
)

_DEMO_PROFILES = (
    Profile(id="demo-driver", full_name="Conductor Demo", email="driver@example.com", role="driver"),
    Profile(id="demo-parent", full_name=None, email="parent@example.com", role="parent"),
    Profile(id="demo-admin", full_name="Admin", email="admin@example.com", role="admin"),
)


async def _seed(store: MemoryLocationStore) -> None:
    now = datetime.now(UTC)
    fixes = [
        ("demo-driver", PositionFix(latitude=20.3889, longitude=-99.9901, accuracy=8.0, timestamp=now)),
        ("demo-parent", PositionFix(latitude=20.3850, longitude=-99.9822, accuracy=None, timestamp=now)),
        ("demo-admin", PositionFix(latitude=20.3900, longitude=-99.9800, accuracy=3.0, timestamp=now)),
        (
            "demo-driver",
            PositionFix(latitude=20.3870, longitude=-99.9950, accuracy=12.0, timestamp=now - timedelta(minutes=1)),
        ),
    ]
    for subject_id, fix in fixes:
        await store.insert(subject_id, fix)


async def _run_view(view: LiveMapView, backend: FoliumMapBackend, output: Path, duration: float) -> None:
    await view.mount()
    try:
        if duration > 0:
            await asyncio.sleep(duration)
        print(f"{len(view.entities)} entities, {view.renderer.vehicle_marker_count} buses")
        backend.save(view.renderer.map, output)
    finally:
        await view.unmount()


async def main() -> None:
    parser = argparse.ArgumentParser(description="Render the schooltrack live map to HTML.")
    parser.add_argument("--output", "-o", default="live_map.html", help="HTML file to write")
    parser.add_argument("--offline", action="store_true", help="Use an in-process store with demo data")
    parser.add_argument("--duration", type=float, default=0.0, help="Seconds to animate before writing")
    parser.add_argument("--declarative", action="store_true", help="Use the declarative renderer")
    parser.add_argument("--no-routes", action="store_true", help="Do not draw route polylines")
    parser.add_argument("--no-animate", action="store_true", help="Do not run the simulated buses")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    output = Path(args.output)
    backend = FoliumMapBackend()
    view_options = {
        "declarative": args.declarative,
        "show_routes": not args.no_routes,
        "animate": not args.no_animate,
    }

    if args.offline:
        config = TrackerConfig()
        store = MemoryLocationStore(_DEMO_PROFILES)
        await _seed(store)
        view = LiveMapView(config, store=store, backend=backend, profiles=store, **view_options)
        await _run_view(view, backend, output, args.duration)
        return

    config = TrackerConfig.from_env()
    async with TrackerClient(config) as client:
        view = client.live_map_view(backend, **view_options)
        await _run_view(view, backend, output, args.duration)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except TrackerError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)
