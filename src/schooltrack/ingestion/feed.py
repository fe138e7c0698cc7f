"""Live feed of recent location samples.

Loads the most recent samples once, then keeps a bounded newest-first
window current from insert notifications.  Fetch and subscription errors
are logged and the feed degrades to whatever it already holds.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from schooltrack import _constants as const
from schooltrack.exceptions import StoreReadFailedError, SubscriptionFailedError
from schooltrack.models.location import LocationSample
from schooltrack.state.entities import latest_per_subject
from schooltrack.state.window import RecentWindow
from schooltrack.store import LocationStore, Subscription

_logger = logging.getLogger(__name__)

ChangeCallback = Callable[[list[LocationSample]], None]


class LiveFeedSubscriber:
    """Bounded, newest-first view over the location store.

    Parameters
    ----------
    store
        Source of samples and insert notifications.
    subject_id
        Restrict the feed to one subject; ``None`` follows everyone.
    limit
        Window size.  Defaults to 50 for a single subject and 100 for
        the all-subjects feed.
    on_change
        Called with a snapshot of the window after every change.
    """

    def __init__(
        self,
        store: LocationStore,
        *,
        subject_id: str | None = None,
        limit: int | None = None,
        on_change: ChangeCallback | None = None,
    ) -> None:
        if limit is None:
            limit = const.OWN_HISTORY_LIMIT if subject_id is not None else const.ALL_HISTORY_LIMIT
        self._store = store
        self._subject_id = subject_id
        self._window = RecentWindow(limit)
        self._on_change = on_change
        self._subscription: Subscription | None = None
        self._closed = False
        self.loading = False
        self.error: str | None = None

    @property
    def subject_id(self) -> str | None:
        return self._subject_id

    @property
    def limit(self) -> int:
        return self._window.capacity

    @property
    def samples(self) -> list[LocationSample]:
        return self._window.snapshot()

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None

    def latest_per_subject(self) -> dict[str, LocationSample]:
        return latest_per_subject(self._window)

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self._window.snapshot())
        except Exception:
            _logger.warning("Live feed change callback failed", exc_info=True)

    async def refresh(self) -> None:
        """Replace the window with the newest ``limit`` samples from the store."""
        self.loading = True
        try:
            rows = await self._store.query(subject_id=self._subject_id, limit=self.limit)
        except StoreReadFailedError as exc:
            self.error = str(exc)
            _logger.error("Fetching locations failed: %s", exc)
            return
        finally:
            self.loading = False
        if self._closed:
            return
        self.error = None
        self._window.replace(rows)
        self._notify()

    async def mount(self) -> None:
        """Initial fetch, then subscribe to inserts."""
        self._closed = False
        await self.refresh()
        if self._closed:
            return
        await self._subscribe()

    async def _subscribe(self) -> None:
        try:
            subscription = await self._store.subscribe(self._on_insert, subject_id=self._subject_id)
        except SubscriptionFailedError as exc:
            _logger.warning("Live updates unavailable: %s", exc)
            return
        if self._closed:
            await subscription.unsubscribe()
            return
        self._subscription = subscription

    def _on_insert(self, sample: LocationSample) -> None:
        if self._closed:
            return
        if self._subject_id is not None and sample.subject_id != self._subject_id:
            return
        self._window.push(sample)
        self._notify()

    async def select_subject(self, subject_id: str | None) -> None:
        """Follow another subject (or everyone), re-fetching and re-subscribing."""
        if subject_id == self._subject_id and self._subscription is not None:
            return
        await self._unsubscribe()
        self._subject_id = subject_id
        # The old list stays until the refetch succeeds.
        await self.mount()

    async def _unsubscribe(self) -> None:
        subscription = self._subscription
        self._subscription = None
        if subscription is None:
            return
        try:
            await subscription.unsubscribe()
        except SubscriptionFailedError:
            _logger.debug("Unsubscribe failed", exc_info=True)

    async def unmount(self) -> None:
        """Stop applying notifications and release the subscription."""
        self._closed = True
        await self._unsubscribe()
