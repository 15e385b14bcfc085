"""
In-process fan-out of collection snapshots.

Every write through a ``DocumentStore`` publishes the touched collection; each
subscriber then receives the full, filtered snapshot and recomputes its view
from it. There is no incremental diff.
"""
import queue
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, Iterator, List, Optional

from app.core.exceptions import BackendUnavailableError
from app.core.logging_config import logger

Document = Dict[str, Any]
SnapshotCallback = Callable[[List[Document]], None]

_CLOSED = object()


def matches_filters(document: Document, filters: Optional[Dict[str, Any]]) -> bool:
    """
    Equality match on every filter key.

    A list/tuple/set value means "field is one of". ``None`` matches a missing
    or null field.
    """
    if not filters:
        return True
    for field, expected in filters.items():
        actual = document.get(field)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


class Subscription:
    """
    Handle returned by ``SubscriptionHub.subscribe``.

    Snapshots can be consumed through the optional callback, by pulling with
    ``next_snapshot`` / iteration, or by reading ``latest``.
    """

    def __init__(
        self,
        hub: "SubscriptionHub",
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        callback: Optional[SnapshotCallback] = None,
    ):
        self.collection = collection
        self.filters = dict(filters or {})
        self.latest: List[Document] = []
        self.closed = False
        self._hub = hub
        self._callback = callback
        self._snapshots: "queue.Queue[Any]" = queue.Queue()

    def deliver(self, snapshot: List[Document]) -> None:
        if self.closed:
            return
        self.latest = snapshot
        self._snapshots.put(snapshot)
        if self._callback is not None:
            self._callback(snapshot)

    def next_snapshot(self, timeout: Optional[float] = None) -> Optional[List[Document]]:
        """Block until the next snapshot arrives; None on timeout or close."""
        try:
            item = self._snapshots.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            return None
        return item

    def drain(self) -> Optional[List[Document]]:
        """Return the newest pending snapshot, discarding older ones."""
        newest = None
        while True:
            try:
                item = self._snapshots.get_nowait()
            except queue.Empty:
                return newest
            if item is _CLOSED:
                return newest
            newest = item

    def __iter__(self) -> Iterator[List[Document]]:
        """Yield snapshots until the subscription is closed and drained."""
        while not (self.closed and self._snapshots.empty()):
            item = self._snapshots.get()
            if item is _CLOSED:
                return
            yield item

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._hub.unsubscribe(self)
        self._snapshots.put(_CLOSED)


class SubscriptionHub:
    """
    Registry of live subscriptions, shared by every store handle of a process.

    The hub never touches the database itself; publishers hand it a loader
    that reads the collection they just wrote.
    """

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(
        self,
        collection: str,
        snapshot: List[Document],
        filters: Optional[Dict[str, Any]] = None,
        callback: Optional[SnapshotCallback] = None,
    ) -> Subscription:
        subscription = Subscription(self, collection, filters, callback)
        with self._lock:
            self._subscriptions[collection].append(subscription)
        subscription.deliver([doc for doc in snapshot if matches_filters(doc, subscription.filters)])
        logger.info(f"Subscribed to {collection}: filters={subscription.filters}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscriptions.get(subscription.collection, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def has_subscribers(self, collection: str) -> bool:
        with self._lock:
            return bool(self._subscriptions.get(collection))

    def publish(self, collection: str, load: Callable[[], List[Document]]) -> None:
        with self._lock:
            subscribers = list(self._subscriptions.get(collection, []))
        if not subscribers:
            return

        try:
            documents = load()
        except BackendUnavailableError as e:
            # Read-path failure: keep consumers on their last known data
            logger.error(f"Snapshot load failed for {collection}: {e.detail}")
            for subscription in subscribers:
                subscription.deliver(list(subscription.latest))
            return

        for subscription in subscribers:
            subscription.deliver([doc for doc in documents if matches_filters(doc, subscription.filters)])
