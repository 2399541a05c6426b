"""
Persistence feed interface.

The feed is the remote document store the dashboard mirrors. It is an
external collaborator: the host provides a concrete implementation and the
core only relies on three operations per collection:

- subscribe: push-based, delivers the FULL collection on every change
- write: upsert one document by id (partial when merge=True)
- append: add one document under a generated id

All collections live under a per-user namespace
(``artifacts/<app_id>/users/<user_id>``). ``FeedScope`` binds a feed to one
namespace so stores only ever name the collection.
"""

import itertools
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional, Tuple

from home_dashboard.core.errors import FeedError

logger = logging.getLogger(__name__)

DEVICES = "devices"
HISTORY = "history"
RULES = "rules"

COLLECTIONS = (DEVICES, HISTORY, RULES)


def namespace_for(app_id: str, user_id: str) -> str:
    """Build the per-user namespace all collections live under."""
    return f"artifacts/{app_id}/users/{user_id}"


@dataclass(frozen=True)
class Document:
    """One stored document: its id plus its field data."""

    id: str
    data: Dict[str, Any]


@dataclass(frozen=True)
class Snapshot:
    """Full contents of one collection at a point in time."""

    path: str
    documents: Tuple[Document, ...] = ()

    @property
    def collection(self) -> str:
        """Last path segment (e.g., "devices")."""
        return self.path.rsplit("/", 1)[-1]

    @property
    def is_empty(self) -> bool:
        return not self.documents

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)


SnapshotCallback = Callable[[Snapshot], None]


class Subscription:
    """
    Handle for a live collection subscription.

    Cancelling is idempotent; the feed stops delivering once cancelled.
    """

    def __init__(self, path: str, cancel: Callable[[], None]) -> None:
        self.path = path
        self._cancel = cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        """Stop receiving snapshots."""
        if not self._active:
            return
        self._active = False
        self._cancel()
        logger.debug(f"Cancelled subscription to {self.path}")


class PersistenceFeed(ABC):
    """
    Abstract interface for the remote document store.

    Implementations raise FeedError when a call fails. The core never
    retries; it reports the failure and waits for the next snapshot.
    """

    @abstractmethod
    def subscribe(self, path: str, callback: SnapshotCallback) -> Subscription:
        """
        Subscribe to full snapshots of a collection.

        Args:
            path: Collection path (namespace + "/" + collection)
            callback: Called with a Snapshot on every change

        Returns:
            Subscription handle; cancel() to stop delivery
        """
        pass

    @abstractmethod
    def write(
        self,
        path: str,
        doc_id: str,
        record: Dict[str, Any],
        merge: bool = True,
    ) -> None:
        """
        Upsert a document.

        Args:
            path: Collection path
            doc_id: Document id
            record: Fields to store
            merge: True = update the given fields of an existing document,
                False = replace (or create) the whole document
        """
        pass

    @abstractmethod
    def append(self, path: str, record: Dict[str, Any]) -> str:
        """
        Add a document under a generated id.

        Args:
            path: Collection path
            record: Document fields

        Returns:
            The generated document id
        """
        pass


class FeedScope:
    """A feed bound to one user's namespace."""

    def __init__(self, feed: PersistenceFeed, namespace: str) -> None:
        self.feed = feed
        self.namespace = namespace

    def path(self, collection: str) -> str:
        return f"{self.namespace}/{collection}"

    def subscribe(self, collection: str, callback: SnapshotCallback) -> Subscription:
        return self.feed.subscribe(self.path(collection), callback)

    def write(
        self,
        collection: str,
        doc_id: str,
        record: Dict[str, Any],
        merge: bool = True,
    ) -> None:
        self.feed.write(self.path(collection), doc_id, record, merge=merge)

    def append(self, collection: str, record: Dict[str, Any]) -> str:
        return self.feed.append(self.path(collection), record)


class MockFeed(PersistenceFeed):
    """
    In-memory feed for testing and local demos.

    Behaves like a push-based document store:
    - subscribe() delivers the current snapshot immediately
    - every write/append delivers a fresh full snapshot to subscribers
    - deliveries are queued and drained serially, never re-entrantly, so a
      subscriber that writes from inside its callback sees the resulting
      snapshot after it returns
    - write(merge=True) on a missing document fails, like a partial update

    Failures can be injected per operation and collection:
        feed.fail_on("write", "devices")
    """

    def __init__(self, deliver: bool = True) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._subscribers: Dict[str, List[tuple[int, SnapshotCallback]]] = {}
        self._pending: Deque[str] = deque()
        self._draining = False
        self._deliver = deliver
        self._ids = itertools.count(1)
        self._sub_ids = itertools.count(1)
        self._failures: List[tuple[str, Optional[str]]] = []
        self._calls: List[tuple[str, str, Optional[str], Optional[Dict[str, Any]]]] = []

    # =========================================================================
    # Test helpers
    # =========================================================================

    def fail_on(self, operation: str, collection: Optional[str] = None) -> None:
        """Make an operation ("write", "append", "subscribe") raise FeedError."""
        self._failures.append((operation, collection))

    def clear_failures(self) -> None:
        self._failures.clear()

    def get_calls(self) -> List[tuple[str, str, Optional[str], Optional[Dict[str, Any]]]]:
        """Recorded (operation, path, doc_id, record) calls."""
        return self._calls.copy()

    def get_writes(self, collection: Optional[str] = None) -> List[tuple[str, Dict[str, Any]]]:
        """Recorded (doc_id, record) pairs of write calls, failed ones included."""
        return [
            (doc_id or "", record or {})
            for op, path, doc_id, record in self._calls
            if op == "write" and (collection is None or path.endswith(f"/{collection}"))
        ]

    def clear_calls(self) -> None:
        self._calls.clear()

    def documents(self, path: str) -> Dict[str, Dict[str, Any]]:
        """Current stored documents of a collection (copy)."""
        return {k: dict(v) for k, v in self._collections.get(path, {}).items()}

    def subscriber_count(self, path: Optional[str] = None) -> int:
        if path is not None:
            return len(self._subscribers.get(path, []))
        return sum(len(subs) for subs in self._subscribers.values())

    def set_deliver(self, deliver: bool) -> None:
        """Pause (False) or resume (True) snapshot delivery; resuming flushes."""
        self._deliver = deliver
        if deliver:
            self.flush()

    def flush(self) -> None:
        """Deliver every queued snapshot."""
        if self._draining:
            return
        self._draining = True
        try:
            while self._pending and self._deliver:
                path = self._pending.popleft()
                snapshot = self._snapshot(path)
                for _, callback in list(self._subscribers.get(path, [])):
                    callback(snapshot)
        finally:
            self._draining = False

    # =========================================================================
    # PersistenceFeed implementation
    # =========================================================================

    def subscribe(self, path: str, callback: SnapshotCallback) -> Subscription:
        self._calls.append(("subscribe", path, None, None))
        self._check_failure("subscribe", path)

        sub_id = next(self._sub_ids)
        self._subscribers.setdefault(path, []).append((sub_id, callback))

        def _cancel() -> None:
            self._subscribers[path] = [
                (i, cb) for i, cb in self._subscribers.get(path, []) if i != sub_id
            ]

        # Initial delivery goes only to the new subscriber
        if self._deliver and not self._draining:
            self._draining = True
            try:
                callback(self._snapshot(path))
            finally:
                self._draining = False
            self.flush()
        else:
            self._queue(path)
        return Subscription(path, _cancel)

    def write(
        self,
        path: str,
        doc_id: str,
        record: Dict[str, Any],
        merge: bool = True,
    ) -> None:
        self._calls.append(("write", path, doc_id, dict(record)))
        self._check_failure("write", path)

        docs = self._collections.setdefault(path, {})
        if merge:
            if doc_id not in docs:
                raise FeedError(f"No document to update: {path}/{doc_id}")
            docs[doc_id].update(record)
        else:
            docs[doc_id] = dict(record)
        self._queue(path)

    def append(self, path: str, record: Dict[str, Any]) -> str:
        self._calls.append(("append", path, None, dict(record)))
        self._check_failure("append", path)

        doc_id = f"doc-{next(self._ids)}"
        self._collections.setdefault(path, {})[doc_id] = dict(record)
        self._queue(path)
        return doc_id

    # =========================================================================
    # Internals
    # =========================================================================

    def _snapshot(self, path: str) -> Snapshot:
        docs = self._collections.get(path, {})
        return Snapshot(
            path=path,
            documents=tuple(Document(id=k, data=dict(v)) for k, v in docs.items()),
        )

    def _queue(self, path: str) -> None:
        # Coalesce: one pending delivery per path is enough for full snapshots
        if path not in self._pending:
            self._pending.append(path)
        self.flush()

    def _check_failure(self, operation: str, path: str) -> None:
        collection = path.rsplit("/", 1)[-1]
        for op, coll in self._failures:
            if op == operation and (coll is None or coll == collection):
                raise FeedError(f"{operation} failed for {path}")
