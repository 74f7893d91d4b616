"""In-memory topic -> subscriber registry holding weak references to observers."""

import threading
import weakref
from typing import TYPE_CHECKING, Dict, List, Optional, Set

from fanout.errors import AlreadyRegistered, NotFound
from fanout.topic import ALL

if TYPE_CHECKING:
    from fanout.observer import Observer


def _handle_id(handle: object) -> str:
    return getattr(handle, "observer_id", repr(handle))


class Registry:
    """Maps a topic (or the ALL bucket) to the set of observers registered on it.

    Buckets are ``weakref.WeakSet`` instances: the registry never keeps an
    observer alive, and a collected observer drops out of every bucket.
    Lookups return snapshots, so callers can iterate without holding the lock.
    """

    def __init__(self) -> None:
        self._buckets: Dict[object, "weakref.WeakSet[Observer]"] = {}
        self._lock = threading.RLock()

    def register(self, topic: object, handle: "Observer") -> None:
        """Add handle to topic's bucket. Raises AlreadyRegistered on a duplicate pair."""
        with self._lock:
            bucket = self._buckets.get(topic)
            if bucket is not None and handle in bucket:
                raise AlreadyRegistered(_handle_id(handle), [topic])
            if bucket is None:
                bucket = self._buckets[topic] = weakref.WeakSet()
            bucket.add(handle)

    def unregister(self, topic: object, handle: "Observer") -> None:
        """Remove handle from topic's bucket. Raises NotFound if it is not there."""
        with self._lock:
            bucket = self._buckets.get(topic)
            if bucket is None or handle not in bucket:
                raise NotFound(_handle_id(handle), [topic])
            bucket.discard(handle)
            if not bucket:
                del self._buckets[topic]

    def contains(self, topic: object, handle: "Observer") -> bool:
        with self._lock:
            bucket = self._buckets.get(topic)
            return bucket is not None and handle in bucket

    def lookup(self, topic: object) -> Set["Observer"]:
        """Snapshot of observers registered on exactly this topic."""
        with self._lock:
            bucket = self._buckets.get(topic)
            return set(bucket) if bucket is not None else set()

    def lookup_all(self) -> Set["Observer"]:
        """Snapshot of observers registered on every topic."""
        return self.lookup(ALL)

    def topics_for(self, handle: "Observer") -> Set[object]:
        """Buckets (topic names and/or ALL) the handle currently appears in."""
        with self._lock:
            return {topic for topic, bucket in self._buckets.items() if handle in bucket}

    def topics(self) -> List[str]:
        """Named topics that currently have at least one live subscriber."""
        with self._lock:
            return sorted(
                topic for topic, bucket in self._buckets.items()
                if topic is not ALL and len(bucket) > 0
            )

    def subscriber_count(self, topic: Optional[object] = None) -> int:
        """Distinct live observers, overall or for one bucket."""
        with self._lock:
            if topic is not None:
                bucket = self._buckets.get(topic)
                return len(bucket) if bucket is not None else 0
            seen: Set[int] = set()
            for bucket in self._buckets.values():
                seen.update(id(h) for h in bucket)
            return len(seen)

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()

    def __repr__(self) -> str:
        return f"Registry(topics={len(self._buckets)}, subscribers={self.subscriber_count()})"
