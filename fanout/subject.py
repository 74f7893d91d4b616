"""Subject: owns a Registry, serializes subscription changes, publishes through a Dispatcher."""

import itertools
import threading
from collections import deque
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Optional, Set, Tuple

from fanout.config import get_settings
from fanout.dispatcher import Dispatcher, FailureHook
from fanout.errors import AlreadyRegistered, NotFound
from fanout.message import Message
from fanout.observability import Metrics, get_logger
from fanout.registry import Registry
from fanout.topic import ALL, TopicFilter, validate_topic

if TYPE_CHECKING:
    from fanout.observer import Observer


class Subject:
    """Holds subscriber state and triggers notifications.

    All mutations, and the snapshot + enqueue step of ``publish``, run under
    one lock: messages published in sequence on a topic reach each observer in
    that order. ``publish`` never waits for observers to handle anything.
    """

    def __init__(
        self,
        name: str,
        registry: Optional[Registry] = None,
        dispatcher: Optional[Dispatcher] = None,
        history_size: Optional[int] = None,
        on_delivery_failure: Optional[FailureHook] = None,
    ) -> None:
        if dispatcher is not None and on_delivery_failure is not None:
            raise ValueError("pass on_delivery_failure to the Dispatcher, not alongside one")
        if history_size is None:
            history_size = get_settings().history_size
        if history_size < 0:
            raise ValueError(f"history_size must be >= 0, got {history_size}")
        self._name = name
        self._registry = registry if registry is not None else Registry()
        self._metrics = dispatcher.metrics if dispatcher is not None else Metrics()
        self._dispatcher = dispatcher or Dispatcher(self._metrics, on_failure=on_delivery_failure)
        self._history_size = history_size
        # topic -> (publish sequence, message)
        self._history: Dict[str, Deque[Tuple[int, Message]]] = {}
        self._sequence = itertools.count(1)
        self._published: Dict[str, int] = {}
        self._lock = threading.RLock()
        self._logger = get_logger(f"fanout.subject.{name}")

    @property
    def name(self) -> str:
        return self._name

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    def subscribe(self, handle: "Observer", topic_filter: Any = ALL) -> TopicFilter:
        """Register handle under each topic of the filter, or under ALL.

        Raises AlreadyRegistered (and registers nothing) if any pair exists.
        """
        topic_filter = TopicFilter.coerce(topic_filter)
        buckets = topic_filter.buckets()
        with self._lock:
            duplicates = [b for b in buckets if self._registry.contains(b, handle)]
            if duplicates:
                raise AlreadyRegistered(handle.observer_id, duplicates)
            for bucket in buckets:
                self._registry.register(bucket, handle)
            self._metrics.increment("subscriptions")
            self._update_gauges()
        handle.on_subscribe(self._name, topic_filter)
        return topic_filter

    def subscribe_with_replay(self, handle: "Observer", topic_filter: Any = ALL, last_n: int = 0) -> List[Message]:
        """Subscribe and read the recent history in one locked step.

        Every message published on a matching topic is either in the returned
        replay (last_n per topic, publish order) or delivered live, never both.
        """
        topic_filter = TopicFilter.coerce(topic_filter)
        with self._lock:
            self.subscribe(handle, topic_filter)
            return self._replay(topic_filter, last_n)

    def _replay(self, topic_filter: TopicFilter, last_n: int) -> List[Message]:
        # Caller holds self._lock.
        if last_n <= 0:
            return []
        topics = self._history.keys() if topic_filter.is_all else topic_filter.topics
        entries: List[Tuple[int, Message]] = []
        for topic in topics:
            entries.extend(list(self._history.get(topic, ()))[-last_n:])
        entries.sort(key=lambda entry: entry[0])
        return [message for _, message in entries]

    def unsubscribe(self, handle: "Observer", topic_filter: Any = None) -> Set[object]:
        """Detach handle from every bucket (filter None) or from the filter's buckets.

        Raises NotFound (and changes nothing) if a requested pair is absent.
        Returns the buckets removed.
        """
        with self._lock:
            if topic_filter is None:
                buckets = self._registry.topics_for(handle)
                if not buckets:
                    raise NotFound(handle.observer_id, [ALL])
            else:
                buckets = set(TopicFilter.coerce(topic_filter).buckets())
                missing = [b for b in buckets if not self._registry.contains(b, handle)]
                if missing:
                    raise NotFound(handle.observer_id, missing)
            for bucket in buckets:
                self._registry.unregister(bucket, handle)
            self._metrics.increment("unsubscriptions")
            self._update_gauges()
        handle.on_unsubscribe(self._name, sorted(buckets, key=str))
        return buckets

    def publish(self, topic: str, payload: Any, **metadata: Any) -> Message:
        """Fan a new message out to lookup(topic) | lookup_all(); fire-and-forget."""
        validate_topic(topic)
        message = Message(topic=topic, payload=payload, metadata=metadata)
        with self._lock:
            self._dispatch(message)
        return message

    def _dispatch(self, message: Message) -> None:
        # Caller holds self._lock.
        topic = message.topic
        self._history.setdefault(topic, deque(maxlen=self._history_size)).append(
            (next(self._sequence), message)
        )
        self._published[topic] = self._published.get(topic, 0) + 1
        self._metrics.increment("published")
        handles = self._registry.lookup(topic) | self._registry.lookup_all()
        self._logger.info(
            "published",
            extra={
                "topic": topic,
                "message_id": message.message_id,
                "subscriber_count": len(handles),
            },
        )
        self._dispatcher.dispatch(message, handles)

    def history(self, topic: str, n: int) -> List[Message]:
        """Return the last n messages published on topic (oldest first)."""
        if n <= 0:
            return []
        with self._lock:
            buf = list(self._history.get(topic, ()))
        return [message for _, message in buf[-n:]]

    def subscribers(self, topic: Optional[object] = None) -> Set["Observer"]:
        """Live observers on a topic (exact bucket), or every live observer."""
        if topic is not None:
            return self._registry.lookup(topic)
        with self._lock:
            found: Set["Observer"] = set()
            for bucket in [ALL, *self._registry.topics()]:
                found |= self._registry.lookup(bucket)
            return found

    def topics(self) -> List[str]:
        """Topics that were published on or currently have subscribers."""
        with self._lock:
            return sorted(set(self._published) | set(self._registry.topics()))

    def stats(self) -> Dict[str, Dict[str, int]]:
        """Return { topic: { messages, subscribers } } (ALL subscribers count on every topic)."""
        with self._lock:
            wildcard = self._registry.lookup_all()
            return {
                topic: {
                    "messages": self._published.get(topic, 0),
                    "subscribers": len(self._registry.lookup(topic) | wildcard),
                }
                for topic in self.topics()
            }

    def close(self) -> None:
        """Drop every subscription and the message history."""
        with self._lock:
            self._registry.clear()
            self._history.clear()
            self._published.clear()
            self._update_gauges()

    def _update_gauges(self) -> None:
        self._metrics.set_gauge("topics", len(self._registry.topics()))
        self._metrics.set_gauge("subscribers", self._registry.subscriber_count())

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self._name!r}, registry={self._registry!r})"
