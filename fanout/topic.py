"""Topic filters: every topic, or an explicit set of topic names."""

from typing import FrozenSet, Iterable, Optional, Tuple, Union


class _AllTopics:
    """Sentinel naming the "all topics" bucket."""

    _instance: Optional["_AllTopics"] = None

    def __new__(cls) -> "_AllTopics":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ALL"

    def __reduce__(self) -> str:
        return "ALL"


ALL = _AllTopics()


def validate_topic(topic: object) -> str:
    """Return topic unchanged if it is a non-empty string, else raise ValueError."""
    if not isinstance(topic, str) or not topic.strip():
        raise ValueError(f"topic must be a non-empty string, got {topic!r}")
    return topic


class TopicFilter:
    """Either every topic (ALL) or an explicit, non-empty set of topics."""

    __slots__ = ("_topics",)

    def __init__(self, topics: Optional[Iterable[str]] = None) -> None:
        if topics is None:
            self._topics: Optional[FrozenSet[str]] = None
            return
        if isinstance(topics, str):
            topics = [topics]
        names = frozenset(validate_topic(t) for t in topics)
        if not names:
            raise ValueError("topic filter needs at least one topic (use TopicFilter.all())")
        self._topics = names

    @classmethod
    def all(cls) -> "TopicFilter":
        return cls(None)

    @classmethod
    def of(cls, *topics: str) -> "TopicFilter":
        return cls(topics)

    @classmethod
    def coerce(cls, value: Union["TopicFilter", _AllTopics, str, Iterable[str], None]) -> "TopicFilter":
        """Accept a filter, ALL/None, one topic name, or an iterable of names."""
        if isinstance(value, TopicFilter):
            return value
        if value is None or value is ALL:
            return cls.all()
        return cls(value)

    @property
    def is_all(self) -> bool:
        return self._topics is None

    @property
    def topics(self) -> FrozenSet[str]:
        return self._topics or frozenset()

    def matches(self, topic: str) -> bool:
        return self._topics is None or topic in self._topics

    def buckets(self) -> Tuple[object, ...]:
        """Registry keys this filter occupies."""
        if self._topics is None:
            return (ALL,)
        return tuple(sorted(self._topics))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TopicFilter):
            return NotImplemented
        return self._topics == other._topics

    def __hash__(self) -> int:
        return hash(self._topics)

    def __repr__(self) -> str:
        if self._topics is None:
            return "TopicFilter(ALL)"
        return f"TopicFilter({sorted(self._topics)!r})"
