"""Message class for published payload and metadata."""

import copy
import itertools
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional

_ids = itertools.count(1)


@dataclass(frozen=True)
class Message:
    """Immutable value published on a topic; each observer gets its own copy."""

    topic: str
    payload: Any
    message_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.topic, str) or not self.topic.strip():
            raise ValueError(f"message topic must be a non-empty string, got {self.topic!r}")
        if self.timestamp is None:
            object.__setattr__(self, "timestamp", datetime.now(timezone.utc))
        if self.message_id is None:
            object.__setattr__(
                self,
                "message_id",
                f"{self.topic}_{next(_ids)}_{self.timestamp.timestamp()}",
            )
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def copy(self) -> "Message":
        """Independent copy: payload and metadata are deep-copied."""
        return replace(
            self,
            payload=copy.deepcopy(self.payload),
            metadata=copy.deepcopy(dict(self.metadata)),
        )

    def to_dict(self) -> dict:
        """Serialize message for logging or transport."""
        payload = self.payload
        if hasattr(payload, "model_dump"):
            payload = payload.model_dump(mode="json")
        return {
            "message_id": self.message_id,
            "topic": self.topic,
            "payload": payload,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "metadata": dict(self.metadata),
        }
