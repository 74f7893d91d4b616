"""Error taxonomy for subscription management and delivery."""

from typing import Iterable, Tuple


class FanoutError(Exception):
    """Base class for all fan-out errors."""


class SubscriptionError(FanoutError):
    """Registration change rejected; registry state is unchanged."""

    reason = "subscription error"

    def __init__(self, handle_id: str, topics: Iterable[object]) -> None:
        self.handle_id = handle_id
        self.topics: Tuple[object, ...] = tuple(sorted(topics, key=str))
        names = ", ".join(str(t) for t in self.topics)
        super().__init__(f"{self.reason}: {handle_id!r} on [{names}]")


class AlreadyRegistered(SubscriptionError):
    """Subscribe called for a (handle, topic) pair that already exists."""

    reason = "already registered"


class NotFound(SubscriptionError):
    """Unsubscribe called for a (handle, topic) pair that is not registered."""

    reason = "not registered"


class DeliveryFailure(FanoutError):
    """A single message could not be handed to one observer."""

    def __init__(self, handle_id: str, reason: str) -> None:
        self.handle_id = handle_id
        self.reason = reason
        super().__init__(f"delivery to {handle_id!r} failed: {reason}")
