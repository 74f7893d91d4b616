"""Fan-out: hand one published message to every observer in a snapshot."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from fanout.observability import Metrics, get_logger

if TYPE_CHECKING:
    from fanout.message import Message
    from fanout.observer import Observer

FailureHook = Callable[["Observer", "Message", BaseException], None]


@dataclass
class DispatchResult:
    delivered: int = 0
    failed: int = 0


class Dispatcher:
    """Delivers an independent copy of a message to each handle.

    ``Observer.deliver`` only enqueues, so a slow observer never delays the
    others. A failure for one handle is logged, counted and reported to
    ``on_failure``; it never reaches the publisher and never stops the loop.
    """

    def __init__(
        self,
        metrics: Optional[Metrics] = None,
        on_failure: Optional[FailureHook] = None,
    ) -> None:
        self._metrics = metrics if metrics is not None else Metrics()
        self._on_failure = on_failure
        self._logger = get_logger("fanout.dispatcher")

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    def dispatch(self, message: "Message", handles: Iterable["Observer"]) -> DispatchResult:
        handles = list(handles)
        result = DispatchResult()
        self._logger.info(
            "delivering",
            extra={
                "topic": message.topic,
                "message_id": message.message_id,
                "subscriber_count": len(handles),
            },
        )
        for handle in handles:
            try:
                handle.deliver(message.copy())
            except Exception as e:
                result.failed += 1
                self._logger.exception(
                    "delivery_failed",
                    extra={
                        "observer_id": getattr(handle, "observer_id", repr(handle)),
                        "message_id": message.message_id,
                        "error": str(e),
                    },
                )
                self._report_failure(handle, message, e)
            else:
                result.delivered += 1
        self._metrics.increment("delivered", result.delivered)
        self._metrics.increment("delivery_failed", result.failed)
        return result

    def _report_failure(self, handle: "Observer", message: "Message", error: BaseException) -> None:
        if self._on_failure is None:
            return
        try:
            self._on_failure(handle, message, error)
        except Exception:
            self._logger.exception(
                "failure_hook_failed",
                extra={"message_id": message.message_id},
            )
