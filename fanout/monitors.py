"""Observers that react to StateChange payloads: display board, threshold alerts, change log."""

import threading
from typing import Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from fanout.message import Message
from fanout.observer import Observer
from fanout.stateful_subject import StateChange


class Threshold(BaseModel):
    """High and/or low bound for one topic."""

    model_config = ConfigDict(frozen=True)

    high: Optional[float] = None
    low: Optional[float] = None

    @model_validator(mode="after")
    def _check_bounds(self) -> "Threshold":
        if self.high is None and self.low is None:
            raise ValueError("threshold needs a high or a low bound")
        if self.high is not None and self.low is not None and self.low >= self.high:
            raise ValueError(f"low bound {self.low} must be below high bound {self.high}")
        return self


class ThresholdAlert(BaseModel):
    model_config = ConfigDict(frozen=True)

    topic: str
    direction: Literal["high", "low"]
    limit: float
    old: float
    new: float


def _state_change(message: Message) -> Optional[StateChange]:
    payload = message.payload
    return payload if isinstance(payload, StateChange) else None


class DisplayBoard(Observer):
    """Keeps the latest value per topic and renders them on one line."""

    def __init__(self, observer_id: str, mailbox_size: Optional[int] = None) -> None:
        super().__init__(observer_id, mailbox_size)
        self._board: Dict[str, float] = {}
        self._board_lock = threading.Lock()

    @property
    def board(self) -> Dict[str, float]:
        with self._board_lock:
            return dict(self._board)

    def render(self) -> str:
        board = self.board
        return " | ".join(f"{topic}: {value:g}" for topic, value in sorted(board.items()))

    def handle_notification(self, topic: str, message: Message) -> None:
        change = _state_change(message)
        if change is None:
            return
        with self._board_lock:
            self._board[topic] = change.new
        self._logger.info(f"[{self.observer_id}] {self.render()}")


class ThresholdAlertObserver(Observer):
    """Fires an alert when a value crosses a configured bound.

    High fires on ``old < high <= new``; low fires on ``old > low >= new``.
    A first value (no old) never fires, and staying past a bound does not
    fire again.
    """

    def __init__(
        self,
        observer_id: str,
        thresholds: Dict[str, Threshold],
        on_alert: Optional[Callable[[ThresholdAlert], None]] = None,
        mailbox_size: Optional[int] = None,
    ) -> None:
        super().__init__(observer_id, mailbox_size)
        self._thresholds = {
            topic: t if isinstance(t, Threshold) else Threshold.model_validate(t)
            for topic, t in thresholds.items()
        }
        self._on_alert = on_alert
        self._alerts: List[ThresholdAlert] = []
        self._alerts_lock = threading.Lock()

    @property
    def alerts(self) -> List[ThresholdAlert]:
        with self._alerts_lock:
            return list(self._alerts)

    def handle_notification(self, topic: str, message: Message) -> None:
        change = _state_change(message)
        threshold = self._thresholds.get(topic)
        if change is None or threshold is None:
            return
        alert = self.check(topic, change, threshold)
        if alert is None:
            return
        with self._alerts_lock:
            self._alerts.append(alert)
        self._logger.warning(
            "threshold_crossed",
            extra=alert.model_dump(),
        )
        if self._on_alert is not None:
            self._on_alert(alert)

    @staticmethod
    def check(topic: str, change: StateChange, threshold: Threshold) -> Optional[ThresholdAlert]:
        old, new = change.old, change.new
        if old is None:
            return None
        if threshold.high is not None and old < threshold.high <= new:
            return ThresholdAlert(topic=topic, direction="high", limit=threshold.high, old=old, new=new)
        if threshold.low is not None and old > threshold.low >= new:
            return ThresholdAlert(topic=topic, direction="low", limit=threshold.low, old=old, new=new)
        return None


class ChangeLogObserver(Observer):
    """Records every change with its percent move, for audit."""

    def __init__(self, observer_id: str, mailbox_size: Optional[int] = None) -> None:
        super().__init__(observer_id, mailbox_size)
        self._entries: List[str] = []
        self._entries_lock = threading.Lock()

    @property
    def entries(self) -> List[str]:
        with self._entries_lock:
            return list(self._entries)

    def handle_notification(self, topic: str, message: Message) -> None:
        change = _state_change(message)
        if change is None:
            return
        entry = f"[{message.timestamp:%H:%M:%S}] {topic}: {format_change(change)}"
        with self._entries_lock:
            self._entries.append(entry)
        self._logger.info(entry)


def format_change(change: StateChange) -> str:
    old = "N/A" if change.old is None else f"{change.old:g}"
    if change.old is None:
        move = "NEW"
    elif change.percent_change is None or change.percent_change == 0:
        move = "0%"
    else:
        move = f"{change.percent_change:+}%"
    return f"{old} -> {change.new:g} ({move})"
