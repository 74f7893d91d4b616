"""Observer / publish-subscribe core: registry, subject, dispatcher and observers (in-memory only)."""

from fanout.default_observer import CallbackObserver, DefaultObserver
from fanout.dispatcher import DispatchResult, Dispatcher
from fanout.errors import AlreadyRegistered, DeliveryFailure, FanoutError, NotFound
from fanout.message import Message
from fanout.monitors import ChangeLogObserver, DisplayBoard, Threshold, ThresholdAlert, ThresholdAlertObserver
from fanout.observer import Observer
from fanout.publisher import Publisher
from fanout.registry import Registry
from fanout.stateful_subject import StateChange, StatefulSubject
from fanout.subject import Subject
from fanout.topic import ALL, TopicFilter

__all__ = [
    "ALL",
    "AlreadyRegistered",
    "CallbackObserver",
    "ChangeLogObserver",
    "DefaultObserver",
    "DeliveryFailure",
    "DispatchResult",
    "Dispatcher",
    "DisplayBoard",
    "FanoutError",
    "Message",
    "NotFound",
    "Observer",
    "Publisher",
    "Registry",
    "StateChange",
    "StatefulSubject",
    "Subject",
    "Threshold",
    "ThresholdAlert",
    "ThresholdAlertObserver",
    "TopicFilter",
]
