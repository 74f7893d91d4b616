"""Observability: logging and metrics for the fan-out core."""

from fanout.observability.logger import get_logger
from fanout.observability.metrics import Metrics

__all__ = ["get_logger", "Metrics"]
