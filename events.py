"""
Controller events and the sinks that consume them.

The controller publishes four kinds of event. Sinks are plain callables
taking one event; `dispatch` delivers to each of them and keeps a failing
sink from reaching the controller.
"""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Tuple, Union

from models import HealthStatus, ProviderId

api_logger = logging.getLogger("traffic_router.api")
routing_logger = logging.getLogger("traffic_router.routing")
alert_logger = logging.getLogger("traffic_router.alerts")
logger = logging.getLogger("traffic_router.events")


class OverrideKind(str, Enum):
    DEGRADE = "degrade"
    IMPROVE = "improve"


@dataclass(frozen=True)
class StatusChanged:
    provider: ProviderId
    previous: HealthStatus
    current: HealthStatus
    response_time: float
    error_rate: float
    traffic_percentage: int
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class TrafficShiftDetected:
    previous: Mapping[ProviderId, int]
    current: Mapping[ProviderId, int]
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class AlertRaised:
    provider: ProviderId
    error_rate: float
    threshold: float
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ManualOverride:
    provider: ProviderId
    kind: OverrideKind
    response_time: float
    error_rate: float
    status: HealthStatus
    timestamp: float = field(default_factory=time.time)


Event = Union[StatusChanged, TrafficShiftDetected, AlertRaised, ManualOverride]
EventSink = Callable[[Event], None]

_EVENT_TYPES = {
    StatusChanged: "status_changed",
    TrafficShiftDetected: "traffic_shift_detected",
    AlertRaised: "alert_raised",
    ManualOverride: "manual_override",
}


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Mapping):
        return {_plain(k): _plain(v) for k, v in value.items()}
    return value


def event_type(event: Event) -> str:
    return _EVENT_TYPES[type(event)]


def to_dict(event: Event) -> Dict[str, Any]:
    """JSON-friendly representation tagged with the event type."""
    data = {"type": event_type(event)}
    data.update({k: _plain(v) for k, v in event.__dict__.items()})
    return data


def dispatch(event: Event, sinks: Iterable[EventSink]) -> int:
    """
    Deliver an event to every sink. Returns how many sinks failed.
    """
    failures = 0
    for sink in sinks:
        try:
            sink(event)
        except Exception:
            failures += 1
            logger.warning("Event sink %r failed on %s", sink, event_type(event), exc_info=True)
    return failures


class LoggingSink:
    """Writes each event to the router's named loggers."""

    def __call__(self, event: Event) -> None:
        if isinstance(event, StatusChanged):
            api_logger.info(
                "%s status changed from %s to %s (response_time=%.1f, error_rate=%.4f, traffic=%d%%)",
                event.provider.value.upper(),
                event.previous.value,
                event.current.value,
                event.response_time,
                event.error_rate,
                event.traffic_percentage,
            )
        elif isinstance(event, TrafficShiftDetected):
            routing_logger.info(
                "Significant traffic redistribution detected: %s -> %s",
                _plain(event.previous),
                _plain(event.current),
            )
        elif isinstance(event, AlertRaised):
            alert_logger.error(
                "%s error rate exceeds threshold: %.2f%% (threshold %.2f%%)",
                event.provider.value.upper(),
                event.error_rate * 100,
                event.threshold * 100,
            )
        elif isinstance(event, ManualOverride):
            level = logging.WARNING if event.kind is OverrideKind.DEGRADE else logging.INFO
            verb = "degraded" if event.kind is OverrideKind.DEGRADE else "improved"
            api_logger.log(
                level,
                "%s provider manually %s (response_time=%.1f, error_rate=%.4f, status=%s)",
                event.provider.value.upper(),
                verb,
                event.response_time,
                event.error_rate,
                event.status.value,
            )


class EventLog:
    """
    Bounded in-memory record of recent events, numbered in arrival order.

    Thread-safe; readers poll with the last sequence number they saw.
    """

    MAX_EVENTS = 200

    def __init__(self, max_events: int = MAX_EVENTS) -> None:
        if max_events < 1:
            raise ValueError("max_events must be at least 1")
        self._events: Deque[Tuple[int, Event]] = deque(maxlen=max_events)
        self._next_seq = 1
        self._lock = threading.Lock()

    def __call__(self, event: Event) -> None:
        with self._lock:
            self._events.append((self._next_seq, event))
            self._next_seq += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def since(self, sequence: int = 0) -> List[Tuple[int, Event]]:
        with self._lock:
            return [(seq, ev) for seq, ev in self._events if seq > sequence]
