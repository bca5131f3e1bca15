from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from .base import ScrapeStatus, SourceReference, now_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    current: int
    total: int
    item: SourceReference
    status: ScrapeStatus

    @property
    def percentage(self) -> float:
        return (self.current * 100.0) / self.total if self.total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "progress",
            "current": self.current,
            "total": self.total,
            "percentage": round(self.percentage, 2),
            "item": self.item.to_dict(),
            "status": self.status.value,
        }


@dataclass(frozen=True)
class StatusEvent:
    message: str
    status: ScrapeStatus
    timestamp: datetime = field(default_factory=now_utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "status",
            "message": self.message,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
        }


ProgressObserver = Callable[[ProgressEvent], None]
StatusObserver = Callable[[StatusEvent], None]


class EventBus:
    """Observer registry. Dispatch is synchronous and in emission order.

    A failing observer is logged and skipped; it never affects the emitter or
    the other observers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observers: List[Tuple[Optional[ProgressObserver], Optional[StatusObserver]]] = []

    def subscribe(
        self,
        on_progress: Optional[ProgressObserver] = None,
        on_status: Optional[StatusObserver] = None,
    ) -> Tuple[Optional[ProgressObserver], Optional[StatusObserver]]:
        token = (on_progress, on_status)
        with self._lock:
            self._observers.append(token)
        return token

    def unsubscribe(self, token: Tuple[Optional[ProgressObserver], Optional[StatusObserver]]) -> None:
        with self._lock:
            if token in self._observers:
                self._observers.remove(token)

    def emit_progress(self, event: ProgressEvent) -> None:
        for on_progress, _ in self._snapshot():
            if on_progress is not None:
                self._deliver(on_progress, event)

    def emit_status(self, event: StatusEvent) -> None:
        for _, on_status in self._snapshot():
            if on_status is not None:
                self._deliver(on_status, event)

    def _snapshot(self):
        with self._lock:
            return list(self._observers)

    @staticmethod
    def _deliver(observer: Callable[[Any], None], event: Any) -> None:
        try:
            observer(event)
        except Exception:
            logger.exception("Event observer %r failed", observer)


class RecentEvents:
    """Keeps the last `maxlen` events so API clients can poll them."""

    def __init__(self, maxlen: int = 200) -> None:
        self._events: Deque[Dict[str, Any]] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(on_progress=self._record, on_status=self._record)

    def _record(self, event) -> None:
        with self._lock:
            self._events.append(event.to_dict())

    def latest(self, limit: int = 50) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._events)
        return items[-limit:] if limit > 0 else []

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
