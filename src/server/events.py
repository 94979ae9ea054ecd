"""Serialization of UI events and the sticky replay cache."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from contracts.ui_protocol import STICKY_EVENT_ORDER, STICKY_EVENT_TYPES


def make_event(
    event_type: str,
    *,
    now_fn: Callable[[], datetime] | None = None,
    **payload: Any,
) -> str:
    """Serialize an event payload with type and timestamp for websocket delivery."""
    now = now_fn() if now_fn is not None else datetime.now(timezone.utc)
    return json.dumps(
        {
            "type": event_type,
            "timestamp": now.isoformat(),
            **payload,
        },
        default=str,
    )


class StickyEventStore:
    """Latest event per sticky type, replayed to newly connected clients."""
    def __init__(self, order: Optional[Iterable[str]] = None):
        self._order = tuple(order) if order is not None else STICKY_EVENT_ORDER
        self._types = frozenset(self._order) if order is not None else STICKY_EVENT_TYPES
        self._events: dict[str, str] = {}
        self._lock = threading.Lock()

    def remember(self, event_type: str, message: str) -> None:
        if event_type not in self._types:
            return
        with self._lock:
            self._events[event_type] = message

    def latest(self, event_type: str) -> Optional[str]:
        with self._lock:
            return self._events.get(event_type)

    def snapshot(self) -> list[str]:
        with self._lock:
            return [self._events[key] for key in self._order if key in self._events]
