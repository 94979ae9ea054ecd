"""Job records and handler contracts for the deferred scheduler."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

JobHandler = Callable[[Mapping[str, Any]], None]


@dataclass(frozen=True)
class ScheduledJob:
    """One persisted job occupying a named slot."""
    slot: str
    kind: str
    fire_at_ms: int
    token: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    period_ms: Optional[int] = None
    attempts: int = 0

    @property
    def is_periodic(self) -> bool:
        return self.period_ms is not None
