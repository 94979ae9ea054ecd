"""Tick handler that publishes countdown and local completion updates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from focus import TimerTick
from focus.constants import (
    ACTION_COMPLETED,
    ACTION_TICK,
    REASON_COMPLETED,
    REASON_TICK,
)

from .messages import default_timer_text
from .ui import RuntimeUIPublisher


@dataclass(frozen=True)
class TickDependencies:
    """Dependencies required for processing timer tick events."""
    logger: logging.Logger
    ui: RuntimeUIPublisher
    publish_idle_state: Callable[[], None]


class TickProcessor:
    """Handles display side effects of timer ticks.

    A completed tick only updates the display; the session log and task
    bookkeeping belong to the scheduled completion job.
    """
    def __init__(self, dependencies: TickDependencies):
        self._dependencies = dependencies

    def handle_timer_tick(self, tick: TimerTick) -> None:
        deps = self._dependencies
        if tick.completed:
            completion_message = default_timer_text(ACTION_COMPLETED, tick.snapshot)
            deps.logger.info("Countdown finished: %s", completion_message)
            deps.ui.publish_timer_update(
                tick.snapshot,
                action=ACTION_COMPLETED,
                accepted=True,
                reason=REASON_COMPLETED,
                message=completion_message,
            )
            deps.publish_idle_state()
            return

        deps.ui.publish_timer_update(
            tick.snapshot,
            action=ACTION_TICK,
            accepted=True,
            reason=REASON_TICK,
        )
