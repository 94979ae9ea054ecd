"""Best-effort user notifications delivered through the UI event stream."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

from contracts.ui_protocol import EVENT_NOTIFICATION
from focus.constants import CHANNEL_SESSION, CHANNEL_TASK

KNOWN_CHANNELS = frozenset({CHANNEL_SESSION, CHANNEL_TASK})

BREAK_REMINDER_TITLE = "Break reminder"
BREAK_REMINDER_MESSAGE = "Time to take a short break"


class NotificationPublisher(Protocol):
    def publish(self, event_type: str, **payload: Any) -> None:
        ...


class NotificationService:
    """Channel-based notifier; delivery failures never reach the caller."""

    def __init__(
        self,
        publisher: Optional[NotificationPublisher],
        *,
        enabled: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        self._publisher = publisher
        self._enabled = enabled
        self._logger = logger or logging.getLogger("notifications")

    @property
    def enabled(self) -> bool:
        return self._enabled

    def notify(self, channel: str, title: str, message: str) -> None:
        if not self._enabled:
            self._logger.debug("Notifications disabled; dropping %s: %s", channel, title)
            return
        if channel not in KNOWN_CHANNELS:
            self._logger.warning("Notification on unknown channel %s", channel)

        self._logger.info("[%s] %s: %s", channel, title, message)
        if self._publisher is None:
            return
        try:
            self._publisher.publish(
                EVENT_NOTIFICATION,
                channel=channel,
                title=title,
                message=message,
            )
        except Exception as error:
            self._logger.warning("Failed to deliver notification %r: %s", title, error)


class BreakReminderHandler:
    """Periodic scheduler job that nudges the user to take a break."""

    def __init__(self, notifier: NotificationService):
        self._notifier = notifier

    def __call__(self, payload: Mapping[str, Any]) -> None:
        del payload  # Break reminders carry no data.
        self._notifier.notify(CHANNEL_SESSION, BREAK_REMINDER_TITLE, BREAK_REMINDER_MESSAGE)
