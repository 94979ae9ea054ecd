"""Runtime orchestration loop for timer ticks, UI commands and deferred jobs."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Any, Mapping, Optional

from app_config import AppConfig
from contracts.ui_protocol import STATE_IDLE
from focus import FocusTimer, SessionCompletionHandler
from focus.constants import JOB_BREAK_REMINDER, JOB_SESSION_END, REASON_STARTUP
from ledger import FocusRepository, LedgerError
from notifications import BreakReminderHandler, NotificationService
from scheduler import DeferredJobScheduler
from server import UIServer

from .commands import COMMAND_LIST_TASKS, RuntimeCommandDispatcher
from .messages import READY_MESSAGE
from .ticks import TickDependencies, TickProcessor
from .ui import RuntimeUIPublisher

COMMAND_POLL_TIMEOUT_SECONDS = 0.25


@dataclass(frozen=True)
class RuntimeBootstrap:
    """Dependency bundle required to construct the runtime engine."""
    logger: logging.Logger
    app_config: AppConfig
    timer: FocusTimer
    scheduler: DeferredJobScheduler
    repository: FocusRepository
    notifier: NotificationService
    ui_server: Optional[UIServer]


class RuntimeEngine:
    """Main loop that owns the timer and serializes UI commands onto one thread."""
    def __init__(self, bootstrap: RuntimeBootstrap):
        self._bootstrap = bootstrap
        self._logger = bootstrap.logger
        self._timer = bootstrap.timer
        self._scheduler = bootstrap.scheduler
        self._commands: Queue[Mapping[str, Any]] = Queue()
        self._stop_event = threading.Event()

        self._ui = RuntimeUIPublisher(bootstrap.ui_server)
        self._dispatcher = RuntimeCommandDispatcher(
            logger=self._logger,
            app_config=bootstrap.app_config,
            timer=self._timer,
            repository=bootstrap.repository,
            notifier=bootstrap.notifier,
            ui=self._ui,
        )
        self._tick_processor = TickProcessor(
            TickDependencies(
                logger=self._logger,
                ui=self._ui,
                publish_idle_state=self._publish_idle_state,
            )
        )
        self._completion_handler = SessionCompletionHandler(
            repository=bootstrap.repository,
            notifier=bootstrap.notifier,
        )

        self._scheduler.register(JOB_SESSION_END, self._handle_session_end)
        self._scheduler.register(JOB_BREAK_REMINDER, BreakReminderHandler(bootstrap.notifier))

    def submit_command(self, command: Mapping[str, Any]) -> None:
        """Queue a UI command; safe to call from any thread."""
        self._commands.put(command)

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> int:
        try:
            restore = self._timer.restore_on_start()
            self._logger.info("Timer restore: %s", restore.reason)
            self._dispatcher.publish_sync(reason=REASON_STARTUP)

            self._scheduler.start()
            self._apply_break_reminder_settings()
            self._publish_entities()

            self._logger.info("Ready.")
            while not self._stop_event.is_set():
                self._emit_timer_ticks()
                command = self._poll_command()
                if command is not None:
                    self._dispatcher.handle_command(command)
            return 0

        except KeyboardInterrupt:
            self._logger.info("Shutdown requested by keyboard interrupt.")
            return 0
        except Exception as error:
            self._logger.error("Unexpected error: %s", error, exc_info=True)
            return 1
        finally:
            self._shutdown()

    def _handle_session_end(self, payload: Mapping[str, Any]) -> None:
        # Runs on the scheduler thread; the task list refresh goes through the queue.
        self._completion_handler(payload)
        self.submit_command({"action": COMMAND_LIST_TASKS})

    def _apply_break_reminder_settings(self) -> None:
        settings = self._bootstrap.app_config.notifications
        if settings.break_reminders_enabled:
            self._timer.enable_break_reminders(settings.break_reminder_interval_minutes)
        else:
            self._timer.disable_break_reminders()

    def _publish_entities(self) -> None:
        repository = self._bootstrap.repository
        try:
            self._ui.publish_tasks(repository.list_tasks())
            self._ui.publish_projects(repository.list_projects())
        except LedgerError as error:
            self._logger.error("Failed to load tasks and projects: %s", error)
            self._ui.publish_error(f"Failed to load tasks and projects: {error}")

    def _publish_idle_state(self) -> None:
        self._ui.publish_state(STATE_IDLE, message=READY_MESSAGE)

    def _emit_timer_ticks(self) -> None:
        tick = self._timer.tick()
        if tick is not None:
            self._tick_processor.handle_timer_tick(tick)

    def _poll_command(self) -> Optional[Mapping[str, Any]]:
        try:
            return self._commands.get(timeout=COMMAND_POLL_TIMEOUT_SECONDS)
        except Empty:
            return None

    def _shutdown(self) -> None:
        self._logger.info("Stopping scheduler...")
        try:
            self._scheduler.stop(timeout_seconds=5.0)
        except Exception as error:
            self._logger.error("Error stopping scheduler: %s", error, exc_info=True)

        ui_server = self._bootstrap.ui_server
        if ui_server is not None:
            self._logger.info("Stopping UI server...")
            try:
                ui_server.stop(timeout_seconds=5.0)
            except Exception as error:
                self._logger.error("Error stopping UI server: %s", error, exc_info=True)
