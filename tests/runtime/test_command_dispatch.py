import logging
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace

from focus import FocusTimer, SessionType
from focus.constants import BREAK_REMINDER_SLOT, CHANNEL_TASK, SESSION_END_SLOT
from ledger import FocusRepository, LedgerError, Project, Task
from runtime.commands import RuntimeCommandDispatcher
from runtime.ui import RuntimeUIPublisher

T0 = 1_700_000_000_000


class _SchedulerStub:
    def __init__(self):
        self.jobs: dict[str, tuple] = {}

    def arm(self, slot, kind, fire_at_ms, payload=None):
        self.jobs[slot] = (kind, fire_at_ms, dict(payload or {}))

    def arm_periodic(self, slot, kind, period_ms, payload=None):
        self.jobs[slot] = (kind, period_ms, dict(payload or {}))

    def cancel(self, slot):
        self.jobs.pop(slot, None)


class _SnapshotStoreStub:
    def __init__(self):
        self.snapshot = None

    def read(self):
        return self.snapshot

    def write(self, snapshot):
        self.snapshot = snapshot

    def clear(self):
        self.snapshot = None


class _UIServerStub:
    def __init__(self):
        self.events: list[tuple[str, dict[str, object]]] = []
        self.states: list[tuple[str, str | None, dict[str, object]]] = []

    def publish(self, event_type: str, **payload):
        self.events.append((event_type, payload))

    def publish_state(self, state: str, *, message=None, **payload):
        self.states.append((state, message, payload))

    def last(self, event_type: str) -> dict[str, object]:
        matches = [payload for kind, payload in self.events if kind == event_type]
        return matches[-1]


class _NotifierStub:
    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    def notify(self, channel, title, message):
        self.sent.append((channel, title, message))


class _BrokenRepository:
    def list_tasks(self, project_id=None):
        raise LedgerError("database is locked")


def _app_config():
    return SimpleNamespace(
        timer=SimpleNamespace(work_minutes=25, break_minutes=5),
        notifications=SimpleNamespace(
            break_reminders_enabled=False,
            break_reminder_interval_minutes=30,
        ),
    )


class RuntimeCommandDispatcherTests(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.repository = FocusRepository(Path(self._temp_dir.name) / "focus.db")
        self.scheduler = _SchedulerStub()
        self.timer = FocusTimer(
            snapshot_store=_SnapshotStoreStub(),
            scheduler=self.scheduler,
            now_ms_fn=lambda: T0,
        )
        self.ui = _UIServerStub()
        self.notifier = _NotifierStub()
        self.dispatcher = self._dispatcher(self.repository)

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def _dispatcher(self, repository) -> RuntimeCommandDispatcher:
        return RuntimeCommandDispatcher(
            logger=logging.getLogger("test.runtime"),
            app_config=_app_config(),
            timer=self.timer,
            repository=repository,
            notifier=self.notifier,
            ui=RuntimeUIPublisher(self.ui),
            now_ms_fn=lambda: T0 + 1_000,
        )

    def test_start_uses_configured_work_minutes(self) -> None:
        self.assertTrue(self.dispatcher.handle_command({"action": "start"}))

        timer_event = self.ui.last("timer")
        self.assertEqual("start", timer_event["action"])
        self.assertTrue(timer_event["accepted"])
        self.assertEqual(25, timer_event["expected_minutes"])
        self.assertEqual("Work session started for 25 min.", timer_event["message"])
        self.assertEqual(("running", "Work session running (25:00 remaining)", {}), self.ui.states[-1])
        self.assertIn(SESSION_END_SLOT, self.scheduler.jobs)

    def test_start_break_uses_break_minutes_and_task(self) -> None:
        task_id = self.repository.upsert_task(Task(title="Essay"))

        self.dispatcher.handle_command(
            {"action": "start", "session_type": "break", "task_id": str(task_id)}
        )

        snapshot = self.timer.snapshot()
        self.assertEqual(SessionType.BREAK, snapshot.session_type)
        self.assertEqual(5, snapshot.expected_minutes)
        self.assertEqual(task_id, snapshot.task_id)

    def test_rejected_timer_action_reports_reason(self) -> None:
        self.assertFalse(self.dispatcher.handle_command({"action": "pause"}))

        timer_event = self.ui.last("timer")
        self.assertFalse(timer_event["accepted"])
        self.assertEqual("not_running", timer_event["reason"])
        self.assertEqual("No session is running.", timer_event["message"])
        self.assertEqual("idle", self.ui.states[-1][0])

    def test_invalid_minutes_become_error_event(self) -> None:
        self.assertFalse(self.dispatcher.handle_command({"action": "start", "minutes": "soon"}))

        self.assertEqual(
            {"state": "error", "message": "minutes must be an integer", "action": "start"},
            self.ui.last("error"),
        )
        self.assertEqual("idle", self.timer.snapshot().phase)

    def test_set_session_type_requires_value(self) -> None:
        self.assertFalse(self.dispatcher.handle_command({"action": "set_session_type"}))
        self.assertEqual("session_type is required", self.ui.last("error")["message"])

        self.assertTrue(
            self.dispatcher.handle_command({"action": "set_session_type", "session_type": "BREAK"})
        )
        self.assertEqual(SessionType.BREAK, self.timer.snapshot().session_type)

    def test_unknown_and_missing_actions_publish_errors(self) -> None:
        self.assertFalse(self.dispatcher.handle_command({"action": "fly"}))
        self.assertEqual("Unsupported command: fly", self.ui.last("error")["message"])

        self.assertFalse(self.dispatcher.handle_command({"minutes": 5}))
        self.assertEqual("Command has no action", self.ui.last("error")["message"])

    def test_sync_publishes_current_timer(self) -> None:
        self.assertTrue(self.dispatcher.handle_command({"action": "sync"}))

        timer_event = self.ui.last("timer")
        self.assertEqual("sync", timer_event["action"])
        self.assertEqual(("idle", "Ready", {}), self.ui.states[-1])

    def test_enable_break_reminders_clamps_interval(self) -> None:
        self.assertTrue(
            self.dispatcher.handle_command(
                {"action": "enable_break_reminders", "interval_minutes": 5}
            )
        )

        self.assertEqual(15 * 60_000, self.scheduler.jobs[BREAK_REMINDER_SLOT][1])
        state, message, payload = self.ui.states[-1]
        self.assertEqual("Break reminders every 15 min", message)
        self.assertEqual({"break_reminders": True, "interval_minutes": 15}, payload)

        self.dispatcher.handle_command({"action": "disable_break_reminders"})
        self.assertNotIn(BREAK_REMINDER_SLOT, self.scheduler.jobs)
        self.assertEqual({"break_reminders": False}, self.ui.states[-1][2])

    def test_enable_break_reminders_defaults_to_config_interval(self) -> None:
        self.dispatcher.handle_command({"action": "enable_break_reminders"})

        self.assertEqual(30 * 60_000, self.scheduler.jobs[BREAK_REMINDER_SLOT][1])

    def test_add_task_persists_and_publishes_tasks(self) -> None:
        self.assertTrue(
            self.dispatcher.handle_command(
                {
                    "action": "add_task",
                    "title": "  Essay  ",
                    "expected_minutes": 50,
                    "alarm_on_completion": True,
                }
            )
        )

        tasks = self.ui.last("tasks")["tasks"]
        self.assertEqual(1, len(tasks))
        self.assertEqual("Essay", tasks[0]["title"])
        self.assertEqual(50, tasks[0]["expected_minutes"])
        self.assertTrue(tasks[0]["alarm_on_completion"])

    def test_add_task_validation(self) -> None:
        self.assertFalse(self.dispatcher.handle_command({"action": "add_task", "title": " "}))
        self.assertEqual("title is required", self.ui.last("error")["message"])

        self.assertFalse(
            self.dispatcher.handle_command(
                {"action": "add_task", "title": "Essay", "expected_minutes": -1}
            )
        )
        self.assertEqual("expected_minutes must be zero or more", self.ui.last("error")["message"])

        self.assertFalse(
            self.dispatcher.handle_command(
                {"action": "add_task", "title": "Essay", "expected_minutes": 10, "project_id": 9}
            )
        )
        self.assertEqual("Unknown project: 9", self.ui.last("error")["message"])
        self.assertEqual([], self.repository.list_tasks())

    def test_toggle_task_completes_with_alarm_then_reopens(self) -> None:
        task_id = self.repository.upsert_task(
            Task(title="Essay", expected_minutes=50, alarm_on_completion=True)
        )

        self.assertTrue(self.dispatcher.handle_command({"action": "toggle_task", "task_id": task_id}))
        completed = self.repository.get_task(task_id)
        self.assertTrue(completed.is_completed)
        self.assertEqual(T0 + 1_000, completed.completed_at_ms)
        self.assertEqual([(CHANNEL_TASK, "Task complete", "Essay finished")], self.notifier.sent)

        self.dispatcher.handle_command({"action": "toggle_task", "task_id": task_id})
        reopened = self.repository.get_task(task_id)
        self.assertFalse(reopened.is_completed)
        self.assertIsNone(reopened.completed_at_ms)
        self.assertEqual(1, len(self.notifier.sent))

    def test_toggle_unknown_task_is_rejected(self) -> None:
        self.assertFalse(self.dispatcher.handle_command({"action": "toggle_task", "task_id": 99}))
        self.assertEqual("Unknown task: 99", self.ui.last("error")["message"])

    def test_add_project_then_task_in_project(self) -> None:
        self.assertTrue(
            self.dispatcher.handle_command(
                {"action": "add_project", "name": "Thesis", "expected_minutes": 600}
            )
        )
        projects = self.ui.last("projects")["projects"]
        self.assertEqual("Thesis", projects[0]["name"])

        self.assertTrue(
            self.dispatcher.handle_command(
                {
                    "action": "add_task",
                    "title": "Outline",
                    "expected_minutes": 25,
                    "project_id": projects[0]["id"],
                }
            )
        )
        self.assertEqual(projects[0]["id"], self.ui.last("tasks")["tasks"][0]["project_id"])

    def test_enable_break_reminders_rejects_non_positive_interval(self) -> None:
        self.assertFalse(
            self.dispatcher.handle_command(
                {"action": "enable_break_reminders", "interval_minutes": 0}
            )
        )

        self.assertEqual("interval_minutes must be positive", self.ui.last("error")["message"])
        self.assertNotIn(BREAK_REMINDER_SLOT, self.scheduler.jobs)

    def test_delete_task_publishes_remaining_tasks(self) -> None:
        kept = self.repository.upsert_task(Task(title="Outline"))
        removed = self.repository.upsert_task(Task(title="Essay"))

        self.assertTrue(self.dispatcher.handle_command({"action": "delete_task", "task_id": removed}))

        self.assertIsNone(self.repository.get_task(removed))
        self.assertEqual([kept], [task["id"] for task in self.ui.last("tasks")["tasks"]])

    def test_delete_task_validation(self) -> None:
        self.assertFalse(self.dispatcher.handle_command({"action": "delete_task"}))
        self.assertEqual("task_id is required", self.ui.last("error")["message"])

        self.assertFalse(self.dispatcher.handle_command({"action": "delete_task", "task_id": 99}))
        self.assertEqual("Unknown task: 99", self.ui.last("error")["message"])

    def test_toggle_project_stamps_then_clears_completion(self) -> None:
        project_id = self.repository.upsert_project(Project(name="Thesis"))

        self.assertTrue(
            self.dispatcher.handle_command({"action": "toggle_project", "project_id": project_id})
        )
        completed = self.repository.get_project(project_id)
        self.assertTrue(completed.is_completed)
        self.assertEqual(T0 + 1_000, completed.completed_at_ms)
        self.assertTrue(self.ui.last("projects")["projects"][0]["is_completed"])

        self.dispatcher.handle_command({"action": "toggle_project", "project_id": project_id})
        reopened = self.repository.get_project(project_id)
        self.assertFalse(reopened.is_completed)
        self.assertIsNone(reopened.completed_at_ms)
        self.assertFalse(self.ui.last("projects")["projects"][0]["is_completed"])

    def test_toggle_unknown_project_is_rejected(self) -> None:
        self.assertFalse(self.dispatcher.handle_command({"action": "toggle_project", "project_id": 7}))
        self.assertEqual("Unknown project: 7", self.ui.last("error")["message"])

        self.assertFalse(self.dispatcher.handle_command({"action": "toggle_project"}))
        self.assertEqual("project_id is required", self.ui.last("error")["message"])

    def test_delete_project_removes_its_tasks_and_publishes_both_lists(self) -> None:
        project_id = self.repository.upsert_project(Project(name="Thesis"))
        self.repository.upsert_task(Task(title="Outline", project_id=project_id))
        loose = self.repository.upsert_task(Task(title="Email"))

        self.assertTrue(
            self.dispatcher.handle_command({"action": "delete_project", "project_id": project_id})
        )

        self.assertIsNone(self.repository.get_project(project_id))
        self.assertEqual([], self.ui.last("projects")["projects"])
        self.assertEqual([loose], [task["id"] for task in self.ui.last("tasks")["tasks"]])

    def test_delete_unknown_project_is_rejected(self) -> None:
        self.assertFalse(self.dispatcher.handle_command({"action": "delete_project", "project_id": 3}))
        self.assertEqual("Unknown project: 3", self.ui.last("error")["message"])

    def test_store_failure_becomes_error_event(self) -> None:
        dispatcher = self._dispatcher(_BrokenRepository())

        with self.assertLogs("test.runtime", level="ERROR"):
            self.assertFalse(dispatcher.handle_command({"action": "list_tasks"}))

        self.assertEqual(
            "Could not save changes: database is locked",
            self.ui.last("error")["message"],
        )


if __name__ == "__main__":
    unittest.main()
