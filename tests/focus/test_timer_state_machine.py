import unittest

from focus import DurableSnapshot, FocusTimer, SessionType, SnapshotPersistenceError
from focus.constants import BREAK_REMINDER_SLOT, JOB_SESSION_END, SESSION_END_SLOT

MINUTE = 60_000
T0 = 1_700_000_000_000


class _Clock:
    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class _SchedulerStub:
    def __init__(self, trace: list[str] | None = None):
        self.jobs: dict[str, dict[str, object]] = {}
        self.trace = trace if trace is not None else []

    def arm(self, slot, kind, fire_at_ms, payload=None):
        self.jobs[slot] = {"kind": kind, "fire_at_ms": fire_at_ms, "payload": dict(payload or {})}
        self.trace.append(f"arm:{slot}")

    def arm_periodic(self, slot, kind, period_ms, payload=None):
        self.jobs[slot] = {"kind": kind, "period_ms": period_ms, "payload": dict(payload or {})}
        self.trace.append(f"arm_periodic:{slot}")

    def cancel(self, slot):
        self.jobs.pop(slot, None)
        self.trace.append(f"cancel:{slot}")


class _SnapshotStoreStub:
    def __init__(self, stored: DurableSnapshot | None = None, trace: list[str] | None = None):
        self.stored = stored
        self.failures_left = 0
        self.write_attempts = 0
        self.trace = trace if trace is not None else []

    def write(self, snapshot: DurableSnapshot) -> None:
        self.write_attempts += 1
        if self.failures_left > 0:
            self.failures_left -= 1
            raise SnapshotPersistenceError("disk full")
        self.stored = snapshot
        self.trace.append("write")

    def read(self):
        return self.stored

    def clear(self) -> None:
        self.stored = None
        self.trace.append("clear")


def _build_timer(clock: _Clock, stored: DurableSnapshot | None = None):
    trace: list[str] = []
    scheduler = _SchedulerStub(trace)
    store = _SnapshotStoreStub(stored, trace)
    timer = FocusTimer(snapshot_store=store, scheduler=scheduler, now_ms_fn=clock)
    return timer, scheduler, store, trace


class FocusTimerTransitionTests(unittest.TestCase):
    def test_start_runs_persists_and_arms_completion(self) -> None:
        clock = _Clock()
        timer, scheduler, store, trace = _build_timer(clock)

        result = timer.start(25, task_id=7)

        self.assertTrue(result.accepted)
        self.assertEqual("running", result.snapshot.phase)
        self.assertEqual(25 * MINUTE, result.snapshot.remaining_ms)
        self.assertEqual(7, result.snapshot.task_id)
        self.assertEqual(["cancel:session_end_work", "write", "arm:session_end_work"], trace)

        job = scheduler.jobs[SESSION_END_SLOT]
        self.assertEqual(JOB_SESSION_END, job["kind"])
        self.assertEqual(T0 + 25 * MINUTE, job["fire_at_ms"])
        self.assertEqual(
            {
                "type": "WORK",
                "task_id": 7,
                "expected_minutes": 25,
                "start_ms": T0,
                "title": "",
                "message": "",
            },
            job["payload"],
        )
        self.assertTrue(store.stored.running)
        self.assertEqual(T0 + 25 * MINUTE, store.stored.end_ms)
        self.assertTrue(timer.is_ticking)

    def test_start_with_non_positive_minutes_is_rejected_without_side_effects(self) -> None:
        clock = _Clock()
        timer, scheduler, store, trace = _build_timer(clock)

        for minutes in (0, -5):
            result = timer.start(minutes)
            self.assertFalse(result.accepted)
            self.assertEqual("invalid_duration", result.reason)

        self.assertEqual("idle", timer.snapshot().phase)
        self.assertEqual({}, scheduler.jobs)
        self.assertIsNone(store.stored)
        self.assertEqual([], trace)

    def test_pause_and_resume_preserve_remaining_budget(self) -> None:
        clock = _Clock()
        timer, scheduler, store, _ = _build_timer(clock)
        timer.start(25)

        clock.advance(10 * MINUTE)
        paused = timer.pause()

        self.assertTrue(paused.accepted)
        self.assertEqual("paused", paused.snapshot.phase)
        self.assertEqual(15 * MINUTE, paused.snapshot.remaining_ms)
        self.assertNotIn(SESSION_END_SLOT, scheduler.jobs)
        self.assertFalse(store.stored.running)
        self.assertEqual(15 * MINUTE, store.stored.paused_remaining_ms)
        self.assertFalse(timer.is_ticking)

        clock.advance(10 * MINUTE)
        self.assertEqual(15 * MINUTE, timer.snapshot().remaining_ms)
        resumed = timer.resume()

        self.assertTrue(resumed.accepted)
        self.assertEqual("running", resumed.snapshot.phase)
        self.assertEqual(T0 + 35 * MINUTE, scheduler.jobs[SESSION_END_SLOT]["fire_at_ms"])
        self.assertEqual(T0 + 35 * MINUTE, store.stored.end_ms)
        self.assertEqual(25, store.stored.expected_minutes)

    def test_pause_requires_running_and_resume_requires_paused(self) -> None:
        clock = _Clock()
        timer, _, _, _ = _build_timer(clock)

        self.assertEqual("not_running", timer.pause().reason)
        self.assertEqual("not_paused", timer.resume().reason)

        timer.start(5)
        self.assertEqual("not_paused", timer.resume().reason)
        timer.pause()
        self.assertEqual("not_running", timer.pause().reason)

    def test_resume_rejected_when_paused_with_nothing_left(self) -> None:
        clock = _Clock()
        timer, scheduler, _, _ = _build_timer(clock)
        timer.start(1)
        clock.advance(2 * MINUTE)
        timer.pause()

        result = timer.resume()

        self.assertFalse(result.accepted)
        self.assertEqual("no_remaining", result.reason)
        self.assertEqual("paused", result.snapshot.phase)
        self.assertNotIn(SESSION_END_SLOT, scheduler.jobs)

    def test_cancel_clears_job_and_snapshot(self) -> None:
        clock = _Clock()
        timer, scheduler, store, _ = _build_timer(clock)
        timer.start(25, task_id=3)

        result = timer.cancel()

        self.assertTrue(result.accepted)
        self.assertEqual("idle", result.snapshot.phase)
        self.assertIsNone(result.snapshot.task_id)
        self.assertEqual({}, scheduler.jobs)
        self.assertIsNone(store.stored)
        self.assertFalse(timer.is_ticking)

    def test_cancel_when_idle_is_accepted(self) -> None:
        clock = _Clock()
        timer, _, _, trace = _build_timer(clock)

        result = timer.cancel()

        self.assertTrue(result.accepted)
        self.assertEqual(["cancel:session_end_work", "clear"], trace)

    def test_start_while_running_replaces_the_session(self) -> None:
        clock = _Clock()
        timer, scheduler, store, _ = _build_timer(clock)
        timer.start(25)
        clock.advance(MINUTE)

        timer.start(10, session_type=SessionType.BREAK)

        self.assertEqual(1, len(scheduler.jobs))
        self.assertEqual(T0 + 11 * MINUTE, scheduler.jobs[SESSION_END_SLOT]["fire_at_ms"])
        self.assertEqual("BREAK", scheduler.jobs[SESSION_END_SLOT]["payload"]["type"])
        self.assertEqual(SessionType.BREAK, store.stored.session_type)

    def test_session_type_selection_only_while_idle(self) -> None:
        clock = _Clock()
        timer, scheduler, _, _ = _build_timer(clock)

        selected = timer.set_session_type(SessionType.BREAK)
        self.assertTrue(selected.accepted)
        timer.start(5)
        self.assertEqual("BREAK", scheduler.jobs[SESSION_END_SLOT]["payload"]["type"])

        rejected = timer.set_session_type(SessionType.WORK)
        self.assertFalse(rejected.accepted)
        self.assertEqual("session_active", rejected.reason)
        self.assertEqual(SessionType.BREAK, timer.snapshot().session_type)


class FocusTimerTickTests(unittest.TestCase):
    def test_tick_emits_once_per_displayed_second(self) -> None:
        clock = _Clock()
        timer, _, _, _ = _build_timer(clock)
        timer.start(1)

        first = timer.tick()
        repeat = timer.tick()
        clock.advance(400)
        same_second = timer.tick()
        clock.advance(600)
        next_second = timer.tick()

        self.assertIsNotNone(first)
        self.assertEqual(60_000, first.snapshot.remaining_ms)
        self.assertIsNone(repeat)
        self.assertIsNone(same_second)
        self.assertIsNotNone(next_second)
        self.assertEqual(59_000, next_second.snapshot.remaining_ms)
        self.assertFalse(next_second.completed)

    def test_tick_at_zero_completes_locally_but_keeps_scheduled_job(self) -> None:
        clock = _Clock()
        timer, scheduler, store, _ = _build_timer(clock)
        timer.start(1, task_id=4)

        clock.advance(MINUTE)
        tick = timer.tick()

        self.assertIsNotNone(tick)
        self.assertTrue(tick.completed)
        self.assertEqual("idle", tick.snapshot.phase)
        self.assertEqual(4, tick.snapshot.task_id)
        self.assertEqual(1, tick.snapshot.expected_minutes)
        self.assertEqual("idle", timer.snapshot().phase)
        self.assertIsNone(store.stored)
        # Completion side effects stay with the scheduled job.
        self.assertIn(SESSION_END_SLOT, scheduler.jobs)
        self.assertIsNone(timer.tick())

    def test_tick_returns_none_when_not_running(self) -> None:
        clock = _Clock()
        timer, _, _, _ = _build_timer(clock)
        self.assertIsNone(timer.tick())
        timer.start(5)
        timer.pause()
        self.assertIsNone(timer.tick())


class FocusTimerPersistenceTests(unittest.TestCase):
    def test_snapshot_write_is_retried_once(self) -> None:
        clock = _Clock()
        timer, scheduler, store, _ = _build_timer(clock)
        store.failures_left = 1

        with self.assertLogs("focus.timer", level="WARNING"):
            result = timer.start(25)

        self.assertTrue(result.accepted)
        self.assertEqual(2, store.write_attempts)
        self.assertIsNotNone(store.stored)
        self.assertIn(SESSION_END_SLOT, scheduler.jobs)

    def test_persistent_write_failure_is_logged_not_raised(self) -> None:
        clock = _Clock()
        timer, scheduler, store, _ = _build_timer(clock)
        store.failures_left = 2

        with self.assertLogs("focus.timer", level="ERROR") as logs:
            result = timer.start(25)

        self.assertTrue(result.accepted)
        self.assertEqual("running", timer.snapshot().phase)
        self.assertIn(SESSION_END_SLOT, scheduler.jobs)
        self.assertTrue(any("not persisted" in line for line in logs.output))


class FocusTimerRestoreTests(unittest.TestCase):
    def test_restore_running_session_rearms_at_stored_end(self) -> None:
        clock = _Clock(T0 + 5 * MINUTE)
        stored = DurableSnapshot(
            running=True,
            start_ms=T0,
            end_ms=T0 + 25 * MINUTE,
            expected_minutes=25,
            session_type=SessionType.WORK,
            task_id=9,
        )
        timer, scheduler, _, _ = _build_timer(clock, stored)

        result = timer.restore_on_start()

        self.assertTrue(result.accepted)
        self.assertEqual("restored_running", result.reason)
        self.assertEqual("running", result.snapshot.phase)
        self.assertEqual(20 * MINUTE, result.snapshot.remaining_ms)
        self.assertEqual(9, result.snapshot.task_id)
        self.assertEqual(T0 + 25 * MINUTE, scheduler.jobs[SESSION_END_SLOT]["fire_at_ms"])
        self.assertEqual(T0, scheduler.jobs[SESSION_END_SLOT]["payload"]["start_ms"])
        self.assertTrue(timer.is_ticking)

    def test_restore_expired_session_goes_idle_and_leaves_job_alone(self) -> None:
        clock = _Clock(T0 + 30 * MINUTE)
        stored = DurableSnapshot(
            running=True,
            start_ms=T0,
            end_ms=T0 + 25 * MINUTE,
            expected_minutes=25,
            session_type=SessionType.BREAK,
        )
        timer, _, store, trace = _build_timer(clock, stored)

        result = timer.restore_on_start()

        self.assertEqual("restored_expired", result.reason)
        self.assertEqual("idle", result.snapshot.phase)
        self.assertEqual(SessionType.BREAK, result.snapshot.session_type)
        self.assertIsNone(store.stored)
        self.assertEqual(["clear"], trace)

    def test_restore_paused_session_keeps_remainder_without_job(self) -> None:
        clock = _Clock(T0 + 60 * MINUTE)
        stored = DurableSnapshot(
            running=False,
            start_ms=T0,
            end_ms=T0 + 25 * MINUTE,
            expected_minutes=25,
            session_type=SessionType.WORK,
            paused_remaining_ms=12 * MINUTE,
        )
        timer, scheduler, _, trace = _build_timer(clock, stored)

        result = timer.restore_on_start()

        self.assertEqual("restored_paused", result.reason)
        self.assertEqual("paused", result.snapshot.phase)
        self.assertEqual(12 * MINUTE, result.snapshot.remaining_ms)
        self.assertEqual(["cancel:session_end_work"], trace)
        self.assertEqual({}, scheduler.jobs)
        self.assertFalse(timer.is_ticking)

    def test_restore_without_snapshot_is_a_no_op(self) -> None:
        clock = _Clock()
        timer, _, _, trace = _build_timer(clock)

        result = timer.restore_on_start()

        self.assertFalse(result.accepted)
        self.assertEqual("nothing_to_restore", result.reason)
        self.assertEqual("idle", result.snapshot.phase)
        self.assertEqual([], trace)


class BreakReminderTests(unittest.TestCase):
    def test_interval_is_clamped_to_fifteen_minutes(self) -> None:
        clock = _Clock()
        timer, scheduler, _, _ = _build_timer(clock)

        effective = timer.enable_break_reminders(5)

        self.assertEqual(15, effective)
        self.assertEqual(15 * MINUTE, scheduler.jobs[BREAK_REMINDER_SLOT]["period_ms"])

    def test_invalid_interval_is_rejected_without_arming(self) -> None:
        clock = _Clock()
        timer, scheduler, _, _ = _build_timer(clock)

        for interval in (0, -5, True, "30", 12.5, None):
            with self.subTest(interval=interval):
                self.assertIsNone(timer.enable_break_reminders(interval))

        self.assertNotIn(BREAK_REMINDER_SLOT, scheduler.jobs)

    def test_enable_replaces_and_disable_cancels(self) -> None:
        clock = _Clock()
        timer, scheduler, _, _ = _build_timer(clock)

        timer.enable_break_reminders(20)
        timer.enable_break_reminders(45)
        self.assertEqual(45 * MINUTE, scheduler.jobs[BREAK_REMINDER_SLOT]["period_ms"])

        timer.disable_break_reminders()
        self.assertNotIn(BREAK_REMINDER_SLOT, scheduler.jobs)


if __name__ == "__main__":
    unittest.main()
