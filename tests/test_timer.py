import os
import tempfile
import time
import unittest
from datetime import datetime
from unittest.mock import Mock

from focusflow.clock import day_key
from focusflow.progression import compute_progression
from focusflow.state import StudyState
from focusflow.store import JsonDocumentStore
from focusflow.timer import BREAK, IDLE, ModeKind, TimerEngine, TimerEngineConfig, TimerMode


class FakeClock:
    def __init__(self, start: float) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


BASE = datetime(2026, 3, 10, 9, 0, 0).timestamp()
TODAY = "2026-03-10"


def make_engine(clock, store=None):
    return TimerEngine(store=store, clock=clock, state=StudyState.default(day_key(clock())))


class TestAccrual(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(BASE)
        self.engine = make_engine(self.clock)

    def run_ticks(self, n):
        for _ in range(n):
            self.clock.advance(1)
            self.engine.tick()

    def test_focus_session_accrues_into_subject_and_ledger(self):
        self.assertTrue(self.engine.start_focus("maths"))
        self.run_ticks(1500)

        self.assertEqual(self.engine.subject_seconds("maths"), 1500)
        entry = self.engine.today_entry()
        self.assertEqual(entry.focus_seconds, 1500)
        self.assertEqual(entry.per_subject, {"maths": 1500})
        self.assertEqual(entry.break_seconds, 0)

        registry, ledger = self.engine.snapshot()
        snap = compute_progression(registry, ledger, TODAY)
        self.assertEqual(snap.lifetime_minutes, 25)
        self.assertEqual(snap.xp, 300)
        self.assertEqual(snap.level, 2)
        self.assertEqual(snap.xp_into_level, 60)
        self.assertEqual(snap.xp_for_next, 600)

    def test_focus_total_matches_per_subject_after_every_tick(self):
        self.engine.start_focus("maths")
        for i in range(30):
            if i == 10:
                self.engine.start_focus("science")
            if i == 20:
                self.engine.start_break()
            self.clock.advance(1)
            self.engine.tick()
            entry = self.engine.today_entry()
            self.assertEqual(entry.focus_seconds, sum(entry.per_subject.values()))
        entry = self.engine.today_entry()
        self.assertEqual(entry.per_subject, {"maths": 10, "science": 10})
        self.assertEqual(entry.break_seconds, 10)

    def test_break_does_not_touch_subjects(self):
        self.engine.start_break()
        previous = 0
        for _ in range(5):
            self.clock.advance(1)
            self.engine.tick()
            entry = self.engine.today_entry()
            self.assertGreater(entry.break_seconds, previous)
            previous = entry.break_seconds
        self.assertEqual(self.engine.subject_seconds("maths"), 0)
        self.assertEqual(self.engine.subject_seconds("science"), 0)
        self.assertEqual(self.engine.break_seconds, 5)
        self.assertEqual(self.engine.today_entry().focus_seconds, 0)

    def test_idle_ticks_accrue_nothing(self):
        self.clock.advance(5)
        self.assertEqual(self.engine.tick(), 0)
        self.assertEqual(self.engine.today_entry().focus_seconds, 0)

    def test_stalled_or_backwards_clock_credits_one_second(self):
        self.engine.start_focus("maths")
        self.assertEqual(self.engine.tick(), 1)
        self.clock.advance(-10)
        self.assertEqual(self.engine.tick(), 1)
        self.assertEqual(self.engine.subject_seconds("maths"), 2)

    def test_large_gap_is_applied_in_one_tick(self):
        self.engine.start_focus("maths")
        self.clock.advance(7.9)
        self.assertEqual(self.engine.tick(), 7)

    def test_midnight_splits_accrual_across_days(self):
        clock = FakeClock(datetime(2026, 3, 10, 23, 59, 57).timestamp())
        engine = make_engine(clock)
        engine.start_focus("maths")
        for _ in range(4):
            clock.advance(1)
            engine.tick()
        ledger = engine.ledger
        self.assertEqual(ledger.get("2026-03-10").focus_seconds, 2)
        self.assertEqual(ledger.get("2026-03-11").focus_seconds, 2)
        self.assertEqual(engine.subject_seconds("maths"), 4)

    def test_new_day_restarts_legacy_break_counter(self):
        clock = FakeClock(datetime(2026, 3, 10, 23, 59, 58).timestamp())
        engine = make_engine(clock)
        engine.start_break()
        clock.advance(1)
        engine.tick()
        self.assertEqual(engine.break_seconds, 1)
        clock.advance(2)
        engine.tick()
        self.assertEqual(engine.break_seconds, 2)
        self.assertEqual(engine.ledger.get("2026-03-10").break_seconds, 1)


class TestModes(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(BASE)
        self.engine = make_engine(self.clock)

    def test_start_focus_is_idempotent(self):
        self.engine.start_focus("maths")
        self.assertTrue(self.engine.start_focus("maths"))
        self.assertEqual(self.engine.mode, TimerMode.running("maths"))
        self.clock.advance(1)
        self.engine.tick()
        self.assertEqual(self.engine.subject_seconds("maths"), 1)
        self.assertEqual(len(self.engine.ledger.sessions), 1)

    def test_unknown_subject_is_ignored(self):
        self.assertFalse(self.engine.start_focus("history"))
        self.assertEqual(self.engine.mode, IDLE)
        self.assertFalse(self.engine.toggle("history"))
        self.assertFalse(self.engine.reset("history"))
        self.assertFalse(self.engine.remove_subject("history"))
        self.assertEqual(self.engine.mode, IDLE)

    def test_start_break_twice_goes_idle(self):
        self.engine.start_break()
        self.assertEqual(self.engine.mode, BREAK)
        self.engine.start_break()
        self.assertEqual(self.engine.mode, IDLE)

    def test_pause_while_focusing_starts_a_break(self):
        self.engine.start_focus("maths")
        self.engine.pause()
        self.assertTrue(self.engine.is_break_active)
        self.assertEqual(self.engine.last_subject_id, "maths")
        self.engine.pause()
        self.assertEqual(self.engine.mode.kind, ModeKind.IDLE)
        self.assertTrue(self.engine.resume())
        self.assertEqual(self.engine.active_subject_id, "maths")

    def test_resume_without_history_is_noop(self):
        self.assertFalse(self.engine.resume())
        self.assertFalse(self.engine.is_running)

    def test_toggle(self):
        self.engine.toggle("maths")
        self.assertEqual(self.engine.active_subject_id, "maths")
        self.engine.toggle("science")
        self.assertEqual(self.engine.active_subject_id, "science")
        self.engine.toggle("science")
        self.assertFalse(self.engine.is_running)

    def test_mode_change_flushes_whole_elapsed_seconds(self):
        self.engine.start_focus("maths")
        self.clock.advance(2.5)
        self.engine.start_break()
        self.assertEqual(self.engine.subject_seconds("maths"), 2)
        self.clock.advance(1)
        self.engine.tick()
        self.assertEqual(self.engine.today_entry().break_seconds, 1)
        self.assertEqual(self.engine.subject_seconds("maths"), 2)

    def test_removing_running_subject_goes_idle(self):
        self.engine.start_focus("maths")
        self.clock.advance(1)
        self.engine.tick()
        self.assertTrue(self.engine.remove_subject("maths"))
        self.assertEqual(self.engine.mode, IDLE)
        self.assertIsNone(self.engine.last_subject_id)
        before = self.engine.today_entry()
        for _ in range(3):
            self.clock.advance(1)
            self.assertEqual(self.engine.tick(), 0)
        self.assertEqual(self.engine.today_entry(), before)
        # history stays behind for the removed subject
        self.assertEqual(before.per_subject["maths"], 1)

    def test_reset_running_subject(self):
        self.engine.start_focus("maths")
        for _ in range(3):
            self.clock.advance(1)
            self.engine.tick()
        self.engine.reset("maths")
        self.assertEqual(self.engine.subject_seconds("maths"), 0)
        self.assertFalse(self.engine.is_running)
        self.assertEqual(self.engine.today_entry().focus_seconds, 3)

    def test_reset_other_subject_keeps_running(self):
        self.engine.start_focus("maths")
        self.engine.reset("science")
        self.assertEqual(self.engine.active_subject_id, "maths")

    def test_reset_all_keeps_history(self):
        self.engine.start_focus("maths")
        self.clock.advance(1)
        self.engine.tick()
        self.engine.start_break()
        self.clock.advance(1)
        self.engine.tick()
        self.engine.reset_all()
        self.assertFalse(self.engine.is_running)
        self.assertEqual(self.engine.total_focus_seconds, 0)
        self.assertEqual(self.engine.break_seconds, 0)
        self.assertIsNone(self.engine.last_subject_id)
        entry = self.engine.today_entry()
        self.assertEqual((entry.focus_seconds, entry.break_seconds), (1, 1))

    def test_sessions_are_recorded_per_focus_run(self):
        self.engine.start_focus("maths")
        self.clock.advance(1)
        self.engine.tick()
        self.engine.start_focus("science")  # zero-second run is dropped on close
        self.engine.start_focus("maths")
        self.clock.advance(2)
        self.engine.tick()
        self.engine.start_break()
        sessions = self.engine.ledger.sessions
        self.assertEqual([(s.subject_id, s.seconds) for s in sessions], [("maths", 1), ("maths", 2)])


class TestSubjectsAndTodos(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(BASE)
        self.engine = make_engine(self.clock)

    def test_add_update_subject(self):
        subject = self.engine.add_subject("  History ", "aabbcc")
        self.assertEqual(subject.name, "History")
        self.assertEqual(subject.color, "#aabbcc")
        self.assertEqual(self.engine.subjects[0].id, subject.id)
        self.assertIsNone(self.engine.add_subject("   "))
        self.assertTrue(self.engine.update_subject(subject.id, name="World History"))
        self.assertEqual(self.engine.get_subject(subject.id).name, "World History")
        self.assertFalse(self.engine.update_subject("nope", name="x"))

    def test_todos_are_independent_of_mode(self):
        self.engine.start_focus("maths")
        todo = self.engine.add_todo("maths", "Chapter 3")
        self.assertIsNotNone(todo)
        self.assertTrue(self.engine.toggle_todo("maths", todo.id))
        self.assertTrue(self.engine.get_subject("maths").todos[0].completed)
        self.assertFalse(self.engine.toggle_todo("science", todo.id))
        self.assertTrue(self.engine.remove_todo("maths", todo.id))
        self.assertFalse(self.engine.remove_todo("maths", todo.id))
        self.assertIsNone(self.engine.add_todo("nope", "text"))
        self.assertEqual(self.engine.active_subject_id, "maths")

    def test_returned_subjects_are_copies(self):
        self.engine.subjects[0].total_seconds = 999
        self.assertEqual(self.engine.subject_seconds(self.engine.subjects[0].id), 0)


class TestPersistenceAndListeners(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(BASE)

    def test_write_through_after_mutations(self):
        store = Mock()
        engine = make_engine(self.clock, store=store)
        engine.start_focus("maths")
        self.assertEqual(store.save.call_count, 1)
        self.clock.advance(1)
        engine.tick()
        self.assertEqual(store.save.call_count, 2)
        doc = store.save.call_args[0][0]
        self.assertEqual(doc["history"][TODAY]["perSubject"], {"maths": 1})

    def test_round_trip_through_store(self):
        with tempfile.TemporaryDirectory() as tmp:
            store = JsonDocumentStore(os.path.join(tmp, "state.json"))
            engine = TimerEngine(store=store, clock=self.clock)
            engine.add_todo("maths", "Derivatives")
            engine.start_focus("science")
            for _ in range(5):
                self.clock.advance(1)
                engine.tick()
            engine.start_break()
            self.clock.advance(1)
            engine.tick()

            reloaded = TimerEngine(store=JsonDocumentStore(store.path), clock=self.clock)
            self.assertEqual(
                [s.to_dict() for s in reloaded.subjects], [s.to_dict() for s in engine.subjects]
            )
            self.assertEqual(reloaded.ledger.entries, engine.ledger.entries)
            self.assertEqual(reloaded.break_seconds, 1)
            self.assertFalse(reloaded.is_running)

    def test_save_failure_keeps_memory_state(self):
        with tempfile.TemporaryDirectory() as tmp:
            # a directory in place of the file makes every save fail
            path = os.path.join(tmp, "state.json")
            os.mkdir(path)
            store = JsonDocumentStore(path)
            engine = make_engine(self.clock, store=store)
            with self.assertLogs("focusflow.store", level="WARNING"):
                engine.start_focus("maths")
                self.clock.advance(1)
                engine.tick()
            self.assertEqual(engine.subject_seconds("maths"), 1)

    def test_listener_errors_do_not_propagate(self):
        engine = make_engine(self.clock)
        seen = []
        engine.on_change(Mock(side_effect=RuntimeError("boom")))
        engine.on_change(lambda e: seen.append(e.mode))
        with self.assertLogs("focusflow.timer", level="WARNING"):
            engine.start_focus("maths")
        self.assertEqual(seen, [TimerMode.running("maths")])


class TestTickSource(unittest.TestCase):
    def test_stop_flushes_pending_and_is_idempotent(self):
        clock = FakeClock(BASE)
        engine = make_engine(clock)
        engine.start_focus("maths")
        clock.advance(3.2)
        engine.stop()
        self.assertEqual(engine.subject_seconds("maths"), 3)
        engine.stop()
        self.assertEqual(engine.subject_seconds("maths"), 3)
        self.assertFalse(engine.ticking)

    def test_ticker_thread_drives_accrual(self):
        engine = TimerEngine(cfg=TimerEngineConfig(tick_seconds=0.05), state=StudyState.default())
        engine.start_focus("maths")
        engine.start()
        engine.start()  # second start is a no-op
        self.assertTrue(engine.ticking)
        time.sleep(0.3)
        engine.stop()
        self.assertFalse(engine.ticking)
        seconds = engine.subject_seconds("maths")
        self.assertGreaterEqual(seconds, 1)
        time.sleep(0.1)
        self.assertEqual(engine.subject_seconds("maths"), seconds)


if __name__ == "__main__":
    unittest.main()
