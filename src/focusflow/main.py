from __future__ import annotations

import argparse
import sys
import threading
from typing import Callable, List, Optional

from . import notifier as base_notifier
from .achievements import Achievement, AchievementTracker
from .clock import Clock, fmt_hms, system_clock
from .config import FocusFlowConfig
from .logs import setup_logger
from .progression import (
    ProgressionSnapshot,
    QuestProgress,
    SubjectSummary,
    compute_progression,
    default_quests,
    evaluate_quests,
    summarize_subjects,
)
from .stats import StudyStats, build_study_stats
from .store import JsonDocumentStore
from .subjects import Subject
from .timer import TimerEngine, TimerEngineConfig


class FocusFlowApp:
    """Wires the timer engine, achievement tracker and notifications together."""

    def __init__(
        self,
        cfg: Optional[FocusFlowConfig] = None,
        *,
        clock: Clock = system_clock,
        notify: Optional[Callable[[str, str], object]] = None,
    ) -> None:
        self.cfg = cfg or FocusFlowConfig.from_env()
        self._clock = clock
        self._notify = notify or (lambda title, msg: base_notifier.notify(title, msg, timeout=6))
        self._check_lock = threading.Lock()
        self._stop_event = threading.Event()

        self.engine = TimerEngine(
            JsonDocumentStore(self.cfg.state_path),
            TimerEngineConfig(tick_seconds=self.cfg.tick_seconds),
            clock=clock,
        )
        self.achievements = AchievementTracker(JsonDocumentStore(self.cfg.achievements_path), clock=clock)
        if self.cfg.notifications:
            self.achievements.on_unlock(self._announce)
        self.engine.on_change(lambda _engine: self.refresh_achievements())

    # ---------- Derived views ----------
    def stats(self) -> StudyStats:
        registry, ledger = self.engine.snapshot()
        return build_study_stats(registry, ledger, self.engine.today(), self.cfg.daily_target_minutes)

    def progression(self) -> ProgressionSnapshot:
        registry, ledger = self.engine.snapshot()
        return compute_progression(registry, ledger, self.engine.today())

    def quests(self) -> List[QuestProgress]:
        registry, ledger = self.engine.snapshot()
        return evaluate_quests(registry, ledger, self.engine.today(), default_quests(self.cfg.daily_target_minutes))

    def subject_summaries(self) -> List[SubjectSummary]:
        registry, ledger = self.engine.snapshot()
        return summarize_subjects(registry, ledger, self.engine.today())

    def refresh_achievements(self) -> List[Achievement]:
        with self._check_lock:
            return self.achievements.check_achievements(self.stats())

    def resolve_subject(self, ref: str) -> Optional[Subject]:
        """Find a subject by id, falling back to a case-insensitive name match."""
        subject = self.engine.get_subject(ref)
        if subject is not None:
            return subject
        ref_l = ref.strip().casefold()
        return next((s for s in self.engine.subjects if s.name.casefold() == ref_l), None)

    # ---------- Foreground sessions ----------
    def run_session(
        self,
        subject_id: Optional[str] = None,
        minutes: Optional[float] = None,
        wait: Optional[Callable[[Optional[float]], object]] = None,
    ) -> bool:
        """Run a focus session (or a break when no subject is given) until time is up or interrupted."""
        started = self.engine.start_focus(subject_id) if subject_id else self._enter_break()
        if not started:
            return False
        waiter = wait or self._stop_event.wait
        self.engine.start()
        try:
            waiter(minutes * 60 if minutes is not None else None)
        except KeyboardInterrupt:
            pass
        finally:
            self.engine.stop()
            self._go_idle()
        return True

    def request_stop(self) -> None:
        self._stop_event.set()

    def shutdown(self) -> None:
        self.engine.stop()

    # ---------- Internals ----------
    def _enter_break(self) -> bool:
        if not self.engine.is_break_active:
            self.engine.start_break()
        return True

    def _go_idle(self) -> None:
        if self.engine.is_break_active:
            self.engine.start_break()
        elif self.engine.active_subject_id is not None:
            self.engine.toggle(self.engine.active_subject_id)

    def _announce(self, achievement: Achievement) -> None:
        self._notify("Achievement unlocked", f"{achievement.definition.icon} {achievement.name}")


# ---------------------------- CLI ----------------------------


def _print_status(app: FocusFlowApp) -> None:
    engine = app.engine
    if engine.is_break_active:
        mode = "on a break"
    elif engine.active_subject_id:
        subject = engine.get_subject(engine.active_subject_id)
        mode = f"focusing on {subject.name if subject else engine.active_subject_id}"
    else:
        mode = "idle"
    today = engine.today_entry()
    snap = app.progression()
    print(f"Mode: {mode}")
    print(f"Today: focus {fmt_hms(today.focus_seconds)}, break {fmt_hms(today.break_seconds)}")
    print(f"Lifetime focus: {fmt_hms(engine.total_focus_seconds)}")
    print(
        f"Level {snap.level} ({snap.tier}): {snap.xp_into_level}/{snap.xp_for_next} XP, "
        f"{snap.xp_to_next} to next"
    )
    print(f"Streak: {snap.streak} day(s)")


def _print_subjects(app: FocusFlowApp) -> None:
    summaries = {s.id: s for s in app.subject_summaries()}
    for subject in app.engine.subjects:
        summary = summaries.get(subject.id)
        today_min = summary.today_minutes if summary else 0
        print(f"{subject.id}  {subject.name:<20} {subject.color}  {fmt_hms(subject.total_seconds)}  today {today_min} min")
        for todo in subject.todos:
            print(f"    [{'x' if todo.completed else ' '}] {todo.id}  {todo.text}")


def _print_quests(app: FocusFlowApp) -> None:
    for q in app.quests():
        mark = "done" if q.complete else f"{q.progress_pct:.0%}"
        print(f"{q.quest.title:<40} {q.value}/{q.quest.target} {q.quest.unit}  [{mark}]  reward: {q.quest.reward}")


def _print_achievements(app: FocusFlowApp) -> None:
    app.refresh_achievements()
    print("Unlocked:")
    for a in app.achievements.unlocked:
        print(f"  {a.definition.icon} {a.name} ({a.tier.label}) - {a.unlocked_at}")
    print("Locked:")
    for a in app.achievements.locked:
        print(f"  {a.name} ({a.tier.label}) {a.progress}/{a.target} - {a.definition.description}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="focusflow", description="Study timer with XP, streaks and achievements.")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show timer mode, today's totals and level")
    sub.add_parser("subjects", help="List subjects and their todos")
    sub.add_parser("quests", help="Show quest progress")
    sub.add_parser("achievements", help="Show locked and unlocked achievements")

    p = sub.add_parser("add-subject", help="Create a subject")
    p.add_argument("name")
    p.add_argument("--color")

    p = sub.add_parser("rename-subject", help="Change a subject's name or color")
    p.add_argument("subject")
    p.add_argument("--name")
    p.add_argument("--color")

    p = sub.add_parser("remove-subject", help="Delete a subject and its todos")
    p.add_argument("subject")

    p = sub.add_parser("reset", help="Zero a subject's lifetime seconds")
    p.add_argument("subject", nargs="?")
    p.add_argument("--all", action="store_true", help="Reset every subject and today's break total")

    p = sub.add_parser("todo", help="Manage a subject's todos")
    p.add_argument("action", choices=["add", "toggle", "remove"])
    p.add_argument("subject")
    p.add_argument("value", help="Todo text for 'add', todo id otherwise")

    p = sub.add_parser("focus", help="Run a focus session in the foreground")
    p.add_argument("subject")
    p.add_argument("--minutes", type=float)

    p = sub.add_parser("break", help="Run a break in the foreground")
    p.add_argument("--minutes", type=float)

    p = sub.add_parser("chart", help="Plot focus history")
    p.add_argument("--days", type=int, default=14)
    p.add_argument("--subjects", action="store_true", help="Plot the per-subject breakdown instead")
    return parser


def _fail(message: str) -> int:
    print(message, file=sys.stderr)
    return 1


def run_command(app: FocusFlowApp, args: argparse.Namespace) -> int:
    minutes = getattr(args, "minutes", None)
    if minutes is not None and not 0 < minutes < float("inf"):
        return _fail("--minutes must be a positive number")
    command = args.command or "status"
    engine = app.engine

    if command == "status":
        _print_status(app)
    elif command == "subjects":
        _print_subjects(app)
    elif command == "quests":
        _print_quests(app)
    elif command == "achievements":
        _print_achievements(app)
    elif command == "add-subject":
        subject = engine.add_subject(args.name, args.color)
        if subject is None:
            return _fail("Subject name must not be blank")
        print(f"Added {subject.name} ({subject.id})")
    elif command == "chart":
        from . import plotter

        if args.subjects:
            plotter.show_subject_breakdown(app.subject_summaries())
        else:
            plotter.show_focus_history(engine.ledger, days=args.days, today=engine.today())
    elif command == "break":
        app.run_session(None, args.minutes)
        _print_status(app)
    elif command == "reset" and args.all:
        engine.reset_all()
        print("All subjects reset")
    else:
        if not getattr(args, "subject", None):
            return _fail("A subject is required")
        subject = app.resolve_subject(args.subject)
        if subject is None:
            return _fail(f"Unknown subject: {args.subject}")
        if command == "rename-subject":
            engine.update_subject(subject.id, name=args.name, color=args.color)
        elif command == "remove-subject":
            engine.remove_subject(subject.id)
            print(f"Removed {subject.name}")
        elif command == "reset":
            engine.reset(subject.id)
            print(f"Reset {subject.name}")
        elif command == "focus":
            app.run_session(subject.id, args.minutes)
            _print_status(app)
        elif command == "todo":
            if args.action == "add":
                todo = engine.add_todo(subject.id, args.value)
                if todo is None:
                    return _fail("Todo text must not be blank")
                print(f"Added todo {todo.id}")
            elif args.action == "toggle":
                if not engine.toggle_todo(subject.id, args.value):
                    return _fail(f"Unknown todo: {args.value}")
            elif not engine.remove_todo(subject.id, args.value):
                return _fail(f"Unknown todo: {args.value}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = FocusFlowConfig.from_env()
    setup_logger("focusflow", log_file=cfg.log_path, level=cfg.level)
    app = FocusFlowApp(cfg)
    try:
        return run_command(app, args)
    finally:
        app.shutdown()


if __name__ == "__main__":
    sys.exit(main())
