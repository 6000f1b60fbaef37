"""
Study timer engine for FocusFlow.

A single-active-timer state machine that accrues wall-clock seconds against a
subject or a break and writes them into the subject registry and the
date-keyed ledger it owns.

Modes:
    IDLE <-> RUNNING(subject) <-> BREAK
    Pausing a focus run is modeled as starting a break; pausing a break goes idle.

Accrual:
- Each tick applies ``max(1, floor(now - last_tick))`` seconds to the current
  mode's target, so clock stalls or out-of-order ticks still credit one second.
- The day key is recomputed per tick; a run crossing local midnight splits
  across two ledger entries.
- Mode changes first flush whole seconds already elapsed under the old mode.

Threading:
- ``start()`` runs one daemon ticker; ticks and commands share one lock, so no
  two ticks ever overlap. ``stop()`` is idempotent and applies pending whole
  seconds before returning.
- Every applied mutation is saved write-through, then listeners registered via
  ``on_change`` are called outside the lock.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .clock import Clock, day_key, system_clock
from .ledger import LedgerEntry, SessionRecord, TimeLedger
from .state import StudyState
from .store import JsonDocumentStore
from .subjects import Subject, SubjectRegistry, Todo

logger = logging.getLogger(__name__)


class ModeKind(str, Enum):
    IDLE = "idle"
    SUBJECT = "subject"
    BREAK = "break"


@dataclass(frozen=True)
class TimerMode:
    kind: ModeKind = ModeKind.IDLE
    subject_id: Optional[str] = None

    @classmethod
    def running(cls, subject_id: str) -> "TimerMode":
        return cls(ModeKind.SUBJECT, subject_id)

    def __str__(self) -> str:
        if self.kind is ModeKind.SUBJECT:
            return f"subject:{self.subject_id}"
        return self.kind.value


IDLE = TimerMode()
BREAK = TimerMode(ModeKind.BREAK)


@dataclass
class TimerEngineConfig:
    tick_seconds: float = 1.0  # nominal tick cadence


class TimerEngine:
    """Owns the subject registry and time ledger; the only writer of both."""

    def __init__(
        self,
        store: Optional[JsonDocumentStore] = None,
        cfg: Optional[TimerEngineConfig] = None,
        clock: Clock = system_clock,
        state: Optional[StudyState] = None,
    ) -> None:
        self.cfg = cfg or TimerEngineConfig()
        self._store = store
        self._clock = clock
        if state is None:
            raw = store.load() if store is not None else None
            state = StudyState.from_document(raw, today=day_key(clock()))
        self._state = state

        # Internal state
        self._mode: TimerMode = IDLE
        self._last_tick: float = clock()
        self._last_subject_id: Optional[str] = None
        self._session: Optional[SessionRecord] = None
        self._lock = threading.RLock()

        # Ticker thread control
        self._stop_event = threading.Event()
        self._ticker: Optional[threading.Thread] = None
        self._listeners: List[Callable[["TimerEngine"], None]] = []

    # ---------- Mode commands ----------
    def start_focus(self, subject_id: str) -> bool:
        """Run the timer on ``subject_id``. Returns False if the subject does not exist."""
        with self._lock:
            if self._state.subjects.get(subject_id) is None:
                return False
            self._last_subject_id = subject_id
            if self._mode == TimerMode.running(subject_id):
                return True
            self._set_mode(TimerMode.running(subject_id))
            self._persist()
        self._emit()
        return True

    def start_break(self) -> bool:
        """Enter a break; when a break is already running, go idle instead."""
        with self._lock:
            if self._mode.kind is ModeKind.BREAK:
                self._set_mode(IDLE)
            else:
                self._set_mode(BREAK)
            self._persist()
        self._emit()
        return True

    def pause(self) -> bool:
        """Same transition as start_break; the interrupted subject stays available to resume()."""
        return self.start_break()

    def resume(self) -> bool:
        with self._lock:
            subject_id = self._last_subject_id
        if subject_id is None:
            return False
        return self.start_focus(subject_id)

    def toggle(self, subject_id: str) -> bool:
        with self._lock:
            running = self._mode == TimerMode.running(subject_id)
            if running:
                self._set_mode(IDLE)
                self._persist()
        if not running:
            return self.start_focus(subject_id)
        self._emit()
        return True

    def reset(self, subject_id: str) -> bool:
        """Zero one subject's lifetime seconds, stopping it if it is running."""
        with self._lock:
            if self._state.subjects.get(subject_id) is None:
                return False
            if self._mode == TimerMode.running(subject_id):
                self._set_mode(IDLE)
            self._state.subjects.reset_seconds(subject_id)
            self._persist()
        self._emit()
        return True

    def reset_all(self) -> bool:
        """Zero every subject and the break-seconds-today scalar. Ledger history is kept."""
        with self._lock:
            self._set_mode(IDLE)
            self._state.subjects.reset_seconds()
            self._state.break_seconds = 0
            self._last_subject_id = None
            self._persist()
        self._emit()
        return True

    # ---------- Registry commands ----------
    def add_subject(self, name: str, color: Optional[str] = None) -> Optional[Subject]:
        with self._lock:
            subject = self._state.subjects.add(name, color)
            if subject is None:
                return None
            self._persist()
            subject = subject.copy()
        self._emit()
        return subject

    def update_subject(self, subject_id: str, name: Optional[str] = None, color: Optional[str] = None) -> bool:
        with self._lock:
            if self._state.subjects.get(subject_id) is None:
                return False
            changed = self._state.subjects.update(subject_id, name=name, color=color)
            if changed:
                self._persist()
        if changed:
            self._emit()
        return True

    def remove_subject(self, subject_id: str) -> bool:
        """Drop a subject and its todos. Its ledger history stays behind, orphaned."""
        with self._lock:
            if self._state.subjects.get(subject_id) is None:
                return False
            if self._mode == TimerMode.running(subject_id):
                self._set_mode(IDLE)
            if self._last_subject_id == subject_id:
                self._last_subject_id = None
            self._state.subjects.remove(subject_id)
            self._persist()
        self._emit()
        return True

    def add_todo(self, subject_id: str, text: str) -> Optional[Todo]:
        with self._lock:
            todo = self._state.subjects.add_todo(subject_id, text)
            if todo is None:
                return None
            self._persist()
            todo = Todo(todo.id, todo.text, todo.completed)
        self._emit()
        return todo

    def toggle_todo(self, subject_id: str, todo_id: str) -> bool:
        with self._lock:
            if not self._state.subjects.toggle_todo(subject_id, todo_id):
                return False
            self._persist()
        self._emit()
        return True

    def remove_todo(self, subject_id: str, todo_id: str) -> bool:
        with self._lock:
            if not self._state.subjects.remove_todo(subject_id, todo_id):
                return False
            self._persist()
        self._emit()
        return True

    # ---------- Accrual ----------
    def tick(self, now: Optional[float] = None) -> int:
        """Apply time elapsed since the previous tick. Returns the seconds applied."""
        with self._lock:
            if self._mode.kind is ModeKind.IDLE:
                return 0
            now = self._clock() if now is None else now
            elapsed = max(1, math.floor(now - self._last_tick))
            self._last_tick = now
            applied = self._apply(elapsed, now)
            if applied:
                self._persist()
        if applied:
            self._emit()
        return applied

    def flush(self) -> int:
        """Apply whole seconds elapsed since the last tick without the one-second minimum."""
        with self._lock:
            applied = self._flush_locked(self._clock())
            if applied:
                self._persist()
        if applied:
            self._emit()
        return applied

    # ---------- Tick source ----------
    def start(self) -> None:
        with self._lock:
            if self._ticker is not None and self._ticker.is_alive():
                return
            self._stop_event.clear()
            self._ticker = threading.Thread(target=self._run, name="FocusFlow-Ticker", daemon=True)
            self._ticker.start()

    def stop(self) -> None:
        """Stop the ticker (idempotent) and apply any pending whole seconds."""
        self._stop_event.set()
        ticker = self._ticker
        if ticker is not None and ticker.is_alive() and ticker is not threading.current_thread():
            ticker.join(timeout=2.0)
        self._ticker = None
        self.flush()

    @property
    def ticking(self) -> bool:
        return self._ticker is not None and self._ticker.is_alive() and not self._stop_event.is_set()

    def on_change(self, cb: Callable[["TimerEngine"], None]) -> None:
        """Register a callback receiving the engine after every applied mutation."""
        self._listeners.append(cb)

    # ---------- Read-only projections ----------
    @property
    def mode(self) -> TimerMode:
        return self._mode

    @property
    def is_running(self) -> bool:
        return self._mode.kind is not ModeKind.IDLE

    @property
    def is_break_active(self) -> bool:
        return self._mode.kind is ModeKind.BREAK

    @property
    def active_subject_id(self) -> Optional[str]:
        return self._mode.subject_id

    @property
    def last_subject_id(self) -> Optional[str]:
        return self._last_subject_id

    @property
    def subjects(self) -> List[Subject]:
        with self._lock:
            return [s.copy() for s in self._state.subjects.subjects]

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        with self._lock:
            subject = self._state.subjects.get(subject_id)
            return subject.copy() if subject else None

    def subject_seconds(self, subject_id: str) -> Optional[int]:
        with self._lock:
            subject = self._state.subjects.get(subject_id)
            return subject.total_seconds if subject else None

    def today_entry(self, now: Optional[float] = None) -> LedgerEntry:
        with self._lock:
            entry = self._state.ledger.get(day_key(self._clock() if now is None else now))
            return entry.copy() if entry else LedgerEntry()

    @property
    def total_focus_seconds(self) -> int:
        with self._lock:
            return self._state.subjects.total_seconds()

    @property
    def break_seconds(self) -> int:
        return self._state.break_seconds

    @property
    def ledger(self) -> TimeLedger:
        with self._lock:
            return self._state.ledger.copy()

    def snapshot(self) -> Tuple[SubjectRegistry, TimeLedger]:
        """Consistent copies of the registry and ledger taken between ticks."""
        with self._lock:
            return self._state.subjects.copy(), self._state.ledger.copy()

    def today(self) -> str:
        return day_key(self._clock())

    def to_document(self) -> dict:
        with self._lock:
            return self._state.to_document()

    # ---------- Internals ----------
    def _run(self) -> None:
        while not self._stop_event.wait(timeout=self.cfg.tick_seconds):
            self.tick()

    def _set_mode(self, mode: TimerMode) -> None:
        now = self._clock()
        self._flush_locked(now)
        if self._session is not None:
            self._close_session()
        previous = self._mode
        self._mode = mode
        self._last_tick = now
        if mode.kind is ModeKind.SUBJECT and mode.subject_id is not None:
            self._session = SessionRecord(subject_id=mode.subject_id, started_at=now)
            self._state.ledger.sessions.append(self._session)
        logger.debug("Timer mode %s -> %s", previous, mode)

    def _flush_locked(self, now: float) -> int:
        if self._mode.kind is ModeKind.IDLE:
            return 0
        pending = math.floor(now - self._last_tick)
        if pending <= 0:
            return 0
        self._last_tick += pending
        return self._apply(pending, now)

    def _close_session(self) -> None:
        session = self._session
        self._session = None
        if session is not None and session.seconds == 0:
            try:
                self._state.ledger.sessions.remove(session)
            except ValueError:
                pass

    def _apply(self, seconds: int, now: float) -> int:
        today = day_key(now)
        self._state.roll_day(today)
        if self._mode.kind is ModeKind.SUBJECT:
            subject_id = self._mode.subject_id or ""
            subject = self._state.subjects.get(subject_id)
            if subject is None:
                return 0
            subject.total_seconds += seconds
            self._state.ledger.add_focus(today, subject_id, seconds)
            if self._session is not None:
                self._session.seconds += seconds
        elif self._mode.kind is ModeKind.BREAK:
            self._state.ledger.add_break(today, seconds)
            self._state.break_seconds += seconds
        else:
            return 0
        return seconds

    def _persist(self) -> None:
        if self._store is not None:
            self._store.save(self._state.to_document())

    def _emit(self) -> None:
        for cb in list(self._listeners):
            try:
                cb(self)
            except Exception as e:
                logger.warning("Timer listener %r failed: %s", cb, e)
