"""
Persisted study state: subject registry, time ledger and the legacy
break-seconds-today scalar, serialized as one tagged JSON document.

Documents written before the schema tag existed carry no ``schema``/``version``
keys; they load the same way, with absent ``todos``, ``breakSeconds``,
``history`` and ``sessions`` defaulted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .clock import day_key
from .ledger import TimeLedger
from .subjects import SubjectRegistry, default_subjects

STATE_SCHEMA = "focusflow.study-state"
STATE_VERSION = 1


@dataclass
class StudyState:
    current_day: str = field(default_factory=day_key)
    subjects: SubjectRegistry = field(default_factory=SubjectRegistry)
    break_seconds: int = 0  # legacy, superseded by ledger break seconds
    ledger: TimeLedger = field(default_factory=TimeLedger)

    @classmethod
    def default(cls, today: Optional[str] = None) -> "StudyState":
        return cls(current_day=today or day_key(), subjects=SubjectRegistry(default_subjects()))

    def roll_day(self, today: str) -> bool:
        """Start a new day for the legacy break scalar. Returns True if the day changed."""
        if self.current_day == today:
            return False
        self.current_day = today
        self.break_seconds = 0
        return True

    def to_document(self) -> Dict[str, Any]:
        return {
            "schema": STATE_SCHEMA,
            "version": STATE_VERSION,
            "currentDay": self.current_day,
            "subjects": self.subjects.to_list(),
            "breakSeconds": self.break_seconds,
            "history": self.ledger.history_to_dict(),
            "sessions": self.ledger.sessions_to_list(),
        }

    @classmethod
    def from_document(cls, raw: Optional[Dict[str, Any]], today: Optional[str] = None) -> "StudyState":
        today = today or day_key()
        if not raw or not isinstance(raw.get("subjects"), list):
            return cls.default(today)
        try:
            break_seconds = max(0, int(raw.get("breakSeconds") or 0))
        except (OverflowError, TypeError, ValueError):
            break_seconds = 0
        state = cls(
            current_day=str(raw.get("currentDay") or today),
            subjects=SubjectRegistry.from_list(raw["subjects"]),
            break_seconds=break_seconds,
            ledger=TimeLedger.from_raw(raw.get("history"), raw.get("sessions")),
        )
        state.roll_day(today)
        return state
