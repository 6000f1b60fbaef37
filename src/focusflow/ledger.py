"""
Date-keyed ledger of accrued focus and break seconds.

One LedgerEntry exists per local calendar day (``YYYY-MM-DD``), created lazily
on first accrual. Focus seconds are only ever added together with the subject
they belong to, so ``focus_seconds == sum(per_subject.values())`` holds for
every entry. Contiguous focus runs are additionally kept as SessionRecords so
session counts and time-of-day statistics can be derived later.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

# epoch seconds accepted for SessionRecord.startedAt (year 5138)
MAX_STARTED_AT = 1e11


def _new_per_subject() -> Dict[str, int]:
    return {}


@dataclass
class LedgerEntry:
    focus_seconds: int = 0
    break_seconds: int = 0
    per_subject: Dict[str, int] = field(default_factory=_new_per_subject)

    def copy(self) -> "LedgerEntry":
        return LedgerEntry(self.focus_seconds, self.break_seconds, dict(self.per_subject))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "focusSeconds": self.focus_seconds,
            "breakSeconds": self.break_seconds,
            "perSubject": dict(self.per_subject),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LedgerEntry":
        per_subject = {str(k): max(0, int(v)) for k, v in (raw.get("perSubject") or {}).items()}
        # focusSeconds is derived; repair documents where it drifted from the breakdown
        return cls(
            focus_seconds=sum(per_subject.values()),
            break_seconds=max(0, int(raw.get("breakSeconds") or 0)),
            per_subject=per_subject,
        )


@dataclass
class SessionRecord:
    subject_id: str
    started_at: float
    seconds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"subjectId": self.subject_id, "startedAt": self.started_at, "seconds": self.seconds}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SessionRecord":
        started_at = float(raw["startedAt"])
        if not math.isfinite(started_at) or not 0 <= started_at < MAX_STARTED_AT:
            raise ValueError(f"startedAt out of range: {started_at!r}")
        return cls(
            subject_id=str(raw["subjectId"]),
            started_at=started_at,
            seconds=max(0, int(raw.get("seconds") or 0)),
        )


def _new_entries() -> Dict[str, LedgerEntry]:
    return {}


def _new_sessions() -> List[SessionRecord]:
    return []


@dataclass
class TimeLedger:
    entries: Dict[str, LedgerEntry] = field(default_factory=_new_entries)
    sessions: List[SessionRecord] = field(default_factory=_new_sessions)

    def get(self, day: str) -> Optional[LedgerEntry]:
        return self.entries.get(day)

    def entry_for(self, day: str) -> LedgerEntry:
        entry = self.entries.get(day)
        if entry is None:
            entry = LedgerEntry()
            self.entries[day] = entry
        return entry

    def add_focus(self, day: str, subject_id: str, seconds: int) -> None:
        entry = self.entry_for(day)
        entry.focus_seconds += seconds
        entry.per_subject[subject_id] = entry.per_subject.get(subject_id, 0) + seconds

    def add_break(self, day: str, seconds: int) -> None:
        self.entry_for(day).break_seconds += seconds

    def total_focus_seconds(self) -> int:
        return sum(e.focus_seconds for e in self.entries.values())

    def focus_days(self) -> List[str]:
        """Day keys with positive focus time, oldest first."""
        return sorted(k for k, e in self.entries.items() if e.focus_seconds > 0)

    def items(self) -> Iterator[Tuple[str, LedgerEntry]]:
        return iter(sorted(self.entries.items()))

    def copy(self) -> "TimeLedger":
        return TimeLedger(
            entries={k: e.copy() for k, e in self.entries.items()},
            sessions=[SessionRecord(s.subject_id, s.started_at, s.seconds) for s in self.sessions],
        )

    def history_to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {k: e.to_dict() for k, e in self.entries.items()}

    def sessions_to_list(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.sessions]

    @classmethod
    def from_raw(cls, history: Any, sessions: Any = None) -> "TimeLedger":
        ledger = cls()
        if isinstance(history, dict):
            for key, raw in history.items():
                if not isinstance(raw, dict):
                    continue
                try:
                    ledger.entries[str(key)] = LedgerEntry.from_dict(raw)
                except (AttributeError, OverflowError, TypeError, ValueError):
                    continue
        if isinstance(sessions, list):
            for raw in sessions:
                try:
                    ledger.sessions.append(SessionRecord.from_dict(raw))
                except (KeyError, OverflowError, TypeError, ValueError):
                    # Skip invalid record
                    continue
        return ledger
