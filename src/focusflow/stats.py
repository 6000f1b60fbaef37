from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .clock import day_key, parse_day, shift_day
from .config import DEFAULT_DAILY_TARGET_MINUTES
from .ledger import TimeLedger
from .progression import compute_level, compute_streak, lifetime_minutes, minutes, XP_PER_MINUTE
from .subjects import SubjectRegistry

EARLY_BIRD_BEFORE_HOUR = 8
NIGHT_OWL_FROM_HOUR = 22


@dataclass(frozen=True)
class StudyStats:
    """Aggregate counters that achievements are measured against."""

    total_focus_minutes: int = 0
    current_streak: int = 0
    total_sessions: int = 0
    early_bird_sessions: int = 0
    night_owl_sessions: int = 0
    weekend_sessions: int = 0
    daily_goals_hit: int = 0
    completed_quests: int = 0
    current_level: int = 1


def _is_weekend_day(key: str) -> bool:
    return parse_day(key).weekday() >= 5


def daily_goals_hit(ledger: TimeLedger, today: str, target_minutes: int) -> int:
    """Consecutive days meeting the daily target, ending today.

    A today that has not reached the target yet does not break the run; counting
    then starts from yesterday.
    """
    target = max(target_minutes, 1)

    def hit(key: str) -> bool:
        entry = ledger.get(key)
        return entry is not None and minutes(entry.focus_seconds) >= target

    cursor = today if hit(today) else shift_day(today, -1)
    count = 0
    while count <= len(ledger.entries) and hit(cursor):
        count += 1
        cursor = shift_day(cursor, -1)
    return count


def build_study_stats(
    registry: SubjectRegistry,
    ledger: TimeLedger,
    today: Optional[str] = None,
    daily_target_minutes: int = DEFAULT_DAILY_TARGET_MINUTES,
) -> StudyStats:
    today = today or day_key()
    focus_days = ledger.focus_days()
    sessions = [s for s in ledger.sessions if s.seconds > 0]

    early = night = weekend = 0
    for s in sessions:
        started = datetime.fromtimestamp(s.started_at)
        if started.hour < EARLY_BIRD_BEFORE_HOUR:
            early += 1
        if started.hour >= NIGHT_OWL_FROM_HOUR:
            night += 1
        if started.weekday() >= 5:
            weekend += 1

    total_minutes = lifetime_minutes(registry, ledger)
    return StudyStats(
        total_focus_minutes=total_minutes,
        current_streak=compute_streak(ledger, today),
        # days with focus predate session records in older documents
        total_sessions=max(len(sessions), len(focus_days)),
        early_bird_sessions=early,
        night_owl_sessions=night,
        weekend_sessions=max(weekend, sum(1 for k in focus_days if _is_weekend_day(k))),
        daily_goals_hit=daily_goals_hit(ledger, today, daily_target_minutes),
        completed_quests=registry.completed_todos(),
        current_level=compute_level(total_minutes * XP_PER_MINUTE).level,
    )
