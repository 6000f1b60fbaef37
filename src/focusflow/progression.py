"""
Progression metrics derived from the subject registry and time ledger.

Everything here is a pure function of its arguments: XP, level, tier, streak,
quest progress and per-subject summaries are recomputed on demand and never
stored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .clock import day_key, shift_day
from .config import DEFAULT_DAILY_TARGET_MINUTES
from .ledger import TimeLedger
from .subjects import SubjectRegistry

XP_PER_MINUTE = 12
BASE_LEVEL_XP = 240
LEVEL_XP_STEP = 180

ARCHIVED_NAME = "Archived lane"
ARCHIVED_COLOR = "#7a6cff"


@dataclass(frozen=True)
class LevelInfo:
    level: int
    xp_into_level: int
    xp_for_next: int
    progress: float


@dataclass(frozen=True)
class ProgressionSnapshot:
    lifetime_minutes: int
    xp: int
    level: int
    xp_into_level: int
    xp_for_next: int
    progress: float
    tier: str
    streak: int

    @property
    def xp_to_next(self) -> int:
        return max(self.xp_for_next - self.xp_into_level, 0)


def minutes(seconds: int) -> int:
    return seconds // 60


def compute_level(xp: int) -> LevelInfo:
    """Consume XP level by level: level 1 costs 240, entering level n sets the next cost to 240 + n*180."""
    level = 1
    remaining = xp
    required = BASE_LEVEL_XP
    while remaining >= required:
        remaining -= required
        level += 1
        required = round(BASE_LEVEL_XP + level * LEVEL_XP_STEP)
    progress = 1.0 if required == 0 else min(1.0, remaining / required)
    return LevelInfo(level=level, xp_into_level=remaining, xp_for_next=required, progress=progress)


def tier_from_level(level: int) -> str:
    if level >= 12:
        return "Supernova Strategist"
    if level >= 9:
        return "Nebula Mentor"
    if level >= 6:
        return "Aurora Scholar"
    if level >= 3:
        return "Orbit Keeper"
    return "Focus Initiate"


def compute_streak(ledger: TimeLedger, today: Optional[str] = None) -> int:
    """Count consecutive days ending today with positive focus time."""
    cursor = today or day_key()
    streak = 0
    # a streak can never be longer than the number of recorded days
    while streak <= len(ledger.entries):
        entry = ledger.get(cursor)
        if entry is None or entry.focus_seconds <= 0:
            break
        streak += 1
        cursor = shift_day(cursor, -1)
    return streak


def lifetime_focus_seconds(registry: SubjectRegistry, ledger: TimeLedger) -> int:
    """The ledger is authoritative, but live subject totals may be ahead of it."""
    return max(ledger.total_focus_seconds(), registry.total_seconds())


def lifetime_minutes(registry: SubjectRegistry, ledger: TimeLedger) -> int:
    return minutes(lifetime_focus_seconds(registry, ledger))


def today_focus_minutes(ledger: TimeLedger, today: Optional[str] = None) -> int:
    entry = ledger.get(today or day_key())
    return minutes(entry.focus_seconds) if entry else 0


def compute_progression(
    registry: SubjectRegistry, ledger: TimeLedger, today: Optional[str] = None
) -> ProgressionSnapshot:
    today = today or day_key()
    total_minutes = lifetime_minutes(registry, ledger)
    xp = total_minutes * XP_PER_MINUTE
    info = compute_level(xp)
    return ProgressionSnapshot(
        lifetime_minutes=total_minutes,
        xp=xp,
        level=info.level,
        xp_into_level=info.xp_into_level,
        xp_for_next=info.xp_for_next,
        progress=info.progress,
        tier=tier_from_level(info.level),
        streak=compute_streak(ledger, today),
    )


# ---------------------------- Quests ----------------------------


@dataclass(frozen=True)
class QuestDefinition:
    id: str
    title: str
    target: int
    unit: str
    reward: str
    source: str  # "focus" | "streak" | "todos"


@dataclass(frozen=True)
class QuestProgress:
    quest: QuestDefinition
    value: int
    progress_pct: float
    complete: bool


def default_quests(daily_target_minutes: int = DEFAULT_DAILY_TARGET_MINUTES) -> List[QuestDefinition]:
    target = max(daily_target_minutes, 1)
    return [
        QuestDefinition("daily-focus", f"Log {target} minutes of deep focus", target, "min", "+120 XP boost", "focus"),
        QuestDefinition("streak-keeper", "Hold a 3-day streak", 3, "days", "Aurora badge fragment", "streak"),
        QuestDefinition("quest-master", "Complete 3 focus quests", 3, "todos", "+1 Momentum charge", "todos"),
    ]


def evaluate_quests(
    registry: SubjectRegistry,
    ledger: TimeLedger,
    today: Optional[str] = None,
    quests: Optional[List[QuestDefinition]] = None,
) -> List[QuestProgress]:
    today = today or day_key()
    sources: Dict[str, int] = {
        "focus": today_focus_minutes(ledger, today),
        "streak": compute_streak(ledger, today),
        "todos": registry.completed_todos(),
    }
    result: List[QuestProgress] = []
    for quest in quests if quests is not None else default_quests():
        value = sources.get(quest.source, 0)
        pct = 1.0 if quest.target == 0 else min(1.0, value / quest.target)
        result.append(QuestProgress(quest=quest, value=value, progress_pct=pct, complete=value >= quest.target))
    return result


# ---------------------------- Subject summaries ----------------------------


@dataclass
class SubjectSummary:
    id: str
    name: str
    color: str
    today_minutes: int = 0
    lifetime_minutes: int = 0


def summarize_subjects(
    registry: SubjectRegistry, ledger: TimeLedger, today: Optional[str] = None
) -> List[SubjectSummary]:
    """Per-subject minutes from the ledger, merged with live registry totals.

    Today's minutes come from the ledger only. Subjects removed from the
    registry keep their history under ARCHIVED_NAME.
    """
    today = today or day_key()
    seconds_total: Dict[str, int] = {}
    seconds_today: Dict[str, int] = {}
    for key, entry in ledger.items():
        for subject_id, seconds in entry.per_subject.items():
            seconds_total[subject_id] = seconds_total.get(subject_id, 0) + seconds
            if key == today:
                seconds_today[subject_id] = seconds_today.get(subject_id, 0) + seconds

    summary: Dict[str, SubjectSummary] = {}
    for subject_id, seconds in seconds_total.items():
        summary[subject_id] = SubjectSummary(
            id=subject_id,
            name=ARCHIVED_NAME,
            color=ARCHIVED_COLOR,
            today_minutes=minutes(seconds_today.get(subject_id, 0)),
            lifetime_minutes=minutes(seconds),
        )
    for subject in registry.subjects:
        live = minutes(subject.total_seconds)
        item = summary.get(subject.id)
        if item is None:
            summary[subject.id] = SubjectSummary(subject.id, subject.name, subject.color, 0, live)
            continue
        item.name = subject.name
        item.color = subject.color
        item.lifetime_minutes = max(item.lifetime_minutes, live)

    return sorted(summary.values(), key=lambda s: s.today_minutes, reverse=True)
