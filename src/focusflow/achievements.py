"""
Achievement tracking for FocusFlow.

A fixed catalog of one-time milestones, each measured against exactly one
StudyStats counter. Progress is monotonic and clamped to the target; once an
achievement is unlocked it is never re-evaluated and its ``unlocked_at`` stamp
never changes.

Data Model (JSON):
{
  "schema": "focusflow.achievements",
  "version": 1,
  "achievements": {
    "first_session": {"progress": 1, "unlocked": true, "unlockedAt": "ISO-8601 timestamp"},
    "sessions_10": {"progress": 4, "unlocked": false}
  }
}
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .clock import Clock, system_clock, utc_now_iso
from .stats import StudyStats
from .store import JsonDocumentStore

logger = logging.getLogger(__name__)

ACHIEVEMENTS_SCHEMA = "focusflow.achievements"
ACHIEVEMENTS_VERSION = 1


class Tier(int, Enum):
    BRONZE = 1
    SILVER = 2
    GOLD = 3
    PLATINUM = 4

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class AchievementDefinition:
    key: str
    name: str
    description: str
    icon: str
    tier: Tier
    target: int
    source: str  # StudyStats field name


@dataclass(frozen=True)
class Achievement:
    definition: AchievementDefinition
    progress: int = 0
    unlocked: bool = False
    unlocked_at: Optional[str] = None

    @property
    def key(self) -> str:
        return self.definition.key

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def target(self) -> int:
        return self.definition.target

    @property
    def tier(self) -> Tier:
        return self.definition.tier

    def to_dict(self) -> Dict[str, Any]:
        raw: Dict[str, Any] = {"progress": self.progress, "unlocked": self.unlocked}
        if self.unlocked_at:
            raw["unlockedAt"] = self.unlocked_at
        return raw


def _define(key: str, name: str, description: str, icon: str, tier: Tier, target: int, source: str) -> AchievementDefinition:
    return AchievementDefinition(key, name, description, icon, tier, target, source)


ACHIEVEMENT_DEFINITIONS: List[AchievementDefinition] = [
    # Focus time milestones (minutes)
    _define("first_session", "First Steps", "Complete your first focus session.", "🌱", Tier.BRONZE, 1, "total_sessions"),
    _define("focus_10h", "Focus Initiate", "Log 10 hours of total focus time.", "⏱️", Tier.BRONZE, 600, "total_focus_minutes"),
    _define("focus_50h", "Focus Apprentice", "Log 50 hours of total focus time.", "🎯", Tier.SILVER, 3000, "total_focus_minutes"),
    _define("focus_100h", "Focus Scholar", "Log 100 hours of total focus time.", "📚", Tier.GOLD, 6000, "total_focus_minutes"),
    _define("focus_500h", "Focus Master", "Log 500 hours of total focus time.", "🏆", Tier.PLATINUM, 30000, "total_focus_minutes"),
    # Streaks
    _define("streak_3", "Getting Started", "Maintain a 3-day study streak.", "🔥", Tier.BRONZE, 3, "current_streak"),
    _define("streak_7", "Weekly Warrior", "Maintain a 7-day study streak.", "⚡", Tier.SILVER, 7, "current_streak"),
    _define("streak_14", "Fortnight Champion", "Maintain a 14-day study streak.", "💫", Tier.GOLD, 14, "current_streak"),
    _define("streak_30", "Monthly Dedication", "Maintain a 30-day study streak.", "🌟", Tier.GOLD, 30, "current_streak"),
    _define("streak_100", "Unstoppable Force", "Maintain a 100-day study streak.", "👑", Tier.PLATINUM, 100, "current_streak"),
    # Session counts
    _define("sessions_10", "Consistency Starter", "Complete 10 focus sessions.", "📝", Tier.BRONZE, 10, "total_sessions"),
    _define("sessions_50", "Session Pro", "Complete 50 focus sessions.", "📊", Tier.SILVER, 50, "total_sessions"),
    _define("sessions_100", "Century Club", "Complete 100 focus sessions.", "💯", Tier.GOLD, 100, "total_sessions"),
    _define("sessions_500", "Session Legend", "Complete 500 focus sessions.", "🎖️", Tier.PLATINUM, 500, "total_sessions"),
    # Daily goals
    _define("daily_goal_7", "Week of Success", "Hit your daily goal 7 days in a row.", "✅", Tier.SILVER, 7, "daily_goals_hit"),
    _define("daily_goal_30", "Monthly Excellence", "Hit your daily goal 30 days in a row.", "🎯", Tier.PLATINUM, 30, "daily_goals_hit"),
    # Time of day
    _define("early_bird", "Early Bird", "Complete 10 sessions before 8 AM.", "🌅", Tier.GOLD, 10, "early_bird_sessions"),
    _define("night_owl", "Night Owl", "Complete 10 sessions after 10 PM.", "🌙", Tier.GOLD, 10, "night_owl_sessions"),
    _define("weekend_warrior", "Weekend Warrior", "Complete 20 weekend study sessions.", "🎮", Tier.SILVER, 20, "weekend_sessions"),
    # Quests & levels
    _define("quest_master", "Quest Master", "Complete 100 focus quests.", "⚔️", Tier.GOLD, 100, "completed_quests"),
    _define("level_5", "Rising Star", "Reach level 5.", "⭐", Tier.BRONZE, 5, "current_level"),
    _define("level_10", "Experienced Scholar", "Reach level 10.", "🌟", Tier.SILVER, 10, "current_level"),
    _define("level_20", "Elite Achiever", "Reach level 20.", "💎", Tier.PLATINUM, 20, "current_level"),
]


class AchievementTracker:
    """Owns per-achievement progress and unlock state."""

    def __init__(
        self,
        store: Optional[JsonDocumentStore] = None,
        definitions: Optional[List[AchievementDefinition]] = None,
        clock: Clock = system_clock,
    ) -> None:
        self._store = store
        self._clock = clock
        self._definitions = list(definitions if definitions is not None else ACHIEVEMENT_DEFINITIONS)
        self._listeners: List[Callable[[Achievement], None]] = []
        self._lock = threading.Lock()
        self._items: Dict[str, Achievement] = {d.key: Achievement(d) for d in self._definitions}
        if store is not None:
            self._load(store.load())

    # ---------------- Persistence ----------------
    def _load(self, raw: Optional[Dict[str, Any]]) -> None:
        if not raw:
            return
        saved = raw.get("achievements") if raw.get("schema") == ACHIEVEMENTS_SCHEMA else raw
        if not isinstance(saved, dict):
            return
        for key, item in self._items.items():
            entry = saved.get(key)
            if not isinstance(entry, dict):
                continue
            try:
                progress = max(0, int(entry.get("progress") or 0))
            except (OverflowError, TypeError, ValueError):
                progress = 0
            unlocked = bool(entry.get("unlocked", False))
            self._items[key] = replace(
                item,
                progress=min(progress, item.target),
                unlocked=unlocked,
                unlocked_at=entry.get("unlockedAt") if unlocked else None,
            )

    def to_document(self) -> Dict[str, Any]:
        return {
            "schema": ACHIEVEMENTS_SCHEMA,
            "version": ACHIEVEMENTS_VERSION,
            "achievements": {key: a.to_dict() for key, a in self._items.items()},
        }

    def _save(self) -> None:
        if self._store is not None:
            self._store.save(self.to_document())

    # ---------------- Evaluation ----------------
    def check_achievements(self, stats: StudyStats) -> List[Achievement]:
        """Advance every locked achievement from ``stats``; return the ones unlocked by this call."""
        # statistics are read outside the lock
        values = {d.source: int(getattr(stats, d.source, 0) or 0) for d in self._definitions}
        newly_unlocked: List[Achievement] = []
        with self._lock:
            changed = False
            for key, item in self._items.items():
                if item.unlocked:
                    continue
                value = values.get(item.definition.source, 0)
                if value >= item.target:
                    updated = replace(item, progress=item.target, unlocked=True, unlocked_at=self._now_iso())
                    newly_unlocked.append(updated)
                else:
                    updated = replace(item, progress=max(item.progress, min(value, item.target)))
                if updated != item:
                    self._items[key] = updated
                    changed = True
            if changed:
                self._save()
        for achievement in newly_unlocked:
            logger.info("Achievement unlocked: %s", achievement.name)
            self._emit(achievement)
        return newly_unlocked

    def unlock_achievement(self, key: str) -> bool:
        """Force-unlock ``key`` at full progress. Unknown or already unlocked keys are ignored."""
        with self._lock:
            item = self._items.get(key)
            if item is None or item.unlocked:
                return False
            updated = replace(item, progress=item.target, unlocked=True, unlocked_at=self._now_iso())
            self._items[key] = updated
            self._save()
        logger.info("Achievement unlocked: %s", updated.name)
        self._emit(updated)
        return True

    def on_unlock(self, cb: Callable[[Achievement], None]) -> None:
        self._listeners.append(cb)

    # ---------------- Projections ----------------
    @property
    def achievements(self) -> List[Achievement]:
        return [self._items[d.key] for d in self._definitions]

    @property
    def unlocked(self) -> List[Achievement]:
        return [a for a in self.achievements if a.unlocked]

    @property
    def locked(self) -> List[Achievement]:
        return [a for a in self.achievements if not a.unlocked]

    def get(self, key: str) -> Optional[Achievement]:
        return self._items.get(key)

    def _now_iso(self) -> str:
        return utc_now_iso(self._clock())

    def _emit(self, achievement: Achievement) -> None:
        for cb in list(self._listeners):
            try:
                cb(achievement)
            except Exception as e:
                logger.warning("Achievement listener %r failed: %s", cb, e)
