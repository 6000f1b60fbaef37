from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_DAILY_TARGET_MINUTES = 90
MAX_DAILY_TARGET_MINUTES = 1440


def _default_data_dir() -> str:
    return os.path.join(os.path.expanduser("~"), ".focusflow")


def sanitize_daily_target(value: Optional[float]) -> int:
    if value is None or value != value or value <= 0:
        return DEFAULT_DAILY_TARGET_MINUTES
    if value >= MAX_DAILY_TARGET_MINUTES:
        return MAX_DAILY_TARGET_MINUTES
    return int(round(value))


@dataclass
class FocusFlowConfig:
    data_dir: str = field(default_factory=_default_data_dir)
    state_file: str = "study_state.json"
    achievements_file: str = "achievements.json"
    tick_seconds: float = 1.0  # ticker cadence
    daily_target_minutes: int = DEFAULT_DAILY_TARGET_MINUTES
    notifications: bool = True
    log_level: str = "INFO"
    log_file: Optional[str] = "focusflow.log"

    def __post_init__(self) -> None:
        self.daily_target_minutes = sanitize_daily_target(self.daily_target_minutes)
        self.tick_seconds = max(0.05, float(self.tick_seconds))

    @property
    def state_path(self) -> str:
        return os.path.join(self.data_dir, self.state_file)

    @property
    def achievements_path(self) -> str:
        return os.path.join(self.data_dir, self.achievements_file)

    @property
    def log_path(self) -> Optional[str]:
        return os.path.join(self.data_dir, self.log_file) if self.log_file else None

    @property
    def level(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FocusFlowConfig":
        """Build a config from defaults overridden by FOCUSFLOW_* variables.

        Malformed values are ignored and the default is kept.
        """
        env = os.environ if environ is None else environ
        cfg = cls()
        if env.get("FOCUSFLOW_DATA_DIR"):
            cfg.data_dir = os.path.expanduser(env["FOCUSFLOW_DATA_DIR"])
        try:
            if env.get("FOCUSFLOW_TICK_SECONDS"):
                cfg.tick_seconds = max(0.05, float(env["FOCUSFLOW_TICK_SECONDS"]))
        except ValueError:
            pass
        try:
            if env.get("FOCUSFLOW_DAILY_TARGET"):
                cfg.daily_target_minutes = sanitize_daily_target(float(env["FOCUSFLOW_DAILY_TARGET"]))
        except ValueError:
            pass
        if env.get("FOCUSFLOW_NOTIFY", "").lower() in {"0", "false", "off", "no"}:
            cfg.notifications = False
        if env.get("FOCUSFLOW_LOG_LEVEL"):
            cfg.log_level = env["FOCUSFLOW_LOG_LEVEL"].upper()
        return cfg
