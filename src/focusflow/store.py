"""
JSON document persistence for FocusFlow.

Each document (study state, achievements) lives in its own file and is written
atomically: the payload goes to ``<path>.tmp`` first and then replaces the
target. Failures never reach the caller: a load problem yields ``None`` so the
owner falls back to defaults, a save problem is logged and the in-memory state
stands until the next successful save.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class JsonDocumentStore:
    """Loads and saves one JSON object document."""

    def __init__(self, path: str) -> None:
        self.path = path

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to load %s, using defaults: %s", self.path, e)
            return None
        if not isinstance(raw, dict):
            logger.warning("Ignoring %s: expected a JSON object, got %s", self.path, type(raw).__name__)
            return None
        return raw

    def save(self, doc: Dict[str, Any]) -> bool:
        tmp = self.path + ".tmp"
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Failed to save %s: %s", self.path, e)
            return False
        return True
