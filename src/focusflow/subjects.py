"""
Subject registry: named, colored accumulation buckets with nested todo lists.

Data Model (JSON):
[
  {"id": "maths", "name": "Maths", "color": "#ff6b6b", "totalSeconds": 0,
   "todos": [{"id": "uuid", "text": "Chapter 3 exercises", "completed": false}],
   "createdAt": "ISO-8601 timestamp"}
]
"""

from __future__ import annotations

import random
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .clock import utc_now_iso


SUBJECT_COLORS: List[str] = [
    "#ff6b6b",
    "#4dabf7",
    "#ffd43b",
    "#63e6be",
    "#b197fc",
    "#ffa94d",
    "#ff8787",
    "#74c0fc",
]


def _new_id() -> str:
    return str(uuid.uuid4())


def pick_color(used: List[str]) -> str:
    palette = [c for c in SUBJECT_COLORS if c not in used]
    return random.choice(palette or SUBJECT_COLORS)


def normalize_color(color: str) -> str:
    color = color.strip()
    return color if color.startswith("#") else f"#{color}"


@dataclass
class Todo:
    id: str
    text: str
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "text": self.text, "completed": self.completed}


def _new_todos() -> List[Todo]:
    return []


@dataclass
class Subject:
    id: str
    name: str
    color: str
    total_seconds: int = 0
    todos: List[Todo] = field(default_factory=_new_todos)
    created_at: str = field(default_factory=utc_now_iso)

    def find_todo(self, todo_id: str) -> Optional[Todo]:
        return next((t for t in self.todos if t.id == todo_id), None)

    @property
    def completed_todos(self) -> int:
        return sum(1 for t in self.todos if t.completed)

    def copy(self) -> "Subject":
        return Subject(
            id=self.id,
            name=self.name,
            color=self.color,
            total_seconds=self.total_seconds,
            todos=[Todo(t.id, t.text, t.completed) for t in self.todos],
            created_at=self.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "totalSeconds": self.total_seconds,
            "todos": [t.to_dict() for t in self.todos],
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Subject":
        todos: List[Todo] = []
        for t in raw.get("todos") or []:
            try:
                todos.append(Todo(id=str(t["id"]), text=str(t["text"]), completed=bool(t.get("completed", False))))
            except (AttributeError, KeyError, TypeError):
                # Skip invalid todo
                continue
        return cls(
            id=str(raw["id"]),
            name=str(raw["name"]),
            color=str(raw.get("color") or SUBJECT_COLORS[0]),
            total_seconds=max(0, int(raw.get("totalSeconds") or 0)),
            todos=todos,
            created_at=str(raw.get("createdAt") or utc_now_iso()),
        )


def default_subjects() -> List[Subject]:
    return [
        Subject(id="maths", name="Maths", color="#ff6b6b"),
        Subject(id="science", name="Science", color="#4dabf7"),
    ]


def _new_subjects() -> List[Subject]:
    return []


@dataclass
class SubjectRegistry:
    """Ordered collection of subjects, newest first.

    Lookups by unknown id return None / False rather than raising.
    """

    subjects: List[Subject] = field(default_factory=_new_subjects)

    def __len__(self) -> int:
        return len(self.subjects)

    def __contains__(self, subject_id: object) -> bool:
        return self.get(str(subject_id)) is not None

    def get(self, subject_id: str) -> Optional[Subject]:
        return next((s for s in self.subjects if s.id == subject_id), None)

    def add(self, name: str, color: Optional[str] = None) -> Optional[Subject]:
        name = name.strip()
        if not name:
            return None
        if color and color.strip():
            color = normalize_color(color)
        else:
            color = pick_color([s.color for s in self.subjects])
        subject = Subject(id=_new_id(), name=name, color=color)
        self.subjects.insert(0, subject)
        return subject

    def update(self, subject_id: str, name: Optional[str] = None, color: Optional[str] = None) -> bool:
        subject = self.get(subject_id)
        if subject is None:
            return False
        changed = False
        if name is not None and name.strip() and name.strip() != subject.name:
            subject.name = name.strip()
            changed = True
        if color is not None and color.strip():
            color = normalize_color(color)
            if color != subject.color:
                subject.color = color
                changed = True
        return changed

    def remove(self, subject_id: str) -> bool:
        subject = self.get(subject_id)
        if subject is None:
            return False
        self.subjects.remove(subject)
        return True

    def reset_seconds(self, subject_id: Optional[str] = None) -> bool:
        """Zero one subject's lifetime seconds, or every subject's when no id is given."""
        if subject_id is None:
            for s in self.subjects:
                s.total_seconds = 0
            return True
        subject = self.get(subject_id)
        if subject is None:
            return False
        subject.total_seconds = 0
        return True

    # --------------- Todos ---------------
    def add_todo(self, subject_id: str, text: str) -> Optional[Todo]:
        subject = self.get(subject_id)
        text = text.strip()
        if subject is None or not text:
            return None
        todo = Todo(id=_new_id(), text=text)
        subject.todos.insert(0, todo)
        return todo

    def toggle_todo(self, subject_id: str, todo_id: str) -> bool:
        subject = self.get(subject_id)
        todo = subject.find_todo(todo_id) if subject else None
        if todo is None:
            return False
        todo.completed = not todo.completed
        return True

    def remove_todo(self, subject_id: str, todo_id: str) -> bool:
        subject = self.get(subject_id)
        todo = subject.find_todo(todo_id) if subject else None
        if subject is None or todo is None:
            return False
        subject.todos.remove(todo)
        return True

    # --------------- Aggregates ---------------
    def total_seconds(self) -> int:
        return sum(s.total_seconds for s in self.subjects)

    def completed_todos(self) -> int:
        return sum(s.completed_todos for s in self.subjects)

    def copy(self) -> "SubjectRegistry":
        return SubjectRegistry([s.copy() for s in self.subjects])

    def to_list(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.subjects]

    @classmethod
    def from_list(cls, raw: List[Any]) -> "SubjectRegistry":
        subjects: List[Subject] = []
        for s in raw:
            try:
                subjects.append(Subject.from_dict(s))
            except (AttributeError, KeyError, OverflowError, TypeError, ValueError):
                # Skip invalid subject
                continue
        return cls(subjects)
