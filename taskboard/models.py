"""Domain models for accounts and their task namespaces."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True)
class User:
    """A registered account. Never mutated once created."""

    id: str
    first_name: str
    last_name: str
    email: str
    password: str

    @property
    def display_name(self) -> str:
        return self.first_name or self.email.split("@")[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "password": self.password,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "User":
        return User(
            id=str(data["id"]),
            first_name=str(data.get("firstName") or ""),
            last_name=str(data.get("lastName") or ""),
            email=str(data["email"]),
            password=str(data.get("password") or ""),
        )


@dataclass
class Task:
    """A single entry in a user's task namespace."""

    id: str
    text: str
    completed: bool
    created_at: int
    updated_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Task":
        """Build a task from its stored form, rejecting values of the wrong type."""
        task_id = data["id"]
        text = data["text"]
        completed = data.get("completed", False)
        created_at = data["createdAt"]
        updated_at = data.get("updatedAt", created_at)

        if not isinstance(task_id, str) or not isinstance(text, str):
            raise ValueError("Task id and text must be strings")
        if not isinstance(completed, bool):
            raise ValueError("Task completed flag must be a boolean")
        for stamp in (created_at, updated_at):
            if isinstance(stamp, bool) or not isinstance(stamp, (int, float)):
                raise ValueError("Task timestamps must be numbers")

        return Task(
            id=task_id,
            text=text,
            completed=completed,
            created_at=int(created_at),
            updated_at=int(updated_at),
        )


@dataclass(frozen=True)
class TaskCounts:
    total: int
    active: int
    done: int


class TaskFilter(str, Enum):
    ALL = "all"
    ACTIVE = "active"
    DONE = "done"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "TaskFilter":
        """Unrecognised values behave as :attr:`ALL`."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw)
        except ValueError:
            return cls.ALL

    def matches(self, task: Task) -> bool:
        if self is TaskFilter.ACTIVE:
            return not task.completed
        if self is TaskFilter.DONE:
            return task.completed
        return True


class TaskSort(str, Enum):
    NEWEST = "new"
    OLDEST = "old"
    INSERTION = "insertion"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "TaskSort":
        """Unrecognised values keep insertion order."""
        if isinstance(raw, cls):
            return raw
        try:
            return cls(raw)
        except ValueError:
            return cls.INSERTION


class MutationResult(str, Enum):
    UPDATED = "updated"
    NOT_FOUND = "not_found"

    def __bool__(self) -> bool:
        return self is MutationResult.UPDATED


__all__ = [
    "MutationResult",
    "Task",
    "TaskCounts",
    "TaskFilter",
    "TaskSort",
    "User",
    "normalize_email",
]
