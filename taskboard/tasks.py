"""Per-user task namespaces persisted through the key-value store."""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import replace
from typing import Callable, List, Optional, Union

from .models import MutationResult, Task, TaskCounts, TaskFilter, TaskSort, normalize_email
from .storage import KeyValueStore

logger = logging.getLogger("taskboard.tasks")

NAMESPACE_PREFIX = "todos__"

Clock = Callable[[], int]


def namespace_key(email: str) -> str:
    return NAMESPACE_PREFIX + normalize_email(email)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _generate_task_id() -> str:
    return str(uuid.uuid4())


class TaskStore:
    """Ordered task list belonging to a single account.

    The instance keeps an in-memory copy of the namespace and writes the full
    list back after every mutation. Two stores opened on the same namespace
    are not coordinated; whichever persists last overwrites the other.
    """

    def __init__(
        self,
        email: str,
        storage: KeyValueStore,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        self._storage = storage
        self._key = namespace_key(email)
        self._clock = clock or _now_ms
        self._items: List[Task] = self._load()

    @property
    def key(self) -> str:
        return self._key

    def __len__(self) -> int:
        return len(self._items)

    def _load(self) -> List[Task]:
        raw = self._storage.get(self._key, [])
        if not isinstance(raw, list):
            logger.warning("Namespace %s does not hold a list; starting empty", self._key)
            return []
        tasks: List[Task] = []
        for item in raw:
            if not isinstance(item, dict):
                logger.warning("Skipping malformed task entry in %s", self._key)
                continue
            try:
                tasks.append(Task.from_dict(item))
            except (KeyError, TypeError, ValueError, OverflowError):
                logger.warning("Skipping malformed task entry in %s", self._key)
        return tasks

    def _persist(self) -> None:
        self._storage.set(self._key, [task.to_dict() for task in self._items])

    def _find(self, task_id: str) -> Optional[Task]:
        for task in self._items:
            if task.id == task_id:
                return task
        return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list(
        self,
        filter: Union[TaskFilter, str, None] = TaskFilter.ALL,
        sort: Union[TaskSort, str, None] = TaskSort.NEWEST,
    ) -> List[Task]:
        """Return a filtered, sorted copy of the namespace.

        Storage order is never changed; equal timestamps keep their relative
        insertion order.
        """

        task_filter = TaskFilter.parse(filter)
        task_sort = TaskSort.parse(sort)

        items = [replace(task) for task in self._items if task_filter.matches(task)]
        if task_sort is TaskSort.NEWEST:
            items.sort(key=lambda task: task.created_at, reverse=True)
        elif task_sort is TaskSort.OLDEST:
            items.sort(key=lambda task: task.created_at)
        return items

    def get(self, task_id: str) -> Optional[Task]:
        task = self._find(task_id)
        return None if task is None else replace(task)

    def counts(self) -> TaskCounts:
        done = sum(1 for task in self._items if task.completed)
        return TaskCounts(total=len(self._items), active=len(self._items) - done, done=done)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add(self, text: str) -> Task:
        now = self._clock()
        task = Task(
            id=_generate_task_id(),
            text=text.strip(),
            completed=False,
            created_at=now,
            updated_at=now,
        )
        self._items.append(task)
        self._persist()
        logger.debug("Added task %s to %s", task.id, self._key)
        return replace(task)

    def toggle(self, task_id: str) -> MutationResult:
        task = self._find(task_id)
        if task is None:
            return MutationResult.NOT_FOUND
        task.completed = not task.completed
        task.updated_at = self._clock()
        self._persist()
        logger.debug("Toggled task %s in %s (completed=%s)", task_id, self._key, task.completed)
        return MutationResult.UPDATED

    def update(self, task_id: str, text: str) -> MutationResult:
        task = self._find(task_id)
        if task is None:
            return MutationResult.NOT_FOUND
        task.text = text.strip()
        task.updated_at = self._clock()
        self._persist()
        logger.debug("Updated task %s in %s", task_id, self._key)
        return MutationResult.UPDATED

    def remove(self, task_id: str) -> MutationResult:
        for index, task in enumerate(self._items):
            if task.id == task_id:
                del self._items[index]
                self._persist()
                logger.debug("Removed task %s from %s", task_id, self._key)
                return MutationResult.UPDATED
        return MutationResult.NOT_FOUND

    def clear_completed(self) -> int:
        """Drop every completed task and return how many were removed."""

        remaining = [task for task in self._items if not task.completed]
        removed = len(self._items) - len(remaining)
        self._items = remaining
        self._persist()
        logger.debug("Cleared %s completed task(s) from %s", removed, self._key)
        return removed


__all__ = ["NAMESPACE_PREFIX", "TaskStore", "namespace_key"]
