"""Local accounts with per-user, namespaced task lists."""

from __future__ import annotations

from typing import Any

from .accounts import (
    AccountError,
    AccountStore,
    DuplicateEmailError,
    InvalidCredentialsError,
    SessionContext,
    UserNotFoundError,
)
from .models import MutationResult, Task, TaskFilter, TaskSort, User
from .storage import KeyValueStore
from .tasks import TaskStore


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP API application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "AccountError",
    "AccountStore",
    "DuplicateEmailError",
    "InvalidCredentialsError",
    "KeyValueStore",
    "MutationResult",
    "SessionContext",
    "Task",
    "TaskFilter",
    "TaskSort",
    "TaskStore",
    "User",
    "UserNotFoundError",
    "create_app",
]
