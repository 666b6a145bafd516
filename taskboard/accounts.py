"""Local account table and the current-session pointer."""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from .models import User, normalize_email
from .storage import KeyValueStore
from .tasks import namespace_key

logger = logging.getLogger("taskboard.accounts")

USERS_KEY = "app_users_v1"
CURRENT_USER_KEY = "app_current_user_v1"


class AccountError(ValueError):
    """Base class for failures surfaced by :class:`AccountStore`."""


class DuplicateEmailError(AccountError):
    def __init__(self, email: str) -> None:
        super().__init__("Email already exists")
        self.email = email


class UserNotFoundError(AccountError):
    def __init__(self, email: str) -> None:
        super().__init__("User not found. Please register first.")
        self.email = email


class InvalidCredentialsError(AccountError):
    def __init__(self, email: str) -> None:
        super().__init__("Invalid credentials")
        self.email = email


def _generate_user_id() -> str:
    return str(uuid.uuid4())


def _parse_user(data: Any) -> Optional[User]:
    if not isinstance(data, dict):
        return None
    try:
        return User.from_dict(data)
    except (KeyError, TypeError, ValueError):
        return None


class SessionContext:
    """Pointer to the account that is currently logged in.

    Starts out absent, is written by a successful register or login (as part
    of that operation's commit) and is cleared by logout. There is exactly
    one pointer per backing store.
    """

    def __init__(self, storage: KeyValueStore) -> None:
        self._storage = storage

    @property
    def key(self) -> str:
        return CURRENT_USER_KEY

    def get(self) -> Optional[User]:
        return _parse_user(self._storage.get(CURRENT_USER_KEY))

    def set(self, user: User) -> None:
        self._storage.set(CURRENT_USER_KEY, user.to_dict())

    def clear(self) -> None:
        self._storage.delete(CURRENT_USER_KEY)


class AccountStore:
    """Register, authenticate and track the logged-in user.

    Passwords are stored and compared as plain text; this store makes no
    security claims.
    """

    def __init__(self, storage: KeyValueStore) -> None:
        self._storage = storage
        self._session = SessionContext(storage)

    @property
    def session(self) -> SessionContext:
        return self._session

    def _load_records(self) -> List[Dict[str, Any]]:
        records = self._storage.get(USERS_KEY, [])
        if not isinstance(records, list):
            logger.warning("User table under %s is not a list; treating it as empty", USERS_KEY)
            return []
        return records

    def list_users(self) -> List[User]:
        users: List[User] = []
        for record in self._load_records():
            user = _parse_user(record)
            if user is None:
                logger.warning("Skipping malformed user record in %s", USERS_KEY)
                continue
            users.append(user)
        return users

    def get_user_by_email(self, email: str) -> Optional[User]:
        normalized = normalize_email(email)
        for user in self.list_users():
            if user.email == normalized:
                return user
        return None

    def register(self, first_name: str, last_name: str, email: str, password: str) -> User:
        """Create an account, log it in and give it an empty task namespace."""

        normalized = normalize_email(email)
        records = self._load_records()
        for record in records:
            user = _parse_user(record)
            if user is not None and user.email == normalized:
                raise DuplicateEmailError(normalized)

        user = User(
            id=_generate_user_id(),
            first_name=first_name,
            last_name=last_name,
            email=normalized,
            password=password,
        )
        records.append(user.to_dict())

        self._storage.set_many(
            {
                USERS_KEY: records,
                self._session.key: user.to_dict(),
                namespace_key(normalized): [],
            }
        )
        logger.info("Registered user %s", normalized)
        return user

    def login(self, email: str, password: str) -> User:
        normalized = normalize_email(email)
        user = self.get_user_by_email(normalized)
        if user is None:
            raise UserNotFoundError(normalized)
        if user.password != password:
            raise InvalidCredentialsError(normalized)

        writes: Dict[str, Any] = {self._session.key: user.to_dict()}
        ns_key = namespace_key(normalized)
        if not isinstance(self._storage.get(ns_key), list):
            logger.info("Task namespace %s missing; recreating it empty", ns_key)
            writes[ns_key] = []

        self._storage.set_many(writes)
        logger.info("User %s logged in", normalized)
        return user

    def current_user(self) -> Optional[User]:
        return self._session.get()

    def logout(self) -> None:
        current = self._session.get()
        self._session.clear()
        if current is not None:
            logger.info("User %s logged out", current.email)


__all__ = [
    "AccountError",
    "AccountStore",
    "CURRENT_USER_KEY",
    "DuplicateEmailError",
    "InvalidCredentialsError",
    "SessionContext",
    "USERS_KEY",
    "UserNotFoundError",
]
