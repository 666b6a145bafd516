"""HTTP API exposing account and task operations to a front end."""

from __future__ import annotations

import logging
import os
import threading
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Response, status
from pydantic import BaseModel

from .accounts import (
    AccountStore,
    DuplicateEmailError,
    InvalidCredentialsError,
    UserNotFoundError,
)
from .config import resolve_database_path
from .models import MutationResult, Task, User
from .storage import KeyValueStore
from .tasks import TaskStore

logger = logging.getLogger("taskboard.service")


class RegisterRequest(BaseModel):
    first_name: str
    last_name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: str
    display_name: str


class SessionResponse(BaseModel):
    user: Optional[UserResponse] = None


class TaskTextRequest(BaseModel):
    text: str


class TaskResponse(BaseModel):
    id: str
    text: str
    completed: bool
    created_at: int
    updated_at: int


class TaskListResponse(BaseModel):
    tasks: List[TaskResponse]
    total: int
    active: int
    done: int


class MutationResponse(BaseModel):
    result: MutationResult


class ClearCompletedResponse(BaseModel):
    removed: int


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        display_name=user.display_name,
    )


def task_to_response(task: Task) -> TaskResponse:
    return TaskResponse(
        id=task.id,
        text=task.text,
        completed=task.completed,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def register_api_routes(app: FastAPI, storage: KeyValueStore, accounts: AccountStore) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application.

    Sync handlers run on a threadpool, while every core operation rewrites a
    whole key. All reads and writes therefore go through one lock.
    """

    lock = threading.Lock()

    def current_user() -> User:
        with lock:
            user = accounts.current_user()
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
        return user

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/v1/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    def register(payload: RegisterRequest) -> UserResponse:
        try:
            with lock:
                user = accounts.register(
                    payload.first_name,
                    payload.last_name,
                    payload.email,
                    payload.password,
                )
        except DuplicateEmailError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return user_to_response(user)

    @app.post("/v1/login", response_model=UserResponse)
    def login(payload: LoginRequest) -> UserResponse:
        try:
            with lock:
                user = accounts.login(payload.email, payload.password)
        except UserNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
        except InvalidCredentialsError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
        return user_to_response(user)

    @app.post("/v1/logout", status_code=status.HTTP_204_NO_CONTENT)
    def logout() -> Response:
        with lock:
            accounts.logout()
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/v1/session", response_model=SessionResponse)
    def read_session() -> SessionResponse:
        with lock:
            user = accounts.current_user()
        return SessionResponse(user=user_to_response(user) if user is not None else None)

    # The namespace is reloaded per request so that other writers are seen.
    @app.get("/v1/tasks", response_model=TaskListResponse)
    def list_tasks(
        filter: str = "all",
        sort: str = "new",
        user: User = Depends(current_user),
    ) -> TaskListResponse:
        with lock:
            store = TaskStore(user.email, storage)
            tasks = store.list(filter, sort)
            counts = store.counts()
        return TaskListResponse(
            tasks=[task_to_response(task) for task in tasks],
            total=counts.total,
            active=counts.active,
            done=counts.done,
        )

    @app.post("/v1/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
    def add_task(payload: TaskTextRequest, user: User = Depends(current_user)) -> TaskResponse:
        with lock:
            task = TaskStore(user.email, storage).add(payload.text)
        return task_to_response(task)

    @app.post("/v1/tasks/clear-completed", response_model=ClearCompletedResponse)
    def clear_completed(user: User = Depends(current_user)) -> ClearCompletedResponse:
        with lock:
            removed = TaskStore(user.email, storage).clear_completed()
        return ClearCompletedResponse(removed=removed)

    @app.post("/v1/tasks/{task_id}/toggle", response_model=MutationResponse)
    def toggle_task(task_id: str, user: User = Depends(current_user)) -> MutationResponse:
        with lock:
            result = TaskStore(user.email, storage).toggle(task_id)
        return MutationResponse(result=result)

    @app.patch("/v1/tasks/{task_id}", response_model=MutationResponse)
    def update_task(
        task_id: str,
        payload: TaskTextRequest,
        user: User = Depends(current_user),
    ) -> MutationResponse:
        with lock:
            result = TaskStore(user.email, storage).update(task_id, payload.text)
        return MutationResponse(result=result)

    @app.delete("/v1/tasks/{task_id}", response_model=MutationResponse)
    def remove_task(task_id: str, user: User = Depends(current_user)) -> MutationResponse:
        with lock:
            result = TaskStore(user.email, storage).remove(task_id)
        return MutationResponse(result=result)


def create_app(*, storage: KeyValueStore | None = None) -> FastAPI:
    """Instantiate the FastAPI application around a key-value store."""

    kv = storage or KeyValueStore(resolve_database_path(os.getenv("TASKBOARD_DB_PATH")))
    kv.initialize()
    accounts = AccountStore(kv)

    app = FastAPI(
        title="Taskboard API",
        version="0.1.0",
        description="Local accounts with per-user task lists.",
    )
    app.state.storage = kv
    app.state.accounts = accounts

    register_api_routes(app, kv, accounts)
    logger.info("Taskboard API ready (storage=%s)", kv.path)
    return app


__all__ = ["create_app", "register_api_routes"]
