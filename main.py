"""Command-line interface for the taskboard service."""

from __future__ import annotations
import argparse
import logging
import sys
from dataclasses import replace
from datetime import datetime
from getpass import getpass
from pathlib import Path
from typing import Sequence

from taskboard.accounts import AccountError, AccountStore
from taskboard.config import Settings, load_settings, resolve_database_path
from taskboard.models import MutationResult, Task, TaskFilter, TaskSort
from taskboard.storage import KeyValueStore
from taskboard.tasks import NAMESPACE_PREFIX, TaskStore

logger = logging.getLogger("taskboard.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Taskboard utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (default: TASKBOARD_CONFIG or config/taskboard.yaml)",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (overrides the configuration file)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the taskboard database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument("--port", type=int, default=None, help="Port for the API")

    register_parser = subparsers.add_parser("register", help="Create an account and log it in")
    register_parser.add_argument("first_name", help="First name")
    register_parser.add_argument("last_name", help="Last name")
    register_parser.add_argument("email", help="Email address used to log in")
    register_parser.add_argument("--password", default=None, help="Password (prompted when omitted)")

    login_parser = subparsers.add_parser("login", help="Log in to an existing account")
    login_parser.add_argument("email", help="Email address")
    login_parser.add_argument("--password", default=None, help="Password (prompted when omitted)")

    subparsers.add_parser("logout", help="Log out of the current account")
    subparsers.add_parser("whoami", help="Show the logged-in account")
    subparsers.add_parser("users", help="List registered accounts")

    tasks_parser = subparsers.add_parser("tasks", help="Manage the current account's tasks")
    task_commands = tasks_parser.add_subparsers(dest="task_command", required=True)

    list_parser = task_commands.add_parser("list", help="List tasks")
    list_parser.add_argument(
        "--filter",
        dest="task_filter",
        default=TaskFilter.ALL.value,
        help="all, active or done",
    )
    list_parser.add_argument(
        "--sort",
        dest="task_sort",
        default=TaskSort.NEWEST.value,
        help="new (newest first) or old (oldest first)",
    )

    add_parser = task_commands.add_parser("add", help="Add a task")
    add_parser.add_argument("text", help="Task text")

    toggle_parser = task_commands.add_parser("toggle", help="Toggle a task's completion")
    toggle_parser.add_argument("task_id")

    edit_parser = task_commands.add_parser("edit", help="Replace a task's text")
    edit_parser.add_argument("task_id")
    edit_parser.add_argument("text", help="New task text")

    remove_parser = task_commands.add_parser("remove", help="Delete a task")
    remove_parser.add_argument("task_id")

    task_commands.add_parser("clear-done", help="Delete every completed task")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "register", "login", "logout", "whoami", "users", "tasks"}

    index = _skip_global_options(args_list)
    if index == len(args_list):
        args_list = [*args_list, "serve"]
    else:
        first = args_list[index]
        if first not in known_commands and first not in ("-h", "--help"):
            args_list = [*args_list[:index], "serve", *args_list[index:]]

    return parser.parse_args(args_list)


def _skip_global_options(args: Sequence[str]) -> int:
    """Return the index of the first argument after the global options."""

    index = 0
    while index < len(args):
        arg = args[index]
        if arg in ("--config", "--db"):
            index += 2
        elif arg.startswith("--config=") or arg.startswith("--db="):
            index += 1
        else:
            break
    return min(index, len(args))


def _load_settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(Path(args.config) if args.config else None)
    if args.db_path:
        settings = replace(settings, database_path=resolve_database_path(args.db_path))
    return settings


def _initialise_storage(settings: Settings) -> KeyValueStore:
    storage = KeyValueStore(settings.database_path)
    storage.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return storage


def _serve(*, storage: KeyValueStore, host: str, port: int) -> None:
    from taskboard.service import create_app
    import uvicorn

    logger.info("Starting taskboard API on http://%s:%s", host, port)
    app = create_app(storage=storage)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _require(value: str, message: str) -> bool:
    if value.strip():
        return True
    print(message, file=sys.stderr)
    return False


def _password_from(args: argparse.Namespace) -> str:
    if args.password is not None:
        return args.password
    return getpass("Password: ")


def _register(accounts: AccountStore, args: argparse.Namespace) -> int:
    password = _password_from(args).strip()
    fields = (args.first_name, args.last_name, args.email, password)
    if not all(field.strip() for field in fields):
        print("All fields are required.", file=sys.stderr)
        return 1

    try:
        user = accounts.register(args.first_name.strip(), args.last_name.strip(), args.email, password)
    except AccountError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Registered and logged in as {user.display_name} <{user.email}>")
    return 0


def _login(accounts: AccountStore, args: argparse.Namespace) -> int:
    password = _password_from(args).strip()
    if not args.email.strip() or not password:
        print("Please enter both fields.", file=sys.stderr)
        return 1

    try:
        user = accounts.login(args.email, password)
    except AccountError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Logged in as {user.display_name} <{user.email}>")
    return 0


def _whoami(accounts: AccountStore) -> int:
    user = accounts.current_user()
    if user is None:
        print("Not logged in.")
        return 1
    print(f"{user.display_name} <{user.email}>")
    return 0


def _list_users(accounts: AccountStore, storage: KeyValueStore) -> int:
    users = accounts.list_users()
    if not users:
        print("No users are currently registered.")
        return 0

    namespaces = set(storage.keys(NAMESPACE_PREFIX))
    print(f"{len(users)} user(s) found:")
    print(f"{'Name':<32}  {'Email':<32}  Tasks")
    print("-" * 80)
    for user in users:
        name = f"{user.first_name} {user.last_name}".strip() or "<no name>"
        store = TaskStore(user.email, storage)
        tasks = str(len(store)) if store.key in namespaces else "-"
        print(f"{name:<32}  {user.email:<32}  {tasks}")
    return 0


def _format_timestamp(value: int) -> str:
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M")


def _print_tasks(tasks: Sequence[Task]) -> None:
    for task in tasks:
        mark = "x" if task.completed else " "
        print(f"[{mark}] {task.id}  {task.text}  ({_format_timestamp(task.created_at)})")


def _run_tasks(accounts: AccountStore, storage: KeyValueStore, args: argparse.Namespace) -> int:
    user = accounts.current_user()
    if user is None:
        print("Not logged in. Run `login` or `register` first.", file=sys.stderr)
        return 1

    store = TaskStore(user.email, storage)
    command = args.task_command

    if command == "list":
        tasks = store.list(args.task_filter, args.task_sort)
        if not tasks:
            print("No tasks yet. Add your first task!")
            return 0
        _print_tasks(tasks)
        counts = store.counts()
        print(f"{counts.active} active, {counts.done} done")
        return 0

    if command == "add":
        if not _require(args.text, "Type something first."):
            return 1
        task = store.add(args.text)
        print(f"Task added: {task.id}")
        return 0

    if command == "edit":
        if not _require(args.text, "Task cannot be empty."):
            return 1
        existing = store.get(args.task_id)
        if existing is None:
            return _report(MutationResult.NOT_FOUND, "")
        if existing.text == args.text.strip():
            print("Task unchanged.")
            return 0
        return _report(store.update(args.task_id, args.text), "Task updated.")

    if command == "toggle":
        return _report(store.toggle(args.task_id), "Task toggled.")

    if command == "remove":
        return _report(store.remove(args.task_id), "Task deleted.")

    if command == "clear-done":
        removed = store.clear_completed()
        print(f"Cleared {removed} completed task(s).")
        return 0

    raise ValueError(f"Unknown task command: {command}")


def _report(result: MutationResult, message: str) -> int:
    if result is MutationResult.NOT_FOUND:
        print("No task with that id.")
        return 0
    print(message)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    settings = _load_settings(args)
    logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(message)s")

    storage = _initialise_storage(settings)
    accounts = AccountStore(storage)

    if args.command == "serve":
        _serve(
            storage=storage,
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
        return 0
    if args.command == "init-db":
        print("Database initialisation complete.")
        return 0
    if args.command == "register":
        return _register(accounts, args)
    if args.command == "login":
        return _login(accounts, args)
    if args.command == "logout":
        accounts.logout()
        print("Logged out.")
        return 0
    if args.command == "whoami":
        return _whoami(accounts)
    if args.command == "users":
        return _list_users(accounts, storage)
    if args.command == "tasks":
        return _run_tasks(accounts, storage, args)

    raise ValueError(f"Unknown command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
