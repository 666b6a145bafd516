import argparse
import getpass
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from taskboard.accounts import AccountError, AccountStore
from taskboard.config import resolve_database_path
from taskboard.storage import KeyValueStore


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a taskboard account")
    parser.add_argument("first_name", help="First name")
    parser.add_argument("last_name", help="Last name")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to TASKBOARD_DB_PATH or data/taskboard.sqlite3)",
    )
    return parser.parse_args(argv)


def prompt_for_password() -> str:
    for _ in range(3):
        password = getpass.getpass("Password: ")
        confirm = getpass.getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if not password.strip():
            print("Password must not be empty.", file=sys.stderr)
            continue
        return password.strip()
    raise SystemExit("Failed to set password after three attempts.")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    password = prompt_for_password()

    db_env = args.db_path or os.getenv("TASKBOARD_DB_PATH")
    storage = KeyValueStore(resolve_database_path(db_env))
    storage.initialize()

    accounts = AccountStore(storage)
    previous = accounts.current_user()
    try:
        user = accounts.register(args.first_name.strip(), args.last_name.strip(), args.email, password)
    except AccountError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    # Registration logs the new account in; put back whoever was logged in before.
    if previous is None:
        accounts.logout()
    else:
        accounts.session.set(previous)

    print(f"Created user {user.id}: {user.first_name} {user.last_name} <{user.email}>")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
