from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

import pytest

from taskboard.accounts import AccountStore
from taskboard.storage import KeyValueStore


SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "create_user.py"


def _load_script() -> ModuleType:
    spec = importlib.util.spec_from_file_location("create_user_script", SCRIPT)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_creates_account_without_leaving_a_session(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    script = _load_script()
    monkeypatch.setattr(script.getpass, "getpass", lambda prompt="": "s3cret")
    db_path = tmp_path / "script.sqlite3"

    exit_code = script.main(["Grace", "Hopper", "Grace@Example.com", "--db", str(db_path)])

    assert exit_code == 0
    assert "<grace@example.com>" in capsys.readouterr().out
    storage = KeyValueStore(db_path)
    accounts = AccountStore(storage)
    assert accounts.current_user() is None
    assert accounts.login("grace@example.com", "s3cret").first_name == "Grace"


def test_duplicate_account_is_reported(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
) -> None:
    script = _load_script()
    monkeypatch.setattr(script.getpass, "getpass", lambda prompt="": "s3cret")
    args = ["Grace", "Hopper", "grace@example.com", "--db", str(tmp_path / "script.sqlite3")]

    assert script.main(args) == 0
    assert script.main(args) == 1
    assert "Email already exists" in capsys.readouterr().err


def test_mismatched_passwords_abort(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    script = _load_script()
    answers = iter(["one", "two"] * 3)
    monkeypatch.setattr(script.getpass, "getpass", lambda prompt="": next(answers))

    with pytest.raises(SystemExit):
        script.main(["Grace", "Hopper", "grace@example.com", "--db", str(tmp_path / "script.sqlite3")])


def test_existing_session_survives_account_creation(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    script = _load_script()
    monkeypatch.setattr(script.getpass, "getpass", lambda prompt="": "s3cret")
    db_path = tmp_path / "script.sqlite3"
    storage = KeyValueStore(db_path)
    storage.initialize()
    ada = AccountStore(storage).register("Ada", "Lovelace", "ada@example.com", "pw")

    assert script.main(["Grace", "Hopper", "grace@example.com", "--db", str(db_path)]) == 0

    accounts = AccountStore(storage)
    assert accounts.current_user() == ada
    assert accounts.get_user_by_email("grace@example.com") is not None
