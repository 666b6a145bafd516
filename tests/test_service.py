"""End-to-end tests for the taskboard HTTP API."""

from __future__ import annotations

import tempfile
import unittest
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from fastapi.testclient import TestClient

from taskboard.accounts import AccountStore
from taskboard.service import create_app
from taskboard.storage import KeyValueStore


class TaskboardServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        self.storage = KeyValueStore(Path(self._tempdir.name) / "taskboard.sqlite3")
        self.app = create_app(storage=self.storage)
        self.client = TestClient(self.app)
        self.email = "alice@example.com"
        self.password = "wonderland"

    def tearDown(self) -> None:
        self.client.close()
        self._tempdir.cleanup()

    def _register(self) -> dict:
        response = self.client.post(
            "/v1/register",
            json={
                "first_name": "Alice",
                "last_name": "Liddell",
                "email": " Alice@Example.com ",
                "password": self.password,
            },
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def test_healthcheck(self) -> None:
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_register_logs_in_and_starts_with_empty_list(self) -> None:
        user = self._register()
        self.assertEqual(user["email"], self.email)
        self.assertEqual(user["display_name"], "Alice")
        self.assertNotIn("password", user)

        session = self.client.get("/v1/session").json()
        self.assertEqual(session["user"]["id"], user["id"])

        tasks = self.client.get("/v1/tasks").json()
        self.assertEqual(tasks, {"tasks": [], "total": 0, "active": 0, "done": 0})

    def test_duplicate_registration_conflicts(self) -> None:
        self._register()
        response = self.client.post(
            "/v1/register",
            json={
                "first_name": "Other",
                "last_name": "Alice",
                "email": "ALICE@example.com",
                "password": "different",
            },
        )
        self.assertEqual(response.status_code, 409, response.text)

    def test_login_errors_are_distinguishable(self) -> None:
        self._register()
        self.client.post("/v1/logout")

        missing = self.client.post("/v1/login", json={"email": "bob@example.com", "password": "x"})
        self.assertEqual(missing.status_code, 404, missing.text)

        wrong = self.client.post("/v1/login", json={"email": self.email, "password": "nope"})
        self.assertEqual(wrong.status_code, 401, wrong.text)

        ok = self.client.post("/v1/login", json={"email": "ALICE@example.com ", "password": self.password})
        self.assertEqual(ok.status_code, 200, ok.text)
        self.assertEqual(ok.json()["email"], self.email)

    def test_task_routes_require_session(self) -> None:
        self._register()
        logout = self.client.post("/v1/logout")
        self.assertEqual(logout.status_code, 204)

        self.assertIsNone(self.client.get("/v1/session").json()["user"])
        self.assertEqual(self.client.get("/v1/tasks").status_code, 401)
        self.assertEqual(self.client.post("/v1/tasks", json={"text": "x"}).status_code, 401)

    def test_task_lifecycle(self) -> None:
        self._register()

        first = self.client.post("/v1/tasks", json={"text": "  first  "})
        self.assertEqual(first.status_code, 201, first.text)
        first_id = first.json()["id"]
        self.assertEqual(first.json()["text"], "first")
        second_id = self.client.post("/v1/tasks", json={"text": "second"}).json()["id"]

        toggled = self.client.post(f"/v1/tasks/{first_id}/toggle")
        self.assertEqual(toggled.json(), {"result": "updated"})

        edited = self.client.patch(f"/v1/tasks/{second_id}", json={"text": "second, edited"})
        self.assertEqual(edited.json(), {"result": "updated"})

        done = self.client.get("/v1/tasks", params={"filter": "done"}).json()
        self.assertEqual([task["id"] for task in done["tasks"]], [first_id])
        self.assertEqual((done["total"], done["active"], done["done"]), (2, 1, 1))

        active = self.client.get("/v1/tasks", params={"filter": "active", "sort": "old"}).json()
        self.assertEqual([task["text"] for task in active["tasks"]], ["second, edited"])

        cleared = self.client.post("/v1/tasks/clear-completed")
        self.assertEqual(cleared.json(), {"removed": 1})

        removed = self.client.delete(f"/v1/tasks/{second_id}")
        self.assertEqual(removed.json(), {"result": "updated"})
        self.assertEqual(self.client.get("/v1/tasks").json()["tasks"], [])

    def test_unknown_task_ids_report_not_found_without_error(self) -> None:
        self._register()

        for response in (
            self.client.post("/v1/tasks/missing/toggle"),
            self.client.patch("/v1/tasks/missing", json={"text": "x"}),
            self.client.delete("/v1/tasks/missing"),
        ):
            self.assertEqual(response.status_code, 200, response.text)
            self.assertEqual(response.json(), {"result": "not_found"})

    def test_concurrent_registrations_are_all_kept(self) -> None:
        def register(index: int) -> int:
            response = self.client.post(
                "/v1/register",
                json={
                    "first_name": f"User{index}",
                    "last_name": "Load",
                    "email": f"user{index}@example.com",
                    "password": "pw",
                },
            )
            return response.status_code

        with ThreadPoolExecutor(max_workers=16) as pool:
            codes = list(pool.map(register, range(64)))

        self.assertEqual(codes, [201] * 64)
        emails = {user.email for user in AccountStore(self.storage).list_users()}
        self.assertEqual(len(emails), 64)

    def test_concurrent_adds_keep_every_task(self) -> None:
        self._register()

        def add(index: int) -> int:
            return self.client.post("/v1/tasks", json={"text": f"task {index}"}).status_code

        with ThreadPoolExecutor(max_workers=16) as pool:
            codes = list(pool.map(add, range(48)))

        self.assertEqual(codes, [201] * 48)
        self.assertEqual(self.client.get("/v1/tasks").json()["total"], 48)

    def test_tasks_follow_the_logged_in_account(self) -> None:
        self._register()
        self.client.post("/v1/tasks", json={"text": "alice's task"})

        bob = self.client.post(
            "/v1/register",
            json={"first_name": "Bob", "last_name": "B", "email": "bob@example.com", "password": "pw"},
        )
        self.assertEqual(bob.status_code, 201, bob.text)
        self.assertEqual(self.client.get("/v1/tasks").json()["tasks"], [])

        self.client.post("/v1/login", json={"email": self.email, "password": self.password})
        tasks = self.client.get("/v1/tasks").json()["tasks"]
        self.assertEqual([task["text"] for task in tasks], ["alice's task"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
