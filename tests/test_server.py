import tempfile
import threading
import unittest
from datetime import date, datetime
from pathlib import Path

from fastapi.testclient import TestClient
from jose import jwt

from core.api_client import HabitAPI
from core.errors import HttpError, Unauthorized
from core.session import MemorySession
from core.shell import AppShell, Navigator
from habitgrid_calendar.view import ViewState
from habitgrid_main import auth
from habitgrid_main.main import create_app
from habitgrid_main.store import HabitStore, compute_streak


def _token(user_id: str) -> str:
    return jwt.encode({"sub": user_id}, auth.SECRET_KEY, algorithm=auth.ALGORITHM)


class ServerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = HabitStore(Path(self._tmp.name) / "db.json")
        self.user = self.store.add_user("Sam", "sam@example.com", auth.hash_password("secret123"))
        self.client = TestClient(create_app(self.store))
        self.headers = {"Authorization": f"Bearer {_token(self.user['_id'])}"}

    def tearDown(self) -> None:
        self.client.close()
        self._tmp.cleanup()


class TestAuthGuard(ServerTestCase):
    def test_missing_token_is_401_with_message(self) -> None:
        resp = self.client.get("/profile")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"message": "No token, authorization denied"})

    def test_bad_token_is_401(self) -> None:
        resp = self.client.get("/api/habits", headers={"Authorization": "Bearer not-a-jwt"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "Token is not valid")

    def test_token_for_unknown_user_is_401(self) -> None:
        resp = self.client.get("/profile", headers={"Authorization": f"Bearer {_token('ghost')}"})
        self.assertEqual(resp.status_code, 401)

    def test_health_is_open(self) -> None:
        self.assertEqual(self.client.get("/health").json()["status"], "ok")


class TestProfileRoutes(ServerTestCase):
    def test_get_profile_hides_password(self) -> None:
        resp = self.client.get("/profile", headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["name"], "Sam")
        self.assertNotIn("password", body)

    def test_update_profile(self) -> None:
        resp = self.client.put("/profile", json={"name": "Samira"}, headers=self.headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["name"], "Samira")
        self.assertEqual(resp.json()["email"], "sam@example.com")
        self.assertEqual(self.store.get_user(self.user["_id"])["name"], "Samira")

    def test_update_profile_rejects_taken_email(self) -> None:
        self.store.add_user("Alex", "alex@example.com", auth.hash_password("whatever1"))
        resp = self.client.put("/profile", json={"email": "ALEX@example.com"}, headers=self.headers)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Email is already in use")

    def test_update_profile_validates_email(self) -> None:
        resp = self.client.put("/profile", json={"email": "nope"}, headers=self.headers)
        self.assertEqual(resp.status_code, 422)
        self.assertIn("email", resp.json()["message"])

    def test_change_password(self) -> None:
        resp = self.client.post("/change-password", headers=self.headers,
                                json={"currentPassword": "secret123", "newPassword": "better456"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["message"], "Password updated successfully")
        stored = self.store.get_user(self.user["_id"])["password"]
        self.assertTrue(auth.verify_password("better456", stored))

    def test_change_password_wrong_current(self) -> None:
        resp = self.client.post("/change-password", headers=self.headers,
                                json={"currentPassword": "wrong", "newPassword": "better456"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Current password is incorrect")

    def test_change_password_too_short(self) -> None:
        resp = self.client.post("/change-password", headers=self.headers,
                                json={"currentPassword": "secret123", "newPassword": "abc"})
        self.assertEqual(resp.status_code, 422)


class TestHabitRoutes(ServerTestCase):
    def _create(self, **fields):
        body = {"title": "Read", "startDate": "2024-01-10", "startTime": "09:00"}
        body.update(fields)
        resp = self.client.post("/api/habits", json=body, headers=self.headers)
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()

    def test_create_and_list(self) -> None:
        habit = self._create(endTime="10:30", category="mind")
        self.assertEqual(habit["startDate"], "2024-01-10")
        self.assertEqual(habit["completionHistory"], [])
        listed = self.client.get("/api/habits", headers=self.headers).json()
        self.assertEqual([h["_id"] for h in listed], [habit["_id"]])

    def test_habits_are_scoped_to_user(self) -> None:
        self._create()
        other = self.store.add_user("Alex", "alex@example.com", auth.hash_password("whatever1"))
        headers = {"Authorization": f"Bearer {_token(other['_id'])}"}
        self.assertEqual(self.client.get("/api/habits", headers=headers).json(), [])

    def test_create_rejects_bad_time(self) -> None:
        resp = self.client.post("/api/habits", headers=self.headers,
                                json={"title": "Read", "startDate": "2024-01-10", "startTime": "9am"})
        self.assertEqual(resp.status_code, 422)

    def test_update_and_delete(self) -> None:
        habit = self._create()
        resp = self.client.put(f"/api/habits/{habit['_id']}", json={"endTime": "11:00"},
                               headers=self.headers)
        self.assertEqual(resp.json()["endTime"], "11:00")
        self.assertEqual(resp.json()["startTime"], "09:00")

        resp = self.client.delete(f"/api/habits/{habit['_id']}", headers=self.headers)
        self.assertEqual(resp.json(), {"message": "Habit deleted"})
        resp = self.client.get(f"/api/habits/{habit['_id']}", headers=self.headers)
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["message"], "Habit not found")

    def test_complete_upserts_entry_and_streak(self) -> None:
        habit = self._create()
        url = f"/api/habits/{habit['_id']}/complete"
        self.client.post(url, json={"date": "2024-01-10"}, headers=self.headers)
        resp = self.client.post(url, json={"date": "2024-01-11"}, headers=self.headers)
        self.assertEqual(resp.json()["streak"], 2)

        resp = self.client.post(url, json={"date": "2024-01-11", "completed": False},
                                headers=self.headers)
        body = resp.json()
        self.assertEqual(body["streak"], 0)
        self.assertEqual(body["completionHistory"], [
            {"date": "2024-01-10", "completed": True},
            {"date": "2024-01-11", "completed": False},
        ])


class TestStreak(unittest.TestCase):
    def test_counts_back_from_day(self) -> None:
        history = [{"date": d, "completed": True} for d in ("2024-01-08", "2024-01-09", "2024-01-11")]
        self.assertEqual(compute_streak(history, date(2024, 1, 9)), 2)
        self.assertEqual(compute_streak(history, date(2024, 1, 11)), 1)
        self.assertEqual(compute_streak(history, date(2024, 1, 10)), 0)


class TestStoreConcurrency(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "db.json"

    def _hammer(self, stores, per_thread=10):
        def work(store, n):
            for i in range(per_thread):
                store.create_habit("u1", {"title": f"h{n}-{i}", "startDate": "2024-01-10"})

        threads = [threading.Thread(target=work, args=(store, n)) for n, store in enumerate(stores)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

    def test_overlapping_creates_are_all_kept(self) -> None:
        store = HabitStore(self.path)
        self._hammer([store] * 8)
        self.assertEqual(len(store.list_habits("u1")), 80)

    def test_separate_store_instances_share_the_file_lock(self) -> None:
        self._hammer([HabitStore(self.path) for _ in range(6)])
        self.assertEqual(len(HabitStore(self.path).list_habits("u1")), 60)
        self.assertFalse(self.path.with_suffix(".json.lock").exists())

    def test_completions_and_edits_interleave_without_loss(self) -> None:
        store = HabitStore(self.path)
        habit = store.create_habit("u1", {"title": "Read", "startDate": "2024-01-01"})
        days = [date(2024, 1, d) for d in range(1, 11)]

        def complete():
            for d in days:
                store.set_completion("u1", habit["_id"], d, True)

        def rename():
            for i in range(10):
                store.update_habit("u1", habit["_id"], {"description": f"v{i}"})

        threads = [threading.Thread(target=complete), threading.Thread(target=rename)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        stored = store.get_habit("u1", habit["_id"])
        self.assertEqual(len(stored["completionHistory"]), 10)
        self.assertEqual(stored["description"], "v9")
        self.assertEqual(stored["streak"], 10)


class TestClientAgainstServer(ServerTestCase):
    def test_calendar_view_end_to_end(self) -> None:
        api = HabitAPI("http://testserver", session=MemorySession(_token(self.user["_id"])),
                       http=self.client)
        habit = api.create_habit({"title": "Read", "startDate": "2024-01-10",
                                  "startTime": "09:00", "endTime": "10:30"})
        api.complete_habit(habit["_id"], datetime(2024, 1, 11).date())

        shell = AppShell(session=MemorySession(_token(self.user["_id"])),
                         base_url="http://testserver", http=self.client)
        view = shell.calendar_view(now_fn=lambda: datetime(2024, 1, 11, 8, 0), tz="UTC").mount()
        self.assertEqual(view.state, ViewState.READY)
        [ev] = view.events
        self.assertEqual(ev.id, habit["_id"])
        self.assertTrue(ev.extended_props.is_completed)
        self.assertEqual(shell.navigator.current(), "/calendar")

    def test_server_messages_reach_the_client(self) -> None:
        api = HabitAPI("http://testserver", session=MemorySession(_token(self.user["_id"])),
                       http=self.client)
        with self.assertLogs("core.api_client", level="ERROR"):
            with self.assertRaises(HttpError) as ctx:
                api.change_password("wrong", "better456")
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.server_message, "Current password is incorrect")

    def test_rejected_token_sends_shell_to_login(self) -> None:
        session = MemorySession("garbage")
        shell = AppShell(session=session, navigator=Navigator("/habits"),
                         base_url="http://testserver", http=self.client)
        with self.assertLogs("core.api_client", level="ERROR"):
            with self.assertRaises(Unauthorized):
                shell.api.list_habits()
        self.assertIsNone(session.get_token())
        self.assertEqual(shell.navigator.current(), "/login")


if __name__ == "__main__":
    unittest.main(verbosity=2)
