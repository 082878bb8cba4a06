# JSON document store for users and habits (one file, two collections).
# Every mutation is one read-modify-write under the file lock.
from __future__ import annotations
import logging
import threading
import uuid
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from utils.config import CONFIG
from utils.persistance import load_json, update_json

logger = logging.getLogger(__name__)

EMPTY_DB: Dict[str, List[Dict]] = {"users": [], "habits": []}

HABIT_FIELDS = ("title", "description", "category", "startDate", "endDate",
                "startTime", "endTime", "progress")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _new_id() -> str:
    return uuid.uuid4().hex[:24]


def compute_streak(history: List[Dict[str, Any]], day: date) -> int:
    """Consecutive completed days ending at `day`."""
    done = {str(e.get("date", ""))[:10] for e in history if e.get("completed")}
    streak = 0
    cur = day
    while cur.isoformat() in done:
        streak += 1
        cur -= timedelta(days=1)
    return streak


def _normalize(db: Dict[str, List[Dict]]) -> Dict[str, List[Dict]]:
    db.setdefault("users", [])
    db.setdefault("habits", [])
    return db


class HabitStore:
    def __init__(self, path: str | Path = CONFIG["server"]["db_path"]):
        self.path = Path(path)
        # serializes writers within this process; the .lock file covers other processes
        self._mutex = threading.Lock()

    def _read_db(self) -> Dict[str, List[Dict]]:
        return _normalize(load_json(self.path, EMPTY_DB))

    def _mutate(self, change: Callable[[Dict[str, List[Dict]]], Any]) -> Any:
        result = None

        def apply(db):
            nonlocal result
            db = _normalize(db)
            result = change(db)
            return db

        with self._mutex:
            update_json(self.path, apply, EMPTY_DB)
        return result

    # -------------------------
    # Users
    # -------------------------
    def add_user(self, name: str, email: str, password_hash: str) -> Dict:
        user = {
            "_id": _new_id(),
            "name": name,
            "email": email,
            "password": password_hash,
            "createdAt": _now_iso(),
            "updatedAt": _now_iso(),
        }
        self._mutate(lambda db: db["users"].append(user))
        logger.info("Created user %s", user["_id"])
        return user

    def get_user(self, user_id: str) -> Optional[Dict]:
        return next((u for u in self._read_db()["users"] if u.get("_id") == user_id), None)

    def find_user_by_email(self, email: str) -> Optional[Dict]:
        email = email.lower()
        return next((u for u in self._read_db()["users"]
                     if str(u.get("email", "")).lower() == email), None)

    def update_user(self, user_id: str, **fields) -> Optional[Dict]:
        def change(db):
            for u in db["users"]:
                if u.get("_id") == user_id:
                    u.update({k: v for k, v in fields.items() if v is not None})
                    u["updatedAt"] = _now_iso()
                    return u
            return None

        return self._mutate(change)

    # -------------------------
    # Habits
    # -------------------------
    def list_habits(self, user_id: str) -> List[Dict]:
        return [h for h in self._read_db()["habits"] if h.get("user") == user_id]

    def get_habit(self, user_id: str, habit_id: str) -> Optional[Dict]:
        return next((h for h in self.list_habits(user_id) if h.get("_id") == habit_id), None)

    def create_habit(self, user_id: str, fields: Dict[str, Any]) -> Dict:
        habit = {
            "_id": _new_id(),
            "user": user_id,
            "description": None,
            "category": None,
            "endDate": None,
            "startTime": None,
            "endTime": None,
            "completionHistory": [],
            "streak": 0,
            "progress": 0,
            "createdAt": _now_iso(),
        }
        habit.update({k: v for k, v in fields.items() if k in HABIT_FIELDS})
        self._mutate(lambda db: db["habits"].append(habit))
        logger.info("Created habit %s for user %s", habit["_id"], user_id)
        return habit

    def update_habit(self, user_id: str, habit_id: str, fields: Dict[str, Any]) -> Optional[Dict]:
        def change(db):
            for h in db["habits"]:
                if h.get("_id") == habit_id and h.get("user") == user_id:
                    h.update({k: v for k, v in fields.items() if k in HABIT_FIELDS})
                    return h
            return None

        return self._mutate(change)

    def delete_habit(self, user_id: str, habit_id: str) -> bool:
        def change(db):
            rows = [h for h in db["habits"]
                    if not (h.get("_id") == habit_id and h.get("user") == user_id)]
            if len(rows) == len(db["habits"]):
                return False
            db["habits"] = rows
            return True

        return self._mutate(change)

    def set_completion(self, user_id: str, habit_id: str, day: date, completed: bool) -> Optional[Dict]:
        """Upsert the completion entry for `day` and recompute the streak up to it."""
        def change(db):
            for h in db["habits"]:
                if h.get("_id") != habit_id or h.get("user") != user_id:
                    continue
                history = [e for e in h.get("completionHistory") or []
                           if str(e.get("date", ""))[:10] != day.isoformat()]
                history.append({"date": day.isoformat(), "completed": completed})
                history.sort(key=lambda e: str(e.get("date", "")))
                h["completionHistory"] = history
                h["streak"] = compute_streak(history, day)
                return h
            return None

        return self._mutate(change)
