# Hosting shell: owns the credential session and the current location,
# builds the API client around them and reacts to its Unauthorized signal.

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from core.api_client import API_URL, HabitAPI
from core.errors import Unauthorized
from core.session import MemorySession
from utils.config import CONFIG

logger = logging.getLogger(__name__)


class Navigator:
    """Stand-in for the browser location: a current path plus its history."""

    def __init__(self, path: str = "/"):
        self.path = path
        self.history: List[str] = [path]

    def current(self) -> str:
        return self.path

    def navigate(self, path: str) -> None:
        if path == self.path:
            return
        logger.info("Navigating %s -> %s", self.path, path)
        self.path = path
        self.history.append(path)


@dataclass
class AuthState:
    """Fixed auth context, handy when the host already knows the answer."""
    is_authenticated: bool
    loading: bool = False


class SessionAuth:
    """Auth context derived from whether a credential is stored."""

    loading = False

    def __init__(self, session):
        self.session = session

    @property
    def is_authenticated(self) -> bool:
        return bool(self.session.get_token())


class AppShell:
    def __init__(self,
                 session=None,
                 navigator: Optional[Navigator] = None,
                 base_url: str = API_URL,
                 http=None):
        self.session = session if session is not None else MemorySession()
        self.navigator = navigator or Navigator()
        self.auth = SessionAuth(self.session)
        self.api = HabitAPI(base_url,
                            session=self.session,
                            current_path=self.navigator.current,
                            on_unauthorized=self.handle_unauthorized,
                            http=http)

    def handle_unauthorized(self, err: Unauthorized) -> None:
        if err.redirect_to:
            logger.warning("Credential rejected; redirecting to %s", err.redirect_to)
            self.navigator.navigate(err.redirect_to)
        else:
            logger.warning("Credential rejected on %s; staying put", self.navigator.current())

    def calendar_view(self, now_fn: Optional[Callable] = None, tz=None):
        from habitgrid_calendar.view import CalendarView

        self.navigator.navigate(CONFIG["routes"]["calendar"])
        return CalendarView(self.api, self.auth, now_fn=now_fn, tz=tz)
