from __future__ import annotations
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import requests
from urllib3.exceptions import ProtocolError

from core.errors import (
    HabitApiError,
    HttpError,
    NoResponse,
    RequestSetupError,
    ServerUnavailable,
    Unauthorized,
)
from core.session import MemorySession
from utils.config import CONFIG

logger = logging.getLogger(__name__)

# -----------------------------
# Config helpers
# -----------------------------
API_URL = CONFIG["api"]["base_url"]
API_TIMEOUT_S = CONFIG["api"]["timeout_s"]
LOGIN_PATH = CONFIG["routes"]["login"]
AUTH_PATHS = (CONFIG["routes"]["login"], CONFIG["routes"]["register"])

_SETUP_ERRORS = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
    requests.exceptions.InvalidHeader,
    requests.exceptions.URLRequired,
    requests.exceptions.InvalidJSONError,
)


# -----------------------------
# Core client
# -----------------------------
class HabitAPI:
    """
    Thin requests wrapper for the HabitGrid REST API.

    Collaborators are explicit so nothing reads global state:
      session          credential store (get_token / clear)
      current_path     returns the path of the view the user is on
      on_unauthorized  called with the Unauthorized error before it propagates;
                       the shell uses it to navigate
    """

    def __init__(self,
                 base_url: str = API_URL,
                 session=None,
                 timeout: float = API_TIMEOUT_S,
                 current_path: Optional[Callable[[], str]] = None,
                 on_unauthorized: Optional[Callable[[Unauthorized], None]] = None,
                 http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else MemorySession()
        self.timeout = timeout
        self.current_path = current_path
        self.on_unauthorized = on_unauthorized
        self.http = http or requests.Session()

    # -------------------------
    # Request pipeline
    # -------------------------
    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.session.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = self._headers(kwargs.pop("headers", None))
        try:
            resp = self.http.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.exceptions.ConnectTimeout as e:
            raise self._unavailable(e) from e
        except requests.exceptions.Timeout as e:
            raise self._no_response(method, url, e) from e
        except requests.exceptions.ConnectionError as e:
            # "Connection aborted" means the request left but the reply never did
            if e.args and isinstance(e.args[0], ProtocolError):
                raise self._no_response(method, url, e) from e
            raise self._unavailable(e) from e
        except _SETUP_ERRORS as e:
            raise self._setup_error(method, url, e) from e
        except (TypeError, ValueError) as e:
            # body could not be serialized
            raise self._setup_error(method, url, e) from e
        except requests.exceptions.RequestException as e:
            raise self._no_response(method, url, e) from e

        if resp.status_code == 401:
            self._handle_unauthorized(resp)
        if resp.status_code >= 400:
            err = HttpError(resp)
            self._log_http_error(err)
            raise err
        return resp

    def _unavailable(self, exc: Exception) -> ServerUnavailable:
        logger.error("Server is not running or not accessible: %s", exc)
        return ServerUnavailable()

    def _no_response(self, method: str, url: str, exc: Exception) -> NoResponse:
        logger.error("Network Error: no response to %s %s (%s)", method, url, exc)
        return NoResponse(f"No response from server for {method} {url}")

    def _setup_error(self, method: str, url: str, exc: Exception) -> RequestSetupError:
        logger.error("Error: could not build %s %s: %s", method, url, exc)
        return RequestSetupError(str(exc))

    def _log_http_error(self, err: HttpError) -> None:
        logger.error("API Error: status=%s data=%r headers=%r",
                     err.status_code, err.body, err.headers)

    def _handle_unauthorized(self, resp: requests.Response) -> None:
        self.session.clear()
        path = self.current_path() if self.current_path else None
        redirect_to = None if path in AUTH_PATHS else LOGIN_PATH
        err = Unauthorized(resp, redirect_to=redirect_to)
        self._log_http_error(err)
        if self.on_unauthorized:
            self.on_unauthorized(err)
        raise err

    @staticmethod
    def _json(resp: requests.Response) -> Any:
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # -------------------------
    # Habits
    # -------------------------
    def list_habits(self) -> List[Dict[str, Any]]:
        data = self._json(self.request("GET", "/api/habits"))
        return data or []

    def create_habit(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._json(self.request("POST", "/api/habits", json=payload))

    def update_habit(self, habit_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._json(self.request("PUT", f"/api/habits/{habit_id}", json=payload))

    def delete_habit(self, habit_id: str) -> Optional[Dict[str, Any]]:
        return self._json(self.request("DELETE", f"/api/habits/{habit_id}"))

    def complete_habit(self,
                       habit_id: str,
                       day: Optional[date] = None,
                       completed: bool = True) -> Dict[str, Any]:
        body: Dict[str, Any] = {"completed": completed}
        if day is not None:
            body["date"] = day.isoformat()
        return self._json(self.request("POST", f"/api/habits/{habit_id}/complete", json=body))

    # -------------------------
    # Profile
    # -------------------------
    def get_profile(self) -> Dict[str, Any]:
        return self._json(self.request("GET", "/profile"))

    def update_profile(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._json(self.request("PUT", "/profile", json=payload))

    def change_password(self, current_password: str, new_password: str) -> Dict[str, Any]:
        body = {"currentPassword": current_password, "newPassword": new_password}
        return self._json(self.request("POST", "/change-password", json=body))


__all__ = ["HabitAPI", "HabitApiError"]
