# Failure taxonomy for the HabitGrid API client.
#
#   HabitApiError
#   ├─ ServerUnavailable   could not connect at all
#   ├─ HttpError           server answered with status >= 400
#   │   └─ Unauthorized    401; credential already purged
#   ├─ NoResponse          request went out, nothing came back
#   └─ RequestSetupError   request could not be built

from __future__ import annotations
from typing import Any, Dict, Optional

SERVER_UNAVAILABLE_MESSAGE = "Server is not running. Please start the server and try again."


class HabitApiError(Exception):
    """Base class; `response` is the requests.Response when there was one."""

    def __init__(self, message: str, response=None):
        super().__init__(message)
        self.message = message
        self.response = response


class ServerUnavailable(HabitApiError):
    def __init__(self, message: str = SERVER_UNAVAILABLE_MESSAGE):
        super().__init__(message)


class HttpError(HabitApiError):
    def __init__(self, response, message: Optional[str] = None):
        self.status_code: int = response.status_code
        self.body: Any = _decode_body(response)
        self.headers: Dict[str, str] = dict(response.headers)
        super().__init__(message or f"HTTP {self.status_code} from {response.url}", response=response)

    @property
    def server_message(self) -> Optional[str]:
        if isinstance(self.body, dict):
            msg = self.body.get("message")
            if isinstance(msg, str) and msg:
                return msg
        return None


class Unauthorized(HttpError):
    """401 from the server. `redirect_to` is set when the shell should send the user to login."""

    def __init__(self, response, redirect_to: Optional[str] = None):
        super().__init__(response)
        self.redirect_to = redirect_to


class NoResponse(HabitApiError):
    pass


class RequestSetupError(HabitApiError):
    pass


def _decode_body(response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
