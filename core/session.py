# Credential stores handed to the API client.
# MemorySession for tests and embedding, FileSession for the CLI.

from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

from utils.config import CONFIG
from utils.persistance import load_json, update_json

logger = logging.getLogger(__name__)


class MemorySession:
    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.get_token())


class FileSession(MemorySession):
    """Credential persisted in a small JSON file; `clear()` deletes the key."""

    def __init__(self,
                 path: str | Path = CONFIG["session"]["token_path"],
                 key: str = CONFIG["session"]["token_key"]):
        super().__init__()
        self.path = Path(path).expanduser()
        self.key = key

    def get_token(self) -> Optional[str]:
        data = load_json(self.path, {})
        token = data.get(self.key) if isinstance(data, dict) else None
        return token or None

    def set_token(self, token: str) -> None:
        def _put(doc):
            doc = doc if isinstance(doc, dict) else {}
            doc[self.key] = token
            return doc
        update_json(self.path, _put, {})
        logger.debug("Stored credential in %s", self.path)

    def clear(self) -> None:
        if not self.path.exists():
            return

        def _drop(doc):
            doc = doc if isinstance(doc, dict) else {}
            doc.pop(self.key, None)
            return doc
        update_json(self.path, _drop, {})
        logger.info("Removed stored credential from %s", self.path)
