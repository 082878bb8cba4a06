# JSON document helpers shared by the credential file and the server store.
# Writes go through a temp file + os.replace under an exclusive .lock file.

from __future__ import annotations
from pathlib import Path
import copy
import json
import os
import time
from typing import Any, Callable


def _lock_path(p: Path) -> Path:
    return p.with_suffix(p.suffix + ".lock")


def _acquire_lock(p: Path, timeout: float = 3.0, poll: float = 0.01) -> None:
    lock = _lock_path(p)
    start = time.time()
    while True:
        try:
            # O_EXCL makes create-if-absent a single step
            fd = os.open(lock, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            if time.time() - start > timeout:
                # stale lock left by a crashed writer
                try:
                    lock.unlink()
                except FileNotFoundError:
                    pass
                except OSError as e:
                    raise TimeoutError(f"Could not acquire lock for {p}") from e
                start = time.time()
            time.sleep(poll)
            continue
        os.close(fd)
        return


def _release_lock(p: Path) -> None:
    try:
        _lock_path(p).unlink()
    except FileNotFoundError:
        pass


def _load(p: Path, default: Any) -> Any:
    if not p.exists():
        return copy.deepcopy(default)
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write(p: Path, data: Any) -> None:
    tmp = p.with_suffix(p.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    os.replace(tmp, p)


def load_json(path: str | Path, default: Any) -> Any:
    """Read a JSON document; a missing file yields a copy of `default` (not written)."""
    return _load(Path(path).expanduser(), default)


def save_json(path: str | Path, data: Any) -> None:
    p = Path(path).expanduser()
    p.parent.mkdir(parents=True, exist_ok=True)
    _acquire_lock(p)
    try:
        _write(p, data)
    finally:
        _release_lock(p)


def update_json(path: str | Path, update_fn: Callable[[Any], Any], default: Any) -> Any:
    """Read, transform and write back while holding the lock the whole time."""
    p = Path(path).expanduser()
    p.parent.mkdir(parents=True, exist_ok=True)
    _acquire_lock(p)
    try:
        new = update_fn(_load(p, default))
        _write(p, new)
    finally:
        _release_lock(p)
    return new
