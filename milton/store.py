"""File-backed string key/value store with locked read-modify-write."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional
from urllib.parse import quote, unquote
import json
import os
import tempfile
import threading
try:
    import fcntl  # type: ignore
except Exception:  # pragma: no cover - non-POSIX environments
    fcntl = None

from milton.errors import StoreError

_SUFFIX = ".json"


@dataclass
class KeyValueStore:
    """String values under string keys, one file per key.

    Writes go through a temp file and ``os.replace`` so readers never observe
    a partial value. ``locked`` serialises writers across threads and
    processes that share ``data_dir``.
    """
    data_dir: Path

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        self._thread_lock = threading.RLock()

    def _kv_dir(self) -> Path:
        return self.data_dir / "kv"

    def _path(self, key: str) -> Path:
        if not key:
            raise StoreError("Empty storage key")
        return self._kv_dir() / (quote(key, safe="") + _SUFFIX)

    def _lock_path(self, key: str) -> Path:
        return self._kv_dir() / (quote(key, safe="") + ".lock")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Failed to read {key}: {exc}") from exc

    def put(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".tmp-", suffix=_SUFFIX)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise StoreError(f"Failed to write {key}: {exc}") from exc

    def keys(self, prefix: str = "") -> List[str]:
        if not self._kv_dir().exists():
            return []
        found = []
        for path in sorted(self._kv_dir().glob(f"*{_SUFFIX}")):
            if path.name.startswith(".tmp-"):
                continue
            key = unquote(path.name[: -len(_SUFFIX)])
            if key.startswith(prefix):
                found.append(key)
        return found

    def get_json(self, key: str) -> Any:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt value under {key}: {exc}") from exc

    def put_json(self, key: str, value: Any) -> None:
        self.put(key, json.dumps(value, indent=2))

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        """Hold an exclusive lock on ``key`` for the duration of the block."""
        with self._thread_lock:
            if fcntl is None:
                yield
                return
            lock_path = self._lock_path(key)
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            with lock_path.open("a", encoding="utf-8") as handle:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

