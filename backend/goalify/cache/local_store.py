"""Durable JSON cache of the user's entities.

Each ``CacheKey`` maps to one JSON file under the cache root. Writes go to a
temporary file that is renamed over the target, so a crash mid-write leaves
the previous value in place.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional
from urllib.parse import quote, unquote

from ..errors import DurabilityFailure, StorageCorruption
from ..telemetry import emit_event

logger = logging.getLogger(__name__)

CACHE_KINDS = ("profile", "goals", "conversations", "messages", "pending")
_SCOPE_SEPARATOR = "@"


def _normalize_component(value: str, label: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"Cache {label} cannot be empty.")
    return normalized


@dataclass(frozen=True)
class CacheKey:
    kind: str
    user_id: str
    scope: Optional[str] = None

    def __post_init__(self) -> None:
        if self.kind not in CACHE_KINDS:
            raise ValueError(f"Unknown cache kind '{self.kind}'.")
        object.__setattr__(self, "user_id", _normalize_component(self.user_id, "user id"))
        if self.scope is not None:
            object.__setattr__(self, "scope", _normalize_component(self.scope, "scope"))

    def __str__(self) -> str:
        base = f"{self.kind}:{self.user_id}"
        return f"{base}:{self.scope}" if self.scope else base

    @property
    def filename(self) -> str:
        if self.scope is None:
            return f"{self.kind}.json"
        return f"{self.kind}{_SCOPE_SEPARATOR}{quote(self.scope, safe='')}.json"


class LocalCacheStore:
    """File-per-key JSON store guarded by a process-local lock."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._lock = threading.RLock()

    @property
    def root(self) -> Path:
        return self._root

    def _user_dir(self, user_id: str) -> Path:
        return self._root / quote(user_id, safe="")

    def _path(self, key: CacheKey) -> Path:
        return self._user_dir(key.user_id) / key.filename

    def get(self, key: CacheKey) -> Optional[Any]:
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                with path.open("r", encoding="utf-8") as handle:
                    return json.load(handle)
            except (OSError, ValueError) as exc:
                error = StorageCorruption(str(key), str(exc))
                logger.warning("%s; treating as a cache miss", error)
                emit_event("cache_corruption", key=str(key), reason=str(exc))
                return None

    def put(self, key: CacheKey, value: Any) -> None:
        path = self._path(key)
        with self._lock:
            try:
                payload = json.dumps(value, indent=2)
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as handle:
                        handle.write(payload)
                    os.replace(tmp_name, path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except (OSError, TypeError, ValueError) as exc:
                raise DurabilityFailure(str(key), str(exc)) from exc

    def delete(self, key: CacheKey) -> bool:
        path = self._path(key)
        with self._lock:
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise DurabilityFailure(str(key), str(exc)) from exc
        return True

    def users(self) -> List[str]:
        with self._lock:
            if not self._root.is_dir():
                return []
            return sorted(unquote(entry.name) for entry in self._root.iterdir() if entry.is_dir())


__all__ = ["CACHE_KINDS", "CacheKey", "LocalCacheStore"]
