from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
import tempfile
import time
from typing import Any, Callable, Optional


from velibadvisor.config.models import CacheSettings


logger = logging.getLogger(__name__)


class JsonFileCache:
    """
    Small file-based JSON cache for provider responses.

    Entries carry their creation time; freshness is decided on read so each caller can
    apply its own TTL (stations go stale in minutes, routes last a day).
    """

    def __init__(self, settings: CacheSettings, *, now_fn: Callable[[], float] = time.time) -> None:
        self._dir = settings.dir
        self._ttl = settings.ttl_seconds
        self._now = now_fn
        self._dir.mkdir(parents=True, exist_ok=True)

    def make_key(self, namespace: str, payload: Any) -> str:
        raw = json.dumps({"ns": namespace, "payload": payload}, sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    def _path(self, key: str) -> Path:
        return self._dir / f"{key}.json"

    def _read(self, path: Path) -> Optional[dict[str, Any]]:
        try:
            wrapper = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None
        return wrapper if isinstance(wrapper, dict) else None

    def get(self, key: str, *, ttl_seconds: Optional[int] = None) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        wrapper = self._read(path)
        if wrapper is None:
            return None

        created_at = wrapper.get("_created_at")
        if not isinstance(created_at, (int, float)):
            return None
        ttl = self._ttl if ttl_seconds is None else ttl_seconds
        if ttl > 0 and (self._now() - float(created_at)) > ttl:
            return None
        return wrapper.get("payload")

    def set(self, key: str, payload: Any) -> None:
        path = self._path(key)
        wrapper = {"_created_at": self._now(), "payload": payload}
        serialized = json.dumps(wrapper, ensure_ascii=False)

        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile("w", delete=False, encoding="utf-8", dir=path.parent) as tmp:
            tmp.write(serialized)
            tmp_path = Path(tmp.name)
        tmp_path.replace(path)

    def purge_expired(self, max_age_seconds: Optional[int] = None) -> int:
        """Delete entries older than `max_age_seconds` (default: the cache TTL). Returns the count removed."""

        max_age = self._ttl if max_age_seconds is None else max_age_seconds
        if max_age <= 0:
            return 0
        removed = 0
        now = self._now()
        for path in self._dir.glob("*.json"):
            wrapper = self._read(path)
            created_at = None if wrapper is None else wrapper.get("_created_at")
            if isinstance(created_at, (int, float)) and (now - float(created_at)) <= max_age:
                continue
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            removed += 1
        if removed:
            logger.info("Purged %s expired cache entries from %s", removed, self._dir)
        return removed
