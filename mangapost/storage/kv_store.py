from __future__ import annotations
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from mangapost.errors import PersistenceError

logger = logging.getLogger(__name__)

# fixed keys shared by the auth guard and the local post repository
ADMIN_HASH_KEY = "admin_hash"
SESSION_KEY = "admin_session"
POSTS_KEY = "posts"


class KeyValueStore:
    """Durable key-value storage with get/set/delete/clear."""

    async def get(self, key: str, default: Any = None) -> Any:
        raise NotImplementedError

    async def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def clear(self) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    async def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def clear(self) -> None:
        self._data.clear()


class JsonFileStore(KeyValueStore):
    """All keys live in one JSON object on disk, rewritten on every change."""

    def __init__(self, path: Path):
        self._path = path
        self._lock = asyncio.Lock()
        self._data: Dict[str, Any] = {}
        self._load_sync()

    def _load_sync(self) -> None:
        if not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read %s, starting empty: %s", self._path, exc)
            return

        if isinstance(raw, dict):
            self._data = raw

    async def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = dict(self._data)
            data[key] = value
            await self._commit(data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            if key in self._data:
                data = dict(self._data)
                del data[key]
                await self._commit(data)

    async def clear(self) -> None:
        async with self._lock:
            await self._commit({})

    async def _commit(self, data: Dict[str, Any]) -> None:
        # memory only changes once the file write has succeeded
        try:
            await asyncio.to_thread(self._persist_sync, data)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Cannot write {self._path}: {exc}") from exc
        self._data = data

    def _persist_sync(self, data: Dict[str, Any]) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
