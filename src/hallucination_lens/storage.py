"""
Settings storage
Persisted key-value flags (the watcher only uses ``enabled``)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import redis.asyncio as redis

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


@runtime_checkable
class SettingsStore(Protocol):
    async def get(self, key: str, default: Any = None) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def close(self) -> None: ...


class MemorySettingsStore:
    """Process-local storage"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = dict(initial or {})

    async def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    async def close(self) -> None:
        return None


class JsonFileSettingsStore:
    """Settings persisted to a JSON file, replaced atomically on every write"""

    def __init__(self, path: str | os.PathLike[str]):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def get(self, key: str, default: Any = None) -> Any:
        try:
            data = await asyncio.to_thread(self._read)
        except (OSError, ValueError) as e:
            logger.error(f"Settings read error: {e}")
            return default
        return data.get(key, default)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            try:
                await asyncio.to_thread(self._write_key, key, value)
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"Settings write error: {e}")

    async def close(self) -> None:
        return None

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        payload = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        return payload if isinstance(payload, dict) else {}

    def _write_key(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)


class RedisSettingsStore:
    """Redis-backed settings; values are stored as JSON under a key prefix"""

    def __init__(self, url: str, *, prefix: str = "hallucination_lens:", client: Optional[redis.Redis] = None):
        self._prefix = prefix
        self._client = client or redis.from_url(url, decode_responses=True, socket_connect_timeout=5)

    async def get(self, key: str, default: Any = None) -> Any:
        try:
            data = await self._client.get(self._prefix + key)
        except Exception as e:
            logger.error(f"Redis get error: {e}")
            return default
        if data is None:
            return default
        try:
            return json.loads(data)
        except ValueError:
            return default

    async def set(self, key: str, value: Any) -> None:
        try:
            await self._client.set(self._prefix + key, json.dumps(value))
        except Exception as e:
            logger.error(f"Redis set error: {e}")

    async def close(self) -> None:
        await self._client.aclose()


def build_settings_store(settings: Settings | None = None) -> SettingsStore:
    settings = settings or get_settings()
    if settings.settings_backend == "json":
        return JsonFileSettingsStore(settings.settings_path)
    if settings.settings_backend == "redis":
        return RedisSettingsStore(settings.redis_url, prefix=settings.redis_prefix)
    return MemorySettingsStore()
