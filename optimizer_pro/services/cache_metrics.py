"""
Cache metrics collection.

CacheProbe writes a probe key, reads it back and forgets it, timing the
write and the read separately.
"""

import asyncio
import hashlib
import json
import time
from pathlib import Path
from typing import Any, Protocol

import structlog

from optimizer_pro.domain.models import CacheSection
from optimizer_pro.services.metrics_collector import BackendUnavailableError, Result, SectionName

logger = structlog.get_logger(__name__)

PROBE_KEY = "optimizer_test"
PROBE_VALUE = "test_value"


class CacheBackend(Protocol):
    driver: str

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    async def get(self, key: str) -> Any: ...

    async def forget(self, key: str) -> None: ...


class InMemoryCacheBackend:
    """Process-local cache with per-key expiry, like Laravel's array driver."""

    driver = "array"

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Any, float]] = {}

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._entries[key] = (value, time.monotonic() + ttl_seconds)

    async def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def forget(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


class FileCacheBackend:
    """Cache stored as one JSON file per key, like Laravel's file driver."""

    driver = "file"

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        return self.directory / hashlib.sha1(key.encode()).hexdigest()

    def _write(self, key: str, value: Any, ttl_seconds: int) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        payload = {"expires_at": time.time() + ttl_seconds, "value": value}
        self._path_for(key).write_text(json.dumps(payload))

    def _read(self, key: str) -> Any:
        path = self._path_for(key)
        try:
            payload = json.loads(path.read_text())
        except FileNotFoundError:
            return None
        if time.time() >= payload["expires_at"]:
            path.unlink(missing_ok=True)
            return None
        return payload["value"]

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        await asyncio.to_thread(self._write, key, value, ttl_seconds)

    async def get(self, key: str) -> Any:
        return await asyncio.to_thread(self._read, key)

    async def forget(self, key: str) -> None:
        await asyncio.to_thread(self._path_for(key).unlink, missing_ok=True)


class UnreachableCacheBackend:
    """
    Placeholder for a cache store that cannot be measured from here.

    Every operation raises, so CacheProbe fails and the collector reports the
    store's driver as unavailable.
    """

    def __init__(self, driver: str, reason: str) -> None:
        self.driver = driver
        self.reason = reason

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise BackendUnavailableError(self.driver, self.reason)

    async def get(self, key: str) -> Any:
        raise BackendUnavailableError(self.driver, self.reason)

    async def forget(self, key: str) -> None:
        raise BackendUnavailableError(self.driver, self.reason)


def build_cache_backend(driver: str, path: Path | None = None) -> CacheBackend:
    if driver == "array":
        return InMemoryCacheBackend()
    if driver == "file":
        if path is None:
            raise ValueError("file cache driver requires a cache path")
        return FileCacheBackend(path)
    raise ValueError(f"Unsupported cache driver: {driver}")


class CacheProbe:
    """
    Times one write and one read against the configured cache.
    """

    section: SectionName = "cache"

    def __init__(
        self, backend: CacheBackend, ttl_seconds: int = 10, probe_name: str = "cache"
    ) -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds
        self.probe_name = probe_name
        self.logger = logger.bind(probe=probe_name, driver=backend.driver)

    async def collect(self) -> Result[CacheSection, Exception]:
        try:
            start = time.perf_counter()
            await self.backend.put(PROBE_KEY, PROBE_VALUE, self.ttl_seconds)
            write_time_ms = round((time.perf_counter() - start) * 1000, 2)

            start = time.perf_counter()
            await self.backend.get(PROBE_KEY)
            read_time_ms = round((time.perf_counter() - start) * 1000, 2)

            await self.backend.forget(PROBE_KEY)

            self.logger.info(
                "cache_metrics_collected", write_time_ms=write_time_ms, read_time_ms=read_time_ms
            )
            return Result.ok(
                CacheSection(
                    driver=self.backend.driver,
                    write_time_ms=write_time_ms,
                    read_time_ms=read_time_ms,
                )
            )

        except Exception as e:
            self.logger.error("cache_metrics_collection_failed", error=str(e))
            return Result.err(e)
