"""
Database metrics collection.

DatabaseProbe times a connection to the configured database and counts
slow queries in the backend's query log. The backend is any object
implementing the DatabaseBackend protocol; SQLiteDatabaseBackend is the
bundled implementation.
"""

import asyncio
import sqlite3
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

import structlog

from optimizer_pro.domain.models import DatabaseSection
from optimizer_pro.services.metrics_collector import BackendUnavailableError, Result, SectionName

logger = structlog.get_logger(__name__)

SQLITE_SCHEME = "sqlite://"
MEMORY_DATABASE = ":memory:"


class DatabaseBackend(Protocol):
    driver: str

    async def connect(self) -> None: ...

    def query_times_ms(self) -> Sequence[float]: ...

    def close(self) -> None: ...


class SQLiteDatabaseBackend:
    """
    SQLite backend that records the duration of every query it runs.
    """

    driver = "sqlite"

    def __init__(self, database: str = MEMORY_DATABASE) -> None:
        self.database = database
        self._connection: sqlite3.Connection | None = None
        self._query_times: list[float] = []

    @classmethod
    def from_url(cls, url: str) -> "SQLiteDatabaseBackend":
        """Build from a sqlite:///path URL."""
        if not url.startswith(SQLITE_SCHEME):
            raise ValueError(f"Unsupported database url: {url}")
        path = url[len(SQLITE_SCHEME) :].removeprefix("/")
        return cls(path or MEMORY_DATABASE)

    async def connect(self) -> None:
        if self._connection is None:
            self._connection = await asyncio.to_thread(self._open)

    def _open(self) -> sqlite3.Connection:
        if self.database == MEMORY_DATABASE:
            return sqlite3.connect(self.database, check_same_thread=False)
        # mode=rw opens an existing file and never creates one
        uri = f"{Path(self.database).resolve().as_uri()}?mode=rw"
        try:
            return sqlite3.connect(uri, uri=True, check_same_thread=False)
        except sqlite3.OperationalError as e:
            raise BackendUnavailableError(self.driver, f"cannot open {self.database}: {e}") from e

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[tuple[Any, ...]]:
        """Run a query and log how long it took."""
        await self.connect()
        assert self._connection is not None

        start = time.perf_counter()
        rows = await asyncio.to_thread(self._fetch_all, sql, params)
        self._query_times.append((time.perf_counter() - start) * 1000)
        return rows

    def _fetch_all(self, sql: str, params: Sequence[Any]) -> list[tuple[Any, ...]]:
        assert self._connection is not None
        cursor = self._connection.execute(sql, params)
        try:
            return cursor.fetchall()
        finally:
            cursor.close()

    def query_times_ms(self) -> Sequence[float]:
        return tuple(self._query_times)

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class UnreachableDatabaseBackend:
    """Placeholder for a connection this tool has no driver for; connect() always raises."""

    def __init__(self, driver: str, reason: str) -> None:
        self.driver = driver
        self.reason = reason

    async def connect(self) -> None:
        raise BackendUnavailableError(self.driver, self.reason)

    def query_times_ms(self) -> Sequence[float]:
        return ()

    def close(self) -> None:
        return None


class DatabaseProbe:
    """
    Measures connection time and counts queries over the slow threshold.

    The backend is closed once the section is collected.
    """

    section: SectionName = "database"

    def __init__(
        self,
        backend: DatabaseBackend,
        slow_query_threshold_ms: float = 200.0,
        probe_name: str = "database",
    ) -> None:
        self.backend = backend
        self.slow_query_threshold_ms = slow_query_threshold_ms
        self.probe_name = probe_name
        self.logger = logger.bind(probe=probe_name, driver=backend.driver)

    async def collect(self) -> Result[DatabaseSection, Exception]:
        try:
            start = time.perf_counter()
            await self.backend.connect()
            connection_time_ms = round((time.perf_counter() - start) * 1000, 2)

            query_times = self.backend.query_times_ms()
            slow_queries = sum(1 for t in query_times if t > self.slow_query_threshold_ms)

            section = DatabaseSection(
                driver=self.backend.driver,
                connection_time_ms=connection_time_ms,
                total_queries=len(query_times),
                slow_queries=slow_queries,
                threshold_ms=self.slow_query_threshold_ms,
            )
            self.logger.info(
                "database_metrics_collected",
                connection_time_ms=connection_time_ms,
                total_queries=section.total_queries,
                slow_queries=slow_queries,
            )
            return Result.ok(section)

        except Exception as e:
            self.logger.error("database_metrics_collection_failed", error=str(e))
            return Result.err(e)

        finally:
            self.backend.close()
