"""
Tests for the individual probes and their bundled collaborators.
"""

import sqlite3
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from optimizer_pro.config import AppConfig
from optimizer_pro.domain.models import SystemSection
from optimizer_pro.services import (
    cache_metrics,
    database_metrics,
    route_metrics,
    runtime_metrics,
)
from optimizer_pro.services.cache_metrics import (
    PROBE_KEY,
    CacheProbe,
    FileCacheBackend,
    InMemoryCacheBackend,
    UnreachableCacheBackend,
    build_cache_backend,
)
from optimizer_pro.services.database_metrics import (
    DatabaseProbe,
    SQLiteDatabaseBackend,
    UnreachableDatabaseBackend,
)
from optimizer_pro.services.metrics_collector import BackendUnavailableError
from optimizer_pro.services.route_metrics import (
    RouteInfo,
    RouteProbe,
    StaticRouteRegistry,
    middleware_usage,
)
from optimizer_pro.services.runtime_metrics import (
    EnvironmentSystemInfo,
    PerformanceProbe,
    SystemProbe,
    format_bytes,
)


class FailingCacheBackend:
    driver = "redis"

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise ConnectionError("Connection refused")

    async def get(self, key: str) -> Any:
        return None

    async def forget(self, key: str) -> None:
        return None


class RecordedQueryBackend:
    """Database backend with a pre-recorded query log."""

    driver = "mysql"

    def __init__(self, query_times: Sequence[float], fail: bool = False) -> None:
        self.query_times = list(query_times)
        self.fail = fail
        self.closed = False

    async def connect(self) -> None:
        if self.fail:
            raise ConnectionError("SQLSTATE[HY000] [2002] Connection refused")

    def query_times_ms(self) -> Sequence[float]:
        return self.query_times

    def close(self) -> None:
        self.closed = True


class TestCacheProbe:
    async def test_times_write_and_read_then_forgets_key(self) -> None:
        backend = InMemoryCacheBackend()
        result = await CacheProbe(backend).collect()

        assert result.is_ok()
        section = result.unwrap()
        assert section.driver == "array"
        assert section.write_time_ms >= 0.0
        assert section.read_time_ms >= 0.0
        assert await backend.get(PROBE_KEY) is None
        assert len(backend) == 0

    async def test_unreachable_cache_returns_error(self) -> None:
        result = await CacheProbe(FailingCacheBackend()).collect()

        assert result.is_err()
        assert "Connection refused" in str(result.unwrap_err())

    async def test_unmeasurable_store_names_its_driver(self) -> None:
        backend = UnreachableCacheBackend("redis", "no client")
        result = await CacheProbe(backend).collect()

        error = result.unwrap_err()
        assert isinstance(error, BackendUnavailableError)
        assert error.driver == "redis"

    async def test_measured_times_come_from_perf_counter(self) -> None:
        # put: 0.000 -> 0.015, get: 0.020 -> 0.021
        with patch("time.perf_counter", side_effect=[0.0, 0.015, 0.020, 0.021]):
            result = await CacheProbe(InMemoryCacheBackend()).collect()

        section = result.unwrap()
        assert section.write_time_ms == 15.0
        assert section.read_time_ms == 1.0


class TestCacheBackends:
    async def test_in_memory_entries_expire(self) -> None:
        backend = InMemoryCacheBackend()
        with patch("time.monotonic", return_value=100.0):
            await backend.put("key", "value", ttl_seconds=10)
        with patch("time.monotonic", return_value=105.0):
            assert await backend.get("key") == "value"
        with patch("time.monotonic", return_value=110.0):
            assert await backend.get("key") is None

    async def test_file_backend_round_trip(self, tmp_path: Path) -> None:
        backend = FileCacheBackend(tmp_path / "cache")

        await backend.put("key", {"nested": [1, 2]}, ttl_seconds=60)
        assert await backend.get("key") == {"nested": [1, 2]}

        await backend.forget("key")
        assert await backend.get("key") is None
        assert list((tmp_path / "cache").iterdir()) == []

    async def test_file_backend_drops_expired_entries(self, tmp_path: Path) -> None:
        backend = FileCacheBackend(tmp_path)
        with patch("time.time", return_value=1000.0):
            await backend.put("key", "value", ttl_seconds=5)
        with patch("time.time", return_value=1005.0):
            assert await backend.get("key") is None

    def test_build_cache_backend(self, tmp_path: Path) -> None:
        assert isinstance(build_cache_backend("array"), InMemoryCacheBackend)
        assert isinstance(build_cache_backend("file", tmp_path), FileCacheBackend)

        with pytest.raises(ValueError, match="requires a cache path"):
            build_cache_backend("file")
        with pytest.raises(ValueError, match="Unsupported cache driver"):
            build_cache_backend("memcached")


class TestDatabaseProbe:
    async def test_counts_queries_strictly_above_threshold(self) -> None:
        backend = RecordedQueryBackend([12.0, 200.0, 200.5, 950.0])
        result = await DatabaseProbe(backend, slow_query_threshold_ms=200.0).collect()

        section = result.unwrap()
        assert section.driver == "mysql"
        assert section.total_queries == 4
        assert section.slow_queries == 2
        assert section.threshold_ms == 200.0

    async def test_connection_failure_returns_error(self) -> None:
        backend = RecordedQueryBackend([], fail=True)
        result = await DatabaseProbe(backend).collect()

        assert result.is_err()
        assert "Connection refused" in str(result.unwrap_err())
        assert backend.closed

    async def test_backend_closed_after_collection(self) -> None:
        backend = RecordedQueryBackend([1.0])
        await DatabaseProbe(backend).collect()
        assert backend.closed

    async def test_unreachable_connection_names_its_driver(self) -> None:
        result = await DatabaseProbe(UnreachableDatabaseBackend("pgsql", "no driver")).collect()

        error = result.unwrap_err()
        assert isinstance(error, BackendUnavailableError)
        assert error.driver == "pgsql"


class TestSQLiteDatabaseBackend:
    @pytest.fixture
    def backend(self) -> Iterator[SQLiteDatabaseBackend]:
        backend = SQLiteDatabaseBackend()
        yield backend
        backend.close()

    async def test_records_every_query(self, backend: SQLiteDatabaseBackend) -> None:
        await backend.execute("create table users (id integer primary key, name text)")
        await backend.execute("insert into users (name) values (?)", ("taylor",))
        rows = await backend.execute("select name from users")

        assert rows == [("taylor",)]
        assert len(backend.query_times_ms()) == 3
        assert all(t >= 0.0 for t in backend.query_times_ms())

    async def test_probe_over_real_connection(self, backend: SQLiteDatabaseBackend) -> None:
        await backend.execute("select 1")
        section = (await DatabaseProbe(backend, slow_query_threshold_ms=10_000).collect()).unwrap()

        assert section.driver == "sqlite"
        assert section.total_queries == 1
        assert section.slow_queries == 0

    @pytest.mark.parametrize(
        "url,database",
        [
            ("sqlite:///:memory:", ":memory:"),
            ("sqlite:///app.db", "app.db"),
            ("sqlite:////var/www/database.sqlite", "/var/www/database.sqlite"),
            ("sqlite://", ":memory:"),
        ],
    )
    def test_from_url(self, url: str, database: str) -> None:
        assert SQLiteDatabaseBackend.from_url(url).database == database

    async def test_missing_database_file_is_not_created(self, tmp_path: Path) -> None:
        database = tmp_path / "database.sqlite"

        result = await DatabaseProbe(SQLiteDatabaseBackend(str(database))).collect()

        assert isinstance(result.unwrap_err(), BackendUnavailableError)
        assert not database.exists()

    async def test_existing_database_file_is_opened_and_closed(self, tmp_path: Path) -> None:
        database = tmp_path / "database.sqlite"
        sqlite3.connect(database).close()
        backend = SQLiteDatabaseBackend(str(database))

        section = (await DatabaseProbe(backend).collect()).unwrap()

        assert section.driver == "sqlite"
        assert section.available
        assert backend._connection is None

    def test_from_url_rejects_other_schemes(self) -> None:
        with pytest.raises(ValueError, match="Unsupported database url"):
            SQLiteDatabaseBackend.from_url("mysql://root@localhost/app")


class TestRouteProbe:
    @pytest.fixture
    def routes(self) -> list[RouteInfo]:
        return [
            RouteInfo(uri="/", middleware=("web",)),
            RouteInfo(uri="/dashboard", middleware=("web", "auth", "verified")),
            RouteInfo(uri="/profile", methods=("GET", "PATCH"), middleware=("web", "auth")),
            RouteInfo(uri="/api/user", middleware=("api", "auth:sanctum")),
            RouteInfo(uri="/up"),
        ]

    async def test_counts_routes_and_middleware(self, routes: list[RouteInfo]) -> None:
        section = (await RouteProbe(StaticRouteRegistry(routes)).collect()).unwrap()

        assert section.total == 5
        assert section.middleware_usage == {
            "web": 3,
            "auth": 2,
            "verified": 1,
            "api": 1,
            "auth:sanctum": 1,
        }

    def test_middleware_usage_keeps_top_five(self) -> None:
        routes = [
            RouteInfo(uri=f"/{i}", middleware=tuple(f"m{j}" for j in range(i))) for i in range(8)
        ]

        usage = middleware_usage(routes)

        assert list(usage) == ["m0", "m1", "m2", "m3", "m4"]
        assert usage["m0"] == 7

    async def test_registry_failure_returns_error(self) -> None:
        class BrokenRegistry:
            async def list_routes(self) -> Sequence[RouteInfo]:
                raise RuntimeError("artisan not found")

        result = await RouteProbe(BrokenRegistry()).collect()
        assert result.is_err()


class TestPerformanceProbe:
    async def test_reports_elapsed_time_and_memory(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(runtime_metrics, "read_process_memory", lambda: (2048, 1024))
        monkeypatch.setattr(runtime_metrics, "read_memory_limit", lambda: "512 MB")

        with patch("time.perf_counter", return_value=10.25):
            result = await PerformanceProbe(started_at=10.0).collect()

        section = result.unwrap()
        assert section.request_time_ms == 250.0
        assert section.memory_usage_bytes == 2048
        assert section.peak_memory_bytes == 2048  # never below current usage
        assert section.memory_limit == "512 MB"

    async def test_real_process_memory_is_positive(self) -> None:
        section = (await PerformanceProbe().collect()).unwrap()

        assert section.memory_usage_bytes > 0
        assert section.peak_memory_bytes >= section.memory_usage_bytes
        assert section.memory_limit


@pytest.mark.parametrize(
    "num_bytes,expected",
    [
        (0, "0 B"),
        (512, "512 B"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (128 * 1024 * 1024, "128 MB"),
        (3 * 1024**3, "3 GB"),
        (2 * 1024**4, "2048 GB"),
        (-5, "0 B"),
    ],
)
def test_format_bytes(num_bytes: int, expected: str) -> None:
    assert format_bytes(num_bytes) == expected


class TestSystemProbe:
    async def test_reads_from_app_config(self) -> None:
        config = AppConfig(environment="Staging", debug=True, timezone="Europe/Paris", locale="fr")
        section = (await SystemProbe(EnvironmentSystemInfo(config)).collect()).unwrap()

        assert section.environment == "staging"
        assert section.debug_mode is True
        assert section.timezone == "Europe/Paris"
        assert section.locale == "fr"
        assert section.python_version

    async def test_source_failure_returns_error(self) -> None:
        class BrokenSource:
            async def read_system_info(self) -> SystemSection:
                raise OSError("permission denied")

        result = await SystemProbe(BrokenSource()).collect()
        assert result.is_err()


@pytest.mark.parametrize(
    "module", [cache_metrics, database_metrics, route_metrics, runtime_metrics]
)
def test_each_metrics_module_logs_under_its_own_name(module: Any) -> None:
    assert module.logger._logger_factory_args == (module.__name__,)
