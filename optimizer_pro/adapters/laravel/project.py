"""
Laravel-specific collaborators reading a project on disk.

This demonstrates the adapter side of the probes:
- LaravelEnvironment reads `.env` and `composer.lock` for system info, and picks
  cache and database backends matching the project's configured drivers
- ArtisanRouteRegistry asks `php artisan route:list --json` for routes

Both satisfy the protocols the core probes depend on, so the core never
imports anything Laravel-shaped.
"""

import asyncio
import contextlib
import json
import platform
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog
from dotenv import dotenv_values

from optimizer_pro.domain.models import SystemSection
from optimizer_pro.services.cache_metrics import (
    CacheBackend,
    InMemoryCacheBackend,
    UnreachableCacheBackend,
)
from optimizer_pro.services.database_metrics import (
    DatabaseBackend,
    SQLiteDatabaseBackend,
    UnreachableDatabaseBackend,
)
from optimizer_pro.services.route_metrics import RouteInfo

logger = structlog.get_logger(__name__)

FRAMEWORK_PACKAGE = "laravel/framework"

# Laravel's own fallbacks from config/app.php
DEFAULT_ENVIRONMENT = "production"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_LOCALE = "en"
DEFAULT_CACHE_STORE = "database"
DEFAULT_DB_CONNECTION = "sqlite"

UNMEASURABLE_REASON = "cannot be measured from outside the application"


class ArtisanError(RuntimeError):
    """Raised when an artisan command fails or returns unusable output."""


def _parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().strip("()").lower() in {"1", "true", "yes", "on"}


class LaravelEnvironment:
    """
    Application settings of a Laravel project, read from its `.env`.
    """

    def __init__(self, project_path: Path) -> None:
        self.project_path = Path(project_path)
        self.values: dict[str, str | None] = dict(dotenv_values(self.project_path / ".env"))

    def get(self, key: str, default: str | None = None) -> str | None:
        value = self.values.get(key)
        return default if value is None or value == "" else value

    @property
    def environment(self) -> str:
        return (self.get("APP_ENV", DEFAULT_ENVIRONMENT) or DEFAULT_ENVIRONMENT).lower()

    @property
    def debug(self) -> bool:
        return _parse_bool(self.get("APP_DEBUG"))

    @property
    def cache_driver(self) -> str:
        # CACHE_STORE replaced CACHE_DRIVER in Laravel 11
        return self.get("CACHE_STORE") or self.get("CACHE_DRIVER") or DEFAULT_CACHE_STORE

    @property
    def database_connection(self) -> str:
        return self.get("DB_CONNECTION", DEFAULT_DB_CONNECTION) or DEFAULT_DB_CONNECTION

    @property
    def database_url(self) -> str | None:
        """sqlite:/// URL for sqlite projects, None for any other connection."""
        if self.database_connection != "sqlite":
            return None
        database = self.get("DB_DATABASE")
        path = Path(database) if database else self.project_path / "database" / "database.sqlite"
        if not path.is_absolute():
            path = self.project_path / path
        return f"sqlite:///{path}"

    def cache_backend(self) -> CacheBackend:
        """
        Backend for the project's cache store.

        Only the array store lives in-process; every other store is reported
        as unavailable rather than measured against this tool's own cache.
        """
        if self.cache_driver == "array":
            return InMemoryCacheBackend()
        return UnreachableCacheBackend(self.cache_driver, UNMEASURABLE_REASON)

    def database_backend(self) -> DatabaseBackend:
        url = self.database_url
        if url is None:
            return UnreachableDatabaseBackend(self.database_connection, UNMEASURABLE_REASON)
        return SQLiteDatabaseBackend.from_url(url)

    def framework_version(self) -> str:
        lock_path = self.project_path / "composer.lock"
        try:
            lock = json.loads(lock_path.read_text())
        except FileNotFoundError:
            return "unknown"
        except json.JSONDecodeError as e:
            logger.warning("composer_lock_invalid", path=str(lock_path), error=str(e))
            return "unknown"

        for package in lock.get("packages", []):
            if package.get("name") == FRAMEWORK_PACKAGE:
                return str(package.get("version", "unknown")).removeprefix("v")
        return "unknown"

    async def read_system_info(self) -> SystemSection:
        return SystemSection(
            python_version=platform.python_version(),
            framework_version=await asyncio.to_thread(self.framework_version),
            environment=self.environment,
            debug_mode=self.debug,
            timezone=self.get("APP_TIMEZONE", DEFAULT_TIMEZONE) or DEFAULT_TIMEZONE,
            locale=self.get("APP_LOCALE", DEFAULT_LOCALE) or DEFAULT_LOCALE,
        )


def parse_route_list(payload: str) -> list[RouteInfo]:
    """Parse the JSON printed by `php artisan route:list --json`."""
    try:
        entries: Any = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ArtisanError(f"route:list returned invalid JSON: {e}") from e
    if not isinstance(entries, list):
        raise ArtisanError("route:list JSON must be a list of routes")

    routes = []
    for entry in entries:
        middleware = entry.get("middleware") or []
        if isinstance(middleware, str):
            middleware = [m for m in middleware.splitlines() if m]
        routes.append(
            RouteInfo(
                uri=entry.get("uri", ""),
                methods=tuple(m for m in str(entry.get("method", "GET")).split("|") if m),
                name=entry.get("name"),
                middleware=tuple(middleware),
            )
        )
    return routes


class ArtisanRouteRegistry:
    """Route registry backed by the project's artisan console."""

    def __init__(self, project_path: Path, php_binary: str = "php") -> None:
        self.project_path = Path(project_path)
        self.php_binary = php_binary
        self.logger = logger.bind(component="artisan_route_registry")

    async def list_routes(self) -> Sequence[RouteInfo]:
        process = await asyncio.create_subprocess_exec(
            self.php_binary,
            "artisan",
            "route:list",
            "--json",
            cwd=self.project_path,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await process.communicate()
        finally:
            # Cancelled or timed out: do not leave artisan running
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        if process.returncode != 0:
            raise ArtisanError(
                f"route:list exited with {process.returncode}: {stderr.decode().strip()}"
            )

        routes = parse_route_list(stdout.decode())
        self.logger.debug("artisan_routes_listed", count=len(routes))
        return routes
