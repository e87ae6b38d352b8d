"""
Route metrics collection: route count and most used middleware.
"""

from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from optimizer_pro.domain.models import RouteSection
from optimizer_pro.services.metrics_collector import Result, SectionName

logger = structlog.get_logger(__name__)

TOP_MIDDLEWARE_COUNT = 5


class RouteInfo(BaseModel):
    """A single registered route."""

    model_config = ConfigDict(frozen=True)

    uri: str
    methods: tuple[str, ...] = ("GET",)
    name: str | None = None
    middleware: tuple[str, ...] = Field(default_factory=tuple)


class RouteRegistry(Protocol):
    async def list_routes(self) -> Sequence[RouteInfo]: ...


class StaticRouteRegistry:
    """Registry over a fixed list of routes."""

    def __init__(self, routes: Iterable[RouteInfo] = ()) -> None:
        self.routes = list(routes)

    async def list_routes(self) -> Sequence[RouteInfo]:
        return self.routes


def middleware_usage(
    routes: Iterable[RouteInfo], top: int = TOP_MIDDLEWARE_COUNT
) -> dict[str, int]:
    """Most used middleware, highest count first."""
    counts = Counter(m for route in routes for m in route.middleware)
    return dict(counts.most_common(top))


class RouteProbe:
    section: SectionName = "routes"

    def __init__(self, registry: RouteRegistry, probe_name: str = "routes") -> None:
        self.registry = registry
        self.probe_name = probe_name
        self.logger = logger.bind(probe=probe_name)

    async def collect(self) -> Result[RouteSection, Exception]:
        try:
            routes = await self.registry.list_routes()
            section = RouteSection(total=len(routes), middleware_usage=middleware_usage(routes))
            self.logger.info("route_metrics_collected", total=section.total)
            return Result.ok(section)

        except Exception as e:
            self.logger.error("route_metrics_collection_failed", error=str(e))
            return Result.err(e)
