"""
Process and environment metrics: request timing, memory, and system info.
"""

import os
import platform
import resource
import sys
import time
from pathlib import Path
from typing import Protocol

import structlog

from optimizer_pro.config import AppConfig
from optimizer_pro.domain.models import PerformanceSection, SystemSection
from optimizer_pro.services.metrics_collector import Result, SectionName

logger = structlog.get_logger(__name__)

BYTE_UNITS = ("B", "KB", "MB", "GB")
STATM_PATH = Path("/proc/self/statm")


def format_bytes(num_bytes: int) -> str:
    """Human readable size, e.g. 1536 -> '1.5 KB'."""
    num_bytes = max(num_bytes, 0)
    power = 0
    while power < len(BYTE_UNITS) - 1 and num_bytes >= 1024 ** (power + 1):
        power += 1
    return f"{round(num_bytes / 1024**power, 2):g} {BYTE_UNITS[power]}"


def _peak_rss_bytes() -> int:
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is kilobytes on Linux, bytes on macOS
    return peak if sys.platform == "darwin" else peak * 1024


def read_process_memory() -> tuple[int, int]:
    """Current and peak resident memory of this process, in bytes."""
    peak = _peak_rss_bytes()
    try:
        resident_pages = int(STATM_PATH.read_text().split()[1])
    except (OSError, IndexError, ValueError):
        return peak, peak
    return resident_pages * os.sysconf("SC_PAGE_SIZE"), peak


def read_memory_limit() -> str:
    soft, _hard = resource.getrlimit(resource.RLIMIT_AS)
    if soft == resource.RLIM_INFINITY:
        return "unlimited"
    return format_bytes(soft)


class PerformanceProbe:
    """
    Request time since `started_at` plus process memory usage.

    `started_at` is a time.perf_counter() reading taken when the request
    (or CLI invocation) began; defaults to when the probe was created.
    """

    section: SectionName = "performance"

    def __init__(self, started_at: float | None = None, probe_name: str = "performance") -> None:
        self.started_at = time.perf_counter() if started_at is None else started_at
        self.probe_name = probe_name
        self.logger = logger.bind(probe=probe_name)

    async def collect(self) -> Result[PerformanceSection, Exception]:
        try:
            request_time_ms = round(max(0.0, time.perf_counter() - self.started_at) * 1000, 2)
            memory_usage, peak_memory = read_process_memory()
            section = PerformanceSection(
                request_time_ms=request_time_ms,
                memory_usage_bytes=memory_usage,
                peak_memory_bytes=max(peak_memory, memory_usage),
                memory_limit=read_memory_limit(),
            )
            self.logger.info(
                "performance_metrics_collected",
                request_time_ms=request_time_ms,
                memory_usage=format_bytes(section.memory_usage_bytes),
            )
            return Result.ok(section)

        except Exception as e:
            self.logger.error("performance_metrics_collection_failed", error=str(e))
            return Result.err(e)


class SystemInfoSource(Protocol):
    async def read_system_info(self) -> SystemSection: ...


class EnvironmentSystemInfo:
    """System info taken from the loaded application config."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config

    async def read_system_info(self) -> SystemSection:
        return SystemSection(
            python_version=platform.python_version(),
            environment=self.config.environment,
            debug_mode=self.config.debug,
            timezone=self.config.timezone,
            locale=self.config.locale,
        )


class SystemProbe:
    section: SectionName = "system"

    def __init__(self, source: SystemInfoSource, probe_name: str = "system") -> None:
        self.source = source
        self.probe_name = probe_name
        self.logger = logger.bind(probe=probe_name)

    async def collect(self) -> Result[SystemSection, Exception]:
        try:
            section = await self.source.read_system_info()
            self.logger.info(
                "system_info_collected",
                environment=section.environment,
                debug_mode=section.debug_mode,
            )
            return Result.ok(section)

        except Exception as e:
            self.logger.error("system_info_collection_failed", error=str(e))
            return Result.err(e)
