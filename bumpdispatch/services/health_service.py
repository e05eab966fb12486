"""Health checks against the engine's external dependencies."""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional

import httpx
from sqlalchemy import select, func, text, case
from sqlalchemy.ext.asyncio import AsyncSession

from bumpdispatch.core.config import settings
from bumpdispatch.models import StatusSnapshot

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"


@dataclass
class HealthCheckResult:
    """Outcome of probing one dependency."""
    name: str
    healthy: bool
    elapsed: timedelta
    detail: str = ""
    status_code: Optional[int] = None

    @property
    def elapsed_ms(self) -> int:
        return int(self.elapsed.total_seconds() * 1000)


@dataclass
class HealthReport:
    """Aggregate of one round of health checks."""
    checks: List[HealthCheckResult] = field(default_factory=list)
    checked_at: Optional[datetime] = None

    @property
    def healthy_count(self) -> int:
        return sum(1 for c in self.checks if c.healthy)

    @property
    def total_count(self) -> int:
        return len(self.checks)

    @property
    def overall(self) -> str:
        """healthy when every check passes, degraded when some do, unhealthy otherwise."""
        if self.total_count and self.healthy_count == self.total_count:
            return HEALTHY
        if self.healthy_count > 0:
            return DEGRADED
        return UNHEALTHY


HealthCheck = Callable[[], Awaitable[HealthCheckResult]]


async def _timed(name: str, probe: Callable[[], Awaitable[HealthCheckResult]], timeout: float) -> HealthCheckResult:
    """Run a probe with a hard timeout; any failure becomes an unhealthy result."""
    start = time.perf_counter()
    try:
        return await asyncio.wait_for(probe(), timeout=timeout)
    except asyncio.TimeoutError:
        detail = f"Timed out after {timeout:.0f}s"
    except Exception as e:
        detail = str(e) or type(e).__name__
    elapsed = timedelta(seconds=time.perf_counter() - start)
    logger.warning(f"Health check {name} failed: {detail}")
    return HealthCheckResult(name=name, healthy=False, elapsed=elapsed, detail=detail)


def http_check(name: str, url: str, lenient: bool = False, client: Optional[httpx.AsyncClient] = None) -> HealthCheck:
    """
    Build a check that GETs a URL.

    Healthy when the status is below 400, or below 500 when ``lenient``
    (endpoints that answer unauthenticated probes with 4xx).
    """
    async def probe() -> HealthCheckResult:
        start = time.perf_counter()
        if client is not None:
            response = await client.get(url)
        else:
            async with httpx.AsyncClient(timeout=settings.health_check_timeout_seconds) as owned:
                response = await owned.get(url)
        elapsed = timedelta(seconds=time.perf_counter() - start)
        limit = 500 if lenient else 400
        return HealthCheckResult(
            name=name,
            healthy=response.status_code < limit,
            elapsed=elapsed,
            detail="" if response.status_code < limit else f"HTTP {response.status_code}",
            status_code=response.status_code
        )

    async def check() -> HealthCheckResult:
        return await _timed(name, probe, settings.health_check_timeout_seconds)

    return check


def database_check(session_factory, name: str = "Database") -> HealthCheck:
    """Build a check that runs SELECT 1 on a fresh session."""
    async def probe() -> HealthCheckResult:
        start = time.perf_counter()
        async with session_factory() as db:
            await db.execute(text("SELECT 1"))
        return HealthCheckResult(
            name=name,
            healthy=True,
            elapsed=timedelta(seconds=time.perf_counter() - start)
        )

    async def check() -> HealthCheckResult:
        return await _timed(name, probe, settings.health_check_timeout_seconds)

    return check


def redis_check(redis_getter, name: str = "Redis") -> HealthCheck:
    """Build a check that PINGs Redis."""
    async def probe() -> HealthCheckResult:
        start = time.perf_counter()
        redis = await redis_getter()
        await redis.ping()
        return HealthCheckResult(
            name=name,
            healthy=True,
            elapsed=timedelta(seconds=time.perf_counter() - start)
        )

    async def check() -> HealthCheckResult:
        return await _timed(name, probe, settings.health_check_timeout_seconds)

    return check


class HealthService:
    """Runs health checks and keeps snapshot history for uptime."""

    def __init__(self, checks: List[HealthCheck]):
        self.checks = checks

    @classmethod
    def from_settings(cls, session_factory, redis_getter) -> "HealthService":
        """Configured HTTP targets plus the database and Redis."""
        checks = [
            http_check(name, url, lenient)
            for name, url, lenient in settings.health_check_targets_list
        ]
        checks.append(database_check(session_factory))
        checks.append(redis_check(redis_getter))
        return cls(checks)

    async def run_checks(self, now: datetime) -> HealthReport:
        """Run every check concurrently; a check never raises."""
        results = await asyncio.gather(*(check() for check in self.checks))
        report = HealthReport(checks=list(results), checked_at=now)
        logger.info(
            f"Health checks complete: {report.overall} "
            f"({report.healthy_count}/{report.total_count} healthy)"
        )
        return report

    @staticmethod
    async def record_snapshot(db: AsyncSession, report: HealthReport) -> StatusSnapshot:
        """Store the aggregate of a report. Caller commits."""
        snapshot = StatusSnapshot(
            overall=report.overall,
            healthy_count=report.healthy_count,
            total_count=report.total_count,
            checked_at=report.checked_at
        )
        db.add(snapshot)
        await db.flush()
        return snapshot

    @staticmethod
    async def calculate_uptime(db: AsyncSession, now: datetime, window: timedelta) -> Optional[float]:
        """
        Percentage of snapshots in the window whose overall status was healthy.

        Returns:
            Uptime percentage, or None when no snapshot falls in the window
        """
        since = now - window
        result = await db.execute(
            select(
                func.count(StatusSnapshot.id),
                func.sum(case((StatusSnapshot.overall == HEALTHY, 1), else_=0))
            ).where(StatusSnapshot.checked_at >= since, StatusSnapshot.checked_at <= now)
        )
        total, healthy = result.one()
        if not total:
            return None
        return round(100.0 * (healthy or 0) / total, 2)

    @staticmethod
    async def get_latest_snapshot(db: AsyncSession) -> Optional[StatusSnapshot]:
        result = await db.execute(
            select(StatusSnapshot).order_by(StatusSnapshot.checked_at.desc()).limit(1)
        )
        return result.scalar_one_or_none()
