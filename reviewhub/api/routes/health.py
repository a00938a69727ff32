"""Liveness, readiness and dependency health checks."""

from datetime import datetime, timezone
import time
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from reviewhub import __version__
from reviewhub.api.models import HealthCheckResponse, HealthStatus
from reviewhub.config.settings import Settings, get_settings
from reviewhub.db.session import get_db

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])

_started_at: Optional[float] = None


def set_server_start_time() -> None:
    global _started_at
    _started_at = time.time()


def get_uptime_seconds() -> Optional[float]:
    return None if _started_at is None else time.time() - _started_at


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_database_health(db: Session) -> HealthStatus:
    """Round-trip a trivial query and report how long it took."""
    started = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("database_check_failed", error=str(e))
        status, message = "unhealthy", f"Database unreachable: {str(e)[:100]}"
    else:
        status, message = "healthy", "Connected to database"
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
    return HealthStatus(status=status, latency_ms=elapsed_ms, message=message)


def check_scheduler_health(settings: Settings) -> HealthStatus:
    if not settings.scheduler_enabled:
        return HealthStatus(status="unknown", message="Scheduler disabled")

    from reviewhub.scheduler import get_scheduler

    if get_scheduler().is_running:
        return HealthStatus(status="healthy", message="Background jobs running")
    return HealthStatus(status="degraded", message="Background jobs stopped")


def _overall(checks: dict[str, HealthStatus]) -> str:
    known = {c.status for c in checks.values()} - {"unknown"}
    if "unhealthy" in known:
        return "unhealthy"
    if known <= {"healthy"}:
        return "healthy"
    return "degraded"


@router.get("/health", response_model=HealthCheckResponse, summary="Dependency health")
async def health_check(
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> HealthCheckResponse:
    """Database and scheduler status rolled up into one verdict. Disabled components are ignored."""
    checks = {
        "database": check_database_health(db),
        "scheduler": check_scheduler_health(settings),
    }
    return HealthCheckResponse(
        status=_overall(checks),
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=get_uptime_seconds(),
        checks=checks,
    )


@router.get("/health/live", summary="Liveness check")
async def liveness() -> dict:
    return {"status": "alive", "timestamp": _now()}


@router.get("/health/ready", summary="Readiness check")
async def readiness(db: Session = Depends(get_db)) -> dict:
    if check_database_health(db).status == "unhealthy":
        raise HTTPException(status_code=503, detail="Service not ready: database unavailable")
    return {"status": "ready", "timestamp": _now()}
