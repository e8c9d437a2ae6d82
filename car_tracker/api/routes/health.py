import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness probe.

    Returns 503 during graceful shutdown so the load balancer stops routing traffic.
    """
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "service": "car-tracker"},
        )
    return {"status": "healthy", "service": "car-tracker"}


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness check: database reachable, Redis relay reachable when configured."""
    checks: dict[str, bool] = {"database": False}

    try:
        from car_tracker.db.base import get_session_factory

        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = True
    except Exception as e:
        logger.error("database_readiness_failed", error=str(e))

    from car_tracker.db.redis import get_redis_or_none

    redis = get_redis_or_none()
    if redis is not None:
        checks["redis"] = False
        try:
            await redis.ping()
            checks["redis"] = True
        except Exception as e:
            logger.error("redis_readiness_failed", error=str(e))

    hub = getattr(request.app.state, "broadcast_hub", None)
    checks["broadcast_hub"] = hub is not None and hub.is_running

    all_healthy = all(checks.values())
    status_code = 200 if all_healthy else 503

    return JSONResponse(
        status_code=status_code,
        content={"status": "ready" if all_healthy else "degraded", "checks": checks},
    )
