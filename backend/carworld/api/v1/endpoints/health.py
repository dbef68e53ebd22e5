"""
Health checks.

- /health/live  - the process is up
- /health/ready - the database answers
"""

from fastapi import APIRouter, HTTPException, status
from datetime import datetime
from typing import Dict, Any
import time

from sqlalchemy import text

from carworld.core.config import settings
from carworld.core.database import get_session_local
from carworld.core.logging_config import logger


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    start = time.time()
    try:
        session_factory = get_session_local()
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        return {"status": "healthy", "latency_ms": round((time.time() - start) * 1000, 2)}
    except Exception as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "error": str(e),
        }


def check_messaging_config() -> Dict[str, Any]:
    """Configuration only; no messages are sent"""
    return {
        "email": "configured" if settings.email_configured else "disabled",
        "whatsapp": "configured" if settings.whatsapp_configured else "disabled",
    }


@router.get("/live")
async def liveness():
    return {"status": "alive", "timestamp": datetime.utcnow().isoformat()}


@router.get("/ready")
async def readiness():
    database = await check_database()
    if database["status"] != "healthy":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "not_ready", "database": database},
        )
    return {
        "status": "ready",
        "database": database,
        "messaging": check_messaging_config(),
        "timestamp": datetime.utcnow().isoformat(),
    }
