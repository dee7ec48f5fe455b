# movievault/routes/health.py
from __future__ import annotations

import logging
import time

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from movievault.core import responses
from movievault.core.settings import settings
from movievault.database import async_engine

log = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])

_started = time.monotonic()


# --- database reachability ---
async def ping_db() -> bool:
    try:
        async with async_engine.connect() as conn:
            res = await conn.execute(text("SELECT 1"))
            return res.scalar() == 1
    except (SQLAlchemyError, OSError) as e:
        log.warning("DB ping failed: %r", e)
        return False


@router.get("/health", summary="Liveness")
async def health():
    # process only, never touches the database
    return responses.success(
        {
            "status": "ok",
            "uptime": round(time.monotonic() - _started, 3),
            "environment": settings.app_env,
        }
    )


@router.get("/ready", summary="Readiness (DB reachable)")
async def ready():
    db_ok = await ping_db()
    if not db_ok:
        return responses.error("Database unavailable", status_code=503)
    return responses.success({"status": "ok", "db": True})
