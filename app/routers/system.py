# app/routers/system.py

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


@router.get("/health")
async def health_check(request: Request, session: AsyncSession = Depends(get_session)):
    """Lightweight health check: database reachability and active rate limit backend."""
    database = "ok"
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check database probe failed")
        database = "unreachable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "timestamp": datetime.now(timezone.utc),
        "version": request.app.version,
        "database": database,
        "rate_limit_backend": request.app.state.settings.RATE_LIMIT_BACKEND,
    }
