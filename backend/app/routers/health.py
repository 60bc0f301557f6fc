from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.redis_client import redis_ready
from backend.app.db.session import get_session


router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, bool]:
    """Basic liveness probe."""
    return {"ok": True}


@router.get("/readiness")
async def readiness(session: AsyncSession = Depends(get_session)) -> dict[str, bool]:
    """Database reachable, and Redis too when it backs the reservation lock."""
    await session.execute(text("SELECT 1"))

    if settings.LOCK_BACKEND == "redis" and not await redis_ready():
        raise HTTPException(status_code=503, detail="Redis unavailable")

    return {"ready": True}
