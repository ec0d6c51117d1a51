import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from food_delivery.db.session import get_async_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", summary="Health check")
async def health_check(db: AsyncSession = Depends(get_async_session)):
    """
    Сервис жив, если отвечает база заказов. Без базы переходы статусов невозможны.
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check: database is unreachable")
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "database": "unreachable", "timestamp": timestamp},
        )

    return {"status": "ok", "database": "ok", "timestamp": timestamp}
