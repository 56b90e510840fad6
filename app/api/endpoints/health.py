import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from app.db.async_session import check_async_database_health

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=Dict[str, Any])
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        dict: service status and whether the conversation store answers
    """
    try:
        database = await check_async_database_health()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(status_code=503, detail="Service unavailable")

    if database["status"] != "healthy":
        raise HTTPException(status_code=503, detail="Database unavailable")

    return {
        "status": "healthy",
        "database": "connected",
        "response_time_ms": database["response_time_ms"],
        "service": "chat-relay-backend",
    }
