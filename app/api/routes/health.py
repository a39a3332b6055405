"""Health check endpoints for API and history storage monitoring."""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
import redis.asyncio as redis
from app.core.redis import get_redis
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "nse-oi-analyzer-api"}


@router.get("/health/redis")
async def check_redis_health():
    """Check connectivity to the history store."""
    try:
        client = await get_redis()
        await client.ping()
        return {"status": "healthy", "storage": "redis"}
    except redis.RedisError as e:
        logger.error(f"Redis health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "storage": "redis", "error": str(e)}
        )
