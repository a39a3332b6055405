"""Core package initialization."""
from app.core.config import settings
from app.core.redis import get_redis, close_redis

__all__ = ["settings", "get_redis", "close_redis"]
