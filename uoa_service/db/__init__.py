"""
缓存后端连接管理
只维护一个 Redis 异步客户端；未连接时缓存层使用进程内存
"""

import logging
from typing import Optional

from redis.asyncio import Redis

from uoa_service.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[Redis] = None


async def init_redis() -> bool:
    """连接 Redis，返回是否可用；REDIS_ENABLED=false 时直接跳过"""
    global _redis_client
    if not settings.REDIS_ENABLED:
        return False
    client = Redis.from_url(
        settings.REDIS_URL,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=10,
    )
    try:
        await client.ping()
    except Exception as exc:
        logger.warning(f"⚠️ Redis 不可达（{settings.REDIS_HOST}:{settings.REDIS_PORT}）: {exc}")
        await client.aclose()
        return False
    _redis_client = client
    logger.info(f"✅ Redis 已连接: {settings.REDIS_HOST}:{settings.REDIS_PORT}")
    return True


async def close_connections():
    """释放 Redis 客户端及其连接池"""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def get_redis() -> Optional[Redis]:
    """当前 Redis 客户端，未连接时为 None"""
    return _redis_client


async def check_health() -> dict:
    """缓存后端状态：memory（未连接 Redis）/ healthy / unhealthy"""
    if _redis_client is None:
        return {"redis": {"status": "memory"}}
    try:
        await _redis_client.ping()
    except Exception as exc:
        return {"redis": {"status": "unhealthy", "error": str(exc)}}
    return {"redis": {"status": "healthy"}}
