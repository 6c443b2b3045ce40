"""
Layer 5 – 缓存层
优先级：Redis（共享） → 进程内存（降级）
过期完全由 TTL 控制；本层只提供按字符串键的 get / put。
"""

import hashlib
import logging
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from redis.asyncio import Redis

from uoa_service.config import settings
from uoa_service.db import get_redis
from uoa_service.layers.acquisition import append_params

logger = logging.getLogger(__name__)


def _flag(value: bool) -> str:
    return "true" if value else "false"


def build_cache_key(upstream_url: str, query) -> str:
    """
    缓存键 = 上游 URL + 仅在本地生效的过滤开关

    这三个开关不会发送到上游，但会改变输出结果，必须体现在键中。
    """
    return append_params(upstream_url, [
        ("volume_gt_oi", _flag(query.volume_gt_oi)),
        ("aggressive_buy_only", _flag(query.aggressive_buy_only)),
        ("aggressive_sell_only", _flag(query.aggressive_sell_only)),
    ])


def _make_key(namespace: str, raw: str) -> str:
    """生成带命名空间的存储键，超长时取 md5"""
    key = f"{namespace}:{raw}"
    if len(key) > 200:
        key = namespace + ":" + hashlib.md5(raw.encode()).hexdigest()
    return key


class CachePort(Protocol):
    """缓存端口：按字符串键读写序列化后的响应"""

    async def get(self, key: str) -> Optional[str]: ...

    async def put(self, key: str, value: str, ttl: int) -> None: ...


class MemoryCache:
    """进程内 TTL 缓存，过期条目在读取时或条目过多时清除"""

    max_entries = 1024

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    async def put(self, key: str, value: str, ttl: int) -> None:
        now = self._clock()
        self._entries.pop(key, None)
        if len(self._entries) >= self.max_entries:
            self._entries = {k: e for k, e in self._entries.items() if e[1] > now}
        # 字典保持插入顺序，超限时淘汰最早写入的条目
        while len(self._entries) >= self.max_entries:
            self._entries.pop(next(iter(self._entries)))
        self._entries[key] = (value, now + ttl)

    async def clear(self, prefix: str = "") -> int:
        keys = [k for k in self._entries if k.startswith(prefix)]
        for k in keys:
            del self._entries[k]
        return len(keys)

    def size(self) -> int:
        now = self._clock()
        return sum(1 for _, expires_at in self._entries.values() if expires_at > now)


class RedisCache:
    """Redis 后端，TTL 由 SETEX 管理"""

    def __init__(self, client: Redis):
        self._client = client

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def put(self, key: str, value: str, ttl: int) -> None:
        await self._client.setex(key, ttl, value)

    async def clear(self, prefix: str = "") -> int:
        keys = [k async for k in self._client.scan_iter(match=f"{prefix}*")]
        if keys:
            await self._client.delete(*keys)
        return len(keys)


class CacheLayer:
    """两级缓存层，自动根据可用连接选择后端"""

    def __init__(
        self,
        namespace: Optional[str] = None,
        memory: Optional[MemoryCache] = None,
        redis_provider: Callable[[], Optional[Redis]] = get_redis,
    ):
        self.namespace = namespace or settings.CACHE_NAMESPACE
        self.memory = memory or MemoryCache()
        self._redis_provider = redis_provider

    def _redis(self) -> Optional[RedisCache]:
        client = self._redis_provider()
        return RedisCache(client) if client else None

    async def get(self, key: str) -> Optional[str]:
        store_key = _make_key(self.namespace, key)

        # L1: Redis
        redis = self._redis()
        if redis:
            try:
                raw = await redis.get(store_key)
                if raw:
                    logger.debug(f"缓存命中（Redis）: {store_key}")
                    return raw
            except Exception as exc:
                logger.debug(f"Redis 读取失败: {exc}")

        # L2: 内存
        raw = await self.memory.get(store_key)
        if raw:
            logger.debug(f"缓存命中（内存）: {store_key}")
        return raw

    async def put(self, key: str, value: str, ttl: int) -> None:
        store_key = _make_key(self.namespace, key)

        redis = self._redis()
        if redis:
            try:
                await redis.put(store_key, value, ttl)
                logger.debug(f"缓存写入（Redis）: {store_key}")
                return
            except Exception as exc:
                logger.debug(f"Redis 写入失败: {exc}")

        await self.memory.put(store_key, value, ttl)
        logger.debug(f"缓存写入（内存）: {store_key}")

    async def clear(self) -> int:
        """清理当前命名空间下的全部条目，返回删除数量"""
        prefix = f"{self.namespace}:"
        removed = await self.memory.clear(prefix)
        redis = self._redis()
        if redis:
            try:
                removed += await redis.clear(prefix)
            except Exception as exc:
                logger.warning(f"Redis 清理失败: {exc}")
        return removed

    async def stats(self) -> dict:
        """返回各缓存后端统计信息"""
        result: dict = {"namespace": self.namespace, "ttl_seconds": settings.CACHE_TTL_SECONDS}
        client = self._redis_provider()
        if client:
            try:
                result["redis"] = {"keys": await client.dbsize(), "status": "healthy"}
            except Exception as exc:
                result["redis"] = {"status": "error", "error": str(exc)}
        else:
            result["redis"] = {"status": "disabled"}
        result["memory"] = {"entries": self.memory.size(), "status": "healthy"}
        return result


# ── 模块级别单例 ──────────────────────────────────────────
_cache: Optional[CacheLayer] = None


def get_cache_layer() -> CacheLayer:
    global _cache
    if _cache is None:
        _cache = CacheLayer()
    return _cache
