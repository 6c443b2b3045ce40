"""
异动期权数据服务
整合获取、标准化、过滤、缓存各层，对外提供只读缓存代理

单次请求流程：
  配置检查 → 缓存查询 →（未命中）上游拉取 → 标准化 → 本地过滤
  → 组装响应 → 后台写入缓存（仅成功响应）
"""

import asyncio
import logging
from typing import Any, Mapping, Optional, Set

from pydantic import ValidationError

from uoa_service.config import UOAServiceSettings, settings as default_settings
from uoa_service.layers.acquisition import (
    AcquisitionLayer,
    UpstreamResult,
    auth_headers,
    build_upstream_url,
    get_acquisition_layer,
)
from uoa_service.layers.cache import CachePort, build_cache_key, get_cache_layer
from uoa_service.layers.filters import FilterPipeline, get_filter_pipeline
from uoa_service.layers.normalizer import NormalizerLayer, get_normalizer_layer
from uoa_service.models.query import UOAQuery
from uoa_service.models.response import CachedResponse, FailureEnvelope, SuccessEnvelope

logger = logging.getLogger(__name__)

MISSING_KEY_ERROR = "Missing BENZINGA_API_KEY secret"
_GENERIC_UPSTREAM_ERROR = "Upstream request failed"


def extract_error_message(body: Any, reason: str = "") -> str:
    """
    提取上游错误信息

    优先级：error 字符串 → message 字符串 → errors[0]（字符串或其 message）
    → 传输层状态描述 → 通用提示
    """
    if isinstance(body, Mapping):
        for name in ("error", "message"):
            value = body.get(name)
            if isinstance(value, str) and value.strip():
                return value
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, str) and first.strip():
                return first
            if isinstance(first, Mapping):
                message = first.get("message")
                if isinstance(message, str) and message.strip():
                    return message
    return reason or _GENERIC_UPSTREAM_ERROR


def _is_error_body(body: Any) -> bool:
    return isinstance(body, Mapping) and bool(body.get("error"))


class UOAService:
    """只读缓存编排器"""

    def __init__(
        self,
        cache: Optional[CachePort] = None,
        upstream: Optional[AcquisitionLayer] = None,
        normalizer: Optional[NormalizerLayer] = None,
        pipeline: Optional[FilterPipeline] = None,
        settings: Optional[UOAServiceSettings] = None,
    ):
        self._cache = cache or get_cache_layer()
        self._upstream = upstream or get_acquisition_layer()
        self._normalizer = normalizer or get_normalizer_layer()
        self._pipeline = pipeline or get_filter_pipeline()
        self._settings = settings or default_settings
        self._pending: Set[asyncio.Task] = set()

    @property
    def ttl(self) -> int:
        return self._settings.CACHE_TTL_SECONDS

    async def get_activity(self, query: UOAQuery) -> CachedResponse:
        """
        处理一次异动查询

        所有错误都在此转换为失败响应，不向调用方抛出异常。
        """
        try:
            return await self._handle(query)
        except Exception as exc:
            logger.error(f"异动查询处理异常: {exc}", exc_info=True)
            return self._envelope_failure(500, "Internal processing error", {})

    async def _handle(self, query: UOAQuery) -> CachedResponse:
        cfg = self._settings
        if not cfg.BENZINGA_API_KEY:
            logger.error("❌ BENZINGA_API_KEY 未配置，拒绝请求")
            return self._envelope_failure(500, MISSING_KEY_ERROR, {})

        upstream_url = build_upstream_url(
            cfg.BENZINGA_BASE_URL,
            query,
            token=cfg.BENZINGA_API_KEY,
            header_auth=cfg.BENZINGA_HEADER_AUTH,
        )
        cache_key = build_cache_key(upstream_url, query)

        cached = await self._lookup(cache_key)
        if cached is not None:
            return cached

        result = await self._upstream.fetch(
            upstream_url,
            headers=auth_headers(cfg.BENZINGA_API_KEY, cfg.BENZINGA_HEADER_AUTH),
        )
        if result.ok and not _is_error_body(result.body):
            response = self._build_success(result, query)
            self._schedule_store(cache_key, response)
            return response

        logger.warning(f"上游返回失败: status={result.status}")
        return self._build_failure(result)

    # ── 缓存读写 ──────────────────────────────────────────

    async def _lookup(self, key: str) -> Optional[CachedResponse]:
        try:
            raw = await self._cache.get(key)
        except Exception as exc:
            logger.warning(f"缓存读取失败，按未命中处理: {exc}")
            return None
        if not raw:
            logger.debug("缓存未命中")
            return None
        try:
            return CachedResponse.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(f"缓存内容无法解析，按未命中处理: {exc}")
            return None

    def _schedule_store(self, key: str, response: CachedResponse) -> None:
        """后台写入缓存，不阻塞响应；写入失败仅记录日志"""
        task = asyncio.get_running_loop().create_task(self._store(key, response))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _store(self, key: str, response: CachedResponse) -> None:
        try:
            await self._cache.put(key, response.model_dump_json(), self.ttl)
        except Exception as exc:
            logger.warning(f"缓存写入失败（已忽略）: {exc}")

    async def drain(self) -> None:
        """等待所有尚未完成的后台缓存写入"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ── 响应组装 ──────────────────────────────────────────

    def _build_success(self, result: UpstreamResult, query: UOAQuery) -> CachedResponse:
        records = self._normalizer.normalize(result.body)
        filtered = self._pipeline.apply(records, query.filter_options)
        envelope = SuccessEnvelope(
            source_status=result.status,
            page=query.page,
            page_size=query.page_size,
            count=len(filtered),
            results=filtered,
        )
        logger.info(
            f"异动查询完成: tickers={query.tickers or '*'} 上游 {len(records)} 条 → 输出 {len(filtered)} 条"
        )
        return CachedResponse.from_envelope(
            envelope, status=200, headers={"cache-control": f"public, max-age={self.ttl}"}
        )

    def _build_failure(self, result: UpstreamResult) -> CachedResponse:
        body = result.body
        details = dict(body) if isinstance(body, Mapping) else {"body": body}
        envelope = FailureEnvelope(
            source_status=result.status,
            error=extract_error_message(body, result.reason),
            error_details=details,
        )
        status = result.status if result.status >= 400 else 502
        return CachedResponse.from_envelope(envelope, status=status, headers={"cache-control": "no-store"})

    def _envelope_failure(self, status: int, error: str, details: dict) -> CachedResponse:
        envelope = FailureEnvelope(source_status=status, error=error, error_details=details)
        return CachedResponse.from_envelope(envelope, status=status, headers={"cache-control": "no-store"})


# ── 模块级别单例 ──────────────────────────────────────────
_uoa_service: Optional[UOAService] = None


def get_uoa_service() -> UOAService:
    global _uoa_service
    if _uoa_service is None:
        _uoa_service = UOAService()
    return _uoa_service
