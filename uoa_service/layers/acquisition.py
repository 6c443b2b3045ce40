"""
Layer 1 – 数据获取层
根据校验后的查询参数构造 Benzinga 请求 URL，单次拉取原始 JSON。
传输失败或响应体不是 JSON 时，以错误对象代替响应体返回，不抛出异常。
"""

import logging
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit

import httpx

from uoa_service.config import settings

logger = logging.getLogger(__name__)


class UpstreamResult(NamedTuple):
    """一次上游调用的结果"""
    status: int
    reason: str
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def append_params(url: str, params: Sequence[Tuple[str, str]]) -> str:
    """在 URL 已有查询参数之后按顺序追加参数"""
    parts = urlsplit(url)
    existing = parse_qsl(parts.query, keep_blank_values=True)
    return parts._replace(query=urlencode(existing + list(params))).geturl()


def build_upstream_url(
    base_url: str,
    query,
    token: str = "",
    header_auth: bool = False,
) -> str:
    """
    构造上游请求 URL

    参数顺序固定；空值 / 未开启的参数直接省略，不以空字符串发送。
    使用请求头鉴权时 URL 中不携带 token。
    """
    params: List[Tuple[str, str]] = []
    if token and not header_auth:
        params.append(("token", token))
    if query.tickers:
        params.append(("tickers", query.tickers))
    if query.sentiment:
        params.append(("sentiment", query.sentiment))
    if query.min_premium:
        params.append(("min_total_trade_value", query.min_premium.text))
    if query.sweep_only:
        params.append(("sweep_only", "true"))
    if query.date_from:
        params.append(("date_from", query.date_from))
    if query.date_to:
        params.append(("date_to", query.date_to))
    params.append(("page", str(query.page)))
    params.append(("pagesize", str(query.page_size)))
    return append_params(base_url, params)


def auth_headers(token: str, header_auth: bool) -> Dict[str, str]:
    return {"Authorization": token} if token and header_auth else {}


class AcquisitionLayer:
    """数据获取层：对上游发起单次 GET，不重试"""

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout if timeout is not None else settings.UPSTREAM_TIMEOUT_SECONDS
        self._transport = transport

    async def fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> UpstreamResult:
        request_headers = {
            "Accept": "application/json",
            "Cache-Control": "no-cache",
            **(headers or {}),
        }
        endpoint = urlsplit(url)._replace(query="").geturl()
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(url, headers=request_headers)
        except httpx.HTTPError as exc:
            logger.warning(f"上游请求失败（{endpoint}）: {exc}")
            return UpstreamResult(
                status=502,
                reason="Bad Gateway",
                body={"error": f"Upstream request failed: {exc.__class__.__name__}"},
            )

        try:
            body = response.json()
        except ValueError:
            logger.warning(f"上游响应解析失败（{endpoint}），状态码 {response.status_code}")
            body = {"error": "Upstream decode failed"}

        logger.debug(f"上游响应: {endpoint} → {response.status_code}")
        return UpstreamResult(status=response.status_code, reason=response.reason_phrase, body=body)


# ── 模块级别单例 ──────────────────────────────────────────
_acquisition: Optional[AcquisitionLayer] = None


def get_acquisition_layer() -> AcquisitionLayer:
    global _acquisition
    if _acquisition is None:
        _acquisition = AcquisitionLayer()
    return _acquisition
