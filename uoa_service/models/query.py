"""异动查询参数模型"""

from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from uoa_service.config import settings
from uoa_service.layers.filters import FilterOptions
from uoa_service.layers.sanitizer import (
    NumericFilter,
    parse_flag,
    parse_positive_int,
    sanitize_numeric,
)

# ── 查询参数别名（按优先级） ──────────────────────────────
PARAM_ALIASES = {
    "tickers": ("tickers",),
    "sentiment": ("sentiment",),
    "min_premium": ("min_premium", "min_total_trade_value"),
    "sweep_only": ("sweep_only", "sweepOnly"),
    "volume_gt_oi": ("volume_gt_oi", "volumeGtOi", "size_gt_oi"),
    "aggressive_buy_only": ("aggressive_buy_only", "aggressiveBuyOnly"),
    "aggressive_sell_only": ("aggressive_sell_only", "aggressiveSellOnly"),
    "page": ("page", "page_number"),
    "page_size": ("page_size", "pagesize", "pageSize", "limit"),
    "date_from": ("date_from",),
    "date_to": ("date_to",),
}


def _lookup(params: Mapping[str, Any], aliases: Tuple[str, ...]) -> Optional[Any]:
    for name in aliases:
        value = params.get(name)
        if value is not None:
            return value
    return None


def _text(params: Mapping[str, Any], name: str) -> str:
    value = _lookup(params, PARAM_ALIASES[name])
    return str(value).strip() if value is not None else ""


class UOAQuery(BaseModel):
    """经过校验的单次请求参数"""
    model_config = ConfigDict(frozen=True)

    tickers: str = ""
    sentiment: str = ""
    min_premium: Optional[NumericFilter] = None
    sweep_only: bool = False
    volume_gt_oi: bool = False
    aggressive_buy_only: bool = False
    aggressive_sell_only: bool = False
    page: int = 1
    page_size: int = 50
    date_from: str = ""
    date_to: str = ""

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "UOAQuery":
        """从原始查询参数构造（别名中第一个出现的值生效）"""
        return cls(
            tickers=_text(params, "tickers"),
            sentiment=_text(params, "sentiment"),
            min_premium=sanitize_numeric(_lookup(params, PARAM_ALIASES["min_premium"])),
            sweep_only=parse_flag(_lookup(params, PARAM_ALIASES["sweep_only"])),
            volume_gt_oi=parse_flag(_lookup(params, PARAM_ALIASES["volume_gt_oi"])),
            aggressive_buy_only=parse_flag(_lookup(params, PARAM_ALIASES["aggressive_buy_only"])),
            aggressive_sell_only=parse_flag(_lookup(params, PARAM_ALIASES["aggressive_sell_only"])),
            page=parse_positive_int(_lookup(params, PARAM_ALIASES["page"]), settings.DEFAULT_PAGE),
            page_size=parse_positive_int(
                _lookup(params, PARAM_ALIASES["page_size"]), settings.DEFAULT_PAGE_SIZE
            ),
            date_from=_text(params, "date_from"),
            date_to=_text(params, "date_to"),
        )

    @property
    def filter_options(self) -> FilterOptions:
        return FilterOptions(
            min_premium=self.min_premium.value if self.min_premium else None,
            volume_gt_oi=self.volume_gt_oi,
            aggressive_buy_only=self.aggressive_buy_only,
            aggressive_sell_only=self.aggressive_sell_only,
        )
