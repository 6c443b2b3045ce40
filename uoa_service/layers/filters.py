"""
Layer 4 – 过滤层
上游不支持的本地过滤条件，严格按以下顺序依次执行：
  1. 最低权利金
  2. 成交量 > 持仓量
  3. 主动买 / 主动卖
每一步都是保持顺序的纯过滤，不修改记录本身。
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from uoa_service.models.activity import ActivityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterOptions:
    """本地过滤条件（仅影响输出，不发送到上游）"""
    min_premium: Optional[float] = None
    volume_gt_oi: bool = False
    aggressive_buy_only: bool = False
    aggressive_sell_only: bool = False


def _column(records: Sequence[ActivityRecord], name: str) -> pd.Series:
    """取出数值列，无法转换的值记为 NaN"""
    return pd.to_numeric(
        pd.Series([getattr(r, name) for r in records], dtype="object"),
        errors="coerce",
    ).astype(float)


def _select(records: Sequence[ActivityRecord], mask: pd.Series) -> List[ActivityRecord]:
    return [r for r, keep in zip(records, mask.tolist()) if keep]


def filter_min_premium(
    records: Sequence[ActivityRecord], min_premium: Optional[float]
) -> List[ActivityRecord]:
    """保留权利金为有限值且 ≥ 阈值的记录；未提供阈值时不过滤"""
    if min_premium is None or not records:
        return list(records)
    premium = _column(records, "premium")
    return _select(records, np.isfinite(premium) & (premium >= min_premium))


def filter_volume_gt_oi(
    records: Sequence[ActivityRecord], enabled: bool
) -> List[ActivityRecord]:
    """保留成交量与持仓量均为有限值且成交量 > 持仓量的记录"""
    if not enabled or not records:
        return list(records)
    quantity = _column(records, "quantity")
    open_interest = _column(records, "open_interest")
    mask = np.isfinite(quantity) & np.isfinite(open_interest) & (quantity > open_interest)
    return _select(records, mask)


def filter_aggression(
    records: Sequence[ActivityRecord], buy_only: bool, sell_only: bool
) -> List[ActivityRecord]:
    """两者都开启时取并集；都未开启时全部通过"""
    if not (buy_only or sell_only) or not records:
        return list(records)
    buy = pd.Series([r.aggressive_buy for r in records], dtype=bool)
    sell = pd.Series([r.aggressive_sell for r in records], dtype=bool)
    if buy_only and sell_only:
        mask = buy | sell
    elif buy_only:
        mask = buy
    else:
        mask = sell
    return _select(records, mask)


class FilterPipeline:
    """过滤管线：固定顺序组合三个过滤阶段"""

    def apply(
        self, records: Sequence[ActivityRecord], options: FilterOptions
    ) -> List[ActivityRecord]:
        before = len(records)
        result = filter_min_premium(records, options.min_premium)
        result = filter_volume_gt_oi(result, options.volume_gt_oi)
        result = filter_aggression(result, options.aggressive_buy_only, options.aggressive_sell_only)
        logger.debug(f"本地过滤: {before} → {len(result)} 条")
        return result


def apply_filters(
    records: Sequence[ActivityRecord], options: FilterOptions
) -> List[ActivityRecord]:
    return get_filter_pipeline().apply(records, options)


# ── 模块级别单例 ──────────────────────────────────────────
_pipeline: Optional[FilterPipeline] = None


def get_filter_pipeline() -> FilterPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = FilterPipeline()
    return _pipeline
