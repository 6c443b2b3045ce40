"""
Layer 3 – 标准化层
把上游任意结构的 JSON 映射为统一的 ActivityRecord 列表。

上游不同版本的接口对同一语义使用不同字段名（如 ticker / symbol /
underlying_symbol），这里以“候选字段列表”配置的方式逐字段解析，
取第一个存在且非空的值。任何字段缺失或格式错误都降级为默认值，
单条坏数据不会导致整批失败。
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from uoa_service.config import settings
from uoa_service.models.activity import ActivityRecord

logger = logging.getLogger(__name__)


# ── 记录数组可能出现的位置（按优先级） ─────────────────────
ROW_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("option_activity",),
    ("data",),
    ("results",),
    ("signals",),
    ("records",),
    ("data", "option_activity"),
    ("data", "results"),
    ("data", "data"),
)

# ── 标准字段 → 上游候选字段（按优先级） ─────────────────────
FIELD_CANDIDATES: Dict[str, Tuple[str, ...]] = {
    "id": ("id", "signal_id", "activity_id", "trade_id"),
    "ticker": ("ticker", "symbol", "underlying_symbol", "underlying_ticker"),
    "type": ("option_type", "put_call", "contract_type", "type"),
    "side": ("sentiment", "bias"),
    "expiry": ("expiration_date", "expiry", "expiration", "date_expiration"),
    "sweep": ("sweep", "is_sweep"),
    "activity_type": ("option_activity_type", "activity_type", "trade_type"),
    "premium": ("total_trade_value", "premium", "total_premium", "cost_basis"),
    "trade_price": ("price", "trade_price", "fill_price"),
    "quantity": ("size", "quantity", "volume", "contracts"),
    "strike": ("strike", "strike_price"),
    "iv": ("iv", "implied_volatility"),
    "underlying_price": ("underlying_price", "stock_price", "spot"),
    "open_interest": ("open_interest", "oi", "openinterest"),
    "bid": ("bid", "bid_price"),
    "ask": ("ask", "ask_price"),
    # 主动买卖相关信号
    "pos_in_spread": ("pos_in_spread", "position_in_spread", "spread_position"),
    "aggressor_indicator": ("aggressor_ind", "aggressor_indicator", "aggressor", "execution_side", "trade_side"),
    "ask_hint": ("at_or_above_ask", "at_ask", "above_ask", "is_ask_side"),
    "bid_hint": ("at_or_below_bid", "at_bid", "below_bid", "is_bid_side"),
    "price_relation": ("price_relation", "execution_estimate", "trade_relation", "description"),
    # 时间展示
    "date": ("date", "trade_date"),
    "clock": ("time", "trade_time", "execution_time"),
    # time / trade_time / execution_time 为数字时按 epoch 处理
    "epoch": ("updated", "timestamp", "executed_at", "t", "trade_time", "execution_time", "time"),
}

# 毫秒时间戳判定阈值
_EPOCH_MS_THRESHOLD = 1e12

AT_ASK = "AT_ASK"
AT_BID = "AT_BID"
MID = "MID"

_DEFAULT_INDICATOR_SYNONYMS: Dict[str, str] = {
    **{k: AT_ASK for k in (
        "ASK", "AT_ASK", "ABOVE_ASK", "AT_OR_ABOVE_ASK", "ASK_SIDE", "LIFT", "LIFTED",
        "LIFT_ASK", "TAKE", "TAKE_ASK", "BUY", "BUYER", "BUYER_INITIATED", "B",
    )},
    **{k: AT_BID for k in (
        "BID", "AT_BID", "BELOW_BID", "AT_OR_BELOW_BID", "BID_SIDE", "HIT", "HIT_BID",
        "SELL", "SELLER", "SELLER_INITIATED", "S",
    )},
    **{k: MID for k in ("MID", "MIDPOINT", "MID_MARKET", "BETWEEN")},
}

_TRUE_TOKENS = frozenset({"true", "1", "yes", "y", "t"})
_INDICATOR_NOISE = re.compile(r"[^A-Za-z0-9]+")
_PHRASE_NOISE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class AggressorPolicy:
    """主动买卖推断策略：阈值、短语表、指示符同义词均可配置"""
    buy_threshold: float = 0.75
    sell_threshold: float = 0.25
    buy_phrases: Tuple[str, ...] = ("at ask", "above ask", "ask side", "over ask", "take ask")
    sell_phrases: Tuple[str, ...] = ("at bid", "below bid", "bid side", "under bid", "hit bid")
    indicator_synonyms: Mapping[str, str] = field(
        default_factory=lambda: dict(_DEFAULT_INDICATOR_SYNONYMS)
    )

    @classmethod
    def from_settings(cls, cfg=None) -> "AggressorPolicy":
        cfg = cfg or settings
        return cls(
            buy_threshold=cfg.AGGRESSIVE_BUY_THRESHOLD,
            sell_threshold=cfg.AGGRESSIVE_SELL_THRESHOLD,
        )


# ── 类型转换 ──────────────────────────────────────────────

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def to_number(value: Any) -> Optional[float]:
    """转换为有限浮点数，失败返回 None（布尔值不视为数字）"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "").replace("$", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def to_bool(value: Any) -> bool:
    """接受 true/false/1/0/yes/no/y/n/t/f（大小写不敏感），其余一律 False"""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_TOKENS
    return False


def normalize_indicator(raw: Any, policy: AggressorPolicy) -> Optional[str]:
    """'hit-bid' → 'HIT_BID' → 'AT_BID'；未知取值保留规范化文本"""
    if _is_blank(raw):
        return None
    text = _INDICATOR_NOISE.sub("_", str(raw)).strip("_").upper()
    if not text:
        return None
    return policy.indicator_synonyms.get(text, text)


def _phrase_text(raw: str) -> str:
    return " ".join(_PHRASE_NOISE.split(raw.lower())).strip()


# ── 候选字段解析 ──────────────────────────────────────────

def first_text(row: Mapping[str, Any], name: str, skip_numeric: bool = False) -> str:
    for key in FIELD_CANDIDATES[name]:
        value = row.get(key)
        if _is_blank(value) or isinstance(value, (Mapping, list)):
            continue
        if skip_numeric and to_number(value) is not None:
            continue
        return str(value).strip()
    return ""


def first_number(row: Mapping[str, Any], name: str) -> Optional[float]:
    for key in FIELD_CANDIDATES[name]:
        number = to_number(row.get(key))
        if number is not None:
            return number
    return None


def first_bool(row: Mapping[str, Any], name: str) -> bool:
    for key in FIELD_CANDIDATES[name]:
        value = row.get(key)
        if not _is_blank(value):
            return to_bool(value)
    return False


def any_true(row: Mapping[str, Any], name: str) -> bool:
    return any(to_bool(row.get(key)) for key in FIELD_CANDIDATES[name])


def extract_rows(payload: Any) -> List[Mapping[str, Any]]:
    """定位记录数组：顶层数组或已知嵌套路径，其余结构视为空"""
    rows: List[Any] = []
    if isinstance(payload, list):
        rows = payload
    elif isinstance(payload, Mapping):
        for path in ROW_PATHS:
            node: Any = payload
            for key in path:
                node = node.get(key) if isinstance(node, Mapping) else None
            if isinstance(node, list):
                rows = node
                break
    return [row for row in rows if isinstance(row, Mapping)]


def format_time(row: Mapping[str, Any]) -> str:
    """
    生成展示用时间

    优先 "{date} {time}"，其次二者之一，最后把 epoch（秒或毫秒）
    转为 "YYYY-MM-DD HH:MM:SSZ"（UTC）
    """
    day = first_text(row, "date")
    clock = first_text(row, "clock", skip_numeric=True)
    if day and clock:
        return f"{day} {clock}"
    if day or clock:
        return day or clock

    epoch = first_number(row, "epoch")
    if epoch is None:
        return ""
    seconds = epoch / 1000 if abs(epoch) >= _EPOCH_MS_THRESHOLD else epoch
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%SZ")
    except (OverflowError, OSError, ValueError):
        return ""


def spread_position(row: Mapping[str, Any], trade_price: Optional[float]) -> Optional[float]:
    """显式价差位置优先；否则由 bid / ask / 成交价推算并截断到 [0, 1]"""
    pos = first_number(row, "pos_in_spread")
    if pos is not None:
        return pos
    bid = first_number(row, "bid")
    ask = first_number(row, "ask")
    if trade_price is None or bid is None or ask is None or ask <= bid:
        return None
    return min(1.0, max(0.0, (trade_price - bid) / (ask - bid)))


def infer_aggressor(
    row: Mapping[str, Any],
    policy: AggressorPolicy,
    trade_price: Optional[float] = None,
) -> Dict[str, Any]:
    """
    主动买卖推断

    at_or_above_ask = 显式卖价标志 OR 指示符为 AT_ASK OR 价格关系文本含买方短语
    at_or_below_bid 对称推断；
    aggressive_buy  = at_or_above_ask OR pos_in_spread ≥ buy_threshold
    aggressive_sell = at_or_below_bid OR pos_in_spread ≤ sell_threshold
    """
    pos = spread_position(row, trade_price)
    indicator = normalize_indicator(first_text(row, "aggressor_indicator"), policy)
    relation = _phrase_text(first_text(row, "price_relation"))

    at_ask = (
        any_true(row, "ask_hint")
        or indicator == AT_ASK
        or any(phrase in relation for phrase in policy.buy_phrases)
    )
    at_bid = (
        any_true(row, "bid_hint")
        or indicator == AT_BID
        or any(phrase in relation for phrase in policy.sell_phrases)
    )
    return {
        "pos_in_spread": pos,
        "aggressor_indicator": indicator,
        "at_or_above_ask": at_ask,
        "at_or_below_bid": at_bid,
        "aggressive_buy": at_ask or (pos is not None and pos >= policy.buy_threshold),
        "aggressive_sell": at_bid or (pos is not None and pos <= policy.sell_threshold),
    }


class NormalizerLayer:
    """标准化层：原始上游载荷 → 有序 ActivityRecord 列表"""

    def __init__(self, policy: Optional[AggressorPolicy] = None):
        self.policy = policy or AggressorPolicy()

    def normalize(self, payload: Any) -> List[ActivityRecord]:
        """保持输入顺序；批内 id 重复时追加 -N 后缀"""
        records: List[ActivityRecord] = []
        seen: set = set()
        for index, row in enumerate(extract_rows(payload)):
            record = self.normalize_row(row, index)
            rid = record.id
            if rid in seen:
                n = 1
                while f"{rid}-{n}" in seen:
                    n += 1
                rid = f"{rid}-{n}"
                record = record.model_copy(update={"id": rid})
            seen.add(rid)
            records.append(record)
        logger.debug(f"标准化完成，共 {len(records)} 条记录")
        return records

    def normalize_row(self, row: Mapping[str, Any], index: int = 0) -> ActivityRecord:
        ticker = first_text(row, "ticker")
        display_time = format_time(row)
        trade_price = first_number(row, "trade_price")

        rid = first_text(row, "id")
        if not rid:
            epoch = first_number(row, "epoch")
            if epoch is not None:
                stamp = str(int(epoch)) if epoch.is_integer() else str(epoch)
            else:
                stamp = display_time or str(index)
            rid = f"{ticker}-{stamp}"

        sweep = first_bool(row, "sweep") or first_text(row, "activity_type").upper() == "SWEEP"

        return ActivityRecord(
            id=rid,
            ticker=ticker,
            type=first_text(row, "type"),
            side=first_text(row, "side"),
            expiry=first_text(row, "expiry"),
            time=display_time,
            sweep=sweep,
            premium=first_number(row, "premium") or 0,
            trade_price=trade_price or 0,
            quantity=first_number(row, "quantity") or 0,
            strike=first_number(row, "strike") or 0,
            iv=first_number(row, "iv") or 0,
            underlying_price=first_number(row, "underlying_price") or 0,
            open_interest=first_number(row, "open_interest") or 0,
            **infer_aggressor(row, self.policy, trade_price),
        )


# ── 模块级别单例 ──────────────────────────────────────────
_normalizer: Optional[NormalizerLayer] = None


def get_normalizer_layer() -> NormalizerLayer:
    global _normalizer
    if _normalizer is None:
        _normalizer = NormalizerLayer(AggressorPolicy.from_settings())
    return _normalizer
