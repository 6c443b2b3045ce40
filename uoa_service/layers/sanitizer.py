"""
Layer 2 – 参数清洗层
把不可信的查询字符串解析为经过校验的数值 / 布尔 / 分页参数。
任何失败都只以 None 或默认值表达，不抛出异常。
"""

import math
import re
from typing import Any, NamedTuple, Optional

_NUMERIC_NOISE = re.compile(r"[^0-9.+\-]")


class NumericFilter(NamedTuple):
    """数值过滤条件：value 用于本地比较，text 原样透传给上游"""
    value: float
    text: str


def sanitize_numeric(raw: Optional[Any]) -> Optional[NumericFilter]:
    """
    清洗数值型过滤参数

    "$50,000" → NumericFilter(50000.0, "50000")；"abc" / "--" / "" → None
    """
    if raw is None:
        return None
    cleaned = _NUMERIC_NOISE.sub("", str(raw))
    if not cleaned or not cleaned.strip("+-"):
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return NumericFilter(value=value, text=cleaned)


def parse_flag(raw: Optional[Any]) -> bool:
    """布尔型查询参数：仅大小写不敏感的 "true" 视为开启"""
    return raw is not None and str(raw).strip().lower() == "true"


def parse_positive_int(raw: Optional[Any], default: int) -> int:
    """分页参数：非正数或无法解析时回退到默认值"""
    if raw is None:
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    return value if value > 0 else default
