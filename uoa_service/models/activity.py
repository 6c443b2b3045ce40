"""标准化异动期权记录模型"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class ActivityRecord(BaseModel):
    """
    标准化后的单条异动记录

    所有字段均有默认值，序列化结果中不会缺失任何字段；
    创建后不可变（frozen）。
    """
    model_config = ConfigDict(frozen=True)

    id: str = ""
    ticker: str = ""
    type: str = ""
    side: str = ""
    expiry: str = ""
    time: str = ""

    sweep: bool = False
    at_or_above_ask: bool = False
    at_or_below_bid: bool = False
    aggressive_buy: bool = False
    aggressive_sell: bool = False

    premium: float = 0
    trade_price: float = 0
    quantity: float = 0
    strike: float = 0
    iv: float = 0
    underlying_price: float = 0
    open_interest: float = 0

    pos_in_spread: Optional[float] = None       # 0.0 = 买价, 1.0 = 卖价
    aggressor_indicator: Optional[str] = None
