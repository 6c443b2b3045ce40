"""
UOA 异动期权数据服务
单一上游（Benzinga）的只读缓存代理，提供 HTTP 接口

架构分层：
  数据获取层 (Acquisition)  → 构造上游请求 URL 并拉取原始 JSON
  清洗层     (Sanitizer)    → 查询参数中的数值过滤条件校验
  标准化层   (Normalizer)   → 多种上游字段命名 → 统一记录结构
  过滤层     (Filters)      → 权利金 / 成交量 vs 持仓量 / 主动买卖过滤
  缓存层     (Cache)        → Redis / 进程内存 两级短时缓存
"""

__version__ = "1.0.0"
