"""
数据流分层架构
  Layer 1 – Acquisition : 上游请求构造与拉取（Benzinga）
  Layer 2 – Sanitizer   : 查询参数数值清洗
  Layer 3 – Normalizer  : 上游记录标准化 + 主动买卖推断
  Layer 4 – Filters     : 本地过滤管线
  Layer 5 – Cache       : 短时响应缓存（Redis → 内存）
"""
