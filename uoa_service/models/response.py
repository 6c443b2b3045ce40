"""统一 API 响应模型"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from uoa_service.models.activity import ActivityRecord


class ApiResponse(BaseModel):
    """标准 API 响应封装（运维类接口使用）"""
    success: bool = True
    data: Optional[Any] = None
    message: str = ""

    @classmethod
    def ok(cls, data: Any = None, message: str = "success") -> "ApiResponse":
        return cls(success=True, data=data, message=message)


class SuccessEnvelope(BaseModel):
    """异动查询成功响应"""
    ok: bool = True
    source_status: int
    page: int
    page_size: int
    count: int
    results: List[ActivityRecord] = Field(default_factory=list)


class FailureEnvelope(BaseModel):
    """异动查询失败响应"""
    ok: bool = False
    source_status: int
    error: str
    error_details: Dict[str, Any] = Field(default_factory=dict)


class CachedResponse(BaseModel):
    """完整响应（状态码 + 响应头 + 序列化后的 body），可直接写入缓存"""
    status: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str

    @classmethod
    def from_envelope(
        cls, envelope: BaseModel, status: int, headers: Optional[Dict[str, str]] = None
    ) -> "CachedResponse":
        return cls(
            status=status,
            headers={"content-type": "application/json; charset=utf-8", **(headers or {})},
            body=envelope.model_dump_json(),
        )
