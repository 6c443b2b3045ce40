"""
缓存管理路由
GET  /api/cache/stats     - 缓存统计
POST /api/cache/clear     - 清理异动响应缓存
"""

from fastapi import APIRouter

from uoa_service.layers.cache import get_cache_layer
from uoa_service.models.response import ApiResponse

router = APIRouter(prefix="/api/cache", tags=["缓存管理"])


@router.get("/stats", response_model=ApiResponse)
async def cache_stats():
    """获取缓存统计信息（各后端条目数量）"""
    stats = await get_cache_layer().stats()
    return ApiResponse.ok(data=stats)


@router.post("/clear", response_model=ApiResponse)
async def clear_cache():
    """清理当前命名空间下的全部缓存条目"""
    removed = await get_cache_layer().clear()
    return ApiResponse.ok(data={"removed": removed}, message=f"缓存已清理: {removed} 条")
