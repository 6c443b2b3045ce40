"""
异动期权路由
GET /api/uoa   - 查询异动期权记录（只读缓存代理）
"""

from fastapi import APIRouter, Depends, Request, Response

from uoa_service.models.query import UOAQuery
from uoa_service.services.uoa_service import UOAService, get_uoa_service

router = APIRouter(prefix="/api", tags=["异动期权"])


@router.get("/uoa")
async def get_unusual_activity(
    request: Request,
    svc: UOAService = Depends(get_uoa_service),
):
    """
    查询异动期权记录

    支持参数：tickers, sentiment, min_premium, sweep_only, volume_gt_oi,
    aggressive_buy_only, aggressive_sell_only, page, page_size, date_from, date_to
    （以及各自的别名）
    """
    query = UOAQuery.from_params(request.query_params)
    result = await svc.get_activity(query)
    return Response(content=result.body, status_code=result.status, headers=result.headers)
