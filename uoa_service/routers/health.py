"""健康检查路由"""

import time

from fastapi import APIRouter

from uoa_service import __version__
from uoa_service.config import settings
from uoa_service.db import check_health

router = APIRouter(tags=["健康检查"])


@router.get("/health")
async def health():
    """服务健康检查"""
    backends = await check_health()
    return {
        "success": True,
        "data": {
            "status": "ok",
            "version": __version__,
            "timestamp": int(time.time()),
            "service": "UOA Service",
            "upstream_configured": bool(settings.BENZINGA_API_KEY),
            "cache": backends,
        },
        "message": "服务运行正常",
    }


@router.get("/healthz")
async def healthz():
    """Kubernetes liveness probe"""
    return {"status": "ok"}


@router.get("/readyz")
async def readyz():
    """Kubernetes readiness probe"""
    return {"ready": True}
