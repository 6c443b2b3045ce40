"""
UOA 异动期权数据服务
独立 FastAPI 应用程序入口

启动方式:
    uvicorn uoa_service.main:app --host 0.0.0.0 --port 8001
    python -m uoa_service.main
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from uoa_service import __version__, db
from uoa_service.config import settings
from uoa_service.routers import cache, health, uoa
from uoa_service.services.uoa_service import get_uoa_service

# ── 日志配置 ──────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_INDEX_HTML = """<!DOCTYPE html><html><head><meta charset='utf-8'><title>UOA Viewer</title></head>
<body><h1>Unusual Options Activity</h1><p>Use /api/uoa endpoint with query params.</p></body></html>"""


# ── 生命周期管理 ──────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用启动/关闭生命周期钩子"""
    logger.info("=" * 60)
    logger.info(f"🚀 UOA Service v{__version__} 启动中")
    logger.info(f"   Upstream  : {settings.BENZINGA_BASE_URL}")
    logger.info(f"   Redis     : {settings.REDIS_HOST}:{settings.REDIS_PORT}")
    logger.info(f"   Cache TTL : {settings.CACHE_TTL_SECONDS}s")
    logger.info("=" * 60)

    if not settings.BENZINGA_API_KEY:
        logger.warning("⚠️ BENZINGA_API_KEY 未配置，/api/uoa 将返回配置错误")

    # 初始化 Redis（失败不阻断启动，降级为内存缓存）
    if await db.init_redis():
        logger.info("✅ 缓存后端就绪（Redis）")
    else:
        logger.warning("⚠️ Redis 不可用，缓存降级为进程内存模式")

    yield

    logger.info("🔄 异动期权服务正在关闭...")
    await get_uoa_service().drain()
    await db.close_connections()
    logger.info("✅ 异动期权服务已关闭")


# ── 应用实例 ──────────────────────────────────────────────
app = FastAPI(
    title="UOA 异动期权数据服务",
    description=(
        "单一上游（Benzinga）异动期权数据的只读缓存代理：\n"
        "- 🔎 多版本上游字段 → 统一记录结构\n"
        "- 🧮 主动买 / 主动卖推断\n"
        "- 🧹 权利金、成交量 vs 持仓量、主动方向本地过滤\n"
        "- 🗄️ 短时响应缓存（Redis → 内存）\n\n"
        "**分层架构**\n"
        "```\n"
        "Acquisition Layer  ← 构造上游请求并拉取原始数据\n"
        "Normalizer Layer   ← 字段标准化与主动方向推断\n"
        "Filter Layer       ← 本地过滤管线\n"
        "Cache Layer        ← Redis / 内存两级缓存\n"
        "```"
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS 中间件 ───────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# ── 请求计时中间件 ─────────────────────────────────────────
@app.middleware("http")
async def add_process_time(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{(time.time() - start) * 1000:.1f}ms"
    return response


# ── 全局异常处理 ──────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"未处理的异常: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": "内部服务错误", "message": str(exc)},
    )


# ── 注册路由 ──────────────────────────────────────────────
app.include_router(health.router)
app.include_router(uoa.router)
app.include_router(cache.router)


# ── 根路由 ───────────────────────────────────────────────
@app.get("/", include_in_schema=False, response_class=HTMLResponse)
@app.get("/index.html", include_in_schema=False, response_class=HTMLResponse)
async def root():
    return HTMLResponse(_INDEX_HTML)


# ── 直接运行入口 ──────────────────────────────────────────
if __name__ == "__main__":
    uvicorn.run(
        "uoa_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
