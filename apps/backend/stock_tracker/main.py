"""
StockTracker FastAPI 應用程式入口

包含 CORS 設定、全域錯誤處理中介軟體、
生命週期管理（初始化資料庫、啟動收盤價排程）。
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stock_tracker.api.router import api_router
from stock_tracker.config import Settings, get_settings
from stock_tracker.database import Database
from stock_tracker.worker import setup_worker, stop_worker

# 設定日誌
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None, database: Database | None = None
) -> FastAPI:
    """
    建立 FastAPI 應用

    Args:
        settings: 應用程式設定，預設讀取環境變數
        database: 資料庫握柄，預設依 settings.database_url 建立
    """
    settings = settings or get_settings()
    database = database or Database(settings.database_url, echo=False)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """應用程式生命週期管理"""
        # === 啟動時 ===
        logger.info("🚀 %s 啟動中...", settings.app_name)
        logger.info("環境: %s", settings.app_env)

        # 開發模式（SQLite）自動建表
        if database.use_sqlite:
            await database.init_models()
            logger.info("✅ 資料庫初始化完成")

        if settings.price_sync_enabled:
            setup_worker(database, settings)

        yield

        # === 關閉時 ===
        logger.info("%s 關閉中...", settings.app_name)
        if settings.price_sync_enabled:
            await stop_worker()
        await database.dispose()
        logger.info("👋 %s 已關閉", settings.app_name)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="股票投資組合追蹤 API",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database

    # === CORS 中介軟體 ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === 全域錯誤處理 ===

    @app.middleware("http")
    async def error_handling_middleware(request: Request, call_next):
        """
        全域錯誤處理與請求日誌中介軟體

        - 記錄每個請求的處理時間
        - 捕獲未預期的例外並回傳統一格式
        """
        start_time = time.time()

        try:
            response = await call_next(request)

            # 記錄請求日誌
            process_time = time.time() - start_time
            logger.info(
                "%s %s - %d (%.3fs)",
                request.method,
                request.url.path,
                response.status_code,
                process_time,
            )

            response.headers["X-Process-Time"] = f"{process_time:.3f}"
            return response

        except Exception as e:
            process_time = time.time() - start_time
            logger.exception(
                "%s %s - 500 (%.3fs) Error: %s",
                request.method,
                request.url.path,
                process_time,
                str(e),
            )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "Internal Server Error",
                    "detail": str(e) if settings.is_development else None,
                },
            )

    # === 註冊路由 ===
    app.include_router(api_router)

    # === 健康檢查 ===

    @app.get("/health", tags=["系統"])
    async def health_check():
        """API 健康檢查"""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.app_env,
        }

    return app


app = create_app()
