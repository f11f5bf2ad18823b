"""
StockTracker 資料庫連線模組

支援 SQLAlchemy 2.0 async engine。
開發模式使用 SQLite，生產環境使用 PostgreSQL。

Database 由應用程式工廠建立並掛在 app.state，
請求處理器透過 get_db 依賴注入取得 session，不使用模組層級的全域連線。
"""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """所有 ORM Model 的基礎類別"""
    pass


def _normalize_url(url: str) -> str:
    """自動轉換資料庫 URL 為非同步驅動程式"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


class Database:
    """
    資料庫資源握柄

    使用方式：
        database = Database("sqlite+aiosqlite:///./dev.db")
        async with database.session() as session:
            ...
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = _normalize_url(url)

        # 根據資料庫類型調整引擎參數
        engine_kwargs: dict = {"echo": echo}
        if self.use_sqlite:
            # SQLite 需要特殊的 connect_args，允許跨執行緒存取
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            # PostgreSQL 連線池設定
            engine_kwargs.update({
                "pool_size": 20,
                "max_overflow": 10,
                "pool_pre_ping": True,
            })

        self.engine: AsyncEngine = create_async_engine(self.url, **engine_kwargs)
        self._sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def use_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def session(self) -> AsyncSession:
        """建立新的 session（呼叫端負責以 async with 關閉）"""
        return self._sessionmaker()

    async def init_models(self) -> None:
        """建立所有資料表（僅 SQLite 開發/測試模式）"""
        # 確保所有 Model 都已註冊到 metadata
        import stock_tracker.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI 依賴注入：取得資料庫 session"""
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
