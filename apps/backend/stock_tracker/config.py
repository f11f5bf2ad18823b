"""
StockTracker 後端設定模組

使用 Pydantic Settings 管理環境變數，自動驗證型別與預設值。
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """應用程式設定，透過環境變數或 .env 載入"""

    # === 應用程式 ===
    app_env: Literal["development", "production", "testing"] = "development"
    app_name: str = "StockTracker API"
    app_version: str = "0.1.0"
    debug: bool = True

    # === 安全性 ===
    secret_key: str = "dev-secret-change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 10080  # 7 天 (7 * 24 * 60)

    # === 資料庫 ===
    # 預設使用 SQLite（開發模式），生產環境切換為 PostgreSQL
    database_url: str = "sqlite+aiosqlite:///./stock_tracker.db"

    # === 每日收盤價同步 ===
    price_sync_enabled: bool = True
    price_sync_hour: int = 14    # 台股收盤後
    price_sync_minute: int = 30
    price_sync_period: str = "1mo"  # yfinance 回補區間

    # === 分頁 ===
    default_page_size: int = 20
    max_page_size: int = 100

    # === CORS ===
    cors_origins: list[str] = [
        "http://localhost:3000",
    ]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def use_sqlite(self) -> bool:
        """判斷是否使用 SQLite（開發模式）"""
        return "sqlite" in self.database_url


@lru_cache
def get_settings() -> Settings:
    """取得快取的設定實例"""
    return Settings()
