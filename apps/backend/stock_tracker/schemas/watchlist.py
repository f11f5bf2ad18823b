"""
關注清單相關 Schema
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from stock_tracker.schemas.stock import StockQuote


class WatchlistAdd(BaseModel):
    """新增關注請求"""
    stock_id: str = Field(min_length=1, max_length=20)

    @field_validator("stock_id")
    @classmethod
    def _upper_stock_id(cls, value: str) -> str:
        return value.strip().upper()


class WatchlistItemResponse(StockQuote):
    """關注項目（含最新報價）"""
    added_at: datetime | None = None


class BatchCheckRequest(BaseModel):
    """批次檢查關注狀態"""
    stock_ids: list[str] = Field(min_length=1)


class BatchCheckResponse(BaseModel):
    watched_stock_ids: list[str]
    total_checked: int
    total_watched: int


class WatchStatus(BaseModel):
    stock_id: str
    is_watched: bool
