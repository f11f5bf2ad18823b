"""
投資組合相關 Schema

定義投資組合 CRUD、持倉明細與損益摘要的請求與回應模型。
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from stock_tracker.schemas.transaction import TransactionResponse


class PortfolioCreate(BaseModel):
    """建立投資組合"""
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("投資組合名稱為必填")
        return value


class PortfolioUpdate(BaseModel):
    """更新投資組合"""
    name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("投資組合名稱為必填")
        return value


class PortfolioResponse(BaseModel):
    """投資組合回應"""
    id: str
    name: str
    description: str | None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class PositionDetail(BaseModel):
    """持倉明細（含最新收盤價與損益）"""
    stock_id: str
    name: str | None
    currency: str
    quantity: int
    total_cost: Decimal
    avg_cost: Decimal | None
    realized_pnl: Decimal
    current_price: Decimal | None
    market_value: Decimal | None
    unrealized_pnl: Decimal | None
    unrealized_pnl_pct: Decimal | None
    has_price: bool  # False 表示無報價資料


class PortfolioSummaryResponse(BaseModel):
    """投資組合損益摘要"""
    total_market_value: Decimal
    total_cost_basis: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_pct: Decimal
    realized_pnl: Decimal
    open_positions: int
    unpriced_positions: int


class PortfolioDetail(BaseModel):
    """投資組合詳細資訊"""
    id: str
    name: str
    description: str | None
    created_at: datetime | None = None
    summary: PortfolioSummaryResponse
    holdings: list[PositionDetail]
    transactions: list[TransactionResponse]


class PortfolioListItem(BaseModel):
    """投資組合列表項目（含市值與損益）"""
    id: str
    name: str
    description: str | None
    created_at: datetime | None = None
    currency: str
    total_value: Decimal
    total_cost: Decimal
    today_pnl: Decimal
    today_pnl_pct: Decimal
    is_pnl_up: bool


class PortfoliosOverview(BaseModel):
    """所有投資組合加總"""
    total_portfolio_value: Decimal
    total_cost_basis: Decimal
    total_today_pnl: Decimal
    total_today_pnl_pct: Decimal
    is_total_pnl_up: bool
    portfolio_count: int


class PortfolioListResponse(BaseModel):
    """投資組合列表回應"""
    portfolios: list[PortfolioListItem]
    summary: PortfoliosOverview | None = None
