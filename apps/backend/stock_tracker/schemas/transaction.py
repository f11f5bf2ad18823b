"""
交易相關 Schema

定義新增交易、交易紀錄查詢的請求與回應模型。
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from stock_tracker.ledger import TransactionType


class TransactionCreate(BaseModel):
    """新增交易請求"""
    portfolio_id: str
    stock_id: str = Field(min_length=1, max_length=20)
    tx_type: TransactionType
    quantity: int = Field(gt=0)
    price_per_share: Decimal = Field(gt=0)
    commission: Decimal = Field(default=Decimal("0"), ge=0)
    executed_at: datetime | None = None  # 未提供時使用目前時間
    note: str | None = Field(default=None, max_length=500)

    @field_validator("stock_id")
    @classmethod
    def _upper_stock_id(cls, value: str) -> str:
        return value.strip().upper()


class TransactionResponse(BaseModel):
    """交易紀錄回應"""
    id: int
    portfolio_id: str
    stock_id: str
    stock_name: str | None = None
    tx_type: TransactionType
    quantity: int
    price_per_share: Decimal
    commission: Decimal
    total_value: Decimal
    currency: str
    executed_at: datetime
    note: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, tx) -> "TransactionResponse":
        return cls(
            id=tx.id,
            portfolio_id=tx.portfolio_id,
            stock_id=tx.stock_id,
            stock_name=tx.stock.company_name if tx.stock else None,
            tx_type=tx.tx_type,
            quantity=tx.quantity,
            price_per_share=tx.price_per_share,
            commission=tx.commission,
            total_value=tx.total_amount,
            currency=tx.currency,
            executed_at=tx.executed_at,
            note=tx.note,
            created_at=tx.created_at,
        )
