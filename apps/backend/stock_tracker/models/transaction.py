"""
交易明細模型

紀錄每一筆買入、賣出交易，含時間戳記、數量、單價、手續費。
交易一經建立即不可修改，持倉與損益皆由交易紀錄即時重播計算。
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    String, Integer, DateTime, Numeric,
    ForeignKey, Enum, Index, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_tracker.database import Base
from stock_tracker.ledger import TransactionType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Transaction(Base):
    __tablename__ = "transactions"

    # 依 (投資組合, 股票) 查詢帳本
    __table_args__ = (
        Index("ix_transactions_portfolio_stock", "portfolio_id", "stock_id"),
    )

    # 自增主鍵同時代表寫入順序，用於同一時間戳記的排序
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    portfolio_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("portfolios.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    stock_id: Mapped[str] = mapped_column(
        String(20),
        ForeignKey("stocks.stock_id"),
        nullable=False,
    )
    tx_type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType), nullable=False,
    )
    quantity: Mapped[int] = mapped_column(
        Integer, nullable=False,
        comment="交易股數",
    )
    price_per_share: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=4), nullable=False,
        comment="每股成交價",
    )
    commission: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=4), default=Decimal("0"),
        comment="手續費",
    )
    currency: Mapped[str] = mapped_column(
        String(10), default="TWD",
        comment="交易幣別",
    )
    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
        comment="交易執行時間",
    )
    note: Mapped[str | None] = mapped_column(
        String(500), nullable=True,
        comment="備註",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(),
    )

    # 關聯
    portfolio = relationship("Portfolio", back_populates="transactions")
    stock = relationship("Stock", lazy="selectin")

    @property
    def total_amount(self) -> Decimal:
        """交易總金額（不含手續費）"""
        return self.quantity * self.price_per_share

    def __repr__(self) -> str:
        return f"<Transaction {self.tx_type.value} {self.stock_id} x{self.quantity}>"
