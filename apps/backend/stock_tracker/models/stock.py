"""
股票與歷史價格模型

stocks 為上市櫃股票主檔，historical_prices 為每日 K 線（由背景排程寫入），
持倉市值一律以最新一筆收盤價計算。
"""

from datetime import date as date_type
from decimal import Decimal

from sqlalchemy import (
    String, Date, Numeric, BigInteger, Integer,
    ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_tracker.database import Base

# 證券狀態
STATUS_NORMAL = "正常"
STATUS_DELISTED = "下市"


class Stock(Base):
    __tablename__ = "stocks"

    stock_id: Mapped[str] = mapped_column(
        String(20), primary_key=True,
        comment="股票代號，如 2330, AAPL",
    )
    company_name: Mapped[str] = mapped_column(String(100), nullable=False)
    market_type: Mapped[str | None] = mapped_column(
        String(20), nullable=True, index=True,
        comment="市場別，如 上市、上櫃、NASDAQ",
    )
    security_status: Mapped[str] = mapped_column(
        String(20), default=STATUS_NORMAL, index=True,
    )
    currency: Mapped[str] = mapped_column(String(10), default="TWD")
    transfer_agent: Mapped[str | None] = mapped_column(
        String(100), nullable=True,
        comment="股務代理",
    )

    prices = relationship(
        "HistoricalPrice", back_populates="stock", cascade="all, delete-orphan"
    )

    @property
    def is_delisted(self) -> bool:
        return self.security_status == STATUS_DELISTED

    def __repr__(self) -> str:
        return f"<Stock {self.stock_id} {self.company_name}>"


class HistoricalPrice(Base):
    __tablename__ = "historical_prices"

    # 同一股票同一天只能有一筆
    __table_args__ = (
        UniqueConstraint("stock_id", "date", name="uq_stock_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stock_id: Mapped[str] = mapped_column(
        String(20),
        ForeignKey("stocks.stock_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    open_price: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=18, scale=4), nullable=True,
    )
    high_price: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=18, scale=4), nullable=True,
    )
    low_price: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=18, scale=4), nullable=True,
    )
    close_price: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=18, scale=4), nullable=True,
    )
    volume: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True,
        comment="成交股數",
    )
    trading_value: Mapped[Decimal | None] = mapped_column(
        Numeric(precision=20, scale=2), nullable=True,
        comment="成交金額",
    )

    stock = relationship("Stock", back_populates="prices")

    def __repr__(self) -> str:
        return f"<Price {self.stock_id} {self.date} close={self.close_price}>"
