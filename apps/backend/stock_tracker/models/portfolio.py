"""
投資組合模型

一個用戶可擁有多個投資組合（如「長期投資」、「短線操作」），
同一用戶的投資組合名稱不可重複。
"""

import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_tracker.database import Base


class Portfolio(Base):
    __tablename__ = "portfolios"

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_user_portfolio_name"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # 關聯（刪除投資組合時一併刪除交易紀錄）
    user = relationship("User", back_populates="portfolios")
    transactions = relationship(
        "Transaction",
        back_populates="portfolio",
        cascade="all, delete-orphan",
        order_by="Transaction.id",
    )

    def __repr__(self) -> str:
        return f"<Portfolio {self.name}>"
