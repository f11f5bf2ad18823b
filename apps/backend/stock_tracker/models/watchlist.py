"""
關注清單模型

同一用戶對同一股票只會有一筆關注紀錄。
"""

from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_tracker.database import Base


class WatchlistItem(Base):
    __tablename__ = "watchlist_items"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    stock_id: Mapped[str] = mapped_column(
        String(20),
        ForeignKey("stocks.stock_id", ondelete="CASCADE"),
        primary_key=True,
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(),
    )

    user = relationship("User", back_populates="watchlist_items")
    stock = relationship("Stock", lazy="selectin")

    def __repr__(self) -> str:
        return f"<WatchlistItem {self.user_id} {self.stock_id}>"
