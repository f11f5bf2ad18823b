"""
報價儲存層

讀寫 historical_prices：查詢最新/前一日收盤價、寫入每日行情、
以及市場概覽所需的成交金額排行。
"""

import logging
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.models.stock import HistoricalPrice, Stock, STATUS_NORMAL
from stock_tracker.price.base import DailyBar, Quote

logger = logging.getLogger(__name__)


class PriceStore:
    """以資料庫中的每日收盤價作為報價來源"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_quotes(self, stock_ids: list[str]) -> dict[str, Quote]:
        """
        批次取得最新與前一交易日收盤價

        以 ROW_NUMBER() 視窗函式一次取出每檔股票最近兩筆收盤價。
        沒有任何價格資料的股票不會出現在回傳結果中。
        """
        if not stock_ids:
            return {}

        ranked = (
            select(
                HistoricalPrice.stock_id,
                HistoricalPrice.date,
                HistoricalPrice.close_price,
                func.row_number().over(
                    partition_by=HistoricalPrice.stock_id,
                    order_by=HistoricalPrice.date.desc(),
                ).label("rn"),
            )
            .where(HistoricalPrice.stock_id.in_(set(stock_ids)))
            .where(HistoricalPrice.close_price.is_not(None))
            .subquery()
        )
        stmt = (
            select(ranked.c.stock_id, ranked.c.date, ranked.c.close_price, ranked.c.rn)
            .where(ranked.c.rn <= 2)
        )
        result = await self.db.execute(stmt)

        quotes: dict[str, Quote] = {}
        for stock_id, price_date, close_price, rn in result.all():
            quote = quotes.setdefault(stock_id, Quote(stock_id=stock_id, current_price=None))
            if rn == 1:
                quote.current_price = Decimal(str(close_price))
                quote.price_date = price_date
            else:
                quote.previous_price = Decimal(str(close_price))
        return quotes

    async def get_quote(self, stock_id: str) -> Quote | None:
        """取得單一股票報價"""
        quotes = await self.get_quotes([stock_id])
        return quotes.get(stock_id)

    async def get_current_prices(self, stock_ids: list[str]) -> dict[str, Decimal]:
        """取得最新收盤價 {stock_id: price}"""
        quotes = await self.get_quotes(stock_ids)
        return {
            stock_id: quote.current_price
            for stock_id, quote in quotes.items()
            if quote.current_price is not None
        }

    async def save_bars(self, bars: list[DailyBar]) -> int:
        """
        寫入每日行情（同股票同日期則覆寫）

        Returns:
            寫入筆數
        """
        grouped: dict[str, list[DailyBar]] = defaultdict(list)
        for bar in bars:
            grouped[bar.stock_id].append(bar)

        written = 0
        for stock_id, items in grouped.items():
            stmt = (
                select(HistoricalPrice)
                .where(HistoricalPrice.stock_id == stock_id)
                .where(HistoricalPrice.date.in_([b.date for b in items]))
            )
            result = await self.db.execute(stmt)
            existing = {row.date: row for row in result.scalars().all()}

            for bar in items:
                row = existing.get(bar.date)
                if row is None:
                    row = HistoricalPrice(stock_id=stock_id, date=bar.date)
                    self.db.add(row)
                    existing[bar.date] = row
                row.open_price = bar.open_price
                row.high_price = bar.high
                row.low_price = bar.low
                row.close_price = bar.close
                row.volume = bar.volume
                row.trading_value = bar.trading_value
                written += 1

        await self.db.flush()
        return written

    async def get_top_traded(
        self, limit: int = 5, days: int = 30, today: date | None = None
    ) -> list[tuple[Stock, HistoricalPrice]]:
        """
        取得成交金額（成交股數 × 收盤價）最高的正常交易股票

        每檔股票只取近 days 天內最新的一筆有效行情。
        """
        cutoff = (today or date.today()) - timedelta(days=days)

        latest = (
            select(
                HistoricalPrice.stock_id,
                func.max(HistoricalPrice.date).label("latest_date"),
            )
            .where(HistoricalPrice.volume > 0)
            .where(HistoricalPrice.close_price > 0)
            .where(HistoricalPrice.date >= cutoff)
            .group_by(HistoricalPrice.stock_id)
            .subquery()
        )
        stmt = (
            select(Stock, HistoricalPrice)
            .join(HistoricalPrice, HistoricalPrice.stock_id == Stock.stock_id)
            .join(
                latest,
                (latest.c.stock_id == HistoricalPrice.stock_id)
                & (latest.c.latest_date == HistoricalPrice.date),
            )
            .where(Stock.security_status == STATUS_NORMAL)
            .order_by((HistoricalPrice.volume * HistoricalPrice.close_price).desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [(stock, price) for stock, price in result.all()]

    async def get_history(
        self, stock_id: str, since: date | None = None
    ) -> list[tuple[date, Decimal]]:
        """依日期排序的收盤價序列 [(date, close)]，since 為 None 時取全部"""
        stmt = (
            select(HistoricalPrice.date, HistoricalPrice.close_price)
            .where(HistoricalPrice.stock_id == stock_id)
            .where(HistoricalPrice.close_price.is_not(None))
            .order_by(HistoricalPrice.date.asc())
        )
        if since is not None:
            stmt = stmt.where(HistoricalPrice.date >= since)
        result = await self.db.execute(stmt)
        return [(price_date, Decimal(str(close))) for price_date, close in result.all()]
