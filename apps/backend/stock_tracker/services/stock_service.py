"""
股票服務層

股票列表、交易搜尋、個股資訊與市場概覽。
報價一律取自 historical_prices 的最新與前一日收盤價。
"""

import logging
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.models.stock import Stock, STATUS_DELISTED
from stock_tracker.price.base import Quote
from stock_tracker.price.store import PriceStore
from stock_tracker.schemas.common import PaginatedResponse
from stock_tracker.schemas.stock import MarketMover, PricePoint, StockDetail, StockQuote
from stock_tracker.services.errors import NotFoundError

logger = logging.getLogger(__name__)

# 「全部」篩選值
FILTER_ALL = "ALL"
SEARCH_LIMIT = 5
OVERVIEW_LIMIT = 5
OVERVIEW_DAYS = 30

# 走勢圖區間（天數，以最新一筆行情日期往回推）；None 表示特殊區間
HISTORY_RANGES: dict[str, int | None] = {
    "5D": 5,
    "1M": 30,
    "6M": 180,
    "YTD": None,
    "1Y": 365,
    "5Y": 1825,
    "MAX": None,
}


def _round(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_stock_quote(stock: Stock, quote: Quote | None, model=StockQuote, **extra):
    """組合股票主檔與報價"""
    fields = dict(
        stock_id=stock.stock_id,
        company_name=stock.company_name,
        market_type=stock.market_type,
        security_status=stock.security_status,
        currency=stock.currency,
    )
    if quote is not None:
        fields.update(
            current_price=quote.current_price,
            previous_price=quote.previous_price,
            price_change=quote.change,
            change_percent=_round(quote.change_percent),
            is_up=quote.is_up,
            price_date=quote.price_date,
        )
    fields.update(extra)
    return model(**fields)


class StockService:
    """股票查詢業務邏輯"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.price_store = PriceStore(db)

    async def _with_quotes(self, stocks: list[Stock]) -> list[StockQuote]:
        quotes = await self.price_store.get_quotes([s.stock_id for s in stocks])
        return [to_stock_quote(s, quotes.get(s.stock_id)) for s in stocks]

    async def list_stocks(
        self,
        q: str | None = None,
        market_type: str | None = None,
        security_status: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PaginatedResponse[StockQuote]:
        """股票列表（代號排序、分頁、含報價）"""
        stmt = select(Stock)
        if q and q.strip():
            keyword = f"%{q.strip()}%"
            stmt = stmt.where(or_(
                Stock.stock_id.ilike(keyword),
                Stock.company_name.ilike(keyword),
            ))
        if market_type and market_type != FILTER_ALL:
            stmt = stmt.where(Stock.market_type == market_type)
        if security_status and security_status != FILTER_ALL:
            stmt = stmt.where(Stock.security_status == security_status)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = stmt.order_by(Stock.stock_id.asc()).offset((page - 1) * limit).limit(limit)
        stocks = list((await self.db.execute(stmt)).scalars().all())

        return PaginatedResponse[StockQuote].build(
            items=await self._with_quotes(stocks),
            total=total,
            page=page,
            page_size=limit,
        )

    async def search_for_trade(self, q: str | None) -> list[StockQuote]:
        """新增交易用的股票搜尋（排除下市股票，最多 5 筆）"""
        if not q or not q.strip():
            return []
        keyword = f"%{q.strip()}%"
        stmt = (
            select(Stock)
            .where(or_(
                Stock.stock_id.ilike(keyword),
                Stock.company_name.ilike(keyword),
            ))
            .where(Stock.security_status != STATUS_DELISTED)
            .order_by(Stock.stock_id.asc())
            .limit(SEARCH_LIMIT)
        )
        stocks = list((await self.db.execute(stmt)).scalars().all())
        return await self._with_quotes(stocks)

    async def get_stock_detail(self, symbol: str) -> StockDetail:
        symbol = symbol.strip().upper()
        stock = await self.db.get(Stock, symbol)
        if not stock:
            raise NotFoundError(f"股票 {symbol} 不存在")
        quote = await self.price_store.get_quote(symbol)
        return to_stock_quote(
            stock, quote,
            model=StockDetail,
            transfer_agent=stock.transfer_agent,
            history=await self.get_price_history(symbol),
        )

    async def get_price_history(self, stock_id: str) -> dict[str, list[PricePoint]]:
        """
        各區間收盤價走勢（5D、1M、6M、YTD、1Y、5Y、MAX）

        區間起點以該股票最新一筆行情日期計算，沒有行情時各區間皆為空。
        """
        series = await self.price_store.get_history(stock_id)
        if not series:
            return {name: [] for name in HISTORY_RANGES}

        latest = series[-1][0]
        history = {}
        for name, days in HISTORY_RANGES.items():
            if days is not None:
                start = latest - timedelta(days=days)
            elif name == "YTD":
                start = date(latest.year, 1, 1)
            else:
                start = date.min
            history[name] = [
                PricePoint(date=price_date, price=close)
                for price_date, close in series
                if price_date >= start
            ]
        return history

    async def market_overview(self) -> list[MarketMover]:
        """
        市場概覽：近 30 天內最新一筆行情成交金額最高的 5 檔股票

        漲跌幅以前一交易日收盤價計算。
        """
        top = await self.price_store.get_top_traded(
            limit=OVERVIEW_LIMIT, days=OVERVIEW_DAYS
        )
        quotes = await self.price_store.get_quotes([stock.stock_id for stock, _ in top])

        movers = []
        for stock, bar in top:
            quote = quotes.get(stock.stock_id)
            close = Decimal(str(bar.close_price))
            amount = close * bar.volume
            movers.append(MarketMover(
                stock_id=stock.stock_id,
                company_name=stock.company_name,
                currency=stock.currency,
                current_price=close,
                volume=bar.volume,
                trading_amount=_round(amount),
                trading_value=bar.trading_value if bar.trading_value is not None else _round(amount),
                price_change=quote.change if quote else None,
                change_percent=_round(quote.change_percent) if quote else None,
                is_up=quote.is_up if quote else False,
                date=bar.date,
            ))
        return movers
