"""
關注清單服務層
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.models.stock import Stock
from stock_tracker.models.watchlist import WatchlistItem
from stock_tracker.price.store import PriceStore
from stock_tracker.schemas.watchlist import WatchlistItemResponse
from stock_tracker.services.errors import NotFoundError
from stock_tracker.services.stock_service import to_stock_quote

logger = logging.getLogger(__name__)


class WatchlistService:
    """關注清單業務邏輯"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.price_store = PriceStore(db)

    async def _to_response(self, items: list[WatchlistItem]) -> list[WatchlistItemResponse]:
        quotes = await self.price_store.get_quotes([i.stock_id for i in items])
        return [
            to_stock_quote(
                item.stock, quotes.get(item.stock_id),
                model=WatchlistItemResponse,
                added_at=item.added_at,
            )
            for item in items
        ]

    async def list_items(self, user_id: str) -> list[WatchlistItemResponse]:
        """用戶的關注清單（最新加入在前）"""
        stmt = (
            select(WatchlistItem)
            .where(WatchlistItem.user_id == user_id)
            .order_by(WatchlistItem.added_at.desc(), WatchlistItem.stock_id.asc())
        )
        items = list((await self.db.execute(stmt)).scalars().all())
        return await self._to_response(items)

    async def add(self, user_id: str, stock_id: str) -> tuple[WatchlistItemResponse, bool]:
        """
        加入關注（重複加入不報錯）

        Returns:
            (關注項目, 是否為新建立)
        """
        stock = await self.db.get(Stock, stock_id)
        if not stock:
            raise NotFoundError(f"股票 {stock_id} 不存在")

        item = await self.db.get(WatchlistItem, (user_id, stock_id))
        created = item is None
        if created:
            item = WatchlistItem(user_id=user_id, stock_id=stock_id, stock=stock)
            self.db.add(item)
            await self.db.flush()
            await self.db.refresh(item)
            logger.info("加入關注: %s %s", user_id, stock_id)

        response = (await self._to_response([item]))[0]
        return response, created

    async def remove(self, user_id: str, stock_id: str) -> None:
        item = await self.db.get(WatchlistItem, (user_id, stock_id))
        if not item:
            raise NotFoundError("此股票不在關注清單中")
        await self.db.delete(item)
        await self.db.flush()
        logger.info("移除關注: %s %s", user_id, stock_id)

    async def batch_check(self, user_id: str, stock_ids: list[str]) -> list[str]:
        """回傳 stock_ids 中已關注的股票代號"""
        normalized = [s.strip().upper() for s in stock_ids]
        stmt = (
            select(WatchlistItem.stock_id)
            .where(WatchlistItem.user_id == user_id)
            .where(WatchlistItem.stock_id.in_(normalized))
        )
        watched = set((await self.db.execute(stmt)).scalars().all())
        return [s for s in dict.fromkeys(normalized) if s in watched]

    async def is_watched(self, user_id: str, symbol: str) -> bool:
        item = await self.db.get(WatchlistItem, (user_id, symbol.strip().upper()))
        return item is not None
