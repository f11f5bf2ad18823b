"""
背景收盤價同步器 (Background Price Worker)

使用 APScheduler 每日收盤後從資料庫撈取所有使用者持有或關注的股票，
向外部 API (twstock, Yahoo Finance) 取得近期每日行情並寫入 historical_prices。
"""

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import select, union
from sqlalchemy.exc import SQLAlchemyError

from stock_tracker.config import Settings
from stock_tracker.database import Database
from stock_tracker.models.stock import Stock, STATUS_DELISTED
from stock_tracker.models.transaction import Transaction
from stock_tracker.models.watchlist import WatchlistItem
from stock_tracker.price.base import PriceNotFoundError, ProviderError
from stock_tracker.price.manager import PriceManager
from stock_tracker.price.store import PriceStore

logger = logging.getLogger(__name__)

# 由 setup_worker 建立，stop_worker 後重設為 None
scheduler: AsyncIOScheduler | None = None


async def _tracked_stocks(session) -> list[Stock]:
    """所有被持有（有交易紀錄）或被關注、且未下市的股票"""
    tracked_ids = union(
        select(Transaction.stock_id),
        select(WatchlistItem.stock_id),
    ).subquery()
    stmt = (
        select(Stock)
        .where(Stock.stock_id.in_(select(tracked_ids.c.stock_id)))
        .where(Stock.security_status != STATUS_DELISTED)
        .order_by(Stock.stock_id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def sync_daily_prices(
    database: Database, manager: PriceManager | None = None
) -> dict[str, int]:
    """
    背景排程任務：同步所有追蹤中股票的每日行情

    單一股票失敗只記錄日誌並略過，不影響其他股票。

    Returns:
        {stock_id: 寫入筆數}，失敗的股票不列入
    """
    manager = manager or PriceManager()
    logger.info("開始同步每日收盤價...")

    synced: dict[str, int] = {}
    async with database.session() as session:
        stocks = await _tracked_stocks(session)
        if not stocks:
            logger.info("目前沒有任何股票需要同步。")
            return synced

        # rollback 會使 ORM 物件過期，先取出需要的欄位
        targets = [(stock.stock_id, stock.currency) for stock in stocks]
        store = PriceStore(session)
        for stock_id, currency in targets:
            try:
                bars = await manager.get_daily_bars(stock_id, currency)
            except (PriceNotFoundError, ProviderError) as e:
                logger.warning("同步 %s 行情失敗: %s", stock_id, e)
                continue

            for bar in bars:
                bar.stock_id = stock_id
            try:
                written = await store.save_bars(bars)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("寫入 %s 行情失敗: %s", stock_id, e)
                continue
            synced[stock_id] = written

    logger.info("每日收盤價同步完成 (成功 %d / 共 %d 檔)", len(synced), len(targets))
    return synced


def setup_worker(database: Database, settings: Settings) -> AsyncIOScheduler:
    """設定並啟動排程器"""
    global scheduler
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        sync_daily_prices,
        "cron",
        hour=settings.price_sync_hour,
        minute=settings.price_sync_minute,
        args=[database],
        id="sync_daily_prices_job",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "✅ 背景收盤價同步器已啟動 (每日 %02d:%02d)",
        settings.price_sync_hour, settings.price_sync_minute,
    )
    return scheduler


async def stop_worker():
    """
    停止排程器

    AsyncIOScheduler.shutdown 會排入事件迴圈執行，需讓出一次控制權才真正停止。
    """
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        await asyncio.sleep(0)
        logger.info("背景收盤價同步器已關閉")
    scheduler = None
