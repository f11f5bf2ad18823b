"""
交易服務層

處理新增交易、交易紀錄查詢等業務邏輯。
持倉不落地儲存，寫入賣出交易前一律重播帳本檢查持有數量。
"""

import asyncio
import logging
import weakref
from datetime import datetime, timezone

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.ledger import (
    TransactionType,
    compute_position,
    validate_sell,
)
from stock_tracker.models.portfolio import Portfolio
from stock_tracker.models.stock import Stock
from stock_tracker.models.transaction import Transaction
from stock_tracker.schemas.transaction import TransactionCreate
from stock_tracker.services.errors import NotFoundError

logger = logging.getLogger(__name__)

# 同一 (投資組合, 股票) 的「檢查持有 → 寫入」必須序列化；
# 沒有協程持有或等待時，鎖會自動從表中移除
_ledger_locks: "weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]" = (
    weakref.WeakValueDictionary()
)


def _ledger_lock(portfolio_id: str, stock_id: str) -> asyncio.Lock:
    key = (portfolio_id, stock_id)
    lock = _ledger_locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _ledger_locks[key] = lock
    return lock


def as_utc(value: datetime) -> datetime:
    """統一為 UTC aware datetime（SQLite 讀回的時間不含時區，視為 UTC）"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ledger_sort_key(tx: Transaction) -> tuple[datetime, int]:
    return as_utc(tx.executed_at), tx.id or 0


class TransactionService:
    """交易業務邏輯"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_transaction(
        self, portfolio: Portfolio, data: TransactionCreate
    ) -> Transaction:
        """
        新增交易

        流程：
        1. 確認股票存在，幣別沿用股票主檔
        2. 取得 (投資組合, 股票) 鎖，並以 SELECT ... FOR UPDATE 鎖定投資組合
        3. 賣出時檢查交易時間點的持有數量，並重播整個帳本確保後續賣出仍然成立
        4. 寫入並 commit 後才釋放鎖

        Raises:
            NotFoundError: 股票不存在
            InsufficientHoldings: 賣出數量大於持有數量
            InvalidTransactionSequence: 回溯插入的賣出使後續交易失效
        """
        stock = await self.db.get(Stock, data.stock_id)
        if not stock:
            raise NotFoundError(f"股票 {data.stock_id} 不存在")

        executed_at = as_utc(data.executed_at or datetime.now(timezone.utc))

        lock = _ledger_lock(portfolio.id, stock.stock_id)
        async with lock:
            await self.db.execute(
                select(Portfolio.id)
                .where(Portfolio.id == portfolio.id)
                .with_for_update()
            )

            ledger = await self.get_ledger(portfolio.id, stock.stock_id)

            tx = Transaction(
                portfolio_id=portfolio.id,
                stock_id=stock.stock_id,
                stock=stock,
                tx_type=data.tx_type,
                quantity=data.quantity,
                price_per_share=data.price_per_share,
                commission=data.commission,
                currency=stock.currency,
                executed_at=executed_at,
                note=data.note,
            )

            if data.tx_type == TransactionType.SELL:
                # 同一時間戳記的既有交易視為較早寫入
                prior = [t for t in ledger if as_utc(t.executed_at) <= executed_at]
                later = [t for t in ledger if as_utc(t.executed_at) > executed_at]
                validate_sell(prior, data.quantity)
                if later:
                    compute_position(prior + [tx] + later)

            self.db.add(tx)
            await self.db.flush()
            await self.db.commit()

        logger.info(
            "新增交易: %s %s %s x%d @ %s",
            portfolio.id, tx.tx_type.value, tx.stock_id, tx.quantity, tx.price_per_share,
        )
        return tx

    async def get_ledger(
        self, portfolio_id: str, stock_id: str | None = None
    ) -> list[Transaction]:
        """依 (執行時間, id) 排序的完整帳本"""
        stmt = (
            select(Transaction)
            .where(Transaction.portfolio_id == portfolio_id)
            .order_by(Transaction.executed_at.asc(), Transaction.id.asc())
        )
        if stock_id is not None:
            stmt = stmt.where(Transaction.stock_id == stock_id)
        result = await self.db.execute(stmt)
        return sorted(result.scalars().all(), key=ledger_sort_key)

    async def get_transactions(
        self, portfolio_id: str, page: int = 1, page_size: int = 20
    ) -> tuple[list[Transaction], int]:
        """取得交易紀錄（分頁，最新在前）"""
        count_stmt = (
            select(func.count())
            .select_from(Transaction)
            .where(Transaction.portfolio_id == portfolio_id)
        )
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(Transaction)
            .where(Transaction.portfolio_id == portfolio_id)
            .order_by(Transaction.executed_at.desc(), Transaction.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total
