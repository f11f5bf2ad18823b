"""
投資組合服務層

以交易紀錄重播出各股票持倉，搭配最新收盤價計算市值與損益。
"""

import logging
from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.ledger import (
    Position,
    compute_portfolio_summary,
    compute_position,
)
from stock_tracker.models.portfolio import Portfolio
from stock_tracker.models.transaction import Transaction
from stock_tracker.price.store import PriceStore
from stock_tracker.schemas.portfolio import (
    PortfolioCreate,
    PortfolioDetail,
    PortfolioListItem,
    PortfolioListResponse,
    PortfoliosOverview,
    PortfolioSummaryResponse,
    PortfolioUpdate,
    PositionDetail,
)
from stock_tracker.schemas.transaction import TransactionResponse
from stock_tracker.services.errors import ConflictError, NotFoundError
from stock_tracker.services.transaction_service import ledger_sort_key

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


def _money(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator == 0:
        return ZERO
    return _money(numerator / denominator * 100)


def _group_by_stock(ledger: Iterable[Transaction]) -> dict[str, list[Transaction]]:
    grouped: dict[str, list[Transaction]] = defaultdict(list)
    for tx in sorted(ledger, key=ledger_sort_key):
        grouped[tx.stock_id].append(tx)
    return grouped


def _position_detail(stock_id: str, txs: list[Transaction], position: Position) -> PositionDetail:
    stock = txs[0].stock
    return PositionDetail(
        stock_id=stock_id,
        name=stock.company_name if stock else None,
        currency=stock.currency if stock else txs[0].currency,
        quantity=position.quantity_held,
        total_cost=_money(position.total_cost_basis),
        avg_cost=_money(position.average_cost_price),
        realized_pnl=_money(position.realized_pnl),
        current_price=position.current_price,
        market_value=_money(position.market_value),
        unrealized_pnl=_money(position.unrealized_pnl),
        unrealized_pnl_pct=_money(position.unrealized_pnl_percent),
        has_price=position.has_price,
    )


class PortfolioService:
    """投資組合業務邏輯"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.price_store = PriceStore(db)

    # === 持倉計算 ===

    async def _load_ledger(self, portfolio_ids: list[str]) -> list[Transaction]:
        if not portfolio_ids:
            return []
        stmt = (
            select(Transaction)
            .where(Transaction.portfolio_id.in_(portfolio_ids))
            .order_by(Transaction.executed_at.asc(), Transaction.id.asc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    def _positions(
        self, grouped: dict[str, list[Transaction]], prices: dict[str, Decimal]
    ) -> dict[str, Position]:
        return {
            stock_id: compute_position(txs, prices.get(stock_id))
            for stock_id, txs in grouped.items()
        }

    async def build_positions(self, portfolio_id: str) -> dict[str, Position]:
        """
        計算投資組合內每檔股票的持倉（含已出清者）

        市價取自 historical_prices 最新一筆收盤價，無報價時為 None。
        """
        grouped = _group_by_stock(await self._load_ledger([portfolio_id]))
        prices = await self.price_store.get_current_prices(list(grouped))
        return self._positions(grouped, prices)

    async def get_position(self, portfolio_id: str, stock_id: str) -> PositionDetail:
        """單一股票持倉（已出清的部位也會回傳）"""
        stock_id = stock_id.upper()
        ledger = [
            tx for tx in await self._load_ledger([portfolio_id])
            if tx.stock_id == stock_id
        ]
        if not ledger:
            raise NotFoundError(f"投資組合中沒有 {stock_id} 的交易紀錄")

        txs = _group_by_stock(ledger)[stock_id]
        price = (await self.price_store.get_current_prices([stock_id])).get(stock_id)
        return _position_detail(stock_id, txs, compute_position(txs, price))

    async def get_detail(self, portfolio: Portfolio) -> PortfolioDetail:
        """
        投資組合詳細資訊

        holdings 只列出持有中的部位；沒有報價的部位以 has_price=False 標示，
        不計入市值與未實現損益。
        """
        ledger = await self._load_ledger([portfolio.id])
        grouped = _group_by_stock(ledger)
        prices = await self.price_store.get_current_prices(list(grouped))
        positions = self._positions(grouped, prices)
        summary = compute_portfolio_summary(positions)

        holdings = [
            _position_detail(stock_id, grouped[stock_id], position)
            for stock_id, position in sorted(positions.items())
            if position.is_open
        ]
        transactions = [
            TransactionResponse.from_model(tx)
            for tx in sorted(ledger, key=ledger_sort_key, reverse=True)
        ]

        return PortfolioDetail(
            id=portfolio.id,
            name=portfolio.name,
            description=portfolio.description,
            created_at=portfolio.created_at,
            summary=PortfolioSummaryResponse(
                total_market_value=_money(summary.total_market_value),
                total_cost_basis=_money(summary.total_cost_basis),
                unrealized_pnl=_money(summary.total_unrealized_pnl),
                unrealized_pnl_pct=_money(summary.total_unrealized_pnl_percent),
                realized_pnl=_money(summary.total_realized_pnl),
                open_positions=summary.open_positions,
                unpriced_positions=summary.unpriced_positions,
            ),
            holdings=holdings,
            transactions=transactions,
        )

    async def list_with_values(
        self, user_id: str, include_summary: bool = False
    ) -> PortfolioListResponse:
        """
        列出用戶所有投資組合及其市值

        一次載入所有交易與報價，再依投資組合分組計算。
        """
        stmt = (
            select(Portfolio)
            .where(Portfolio.user_id == user_id)
            .order_by(Portfolio.created_at.asc())
        )
        portfolios = list((await self.db.execute(stmt)).scalars().all())

        ledger = await self._load_ledger([p.id for p in portfolios])
        prices = await self.price_store.get_current_prices(
            list({tx.stock_id for tx in ledger})
        )

        by_portfolio: dict[str, list[Transaction]] = defaultdict(list)
        for tx in ledger:
            by_portfolio[tx.portfolio_id].append(tx)

        items: list[PortfolioListItem] = []
        grand_value = ZERO
        grand_cost = ZERO

        for portfolio in portfolios:
            txs = by_portfolio.get(portfolio.id, [])
            positions = self._positions(_group_by_stock(txs), prices)
            summary = compute_portfolio_summary(positions)
            currencies = {tx.currency for tx in txs}

            grand_value += summary.total_market_value
            grand_cost += summary.total_cost_basis

            items.append(PortfolioListItem(
                id=portfolio.id,
                name=portfolio.name,
                description=portfolio.description,
                created_at=portfolio.created_at,
                currency=currencies.pop() if len(currencies) == 1 else "TWD",
                total_value=_money(summary.total_market_value),
                total_cost=_money(summary.total_cost_basis),
                today_pnl=_money(summary.total_unrealized_pnl),
                today_pnl_pct=_money(summary.total_unrealized_pnl_percent),
                is_pnl_up=summary.total_unrealized_pnl >= 0,
            ))

        overview = None
        if include_summary:
            grand_pnl = grand_value - grand_cost
            overview = PortfoliosOverview(
                total_portfolio_value=_money(grand_value),
                total_cost_basis=_money(grand_cost),
                total_today_pnl=_money(grand_pnl),
                total_today_pnl_pct=_percent(grand_pnl, grand_cost),
                is_total_pnl_up=grand_pnl >= 0,
                portfolio_count=len(portfolios),
            )

        return PortfolioListResponse(portfolios=items, summary=overview)

    # === CRUD ===

    async def _ensure_unique_name(
        self, user_id: str, name: str, exclude_id: str | None = None
    ) -> None:
        stmt = (
            select(Portfolio.id)
            .where(Portfolio.user_id == user_id)
            .where(Portfolio.name == name)
        )
        if exclude_id is not None:
            stmt = stmt.where(Portfolio.id != exclude_id)
        if (await self.db.execute(stmt)).first() is not None:
            raise ConflictError("投資組合名稱已存在")

    async def create(self, user_id: str, data: PortfolioCreate) -> Portfolio:
        await self._ensure_unique_name(user_id, data.name)
        portfolio = Portfolio(
            user_id=user_id,
            name=data.name,
            description=data.description,
        )
        self.db.add(portfolio)
        await self.db.flush()
        await self.db.refresh(portfolio)
        logger.info("建立投資組合: %s (%s)", portfolio.name, portfolio.id)
        return portfolio

    async def update(self, portfolio: Portfolio, data: PortfolioUpdate) -> Portfolio:
        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("name") is None:
            update_data.pop("name", None)
        if "name" in update_data:
            await self._ensure_unique_name(
                portfolio.user_id, update_data["name"], exclude_id=portfolio.id
            )
        for key, value in update_data.items():
            setattr(portfolio, key, value)
        await self.db.flush()
        return portfolio

    async def delete(self, portfolio: Portfolio) -> None:
        """刪除投資組合（交易紀錄一併刪除）"""
        await self.db.delete(portfolio)
        await self.db.flush()
        logger.info("刪除投資組合: %s", portfolio.id)
