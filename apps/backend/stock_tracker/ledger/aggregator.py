"""
持倉聚合器

以加權平均成本法重播交易紀錄，計算持有數量、成本、已實現與未實現損益。
所有函式皆為純函式：不做 I/O、不寫日誌、不保留狀態。
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal

from stock_tracker.ledger.base import (
    InsufficientHoldings,
    InvalidTransactionSequence,
    LedgerEntry,
    PortfolioSummary,
    Position,
    TransactionType,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def _percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    """百分比，分母為 0 時回傳 0"""
    if denominator == 0:
        return ZERO
    return numerator / denominator * HUNDRED


def compute_position(
    transactions: Iterable[LedgerEntry],
    current_price: Decimal | None = None,
) -> Position:
    """
    計算單一 (投資組合, 股票) 的持倉

    Args:
        transactions: 已依時間排序的交易紀錄
        current_price: 目前市價，未知時傳入 None

    Returns:
        Position

    Raises:
        InvalidTransactionSequence: 賣出數量超過當時持有數量
    """
    quantity_held = 0
    total_cost = ZERO
    realized_pnl = ZERO

    for index, tx in enumerate(transactions):
        quantity = int(tx.quantity)
        price = Decimal(tx.price_per_share)
        commission = Decimal(tx.commission or 0)

        if tx.tx_type == TransactionType.BUY:
            total_cost += quantity * price + commission
            quantity_held += quantity

        elif tx.tx_type == TransactionType.SELL:
            if quantity > quantity_held or quantity_held == 0:
                raise InvalidTransactionSequence(quantity_held, quantity, index)
            avg_cost = total_cost / quantity_held
            realized_pnl += quantity * (price - avg_cost) - commission
            total_cost -= quantity * avg_cost
            quantity_held -= quantity

            # 全數賣出時成本歸零，避免殘留尾數
            if quantity_held == 0:
                total_cost = ZERO

    average_cost = total_cost / quantity_held if quantity_held > 0 else None

    if current_price is None:
        return Position(
            quantity_held=quantity_held,
            total_cost_basis=total_cost,
            average_cost_price=average_cost,
            realized_pnl=realized_pnl,
        )

    current_price = Decimal(current_price)
    market_value = quantity_held * current_price
    unrealized_pnl = market_value - total_cost

    return Position(
        quantity_held=quantity_held,
        total_cost_basis=total_cost,
        average_cost_price=average_cost,
        realized_pnl=realized_pnl,
        current_price=current_price,
        market_value=market_value,
        unrealized_pnl=unrealized_pnl,
        unrealized_pnl_percent=_percent(unrealized_pnl, total_cost),
    )


def compute_portfolio_summary(
    positions_by_stock: Mapping[str, Position],
) -> PortfolioSummary:
    """
    彙總投資組合

    市值、成本與未實現損益只加總「持有中且有報價」的部位，
    已實現損益則包含已出清的部位。
    """
    total_value = ZERO
    total_cost = ZERO
    total_realized = ZERO
    open_positions = 0
    unpriced = 0

    for position in positions_by_stock.values():
        total_realized += position.realized_pnl

        if not position.is_open:
            continue
        open_positions += 1

        if position.market_value is None:
            unpriced += 1
            continue
        total_value += position.market_value
        total_cost += position.total_cost_basis

    total_unrealized = total_value - total_cost

    return PortfolioSummary(
        total_market_value=total_value,
        total_cost_basis=total_cost,
        total_unrealized_pnl=total_unrealized,
        total_unrealized_pnl_percent=_percent(total_unrealized, total_cost),
        total_realized_pnl=total_realized,
        open_positions=open_positions,
        unpriced_positions=unpriced,
    )


def validate_sell(
    prior_transactions: Iterable[LedgerEntry], sell_quantity: int
) -> int:
    """
    寫入賣出交易前的檢查

    Returns:
        目前持有數量

    Raises:
        InsufficientHoldings: 賣出數量大於持有數量
    """
    held = compute_position(prior_transactions).quantity_held
    if sell_quantity > held:
        raise InsufficientHoldings(held=held, requested=sell_quantity)
    return held
