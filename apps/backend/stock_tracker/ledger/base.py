"""
交易帳本核心型別

定義持倉計算所需的交易介面、部位與投資組合摘要資料結構，
以及帳本重播時可能拋出的錯誤。
"""

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol


class TransactionType(str, enum.Enum):
    """交易類型列舉"""
    BUY = "BUY"    # 買入
    SELL = "SELL"  # 賣出


class LedgerEntry(Protocol):
    """
    帳本重播所需的最小交易介面

    ORM 的 Transaction 與一般 dataclass 皆可傳入。
    """
    tx_type: TransactionType
    quantity: int
    price_per_share: Decimal
    commission: Decimal


@dataclass(frozen=True)
class Position:
    """單一 (投資組合, 股票) 的持倉狀態，由交易紀錄推導，不落地儲存"""
    quantity_held: int
    total_cost_basis: Decimal
    average_cost_price: Decimal | None
    realized_pnl: Decimal
    current_price: Decimal | None = None
    market_value: Decimal | None = None
    unrealized_pnl: Decimal | None = None
    unrealized_pnl_percent: Decimal | None = None

    @property
    def is_open(self) -> bool:
        return self.quantity_held > 0

    @property
    def has_price(self) -> bool:
        return self.current_price is not None


@dataclass(frozen=True)
class PortfolioSummary:
    """投資組合彙總"""
    total_market_value: Decimal
    total_cost_basis: Decimal
    total_unrealized_pnl: Decimal
    total_unrealized_pnl_percent: Decimal
    total_realized_pnl: Decimal
    open_positions: int = 0
    unpriced_positions: int = 0  # 持有中但無報價的部位數


class LedgerError(Exception):
    """帳本錯誤基礎類別"""
    pass


class InvalidTransactionSequence(LedgerError):
    """重播交易時持有數量變為負數（資料完整性錯誤）"""

    def __init__(self, held: int, requested: int, index: int | None = None):
        self.held = held
        self.requested = requested
        self.index = index
        super().__init__(
            f"交易序列無效：第 {index} 筆賣出 {requested} 股，但僅持有 {held} 股"
        )


class InsufficientHoldings(LedgerError):
    """賣出數量超過目前持股"""

    def __init__(self, held: int, requested: int):
        self.held = held
        self.requested = requested
        super().__init__(f"持股不足：目前持有 {held} 股，欲賣出 {requested} 股")
