"""交易帳本與持倉聚合"""

from stock_tracker.ledger.aggregator import (
    compute_portfolio_summary,
    compute_position,
    validate_sell,
)
from stock_tracker.ledger.base import (
    InsufficientHoldings,
    InvalidTransactionSequence,
    LedgerEntry,
    LedgerError,
    PortfolioSummary,
    Position,
    TransactionType,
)

__all__ = [
    "compute_position",
    "compute_portfolio_summary",
    "validate_sell",
    "InsufficientHoldings",
    "InvalidTransactionSequence",
    "LedgerEntry",
    "LedgerError",
    "PortfolioSummary",
    "Position",
    "TransactionType",
]
