"""StockTracker ORM Models 套件"""

from stock_tracker.models.user import User
from stock_tracker.models.portfolio import Portfolio
from stock_tracker.models.stock import Stock, HistoricalPrice
from stock_tracker.models.transaction import Transaction
from stock_tracker.models.watchlist import WatchlistItem

__all__ = [
    "User",
    "Portfolio",
    "Stock",
    "HistoricalPrice",
    "Transaction",
    "WatchlistItem",
]
