"""
報價提供者抽象基礎類別

定義所有每日收盤價來源必須實作的介面，以及報價資料結構。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal


@dataclass
class DailyBar:
    """單日 K 線"""
    stock_id: str
    date: date
    open_price: Decimal | None
    high: Decimal | None
    low: Decimal | None
    close: Decimal | None
    volume: int | None = None
    trading_value: Decimal | None = None


@dataclass
class Quote:
    """最新與前一交易日收盤價"""
    stock_id: str
    current_price: Decimal | None
    previous_price: Decimal | None = None
    price_date: date | None = None

    @property
    def change(self) -> Decimal | None:
        if self.current_price is None or self.previous_price is None:
            return None
        return self.current_price - self.previous_price

    @property
    def change_percent(self) -> Decimal | None:
        change = self.change
        if change is None or not self.previous_price:
            return None
        return change / self.previous_price * 100

    @property
    def is_up(self) -> bool:
        change = self.change
        return change is not None and change >= 0


class PriceProvider(ABC):
    """
    報價提供者抽象類別

    所有每日價格來源（twstock、Yahoo Finance 等）
    必須繼承此類別並實作以下方法。
    """

    @abstractmethod
    async def get_daily_bars(self, symbol: str) -> list[DailyBar]:
        """
        取得近期每日 K 線。

        Args:
            symbol: 股票代號（如 2330, AAPL）

        Returns:
            DailyBar 列表（由舊到新）

        Raises:
            PriceNotFoundError: 找不到報價
            ProviderError: API 呼叫失敗
        """
        ...


class PriceNotFoundError(Exception):
    """找不到報價"""
    pass


class ProviderError(Exception):
    """報價提供者錯誤"""
    pass
