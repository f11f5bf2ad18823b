"""
美股報價提供者

透過 Yahoo Finance (yfinance) 取得美股每日歷史行情。
yfinance 為開源套件，無需 API Key。
"""

import asyncio
import logging
from decimal import Decimal

import yfinance as yf

from stock_tracker.price.base import (
    DailyBar, PriceProvider, PriceNotFoundError, ProviderError,
)

logger = logging.getLogger(__name__)


class USStockProvider(PriceProvider):
    """Yahoo Finance 美股報價提供者"""

    def __init__(self, period: str = "1mo"):
        self.period = period

    async def get_daily_bars(self, symbol: str) -> list[DailyBar]:
        """取得美股每日行情（使用 yfinance）"""
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self._fetch_bars, symbol)
        except PriceNotFoundError:
            raise
        except Exception as e:
            raise ProviderError(f"Yahoo Finance 錯誤: {e}") from e

    def _fetch_bars(self, symbol: str) -> list[DailyBar]:
        """同步取得歷史報價（在 executor 中執行）"""
        ticker = yf.Ticker(symbol)
        df = ticker.history(period=self.period)

        if df.empty:
            raise PriceNotFoundError(f"找不到 {symbol} 的歷史報價")

        bars = []
        for idx, row in df.iterrows():
            close = Decimal(str(round(row["Close"], 4)))
            volume = int(row.get("Volume", 0))
            bars.append(DailyBar(
                stock_id=symbol.upper(),
                date=idx.date(),
                open_price=Decimal(str(round(row["Open"], 4))),
                high=Decimal(str(round(row["High"], 4))),
                low=Decimal(str(round(row["Low"], 4))),
                close=close,
                volume=volume,
                trading_value=(close * volume).quantize(Decimal("0.01")),
            ))
        return bars
