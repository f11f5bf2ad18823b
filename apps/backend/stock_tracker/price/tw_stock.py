"""
台股報價提供者

透過 twstock 取得台灣上市櫃股票近 31 個交易日的每日行情。
twstock 為開源 Python 套件，無需 API Key。
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal

import twstock

from stock_tracker.price.base import (
    DailyBar, PriceProvider, PriceNotFoundError, ProviderError,
)

logger = logging.getLogger(__name__)


def _to_decimal(value) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


class TWStockProvider(PriceProvider):
    """台股報價提供者（twstock）"""

    async def get_daily_bars(self, symbol: str) -> list[DailyBar]:
        """取得台股每日行情"""
        try:
            # twstock 是同步 API，需用 run_in_executor 包裝
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self._fetch_bars, symbol)
        except PriceNotFoundError:
            raise
        except Exception as e:
            raise ProviderError(f"台股報價錯誤: {e}") from e

    def _fetch_bars(self, symbol: str) -> list[DailyBar]:
        """同步取得台股行情（在 executor 中執行）"""
        # 移除 .TW 或 .TWO 後綴
        stock_id = symbol.upper().replace(".TWO", "").replace(".TW", "")

        stock = twstock.Stock(stock_id)
        data = stock.data

        if not data:
            raise PriceNotFoundError(f"找不到台股 {stock_id} 歷史資料")

        bars = []
        for d in data:
            bar_date = d.date.date() if isinstance(d.date, datetime) else d.date
            bars.append(DailyBar(
                stock_id=stock_id,
                date=bar_date,
                open_price=_to_decimal(d.open),
                high=_to_decimal(d.high),
                low=_to_decimal(d.low),
                close=_to_decimal(d.close),
                # capacity 為成交股數、turnover 為成交金額
                volume=int(d.capacity) if d.capacity is not None else None,
                trading_value=_to_decimal(d.turnover),
            ))
        logger.debug("twstock %s 取得 %d 筆行情", stock_id, len(bars))
        return bars
