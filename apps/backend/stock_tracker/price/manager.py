"""
報價管理器

統一入口，根據股票幣別自動路由到對應的 PriceProvider。
"""

import logging

from stock_tracker.config import get_settings
from stock_tracker.price.base import DailyBar, PriceNotFoundError, PriceProvider
from stock_tracker.price.tw_stock import TWStockProvider
from stock_tracker.price.us_stock import USStockProvider

logger = logging.getLogger(__name__)


class PriceManager:
    """
    報價管理器

    使用方式：
        manager = PriceManager()
        bars = await manager.get_daily_bars("2330", "TWD")
    """

    def __init__(self, providers: dict[str, PriceProvider] | None = None):
        if providers is None:
            settings = get_settings()
            providers = {
                "TWD": TWStockProvider(),
                "USD": USStockProvider(period=settings.price_sync_period),
            }
        self._providers = providers

    def provider_for(self, currency: str) -> PriceProvider:
        provider = self._providers.get((currency or "").upper())
        if not provider:
            raise PriceNotFoundError(f"找不到幣別 {currency} 的報價提供者")
        return provider

    async def get_daily_bars(self, symbol: str, currency: str) -> list[DailyBar]:
        """取得指定股票的近期每日行情"""
        provider = self.provider_for(currency)
        logger.info("正在取得 %s (%s) 每日行情...", symbol, currency)
        return await provider.get_daily_bars(symbol)
