"""
股票相關 Schema

定義股票列表、交易搜尋、個股資訊與市場概覽的回應模型。
"""

from datetime import date as date_type
from decimal import Decimal

from pydantic import BaseModel


class StockQuote(BaseModel):
    """股票基本資料與最新報價"""
    stock_id: str
    company_name: str
    market_type: str | None = None
    security_status: str | None = None
    currency: str
    current_price: Decimal | None = None
    previous_price: Decimal | None = None
    price_change: Decimal | None = None
    change_percent: Decimal | None = None
    is_up: bool = False
    price_date: date_type | None = None


class PricePoint(BaseModel):
    """走勢圖資料點"""
    date: date_type
    price: Decimal


class StockDetail(StockQuote):
    """個股詳細資訊（含各區間收盤價走勢）"""
    transfer_agent: str | None = None
    history: dict[str, list[PricePoint]] = {}


class MarketMover(BaseModel):
    """市場概覽：成交金額排行"""
    stock_id: str
    company_name: str
    currency: str
    current_price: Decimal
    volume: int
    trading_amount: Decimal
    trading_value: Decimal
    price_change: Decimal | None = None
    change_percent: Decimal | None = None
    is_up: bool = False
    date: date_type
