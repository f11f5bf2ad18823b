"""
API 路由集中註冊
"""

from fastapi import APIRouter

from stock_tracker.api.auth import router as auth_router
from stock_tracker.api.market import router as market_router
from stock_tracker.api.portfolio import router as portfolio_router
from stock_tracker.api.stock import router as stock_router
from stock_tracker.api.transaction import router as transaction_router
from stock_tracker.api.watchlist import router as watchlist_router

api_router = APIRouter(prefix="/api")
api_router.include_router(auth_router)
api_router.include_router(portfolio_router)
api_router.include_router(transaction_router)
api_router.include_router(stock_router)
api_router.include_router(watchlist_router)
api_router.include_router(market_router)
