"""
市場概覽 API 路由
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.database import get_db
from stock_tracker.schemas.common import ApiResponse
from stock_tracker.schemas.stock import MarketMover
from stock_tracker.services.stock_service import StockService

router = APIRouter(prefix="/market", tags=["市場"])


@router.get("/overview", response_model=ApiResponse[list[MarketMover]])
async def market_overview(db: AsyncSession = Depends(get_db)):
    """近 30 天成交金額前 5 名的股票"""
    return ApiResponse(data=await StockService(db).market_overview())
