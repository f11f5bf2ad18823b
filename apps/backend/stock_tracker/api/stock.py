"""
股票 API 路由

股票列表、交易搜尋與個股資訊。
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.api.auth import get_current_user
from stock_tracker.config import get_settings
from stock_tracker.database import get_db
from stock_tracker.models.user import User
from stock_tracker.schemas.common import ApiResponse, PaginatedResponse
from stock_tracker.schemas.stock import StockDetail, StockQuote
from stock_tracker.schemas.watchlist import WatchStatus
from stock_tracker.services.errors import NotFoundError
from stock_tracker.services.stock_service import StockService
from stock_tracker.services.watchlist_service import WatchlistService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/stocks", tags=["股票"])


@router.get("/", response_model=ApiResponse[PaginatedResponse[StockQuote]])
async def list_stocks(
    q: str | None = None,
    market_type: str | None = None,
    security_status: str | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
):
    """股票列表（可依代號/名稱搜尋，market_type、security_status 為 ALL 時不篩選）"""
    settings = get_settings()
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    service = StockService(db)
    return ApiResponse(
        data=await service.list_stocks(q, market_type, security_status, page, limit)
    )


# 必須放在 /{symbol} 之前，避免被攔截
@router.get("/search-for-trade", response_model=ApiResponse[list[StockQuote]])
async def search_for_trade(
    q: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    """新增交易時的股票搜尋（排除下市股票）"""
    return ApiResponse(data=await StockService(db).search_for_trade(q))


@router.get("/{symbol}", response_model=ApiResponse[StockDetail])
async def get_stock(symbol: str, db: AsyncSession = Depends(get_db)):
    """個股資訊與最新報價"""
    try:
        detail = await StockService(db).get_stock_detail(symbol)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ApiResponse(data=detail)


@router.get("/{symbol}/watchlist", response_model=ApiResponse[WatchStatus])
async def get_watch_status(
    symbol: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """當前用戶是否關注此股票"""
    watched = await WatchlistService(db).is_watched(user.id, symbol)
    return ApiResponse(data=WatchStatus(stock_id=symbol.strip().upper(), is_watched=watched))


@router.post("/{symbol}/watchlist", response_model=ApiResponse[WatchStatus])
async def watch_stock(
    symbol: str,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """從個股頁加入關注（已關注時回傳 200）"""
    stock_id = symbol.strip().upper()
    try:
        _, created = await WatchlistService(db).add(user.id, stock_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    status_data = WatchStatus(stock_id=stock_id, is_watched=True)
    if created:
        response.status_code = status.HTTP_201_CREATED
        return ApiResponse(data=status_data, message=f"{stock_id} 已加入關注清單")
    return ApiResponse(data=status_data, message="此股票已在關注清單中")


@router.delete("/{symbol}/watchlist", response_model=ApiResponse[WatchStatus])
async def unwatch_stock(
    symbol: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """從個股頁取消關注（未關注時同樣回傳 200）"""
    stock_id = symbol.strip().upper()
    status_data = WatchStatus(stock_id=stock_id, is_watched=False)
    try:
        await WatchlistService(db).remove(user.id, stock_id)
    except NotFoundError:
        return ApiResponse(data=status_data, message="此股票不在關注清單中")
    return ApiResponse(data=status_data, message=f"{stock_id} 已從關注清單移除")
