"""
關注清單 API 路由
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.api.auth import get_current_user
from stock_tracker.database import get_db
from stock_tracker.models.user import User
from stock_tracker.schemas.common import ApiResponse
from stock_tracker.schemas.watchlist import (
    BatchCheckRequest,
    BatchCheckResponse,
    WatchlistAdd,
    WatchlistItemResponse,
)
from stock_tracker.services.errors import NotFoundError
from stock_tracker.services.watchlist_service import WatchlistService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/watchlist", tags=["關注清單"])


@router.get("/", response_model=ApiResponse[list[WatchlistItemResponse]])
async def list_watchlist(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """關注清單（含最新報價）"""
    return ApiResponse(data=await WatchlistService(db).list_items(user.id))


@router.post("/", response_model=ApiResponse[WatchlistItemResponse])
async def add_to_watchlist(
    data: WatchlistAdd,
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """加入關注（已關注時回傳 200 與既有項目）"""
    try:
        item, created = await WatchlistService(db).add(user.id, data.stock_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if created:
        response.status_code = status.HTTP_201_CREATED
        return ApiResponse(data=item, message="已加入關注清單")
    return ApiResponse(data=item, message="此股票已在關注清單中")


@router.delete("/{stock_id}", response_model=ApiResponse[bool])
async def remove_from_watchlist(
    stock_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """移除關注"""
    try:
        await WatchlistService(db).remove(user.id, stock_id.strip().upper())
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ApiResponse(data=True, message="已從關注清單移除")


@router.post("/batch-check", response_model=ApiResponse[BatchCheckResponse])
async def batch_check(
    data: BatchCheckRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """批次檢查股票是否已關注"""
    watched = await WatchlistService(db).batch_check(user.id, data.stock_ids)
    return ApiResponse(
        data=BatchCheckResponse(
            watched_stock_ids=watched,
            total_checked=len(data.stock_ids),
            total_watched=len(watched),
        )
    )
