"""
投資組合 API 路由

投資組合 CRUD、持倉明細與損益摘要。
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.api.auth import get_current_user
from stock_tracker.database import get_db
from stock_tracker.models.portfolio import Portfolio
from stock_tracker.models.user import User
from stock_tracker.schemas.common import ApiResponse
from stock_tracker.schemas.portfolio import (
    PortfolioCreate,
    PortfolioDetail,
    PortfolioListResponse,
    PortfolioResponse,
    PortfolioUpdate,
    PositionDetail,
)
from stock_tracker.services.errors import ConflictError, NotFoundError
from stock_tracker.services.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/portfolio", tags=["投資組合"])


async def get_owned_portfolio(db: AsyncSession, portfolio_id: str, user: User) -> Portfolio:
    """取得屬於當前用戶的投資組合，否則 404"""
    portfolio = await db.get(Portfolio, portfolio_id)
    if not portfolio or portfolio.user_id != user.id:
        raise HTTPException(status_code=404, detail="投資組合不存在")
    return portfolio


@router.get("/", response_model=ApiResponse[PortfolioListResponse])
async def list_portfolios(
    summary: bool = False,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """取得所有投資組合（含市值與損益，summary=true 時附加總計）"""
    service = PortfolioService(db)
    return ApiResponse(data=await service.list_with_values(user.id, include_summary=summary))


@router.post(
    "/",
    response_model=ApiResponse[PortfolioResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_portfolio(
    data: PortfolioCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """建立投資組合"""
    service = PortfolioService(db)
    try:
        portfolio = await service.create(user.id, data)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ApiResponse(
        data=PortfolioResponse.model_validate(portfolio),
        message="投資組合已建立",
    )


@router.get("/{portfolio_id}", response_model=ApiResponse[PortfolioDetail])
async def get_portfolio(
    portfolio_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """投資組合詳細資訊：損益摘要、持倉、交易紀錄"""
    portfolio = await get_owned_portfolio(db, portfolio_id, user)
    service = PortfolioService(db)
    return ApiResponse(data=await service.get_detail(portfolio))


@router.put("/{portfolio_id}", response_model=ApiResponse[PortfolioResponse])
async def update_portfolio(
    portfolio_id: str,
    data: PortfolioUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """更新投資組合名稱或描述"""
    portfolio = await get_owned_portfolio(db, portfolio_id, user)
    service = PortfolioService(db)
    try:
        portfolio = await service.update(portfolio, data)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ApiResponse(
        data=PortfolioResponse.model_validate(portfolio),
        message="投資組合已更新",
    )


@router.delete("/{portfolio_id}", response_model=ApiResponse[bool])
async def delete_portfolio(
    portfolio_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """刪除投資組合（連同所有交易紀錄）"""
    portfolio = await get_owned_portfolio(db, portfolio_id, user)
    await PortfolioService(db).delete(portfolio)
    return ApiResponse(data=True, message="投資組合已刪除")


@router.get(
    "/{portfolio_id}/positions/{stock_id}",
    response_model=ApiResponse[PositionDetail],
)
async def get_position(
    portfolio_id: str,
    stock_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """單一股票持倉（含已出清部位的已實現損益）"""
    portfolio = await get_owned_portfolio(db, portfolio_id, user)
    service = PortfolioService(db)
    try:
        position = await service.get_position(portfolio.id, stock_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ApiResponse(data=position)
