"""
交易 API 路由

新增交易、交易紀錄查詢。
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.api.auth import get_current_user
from stock_tracker.api.portfolio import get_owned_portfolio
from stock_tracker.config import get_settings
from stock_tracker.database import get_db
from stock_tracker.ledger import InsufficientHoldings, InvalidTransactionSequence
from stock_tracker.models.user import User
from stock_tracker.schemas.common import ApiResponse, PaginatedResponse
from stock_tracker.schemas.transaction import TransactionCreate, TransactionResponse
from stock_tracker.services.errors import NotFoundError
from stock_tracker.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/transactions", tags=["交易"])


@router.post(
    "/",
    response_model=ApiResponse[TransactionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_transaction(
    data: TransactionCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    新增交易紀錄

    賣出時會檢查交易時間點的持有數量，不足則回傳 400。
    """
    # 驗證投資組合歸屬
    portfolio = await get_owned_portfolio(db, data.portfolio_id, user)

    service = TransactionService(db)
    try:
        tx = await service.create_transaction(portfolio, data)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InsufficientHoldings as e:
        logger.info("賣出數量不足: %s %s 持有 %d 欲賣 %d",
                    portfolio.id, data.stock_id, e.held, e.requested)
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidTransactionSequence as e:
        raise HTTPException(status_code=409, detail=str(e))

    await db.refresh(tx)
    return ApiResponse(data=TransactionResponse.from_model(tx), message="交易已新增")


@router.get(
    "/{portfolio_id}",
    response_model=ApiResponse[PaginatedResponse[TransactionResponse]],
)
async def get_transactions(
    portfolio_id: str,
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, ge=1),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """取得投資組合交易紀錄（分頁，最新在前）"""
    await get_owned_portfolio(db, portfolio_id, user)

    settings = get_settings()
    page_size = min(page_size or settings.default_page_size, settings.max_page_size)

    service = TransactionService(db)
    transactions, total = await service.get_transactions(portfolio_id, page, page_size)

    return ApiResponse(
        data=PaginatedResponse[TransactionResponse].build(
            items=[TransactionResponse.from_model(tx) for tx in transactions],
            total=total,
            page=page,
            page_size=page_size,
        )
    )
