"""
認證 API 路由

用戶註冊、登入、JWT Token 生成。
"""

import logging
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from stock_tracker.config import get_settings
from stock_tracker.database import get_db
from stock_tracker.models.user import User
from stock_tracker.schemas.common import ApiResponse
from stock_tracker.schemas.user import UserRegister, UserLogin, UserResponse, TokenResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["認證"])

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer(auto_error=False)


def _create_token(user_id: str) -> str:
    """產生 JWT Token"""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def _verify_token(token: str) -> str | None:
    """驗證 JWT Token，回傳 user_id"""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.jwt_algorithm]
        )
        return payload.get("sub")
    except jwt.PyJWTError:
        return None


@router.post("/register", response_model=ApiResponse[UserResponse])
async def register(data: UserRegister, db: AsyncSession = Depends(get_db)):
    """用戶註冊"""
    # 檢查 email 或用戶名稱是否已存在
    stmt = select(User).where(
        or_(User.email == data.email, User.username == data.username)
    )
    existing = (await db.execute(stmt)).scalars().first()
    if existing:
        detail = "此 Email 已被註冊" if existing.email == data.email else "此用戶名稱已被使用"
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)

    user = User(
        email=data.email,
        username=data.username,
        hashed_password=pwd_context.hash(data.password),
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info("新用戶註冊: %s", user.email)

    return ApiResponse(data=UserResponse.model_validate(user), message="註冊成功")


@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(data: UserLogin, db: AsyncSession = Depends(get_db)):
    """用戶登入"""
    stmt = select(User).where(User.email == data.email)
    user = (await db.execute(stmt)).scalar_one_or_none()

    if not user or not pwd_context.verify(data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email 或密碼錯誤",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="用戶不存在或已停用",
        )

    return ApiResponse(
        data=TokenResponse(
            access_token=_create_token(user.id),
            expires_in=get_settings().jwt_expire_minutes * 60,
        ),
        message="登入成功",
    )


# === 依賴注入：取得當前用戶 ===

async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """取得當前已認證的用戶"""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="未提供認證 Token",
        )

    user_id = _verify_token(credentials.credentials)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token 無效或已過期",
        )

    user = await db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="用戶不存在或已停用",
        )

    return user


@router.get("/me", response_model=ApiResponse[UserResponse])
async def me(user: User = Depends(get_current_user)):
    """取得目前登入的用戶資料"""
    return ApiResponse(data=UserResponse.model_validate(user))
