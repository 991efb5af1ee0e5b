"""
Authentication routes

Rate limited to slow down credential stuffing. Tokens are returned in the
body; clients send them back as "Authorization: Bearer <token>".
"""
import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from logistics_pro.api.deps import get_current_principal
from logistics_pro.core.config import settings
from logistics_pro.core.database import get_db
from logistics_pro.core.rate_limit import limiter
from logistics_pro.schemas.auth import (
    AuthResponse,
    PushTokenUpdate,
    UserCreate,
    UserLogin,
    UserResponse,
)
from logistics_pro.services.identity import AccountService, Principal

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def register(
    request: Request,
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    """Register a new account and return an access token."""
    user, token = await AccountService(db).register(
        phone=user_data.phone,
        password=user_data.password,
        name=user_data.name,
        role=user_data.role,
        email=user_data.email,
    )
    return AuthResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.RATE_LIMIT_AUTH)
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db),
):
    user, token = await AccountService(db).login(credentials.phone, credentials.password)
    logger.info(f"User {user.id} logged in")
    return AuthResponse(access_token=token, user=UserResponse.model_validate(user))


@router.put("/push-token", response_model=UserResponse)
async def update_push_token(
    payload: PushTokenUpdate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Store the device token used for shipment notifications."""
    user = await AccountService(db).update_push_token(principal, payload.fcm_token)
    return UserResponse.model_validate(user)
