"""
Authentication routes: registration, email verification and login.

Codes are delivered by mail from a background task so a slow SMTP server
never delays the response.
"""

import logging
from typing import Any, Dict

from bson import ObjectId
from fastapi import APIRouter, BackgroundTasks, Depends, status

from ..config import Settings
from .dependencies import get_current_user_id, get_request_settings, get_user_service
from ..models import (
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    SendOtpRequest,
    TokenResponse,
    VerifyEmailRequest,
)
from .mailer import send_otp_mail
from .service import UserService

logger = logging.getLogger("chatserver.auth.routes")


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(
    prefix="/v1/auth/users",
    tags=["authentication"],
)


# =============================================================================
# Registration & Verification
# =============================================================================

@auth_router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    users: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_request_settings),
) -> Dict[str, Any]:
    """
    Register an account and mail it a verification code.

    Returns:
        The public user record
    """
    user, otp = await users.create(body.email, body.username, body.password)
    background_tasks.add_task(send_otp_mail, settings, user.email, otp)
    return user.public().to_json()


@auth_router.post("/verify-email", response_model=MessageResponse)
async def verify_email(
    body: VerifyEmailRequest,
    users: UserService = Depends(get_user_service),
) -> MessageResponse:
    await users.verify_email(body.email, body.otpToken)
    return MessageResponse(message="Email verified successfully")


@auth_router.post("/send-email", response_model=MessageResponse)
async def send_email(
    body: SendOtpRequest,
    background_tasks: BackgroundTasks,
    users: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_request_settings),
) -> MessageResponse:
    """Issue a fresh verification code and mail it."""
    otp = await users.issue_otp(body.email)
    background_tasks.add_task(send_otp_mail, settings, body.email, otp)
    return MessageResponse(message=f"Email sent successfully to {body.email}")


# =============================================================================
# Login & Profile
# =============================================================================

@auth_router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    users: UserService = Depends(get_user_service),
    settings: Settings = Depends(get_request_settings),
) -> TokenResponse:
    token = await users.login(body.email, body.password)
    return TokenResponse(
        token=token,
        expires_in=settings.JWT_EXPIRY_HOURS * 3600,
    )


@auth_router.get("/me")
async def me(
    user_id: ObjectId = Depends(get_current_user_id),
    users: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    """Return the public record of the token's user."""
    user = await users.get(user_id)
    return user.public().to_json()
