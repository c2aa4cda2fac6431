"""
FastAPI dependencies resolving shared singletons from ``app.state``.
"""

from typing import Optional

from bson import ObjectId
from fastapi import Header, Request

from ..config import Settings
from .service import UserService
from .session import extract_bearer_token, verify_token


def get_request_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


async def get_current_user_id(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> ObjectId:
    """
    Resolve the authenticated user from the bearer token.

    Usage in routes:
        @router.get("/me")
        async def me(user_id: ObjectId = Depends(get_current_user_id)):
            ...

    Raises:
        Unauthorized: If the header or token is missing or invalid
    """
    token = extract_bearer_token(authorization)
    return verify_token(token, request.app.state.settings)
