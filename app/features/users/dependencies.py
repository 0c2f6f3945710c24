"""
FastAPI dependencies for authentication.
"""
from typing import Annotated, Optional
from datetime import datetime
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import Account, AnonymousUser, User
from app.features.users.auth import verify_jwt_token, get_appwrite_user
from app.utils import get_logger


log = get_logger(__name__)
security = HTTPBearer(auto_error=False)


async def get_user_for_token(db: AsyncSession, token: str) -> User:
    """
    Resolve a JWT to a local user.

    1. Verifies the JWT payload
    2. Looks up or creates the user in the local database
    3. Updates last_login_at
    """
    payload = verify_jwt_token(token)
    appwrite_user_id = payload.get("userId")

    if not appwrite_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    result = await db.execute(
        select(User).where(User.appwrite_id == appwrite_user_id)
    )
    user = result.scalar_one_or_none()

    # If user doesn't exist locally, fetch from Appwrite and create
    if user is None:
        appwrite_user = await get_appwrite_user(appwrite_user_id)
        log.info("Creating local user for Appwrite user %s", appwrite_user_id)

        user = User(
            appwrite_id=appwrite_user_id,
            email=appwrite_user.get("email", ""),
            name=appwrite_user.get("name", "Unknown"),
            last_login_at=datetime.utcnow(),
        )
        db.add(user)
    else:
        user.last_login_at = datetime.utcnow()

    await db.commit()
    await db.refresh(user)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


async def get_current_account(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Account:
    """
    Current account, anonymous when no bearer token was sent.

    Usage:
        @router.get("/groups/{group_id}/permissions/check")
        async def check(account: Account = Depends(get_current_account)):
            ...
    """
    if credentials is None:
        return AnonymousUser()
    return await get_user_for_token(db, credentials.credentials)


async def get_current_user(
    account: Annotated[Account, Depends(get_current_account)]
) -> User:
    """Require an authenticated user."""
    if account.is_anonymous():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return account


async def get_current_admin_user(
    user: Annotated[User, Depends(get_current_user)]
) -> User:
    """Require admin privileges."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return user


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
