from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skuvault_saas.clients.skuvault import SkuVaultClient
from skuvault_saas.core.security import decode_token
from skuvault_saas.core.settings import get_app_settings
from skuvault_saas.db.models import User
from skuvault_saas.db.session import get_async_session, get_session_factory
from skuvault_saas.repositories.security import UserRepository

logger = logging.getLogger(__name__)

# OAuth2 bearer (used by docs); the session cookie is accepted as well
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


# PUBLIC_INTERFACE
async def get_session_token(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
) -> str:
    """
    Return the session token from the Authorization header or the session cookie.

    Raises:
        HTTPException: 401 when neither is present.
    """
    token = bearer or request.cookies.get(get_app_settings().SESSION_COOKIE_NAME)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


# PUBLIC_INTERFACE
async def get_current_user(
    request: Request,
    token: str = Depends(get_session_token),
    session: AsyncSession = Depends(get_async_session),
) -> User:
    """
    Resolve and return the current user from the session token.

    Also records the user's customer on request.state so error responses can
    echo it.
    """
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if payload.get("type") != "session":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")

    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user = await UserRepository(session).get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if user.customer_id is not None:
        request.state.customer_id = str(user.customer_id)
    return user


# PUBLIC_INTERFACE
async def get_current_active_user(user: User = Depends(get_current_user)) -> User:
    """Ensure user is active."""
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return user


# PUBLIC_INTERFACE
async def require_admin(user: User = Depends(get_current_active_user)) -> User:
    """Allow platform administrators only."""
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Administrator access required")
    return user


# PUBLIC_INTERFACE
def ensure_customer_access(user: User, customer_id: int) -> None:
    """
    Raise 403 unless the user may act on `customer_id`.

    Admins may act on any customer; everyone else only on their own.
    """
    if user.is_admin:
        return
    if user.customer_id is None or user.customer_id != customer_id:
        logger.warning("User %s denied access to customer %s", user.id, customer_id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access to this customer is not allowed")


# PUBLIC_INTERFACE
def get_skuvault_client(request: Request) -> SkuVaultClient:
    """Return the process-wide SkuVault client created at startup."""
    client = getattr(request.app.state, "skuvault_client", None)
    if client is None:
        client = SkuVaultClient.from_settings(get_app_settings())
        request.app.state.skuvault_client = client
    return client


# PUBLIC_INTERFACE
def get_sync_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory used when a request fans out into one session per customer."""
    return get_session_factory()
