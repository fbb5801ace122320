from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from skuvault_saas.core.deps import get_current_active_user
from skuvault_saas.core.security import create_session_token, verify_password
from skuvault_saas.core.settings import get_app_settings
from skuvault_saas.db.models import User
from skuvault_saas.db.session import get_async_session
from skuvault_saas.repositories.security import UserRepository
from skuvault_saas.schemas.auth import Message, SessionToken, UserRead

router = APIRouter(prefix="/auth", tags=["Auth"])


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=SessionToken,
    summary="Login",
    description="Authenticate using the OAuth2 password form. Sets an HttpOnly session cookie and returns the same token.",
)
async def login(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: AsyncSession = Depends(get_async_session),
) -> SessionToken:
    """Authenticate user and start a cookie session."""
    user = await UserRepository(session).get_user_by_email(form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")

    settings = get_app_settings()
    token = create_session_token(subject=str(user.id), customer_id=user.customer_id, is_admin=user.is_admin)
    max_age = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=max_age,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return SessionToken(access_token=token, expires_in=max_age)


# PUBLIC_INTERFACE
@router.post(
    "/logout",
    response_model=Message,
    summary="Logout",
    description="Clear the session cookie. Bearer tokens stay valid until they expire.",
)
async def logout(response: Response) -> Message:
    """End the cookie session."""
    response.delete_cookie(get_app_settings().SESSION_COOKIE_NAME)
    return Message(message="Logged out")


# PUBLIC_INTERFACE
@router.get(
    "/me",
    response_model=UserRead,
    summary="Read current user",
    description="Return the current authenticated user.",
)
async def read_current_user(user: User = Depends(get_current_active_user)) -> UserRead:
    """Return current user profile."""
    return UserRead.model_validate(user)
