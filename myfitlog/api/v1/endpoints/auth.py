"""Authentication endpoints.

Paths:
  /api/v1/auth/signup, /login, /logout, /me
"""

import logging
from datetime import datetime, timezone as tz
from typing import Annotated, Any

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field
from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from myfitlog.api.v1.errors import http_error_for
from myfitlog.core.config import get_settings
from myfitlog.core.database import get_db
from myfitlog.core.security import get_password_hash, verify_password
from myfitlog.core.session import create_session, delete_session
from myfitlog.models.user import User
from myfitlog.services.backend import (
    BackendError,
    FitnessBackend,
    SessionContext,
    SqlAlchemyBackend,
    UnauthenticatedError,
)
from myfitlog.services.stopwatch import StopwatchRegistry

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter()

SESSION_COOKIE_NAME = "session_id"


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for creating an account."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    display_name: str = Field(..., min_length=1, max_length=100)


class LoginRequest(BaseModel):
    """Request body for local login."""

    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    """Response for signup and login."""

    success: bool
    message: str
    user: dict[str, Any]


class UserResponse(BaseModel):
    """Current user response."""

    user_id: int
    email: str
    display_name: str


# -------------------------------------------------------------------------
# Dependencies
# -------------------------------------------------------------------------


def get_backend(db: AsyncSession = Depends(get_db)) -> FitnessBackend:
    """Collaborator used by every view; overridden with a fake in tests."""
    return SqlAlchemyBackend(db)


def get_stopwatch_registry(request: Request) -> StopwatchRegistry:
    """Server-held stopwatches of this process."""
    return request.app.state.stopwatches


async def get_current_context(
    backend: Annotated[FitnessBackend, Depends(get_backend)],
    session_id: Annotated[str | None, Cookie(alias=SESSION_COOKIE_NAME)] = None,
) -> SessionContext:
    """Resolve the signed-in user from the session cookie.

    Raises:
        HTTPException: 401 when there is no valid session; clients send the
            user to the login page.
    """
    try:
        return await backend.get_current_session(session_id)
    except BackendError as e:
        raise http_error_for(e, "Failed to load user data")


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignupRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Create a local account. The user logs in afterwards."""
    result = await db.execute(select(User).where(User.email == request.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(
        email=request.email,
        password_hash=get_password_hash(request.password),
        display_name=request.display_name,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent signup claimed the email after the check above
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )
    await db.refresh(user)

    logger.info("Account created: user_id=%s", user.id)

    return AuthResponse(
        success=True,
        message="Account created",
        user={
            "id": user.id,
            "email": user.email,
            "display_name": user.display_name,
        },
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Login with email and password; sets the session cookie.

    Raises:
        HTTPException: If credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == request.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    user.last_login_at = datetime.now(tz.utc)
    await db.commit()

    try:
        session_id = await create_session(
            user_id=user.id,
            user_data={
                "email": user.email,
                "display_name": user.display_name,
            },
        )
    except (RedisError, OSError) as e:
        logger.error("Session store unavailable at login for user %s: %s", user.id, e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to sign in",
        )

    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        max_age=settings.session_ttl_seconds,
    )

    return AuthResponse(
        success=True,
        message="Login successful",
        user={
            "id": user.id,
            "email": user.email,
            "display_name": user.display_name,
        },
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )


def _sign_out_failed() -> JSONResponse:
    """503 that still clears the cookie so the client is signed out locally."""
    failed = JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Failed to sign out"},
    )
    _clear_session_cookie(failed)
    return failed


@router.post("/logout", response_model=None)
async def logout(
    response: Response,
    backend: Annotated[FitnessBackend, Depends(get_backend)],
    registry: Annotated[StopwatchRegistry, Depends(get_stopwatch_registry)],
    session_id: Annotated[str | None, Cookie(alias=SESSION_COOKIE_NAME)] = None,
) -> dict[str, str] | JSONResponse:
    """Logout: stop the user's stopwatch and invalidate the session.

    The cookie is cleared even when the session store cannot be reached.
    """
    if session_id:
        try:
            context = await backend.get_current_session(session_id)
        except UnauthenticatedError:
            logger.info("Logout with an expired or unknown session")
        except BackendError as e:
            logger.error("Session lookup failed at logout: %s", e)
            return _sign_out_failed()
        else:
            await registry.discard(context.user_id)

        try:
            await delete_session(session_id)
        except (RedisError, OSError) as e:
            logger.error("Session store unavailable at logout: %s", e)
            return _sign_out_failed()

    _clear_session_cookie(response)

    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def get_me(
    context: Annotated[SessionContext, Depends(get_current_context)],
) -> UserResponse:
    """Get current authenticated user."""
    return UserResponse(
        user_id=context.user_id,
        email=context.email,
        display_name=context.display_name,
    )
