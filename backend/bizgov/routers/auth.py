"""Authentication endpoints."""

from fastapi import APIRouter, HTTPException, Request, status

from bizgov.core.deps import CurrentUser, DbSession
from bizgov.core.limiter import LOGIN_LIMIT, limiter
from bizgov.core.security import create_access_token, verify_password
from bizgov.schemas.auth import LoginRequest, TokenResponse, UserResponse
from bizgov.services.audit import AuditService
from bizgov.services.users import get_user_by_username

router = APIRouter(prefix="/auth")


@router.post("/login", response_model=TokenResponse)
@limiter.limit(LOGIN_LIMIT)
async def login(
    request: Request,
    credentials: LoginRequest,
    session: DbSession,
) -> TokenResponse:
    """Authenticate user and return access token."""
    user = await get_user_by_username(session, credentials.username)

    if user is None or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )

    user_id = user.id
    await AuditService(session, request).log_login(user_id)

    return TokenResponse(access_token=create_access_token(data={"sub": user_id}))


@router.post("/logout")
async def logout(current_user: CurrentUser) -> dict:
    """Logout; the client discards its bearer token."""
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: CurrentUser) -> UserResponse:
    """Get current user information."""
    return UserResponse(
        id=current_user.id,
        username=current_user.username,
        role=current_user.role.value,
        full_name=current_user.full_name,
        email=current_user.email,
        is_active=current_user.is_active,
    )
