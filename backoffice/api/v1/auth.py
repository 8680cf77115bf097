"""Auth endpoints: register, login, refresh, password change/reset and admin user management."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from backoffice.api.v1.deps import (
    Credentials,
    CurrentPrincipal,
    Gateway,
    authenticate,
    require_roles,
)
from backoffice.core.database import get_db
from backoffice.models.user import Role
from backoffice.schemas.auth import (
    AccountOut,
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    Pagination,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    ResetPasswordRequest,
    RoleUpdateRequest,
    UsersListResponse,
)
from backoffice.services.credentials import total_pages

router = APIRouter()

AdminOnly = [Depends(authenticate), Depends(require_roles(Role.ADMIN))]


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
    credentials: Credentials,
    gateway: Gateway,
) -> AuthResponse:
    """Create a USER account and return it with an access/refresh token pair."""
    user, tokens = await run_in_threadpool(
        credentials.register, db, body.email, body.password, body.name
    )
    account = AccountOut.model_validate(user)
    await gateway.broadcast_to_roles(
        [Role.ADMIN],
        "user:registered",
        {"id": account.id, "email": account.email, "name": account.name, "role": account.role.value},
    )
    return AuthResponse(message="User registered successfully", user=account, tokens=tokens)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
    credentials: Credentials,
    gateway: Gateway,
) -> AuthResponse:
    """
    Authenticate with email and password; returns access and refresh tokens.
    Include the access token in the Authorization header as: Bearer <access_token>
    """
    user, tokens = await run_in_threadpool(credentials.login, db, body.email, body.password)
    account = AccountOut.model_validate(user)
    await gateway.broadcast_to_roles(
        [Role.ADMIN],
        "user:loggedin",
        {"userId": account.id, "email": account.email, "name": account.name, "role": account.role.value},
    )
    return AuthResponse(message="Login successful", user=account, tokens=tokens)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    body: RefreshRequest,
    db: Annotated[Session, Depends(get_db)],
    credentials: Credentials,
) -> RefreshResponse:
    """Exchange a refresh token for a new token pair (the account must still exist)."""
    tokens = await run_in_threadpool(credentials.refresh, db, body.refresh_token)
    return RefreshResponse(tokens=tokens)


@router.get("/me", response_model=AccountOut)
async def me(
    principal: CurrentPrincipal,
    db: Annotated[Session, Depends(get_db)],
    credentials: Credentials,
) -> AccountOut:
    user = await run_in_threadpool(credentials.get_account, db, principal.account_id)
    return AccountOut.model_validate(user)


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    principal: CurrentPrincipal,
    db: Annotated[Session, Depends(get_db)],
    credentials: Credentials,
    gateway: Gateway,
) -> MessageResponse:
    await run_in_threadpool(
        credentials.change_password,
        db,
        principal.account_id,
        body.current_password,
        body.new_password,
    )
    await gateway.broadcast_to_account(
        principal.account_id,
        "notification:new",
        {"type": "password_changed", "message": "Your password was changed."},
    )
    return MessageResponse(message="Password updated successfully")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    db: Annotated[Session, Depends(get_db)],
    credentials: Credentials,
) -> MessageResponse:
    """Send a reset link if the account exists. The response never says whether it does."""
    message = await run_in_threadpool(credentials.request_password_reset, db, body.email)
    return MessageResponse(message=message)


@router.put("/reset-password/{token}", response_model=MessageResponse)
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    db: Annotated[Session, Depends(get_db)],
    credentials: Credentials,
    gateway: Gateway,
) -> MessageResponse:
    """Set a new password with a reset token. Does not log the user in."""
    user = await run_in_threadpool(credentials.consume_password_reset, db, token, body.password)
    await gateway.broadcast_to_account(
        user.id,
        "notification:new",
        {"type": "password_changed", "message": "Your password was reset."},
    )
    return MessageResponse(message="Password has been changed successfully.")


@router.get("/users", response_model=UsersListResponse, dependencies=AdminOnly)
async def list_users(
    db: Annotated[Session, Depends(get_db)],
    credentials: Credentials,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: str | None = None,
    role: str | None = None,
    sort_by: str = "id",
    order: str = "asc",
) -> UsersListResponse:
    """List accounts with search, role filter, sorting and pagination (admin only)."""
    users, total = await run_in_threadpool(
        credentials.list_accounts, db, page, limit, search, role, sort_by, order
    )
    return UsersListResponse(
        data=[AccountOut.model_validate(u) for u in users],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages(total, limit),
            has_more=(page - 1) * limit + len(users) < total,
        ),
    )


@router.patch("/users/{account_id}/role", response_model=AccountOut, dependencies=AdminOnly)
async def update_user_role(
    account_id: int,
    body: RoleUpdateRequest,
    db: Annotated[Session, Depends(get_db)],
    credentials: Credentials,
    gateway: Gateway,
) -> AccountOut:
    user = await run_in_threadpool(credentials.update_role, db, account_id, body.role)
    account = AccountOut.model_validate(user)
    await gateway.broadcast_to_roles(
        [Role.ADMIN], "user:updated", {"id": account.id, "role": account.role.value}
    )
    return account


@router.delete(
    "/users/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=AdminOnly,
)
async def delete_user(
    account_id: int,
    db: Annotated[Session, Depends(get_db)],
    credentials: Credentials,
    gateway: Gateway,
) -> Response:
    await run_in_threadpool(credentials.delete_account, db, account_id)
    await gateway.broadcast_to_roles([Role.ADMIN], "user:deleted", {"id": account_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
