"""Pydantic request/response schemas."""

from backoffice.schemas.auth import (
    AccountOut,
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    Pagination,
    Principal,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    ResetPasswordRequest,
    RoleUpdateRequest,
    TokenPair,
    UsersListResponse,
)
from backoffice.schemas.health import HealthResponse

__all__ = [
    "AccountOut",
    "AuthResponse",
    "ChangePasswordRequest",
    "ForgotPasswordRequest",
    "HealthResponse",
    "LoginRequest",
    "MessageResponse",
    "Pagination",
    "Principal",
    "RefreshRequest",
    "RefreshResponse",
    "RegisterRequest",
    "ResetPasswordRequest",
    "RoleUpdateRequest",
    "TokenPair",
    "UsersListResponse",
]
