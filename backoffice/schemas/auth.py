"""Request/response schemas for auth endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backoffice.models.user import Role


class RegisterRequest(BaseModel):
    """New account; role is never accepted from the client."""

    email: EmailStr = Field(..., max_length=255, description="Email (unique)")
    password: str = Field(..., min_length=8, max_length=128, description="Password")
    name: str = Field(..., min_length=1, max_length=255, description="Display name")


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: EmailStr = Field(..., max_length=255, description="Email")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1, description="Refresh token from login")


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr = Field(..., max_length=255)


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=8, max_length=128, description="New password")


class RoleUpdateRequest(BaseModel):
    role: Role


class TokenPair(BaseModel):
    """Access and refresh tokens returned after login, register or refresh."""

    access_token: str = Field(..., description="JWT access token")
    refresh_token: str = Field(..., description="JWT refresh token")
    token_type: str = Field(default="bearer", description="Token type")


class AccountOut(BaseModel):
    """Account as exposed over the API (no password or reset fields)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: Role
    created_at: datetime | None = None


class AuthResponse(BaseModel):
    message: str
    user: AccountOut
    tokens: TokenPair


class RefreshResponse(BaseModel):
    tokens: TokenPair


class MessageResponse(BaseModel):
    message: str


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_more: bool


class UsersListResponse(BaseModel):
    """Response for GET /auth/users (admin only)."""

    data: list[AccountOut]
    pagination: Pagination


class Principal(BaseModel):
    """Authenticated identity attached to a request or realtime connection."""

    model_config = ConfigDict(frozen=True)

    account_id: int
    role: Role
