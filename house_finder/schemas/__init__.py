"""Pydantic request/response schemas for API endpoints."""

from house_finder.schemas.auth import (
    APIKeyCreate,
    APIKeyCreated,
    APIKeyRead,
    LoginPageInfo,
    LoginRequest,
    MessageResponse,
    PasskeyRead,
    UserCreate,
    UserRead,
    UserUpdate,
    WhoAmI,
)

__all__ = [
    # API keys
    "APIKeyCreate",
    "APIKeyCreated",
    "APIKeyRead",
    # Login
    "LoginPageInfo",
    "LoginRequest",
    "MessageResponse",
    "WhoAmI",
    # Passkeys
    "PasskeyRead",
    # Users
    "UserCreate",
    "UserRead",
    "UserUpdate",
]
