"""Request and response schemas for the auth endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LoginRequest(BaseModel):
    """Request body for POST /auth/login and POST /cli/auth."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class LoginPageInfo(BaseModel):
    """What the login pages need to know before rendering."""

    passkeys_available: bool


class MessageResponse(BaseModel):
    message: str


class WhoAmI(BaseModel):
    """Identity resolved by the gatekeeper for the current request."""

    email: str
    is_admin: bool
    auth_method: str


class APIKeyCreate(BaseModel):
    """Request body for POST /api/keys."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)


class APIKeyRead(BaseModel):
    """API key metadata. Never includes the key itself."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    key_prefix: str
    created_at: datetime
    last_used_at: datetime | None = None


class APIKeyCreated(APIKeyRead):
    """Response for a newly minted key. ``key`` is shown only this once."""

    key: str

    @classmethod
    def from_record(cls, record: object, raw_key: str) -> "APIKeyCreated":
        """Combine a stored key row with its raw value."""
        fields = APIKeyRead.model_validate(record).model_dump()
        return cls(key=raw_key, **fields)


class UserCreate(BaseModel):
    """Request body for POST /api/users."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    name: str = Field(default="", max_length=255)


class UserUpdate(BaseModel):
    """Request body for PATCH /api/users/{id}."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr | None = None
    name: str | None = Field(default=None, max_length=255)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    created_at: datetime


class PasskeyRead(BaseModel):
    """Registered passkey metadata."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    created_at: datetime
