"""Authorized user management endpoints (admin only).

Session-only like API key management, and every route additionally
requires the caller to be the configured admin.

Endpoints:
- GET /api/users — list authorized users
- POST /api/users — authorize an address
- PATCH /api/users/{user_id} — change an address or display name
- DELETE /api/users/{user_id} — revoke an address
"""

from fastapi import APIRouter

from house_finder.api.deps import AdminEmail, DbSession
from house_finder.core.responses import DataResponse
from house_finder.repositories.user_store import UserStore
from house_finder.schemas.auth import UserCreate, UserRead, UserUpdate

router = APIRouter(prefix="/api/users")


@router.get("")
async def list_users(
    _admin: AdminEmail, db: DbSession
) -> DataResponse[list[UserRead]]:
    """List authorized users (the admin is not included)."""
    users = await UserStore.list(db)
    return DataResponse(data=[UserRead.model_validate(user) for user in users])


@router.post("", status_code=201)
async def add_user(
    body: UserCreate, _admin: AdminEmail, db: DbSession
) -> DataResponse[UserRead]:
    """Authorize a new address. 409 if it is already allowed."""
    user = await UserStore.add(db, body.email, body.name)
    await db.commit()
    return DataResponse(data=UserRead.model_validate(user))


@router.patch("/{user_id}")
async def update_user(
    user_id: int, body: UserUpdate, _admin: AdminEmail, db: DbSession
) -> DataResponse[UserRead]:
    """Update an authorized user."""
    user = await UserStore.update(db, user_id, email=body.email, name=body.name)
    await db.commit()
    return DataResponse(data=UserRead.model_validate(user))


@router.delete("/{user_id}", status_code=204)
async def delete_user(user_id: int, _admin: AdminEmail, db: DbSession) -> None:
    """Revoke an address. Its sessions stop working on the next request."""
    await UserStore.delete(db, user_id)
    await db.commit()
