"""API key management endpoints.

Session-only: the gatekeeper never lets a bearer key reach these routes.

Endpoints:
- GET /api/keys — list the caller's keys (metadata only)
- POST /api/keys — mint a key; the raw key is in this response only
- DELETE /api/keys/{key_id} — revoke one of the caller's keys
"""

from fastapi import APIRouter

from house_finder.api.deps import CurrentEmail, DbSession
from house_finder.core.responses import DataResponse
from house_finder.repositories.api_key_store import APIKeyStore
from house_finder.schemas.auth import APIKeyCreate, APIKeyCreated, APIKeyRead

router = APIRouter(prefix="/api/keys")


@router.get("")
async def list_api_keys(
    email: CurrentEmail, db: DbSession
) -> DataResponse[list[APIKeyRead]]:
    """List the caller's API keys."""
    keys = await APIKeyStore.list(db, email)
    return DataResponse(data=[APIKeyRead.model_validate(key) for key in keys])


@router.post("", status_code=201)
async def create_api_key(
    body: APIKeyCreate, email: CurrentEmail, db: DbSession
) -> DataResponse[APIKeyCreated]:
    """Mint a new API key for the caller."""
    raw_key, record = await APIKeyStore.create(db, body.name.strip(), email)
    await db.commit()
    return DataResponse(data=APIKeyCreated.from_record(record, raw_key))


@router.delete("/{key_id}", status_code=204)
async def delete_api_key(key_id: int, email: CurrentEmail, db: DbSession) -> None:
    """Revoke one of the caller's API keys. 404 if it is not theirs."""
    await APIKeyStore.delete(db, key_id, email)
    await db.commit()
