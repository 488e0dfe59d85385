"""Passkey (WebAuthn) endpoints.

Endpoints:
- POST /passkey/register/begin — creation options for the logged-in user
- POST /passkey/register/finish?name= — verify and store the new passkey
- POST /passkey/login/begin — discoverable login options (public)
- POST /passkey/login/finish — verify assertion, open a session (public)
- GET /passkeys — list the caller's passkeys
- DELETE /passkeys/{credential_id} — remove one of the caller's passkeys

Begin endpoints return the WebAuthn options JSON unwrapped, as the browser
API expects it.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Query, Response

from house_finder.api.deps import CurrentEmail, DbSession, Passkeys
from house_finder.core.auth import set_session_cookie
from house_finder.core.responses import DataResponse
from house_finder.repositories.passkey_store import PasskeyStore
from house_finder.repositories.session_store import SessionStore
from house_finder.schemas.auth import MessageResponse, PasskeyRead
from house_finder.services.passkey_ceremony import DEFAULT_PASSKEY_NAME

router = APIRouter()

_JSON = "application/json"


@router.post("/passkey/register/begin")
async def begin_registration(
    email: CurrentEmail, db: DbSession, ceremonies: Passkeys
) -> Response:
    """Start registering a passkey for the current user."""
    options = await ceremonies.begin_registration(db, email)
    return Response(content=options, media_type=_JSON)


@router.post("/passkey/register/finish")
async def finish_registration(
    credential: Annotated[dict[str, Any], Body()],
    email: CurrentEmail,
    db: DbSession,
    ceremonies: Passkeys,
    name: Annotated[str, Query(max_length=100)] = DEFAULT_PASSKEY_NAME,
) -> DataResponse[PasskeyRead]:
    """Verify the browser's attestation and store the passkey."""
    row = await ceremonies.finish_registration(db, email, credential, name)
    await db.commit()
    return DataResponse(data=PasskeyRead.model_validate(row))


@router.post("/passkey/login/begin")
async def begin_login(ceremonies: Passkeys) -> Response:
    """Start a discoverable passkey login."""
    return Response(content=ceremonies.begin_login(), media_type=_JSON)


@router.post("/passkey/login/finish")
async def finish_login(
    credential: Annotated[dict[str, Any], Body()],
    response: Response,
    db: DbSession,
    ceremonies: Passkeys,
) -> DataResponse[MessageResponse]:
    """Verify a passkey assertion and open a browser session."""
    email = await ceremonies.finish_login(db, credential)
    session = await SessionStore.create(db, email)
    await db.commit()
    set_session_cookie(response, session)
    return DataResponse(data=MessageResponse(message="ok"))


@router.get("/passkeys")
async def list_passkeys(
    email: CurrentEmail, db: DbSession
) -> DataResponse[list[PasskeyRead]]:
    """List the caller's passkeys."""
    rows = await PasskeyStore.list_by_owner(db, email)
    return DataResponse(data=[PasskeyRead.model_validate(row) for row in rows])


@router.delete("/passkeys/{credential_id}", status_code=204)
async def delete_passkey(
    credential_id: str, email: CurrentEmail, db: DbSession
) -> None:
    """Remove one of the caller's passkeys. 404 if it is not theirs."""
    await PasskeyStore.delete(db, credential_id, email)
    await db.commit()
