"""CLI login endpoints.

A CLI user requests a login link like a browser user does, but the link
leads to /cli/auth/complete, which mints a fresh API key named "CLI" and
shows it once for the user to paste into their CLI config.

Endpoints:
- GET /cli/auth — login page info
- POST /cli/auth — request a CLI login link
- GET /cli/auth/verify — redeem the link, open a session, continue to complete
- GET /cli/auth/complete — mint and show the CLI API key
"""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Query, Request
from fastapi.responses import RedirectResponse

from house_finder.api.auth import passkeys_available
from house_finder.api.deps import DbSession
from house_finder.core.auth import set_session_cookie
from house_finder.core.config import settings
from house_finder.core.email import send_magic_link
from house_finder.core.rate_limiting import limiter
from house_finder.core.responses import DataResponse
from house_finder.repositories.api_key_store import APIKeyStore
from house_finder.repositories.session_store import SessionStore
from house_finder.repositories.user_store import UserStore
from house_finder.schemas.auth import (
    APIKeyCreated,
    LoginPageInfo,
    LoginRequest,
    MessageResponse,
)
from house_finder.services.login_flow import (
    LOGIN_LINK_SENT_MESSAGE,
    request_login,
    start_session,
)

router = APIRouter(prefix="/cli/auth")

CLI_KEY_NAME = "CLI"


@router.get("")
async def cli_login_page(db: DbSession) -> DataResponse[LoginPageInfo]:
    """Data for the CLI login page."""
    return DataResponse(
        data=LoginPageInfo(passkeys_available=await passkeys_available(db))
    )


@router.post("")
@limiter.limit(lambda: settings.rate_limit_login)
async def submit_cli_login(
    request: Request,  # noqa: ARG001
    body: LoginRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
) -> DataResponse[MessageResponse]:
    """Request a CLI login link. Same enumeration-safe answer as /auth/login."""
    issued = await request_login(db, body.email)
    await db.commit()

    if issued is not None:
        email, token = issued
        background_tasks.add_task(
            send_magic_link, to_email=email, token=token, cli=True
        )

    return DataResponse(data=MessageResponse(message=LOGIN_LINK_SENT_MESSAGE))


@router.get("/verify")
async def verify_cli_login(
    token: Annotated[str, Query(min_length=1, max_length=128)],
    db: DbSession,
) -> RedirectResponse:
    """Redeem a CLI login link, then continue to key issuance."""
    session = await start_session(db, token)
    await db.commit()

    response = RedirectResponse(url="/cli/auth/complete", status_code=303)
    set_session_cookie(response, session)
    response.headers["Referrer-Policy"] = "no-referrer"
    return response


@router.get("/complete", response_model=None)
async def complete_cli_login(
    request: Request, db: DbSession
) -> DataResponse[APIKeyCreated] | RedirectResponse:
    """Mint a CLI API key for the logged-in browser.

    Without a valid session the browser is sent back to /cli/auth.
    """
    email = await SessionStore.validate(db, request)
    if email is None or not await UserStore.is_authorized(db, email):
        await db.commit()
        return RedirectResponse(url="/cli/auth", status_code=303)

    raw_key, record = await APIKeyStore.create(db, CLI_KEY_NAME, email)
    await db.commit()

    return DataResponse(data=APIKeyCreated.from_record(record, raw_key))
