"""Magic link login and logout endpoints.

Endpoints:
- GET /login — login page info (whether passkey login is offered)
- POST /auth/login — request a login link (same answer for every address)
- GET /auth/verify — redeem a login link, open a session, redirect home
- GET|POST /auth/logout — destroy the session, redirect to /login
"""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Query, Request
from fastapi.responses import RedirectResponse

from house_finder.api.deps import DbSession
from house_finder.core.auth import set_session_cookie
from house_finder.core.config import settings
from house_finder.core.email import send_magic_link
from house_finder.core.rate_limiting import limiter
from house_finder.core.responses import DataResponse
from house_finder.repositories.passkey_store import PasskeyStore
from house_finder.repositories.session_store import SessionStore
from house_finder.repositories.user_store import UserStore
from house_finder.schemas.auth import LoginPageInfo, LoginRequest, MessageResponse
from house_finder.services.login_flow import (
    LOGIN_LINK_SENT_MESSAGE,
    request_login,
    start_session,
)

router = APIRouter()


async def passkeys_available(db: DbSession) -> bool:
    """Whether anyone who may log in has registered a passkey."""
    return await PasskeyStore.has_any(db, await UserStore.all_emails(db))


@router.get("/login")
async def login_page(db: DbSession) -> DataResponse[LoginPageInfo]:
    """Data for the login page."""
    return DataResponse(
        data=LoginPageInfo(passkeys_available=await passkeys_available(db))
    )


@router.post("/auth/login")
@limiter.limit(lambda: settings.rate_limit_login)
async def submit_login(
    request: Request,  # noqa: ARG001
    body: LoginRequest,
    background_tasks: BackgroundTasks,
    db: DbSession,
) -> DataResponse[MessageResponse]:
    """Request a magic link sign-in email.

    Always returns the same message whether or not the address may log in,
    so the endpoint cannot be used to discover authorized addresses. The
    email is sent as a background task so response time does not depend
    on delivery either.

    Rate limit: per IP, configured by RATE_LIMIT_LOGIN.
    """
    issued = await request_login(db, body.email)
    await db.commit()

    if issued is not None:
        email, token = issued
        background_tasks.add_task(send_magic_link, to_email=email, token=token)

    return DataResponse(data=MessageResponse(message=LOGIN_LINK_SENT_MESSAGE))


@router.get("/auth/verify")
async def verify_login(
    token: Annotated[str, Query(min_length=1, max_length=128)],
    db: DbSession,
) -> RedirectResponse:
    """Redeem a login link and open a browser session.

    Raises InvalidCredentialError (401) for unknown, used, or expired links.
    """
    session = await start_session(db, token)
    await db.commit()

    response = RedirectResponse(url="/", status_code=303)
    set_session_cookie(response, session)
    # Keep the token out of Referer headers on the next page
    response.headers["Referrer-Policy"] = "no-referrer"
    return response


@router.api_route("/auth/logout", methods=["GET", "POST"])
async def logout(request: Request, db: DbSession) -> RedirectResponse:
    """Destroy the current session (if any) and return to the login page."""
    response = RedirectResponse(url="/login", status_code=303)
    await SessionStore.destroy(db, request, response)
    await db.commit()
    return response
