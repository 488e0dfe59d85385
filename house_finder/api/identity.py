"""Identity endpoints.

- GET / — home; reachable only with a browser session
- GET /api/whoami — who the current credential authenticates as
"""

from fastapi import APIRouter, Request

from house_finder.api.deps import CurrentEmail
from house_finder.core.responses import DataResponse
from house_finder.repositories.user_store import UserStore
from house_finder.schemas.auth import WhoAmI

router = APIRouter()


def _whoami(request: Request, email: str) -> WhoAmI:
    return WhoAmI(
        email=email,
        is_admin=UserStore.is_admin(email),
        auth_method=getattr(request.state, "auth_method", "session"),
    )


@router.get("/")
async def home(request: Request, email: CurrentEmail) -> DataResponse[WhoAmI]:
    return DataResponse(data=_whoami(request, email))


@router.get("/api/whoami")
async def whoami(request: Request, email: CurrentEmail) -> DataResponse[WhoAmI]:
    return DataResponse(data=_whoami(request, email))
