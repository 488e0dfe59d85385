"""Shared dependencies for API endpoints.

Authentication itself happens in the gatekeeper middleware before routing.
These dependencies only read what it resolved, so handlers stay
scheme-agnostic.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from house_finder.core.database import get_db
from house_finder.core.errors import AdminRequiredError, UnauthorizedError
from house_finder.repositories.user_store import UserStore
from house_finder.services.passkey_ceremony import PasskeyCeremonies


def get_current_email(request: Request) -> str:
    """Address the gatekeeper attached to this request.

    Raises:
        UnauthorizedError: The route was reached without an identity
            (public routes never carry one).
    """
    email = getattr(request.state, "user_email", None)
    if not email:
        raise UnauthorizedError()
    return email


def require_admin(email: Annotated[str, Depends(get_current_email)]) -> str:
    """Current address, which must be the configured admin.

    Raises:
        AdminRequiredError: The caller is not the admin.
    """
    if not UserStore.is_admin(email):
        raise AdminRequiredError()
    return email


def get_passkey_ceremonies(request: Request) -> PasskeyCeremonies:
    """Application-wide passkey ceremony state."""
    return request.app.state.passkeys


# Type aliases for cleaner endpoint signatures
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentEmail = Annotated[str, Depends(get_current_email)]
AdminEmail = Annotated[str, Depends(require_admin)]
Passkeys = Annotated[PasskeyCeremonies, Depends(get_passkey_ceremonies)]
