"""Aggregate router for all auth endpoints.

Routes are mounted at the root (no version prefix): browser-facing paths
like /login and /auth/verify are part of emailed links and must stay
stable. Which scheme protects each path is decided by the gatekeeper.
"""

from fastapi import APIRouter

from house_finder.api import api_keys, auth, cli_auth, identity, passkeys, users

router = APIRouter()

router.include_router(identity.router, tags=["identity"])
router.include_router(auth.router, tags=["auth"])
router.include_router(cli_auth.router, tags=["cli-auth"])
router.include_router(passkeys.router, tags=["passkeys"])
router.include_router(api_keys.router, tags=["api-keys"])
router.include_router(users.router, tags=["users"])
