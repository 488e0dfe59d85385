"""Magic link delivery via the Resend API.

In dev mode the link is logged instead of sent, so a local instance works
without an email provider. Delivery failures are logged and never surface
to the caller: the login response must look the same either way, and the
token stays valid until it expires.
"""

import logging
from urllib.parse import quote, urlencode

import httpx

from house_finder.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0

_BROWSER_VERIFY_PATH = "/auth/verify"
_CLI_VERIFY_PATH = "/cli/auth/verify"


def build_login_url(token: str, *, cli: bool = False) -> str:
    """Absolute login link for a token.

    Args:
        token: Plain login token.
        cli: Build the CLI variant, which ends in an API key instead of a
            browser session.
    """
    path = _CLI_VERIFY_PATH if cli else _BROWSER_VERIFY_PATH
    params = urlencode({"token": token}, quote_via=quote)
    return f"{settings.base_url.rstrip('/')}{path}?{params}"


async def send_magic_link(*, to_email: str, token: str, cli: bool = False) -> str:
    """Deliver a login link.

    Args:
        to_email: Recipient address.
        token: Plain login token.
        cli: Send the CLI variant of the link.

    Returns:
        The login URL that was sent (or logged).
    """
    login_url = build_login_url(token, cli=cli)

    if settings.dev_mode:
        logger.info("Magic link for %s: %s", to_email, login_url)
        return login_url

    subject = "House Finder CLI login" if cli else "Sign in to House Finder"
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={
                    "Authorization": f"Bearer {settings.resend_api_key.get_secret_value()}",
                },
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": subject,
                    "text": (
                        f"Click this link to sign in:\n\n{login_url}\n\n"
                        f"This link expires in {settings.login_token_ttl_minutes} "
                        "minutes and can only be used once. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError:
        logger.warning("Failed to send magic link email", exc_info=True)
    return login_url
