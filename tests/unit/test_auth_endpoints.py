"""Tests for the magic link login endpoints.

POST /auth/login, GET /auth/verify, GET|POST /auth/logout, GET /login.
"""

from unittest.mock import AsyncMock, patch

from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from house_finder.core.config import settings
from house_finder.models.auth_token import AuthToken
from house_finder.models.session import Session
from house_finder.repositories.token_store import TokenStore
from house_finder.repositories.user_store import UserStore
from house_finder.services.login_flow import LOGIN_LINK_SENT_MESSAGE
from tests.conftest import TEST_ADMIN_EMAIL, TEST_USER_EMAIL

_LOGIN_URL = "/auth/login"
_VERIFY_URL = "/auth/verify"
_LOGOUT_URL = "/auth/logout"
_PATCH_SEND_EMAIL = "house_finder.api.auth.send_magic_link"


async def _token_count(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(AuthToken))
    return result.scalar_one()


async def _issue(db: AsyncSession, email: str = TEST_ADMIN_EMAIL) -> str:
    token = await TokenStore.issue(db, email)
    await db.commit()
    return token


class TestLoginRequest:
    """Tests for POST /auth/login."""

    async def test_unauthorized_address_gets_generic_answer(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        """An address not on the allow list sees the usual message and nothing is issued."""
        with patch(_PATCH_SEND_EMAIL, new_callable=AsyncMock) as mock_send:
            response = await client.post(_LOGIN_URL, json={"email": "alice@example.com"})

        assert response.status_code == 200
        assert response.json()["data"]["message"] == LOGIN_LINK_SENT_MESSAGE
        mock_send.assert_not_awaited()
        assert await _token_count(db_session) == 0

    async def test_authorized_address_gets_same_answer_and_a_link(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        with patch(_PATCH_SEND_EMAIL, new_callable=AsyncMock) as mock_send:
            response = await client.post(_LOGIN_URL, json={"email": TEST_ADMIN_EMAIL})

        assert response.status_code == 200
        assert response.json()["data"]["message"] == LOGIN_LINK_SENT_MESSAGE
        mock_send.assert_awaited_once()
        kwargs = mock_send.call_args.kwargs
        assert kwargs["to_email"] == TEST_ADMIN_EMAIL
        assert len(kwargs["token"]) == 64
        assert await _token_count(db_session) == 1

    async def test_responses_are_identical(self, client: AsyncClient):
        """Authorized and unauthorized addresses get byte-identical bodies."""
        with patch(_PATCH_SEND_EMAIL, new_callable=AsyncMock):
            known = await client.post(_LOGIN_URL, json={"email": TEST_ADMIN_EMAIL})
            unknown = await client.post(_LOGIN_URL, json={"email": "alice@example.com"})

        assert known.status_code == unknown.status_code
        assert known.content == unknown.content

    async def test_address_case_is_ignored(self, client: AsyncClient):
        with patch(_PATCH_SEND_EMAIL, new_callable=AsyncMock) as mock_send:
            await client.post(_LOGIN_URL, json={"email": "Admin@Example.COM"})

        assert mock_send.call_args.kwargs["to_email"] == TEST_ADMIN_EMAIL

    async def test_malformed_email_is_validation_error(self, client: AsyncClient):
        response = await client.post(_LOGIN_URL, json={"email": "not-an-email"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_unknown_fields_rejected(self, client: AsyncClient):
        response = await client.post(
            _LOGIN_URL, json={"email": TEST_ADMIN_EMAIL, "admin": True}
        )

        assert response.status_code == 400


class TestVerify:
    """Tests for GET /auth/verify."""

    async def test_valid_token_opens_session(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        token = await _issue(db_session)

        response = await client.get(_VERIFY_URL, params={"token": token})

        assert response.status_code == 303
        assert response.headers["location"] == "/"
        assert response.headers["Referrer-Policy"] == "no-referrer"
        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"{settings.session_cookie_name}=")
        assert "HttpOnly" in cookie

        home = await client.get("/")
        assert home.status_code == 200
        assert home.json()["data"]["email"] == TEST_ADMIN_EMAIL

    async def test_token_cannot_be_reused(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        token = await _issue(db_session)
        first = await client.get(_VERIFY_URL, params={"token": token})
        assert first.status_code == 303

        second = await client.get(_VERIFY_URL, params={"token": token})

        assert second.status_code == 401
        assert second.json()["error"]["code"] == "INVALID_CREDENTIAL"

    async def test_unknown_token_is_rejected(self, client: AsyncClient):
        response = await client.get(_VERIFY_URL, params={"token": "ab" * 32})

        assert response.status_code == 401
        assert "set-cookie" not in response.headers

    async def test_removed_user_link_stops_working(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        user = await UserStore.add(db_session, TEST_USER_EMAIL, "Bob")
        await db_session.commit()
        token = await _issue(db_session, TEST_USER_EMAIL)
        await UserStore.delete(db_session, user.id)
        await db_session.commit()

        response = await client.get(_VERIFY_URL, params={"token": token})

        assert response.status_code == 401


class TestLogout:
    """Tests for GET|POST /auth/logout."""

    async def test_logout_destroys_session(
        self, admin_client: AsyncClient, db_session: AsyncSession
    ):
        response = await admin_client.post(_LOGOUT_URL)

        assert response.status_code == 303
        assert response.headers["location"] == "/login"
        count = await db_session.execute(select(func.count()).select_from(Session))
        assert count.scalar_one() == 0

    async def test_logout_via_get(self, admin_client: AsyncClient):
        response = await admin_client.get(_LOGOUT_URL)

        assert response.status_code == 303

    async def test_logout_without_session(self, client: AsyncClient):
        response = await client.get(_LOGOUT_URL)

        assert response.status_code == 303
        assert response.headers["location"] == "/login"


class TestLoginPage:
    async def test_reports_passkey_availability(self, client: AsyncClient):
        response = await client.get("/login")

        assert response.status_code == 200
        assert response.json()["data"] == {"passkeys_available": False}
