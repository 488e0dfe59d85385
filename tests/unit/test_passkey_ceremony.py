"""Tests for PasskeyCeremonies.

WebAuthn cryptography is exercised by the webauthn library's own tests;
here the parse/verify calls are patched so the tests cover ceremony
state, user resolution, and persistence.
"""

import hashlib
import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.exceptions import (
    InvalidAuthenticationResponse,
    InvalidRegistrationResponse,
)
from webauthn.helpers.structs import AuthenticatorTransport

from house_finder.core.errors import InvalidCredentialError, ValidationError
from house_finder.repositories.passkey_store import PasskeyStore, StoredPasskey
from house_finder.repositories.user_store import UserStore
from house_finder.services.passkey_ceremony import PasskeyCeremonies, user_handle
from tests.conftest import TEST_ADMIN_EMAIL

_MODULE = "house_finder.services.passkey_ceremony"
_PATCH_PARSE_REG = f"{_MODULE}.parse_registration_credential_json"
_PATCH_VERIFY_REG = f"{_MODULE}.verify_registration_response"
_PATCH_PARSE_AUTH = f"{_MODULE}.parse_authentication_credential_json"
_PATCH_PARSE_CLIENT_DATA = f"{_MODULE}.parse_client_data_json"
_PATCH_VERIFY_AUTH = f"{_MODULE}.verify_authentication_response"

_CREDENTIAL_ID = b"\xaa\xbb\xcc"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _challenge(options_json: str) -> bytes:
    return base64url_to_bytes(json.loads(options_json)["challenge"])


def _verified_registration() -> SimpleNamespace:
    return SimpleNamespace(
        credential_id=_CREDENTIAL_ID,
        credential_public_key=b"cose-public-key",
        sign_count=0,
        aaguid="00000000-0000-0000-0000-000000000000",
    )


def _parsed_registration() -> SimpleNamespace:
    return SimpleNamespace(
        response=SimpleNamespace(transports=[AuthenticatorTransport.INTERNAL])
    )


def _parsed_assertion(handle: bytes | None, raw_id: bytes = _CREDENTIAL_ID):
    return SimpleNamespace(
        raw_id=raw_id,
        response=SimpleNamespace(client_data_json=b"{}", user_handle=handle),
    )


async def _register_admin_passkey(db: AsyncSession) -> None:
    await PasskeyStore.save(
        db,
        TEST_ADMIN_EMAIL,
        "Laptop",
        StoredPasskey(
            credential_id=_CREDENTIAL_ID,
            public_key=b"cose-public-key",
            sign_count=3,
        ),
    )


class TestUserHandle:
    def test_user_handle_is_sha256_of_normalized_email(self):
        expected = hashlib.sha256(b"admin@example.com").digest()

        assert user_handle("Admin@Example.com") == expected


class TestRegistration:
    """Tests for begin_registration() / finish_registration()."""

    async def test_begin_returns_options_for_user(self, db_session: AsyncSession):
        ceremonies = PasskeyCeremonies()

        options = json.loads(
            await ceremonies.begin_registration(db_session, TEST_ADMIN_EMAIL)
        )

        assert options["user"]["name"] == TEST_ADMIN_EMAIL
        assert base64url_to_bytes(options["user"]["id"]) == user_handle(
            TEST_ADMIN_EMAIL
        )
        assert options["challenge"]
        assert options["authenticatorSelection"]["residentKey"] == "required"

    async def test_begin_excludes_existing_credentials(
        self, db_session: AsyncSession
    ):
        await _register_admin_passkey(db_session)
        ceremonies = PasskeyCeremonies()

        options = json.loads(
            await ceremonies.begin_registration(db_session, TEST_ADMIN_EMAIL)
        )

        excluded = [c["id"] for c in options["excludeCredentials"]]
        assert excluded == [bytes_to_base64url(_CREDENTIAL_ID)]

    async def test_finish_without_begin_is_rejected(self, db_session: AsyncSession):
        ceremonies = PasskeyCeremonies()

        with pytest.raises(ValidationError):
            await ceremonies.finish_registration(db_session, TEST_ADMIN_EMAIL, {})

    async def test_finish_stores_credential(self, db_session: AsyncSession):
        ceremonies = PasskeyCeremonies()
        challenge = _challenge(
            await ceremonies.begin_registration(db_session, TEST_ADMIN_EMAIL)
        )

        with (
            patch(_PATCH_PARSE_REG, return_value=_parsed_registration()),
            patch(
                _PATCH_VERIFY_REG, return_value=_verified_registration()
            ) as mock_verify,
        ):
            row = await ceremonies.finish_registration(
                db_session, TEST_ADMIN_EMAIL, {"id": "x"}, "Laptop"
            )

        assert mock_verify.call_args.kwargs["expected_challenge"] == challenge
        assert row.id == _CREDENTIAL_ID.hex()
        assert row.name == "Laptop"
        assert row.owner_email == TEST_ADMIN_EMAIL
        stored = StoredPasskey.from_row(row)
        assert stored.public_key == b"cose-public-key"
        assert stored.transports == ["internal"]

    async def test_blank_name_falls_back_to_default(self, db_session: AsyncSession):
        ceremonies = PasskeyCeremonies()
        await ceremonies.begin_registration(db_session, TEST_ADMIN_EMAIL)

        with (
            patch(_PATCH_PARSE_REG, return_value=_parsed_registration()),
            patch(_PATCH_VERIFY_REG, return_value=_verified_registration()),
        ):
            row = await ceremonies.finish_registration(
                db_session, TEST_ADMIN_EMAIL, {"id": "x"}, "   "
            )

        assert row.name == "Passkey"

    async def test_state_is_single_use(self, db_session: AsyncSession):
        """A finished (or failed) registration cannot be finished again."""
        ceremonies = PasskeyCeremonies()
        await ceremonies.begin_registration(db_session, TEST_ADMIN_EMAIL)

        with (
            patch(_PATCH_PARSE_REG, return_value=_parsed_registration()),
            patch(
                _PATCH_VERIFY_REG,
                side_effect=InvalidRegistrationResponse("bad attestation"),
            ),
        ):
            with pytest.raises(InvalidCredentialError):
                await ceremonies.finish_registration(
                    db_session, TEST_ADMIN_EMAIL, {"id": "x"}
                )

        with pytest.raises(ValidationError):
            await ceremonies.finish_registration(
                db_session, TEST_ADMIN_EMAIL, {"id": "x"}
            )

    async def test_registration_state_expires(self, db_session: AsyncSession):
        clock = FakeClock()
        ceremonies = PasskeyCeremonies(ttl=300, clock=clock)
        await ceremonies.begin_registration(db_session, TEST_ADMIN_EMAIL)

        clock.now += 301

        with pytest.raises(ValidationError):
            await ceremonies.finish_registration(
                db_session, TEST_ADMIN_EMAIL, {"id": "x"}
            )


class TestLogin:
    """Tests for begin_login() / finish_login()."""

    async def _finish(
        self,
        ceremonies: PasskeyCeremonies,
        db: AsyncSession,
        challenge: bytes,
        handle: bytes | None,
        verify: MagicMock | None = None,
    ) -> str:
        verify = verify or MagicMock(return_value=SimpleNamespace(new_sign_count=4))
        with (
            patch(_PATCH_PARSE_AUTH, return_value=_parsed_assertion(handle)),
            patch(
                _PATCH_PARSE_CLIENT_DATA,
                return_value=SimpleNamespace(challenge=challenge),
            ),
            patch(_PATCH_VERIFY_AUTH, verify),
        ):
            return await ceremonies.finish_login(db, {"id": "x"})

    async def test_begin_is_discoverable(self):
        options = json.loads(PasskeyCeremonies().begin_login())

        assert options["challenge"]
        assert options.get("allowCredentials", []) == []

    async def test_finish_resolves_admin(self, db_session: AsyncSession):
        await _register_admin_passkey(db_session)
        ceremonies = PasskeyCeremonies()
        challenge = _challenge(ceremonies.begin_login())
        verify = MagicMock(return_value=SimpleNamespace(new_sign_count=4))

        email = await self._finish(
            ceremonies, db_session, challenge, user_handle(TEST_ADMIN_EMAIL), verify
        )

        assert email == TEST_ADMIN_EMAIL
        kwargs = verify.call_args.kwargs
        assert kwargs["expected_challenge"] == challenge
        assert kwargs["credential_public_key"] == b"cose-public-key"
        assert kwargs["credential_current_sign_count"] == 3
        row = await PasskeyStore.get(db_session, _CREDENTIAL_ID.hex(), email)
        assert StoredPasskey.from_row(row).sign_count == 4

    async def test_finish_resolves_authorized_user(self, db_session: AsyncSession):
        await UserStore.add(db_session, "bob@example.com", "Bob")
        await PasskeyStore.save(
            db_session,
            "bob@example.com",
            "Phone",
            StoredPasskey(credential_id=_CREDENTIAL_ID, public_key=b"k", sign_count=0),
        )
        ceremonies = PasskeyCeremonies()
        challenge = _challenge(ceremonies.begin_login())

        email = await self._finish(
            ceremonies, db_session, challenge, user_handle("bob@example.com")
        )

        assert email == "bob@example.com"

    async def test_concurrent_logins_do_not_collide(self, db_session: AsyncSession):
        """Two browsers can be mid-login at once; both complete."""
        await _register_admin_passkey(db_session)
        ceremonies = PasskeyCeremonies()
        first = _challenge(ceremonies.begin_login())
        second = _challenge(ceremonies.begin_login())
        handle = user_handle(TEST_ADMIN_EMAIL)

        assert await self._finish(ceremonies, db_session, second, handle)
        assert await self._finish(ceremonies, db_session, first, handle)

    async def test_unknown_challenge_is_rejected(self, db_session: AsyncSession):
        await _register_admin_passkey(db_session)
        ceremonies = PasskeyCeremonies()

        with pytest.raises(InvalidCredentialError):
            await self._finish(
                ceremonies, db_session, b"never-issued", user_handle(TEST_ADMIN_EMAIL)
            )

    async def test_challenge_is_single_use(self, db_session: AsyncSession):
        await _register_admin_passkey(db_session)
        ceremonies = PasskeyCeremonies()
        challenge = _challenge(ceremonies.begin_login())
        handle = user_handle(TEST_ADMIN_EMAIL)
        await self._finish(ceremonies, db_session, challenge, handle)

        with pytest.raises(InvalidCredentialError):
            await self._finish(ceremonies, db_session, challenge, handle)

    async def test_expired_challenge_is_rejected(self, db_session: AsyncSession):
        await _register_admin_passkey(db_session)
        clock = FakeClock()
        ceremonies = PasskeyCeremonies(ttl=60, clock=clock)
        challenge = _challenge(ceremonies.begin_login())
        clock.now += 61

        with pytest.raises(InvalidCredentialError):
            await self._finish(
                ceremonies, db_session, challenge, user_handle(TEST_ADMIN_EMAIL)
            )

    async def test_unknown_user_handle_is_rejected(self, db_session: AsyncSession):
        """A handle that matches no authorized address cannot log in."""
        await _register_admin_passkey(db_session)
        ceremonies = PasskeyCeremonies()
        challenge = _challenge(ceremonies.begin_login())

        with pytest.raises(InvalidCredentialError):
            await self._finish(
                ceremonies, db_session, challenge, user_handle("mallory@example.com")
            )

    async def test_missing_user_handle_is_rejected(self, db_session: AsyncSession):
        await _register_admin_passkey(db_session)
        ceremonies = PasskeyCeremonies()
        challenge = _challenge(ceremonies.begin_login())

        with pytest.raises(InvalidCredentialError):
            await self._finish(ceremonies, db_session, challenge, None)

    async def test_bad_signature_is_rejected(self, db_session: AsyncSession):
        await _register_admin_passkey(db_session)
        ceremonies = PasskeyCeremonies()
        challenge = _challenge(ceremonies.begin_login())
        verify = MagicMock(side_effect=InvalidAuthenticationResponse("bad sig"))

        with pytest.raises(InvalidCredentialError):
            await self._finish(
                ceremonies,
                db_session,
                challenge,
                user_handle(TEST_ADMIN_EMAIL),
                verify,
            )
