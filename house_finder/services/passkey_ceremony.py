"""WebAuthn registration and login ceremonies.

Each ceremony is a begin/finish pair. Begin issues a random challenge and
remembers it in memory; finish verifies the browser's response against
that challenge and discards it. Ceremony state is lost on restart and
expires after ``ttl`` seconds.

Registration state is keyed by the registering address, so a second
begin for the same address replaces the first. Login is discoverable
(no address is entered), so its state is keyed by the challenge itself;
concurrent logins from different browsers never collide.

The WebAuthn user handle for an address is ``sha256(address)``. At login,
the handle returned by the authenticator is matched against every address
that may currently log in.
"""

import hashlib
import hmac
import threading
import time
from collections.abc import Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from webauthn import (
    generate_authentication_options,
    generate_registration_options,
    options_to_json,
    verify_authentication_response,
    verify_registration_response,
)
from webauthn.helpers import (
    parse_authentication_credential_json,
    parse_client_data_json,
    parse_registration_credential_json,
)
from webauthn.helpers.exceptions import WebAuthnException
from webauthn.helpers.structs import (
    AuthenticatorSelectionCriteria,
    ResidentKeyRequirement,
    UserVerificationRequirement,
)

from house_finder.core.config import settings
from house_finder.core.errors import InvalidCredentialError, ValidationError
from house_finder.models.passkey_credential import PasskeyCredential
from house_finder.repositories.passkey_store import PasskeyStore, StoredPasskey
from house_finder.repositories.user_store import UserStore, normalize_email

DEFAULT_PASSKEY_NAME = "Passkey"

_REGISTRATION_FAILED_MSG = "Passkey registration failed"
_LOGIN_FAILED_MSG = "Passkey login failed"


def user_handle(email: str) -> bytes:
    """WebAuthn user handle for an address."""
    return hashlib.sha256(normalize_email(email).encode()).digest()


class PasskeyCeremonies:
    """In-memory state for in-flight passkey ceremonies.

    One instance lives on ``app.state.passkeys`` for the lifetime of the
    application.

    Args:
        ttl: Seconds a begun ceremony stays valid.
        clock: Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._registrations: dict[str, tuple[bytes, float]] = {}
        self._logins: dict[bytes, float] = {}
        self._lock = threading.Lock()

    # -----------------------------------------------------------------
    # State bookkeeping
    # -----------------------------------------------------------------

    def _prune(self, now: float) -> None:
        cutoff = now - self.ttl
        self._registrations = {
            email: entry
            for email, entry in self._registrations.items()
            if entry[1] > cutoff
        }
        self._logins = {
            challenge: started
            for challenge, started in self._logins.items()
            if started > cutoff
        }

    def _remember_registration(self, email: str, challenge: bytes) -> None:
        with self._lock:
            now = self._clock()
            self._prune(now)
            self._registrations[email] = (challenge, now)

    def _take_registration(self, email: str) -> bytes | None:
        with self._lock:
            self._prune(self._clock())
            entry = self._registrations.pop(email, None)
        return entry[0] if entry else None

    def _remember_login(self, challenge: bytes) -> None:
        with self._lock:
            now = self._clock()
            self._prune(now)
            self._logins[challenge] = now

    def _take_login(self, challenge: bytes) -> bool:
        with self._lock:
            self._prune(self._clock())
            return self._logins.pop(challenge, None) is not None

    # -----------------------------------------------------------------
    # Registration
    # -----------------------------------------------------------------

    async def begin_registration(self, db: AsyncSession, email: str) -> str:
        """Start registering a new passkey for a logged-in address.

        Args:
            db: Async database session.
            email: Address the passkey will log in as.

        Returns:
            PublicKeyCredentialCreationOptions as a JSON string.
        """
        email = normalize_email(email)
        existing = await PasskeyStore.webauthn_credentials(db, email)
        options = generate_registration_options(
            rp_id=settings.rp_id,
            rp_name=settings.webauthn_rp_name,
            user_id=user_handle(email),
            user_name=email,
            user_display_name=email,
            authenticator_selection=AuthenticatorSelectionCriteria(
                resident_key=ResidentKeyRequirement.REQUIRED,
                user_verification=UserVerificationRequirement.PREFERRED,
            ),
            exclude_credentials=[cred.descriptor() for cred in existing],
        )
        self._remember_registration(email, options.challenge)
        return options_to_json(options)

    async def finish_registration(
        self,
        db: AsyncSession,
        email: str,
        credential: str | dict[str, Any],
        name: str = DEFAULT_PASSKEY_NAME,
    ) -> PasskeyCredential:
        """Verify the authenticator's attestation and store the credential.

        Args:
            db: Async database session.
            email: Address that began the registration.
            credential: RegistrationResponseJSON from the browser.
            name: Owner-chosen label.

        Returns:
            Stored PasskeyCredential.

        Raises:
            ValidationError: No registration is in progress for the address.
            InvalidCredentialError: The response does not verify.
        """
        email = normalize_email(email)
        challenge = self._take_registration(email)
        if challenge is None:
            raise ValidationError("No passkey registration in progress")

        try:
            parsed = parse_registration_credential_json(credential)
            verified = verify_registration_response(
                credential=parsed,
                expected_challenge=challenge,
                expected_rp_id=settings.rp_id,
                expected_origin=settings.expected_origin,
            )
        except (WebAuthnException, ValueError) as exc:
            raise InvalidCredentialError(_REGISTRATION_FAILED_MSG) from exc

        transports = parsed.response.transports or []
        stored = StoredPasskey(
            credential_id=verified.credential_id,
            public_key=verified.credential_public_key,
            sign_count=verified.sign_count,
            transports=[str(getattr(t, "value", t)) for t in transports],
            aaguid=verified.aaguid,
        )
        return await PasskeyStore.save(
            db, email, name.strip() or DEFAULT_PASSKEY_NAME, stored
        )

    # -----------------------------------------------------------------
    # Login
    # -----------------------------------------------------------------

    def begin_login(self) -> str:
        """Start a discoverable passkey login.

        Returns:
            PublicKeyCredentialRequestOptions as a JSON string.
        """
        options = generate_authentication_options(
            rp_id=settings.rp_id,
            user_verification=UserVerificationRequirement.PREFERRED,
        )
        self._remember_login(options.challenge)
        return options_to_json(options)

    async def finish_login(
        self, db: AsyncSession, credential: str | dict[str, Any]
    ) -> str:
        """Verify an assertion and resolve the address it logs in as.

        Args:
            db: Async database session.
            credential: AuthenticationResponseJSON from the browser.

        Returns:
            Authenticated address. The caller opens the session.

        Raises:
            InvalidCredentialError: Unknown or expired challenge, unknown
                user or credential, or a signature that does not verify.
        """
        try:
            parsed = parse_authentication_credential_json(credential)
            client_data = parse_client_data_json(parsed.response.client_data_json)
        except (WebAuthnException, ValueError) as exc:
            raise InvalidCredentialError(_LOGIN_FAILED_MSG) from exc

        challenge = client_data.challenge
        if not self._take_login(challenge):
            raise InvalidCredentialError(_LOGIN_FAILED_MSG)

        handle = parsed.response.user_handle
        if not handle:
            raise InvalidCredentialError(_LOGIN_FAILED_MSG)

        email = None
        for candidate in await UserStore.all_emails(db):
            if hmac.compare_digest(user_handle(candidate), handle):
                email = candidate
                break
        if email is None:
            raise InvalidCredentialError(_LOGIN_FAILED_MSG)

        row = await PasskeyStore.get(db, parsed.raw_id.hex(), email)
        if row is None:
            raise InvalidCredentialError(_LOGIN_FAILED_MSG)
        stored = StoredPasskey.from_row(row)

        try:
            verified = verify_authentication_response(
                credential=parsed,
                expected_challenge=challenge,
                expected_rp_id=settings.rp_id,
                expected_origin=settings.expected_origin,
                credential_public_key=stored.public_key,
                credential_current_sign_count=stored.sign_count,
            )
        except (WebAuthnException, ValueError) as exc:
            raise InvalidCredentialError(_LOGIN_FAILED_MSG) from exc

        await PasskeyStore.update_sign_count(db, row, verified.new_sign_count)
        return email
