"""Repository for registered WebAuthn passkeys.

Credentials are stored with the public key and signature counter in a JSON
column. StoredPasskey is the decoded form the ceremony code verifies
against.
"""

from dataclasses import dataclass, field

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from webauthn.helpers import base64url_to_bytes, bytes_to_base64url
from webauthn.helpers.structs import (
    AuthenticatorTransport,
    PublicKeyCredentialDescriptor,
)

from house_finder.core.errors import NotFoundError
from house_finder.models.passkey_credential import PasskeyCredential

_KNOWN_TRANSPORTS = {t.value for t in AuthenticatorTransport}


@dataclass(frozen=True)
class StoredPasskey:
    """Decoded passkey credential.

    Attributes:
        credential_id: Raw credential ID bytes.
        public_key: COSE-encoded public key.
        sign_count: Last signature counter reported by the authenticator.
        transports: Transport hints reported at registration.
        aaguid: Authenticator model identifier.
    """

    credential_id: bytes
    public_key: bytes
    sign_count: int
    transports: list[str] = field(default_factory=list)
    aaguid: str = ""

    @classmethod
    def from_row(cls, row: PasskeyCredential) -> "StoredPasskey":
        blob = row.credential_json
        return cls(
            credential_id=bytes.fromhex(row.id),
            public_key=base64url_to_bytes(blob["public_key"]),
            sign_count=int(blob.get("sign_count", 0)),
            transports=list(blob.get("transports", [])),
            aaguid=blob.get("aaguid", ""),
        )

    def to_json(self) -> dict:
        return {
            "public_key": bytes_to_base64url(self.public_key),
            "sign_count": self.sign_count,
            "transports": self.transports,
            "aaguid": self.aaguid,
        }

    def descriptor(self) -> PublicKeyCredentialDescriptor:
        """Descriptor used in exclude/allow lists of ceremony options."""
        return PublicKeyCredentialDescriptor(
            id=self.credential_id,
            transports=[
                AuthenticatorTransport(t)
                for t in self.transports
                if t in _KNOWN_TRANSPORTS
            ],
        )


class PasskeyStore:
    """Stateless repository for PasskeyCredential table operations."""

    @staticmethod
    async def save(
        db: AsyncSession, owner: str, name: str, credential: StoredPasskey
    ) -> PasskeyCredential:
        """Persist a newly registered credential.

        Args:
            db: Async database session.
            owner: Address the credential logs in as.
            name: Owner-chosen label.
            credential: Verified credential material.

        Returns:
            Created PasskeyCredential row.
        """
        row = PasskeyCredential(
            id=credential.credential_id.hex(),
            owner_email=owner,
            name=name,
            credential_json=credential.to_json(),
        )
        db.add(row)
        await db.flush()
        await db.refresh(row)
        return row

    @staticmethod
    async def list_by_owner(db: AsyncSession, owner: str) -> list[PasskeyCredential]:
        """List an owner's credentials, oldest first."""
        stmt = (
            select(PasskeyCredential)
            .where(PasskeyCredential.owner_email == owner)
            .order_by(PasskeyCredential.created_at)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def webauthn_credentials(db: AsyncSession, owner: str) -> list[StoredPasskey]:
        """Decoded credentials for an owner, for exclusion and assertion checks."""
        rows = await PasskeyStore.list_by_owner(db, owner)
        return [StoredPasskey.from_row(row) for row in rows]

    @staticmethod
    async def get(
        db: AsyncSession, credential_id: str, owner: str
    ) -> PasskeyCredential | None:
        """Fetch one credential by hex ID, scoped to its owner."""
        stmt = select(PasskeyCredential).where(
            PasskeyCredential.id == credential_id,
            PasskeyCredential.owner_email == owner,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def update_sign_count(
        db: AsyncSession, row: PasskeyCredential, sign_count: int
    ) -> None:
        """Record the counter reported by the latest successful assertion."""
        # Reassign so SQLAlchemy sees the JSON column change
        row.credential_json = {**row.credential_json, "sign_count": sign_count}
        await db.flush()

    @staticmethod
    async def delete(db: AsyncSession, credential_id: str, owner: str) -> None:
        """Remove one of an owner's credentials.

        Raises:
            NotFoundError: No credential with this ID belongs to the owner.
        """
        stmt = delete(PasskeyCredential).where(
            PasskeyCredential.id == credential_id,
            PasskeyCredential.owner_email == owner,
        )
        result = await db.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise NotFoundError("Passkey", credential_id)

    @staticmethod
    async def has_any(db: AsyncSession, owners: list[str]) -> bool:
        """Whether any of the given addresses has a registered passkey."""
        if not owners:
            return False
        stmt = (
            select(func.count())
            .select_from(PasskeyCredential)
            .where(PasskeyCredential.owner_email.in_(owners))
        )
        result = await db.execute(stmt)
        return result.scalar_one() > 0
