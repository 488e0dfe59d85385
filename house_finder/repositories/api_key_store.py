"""Repository for bearer API keys.

Raw keys look like ``hf_<64 hex>``. Only the SHA-256 hash and the first
eight characters are stored; the raw key is returned once from create().
"""

import secrets
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from house_finder.core.auth import hash_secret
from house_finder.core.config import settings
from house_finder.core.errors import NotFoundError
from house_finder.models.api_key import APIKey

_DISPLAY_PREFIX_LENGTH = 8


class APIKeyStore:
    """Stateless repository for APIKey table operations."""

    @staticmethod
    async def create(db: AsyncSession, name: str, owner: str) -> tuple[str, APIKey]:
        """Mint a new API key.

        Args:
            db: Async database session.
            name: Owner-chosen label.
            owner: Address the key authenticates as.

        Returns:
            (raw_key, record). The raw key cannot be recovered later.
        """
        raw_key = settings.api_key_prefix + secrets.token_hex(32)
        record = APIKey(
            name=name,
            key_prefix=raw_key[:_DISPLAY_PREFIX_LENGTH],
            key_hash=hash_secret(raw_key),
            owner_email=owner,
        )
        db.add(record)
        await db.flush()
        await db.refresh(record)
        return raw_key, record

    @staticmethod
    async def validate(db: AsyncSession, raw_key: str) -> str | None:
        """Resolve a raw bearer key to its owner.

        Looks the key up by hash and stamps last_used_at in the same
        statement.

        Args:
            db: Async database session.
            raw_key: Key from the Authorization header.

        Returns:
            Owner email, or None if no key matches.
        """
        stmt = (
            update(APIKey)
            .where(APIKey.key_hash == hash_secret(raw_key))
            .values(last_used_at=datetime.now(UTC))
            .returning(APIKey.owner_email)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list(db: AsyncSession, owner: str) -> list[APIKey]:
        """List an owner's keys, oldest first."""
        stmt = (
            select(APIKey)
            .where(APIKey.owner_email == owner)
            .order_by(APIKey.created_at, APIKey.id)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def delete(db: AsyncSession, key_id: int, owner: str) -> None:
        """Revoke one of an owner's keys.

        Raises:
            NotFoundError: No key with this ID belongs to the owner.
        """
        stmt = delete(APIKey).where(APIKey.id == key_id, APIKey.owner_email == owner)
        result = await db.execute(stmt)
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise NotFoundError("API key", str(key_id))
