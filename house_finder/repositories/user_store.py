"""Repository for the login allow list.

An address may authenticate if it equals the configured admin address or
appears in authorized_users. All comparisons are case-insensitive;
stored addresses are lower-cased on write.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from house_finder.core.config import settings
from house_finder.core.errors import ConflictError, NotFoundError, ValidationError
from house_finder.models.authorized_user import AuthorizedUser

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Trim and lower-case an address for storage and comparison."""
    return email.strip().lower()


class UserStore:
    """Stateless repository for AuthorizedUser table operations."""

    @staticmethod
    def is_admin(email: str) -> bool:
        """Whether an address is the configured admin."""
        admin = normalize_email(settings.admin_email)
        return bool(admin) and normalize_email(email) == admin

    @staticmethod
    async def is_authorized(db: AsyncSession, email: str) -> bool:
        """Whether an address may log in at all.

        Args:
            db: Async database session.
            email: Address to check, in any case.

        Returns:
            True for the admin and for every address in the allow list.
        """
        if not email:
            return False
        if UserStore.is_admin(email):
            return True
        stmt = select(AuthorizedUser.id).where(
            func.lower(AuthorizedUser.email) == normalize_email(email)
        )
        result = await db.execute(stmt)
        return result.first() is not None

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: int) -> AuthorizedUser | None:
        """Fetch one authorized user by row ID."""
        return await db.get(AuthorizedUser, user_id)

    @staticmethod
    async def add(db: AsyncSession, email: str, name: str = "") -> AuthorizedUser:
        """Add an address to the allow list.

        Args:
            db: Async database session.
            email: Address to authorize.
            name: Display name.

        Returns:
            Created AuthorizedUser.

        Raises:
            ValidationError: Address is empty.
            ConflictError: Address is the admin or is already authorized.
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email is required")
        if UserStore.is_admin(email) or await UserStore.is_authorized(db, email):
            raise ConflictError("USER_EXISTS", f"User '{email}' already exists")

        user = AuthorizedUser(email=email, name=name.strip())
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as exc:
            # Concurrent add of the same address
            raise ConflictError(
                "USER_EXISTS", f"User '{email}' already exists"
            ) from exc
        await db.refresh(user)
        logger.info("Authorized user added: %s", email)
        return user

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: int,
        *,
        email: str | None = None,
        name: str | None = None,
    ) -> AuthorizedUser:
        """Change an authorized user's address or display name.

        Raises:
            NotFoundError: No user with this ID.
            ValidationError: New address is empty.
            ConflictError: New address belongs to the admin or another user.
        """
        user = await UserStore.get_by_id(db, user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))

        if email is not None:
            email = normalize_email(email)
            if not email:
                raise ValidationError("Email is required")
            if email != user.email and (
                UserStore.is_admin(email) or await UserStore.is_authorized(db, email)
            ):
                raise ConflictError("USER_EXISTS", f"User '{email}' already exists")
            user.email = email
        if name is not None:
            user.name = name.strip()

        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def delete(db: AsyncSession, user_id: int) -> None:
        """Remove an address from the allow list.

        Existing sessions and login links for the address stop working on
        their next validation.

        Raises:
            NotFoundError: No user with this ID.
        """
        user = await UserStore.get_by_id(db, user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        await db.delete(user)
        await db.flush()
        logger.info("Authorized user removed: %s", user.email)

    @staticmethod
    async def all_emails(db: AsyncSession) -> list[str]:
        """Every address that may log in: admin first, no duplicates."""
        emails: list[str] = []
        admin = normalize_email(settings.admin_email)
        if admin:
            emails.append(admin)
        result = await db.execute(
            select(AuthorizedUser.email).order_by(AuthorizedUser.email)
        )
        for email in result.scalars():
            email = normalize_email(email)
            if email not in emails:
                emails.append(email)
        return emails

    @staticmethod
    async def list(db: AsyncSession) -> list[AuthorizedUser]:
        """List authorized users ordered by address (admin excluded)."""
        result = await db.execute(select(AuthorizedUser).order_by(AuthorizedUser.email))
        return list(result.scalars().all())
