"""API key model - non-expiring bearer credentials.

Only the SHA-256 hash of the raw key is stored. The raw key is shown to
its owner exactly once, at creation.
"""

from datetime import datetime

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from house_finder.models.base import Base, utc_now


class APIKey(Base):
    """Bearer API key.

    Attributes:
        id: Row ID used for listing and revocation.
        name: Owner-chosen label.
        key_prefix: First 8 characters of the raw key, for display.
        key_hash: Hex SHA-256 of the raw key. Unique.
        owner_email: Address the key authenticates as.
        created_at: Creation time.
        last_used_at: Time of the most recent successful validation.
    """

    __tablename__ = "api_keys"
    __table_args__ = (Index("ix_api_keys_owner_email", "owner_email"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    key_prefix: Mapped[str] = mapped_column(String(8), nullable=False)
    key_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    owner_email: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    last_used_at: Mapped[datetime | None] = mapped_column(nullable=True, default=None)
