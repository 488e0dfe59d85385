"""Session model - long-lived browser sessions.

Sessions are never mutated after creation. They are destroyed on logout,
lazily on validation once expired, or by the periodic sweep.
"""

from datetime import datetime

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from house_finder.models.base import Base, utc_now


class Session(Base):
    """Browser session bound to one email address.

    Attributes:
        id: 64-character hex session ID, carried in the session cookie.
        email: Authenticated address.
        expires_at: Time after which the session is treated as absent.
        created_at: Login time.
    """

    __tablename__ = "sessions"
    __table_args__ = (Index("ix_sessions_expires_at", "expires_at"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
