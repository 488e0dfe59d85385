"""Auth token model - single-use magic link tokens.

A token is redeemable exactly once, within its lifetime, and only if it
has not been consumed. Rows stay behind after redemption (used=True)
until the sweeper removes them once expired.
"""

from datetime import datetime

from sqlalchemy import Boolean, Index, String, false
from sqlalchemy.orm import Mapped, mapped_column

from house_finder.models.base import Base, utc_now


class AuthToken(Base):
    """Magic link login token.

    Attributes:
        token: 64-character hex token (256 bits of entropy). Primary key.
        email: Address the token was issued for.
        expires_at: Time after which redemption fails.
        used: Set once the token has been redeemed.
        created_at: Issue time.
    """

    __tablename__ = "auth_tokens"
    __table_args__ = (Index("ix_auth_tokens_expires_at", "expires_at"),)

    token: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
