"""Passkey credential model - registered WebAuthn authenticators."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from house_finder.models.base import Base, utc_now


class PasskeyCredential(Base):
    """A WebAuthn credential registered by one owner.

    Attributes:
        id: Hex-encoded credential ID assigned by the authenticator.
        owner_email: Address the credential logs in as.
        name: Owner-chosen label (defaults to "Passkey").
        credential_json: Serialized credential: base64url public key,
            signature counter, transports, and AAGUID.
        created_at: Registration time.
    """

    __tablename__ = "passkey_credentials"
    __table_args__ = (Index("ix_passkey_credentials_owner_email", "owner_email"),)

    id: Mapped[str] = mapped_column(String(1024), primary_key=True)
    owner_email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    credential_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
