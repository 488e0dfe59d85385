"""Authorized user model - the admin-managed login allow list.

The admin address is configured in settings and never stored here.
"""

from datetime import datetime

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from house_finder.models.base import Base, utc_now


class AuthorizedUser(Base):
    """A non-admin address allowed to log in.

    Attributes:
        id: Row ID.
        email: Lower-cased, unique address.
        name: Display name.
        created_at: When the admin added the address.
    """

    __tablename__ = "authorized_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
