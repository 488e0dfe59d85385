"""SQLAlchemy ORM models for the House Finder auth core.

All models are exported from this module for convenient imports:
    from house_finder.models import AuthToken, Session, APIKey, ...

Models are organized by credential type:
- auth_token.py: AuthToken (magic link tokens)
- session.py: Session (browser sessions)
- api_key.py: APIKey (bearer keys)
- passkey_credential.py: PasskeyCredential (WebAuthn)
- authorized_user.py: AuthorizedUser (login allow list)
"""

from house_finder.models.api_key import APIKey
from house_finder.models.auth_token import AuthToken
from house_finder.models.authorized_user import AuthorizedUser
from house_finder.models.base import Base
from house_finder.models.passkey_credential import PasskeyCredential
from house_finder.models.session import Session

__all__ = [
    "APIKey",
    "AuthToken",
    "AuthorizedUser",
    "Base",
    "PasskeyCredential",
    "Session",
]
