"""Authentication module exposing FastAPI dependencies.

Public interface:
    ``require_auth``  -- returns AuthContext or raises 401.
    ``require_admin`` -- returns AuthContext, raises 403 if not admin.

When ``settings.auth_enabled`` is False every request runs as an anonymous
admin so the development workflow is unbroken.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import settings
from .token_factory import decode_token
from ..database import get_db
from ..exceptions import AuthenticationError, ForbiddenError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity of the caller, used as the owner of everything it creates."""

    user_id: str
    username: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


_ANONYMOUS = AuthContext(user_id="anonymous", username="anonymous", role="admin")


def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> AuthContext:
    """Require a valid JWT and return the caller's AuthContext.

    When ``AUTH_ENABLED=false`` returns the anonymous admin context.
    """
    if not settings.auth_enabled:
        return _ANONYMOUS

    if credentials is None:
        raise AuthenticationError("Missing authentication token")

    payload = decode_token(
        credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
    )
    if payload is None:
        raise AuthenticationError("Invalid or expired token")

    from ..models.user import User

    user = db.query(User).filter(User.id == payload.sub).first()
    if user is None:
        raise AuthenticationError("User not found")

    return AuthContext(user_id=user.id, username=user.username, role=user.role)


def require_admin(
    auth: AuthContext = Depends(require_auth),
) -> AuthContext:
    """Require the authenticated user to be an admin. Raises 403 otherwise."""
    if not auth.is_admin:
        raise ForbiddenError("Admin access required")
    return auth
