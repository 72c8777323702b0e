"""Account service: user creation, login, password changes.

Passwords are hashed with bcrypt via passlib and never stored or logged in
plaintext.
"""

import logging
from typing import List, Optional

from passlib.hash import bcrypt
from sqlalchemy.orm import Session

from ..exceptions import AuthenticationError, ValidationError
from ..models.user import User
from ..repositories.base import BaseRepository

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class _UserRepository(BaseRepository[User]):
    model_class = User
    not_found_error = AuthenticationError


def create_user(db: Session, username: str, password: str, is_admin: bool = False) -> User:
    """Create an account. Raises ValidationError if the username is taken."""
    username = username.strip()
    if not username:
        raise ValidationError("Username required", field="username")
    if not password:
        raise ValidationError("Password required", field="password")

    if get_user_by_username(db, username) is not None:
        raise ValidationError("Username already exists", field="username")

    user = User(
        username=username,
        password_hash=bcrypt.hash(password),
        is_admin=is_admin,
    )
    db.add(user)
    _UserRepository(db).commit()
    db.refresh(user)
    logger.info("User created", extra={"username": username, "is_admin": is_admin})
    return user


def authenticate(db: Session, username: str, password: str) -> User:
    """Validate credentials and return the user.

    Raises AuthenticationError on unknown username or wrong password.
    """
    user = get_user_by_username(db, username.strip())
    if user is None or not bcrypt.verify(password, user.password_hash):
        logger.warning("Failed login attempt", extra={"username": username})
        raise AuthenticationError("Invalid credentials")
    logger.info("User logged in", extra={"username": user.username})
    return user


def change_password(db: Session, user_id: str, current_password: str, new_password: str) -> User:
    user = get_user_by_id(db, user_id)
    if user is None:
        raise AuthenticationError("User not found")
    if not bcrypt.verify(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="new_password"
        )

    user.password_hash = bcrypt.hash(new_password)
    _UserRepository(db).commit()
    db.refresh(user)
    logger.info("Password changed", extra={"username": user.username})
    return user


def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    return _UserRepository(db).get_by_id_optional(user_id)


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.created_at).all()
