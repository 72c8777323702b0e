"""Create the first admin account on first startup.

When the users table is empty, an admin account is created with a random
temporary password, written to the configured login file so the operator
can sign in. Idempotent: skips if any user exists.
"""

import logging
import secrets
import string
from pathlib import Path
from typing import Optional

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

TEMP_PASSWORD_LENGTH = 8
_ALPHABET = string.ascii_letters + string.digits


def generate_temp_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def initialize_first_user(db: Session, username: str, login_file: str) -> Optional[str]:
    """Create the admin account if no users exist.

    Args:
        db: An open SQLAlchemy session.
        username: Name of the admin account.
        login_file: Where the generated credentials are written.

    Returns:
        The temporary password, or None if users already exist.
    """
    from ..models.user import User
    from ..services import auth_service

    existing = db.query(User).count()
    if existing > 0:
        logger.debug("Database has %d users, skipping first-user setup", existing)
        return None

    password = generate_temp_password()
    auth_service.create_user(db, username, password, is_admin=True)

    path = Path(login_file)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "Initial admin credentials:\n"
        f"username={username}\n"
        f"password={password}\n\n"
        "Please change password after first login.\n",
        encoding="utf-8",
    )
    logger.info("First admin user created, credentials saved to %s", path.resolve())
    return password
