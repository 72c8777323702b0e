"""User accounts.

A fresh install has no users; the first startup creates an admin account
with a generated password (see core.seeder).
"""

import uuid

from sqlalchemy import Column, String, Text, Boolean, DateTime
from sqlalchemy.sql import func
from ..database import Base


class User(Base):
    """Login account. ``is_admin`` maps to the ``admin`` role, otherwise ``user``."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(255), unique=True, nullable=False)
    password_hash = Column(Text, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def role(self) -> str:
        return "admin" if self.is_admin else "user"
