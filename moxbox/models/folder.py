"""Folder catalog model."""

import uuid

from sqlalchemy import Column, String, Text, BigInteger, DateTime, Index
from sqlalchemy.sql import func
from ..database import Base


class Folder(Base):
    """A tracked folder and its cached size.

    ``path`` is the natural key (relative to the storage root). ``size`` is
    the byte total of every file, active or deleted, nested beneath the
    folder. Rows may be created lazily when a file lands in an untracked path.
    """

    __tablename__ = "folders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    path = Column(Text, nullable=False, unique=True)
    owner_id = Column(String(36), nullable=True)
    size = Column(BigInteger, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_folders_owner_id", "owner_id"),
    )
