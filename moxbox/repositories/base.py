"""Base repository with shared get-by-ID and commit patterns.

Subclasses specify model_class, id_column, and not_found_error; the base
provides lookups and a commit that turns driver failures into CatalogError.
"""

from typing import TypeVar, Generic, Optional, Type
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, Query

from ..database import Base
from ..exceptions import MoxboxException, CatalogError

ModelT = TypeVar("ModelT", bound=Base)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so folder names match literally (``_`` is legal in names)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class BaseRepository(Generic[ModelT]):
    """Shared repository logic for SQLAlchemy models.

    Class variables to set in subclasses:
        model_class:     The SQLAlchemy model (e.g., StoredFile)
        id_column:       Name of the primary-key column (default "id")
        not_found_error: Exception class to raise from get_by_id
    """

    model_class: Type[ModelT]
    id_column: str = "id"
    not_found_error: Type[MoxboxException]

    def __init__(self, db: Session):
        self.db = db

    def _base_query(self) -> Query:
        return self.db.query(self.model_class)

    def get_by_id(self, entity_id: str) -> ModelT:
        """Get entity by primary key. Raises not_found_error if missing."""
        col = getattr(self.model_class, self.id_column)
        entity = self._base_query().filter(col == entity_id).first()
        if not entity:
            raise self.not_found_error(entity_id)
        return entity

    def get_by_id_optional(self, entity_id: str) -> Optional[ModelT]:
        """Get entity by primary key, or None if not found."""
        col = getattr(self.model_class, self.id_column)
        return self._base_query().filter(col == entity_id).first()

    def flush(self) -> None:
        """Flush pending changes without committing; same error mapping as commit."""
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CatalogError(
                f"Failed to write {self.model_class.__tablename__}", e
            ) from e

    def commit(self) -> None:
        """Commit the session; on failure roll back and raise CatalogError."""
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CatalogError(
                f"Failed to write {self.model_class.__tablename__}", e
            ) from e
