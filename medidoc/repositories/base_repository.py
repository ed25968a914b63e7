from typing import Any, Generic, Optional, Type, TypeVar, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.base import Executable

from medidoc.core.exceptions import DatabaseError
from medidoc.utils.logging import get_logger

ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


def coerce_uuid(value: Union[str, UUID, None]) -> Optional[UUID]:
    """Parse a UUID, returning None for empty or malformed input."""
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except ValueError:
        return None


class BaseRepository(Generic[ModelType]):
    """Lookups, counts and inserts for one mapped table.

    Rows managed through this package are never updated or deleted.
    SQLAlchemy failures surface as ``DatabaseError``.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session
            model: The SQLAlchemy model class this repository manages
        """
        self.session = session
        self.model = model
        self.model_name = model.__name__

    async def _execute(self, statement: Executable, action: str) -> Result:
        try:
            return await self.session.execute(statement)
        except SQLAlchemyError as e:
            LOGGER.error(f"Database error while {action}", exc_info=True)
            raise DatabaseError(f"Database error while {action}: {str(e)}", original_error=e) from e

    async def get_by_id(self, id: Union[str, UUID]) -> Optional[ModelType]:
        """Get a record by its ID.

        Returns:
            The record, or None when it does not exist or the ID is malformed
        """
        record_id = coerce_uuid(id)
        if record_id is None:
            return None

        result = await self._execute(
            select(self.model).where(self.model.id == record_id),
            f"loading {self.model_name} {record_id}",
        )
        return result.scalar_one_or_none()

    async def create(self, **values: Any) -> ModelType:
        """Insert a record and reload it so server defaults are populated."""
        instance = self.model(**values)
        self.session.add(instance)
        try:
            await self.session.commit()
            await self.session.refresh(instance)
        except SQLAlchemyError as e:
            await self.session.rollback()
            LOGGER.error(f"Failed to insert {self.model_name}", exc_info=True)
            raise DatabaseError(f"Failed to insert {self.model_name}: {str(e)}", original_error=e) from e
        return instance

    async def count(self, **filters: Any) -> int:
        """Count records whose columns equal the given values."""
        statement = select(func.count()).select_from(self.model)
        for column, value in filters.items():
            statement = statement.where(getattr(self.model, column) == value)

        result = await self._execute(statement, f"counting {self.model_name}")
        return result.scalar_one()
