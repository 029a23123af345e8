from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from profile_indexer.utils.clock import utcnow
from profile_indexer.utils.logging import get_logger

# Define a generic type for SQLAlchemy models
ModelType = TypeVar("ModelType")

LOGGER = get_logger(__name__)


class BaseRepository(Generic[ModelType]):
    """Base repository implementing common create/read/update operations.

    Rows in this system are never deleted (documents are invalidated, claims
    superseded, runs move to a terminal status), so there is no delete here.
    """

    def __init__(self, session: AsyncSession, model: Type[ModelType]):
        """Initialize the repository.

        Args:
            session: SQLAlchemy async session
            model: The SQLAlchemy model class this repository manages
        """
        self.session = session
        self.model = model
        self.logger = LOGGER

    def _apply_filters(self, query, filters: Optional[Dict[str, Any]]):
        if filters:
            for field, value in filters.items():
                if hasattr(self.model, field):
                    query = query.where(getattr(self.model, field) == value)
        return query

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        try:
            query = select(self.model).where(self.model.id == id)
            result = await self.session.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error retrieving {self.model.__name__} by ID {id}: {str(e)}", exc_info=True)
            raise

    async def get_one_by(self, **filters: Any) -> Optional[ModelType]:
        """First row matching all equality filters, lowest id first."""
        try:
            query = self._apply_filters(select(self.model), filters).order_by(self.model.id.asc()).limit(1)
            result = await self.session.execute(query)
            return result.scalars().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error retrieving {self.model.__name__} by {filters}: {str(e)}", exc_info=True)
            raise

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 200,
        filters: Optional[Dict[str, Any]] = None,
    ) -> List[ModelType]:
        """Get records with optional pagination and equality filters, newest first."""
        try:
            query = self._apply_filters(select(self.model), filters)
            query = query.order_by(self.model.id.desc()).offset(skip).limit(limit)
            result = await self.session.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error retrieving all {self.model.__name__}: {str(e)}", exc_info=True)
            raise

    async def create(self, **kwargs) -> ModelType:
        try:
            instance = self.model(**kwargs)
            self.session.add(instance)
            await self.session.flush()
            await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}", exc_info=True)
            raise

    async def update(self, id: int, **kwargs) -> Optional[ModelType]:
        """Update an existing record; returns None when it does not exist."""
        try:
            instance = await self.get_by_id(id)
            if not instance:
                return None

            for key, value in kwargs.items():
                if hasattr(instance, key):
                    setattr(instance, key, value)

            if hasattr(instance, "updated_at"):
                setattr(instance, "updated_at", utcnow())

            await self.session.flush()
            await self.session.commit()
            return instance
        except SQLAlchemyError as e:
            await self.session.rollback()
            self.logger.error(f"Error updating {self.model.__name__} {id}: {str(e)}", exc_info=True)
            raise
