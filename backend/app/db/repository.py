"""
Repository for Booking / Shipment documents.

Every default query hides soft-deleted rows; pass deleted=True for the
trash view or deleted=None to see both.
"""

from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.exceptions import ResourceNotFoundError, ConcurrentModificationError
from backend.app.db.filters import Sort

ModelType = TypeVar("ModelType")


class LifecycleRepository(Generic[ModelType]):
    
    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db
    
    def _where(self, query, filters: Sequence = (), deleted: Optional[bool] = False):
        if deleted is not None:
            query = query.where(self.model.is_deleted == deleted)
        for predicate in filters:
            query = query.where(predicate.to_clause(self.model))
        return query
    
    async def find_by_id(self, entity_id: int, deleted: Optional[bool] = False) -> Optional[ModelType]:
        query = self._where(select(self.model).where(self.model.id == entity_id), deleted=deleted)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
    
    async def get(self, entity_id: int, deleted: Optional[bool] = False) -> ModelType:
        """Like find_by_id but raises ResourceNotFoundError."""
        entity = await self.find_by_id(entity_id, deleted=deleted)
        if entity is None:
            raise ResourceNotFoundError(self.model.label, entity_id)
        return entity
    
    async def find_one(self, filters: Sequence, deleted: Optional[bool] = False) -> Optional[ModelType]:
        query = self._where(select(self.model), filters, deleted).limit(1)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()
    
    async def find_many(
        self,
        filters: Sequence = (),
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: Optional[int] = 50,
        deleted: Optional[bool] = False,
    ) -> List[ModelType]:
        sort = sort or Sort()
        query = (
            self._where(select(self.model), filters, deleted)
            .order_by(sort.to_clause(self.model), self.model.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())
    
    async def count(self, filters: Sequence = (), deleted: Optional[bool] = False) -> int:
        query = self._where(select(func.count(self.model.id)), filters, deleted)
        result = await self.db.execute(query)
        return result.scalar() or 0
    
    async def status_counts(self, filters: Sequence = (), deleted: Optional[bool] = False) -> Dict[Any, int]:
        query = self._where(
            select(self.model.status, func.count(self.model.id)), filters, deleted
        ).group_by(self.model.status)
        result = await self.db.execute(query)
        return {status: count for status, count in result.all()}
    
    def add(self, entity: ModelType) -> ModelType:
        self.db.add(entity)
        return entity
    
    async def delete(self, entity: ModelType) -> None:
        await self.db.delete(entity)
    
    async def delete_many(self, filters: Sequence = (), deleted: Optional[bool] = True) -> int:
        """Bulk delete; defaults to the trash only."""
        statement = self._where(delete(self.model), filters, deleted)
        result = await self.db.execute(statement.execution_options(synchronize_session=False))
        return result.rowcount


async def commit_or_conflict(db: AsyncSession, entity) -> None:
    """Commit, turning a version mismatch on entity into ConcurrentModificationError."""
    entity_id = entity.id
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        raise ConcurrentModificationError(entity.label, entity_id)
