"""Generic repository over the integer-keyed entities."""
from abc import ABC
from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.shared.entities.base import BaseEntity

T = TypeVar("T", bound=BaseEntity)


class BaseRepository(ABC, Generic[T]):
    """CRUD helpers shared by the feature repositories.

    Repositories flush but never commit; the calling service owns the transaction.
    """

    model: Type[T]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, entity: T) -> T:
        """Insert ``entity`` and load server-generated columns."""
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def get_by_id(self, entity_id: int) -> Optional[T]:
        result = await self.session.execute(
            select(self.model).where(self.model.id == entity_id)
        )
        return result.scalar_one_or_none()

    async def update_by_id(self, entity_id: int, **values: Any) -> Optional[T]:
        """Apply ``values`` to one row; None when the row does not exist."""
        result = await self.session.execute(
            update(self.model)
            .where(self.model.id == entity_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        if result.rowcount == 0:
            return None
        entity = await self.get_by_id(entity_id)
        if entity is not None:
            # Identity map may hold the pre-update state
            await self.session.refresh(entity)
        return entity

    async def delete(self, entity_id: int) -> bool:
        result = await self.session.execute(
            delete(self.model).where(self.model.id == entity_id)
        )
        await self.session.flush()
        return result.rowcount > 0

    async def list(
        self,
        offset: int = 0,
        limit: int = 100,
        order_by: Optional[Sequence[str]] = None,
        **filters: Any,
    ) -> List[T]:
        """Page through rows matching equality ``filters``.

        ``None`` filter values are ignored. ``order_by`` entries prefixed
        with ``-`` sort descending.
        """
        stmt = select(self.model)
        for name, value in filters.items():
            if value is not None:
                stmt = stmt.where(getattr(self.model, name) == value)
        for key in order_by or ():
            column = getattr(self.model, key.lstrip("-"))
            stmt = stmt.order_by(column.desc() if key.startswith("-") else column.asc())
        result = await self.session.execute(stmt.offset(offset).limit(limit))
        return list(result.scalars().all())
