"""
Base Repository.

Base classes for all repositories with common CRUD operations. Every
tenant-owned table goes through TenantScopedRepository so no query can
leak rows across tenants.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from crm.backend.core.exceptions import NotFoundError
from crm.backend.core.logging import get_logger
from crm.backend.models.base import ZERO, Base

CENT = Decimal("0.01")

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with common CRUD operations.

    Subclasses set the model class and the message raised when a lookup
    misses:

        class ClientRepository(TenantScopedRepository[Client]):
            model = Client
            not_found_message = "Client non trouvé"
    """

    model: type[ModelType]
    not_found_message: str = "Ressource non trouvée"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _scope_clauses(self) -> list[ColumnElement[bool]]:
        """Clauses applied to every query issued by this repository."""
        return []

    def _base_query(self) -> Select:
        return select(self.model).where(*self._scope_clauses())

    async def get_by_id(self, id: int) -> ModelType:
        """
        Get a single record by ID.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id_or_none(id)
        if instance is None:
            raise NotFoundError(self.not_found_message)
        return instance

    async def get_by_id_or_none(self, id: int) -> ModelType | None:
        """Get a single record by ID, returning None if not found."""
        result = await self.session.execute(
            self._base_query().where(self.model.id == int(id))
        )
        return result.scalar_one_or_none()

    async def get_all(self, limit: int = 50, offset: int = 0) -> list[ModelType]:
        """Get all records with pagination."""
        return await self.find(limit=limit, offset=offset)

    async def find(
        self,
        *clauses: Any,
        order_by: Any = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[ModelType]:
        """Get records matching the given clauses."""
        stmt = self._base_query().where(*clauses)
        if order_by is not None:
            stmt = stmt.order_by(*order_by) if isinstance(order_by, (list, tuple)) else stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def first(self, *clauses: Any, order_by: Any = None) -> ModelType | None:
        """Get the first record matching the given clauses, or None."""
        rows = await self.find(*clauses, order_by=order_by, limit=1)
        return rows[0] if rows else None

    async def count(self, *clauses: Any) -> int:
        """Count records matching the given clauses."""
        result = await self.session.execute(
            select(func.count())
            .select_from(self.model)
            .where(*self._scope_clauses(), *clauses)
        )
        return result.scalar_one()

    async def sum(self, column: Any, *clauses: Any) -> Decimal:
        """Sum a numeric column over the records matching the clauses."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(column), 0))
            .select_from(self.model)
            .where(*self._scope_clauses(), *clauses)
        )
        value = result.scalar_one()
        if value is None:
            return ZERO
        return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)

    async def create(self, **kwargs: Any) -> ModelType:
        """Create a new record."""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def update(self, id: int, **kwargs: Any) -> ModelType:
        """
        Update an existing record.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id(id)
        return await self.update_instance(instance, **kwargs)

    async def update_instance(self, instance: ModelType, **kwargs: Any) -> ModelType:
        """Apply attribute changes to an already loaded record."""
        for key, value in kwargs.items():
            if hasattr(instance, key):
                setattr(instance, key, value)

        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def delete(self, id: int) -> None:
        """
        Delete a record by ID.

        Raises:
            NotFoundError: If record not found
        """
        instance = await self.get_by_id(id)
        await self.session.delete(instance)
        await self.session.flush()

    async def exists(self, id: int) -> bool:
        """Check if a record exists by ID."""
        result = await self.session.execute(
            select(self.model.id).where(*self._scope_clauses(), self.model.id == int(id))
        )
        return result.scalar_one_or_none() is not None


class TenantScopedRepository(BaseRepository[ModelType]):
    """Repository restricted to the rows of one tenant."""

    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        super().__init__(session)
        self.tenant_id = tenant_id

    def _scope_clauses(self) -> list[ColumnElement[bool]]:
        return [self.model.tenant_id == self.tenant_id]

    async def create(self, **kwargs: Any) -> ModelType:
        kwargs["tenant_id"] = self.tenant_id
        return await super().create(**kwargs)
