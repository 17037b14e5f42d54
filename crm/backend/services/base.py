"""
Base Service.

Services are scoped to one tenant and one session. They flush but never
commit: the transaction belongs to the request dependency or to the
``session_scope`` of a job or assistant tool call.

Usage:
    class ClientService(BaseService):
        def __init__(self, session: AsyncSession, tenant_id: int) -> None:
            super().__init__(session, tenant_id)
            self.repo = ClientRepository(session, tenant_id)
"""

from collections.abc import Awaitable, Iterable
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm.backend.core.exceptions import ConflictError, DatabaseError, ValidationError
from crm.backend.core.logging import get_logger

T = TypeVar("T")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class BaseService:
    def __init__(self, session: AsyncSession, tenant_id: int) -> None:
        self._session = session
        self.tenant_id = tenant_id
        self._logger = get_logger(self.__class__.__module__)

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def _execute_db_operation(self, operation: str, pending: Awaitable[T]) -> T:
        """
        Await a repository call, translating driver errors.

        Raises:
            ConflictError: On a unique constraint violation
            DatabaseError: On any other database failure
        """
        try:
            return await pending
        except IntegrityError as e:
            self._logger.warning(
                "Integrity error",
                extra={"operation": operation, "tenant_id": self.tenant_id, "error": str(e.orig)},
            )
            message = str(e.orig).lower()
            if "unique" in message or "duplicate" in message:
                raise ConflictError("Cette ressource existe déjà") from e
            raise DatabaseError(f"Contrainte de base de données violée: {operation}") from e
        except SQLAlchemyError as e:
            self._logger.error(
                "Database operation failed",
                extra={"operation": operation, "tenant_id": self.tenant_id, "error": str(e)},
            )
            raise DatabaseError(f"Échec de l'opération en base: {operation}") from e

    def _validate_required(self, data: dict[str, Any], names: Iterable[str]) -> None:
        """Raise ValidationError listing every blank field of ``names``."""
        missing = [name for name in names if _is_blank(data.get(name))]
        if missing:
            raise ValidationError(
                f"Champs requis manquants: {', '.join(missing)}",
                details={"missing_fields": missing},
            )

    def _log_operation(self, message: str, **context: Any) -> None:
        self._logger.info(
            message,
            extra={"service": self.__class__.__name__, "tenant_id": self.tenant_id, **context},
        )
