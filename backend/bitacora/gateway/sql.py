"""SqlGateway: Gateway protocol over SQLAlchemy async sessions plus object storage.

Each gateway is bound to one identity and runs every call in its own
session/transaction. Row-level write policies are checked before the
statement is issued, using the caller's role from ``profiles``.
"""

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bitacora.core.exceptions import GatewayError, UniqueViolationError
from bitacora.db.models import Initiative, InitiativeMember, LogEntry, Profile
from bitacora.gateway.base import INITIATIVES, LOG_ENTRIES, MEMBERS, PROFILES, Filters, OrderBy, Row
from bitacora.gateway.policies import check_read, check_upload, check_write
from bitacora.gateway.storage import ObjectStorage

logger = structlog.get_logger(__name__)

MODELS = {
    INITIATIVES: Initiative,
    LOG_ENTRIES: LogEntry,
    PROFILES: Profile,
    MEMBERS: InitiativeMember,
}


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code:
        return code == "23505"
    return "unique" in str(orig).lower()


def _to_row(obj) -> Row:
    return {c.name: getattr(obj, c.name) for c in obj.__table__.columns}


class SqlGateway:
    """Gateway backed by the relational store and an ObjectStorage."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        storage: ObjectStorage,
        identity: str | None = None,
    ) -> None:
        """Initialize with dependency injection.

        Args:
            session_factory: SQLAlchemy async session factory
            storage: Attachment store used by upload()
            identity: Session subject the gateway acts for (None = anonymous)
        """
        self.session_factory = session_factory
        self.storage = storage
        self.identity = identity

    async def current_identity(self) -> str | None:
        return self.identity

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        order_by: OrderBy | None = None,
        descending: bool = False,
    ) -> list[Row]:
        model = self._model(table)
        check_read(self.identity)

        stmt = select(model).where(*self._where(model, filters))
        if order_by:
            names = [order_by] if isinstance(order_by, str) else list(order_by)
            columns = [self._column(model, name) for name in names]
            stmt = stmt.order_by(*(c.desc() if descending else c.asc() for c in columns))

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [_to_row(obj) for obj in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise self._wrap("select", table, exc) from exc

    async def select_one(self, table: str, filters: Filters) -> Row | None:
        rows = await self.select(table, filters)
        return rows[0] if rows else None

    async def insert(self, table: str, values: Row) -> Row:
        model = self._model(table)
        check_write(table, "insert", self.identity, await self._role(), values)

        try:
            async with self.session_factory() as session:
                obj = model(**values)
                session.add(obj)
                await session.commit()
                await session.refresh(obj)
                return _to_row(obj)
        except (SQLAlchemyError, TypeError) as exc:
            raise self._wrap("insert", table, exc) from exc

    async def update(self, table: str, filters: Filters, values: Row) -> list[Row]:
        model = self._model(table)
        check_write(table, "update", self.identity, await self._role(), values)
        for column in values:
            self._column(model, column)

        try:
            async with self.session_factory() as session:
                result = await session.execute(select(model).where(*self._where(model, filters)))
                objs = result.scalars().all()
                for obj in objs:
                    for column, value in values.items():
                        setattr(obj, column, value)
                await session.commit()
                return [_to_row(obj) for obj in objs]
        except SQLAlchemyError as exc:
            raise self._wrap("update", table, exc) from exc

    async def delete(self, table: str, filters: Filters) -> int:
        model = self._model(table)
        check_write(table, "delete", self.identity, await self._role())

        try:
            async with self.session_factory() as session:
                result = await session.execute(delete(model).where(*self._where(model, filters)))
                await session.commit()
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise self._wrap("delete", table, exc) from exc

    async def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        check_upload(self.identity)
        return await self.storage.upload(path, data, content_type)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _role(self) -> str | None:
        if not self.identity:
            return None
        try:
            async with self.session_factory() as session:
                result = await session.execute(select(Profile.role).where(Profile.id == self.identity))
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise self._wrap("select", PROFILES, exc) from exc

    @staticmethod
    def _model(table: str):
        model = MODELS.get(table)
        if model is None:
            raise GatewayError(f"relation \"{table}\" does not exist", code="42P01")
        return model

    @staticmethod
    def _column(model, name: str):
        try:
            return model.__table__.c[name]
        except KeyError:
            raise GatewayError(
                f"column \"{name}\" does not exist on {model.__tablename__}", code="42703"
            ) from None

    def _where(self, model, filters: Filters | None) -> list:
        clauses = []
        for name, expected in (filters or {}).items():
            column = self._column(model, name)
            if isinstance(expected, (list, tuple, set)):
                clauses.append(column.in_(list(expected)))
            else:
                clauses.append(column == expected)
        return clauses

    def _wrap(self, action: str, table: str, exc: Exception) -> GatewayError:
        if isinstance(exc, IntegrityError) and _is_unique_violation(exc):
            return UniqueViolationError(str(exc.orig))
        logger.warning(
            "gateway_call_failed",
            action=action,
            table=table,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return GatewayError(str(exc))
