"""
SQL metadata storage.

SQLAlchemy Core over the tables in `estate_crm.storage.schema`.
SQLite for development and tests, any SQLAlchemy URL in production.
Calls run in the threadpool so route handlers stay async.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import Table, and_, create_engine, delete, insert, or_, select, update
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from starlette.concurrency import run_in_threadpool

from estate_crm.core.errors import Conflict, StorageError, ValidationError
from estate_crm.storage.base import MetadataStorage, ResourceQuery
from estate_crm.storage.schema import metadata

logger = logging.getLogger(__name__)


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Build an engine for `database_url`.

    - sqlite in-memory: one shared connection (StaticPool) so every
      session sees the same database
    - sqlite file: parent directory is created on demand
    """
    url = make_url(database_url)
    kwargs: dict[str, Any] = {"echo": echo}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if not url.database or url.database == ":memory:":
            kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    else:
        kwargs["pool_pre_ping"] = True

    return create_engine(url, **kwargs)


class SqlMetadataStorage(MetadataStorage):
    """Relational row storage."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> SqlMetadataStorage:
        return cls(create_database_engine(database_url, echo=echo))

    def create_all(self) -> None:
        """Create all tables if they do not exist."""
        metadata.create_all(self.engine)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _table(collection: str) -> Table:
        try:
            return metadata.tables[collection]
        except KeyError:
            raise StorageError(f"Unknown collection: {collection}") from None

    @staticmethod
    def _column(table: Table, name: str):
        if name not in table.c:
            raise StorageError(f"Unknown column {table.name}.{name}")
        return table.c[name]

    def _conditions(self, table: Table, filters: dict[str, Any]) -> list:
        conditions = []
        for name, value in filters.items():
            column = self._column(table, name)
            conditions.append(column.is_(None) if value is None else column == value)
        return conditions

    def _run(self, description: str, fn, *args):
        try:
            return fn(*args)
        except IntegrityError as e:
            logger.warning(f"Integrity violation during {description}: {e.orig}")
            raise Conflict("Duplicate or conflicting value") from e
        except OverflowError as e:
            logger.warning(f"Value out of range during {description}: {e}")
            raise ValidationError("Numeric value out of range") from e
        except SQLAlchemyError as e:
            logger.exception(f"Storage failure during {description}")
            raise StorageError(f"Storage failure during {description}") from e

    # -------------------------------------------------------------------------
    # Sync implementations
    # -------------------------------------------------------------------------

    def _insert(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        table = self._table(collection)
        values = {k: v for k, v in data.items() if k in table.c}
        with self.engine.begin() as conn:
            conn.execute(insert(table).values(**values))
            row = conn.execute(select(table).where(table.c.id == values["id"])).first()
        return dict(row._mapping)

    def _get(self, collection: str, id: str) -> dict[str, Any] | None:
        table = self._table(collection)
        with self.engine.connect() as conn:
            row = conn.execute(select(table).where(table.c.id == id)).first()
        return dict(row._mapping) if row else None

    def _find_one(self, collection: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        table = self._table(collection)
        stmt = select(table).where(and_(*self._conditions(table, filters))).limit(1)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return dict(row._mapping) if row else None

    def _query(self, query: ResourceQuery) -> list[dict[str, Any]]:
        table = self._table(query.collection)
        stmt = select(table)

        conditions = self._conditions(table, query.filters)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        if query.match_any:
            stmt = stmt.where(or_(*self._conditions(table, query.match_any)))

        if query.sort:
            column = self._column(table, query.sort.column)
            stmt = stmt.order_by(column.desc() if query.sort.descending else column.asc())
        stmt = stmt.order_by(table.c.id).limit(query.limit).offset(query.offset)

        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(stmt)]

    def _update(self, collection: str, id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        table = self._table(collection)
        values = {k: v for k, v in updates.items() if k in table.c and k != "id"}
        with self.engine.begin() as conn:
            if values:
                result = conn.execute(update(table).where(table.c.id == id).values(**values))
                if result.rowcount == 0:
                    return None
            row = conn.execute(select(table).where(table.c.id == id)).first()
        return dict(row._mapping) if row else None

    def _delete_where(self, collection: str, filters: dict[str, Any]) -> int:
        table = self._table(collection)
        if not filters:
            raise StorageError("Refusing to delete without filters")
        with self.engine.begin() as conn:
            result = conn.execute(delete(table).where(and_(*self._conditions(table, filters))))
        return result.rowcount

    # -------------------------------------------------------------------------
    # MetadataStorage
    # -------------------------------------------------------------------------

    async def insert(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        return await run_in_threadpool(self._run, f"insert into {collection}", self._insert, collection, data)

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        return await run_in_threadpool(self._run, f"get from {collection}", self._get, collection, id)

    async def find_one(self, collection: str, filters: dict[str, Any]) -> dict[str, Any] | None:
        return await run_in_threadpool(self._run, f"lookup in {collection}", self._find_one, collection, filters)

    async def query(self, query: ResourceQuery) -> list[dict[str, Any]]:
        return await run_in_threadpool(self._run, f"query on {query.collection}", self._query, query)

    async def update(self, collection: str, id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        return await run_in_threadpool(self._run, f"update of {collection}", self._update, collection, id, updates)

    async def delete(self, collection: str, id: str) -> bool:
        deleted = await self.delete_where(collection, {"id": id})
        return deleted > 0

    async def delete_where(self, collection: str, filters: dict[str, Any]) -> int:
        return await run_in_threadpool(self._run, f"delete from {collection}", self._delete_where, collection, filters)

    async def close(self) -> None:
        self.engine.dispose()
