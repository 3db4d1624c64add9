# File: restgen/drivers.py
"""
RestGen - Database Drivers
===========================
The registration pipeline talks to storage only through the ``Driver``
protocol:

- ``build_schema(definition)`` turns a ``ModelSchema`` into driver-specific
  construction data (called once per schema when the registry is built);
- ``await create_connection(uri, options)`` opens a live handle;
- ``handle.model(name, schema, collection_name)`` binds construction data to
  that handle and returns a ``DocumentModel``.

``SQLAlchemyDriver`` is the default implementation, built on SQLAlchemy 2.0
asyncio.  Engines are pooled inside the driver (one per URL and option set);
a request-scoped connection handle is a thin view over a pooled engine.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import (
    Any,
    Dict,
    FrozenSet,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import Select
from sqlalchemy.types import TypeEngine

from restgen.models import ID_FIELD, FieldDefinition, FieldType, ModelSchema

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("restgen.drivers")

SortSpec = Sequence[Tuple[str, bool]]  # (field, descending)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class DocumentModel(Protocol):
    """Data operations of a schema bound to one live connection."""

    name: str

    async def find_many(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        limit: Optional[int] = None,
        skip: int = 0,
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        """Return documents matching equality ``filters``."""

    async def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        """Count documents matching ``filters``."""

    async def find_one(self, document_id: str) -> Optional[Dict[str, Any]]:
        """Return one document by id, or None."""

    async def insert_one(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert and return the stored document (with its id)."""

    async def update_one(
        self, document_id: str, changes: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Apply ``changes`` and return the updated document, or None."""

    async def delete_one(self, document_id: str) -> bool:
        """Delete one document; True when something was deleted."""

    async def delete_many(self, document_ids: Sequence[str]) -> int:
        """Delete several documents; returns the number deleted."""


@runtime_checkable
class Driver(Protocol):
    """Protocol implemented by database drivers."""

    def build_schema(self, definition: ModelSchema) -> Any:
        """Return construction data for ``definition``."""

    async def create_connection(self, uri: str, options: Mapping[str, Any]) -> Any:
        """Open a live connection handle exposing ``.model(...)``."""


def new_document_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------


def _column_type(field_def: FieldDefinition) -> TypeEngine:
    kind: str = FieldType(field_def.type).value
    if kind == "string":
        return String(field_def.max_length) if field_def.max_length else String()
    mapping: Dict[str, TypeEngine] = {
        "text": Text(),
        "integer": Integer(),
        "float": Float(),
        "boolean": Boolean(),
        "date": Date(),
        "datetime": DateTime(timezone=True),
        "uuid": Uuid(),
        "json": JSON(),
    }
    return mapping.get(kind, String())


class TableModel:
    """``DocumentModel`` backed by a SQLAlchemy ``Table`` and async engine."""

    def __init__(self, name: str, table: Table, engine: AsyncEngine) -> None:
        self.name: str = name
        self.table: Table = table
        self._engine: AsyncEngine = engine

    @property
    def _pk(self) -> Column:
        return self.table.c[ID_FIELD]

    def _where(self, stmt: Any, filters: Optional[Mapping[str, Any]]) -> Any:
        for key, value in (filters or {}).items():
            stmt = stmt.where(self.table.c[key] == value)
        return stmt

    async def find_many(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        limit: Optional[int] = None,
        skip: int = 0,
        sort: Optional[SortSpec] = None,
    ) -> List[Dict[str, Any]]:
        stmt: Select = self._where(select(self.table), filters)
        for field_name, descending in sort or ():
            column = self.table.c[field_name]
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            return [dict(row._mapping) for row in result]

    async def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        stmt = self._where(select(func.count()).select_from(self.table), filters)
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            return int(result.scalar_one())

    async def find_one(self, document_id: str) -> Optional[Dict[str, Any]]:
        async with self._engine.connect() as conn:
            result = await conn.execute(select(self.table).where(self._pk == document_id))
            row = result.first()
        return dict(row._mapping) if row is not None else None

    async def insert_one(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = dict(document)
        values.setdefault(ID_FIELD, new_document_id())
        async with self._engine.begin() as conn:
            await conn.execute(insert(self.table).values(**values))
        stored = await self.find_one(values[ID_FIELD])
        return stored if stored is not None else values

    async def update_one(
        self, document_id: str, changes: Mapping[str, Any]
    ) -> Optional[Dict[str, Any]]:
        values: Dict[str, Any] = {k: v for k, v in changes.items() if k != ID_FIELD}
        if values:
            async with self._engine.begin() as conn:
                result = await conn.execute(
                    update(self.table).where(self._pk == document_id).values(**values)
                )
                matched: int = result.rowcount
            if matched == 0:
                return None
        return await self.find_one(document_id)

    async def delete_one(self, document_id: str) -> bool:
        async with self._engine.begin() as conn:
            result = await conn.execute(delete(self.table).where(self._pk == document_id))
            deleted: int = result.rowcount
        return deleted > 0

    async def delete_many(self, document_ids: Sequence[str]) -> int:
        if not document_ids:
            return 0
        async with self._engine.begin() as conn:
            result = await conn.execute(
                delete(self.table).where(self._pk.in_(list(document_ids)))
            )
            deleted: int = result.rowcount
        return int(deleted)

    def __repr__(self) -> str:
        return f"<TableModel {self.name} -> {self.table.name}>"


class SQLAlchemyConnection:
    """A live handle: one pooled engine seen through a named connection."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine: AsyncEngine = engine

    def model(self, name: str, schema: Table, collection_name: str) -> TableModel:
        table: Table = schema
        if collection_name != schema.name:
            table = schema.to_metadata(MetaData(), name=collection_name)
        return TableModel(name, table, self.engine)

    def __repr__(self) -> str:
        return f"<SQLAlchemyConnection {self.engine.url.render_as_string(hide_password=True)}>"


class SQLAlchemyDriver:
    """
    Default driver: SQLAlchemy asyncio engines over a shared ``MetaData``.

    Recognised connection options besides ``create_async_engine`` keyword
    arguments: ``username``, ``password`` (merged into the URL) and
    ``create_tables`` (run ``metadata.create_all`` the first time an engine
    is opened, and again only after new tables were built).
    """

    def __init__(self, metadata: Optional[MetaData] = None) -> None:
        self.metadata: MetaData = metadata if metadata is not None else MetaData()
        self._engines: Dict[Tuple[str, str], AsyncEngine] = {}
        self._created: Dict[Tuple[str, str], FrozenSet[str]] = {}
        self._create_lock: asyncio.Lock = asyncio.Lock()

    # -- Construction data --------------------------------------------------

    def build_schema(self, definition: ModelSchema) -> Table:
        name: str = definition.collection_name or definition.name
        existing: Optional[Table] = self.metadata.tables.get(name)
        if existing is not None:
            self.metadata.remove(existing)

        columns: List[Column] = [Column(ID_FIELD, String(32), primary_key=True)]
        for field_def in definition.fields:
            columns.append(
                Column(
                    field_def.name,
                    _column_type(field_def),
                    nullable=not field_def.required,
                    unique=field_def.unique,
                    index=bool(field_def.reference),
                    comment=field_def.description,
                )
            )
        logger.debug("Built table '%s' for model '%s'.", name, definition.name)
        return Table(name, self.metadata, *columns)

    # -- Connections --------------------------------------------------------

    def _engine_for(self, url: URL, options: Dict[str, Any]) -> Tuple[Tuple[str, str], AsyncEngine]:
        if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
            # every pooled connection must see the same in-memory database
            options.setdefault("poolclass", StaticPool)
        key: Tuple[str, str] = (
            url.render_as_string(hide_password=False),
            repr(sorted(options.items(), key=lambda item: item[0])),
        )
        engine: Optional[AsyncEngine] = self._engines.get(key)
        if engine is None:
            engine = create_async_engine(url, **options)
            self._engines[key] = engine
            logger.debug("Created engine for %s", url.render_as_string(hide_password=True))
        return key, engine

    async def _create_tables(self, key: Tuple[str, str], engine: AsyncEngine) -> None:
        tables: FrozenSet[str] = frozenset(self.metadata.tables)
        if self._created.get(key) == tables:
            return
        async with self._create_lock:
            if self._created.get(key) == tables:
                return
            async with engine.begin() as conn:
                await conn.run_sync(self.metadata.create_all)
            self._created[key] = tables
            logger.debug("Created %d table(s) on %s", len(tables), engine.url.render_as_string(hide_password=True))

    async def create_connection(
        self, uri: str, options: Mapping[str, Any]
    ) -> SQLAlchemyConnection:
        opts: Dict[str, Any] = dict(options)
        username: Optional[str] = opts.pop("username", None)
        password: Optional[str] = opts.pop("password", None)
        create_tables: bool = bool(opts.pop("create_tables", False))

        url: URL = make_url(uri)
        if username is not None:
            url = url.set(username=username)
        if password is not None:
            url = url.set(password=password)

        key, engine = self._engine_for(url, opts)
        if create_tables:
            await self._create_tables(key, engine)
        return SQLAlchemyConnection(engine)

    async def dispose(self) -> None:
        """Dispose every pooled engine (call on application shutdown)."""
        for engine in self._engines.values():
            await engine.dispose()
        self._engines.clear()
        self._created.clear()


__all__ = [
    "DocumentModel",
    "Driver",
    "SQLAlchemyConnection",
    "SQLAlchemyDriver",
    "TableModel",
    "new_document_id",
]
