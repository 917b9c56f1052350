# src/gtfsdb/core/store/database.py
"""FeedStore: SQLAlchemy Core adapter over a GTFS SQLite database.

Every value is stored as optional TEXT; the loader contract stores empty
strings as NULL. Tables are reflected on open, so columns present in the
file but unknown to the schema pass through untouched. Rows are addressed
by the SQLite rowid.

SQLAlchemy errors are wrapped in StoreError here and nowhere else.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Self

from sqlalchemy import (
    Column,
    ColumnElement,
    Connection,
    MetaData,
    Table,
    Text,
    and_,
    create_engine,
    event,
    func,
    literal_column,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from gtfsdb.contracts.errors import StoreError
from gtfsdb.contracts.types import ColumnName, EntityName, RowIdentity
from gtfsdb.core.logging import get_logger
from gtfsdb.core.schema.graph import SchemaGraph
from gtfsdb.core.schema.models import ColumnRef

logger = get_logger(__name__)

# Tables with this prefix are bookkeeping, never feed entities
_INTERNAL_PREFIX = "__"

# Stay well under SQLite's bound-parameter limit when deleting by rowid
_DELETE_CHUNK_SIZE = 500


@dataclass(frozen=True, slots=True)
class StoreRow:
    """A stored row: its rowid and its values in table column order."""

    identity: RowIdentity
    values: Mapping[str, str | None]


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


class FeedStore:
    """Store adapter used by the validator, the pruner and the clip workflow.

    Not safe for concurrent validate/prune calls; use one store per worker.
    """

    def __init__(
        self,
        engine: Engine,
        schema: SchemaGraph,
        *,
        read_only: bool = False,
        location: str = ":memory:",
    ) -> None:
        """Wrap an engine and bring the database in line with the schema.

        Args:
            engine: SQLAlchemy engine bound to a SQLite database
            schema: Schema whose entities and columns are declared on open
            read_only: Skip declarations and refuse every write
            location: Human-readable database location for messages
        """
        self._engine: Engine | None = engine
        self._schema = schema
        self._read_only = read_only
        self.location = location
        self._metadata = MetaData()
        try:
            self._metadata.reflect(bind=engine)
        except SQLAlchemyError as e:
            engine.dispose()
            raise StoreError(f"Cannot read feed database {location}: {e}") from e
        if not read_only:
            self._declare_schema()

    @classmethod
    def open(
        cls,
        path: str | Path,
        schema: SchemaGraph,
        *,
        read_only: bool = False,
        create: bool = False,
        synchronous: str | None = None,
    ) -> Self:
        """Open a feed database file.

        Args:
            path: SQLite database file
            schema: Schema to declare and validate against
            read_only: Open with SQLite's read-only URI mode
            create: Create the file if it does not exist
            synchronous: Value for PRAGMA synchronous (e.g. "OFF" for bulk work)

        Raises:
            StoreError: If the file is missing (and create is False) or unreadable
        """
        db_path = Path(path)
        if not db_path.exists() and not create:
            raise StoreError(f"Feed database not found: {db_path}")
        if read_only:
            uri = f"{db_path.resolve().as_uri()}?mode=ro"

            def _creator() -> sqlite3.Connection:
                return sqlite3.connect(uri, uri=True, check_same_thread=False)

            engine = create_engine("sqlite://", creator=_creator, echo=False)
        else:
            engine = create_engine(f"sqlite:///{db_path}", echo=False)
        cls._configure_sqlite(engine, synchronous=synchronous)
        return cls(engine, schema, read_only=read_only, location=str(db_path))

    @classmethod
    def in_memory(cls, schema: SchemaGraph) -> Self:
        """Create an in-memory store with every schema entity declared.

        A single shared connection keeps the database alive for the
        lifetime of the store.
        """
        engine = create_engine(
            "sqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
        )
        cls._configure_sqlite(engine, synchronous=None)
        return cls(engine, schema)

    @staticmethod
    def _configure_sqlite(engine: Engine, *, synchronous: str | None) -> None:
        """Register a connection hook that sets busy_timeout and, optionally, synchronous."""

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection: object, connection_record: object) -> None:
            cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]  # DBAPI connection typed as object
            cursor.execute("PRAGMA busy_timeout=5000")
            if synchronous is not None:
                cursor.execute(f"PRAGMA synchronous={synchronous}")
            cursor.close()

    @property
    def engine(self) -> Engine:
        """Get the SQLAlchemy engine."""
        if self._engine is None:
            raise StoreError(f"Store is closed: {self.location}")
        return self._engine

    @property
    def schema(self) -> SchemaGraph:
        return self._schema

    @property
    def read_only(self) -> bool:
        return self._read_only

    def close(self) -> None:
        """Release the engine. Safe to call twice."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    @contextmanager
    def _begin(self) -> Iterator[Connection]:
        """Connection with engine.begin() semantics and StoreError wrapping.

        Commits on successful exit, rolls back on any exception.
        """
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise StoreError(f"Store operation failed on {self.location}: {e}") from e

    def _require_writable(self, action: str) -> None:
        if self._read_only:
            raise StoreError(f"Cannot {action}: {self.location} is opened read-only")

    def _quote(self, identifier: str) -> str:
        return self.engine.dialect.identifier_preparer.quote(identifier)

    def _rowid(self, table: Table) -> ColumnElement[Any]:
        return literal_column(f"{self._quote(table.name)}.rowid")

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _declare_schema(self) -> None:
        for declared in self._schema.entities:
            if declared.name in self._metadata.tables:
                for name in declared.column_names:
                    self.declare_column(declared.name, name)
            else:
                self.declare_entity(declared.name, declared.column_names)

    def declare_entity(self, name: str, columns: Iterable[str]) -> Table:
        """Create a table of TEXT columns, or extend the existing one.

        Raises:
            StoreError: If the store is read-only or no column is given
        """
        self._require_writable(f"declare entity {name}")
        column_names = list(dict.fromkeys(columns))
        if name in self._metadata.tables:
            for column_name in column_names:
                self.declare_column(name, column_name)
            return self._metadata.tables[name]
        if not column_names:
            raise StoreError(f"Cannot declare entity {name} without columns")
        table = Table(name, self._metadata, *(Column(column_name, Text) for column_name in column_names))
        try:
            with self._begin() as conn:
                table.create(conn)
        except StoreError:
            self._metadata.remove(table)
            raise
        logger.debug("Declared entity", entity=name, columns=len(column_names))
        return table

    def declare_column(self, entity: str, column: str) -> None:
        """Add a TEXT column to an existing table if it is missing."""
        table = self.table(entity)
        if column in table.c:
            return
        self._require_writable(f"declare column {entity}.{column}")
        statement = text(f"ALTER TABLE {self._quote(table.name)} ADD COLUMN {self._quote(column)} TEXT")
        with self._begin() as conn:
            conn.execute(statement)
        table.append_column(Column(column, Text))
        logger.debug("Declared column", entity=entity, column=column)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def entities(self) -> tuple[EntityName, ...]:
        """Names of the feed tables present, in name order."""
        return tuple(
            EntityName(name)
            for name in sorted(self._metadata.tables)
            if not name.startswith(_INTERNAL_PREFIX) and not name.startswith("sqlite_")
        )

    def has_entity(self, name: str) -> bool:
        return name in self.entities()

    def table(self, entity: str) -> Table:
        """Get the reflected table for an entity.

        Raises:
            StoreError: If the entity is not present in the store
        """
        if not self.has_entity(entity):
            raise StoreError(f"Entity not present in {self.location}: {entity}")
        return self._metadata.tables[entity]

    def columns(self, entity: str) -> tuple[ColumnName, ...]:
        """Column names of an entity in table order."""
        return tuple(ColumnName(col.name) for col in self.table(entity).columns)

    def has_column(self, entity: str, column: str) -> bool:
        return self.has_entity(entity) and column in self.table(entity).c

    def count(self, entity: str) -> int:
        table = self.table(entity)
        with self._begin() as conn:
            return int(conn.execute(select(func.count()).select_from(table)).scalar_one())

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def scan(self, entity: str, where: ColumnElement[bool] | None = None) -> list[StoreRow]:
        """Read rows of an entity in rowid order.

        Args:
            entity: Entity to read
            where: Optional filter built from ``store.table(entity).c``
        """
        table = self.table(entity)
        names = [col.name for col in table.columns]
        query = select(self._rowid(table).label("__rowid__"), *table.columns).select_from(table)
        if where is not None:
            query = query.where(where)
        query = query.order_by(self._rowid(table))
        with self._begin() as conn:
            result = conn.execute(query).all()
        return [
            StoreRow(
                identity=RowIdentity(int(row[0])),
                values=MappingProxyType({name: _as_text(value) for name, value in zip(names, row[1:], strict=True)}),
            )
            for row in result
        ]

    def find_dangling(self, entity: str, column: str, targets: Sequence[ColumnRef]) -> list[StoreRow]:
        """Rows whose non-null ``column`` value matches no non-null target value.

        Targets are alternatives: a value matching any one of them resolves.
        A target whose entity or column is absent contributes no values.
        """
        table = self.table(entity)
        if column not in table.c:
            return []
        source = table.c[column]
        conditions: list[ColumnElement[bool]] = [source.isnot(None)]
        for index, target in enumerate(targets):
            if not self.has_column(target.entity, target.column):
                continue
            # Aliased so a self-reference is not correlated with the outer table
            target_table = self.table(target.entity).alias(f"target_{index}")
            target_column = target_table.c[target.column]
            conditions.append(source.not_in(select(target_column).where(target_column.isnot(None))))
        return self.scan(entity, and_(*conditions))

    def find_unreferenced(self, entity: str, column: str, referrers: Sequence[ColumnRef]) -> list[StoreRow]:
        """Rows whose non-null ``column`` value no referrer column mentions.

        A NULL referrer value references every row, so any NULL among the
        referrers leaves nothing unreferenced. Absent referrer entities
        contribute no references.
        """
        table = self.table(entity)
        if column not in table.c:
            return []
        key = table.c[column]
        conditions: list[ColumnElement[bool]] = [key.isnot(None)]
        for index, referrer in enumerate(referrers):
            if not self.has_entity(referrer.entity):
                continue
            if not self.has_column(referrer.entity, referrer.column):
                if self.count(referrer.entity):
                    return []
                continue
            referrer_table = self.table(referrer.entity).alias(f"referrer_{index}")
            referrer_column = referrer_table.c[referrer.column]
            with self._begin() as conn:
                has_null = conn.execute(
                    select(func.count()).select_from(referrer_table).where(referrer_column.is_(None))
                ).scalar_one()
            if has_null:
                return []
            conditions.append(key.not_in(select(referrer_column).where(referrer_column.isnot(None))))
        return self.scan(entity, and_(*conditions))

    def snapshot(self) -> dict[EntityName, list[tuple[Any, ...]]]:
        """Every row of every entity as (rowid, *values), in rowid order."""
        return {
            entity: [(row.identity, *row.values.values()) for row in self.scan(entity)]
            for entity in self.entities()
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert_rows(self, entity: str, rows: Iterable[Mapping[str, str | None]]) -> int:
        """Bulk insert rows, storing empty strings as NULL.

        Unknown entities and columns are declared on demand; an undeclared
        entity known to the schema gets its schema columns first.

        Returns:
            Number of rows inserted
        """
        self._require_writable(f"insert into {entity}")
        materialised = [dict(row) for row in rows]
        if not materialised:
            return 0
        keys = list(dict.fromkeys(key for row in materialised for key in row))
        if self.has_entity(entity):
            for key in keys:
                self.declare_column(entity, key)
        else:
            declared = self._schema.get_entity(entity).column_names if self._schema.has_entity(entity) else ()
            self.declare_entity(entity, [*declared, *keys])
        table = self.table(entity)
        params = [{key: (row.get(key) or None) for key in keys} for row in materialised]
        with self._begin() as conn:
            conn.execute(table.insert(), params)
        return len(params)

    def delete_by_identity(self, entity: str, identity: RowIdentity) -> None:
        """Delete one row.

        Raises:
            StoreError: If the identity no longer exists
        """
        self.delete_scheduled({entity: (identity,)})

    def delete_identities(self, entity: str, identities: Iterable[RowIdentity]) -> int:
        """Delete many rows of one entity in one transaction."""
        return self.delete_scheduled({entity: identities})

    def delete_scheduled(self, scheduled: Mapping[str, Iterable[RowIdentity]]) -> int:
        """Delete rows of several entities in one transaction.

        Identities are deduplicated per entity. If any identity no longer
        exists the transaction is rolled back and nothing is deleted.

        Returns:
            Number of rows deleted

        Raises:
            StoreError: If an identity is missing or the store is read-only
        """
        self._require_writable("delete rows")
        deleted = 0
        with self._begin() as conn:
            for entity, identities in scheduled.items():
                table = self.table(entity)
                pending = sorted(set(identities))
                for start in range(0, len(pending), _DELETE_CHUNK_SIZE):
                    chunk = pending[start : start + _DELETE_CHUNK_SIZE]
                    result = conn.execute(table.delete().where(self._rowid(table).in_(chunk)))
                    if result.rowcount != len(chunk):
                        missing = len(chunk) - result.rowcount
                        raise StoreError(f"Cannot delete from {entity}: {missing} row identity(ies) no longer exist")
                    deleted += result.rowcount
        return deleted
