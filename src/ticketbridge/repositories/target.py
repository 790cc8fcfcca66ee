"""
Target repository for the local (canonical) store.

The target store is the only store the engine writes to. Every record kind
lives in its own table with a unique index on ``source_reference_id``, so a
second insert for the same legacy row fails with AlreadyMigratedError
instead of producing a duplicate.

Implementations:
- SQLAlchemyTargetRepository: PostgreSQL (asyncpg) or SQLite (aiosqlite)
- InMemoryTargetRepository: Dictionary-backed store for tests
"""

import asyncio
from collections import Counter
from collections.abc import Sequence
from datetime import UTC, date, datetime
from typing import Any, Protocol, TypeVar, runtime_checkable

from sqlalchemy import bindparam, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from ticketbridge.exceptions import (
    AlreadyMigratedError,
    PersistenceFailureError,
    RecordNotFoundError,
)
from ticketbridge.models import RECORD_TYPES, RecordKind, TargetRecord
from ticketbridge.observability import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_LOCAL_ID,
    ATTR_RECORD_KIND,
    ATTR_SOURCE_ID,
    Tracer,
    create_tracer,
)
from ticketbridge.repositories._connection import dialect_name, execute_with_connection
from ticketbridge.schema import get_schema_statements

TRecord = TypeVar("TRecord", bound=TargetRecord)


@runtime_checkable
class TargetRepository(Protocol):
    """
    Protocol for the local store.

    Reference lookups see soft-deleted rows too: a migrated record that was
    later soft-deleted still owns its source reference and is never
    re-created. ``get`` and the default ``count`` only see live rows.
    """

    async def get(self, kind: RecordKind, local_id: int) -> TargetRecord | None: ...

    async def find_by_reference(self, kind: RecordKind, source_id: int) -> TargetRecord | None:
        """Find the record derived from a given legacy row."""
        ...

    async def existing_references(
        self,
        kind: RecordKind,
        source_ids: Sequence[int] | None = None,
    ) -> set[int]:
        """
        Get the source reference ids already present for a kind.

        Args:
            kind: Record kind to look in
            source_ids: Restrict the lookup to these ids (None for all)

        Returns:
            Subset of ``source_ids`` (or all references) already migrated
        """
        ...

    async def classification_references_for_category(self, category_id: int) -> set[int]:
        """Source reference ids of the local classifications under a local category."""
        ...

    async def create(self, record: TRecord) -> TRecord:
        """
        Insert a new record.

        Returns:
            Copy of the record with its local id assigned

        Raises:
            AlreadyMigratedError: If the source reference is already taken
            PersistenceFailureError: If the store rejects the write
        """
        ...

    async def save(self, record: TRecord) -> TRecord:
        """
        Overwrite an existing record.

        Raises:
            RecordNotFoundError: If no live record has the record's id
            PersistenceFailureError: If the store rejects the write
        """
        ...

    async def soft_delete(self, kind: RecordKind, local_id: int) -> bool: ...

    async def count(
        self,
        kind: RecordKind,
        *,
        with_reference: bool = False,
        include_deleted: bool = False,
    ) -> int: ...


def _touch(record: TRecord, *, created: bool) -> TRecord:
    now = datetime.now(UTC)
    update: dict[str, Any] = {"updated_at": now}
    if created:
        update["created_at"] = now
    return record.model_copy(update=update)


# =============================================================================
# SQLAlchemy implementation
# =============================================================================


class SQLAlchemyTargetRepository:
    """
    Local store backed by async SQLAlchemy.

    Works with PostgreSQL (asyncpg) and SQLite (aiosqlite). Call
    ``initialize()`` once to create the schema.

    Example:
        >>> engine = create_async_engine("sqlite+aiosqlite:///target.db")
        >>> repo = SQLAlchemyTargetRepository(engine)
        >>> await repo.initialize()
        >>> category = await repo.create(Category(source_reference_id=3, name="Support"))
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the target repository.

        Args:
            conn: Database connection or engine for the local store
            tracer: Optional tracer (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.conn = conn
        self._db_system = dialect_name(conn)

    async def initialize(self) -> None:
        """Create the target tables and indexes if they don't exist."""
        backend = "sqlite" if self._db_system == "sqlite" else "postgresql"
        async with execute_with_connection(self.conn, transactional=True) as conn:
            for statement in get_schema_statements(backend):
                await conn.execute(text(statement))

    def _bind(self, values: dict[str, Any]) -> dict[str, Any]:
        # SQLite has no native date types; store ISO-8601 text
        if self._db_system != "sqlite":
            return values
        return {
            key: value.isoformat() if isinstance(value, (datetime, date)) else value
            for key, value in values.items()
        }

    def _attributes(self, kind: RecordKind, operation: str, **extra: Any) -> dict[str, Any]:
        return {
            ATTR_RECORD_KIND: kind.value,
            ATTR_DB_SYSTEM: self._db_system,
            ATTR_DB_OPERATION: operation,
            **extra,
        }

    async def _select(
        self,
        kind: RecordKind,
        where: str,
        params: dict[str, Any],
    ) -> TargetRecord | None:
        model = RECORD_TYPES[kind]
        query = text(f"SELECT * FROM {model.table_name()} WHERE {where}")
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(query, params)
            row = result.mappings().first()
        return model.model_validate(dict(row)) if row else None

    async def get(self, kind: RecordKind, local_id: int) -> TargetRecord | None:
        with self._tracer.span(
            "ticketbridge.target.get",
            self._attributes(kind, "SELECT", **{ATTR_LOCAL_ID: local_id}),
        ):
            return await self._select(kind, "id = :id AND deleted_at IS NULL", {"id": local_id})

    async def find_by_reference(self, kind: RecordKind, source_id: int) -> TargetRecord | None:
        with self._tracer.span(
            "ticketbridge.target.find_by_reference",
            self._attributes(kind, "SELECT", **{ATTR_SOURCE_ID: source_id}),
        ):
            return await self._select(
                kind, "source_reference_id = :source_id", {"source_id": source_id}
            )

    async def existing_references(
        self,
        kind: RecordKind,
        source_ids: Sequence[int] | None = None,
    ) -> set[int]:
        with self._tracer.span(
            "ticketbridge.target.existing_references",
            self._attributes(kind, "SELECT"),
        ):
            if source_ids is not None and not source_ids:
                return set()

            table = RECORD_TYPES[kind].table_name()
            if source_ids is None:
                query = text(
                    f"SELECT source_reference_id FROM {table} "
                    "WHERE source_reference_id IS NOT NULL"
                )
                params: dict[str, Any] = {}
            else:
                query = text(
                    f"SELECT source_reference_id FROM {table} WHERE source_reference_id IN :ids"
                ).bindparams(bindparam("ids", expanding=True))
                params = {"ids": list(source_ids)}

            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, params)
                return {int(row[0]) for row in result.fetchall()}

    async def classification_references_for_category(self, category_id: int) -> set[int]:
        with self._tracer.span(
            "ticketbridge.target.classification_references_for_category",
            self._attributes(
                RecordKind.CLASSIFICATION, "SELECT", **{ATTR_LOCAL_ID: category_id}
            ),
        ):
            query = text("""
                SELECT source_reference_id
                FROM classifications
                WHERE category_id = :category_id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"category_id": category_id})
                return {int(row[0]) for row in result.fetchall()}

    async def create(self, record: TRecord) -> TRecord:
        kind = record.kind
        with self._tracer.span(
            "ticketbridge.target.create",
            self._attributes(kind, "INSERT", **{ATTR_SOURCE_ID: record.source_reference_id}),
        ):
            if record.id is not None:
                raise ValueError(f"Cannot create {kind.value} that already has id {record.id}")

            record = _touch(record, created=True)
            columns = record.column_names()
            query = text(f"""
                INSERT INTO {record.table_name()} ({", ".join(columns)})
                VALUES ({", ".join(f":{column}" for column in columns)})
                RETURNING id
            """)
            values = self._bind(record.model_dump(include=set(columns)))

            try:
                async with execute_with_connection(self.conn, transactional=True) as conn:
                    result = await conn.execute(query, values)
                    new_id = int(result.scalar_one())
            except IntegrityError as e:
                if "source_reference" in str(e.orig):
                    raise AlreadyMigratedError(kind, record.source_reference_id) from e
                raise PersistenceFailureError(
                    kind, str(e.orig), record.source_reference_id
                ) from e
            except SQLAlchemyError as e:
                raise PersistenceFailureError(kind, str(e), record.source_reference_id) from e

            return record.model_copy(update={"id": new_id})

    async def save(self, record: TRecord) -> TRecord:
        kind = record.kind
        with self._tracer.span(
            "ticketbridge.target.save",
            self._attributes(kind, "UPDATE", **{ATTR_LOCAL_ID: record.id}),
        ):
            if record.id is None:
                raise RecordNotFoundError(kind, None, f"Cannot save unsaved {kind.value}")

            record = _touch(record, created=False)
            columns = [column for column in record.column_names() if column != "created_at"]
            query = text(f"""
                UPDATE {record.table_name()}
                SET {", ".join(f"{column} = :{column}" for column in columns)}
                WHERE id = :id AND deleted_at IS NULL
            """)
            values = self._bind(record.model_dump(include={*columns, "id"}))

            try:
                async with execute_with_connection(self.conn, transactional=True) as conn:
                    result = await conn.execute(query, values)
                    updated = result.rowcount
            except IntegrityError as e:
                if "source_reference" in str(e.orig):
                    raise AlreadyMigratedError(kind, record.source_reference_id) from e
                raise PersistenceFailureError(
                    kind, str(e.orig), record.source_reference_id
                ) from e
            except SQLAlchemyError as e:
                raise PersistenceFailureError(kind, str(e), record.source_reference_id) from e

            if not updated:
                raise RecordNotFoundError(kind, record.id)
            return record

    async def soft_delete(self, kind: RecordKind, local_id: int) -> bool:
        with self._tracer.span(
            "ticketbridge.target.soft_delete",
            self._attributes(kind, "UPDATE", **{ATTR_LOCAL_ID: local_id}),
        ):
            query = text(f"""
                UPDATE {RECORD_TYPES[kind].table_name()}
                SET deleted_at = :now, updated_at = :now
                WHERE id = :id AND deleted_at IS NULL
            """)
            values = self._bind({"id": local_id, "now": datetime.now(UTC)})
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, values)
                return bool(result.rowcount)

    async def count(
        self,
        kind: RecordKind,
        *,
        with_reference: bool = False,
        include_deleted: bool = False,
    ) -> int:
        with self._tracer.span(
            "ticketbridge.target.count",
            self._attributes(kind, "SELECT"),
        ):
            clauses = []
            if with_reference:
                clauses.append("source_reference_id IS NOT NULL")
            if not include_deleted:
                clauses.append("deleted_at IS NULL")
            where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
            query = text(f"SELECT COUNT(*) FROM {RECORD_TYPES[kind].table_name()} {where}")
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query)
                return int(result.scalar_one())


# =============================================================================
# In-memory implementation
# =============================================================================


class InMemoryTargetRepository:
    """
    In-memory local store for testing.

    Enforces the same ``(kind, source_reference_id)`` uniqueness as the SQL
    schema. ``operations`` counts calls per method so tests can assert how
    many round-trips an operation made.

    Example:
        >>> repo = InMemoryTargetRepository()
        >>> category = await repo.create(Category(source_reference_id=3, name="Support"))
        >>> category.id
        1
    """

    def __init__(self) -> None:
        self._records: dict[RecordKind, dict[int, TargetRecord]] = {kind: {} for kind in RecordKind}
        self._references: dict[tuple[RecordKind, int], int] = {}
        self._next_id: Counter[RecordKind] = Counter()
        self._lock = asyncio.Lock()
        self.operations: Counter[str] = Counter()

    def all(self, kind: RecordKind) -> list[TargetRecord]:
        """All stored records of a kind in id order, including soft-deleted (test helper)."""
        return [
            record.model_copy(deep=True) for _, record in sorted(self._records[kind].items())
        ]

    async def get(self, kind: RecordKind, local_id: int) -> TargetRecord | None:
        async with self._lock:
            self.operations["get"] += 1
            record = self._records[kind].get(local_id)
            if record is None or record.is_deleted:
                return None
            return record.model_copy(deep=True)

    async def find_by_reference(self, kind: RecordKind, source_id: int) -> TargetRecord | None:
        async with self._lock:
            self.operations["find_by_reference"] += 1
            local_id = self._references.get((kind, source_id))
            if local_id is None:
                return None
            return self._records[kind][local_id].model_copy(deep=True)

    async def existing_references(
        self,
        kind: RecordKind,
        source_ids: Sequence[int] | None = None,
    ) -> set[int]:
        async with self._lock:
            self.operations["existing_references"] += 1
            present = {ref for (ref_kind, ref) in self._references if ref_kind is kind}
            if source_ids is None:
                return present
            return present & set(source_ids)

    async def classification_references_for_category(self, category_id: int) -> set[int]:
        async with self._lock:
            self.operations["classification_references_for_category"] += 1
            return {
                record.source_reference_id
                for record in self._records[RecordKind.CLASSIFICATION].values()
                if getattr(record, "category_id", None) == category_id
                and record.source_reference_id is not None
            }

    async def create(self, record: TRecord) -> TRecord:
        kind = record.kind
        async with self._lock:
            self.operations["create"] += 1
            if record.id is not None:
                raise ValueError(f"Cannot create {kind.value} that already has id {record.id}")
            reference = record.source_reference_id
            if reference is not None and (kind, reference) in self._references:
                raise AlreadyMigratedError(kind, reference)

            self._next_id[kind] += 1
            stored = _touch(record, created=True).model_copy(update={"id": self._next_id[kind]})
            self._records[kind][self._next_id[kind]] = stored
            if reference is not None:
                self._references[(kind, reference)] = self._next_id[kind]
            return stored.model_copy(deep=True)

    async def save(self, record: TRecord) -> TRecord:
        kind = record.kind
        async with self._lock:
            self.operations["save"] += 1
            current = self._records[kind].get(record.id) if record.id is not None else None
            if current is None or current.is_deleted:
                raise RecordNotFoundError(kind, record.id)

            reference = record.source_reference_id
            owner = self._references.get((kind, reference)) if reference is not None else None
            if owner is not None and owner != record.id:
                raise AlreadyMigratedError(kind, reference)

            if current.source_reference_id is not None:
                self._references.pop((kind, current.source_reference_id), None)
            if reference is not None:
                self._references[(kind, reference)] = record.id

            stored = _touch(record, created=False)
            self._records[kind][record.id] = stored
            return stored.model_copy(deep=True)

    async def soft_delete(self, kind: RecordKind, local_id: int) -> bool:
        async with self._lock:
            self.operations["soft_delete"] += 1
            record = self._records[kind].get(local_id)
            if record is None or record.is_deleted:
                return False
            now = datetime.now(UTC)
            self._records[kind][local_id] = record.model_copy(
                update={"deleted_at": now, "updated_at": now}
            )
            return True

    async def count(
        self,
        kind: RecordKind,
        *,
        with_reference: bool = False,
        include_deleted: bool = False,
    ) -> int:
        async with self._lock:
            self.operations["count"] += 1
            return sum(
                1
                for record in self._records[kind].values()
                if (include_deleted or not record.is_deleted)
                and (not with_reference or record.source_reference_id is not None)
            )


__all__ = [
    "TargetRepository",
    "SQLAlchemyTargetRepository",
    "InMemoryTargetRepository",
]
