"""
Source repository for reading the legacy store.

The legacy store is read-only: no method here writes to it. Three
implementations are provided:

- SQLAlchemySourceRepository: Queries the legacy tables through async SQLAlchemy
- InMemorySourceRepository: Dictionary-backed store for tests and development
- GatedSourceRepository: Wraps another repository and refuses every read
  while the source connection is switched off
"""

import asyncio
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Protocol, TypeVar, runtime_checkable

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from ticketbridge.exceptions import SourceDisabledError
from ticketbridge.models import (
    SourceActor,
    SourceCategory,
    SourceClassification,
    SourceComment,
    SourceFile,
    SourceRecord,
    SourceTicket,
    TicketFilter,
    as_utc,
)
from ticketbridge.observability import (
    ATTR_DB_SYSTEM,
    ATTR_OWNER_ID,
    ATTR_OWNER_TYPE,
    ATTR_SOURCE_ID,
    Tracer,
    create_tracer,
)
from ticketbridge.repositories._connection import dialect_name, execute_with_connection

TSource = TypeVar("TSource", bound=SourceRecord)


@runtime_checkable
class SourceRepository(Protocol):
    """
    Protocol for read access to the legacy store.

    Single-row getters return None when the row does not exist; absence is
    reported by the migrators, not here.
    """

    async def get_ticket(self, ticket_id: int) -> SourceTicket | None: ...

    async def list_tickets(self, ticket_filter: TicketFilter | None = None) -> list[SourceTicket]:
        """List tickets matching the filter, oldest first."""
        ...

    async def count_tickets(self) -> int: ...

    async def get_classification(self, classification_id: int) -> SourceClassification | None: ...

    async def list_classifications_for_category(
        self, category_id: int
    ) -> list[SourceClassification]: ...

    async def get_category(self, category_id: int) -> SourceCategory | None: ...

    async def get_files(self, file_ids: Sequence[int]) -> list[SourceFile]: ...

    async def list_files_by_owner(self, owner_type: str, owner_id: int) -> list[SourceFile]: ...

    async def get_comments(self, comment_ids: Sequence[int]) -> list[SourceComment]: ...

    async def list_comments_by_owner(self, owner_type: str, owner_id: int) -> list[SourceComment]:
        """List comments of an owner ordered by creation time ascending."""
        ...

    async def get_actor(self, actor_id: int) -> SourceActor | None: ...


# =============================================================================
# SQLAlchemy implementation
# =============================================================================

_TICKET_COLUMNS = """
    id,
    id_subtipo AS classification_id,
    COALESCE(titulo, '') AS title,
    descripcion AS description,
    fecha_estimada AS estimated_date,
    fecha_clasificacion AS classification_date,
    numero_issue AS issue_number,
    url_ticket AS url,
    created_at,
    updated_at
"""

_FILE_COLUMNS = """
    id,
    COALESCE(display_name, '') AS display_name,
    COALESCE(filename, '') AS filename,
    COALESCE(route, '') AS route,
    COALESCE(archivable_type, '') AS owner_type,
    archivable_id AS owner_id,
    created_at,
    updated_at
"""

_COMMENT_COLUMNS = """
    id,
    comentable_type AS owner_type,
    comentable_id AS owner_id,
    id_usuario AS author_id,
    comentario AS text,
    created_at
"""


class SQLAlchemySourceRepository:
    """
    Legacy store reader backed by async SQLAlchemy.

    Reads the legacy tables (``tbl_tickets_new``, ``utl_subtipos``,
    ``utl_tipos``, ``tbl_archivos_new``, ``tbl_tickets_new_comentarios``,
    ``utl_usuarios``) and maps their columns onto source records. Every query
    runs on a non-transactional connection.

    Example:
        >>> engine = create_async_engine("mysql+aiomysql://reader@legacy/gestion")
        >>> repo = SQLAlchemySourceRepository(engine)
        >>> ticket = await repo.get_ticket(1042)
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the source repository.

        Args:
            conn: Database connection or engine for the legacy store
            tracer: Optional tracer (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.conn = conn
        self._db_system = dialect_name(conn)

    async def _fetch_all(
        self,
        model: type[TSource],
        query: Any,
        params: dict[str, Any] | None = None,
    ) -> list[TSource]:
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(query, params or {})
            rows = result.mappings().all()
        return [model.model_validate(dict(row)) for row in rows]

    def _bind_timestamp(self, value: datetime) -> datetime | str:
        # sqlite keeps timestamps as ISO text
        value = as_utc(value)
        return value.isoformat() if self._db_system == "sqlite" else value

    async def _fetch_one(
        self,
        model: type[TSource],
        query: Any,
        params: dict[str, Any],
    ) -> TSource | None:
        rows = await self._fetch_all(model, query, params)
        return rows[0] if rows else None

    async def get_ticket(self, ticket_id: int) -> SourceTicket | None:
        with self._tracer.span(
            "ticketbridge.source.get_ticket",
            {ATTR_SOURCE_ID: ticket_id, ATTR_DB_SYSTEM: self._db_system},
        ):
            query = text(f"SELECT {_TICKET_COLUMNS} FROM tbl_tickets_new WHERE id = :id")
            return await self._fetch_one(SourceTicket, query, {"id": ticket_id})

    async def list_tickets(self, ticket_filter: TicketFilter | None = None) -> list[SourceTicket]:
        with self._tracer.span(
            "ticketbridge.source.list_tickets",
            {ATTR_DB_SYSTEM: self._db_system},
        ):
            ticket_filter = ticket_filter or TicketFilter()
            clauses: list[str] = []
            params: dict[str, Any] = {}

            if ticket_filter.date_from is not None:
                clauses.append("created_at >= :date_from")
                params["date_from"] = self._bind_timestamp(ticket_filter.date_from)
            if ticket_filter.date_to is not None:
                clauses.append("created_at <= :date_to")
                params["date_to"] = self._bind_timestamp(ticket_filter.date_to)
            if ticket_filter.classification_id is not None:
                clauses.append("id_subtipo = :classification_id")
                params["classification_id"] = ticket_filter.classification_id
            if ticket_filter.source_ticket_id is not None:
                clauses.append("id = :ticket_id")
                params["ticket_id"] = ticket_filter.source_ticket_id

            where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
            query = text(f"SELECT {_TICKET_COLUMNS} FROM tbl_tickets_new {where} ORDER BY id")
            return await self._fetch_all(SourceTicket, query, params)

    async def count_tickets(self) -> int:
        with self._tracer.span(
            "ticketbridge.source.count_tickets",
            {ATTR_DB_SYSTEM: self._db_system},
        ):
            query = text("SELECT COUNT(*) FROM tbl_tickets_new")
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query)
                return int(result.scalar_one())

    async def get_classification(self, classification_id: int) -> SourceClassification | None:
        with self._tracer.span(
            "ticketbridge.source.get_classification",
            {ATTR_SOURCE_ID: classification_id, ATTR_DB_SYSTEM: self._db_system},
        ):
            query = text("""
                SELECT id_subtipo AS id,
                       COALESCE(descripcion, '') AS description,
                       id_tipo AS category_id
                FROM utl_subtipos
                WHERE id_subtipo = :id
            """)
            return await self._fetch_one(SourceClassification, query, {"id": classification_id})

    async def list_classifications_for_category(
        self, category_id: int
    ) -> list[SourceClassification]:
        with self._tracer.span(
            "ticketbridge.source.list_classifications_for_category",
            {ATTR_SOURCE_ID: category_id, ATTR_DB_SYSTEM: self._db_system},
        ):
            query = text("""
                SELECT id_subtipo AS id,
                       COALESCE(descripcion, '') AS description,
                       id_tipo AS category_id
                FROM utl_subtipos
                WHERE id_tipo = :category_id
                ORDER BY id_subtipo
            """)
            return await self._fetch_all(
                SourceClassification, query, {"category_id": category_id}
            )

    async def get_category(self, category_id: int) -> SourceCategory | None:
        with self._tracer.span(
            "ticketbridge.source.get_category",
            {ATTR_SOURCE_ID: category_id, ATTR_DB_SYSTEM: self._db_system},
        ):
            query = text("""
                SELECT id_tipo AS id,
                       COALESCE(nombre, '') AS name,
                       descripcion AS description
                FROM utl_tipos
                WHERE id_tipo = :id
            """)
            return await self._fetch_one(SourceCategory, query, {"id": category_id})

    async def get_files(self, file_ids: Sequence[int]) -> list[SourceFile]:
        if not file_ids:
            return []
        with self._tracer.span(
            "ticketbridge.source.get_files",
            {ATTR_DB_SYSTEM: self._db_system, "ticketbridge.source.count": len(file_ids)},
        ):
            query = text(f"""
                SELECT {_FILE_COLUMNS}
                FROM tbl_archivos_new
                WHERE id IN :ids AND deleted_at IS NULL
                ORDER BY id
            """).bindparams(bindparam("ids", expanding=True))
            return await self._fetch_all(SourceFile, query, {"ids": list(file_ids)})

    async def list_files_by_owner(self, owner_type: str, owner_id: int) -> list[SourceFile]:
        with self._tracer.span(
            "ticketbridge.source.list_files_by_owner",
            {
                ATTR_OWNER_TYPE: owner_type,
                ATTR_OWNER_ID: owner_id,
                ATTR_DB_SYSTEM: self._db_system,
            },
        ):
            query = text(f"""
                SELECT {_FILE_COLUMNS}
                FROM tbl_archivos_new
                WHERE archivable_type = :owner_type
                  AND archivable_id = :owner_id
                  AND deleted_at IS NULL
                ORDER BY id
            """)
            return await self._fetch_all(
                SourceFile, query, {"owner_type": owner_type, "owner_id": owner_id}
            )

    async def get_comments(self, comment_ids: Sequence[int]) -> list[SourceComment]:
        if not comment_ids:
            return []
        with self._tracer.span(
            "ticketbridge.source.get_comments",
            {ATTR_DB_SYSTEM: self._db_system, "ticketbridge.source.count": len(comment_ids)},
        ):
            query = text(f"""
                SELECT {_COMMENT_COLUMNS}
                FROM tbl_tickets_new_comentarios
                WHERE id IN :ids
                ORDER BY created_at, id
            """).bindparams(bindparam("ids", expanding=True))
            return await self._fetch_all(SourceComment, query, {"ids": list(comment_ids)})

    async def list_comments_by_owner(self, owner_type: str, owner_id: int) -> list[SourceComment]:
        with self._tracer.span(
            "ticketbridge.source.list_comments_by_owner",
            {
                ATTR_OWNER_TYPE: owner_type,
                ATTR_OWNER_ID: owner_id,
                ATTR_DB_SYSTEM: self._db_system,
            },
        ):
            query = text(f"""
                SELECT {_COMMENT_COLUMNS}
                FROM tbl_tickets_new_comentarios
                WHERE comentable_type = :owner_type
                  AND comentable_id = :owner_id
                ORDER BY created_at ASC, id ASC
            """)
            return await self._fetch_all(
                SourceComment, query, {"owner_type": owner_type, "owner_id": owner_id}
            )

    async def get_actor(self, actor_id: int) -> SourceActor | None:
        with self._tracer.span(
            "ticketbridge.source.get_actor",
            {ATTR_SOURCE_ID: actor_id, ATTR_DB_SYSTEM: self._db_system},
        ):
            query = text("SELECT id, nombre AS name, email FROM utl_usuarios WHERE id = :id")
            return await self._fetch_one(SourceActor, query, {"id": actor_id})


# =============================================================================
# In-memory implementation
# =============================================================================


def _created_key(record: SourceComment) -> tuple[float, int]:
    timestamp = record.created_at.timestamp() if record.created_at else float("-inf")
    return (timestamp, record.id)


class InMemorySourceRepository:
    """
    In-memory legacy store for testing.

    Seed it with ``add()``; it dispatches on the record type.

    Example:
        >>> repo = InMemorySourceRepository()
        >>> repo.add(SourceCategory(id=1, name="Support"))
        >>> await repo.get_category(1)
        SourceCategory(id=1, name='Support', description=None)
    """

    def __init__(self, records: Iterable[SourceRecord] = ()) -> None:
        self._tickets: dict[int, SourceTicket] = {}
        self._classifications: dict[int, SourceClassification] = {}
        self._categories: dict[int, SourceCategory] = {}
        self._files: dict[int, SourceFile] = {}
        self._comments: dict[int, SourceComment] = {}
        self._actors: dict[int, SourceActor] = {}
        self._lock = asyncio.Lock()
        self.read_count = 0
        for record in records:
            self.add(record)

    def add(self, *records: SourceRecord) -> None:
        """Seed one or more source records."""
        for record in records:
            if isinstance(record, SourceTicket):
                self._tickets[record.id] = record
            elif isinstance(record, SourceClassification):
                self._classifications[record.id] = record
            elif isinstance(record, SourceCategory):
                self._categories[record.id] = record
            elif isinstance(record, SourceFile):
                self._files[record.id] = record
            elif isinstance(record, SourceComment):
                self._comments[record.id] = record
            elif isinstance(record, SourceActor):
                self._actors[record.id] = record
            else:
                raise TypeError(f"Unsupported source record: {type(record).__name__}")

    async def _read(self) -> None:
        async with self._lock:
            self.read_count += 1

    async def get_ticket(self, ticket_id: int) -> SourceTicket | None:
        await self._read()
        return self._tickets.get(ticket_id)

    async def list_tickets(self, ticket_filter: TicketFilter | None = None) -> list[SourceTicket]:
        await self._read()
        ticket_filter = ticket_filter or TicketFilter()
        return [
            ticket
            for _, ticket in sorted(self._tickets.items())
            if ticket_filter.matches(ticket)
        ]

    async def count_tickets(self) -> int:
        await self._read()
        return len(self._tickets)

    async def get_classification(self, classification_id: int) -> SourceClassification | None:
        await self._read()
        return self._classifications.get(classification_id)

    async def list_classifications_for_category(
        self, category_id: int
    ) -> list[SourceClassification]:
        await self._read()
        return [
            classification
            for _, classification in sorted(self._classifications.items())
            if classification.category_id == category_id
        ]

    async def get_category(self, category_id: int) -> SourceCategory | None:
        await self._read()
        return self._categories.get(category_id)

    async def get_files(self, file_ids: Sequence[int]) -> list[SourceFile]:
        await self._read()
        return [self._files[file_id] for file_id in sorted(set(file_ids)) if file_id in self._files]

    async def list_files_by_owner(self, owner_type: str, owner_id: int) -> list[SourceFile]:
        await self._read()
        return [
            record
            for _, record in sorted(self._files.items())
            if record.owner_type == owner_type and record.owner_id == owner_id
        ]

    async def get_comments(self, comment_ids: Sequence[int]) -> list[SourceComment]:
        await self._read()
        wanted = set(comment_ids)
        found = [record for record in self._comments.values() if record.id in wanted]
        return sorted(found, key=_created_key)

    async def list_comments_by_owner(self, owner_type: str, owner_id: int) -> list[SourceComment]:
        await self._read()
        found = [
            record
            for record in self._comments.values()
            if record.owner_type == owner_type and record.owner_id == owner_id
        ]
        return sorted(found, key=_created_key)

    async def get_actor(self, actor_id: int) -> SourceActor | None:
        await self._read()
        return self._actors.get(actor_id)


# =============================================================================
# Connectivity gate
# =============================================================================


class GatedSourceRepository:
    """
    Source repository wrapper that enforces the connectivity flag.

    While ``enabled`` is False every read raises SourceDisabledError before
    the wrapped repository is touched, so no connection is ever attempted.

    Example:
        >>> gated = GatedSourceRepository(repo, enabled=config.source_enabled)
        >>> await gated.get_ticket(1)
        Traceback (most recent call last):
        ...
        SourceDisabledError: Source store is disabled. ...
    """

    def __init__(self, inner: SourceRepository | None, enabled: bool) -> None:
        self._inner = inner
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled and self._inner is not None

    def _source(self) -> SourceRepository:
        if not self._enabled:
            raise SourceDisabledError()
        if self._inner is None:
            raise SourceDisabledError(
                "Source store is enabled but no source repository is configured."
            )
        return self._inner

    async def get_ticket(self, ticket_id: int) -> SourceTicket | None:
        return await self._source().get_ticket(ticket_id)

    async def list_tickets(self, ticket_filter: TicketFilter | None = None) -> list[SourceTicket]:
        return await self._source().list_tickets(ticket_filter)

    async def count_tickets(self) -> int:
        return await self._source().count_tickets()

    async def get_classification(self, classification_id: int) -> SourceClassification | None:
        return await self._source().get_classification(classification_id)

    async def list_classifications_for_category(
        self, category_id: int
    ) -> list[SourceClassification]:
        return await self._source().list_classifications_for_category(category_id)

    async def get_category(self, category_id: int) -> SourceCategory | None:
        return await self._source().get_category(category_id)

    async def get_files(self, file_ids: Sequence[int]) -> list[SourceFile]:
        return await self._source().get_files(file_ids)

    async def list_files_by_owner(self, owner_type: str, owner_id: int) -> list[SourceFile]:
        return await self._source().list_files_by_owner(owner_type, owner_id)

    async def get_comments(self, comment_ids: Sequence[int]) -> list[SourceComment]:
        return await self._source().get_comments(comment_ids)

    async def list_comments_by_owner(self, owner_type: str, owner_id: int) -> list[SourceComment]:
        return await self._source().list_comments_by_owner(owner_type, owner_id)

    async def get_actor(self, actor_id: int) -> SourceActor | None:
        return await self._source().get_actor(actor_id)


__all__ = [
    "SourceRepository",
    "SQLAlchemySourceRepository",
    "InMemorySourceRepository",
    "GatedSourceRepository",
]
