"""
MigrationEngine - single entry point for every migration operation.

The engine wires the migrators to one set of repositories, one content
store, one reference resolver and one bounded batch runner, all built from a
``MigrationConfig``. The legacy store is always wrapped in the connectivity
gate, so with ``source_enabled=False`` every source-reading operation fails
fast with SourceDisabledError.

Usage:
    >>> config = MigrationConfig.from_env()
    >>> engine = MigrationEngine(
    ...     config,
    ...     source=SQLAlchemySourceRepository(legacy_engine),
    ...     target=SQLAlchemyTargetRepository(local_engine),
    ... )
    >>> result = await engine.migrate_ticket(42)
    >>> report = await engine.report()
"""

import logging
from collections.abc import Sequence

import httpx

from ticketbridge.config import MigrationConfig
from ticketbridge.migration.batch import BatchRunner
from ticketbridge.migration.categories import CategoryMigrator
from ticketbridge.migration.classifications import ClassificationMigrator
from ticketbridge.migration.comments import CommentMigrator
from ticketbridge.migration.files import FileTransferMigrator
from ticketbridge.migration.models import (
    CommentMigrationSummary,
    FileMigrationSummary,
    ReconciliationReport,
    TicketBatchResult,
    TicketBundleResult,
    TicketMigrationResult,
)
from ticketbridge.migration.reporter import ReconciliationReporter
from ticketbridge.migration.resolver import ReferenceResolver
from ticketbridge.migration.tickets import TicketMigrator
from ticketbridge.models import Classification, Ticket, TicketFilter
from ticketbridge.observability import (
    ATTR_LOCAL_ID,
    ATTR_SOURCE_ID,
    Tracer,
    create_tracer,
)
from ticketbridge.protocols import OwnerDescriptor
from ticketbridge.repositories.source import GatedSourceRepository, SourceRepository
from ticketbridge.repositories.target import TargetRepository
from ticketbridge.storage import ContentStorage, LocalContentStorage
from ticketbridge.types import ActorNameResolver

logger = logging.getLogger(__name__)


class MigrationEngine:
    """
    Facade over the ticket, classification, file and comment migrators.

    Expected outcomes (already migrated, not found, per-item failures) come
    back as result objects. Only unexpected failures raise.

    Attributes:
        config: Settings the engine was built from
        source: Gated legacy store
        target: Local store
    """

    def __init__(
        self,
        config: MigrationConfig,
        source: SourceRepository | None,
        target: TargetRepository,
        storage: ContentStorage | None = None,
        client: httpx.AsyncClient | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Migration settings
            source: Legacy store (None when it is not reachable at all)
            target: Local store
            storage: Content storage for file payloads
                (defaults to LocalContentStorage at ``config.storage_root``)
            client: Shared HTTP client for file downloads
            tracer: Optional tracer (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.config = config
        self.source = GatedSourceRepository(source, config.source_enabled)
        self.target = target
        self.storage = storage or LocalContentStorage(config.storage_root)

        self._resolver = ReferenceResolver(target, tracer=self._tracer)
        self._batch_runner = BatchRunner(config.max_concurrency, tracer=self._tracer)

        self.categories = CategoryMigrator(
            self.source, target, resolver=self._resolver, tracer=self._tracer
        )
        self.classifications = ClassificationMigrator(
            self.source,
            target,
            categories=self.categories,
            resolver=self._resolver,
            batch_runner=self._batch_runner,
            tracer=self._tracer,
        )
        self.tickets = TicketMigrator(
            self.source,
            target,
            config=config,
            classifications=self.classifications,
            resolver=self._resolver,
            batch_runner=self._batch_runner,
            tracer=self._tracer,
        )
        self.files = FileTransferMigrator(
            self.source,
            target,
            self.storage,
            config=config,
            client=client,
            resolver=self._resolver,
            batch_runner=self._batch_runner,
            tracer=self._tracer,
        )
        self.comments = CommentMigrator(
            self.source,
            target,
            config=config,
            resolver=self._resolver,
            batch_runner=self._batch_runner,
            tracer=self._tracer,
        )
        self.reporter = ReconciliationReporter(
            self.source,
            target,
            source_enabled=self.source.enabled,
            tracer=self._tracer,
        )

        if not self.source.enabled:
            logger.warning("Legacy store disabled; only local reporting is available")

    async def migrate_ticket(self, source_ticket_id: int) -> TicketMigrationResult:
        """Migrate one legacy ticket (create-only)."""
        return await self.tickets.migrate_one(source_ticket_id)

    async def migrate_tickets(
        self,
        ticket_filter: TicketFilter | None = None,
        *,
        refresh_existing: bool = False,
    ) -> TicketBatchResult:
        """Migrate every legacy ticket matching a filter."""
        return await self.tickets.migrate_batch(ticket_filter, refresh_existing=refresh_existing)

    async def update_ticket(self, local_ticket_id: int) -> Ticket:
        """Refresh a local ticket from its legacy row."""
        return await self.tickets.update_one(local_ticket_id)

    async def migrate_classifications(
        self,
        classification_id: int | None = None,
        category_id: int | None = None,
    ) -> list[Classification]:
        """Create or refresh a classification and/or all classifications of a category."""
        return await self.classifications.migrate(
            classification_id=classification_id, category_id=category_id
        )

    async def migrate_files(
        self,
        source_file_ids: Sequence[int],
        owner: OwnerDescriptor | None = None,
    ) -> FileMigrationSummary:
        """Migrate legacy files by id, optionally re-attaching them to ``owner``."""
        return await self.files.migrate_many(source_file_ids, owner)

    async def migrate_comments(
        self,
        source_owner_type: str,
        source_owner_id: int,
        owner: OwnerDescriptor,
        actor_name_resolver: ActorNameResolver | None = None,
    ) -> CommentMigrationSummary:
        """Migrate every legacy comment of a legacy owner onto ``owner``."""
        return await self.comments.migrate_many_by_owner(
            source_owner_type, source_owner_id, owner, actor_name_resolver
        )

    async def report(self) -> ReconciliationReport:
        """Compare legacy and local ticket counts."""
        return await self.reporter.report()

    async def migrate_ticket_bundle(self, source_ticket_id: int) -> TicketBundleResult:
        """
        Migrate a ticket, then its legacy comments and attachments onto it.

        Comments and files are looked up under the legacy ticket owner type
        (``config.legacy_ticket_owner_type``) and attached to the local
        ticket. When the ticket is not found upstream, or the local ticket
        was soft-deleted, nothing else is done.

        Returns:
            TicketBundleResult with the ticket outcome and the comment and file summaries
        """
        with self._tracer.span(
            "ticketbridge.engine.migrate_ticket_bundle",
            {ATTR_SOURCE_ID: source_ticket_id},
        ) as span:
            ticket_result = await self.tickets.migrate_one(source_ticket_id)
            bundle = TicketBundleResult(ticket=ticket_result)
            ticket = ticket_result.ticket
            if ticket is None:
                return bundle
            if ticket.is_deleted:
                logger.warning(
                    "Local ticket %s (legacy %s) is deleted; not attaching comments or files",
                    ticket.id,
                    source_ticket_id,
                )
                return bundle

            if span is not None:
                span.set_attribute(ATTR_LOCAL_ID, ticket.id)

            legacy_type = self.config.legacy_ticket_owner_type
            bundle.comments = await self.comments.migrate_many_by_owner(
                legacy_type, source_ticket_id, ticket
            )
            attachments = await self.source.list_files_by_owner(legacy_type, source_ticket_id)
            bundle.files = await self.files.migrate_many(
                [attachment.id for attachment in attachments], owner=ticket
            )

            logger.info(
                "Ticket %s bundle: %s, %d comments migrated (%d errors), "
                "%d files migrated (%d errors)",
                source_ticket_id,
                ticket_result.status.value,
                bundle.comments.migrated,
                bundle.comments.errors,
                bundle.files.migrated,
                bundle.files.errors,
            )
            return bundle


__all__ = ["MigrationEngine"]
