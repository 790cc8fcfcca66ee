"""
Ticket migration.

Tickets sit at the bottom of the dependency chain
(category -> classification -> ticket). Every path that writes a ticket
first makes sure its classification exists locally, creating the category
and the category's classifications on the way if needed.

Re-run policy:
    - ``migrate_one`` is create-only: an existing ticket is returned as is.
    - ``migrate_batch`` skips existing tickets unless ``refresh_existing``
      is set, in which case they are re-synchronized like ``update_one``.
    - ``update_one`` always refreshes a single local ticket.
"""

import logging
from typing import Any

from ticketbridge.config import MigrationConfig
from ticketbridge.exceptions import (
    AlreadyMigratedError,
    DependencyUnresolvableError,
    RecordNotFoundError,
    SourceNotFoundError,
)
from ticketbridge.migration.batch import BatchRunner
from ticketbridge.migration.classifications import ClassificationMigrator
from ticketbridge.migration.models import (
    TicketBatchResult,
    TicketMigrationResult,
    TicketMigrationStatus,
)
from ticketbridge.migration.resolver import ReferenceResolver
from ticketbridge.models import Classification, RecordKind, SourceTicket, Ticket, TicketFilter
from ticketbridge.observability import (
    ATTR_BATCH_SIZE,
    ATTR_ITEMS_FAILED,
    ATTR_ITEMS_MIGRATED,
    ATTR_ITEMS_SKIPPED,
    ATTR_LOCAL_ID,
    ATTR_RECORD_KIND,
    ATTR_SOURCE_ID,
    Tracer,
    create_tracer,
)
from ticketbridge.repositories.source import SourceRepository
from ticketbridge.repositories.target import TargetRepository

logger = logging.getLogger(__name__)


class TicketMigrator:
    """
    Migrates legacy tickets into the local store.

    Example:
        >>> migrator = TicketMigrator(source_repo, target_repo, config=config)
        >>> result = await migrator.migrate_one(42)
        >>> result.status
        <TicketMigrationStatus.MIGRATED: 'migrated'>
        >>> (await migrator.migrate_one(42)).status
        <TicketMigrationStatus.ALREADY_EXISTS: 'already_exists'>
    """

    def __init__(
        self,
        source: SourceRepository,
        target: TargetRepository,
        config: MigrationConfig | None = None,
        classifications: ClassificationMigrator | None = None,
        resolver: ReferenceResolver | None = None,
        batch_runner: BatchRunner | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._config = config or MigrationConfig()
        self._source = source
        self._target = target
        self._resolver = resolver or ReferenceResolver(target, tracer=self._tracer)
        self._batch_runner = batch_runner or BatchRunner(
            self._config.max_concurrency, tracer=self._tracer
        )
        self._classifications = classifications or ClassificationMigrator(
            source,
            target,
            resolver=self._resolver,
            batch_runner=self._batch_runner,
            tracer=self._tracer,
        )

    async def resolve_classification(self, source_classification_id: int) -> Classification:
        """
        Get the local classification for a legacy classification, cascading if needed.

        When the classification is missing locally, its category is ensured
        and every missing classification of that category is migrated in one
        bulk pass before the requested one is returned.

        Raises:
            SourceNotFoundError: If the classification or its category is missing upstream
        """
        existing = await self._resolver.exists(RecordKind.CLASSIFICATION, source_classification_id)
        if existing is not None:
            return existing  # type: ignore[return-value]

        source = await self._source.get_classification(source_classification_id)
        if source is None:
            raise SourceNotFoundError(RecordKind.CLASSIFICATION, source_classification_id)

        category = await self._classifications.categories.ensure_category(source.category_id)
        await self._classifications.migrate_all_for_category(category)
        return await self._classifications.ensure_classification(source_classification_id)

    async def _classification_for(self, source: SourceTicket) -> Classification:
        try:
            return await self.resolve_classification(source.classification_id)
        except SourceNotFoundError as e:
            raise DependencyUnresolvableError(
                RecordKind.TICKET, source.id, e.kind, e.source_id
            ) from e

    def _ticket_fields(
        self,
        source: SourceTicket,
        classification: Classification,
    ) -> dict[str, Any]:
        return {
            "classification_id": classification.id,
            "title": source.title,
            "description": source.description or self._config.default_ticket_description,
            "estimated_date": source.estimated_date,
            "classification_date": source.classification_date,
            "issue_number": source.issue_number,
            "url": source.url,
        }

    async def _create(self, source: SourceTicket, classification: Classification) -> Ticket | None:
        """Create the local ticket; None if a concurrent run created it first."""
        fields = self._ticket_fields(source, classification)
        ticket = Ticket(source_reference_id=source.id, **fields)
        try:
            created = await self._target.create(ticket)
        except AlreadyMigratedError:
            logger.debug("Ticket %s was migrated concurrently", source.id)
            return None
        logger.debug("Migrated ticket %s as local ticket %s", source.id, created.id)
        return created

    async def _refresh(
        self,
        local: Ticket,
        source: SourceTicket,
        classification: Classification,
    ) -> Ticket:
        updated = local.model_copy(update=self._ticket_fields(source, classification))
        saved = await self._target.save(updated)
        logger.debug("Refreshed local ticket %s from legacy ticket %s", local.id, source.id)
        return saved

    async def migrate_one(self, source_ticket_id: int) -> TicketMigrationResult:
        """
        Migrate one legacy ticket (create-only).

        Returns:
            TicketMigrationResult with status MIGRATED, ALREADY_EXISTS or NOT_FOUND

        Raises:
            DependencyUnresolvableError: If the ticket's classification or
                category is missing upstream
        """
        with self._tracer.span(
            "ticketbridge.tickets.migrate_one",
            {ATTR_RECORD_KIND: RecordKind.TICKET.value, ATTR_SOURCE_ID: source_ticket_id},
        ) as span:
            source = await self._source.get_ticket(source_ticket_id)
            if source is None:
                logger.warning("Ticket %s not found in legacy store", source_ticket_id)
                return TicketMigrationResult(source_ticket_id, TicketMigrationStatus.NOT_FOUND)

            existing = await self._resolver.exists(RecordKind.TICKET, source_ticket_id)
            if existing is not None:
                logger.info("Ticket %s already migrated as %s", source_ticket_id, existing.id)
                return TicketMigrationResult(
                    source_ticket_id,
                    TicketMigrationStatus.ALREADY_EXISTS,
                    existing,  # type: ignore[arg-type]
                )

            classification = await self._classification_for(source)
            created = await self._create(source, classification)
            if created is None:
                winner = await self._resolver.exists(RecordKind.TICKET, source_ticket_id)
                return TicketMigrationResult(
                    source_ticket_id,
                    TicketMigrationStatus.ALREADY_EXISTS,
                    winner,  # type: ignore[arg-type]
                )

            if span is not None:
                span.set_attribute(ATTR_LOCAL_ID, created.id)
            logger.info("Migrated ticket %s as local ticket %s", source_ticket_id, created.id)
            return TicketMigrationResult(source_ticket_id, TicketMigrationStatus.MIGRATED, created)

    async def migrate_batch(
        self,
        ticket_filter: TicketFilter | None = None,
        *,
        refresh_existing: bool = False,
    ) -> TicketBatchResult:
        """
        Migrate every legacy ticket matching a filter.

        Classifications are resolved once per distinct classification id with
        the same cascade as ``migrate_one``; a ticket whose classification
        cannot be resolved is counted as failed. Per-ticket failures never
        abort the run.

        Args:
            ticket_filter: Selection filter (None for every legacy ticket)
            refresh_existing: Re-synchronize tickets that already exist locally
                instead of skipping them

        Returns:
            TicketBatchResult with migrated / skipped / refreshed / failed counts
        """
        ticket_filter = ticket_filter or TicketFilter()
        with self._tracer.span(
            "ticketbridge.tickets.migrate_batch",
            {ATTR_RECORD_KIND: RecordKind.TICKET.value},
        ) as span:
            logger.info("Starting ticket migration with filter %s", ticket_filter.model_dump())

            rows = await self._source.list_tickets(ticket_filter)
            present = await self._resolver.existing(RecordKind.TICKET, (row.id for row in rows))
            new_rows = [row for row in rows if row.id not in present]
            existing_rows = [row for row in rows if row.id in present]
            logger.info(
                "Found %d tickets to migrate (%d already migrated)", len(new_rows), len(present)
            )
            if span is not None:
                span.set_attribute(ATTR_BATCH_SIZE, len(rows))

            result = TicketBatchResult()
            if not refresh_existing:
                result.skipped = len(existing_rows)

            resolved: dict[int, Classification | Exception] = {}
            needed = {row.classification_id for row in new_rows}
            if refresh_existing:
                needed |= {row.classification_id for row in existing_rows}
            for classification_id in sorted(needed):
                try:
                    resolved[classification_id] = await self.resolve_classification(
                        classification_id
                    )
                except Exception as e:
                    logger.error("Cannot resolve classification %s: %s", classification_id, e)
                    resolved[classification_id] = e

            def _classification(row: SourceTicket) -> Classification:
                outcome = resolved[row.classification_id]
                if isinstance(outcome, SourceNotFoundError):
                    raise DependencyUnresolvableError(
                        RecordKind.TICKET, row.id, outcome.kind, outcome.source_id
                    ) from outcome
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome

            async def _create_row(row: SourceTicket) -> Ticket | None:
                return await self._create(row, _classification(row))

            created = await self._batch_runner.run(new_rows, _create_row, label="tickets")
            for _, ticket in created.succeeded:
                if ticket is None:
                    result.skipped += 1
                else:
                    result.migrated += 1
            result.errors.extend((row.id, error) for row, error in created.failed)

            if refresh_existing and existing_rows:

                async def _refresh_row(row: SourceTicket) -> Ticket:
                    local = await self._resolver.exists(RecordKind.TICKET, row.id)
                    if local is None or local.is_deleted:
                        raise RecordNotFoundError(
                            RecordKind.TICKET,
                            local.id if local else None,
                            f"No live local ticket for legacy ticket {row.id}",
                        )
                    return await self._refresh(
                        local,  # type: ignore[arg-type]
                        row,
                        _classification(row),
                    )

                refreshed = await self._batch_runner.run(
                    existing_rows, _refresh_row, label="tickets:refresh"
                )
                result.refreshed = refreshed.succeeded_count
                result.errors.extend((row.id, error) for row, error in refreshed.failed)

            result.failed = len(result.errors)
            if span is not None:
                span.set_attribute(ATTR_ITEMS_MIGRATED, result.migrated)
                span.set_attribute(ATTR_ITEMS_SKIPPED, result.skipped)
                span.set_attribute(ATTR_ITEMS_FAILED, result.failed)

            logger.info(
                "Ticket migration completed: %d migrated, %d skipped, %d refreshed, %d failed",
                result.migrated,
                result.skipped,
                result.refreshed,
                result.failed,
            )
            return result

    async def update_one(self, local_ticket_id: int) -> Ticket:
        """
        Re-synchronize a local ticket from its legacy row.

        Overwrites title, description, classification, dates, issue number
        and url.

        Raises:
            RecordNotFoundError: If the local ticket is missing or has no legacy reference
            SourceNotFoundError: If the linked legacy ticket no longer exists
        """
        with self._tracer.span(
            "ticketbridge.tickets.update_one",
            {ATTR_RECORD_KIND: RecordKind.TICKET.value, ATTR_LOCAL_ID: local_ticket_id},
        ) as span:
            local = await self._target.get(RecordKind.TICKET, local_ticket_id)
            if local is None:
                raise RecordNotFoundError(RecordKind.TICKET, local_ticket_id)
            if local.source_reference_id is None:
                raise RecordNotFoundError(
                    RecordKind.TICKET,
                    local_ticket_id,
                    f"Local ticket {local_ticket_id} has no legacy reference",
                )

            if span is not None:
                span.set_attribute(ATTR_SOURCE_ID, local.source_reference_id)

            source = await self._source.get_ticket(local.source_reference_id)
            if source is None:
                raise SourceNotFoundError(RecordKind.TICKET, local.source_reference_id)

            classification = await self._classification_for(source)
            updated = await self._refresh(local, source, classification)  # type: ignore[arg-type]
            logger.info(
                "Updated local ticket %s from legacy ticket %s", local_ticket_id, source.id
            )
            return updated


__all__ = ["TicketMigrator"]
