"""Reconciliation counts between the legacy and local ticket stores."""

import logging

from ticketbridge.migration.models import ReconciliationReport
from ticketbridge.models import RecordKind
from ticketbridge.observability import ATTR_RECORD_KIND, Tracer, create_tracer
from ticketbridge.repositories.source import GatedSourceRepository, SourceRepository
from ticketbridge.repositories.target import TargetRepository

logger = logging.getLogger(__name__)


class ReconciliationReporter:
    """
    Reports how far ticket migration has progressed.

    With the source gate closed the report is built from the local store
    alone: ``source_total`` and ``pending`` are 0 and ``source_enabled`` is
    False.
    """

    def __init__(
        self,
        source: GatedSourceRepository | SourceRepository,
        target: TargetRepository,
        source_enabled: bool | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._source = source
        self._target = target
        if source_enabled is None:
            source_enabled = getattr(source, "enabled", True)
        self._source_enabled = source_enabled

    async def report(self) -> ReconciliationReport:
        with self._tracer.span(
            "ticketbridge.reporter.report",
            {ATTR_RECORD_KIND: RecordKind.TICKET.value},
        ):
            target_total = await self._target.count(RecordKind.TICKET)
            # soft-deleted tickets still hold their reference and are never re-created
            migrated = await self._target.count(
                RecordKind.TICKET, with_reference=True, include_deleted=True
            )

            if not self._source_enabled:
                logger.warning("Source store disabled; reporting local counts only")
                return ReconciliationReport(
                    source_total=0,
                    target_total=target_total,
                    migrated_with_reference=migrated,
                    pending=0,
                    source_enabled=False,
                )

            source_total = await self._source.count_tickets()
            report = ReconciliationReport(
                source_total=source_total,
                target_total=target_total,
                migrated_with_reference=migrated,
                pending=max(source_total - migrated, 0),
                source_enabled=True,
            )
            logger.info("Reconciliation: %s", report.to_dict())
            return report


__all__ = ["ReconciliationReporter"]
