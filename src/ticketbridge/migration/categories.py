"""Category migration (top of the ticket dependency chain)."""

import logging

from ticketbridge.exceptions import AlreadyMigratedError, SourceNotFoundError
from ticketbridge.migration.resolver import ReferenceResolver
from ticketbridge.models import Category, RecordKind
from ticketbridge.observability import (
    ATTR_LOCAL_ID,
    ATTR_RECORD_KIND,
    ATTR_SOURCE_ID,
    Tracer,
    create_tracer,
)
from ticketbridge.repositories.source import SourceRepository
from ticketbridge.repositories.target import TargetRepository

logger = logging.getLogger(__name__)


class CategoryMigrator:
    """
    Ensures a legacy category exists locally.

    The legacy store keeps the human-readable label in ``description`` and a
    short code in ``name``; locally they are swapped so ``Category.name`` is
    the label.
    """

    def __init__(
        self,
        source: SourceRepository,
        target: TargetRepository,
        resolver: ReferenceResolver | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._source = source
        self._target = target
        self._resolver = resolver or ReferenceResolver(target, tracer=self._tracer)

    async def ensure_category(self, source_category_id: int) -> Category:
        """
        Get or create the local category for a legacy category.

        Args:
            source_category_id: Legacy category id

        Returns:
            The existing or newly created local category

        Raises:
            SourceNotFoundError: If the category does not exist upstream
        """
        with self._tracer.span(
            "ticketbridge.categories.ensure_category",
            {ATTR_RECORD_KIND: RecordKind.CATEGORY.value, ATTR_SOURCE_ID: source_category_id},
        ) as span:
            existing = await self._resolver.exists(RecordKind.CATEGORY, source_category_id)
            if existing is not None:
                return existing  # type: ignore[return-value]

            source = await self._source.get_category(source_category_id)
            if source is None:
                raise SourceNotFoundError(RecordKind.CATEGORY, source_category_id)

            category = Category(
                source_reference_id=source.id,
                name=source.description or source.name,
                description=source.name,
            )
            try:
                created = await self._target.create(category)
            except AlreadyMigratedError:
                # Lost a race with a concurrent run; theirs is the record
                winner = await self._resolver.exists(RecordKind.CATEGORY, source_category_id)
                if winner is None:
                    raise
                return winner  # type: ignore[return-value]

            if span is not None:
                span.set_attribute(ATTR_LOCAL_ID, created.id)
            logger.info("Migrated category %s as local category %s", source.id, created.id)
            return created


__all__ = ["CategoryMigrator"]
