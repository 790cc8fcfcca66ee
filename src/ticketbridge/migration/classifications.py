"""
Classification migration.

A classification belongs to exactly one category, so creating one cascades
to the category migrator first. Bulk migration for a category works on set
differences: one source query, one local reference query, then a batch of
creates for whatever is missing. Classifications already migrated under a
different local category are left alone and counted as present.
"""

import logging

from ticketbridge.exceptions import (
    AlreadyMigratedError,
    DependencyUnresolvableError,
    SourceNotFoundError,
)
from ticketbridge.migration.batch import BatchRunner
from ticketbridge.migration.categories import CategoryMigrator
from ticketbridge.migration.models import BatchResult
from ticketbridge.migration.resolver import ReferenceResolver
from ticketbridge.models import Category, Classification, RecordKind, SourceClassification
from ticketbridge.observability import (
    ATTR_BATCH_SIZE,
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


class ClassificationMigrator:
    """
    Migrates legacy classifications and their parent categories.

    Example:
        >>> migrator = ClassificationMigrator(source_repo, target_repo)
        >>> classification = await migrator.ensure_classification(12)
        >>> result = await migrator.migrate_all_for_category(category)
        >>> result.succeeded_count
        4
    """

    def __init__(
        self,
        source: SourceRepository,
        target: TargetRepository,
        categories: CategoryMigrator | None = None,
        resolver: ReferenceResolver | None = None,
        batch_runner: BatchRunner | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._source = source
        self._target = target
        self._resolver = resolver or ReferenceResolver(target, tracer=self._tracer)
        self._categories = categories or CategoryMigrator(
            source, target, resolver=self._resolver, tracer=self._tracer
        )
        self._batch_runner = batch_runner or BatchRunner(tracer=self._tracer)

    @property
    def categories(self) -> CategoryMigrator:
        return self._categories

    async def _create(self, source: SourceClassification, category: Category) -> Classification:
        classification = Classification(
            source_reference_id=source.id,
            name=source.description,
            category_id=category.id,
        )
        try:
            created = await self._target.create(classification)
        except AlreadyMigratedError:
            winner = await self._resolver.exists(RecordKind.CLASSIFICATION, source.id)
            if winner is None:
                raise
            return winner  # type: ignore[return-value]

        logger.debug(
            "Migrated classification %s as local classification %s (category %s)",
            source.id,
            created.id,
            category.id,
        )
        return created

    async def _resolve_category(self, source: SourceClassification) -> Category:
        try:
            return await self._categories.ensure_category(source.category_id)
        except SourceNotFoundError as e:
            raise DependencyUnresolvableError(
                RecordKind.CLASSIFICATION,
                source.id,
                RecordKind.CATEGORY,
                source.category_id,
            ) from e

    async def ensure_classification(self, source_classification_id: int) -> Classification:
        """
        Get or create the local classification for a legacy classification.

        Creates the parent category first when it is missing locally.

        Raises:
            SourceNotFoundError: If the classification does not exist upstream
            DependencyUnresolvableError: If its category does not exist upstream
        """
        with self._tracer.span(
            "ticketbridge.classifications.ensure_classification",
            {
                ATTR_RECORD_KIND: RecordKind.CLASSIFICATION.value,
                ATTR_SOURCE_ID: source_classification_id,
            },
        ) as span:
            existing = await self._resolver.exists(
                RecordKind.CLASSIFICATION, source_classification_id
            )
            if existing is not None:
                return existing  # type: ignore[return-value]

            source = await self._source.get_classification(source_classification_id)
            if source is None:
                raise SourceNotFoundError(RecordKind.CLASSIFICATION, source_classification_id)

            category = await self._resolve_category(source)
            created = await self._create(source, category)
            if span is not None:
                span.set_attribute(ATTR_LOCAL_ID, created.id)
            return created

    async def migrate_all_for_category(
        self,
        local_category: Category,
    ) -> BatchResult[SourceClassification, Classification]:
        """
        Create every legacy classification of a category that is missing locally.

        Args:
            local_category: Already-migrated local category

        Returns:
            BatchResult over the source classifications that were missing
            (zero items when nothing was missing)
        """
        label = f"classifications:category={local_category.source_reference_id}"
        with self._tracer.span(
            "ticketbridge.classifications.migrate_all_for_category",
            {
                ATTR_RECORD_KIND: RecordKind.CLASSIFICATION.value,
                ATTR_LOCAL_ID: local_category.id,
                ATTR_SOURCE_ID: local_category.source_reference_id,
            },
        ) as span:
            source_rows = await self._source.list_classifications_for_category(
                local_category.source_reference_id
            )
            present = await self._target.classification_references_for_category(
                local_category.id
            )
            missing = [row for row in source_rows if row.id not in present]
            if missing:
                # migrated earlier under another local category
                elsewhere = await self._resolver.existing(
                    RecordKind.CLASSIFICATION, [row.id for row in missing]
                )
                if elsewhere:
                    logger.warning(
                        "Classifications %s of category %s are attached to another local category",
                        sorted(elsewhere),
                        local_category.source_reference_id,
                    )
                    missing = [row for row in missing if row.id not in elsewhere]

            if span is not None:
                span.set_attribute(ATTR_BATCH_SIZE, len(missing))
                span.set_attribute(ATTR_ITEMS_SKIPPED, len(source_rows) - len(missing))

            if not missing:
                logger.debug(
                    "All %d classifications of category %s already migrated",
                    len(source_rows),
                    local_category.source_reference_id,
                )
                return BatchResult(label=label)

            async def _create_missing(row: SourceClassification) -> Classification:
                return await self._create(row, local_category)

            result = await self._batch_runner.run(missing, _create_missing, label=label)
            if span is not None:
                span.set_attribute(ATTR_ITEMS_MIGRATED, result.succeeded_count)
            logger.info(
                "Category %s: %d classifications migrated, %d already present, %d failed",
                local_category.source_reference_id,
                result.succeeded_count,
                len(source_rows) - len(missing),
                result.failed_count,
            )
            return result

    async def refresh_classification(self, source_classification_id: int) -> Classification:
        """
        Create or update a local classification from its legacy row.

        Unlike ``ensure_classification`` an existing record is re-synchronized
        from the legacy row: its name from the legacy description and its
        category from the legacy category, which is migrated first if needed.

        Raises:
            SourceNotFoundError: If the classification does not exist upstream
            DependencyUnresolvableError: If its category does not exist upstream
        """
        with self._tracer.span(
            "ticketbridge.classifications.refresh_classification",
            {
                ATTR_RECORD_KIND: RecordKind.CLASSIFICATION.value,
                ATTR_SOURCE_ID: source_classification_id,
            },
        ):
            existing = await self._resolver.exists(
                RecordKind.CLASSIFICATION, source_classification_id
            )
            if existing is None:
                return await self.ensure_classification(source_classification_id)

            source = await self._source.get_classification(source_classification_id)
            if source is None:
                raise SourceNotFoundError(RecordKind.CLASSIFICATION, source_classification_id)
            category = await self._resolve_category(source)
            local: Classification = existing  # type: ignore[assignment]
            if local.name == source.description and local.category_id == category.id:
                return local

            logger.info("Refreshing classification %s from legacy store", source.id)
            updated = local.model_copy(
                update={"name": source.description, "category_id": category.id}
            )
            return await self._target.save(updated)

    async def migrate(
        self,
        classification_id: int | None = None,
        category_id: int | None = None,
    ) -> list[Classification]:
        """
        Resolve a classification and/or every classification of a category.

        Args:
            classification_id: Legacy classification to create or refresh
            category_id: Legacy category whose classifications to migrate

        Returns:
            The local classifications touched by the request
        """
        if classification_id is None and category_id is None:
            logger.warning("No classification or category id given; nothing to migrate")
            return []

        touched: list[Classification] = []
        if classification_id is not None:
            touched.append(await self.refresh_classification(classification_id))

        if category_id is not None:
            category = await self._categories.ensure_category(category_id)
            result = await self.migrate_all_for_category(category)
            touched.extend(result.values)

        return touched


__all__ = ["ClassificationMigrator"]
