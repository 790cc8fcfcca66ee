"""
Comment migration.

Comments are attached to a local owner through the owner descriptor
capability (``get_key()`` / ``get_type()``). The comment text is the payload
that matters; the author's display name is best-effort and falls back to a
placeholder built from ``MigrationConfig.actor_placeholder``.
"""

import logging
from collections.abc import Sequence

from ticketbridge.config import MigrationConfig
from ticketbridge.exceptions import (
    AlreadyMigratedError,
    OwnerUnresolvedError,
    SourceDisabledError,
    SourceNotFoundError,
)
from ticketbridge.migration.batch import BatchRunner
from ticketbridge.migration.models import BatchResult, CommentMigrationSummary
from ticketbridge.migration.resolver import ReferenceResolver
from ticketbridge.models import Comment, RecordKind, SourceComment
from ticketbridge.observability import (
    ATTR_BATCH_SIZE,
    ATTR_ITEMS_FAILED,
    ATTR_ITEMS_MIGRATED,
    ATTR_ITEMS_SKIPPED,
    ATTR_LOCAL_ID,
    ATTR_OWNER_ID,
    ATTR_OWNER_TYPE,
    ATTR_RECORD_KIND,
    ATTR_SOURCE_ID,
    Tracer,
    create_tracer,
)
from ticketbridge.protocols import OwnerDescriptor
from ticketbridge.repositories.source import SourceRepository
from ticketbridge.repositories.target import TargetRepository
from ticketbridge.types import ActorNameResolver

logger = logging.getLogger(__name__)


class CommentMigrator:
    """
    Migrates legacy comments onto local owners.

    Example:
        >>> migrator = CommentMigrator(source_repo, target_repo, config=config)
        >>> summary = await migrator.migrate_many_by_owner(
        ...     config.legacy_ticket_owner_type, 42, local_ticket
        ... )
        >>> summary.migrated, summary.errors
        (3, 0)
    """

    def __init__(
        self,
        source: SourceRepository,
        target: TargetRepository,
        config: MigrationConfig | None = None,
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

    async def source_actor_name(self, author_id: int) -> str | None:
        """Default actor name resolver: the legacy user's name."""
        actor = await self._source.get_actor(author_id)
        return actor.name if actor is not None else None

    async def _author_name(self, author_id: int, resolve: ActorNameResolver) -> str:
        placeholder = self._config.actor_placeholder.format(author_id=author_id)
        try:
            name = await resolve(author_id)
        except SourceDisabledError:
            raise
        except Exception as e:
            logger.warning("Could not resolve legacy user %s: %s", author_id, e)
            return placeholder
        if not name:
            logger.warning("Legacy user %s has no name; using placeholder", author_id)
            return placeholder
        return name

    async def migrate_one(
        self,
        source_comment: SourceComment,
        owner: OwnerDescriptor,
        actor_name_resolver: ActorNameResolver | None = None,
    ) -> Comment:
        """
        Migrate one legacy comment onto a local owner.

        Returns the existing local comment if it was already migrated.

        Args:
            source_comment: Legacy comment row
            owner: Local owner of the comment
            actor_name_resolver: Resolves the author's display name
                (defaults to the legacy user table)

        Raises:
            OwnerUnresolvedError: If ``owner.get_key()`` returns None
            SourceDisabledError: If the author lookup hits a disabled source store
        """
        with self._tracer.span(
            "ticketbridge.comments.migrate_one",
            {
                ATTR_RECORD_KIND: RecordKind.COMMENT.value,
                ATTR_SOURCE_ID: source_comment.id,
                ATTR_OWNER_TYPE: owner.get_type(),
                ATTR_OWNER_ID: owner.get_key(),
            },
        ) as span:
            existing = await self._resolver.exists(RecordKind.COMMENT, source_comment.id)
            if existing is not None:
                logger.debug(
                    "Comment %s already migrated as local comment %s",
                    source_comment.id,
                    existing.id,
                )
                return existing  # type: ignore[return-value]

            owner_id = owner.get_key()
            if owner_id is None:
                raise OwnerUnresolvedError(owner.get_type(), source_comment.id)

            author_name = await self._author_name(
                source_comment.author_id, actor_name_resolver or self.source_actor_name
            )
            comment = Comment(
                source_reference_id=source_comment.id,
                owner_type=owner.get_type(),
                owner_id=owner_id,
                author_id=source_comment.author_id,
                author_display_name=author_name,
                text=source_comment.text,
            )
            try:
                created = await self._target.create(comment)
            except AlreadyMigratedError:
                winner = await self._resolver.exists(RecordKind.COMMENT, source_comment.id)
                if winner is None:
                    raise
                return winner  # type: ignore[return-value]

            if span is not None:
                span.set_attribute(ATTR_LOCAL_ID, created.id)
            logger.info(
                "Migrated comment %s as local comment %s (owner %s#%s)",
                source_comment.id,
                created.id,
                owner.get_type(),
                owner_id,
            )
            return created

    async def _migrate_rows(
        self,
        rows: Sequence[SourceComment],
        owner: OwnerDescriptor,
        actor_name_resolver: ActorNameResolver | None,
        label: str,
        summary: CommentMigrationSummary,
    ) -> CommentMigrationSummary:
        present = await self._resolver.existing(RecordKind.COMMENT, [row.id for row in rows])

        async def _migrate(row: SourceComment) -> Comment:
            return await self.migrate_one(row, owner, actor_name_resolver)

        result: BatchResult[SourceComment, Comment] = await self._batch_runner.run(
            rows, _migrate, label=label
        )
        for row, comment in result.succeeded:
            summary.comments.append(comment)
            if row.id in present:
                summary.skipped += 1
            else:
                summary.migrated += 1
        for row, error in result.failed:
            summary.errors += 1
            summary.failures.append((row.id, error))

        logger.info(
            "Comment migration (%s): %d migrated, %d skipped, %d errors",
            label,
            summary.migrated,
            summary.skipped,
            summary.errors,
        )
        return summary

    async def migrate_many_by_owner(
        self,
        source_owner_type: str,
        source_owner_id: int,
        owner: OwnerDescriptor,
        actor_name_resolver: ActorNameResolver | None = None,
    ) -> CommentMigrationSummary:
        """
        Migrate every legacy comment of a legacy owner onto a local owner.

        Comments are processed oldest first and ``summary.comments`` keeps
        that order. Comments that fail are reported in ``summary.failures``.

        Args:
            source_owner_type: Legacy owner type (e.g. the legacy ticket class name)
            source_owner_id: Legacy owner id
            owner: Local owner for the migrated comments
            actor_name_resolver: Resolves author display names

        Returns:
            CommentMigrationSummary with migrated / skipped / errors counts
        """
        summary = CommentMigrationSummary()
        with self._tracer.span(
            "ticketbridge.comments.migrate_many_by_owner",
            {
                ATTR_RECORD_KIND: RecordKind.COMMENT.value,
                ATTR_OWNER_TYPE: source_owner_type,
                ATTR_OWNER_ID: source_owner_id,
            },
        ) as span:
            rows = await self._source.list_comments_by_owner(source_owner_type, source_owner_id)
            if span is not None:
                span.set_attribute(ATTR_BATCH_SIZE, len(rows))
            if not rows:
                logger.info("No comments found for %s#%s", source_owner_type, source_owner_id)
                return summary

            await self._migrate_rows(
                rows,
                owner,
                actor_name_resolver,
                f"comments:{source_owner_type}#{source_owner_id}",
                summary,
            )
            if span is not None:
                span.set_attribute(ATTR_ITEMS_MIGRATED, summary.migrated)
                span.set_attribute(ATTR_ITEMS_SKIPPED, summary.skipped)
                span.set_attribute(ATTR_ITEMS_FAILED, summary.errors)
            return summary

    async def migrate_many(
        self,
        source_comment_ids: Sequence[int],
        owner: OwnerDescriptor,
        actor_name_resolver: ActorNameResolver | None = None,
    ) -> CommentMigrationSummary:
        """Migrate legacy comments by id onto a local owner; missing ids are failures."""
        ids = list(dict.fromkeys(source_comment_ids))
        summary = CommentMigrationSummary()
        with self._tracer.span(
            "ticketbridge.comments.migrate_many",
            {ATTR_RECORD_KIND: RecordKind.COMMENT.value, ATTR_BATCH_SIZE: len(ids)},
        ) as span:
            if not ids:
                return summary

            rows = await self._source.get_comments(ids)
            found = {row.id for row in rows}
            for missing_id in ids:
                if missing_id not in found:
                    logger.warning("Comment %s not found in legacy store", missing_id)
                    summary.errors += 1
                    summary.failures.append(
                        (missing_id, SourceNotFoundError(RecordKind.COMMENT, missing_id))
                    )

            if rows:
                await self._migrate_rows(rows, owner, actor_name_resolver, "comments", summary)
            if span is not None:
                span.set_attribute(ATTR_ITEMS_MIGRATED, summary.migrated)
                span.set_attribute(ATTR_ITEMS_SKIPPED, summary.skipped)
                span.set_attribute(ATTR_ITEMS_FAILED, summary.errors)
            return summary


__all__ = ["CommentMigrator"]
