"""
Reference resolution against the local store.

Every migrator asks the same question before it writes anything: has this
legacy row already been migrated? The resolver answers it for one row or for
a whole set of rows in a single lookup.
"""

import logging
from collections.abc import Iterable

from ticketbridge.models import RecordKind, TargetRecord
from ticketbridge.observability import (
    ATTR_BATCH_SIZE,
    ATTR_RECORD_KIND,
    ATTR_SOURCE_ID,
    Tracer,
    create_tracer,
)
from ticketbridge.repositories.target import TargetRepository

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """
    Maps legacy identifiers to existing local records.

    Lookups are scoped by ``RecordKind``: ticket 7 and category 7 are
    unrelated. Soft-deleted local records still count as migrated.

    Example:
        >>> resolver = ReferenceResolver(target_repo)
        >>> await resolver.exists(RecordKind.TICKET, 7)
        Ticket(id=12, source_reference_id=7, ...)
        >>> await resolver.existing(RecordKind.TICKET, [7, 8, 9])
        {7, 9}
    """

    def __init__(
        self,
        target: TargetRepository,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._target = target

    async def exists(self, kind: RecordKind, source_id: int) -> TargetRecord | None:
        """
        Get the local record derived from a legacy row.

        Args:
            kind: Kind of record to look for
            source_id: Legacy identifier

        Returns:
            The existing local record, or None if it was never migrated
        """
        with self._tracer.span(
            "ticketbridge.resolver.exists",
            {ATTR_RECORD_KIND: kind.value, ATTR_SOURCE_ID: source_id},
        ):
            return await self._target.find_by_reference(kind, source_id)

    async def existing(self, kind: RecordKind, source_ids: Iterable[int]) -> set[int]:
        """
        Get the subset of legacy identifiers that already have a local record.

        Issues a single lookup regardless of how many ids are given; an empty
        input returns an empty set without touching the store.
        """
        ids = sorted(set(source_ids))
        with self._tracer.span(
            "ticketbridge.resolver.existing",
            {ATTR_RECORD_KIND: kind.value, ATTR_BATCH_SIZE: len(ids)},
        ):
            if not ids:
                return set()
            found = await self._target.existing_references(kind, ids)
            logger.debug(
                "%d of %d %s references already migrated", len(found), len(ids), kind.value
            )
            return found


__all__ = ["ReferenceResolver"]
