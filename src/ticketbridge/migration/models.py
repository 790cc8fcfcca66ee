"""
Result objects returned by the migrators.

Expected outcomes (already migrated, not found upstream, per-item failures
inside a batch) are reported through these objects rather than raised, so a
caller can always tell what happened to every item it asked for.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic

from ticketbridge.exceptions import MigrationError
from ticketbridge.models import Comment, FileAsset, Ticket
from ticketbridge.types import TItem, TResult


@dataclass
class BatchResult(Generic[TItem, TResult]):
    """
    Outcome of running one operation over a collection of items.

    Attributes:
        label: Name of the batch (used in logs and spans).
        succeeded: ``(item, value)`` pairs for items whose operation returned.
        failed: ``(item, error)`` pairs for items whose operation raised.
    """

    label: str = ""
    succeeded: list[tuple[TItem, TResult]] = field(default_factory=list)
    failed: list[tuple[TItem, BaseException]] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def total(self) -> int:
        return self.succeeded_count + self.failed_count

    @property
    def values(self) -> list[TResult]:
        """Values of the successful items, in input order."""
        return [value for _, value in self.succeeded]


class TicketMigrationStatus(Enum):
    """Outcome of migrating a single legacy ticket."""

    MIGRATED = "migrated"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class TicketMigrationResult:
    """
    Result of ``TicketMigrator.migrate_one``.

    Attributes:
        source_ticket_id: The legacy ticket that was requested.
        status: What happened to it.
        ticket: The local ticket (None when the source row was not found).
    """

    source_ticket_id: int
    status: TicketMigrationStatus
    ticket: Ticket | None = None

    @property
    def created(self) -> bool:
        return self.status is TicketMigrationStatus.MIGRATED


@dataclass
class TicketBatchResult:
    """
    Result of ``TicketMigrator.migrate_batch``.

    Attributes:
        migrated: Number of tickets created.
        skipped: Number of tickets already present locally (left untouched).
        refreshed: Number of existing tickets re-synchronized from the source.
        failed: Number of tickets that raised.
        errors: ``(source_ticket_id, error)`` pairs for the failed tickets.
    """

    migrated: int = 0
    skipped: int = 0
    refreshed: int = 0
    failed: int = 0
    errors: list[tuple[int, BaseException]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.migrated + self.skipped + self.refreshed + self.failed


@dataclass
class FileMigrationSummary:
    """
    Result of ``FileTransferMigrator.migrate_many``.

    Attributes:
        migrated: Number of files transferred and recorded.
        skipped: Number of requested files already migrated.
        errors: Number of files that failed.
        files: The created file assets.
        failures: ``(source_file_id, error)`` pairs for the failed files.
    """

    migrated: int = 0
    skipped: int = 0
    errors: int = 0
    files: list[FileAsset] = field(default_factory=list)
    failures: list[tuple[int, MigrationError | BaseException]] = field(default_factory=list)


@dataclass
class CommentMigrationSummary:
    """
    Result of ``CommentMigrator.migrate_many`` and ``migrate_many_by_owner``.

    Attributes:
        migrated: Number of comments created by this run.
        skipped: Number of comments that were already migrated.
        errors: Number of comments that failed.
        comments: Local comments now attached to the owner, oldest first.
        failures: ``(source_comment_id, error)`` pairs for the failed comments.
    """

    migrated: int = 0
    skipped: int = 0
    errors: int = 0
    comments: list[Comment] = field(default_factory=list)
    failures: list[tuple[int, MigrationError | BaseException]] = field(default_factory=list)


@dataclass(frozen=True)
class DownloadLink:
    """Download locator for a legacy file."""

    source_file_id: int
    display_name: str
    url: str


@dataclass
class TicketBundleResult:
    """
    Result of migrating a ticket together with its comments and attachments.

    Attributes:
        ticket: Outcome of the ticket itself.
        comments: Summary of the comment migration.
        files: Summary of the attachment transfer.
    """

    ticket: TicketMigrationResult
    comments: CommentMigrationSummary = field(default_factory=CommentMigrationSummary)
    files: FileMigrationSummary = field(default_factory=FileMigrationSummary)


@dataclass(frozen=True)
class ReconciliationReport:
    """
    Counts comparing the legacy and local ticket stores.

    Attributes:
        source_total: Tickets in the legacy store (0 when the source is disabled).
        target_total: Live tickets in the local store.
        migrated_with_reference: Local tickets that carry a legacy reference.
        pending: ``source_total - migrated_with_reference`` (never negative).
        source_enabled: Whether the legacy store was consulted.
    """

    source_total: int
    target_total: int
    migrated_with_reference: int
    pending: int
    source_enabled: bool

    def to_dict(self) -> dict[str, int | bool]:
        return {
            "source_total": self.source_total,
            "target_total": self.target_total,
            "migrated_with_reference": self.migrated_with_reference,
            "pending": self.pending,
            "source_enabled": self.source_enabled,
        }


__all__ = [
    "BatchResult",
    "TicketMigrationStatus",
    "TicketMigrationResult",
    "TicketBatchResult",
    "FileMigrationSummary",
    "CommentMigrationSummary",
    "DownloadLink",
    "TicketBundleResult",
    "ReconciliationReport",
]
