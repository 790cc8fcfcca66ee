"""
Migration components for ticketbridge.

Dependency order of the migrated records:

    Category -> Classification -> Ticket -> (Comment, FileAsset)

Components:
    - ReferenceResolver: "was this legacy row already migrated?"
    - BatchRunner: bounded, failure-isolated fan-out
    - CategoryMigrator / ClassificationMigrator / TicketMigrator
    - FileTransferMigrator: download, store, verify, record (with cleanup)
    - CommentMigrator: comments onto polymorphic owners
    - ReconciliationReporter: legacy vs local counts
    - MigrationEngine: facade wiring all of the above from a MigrationConfig
"""

from ticketbridge.migration.batch import BatchRunner
from ticketbridge.migration.categories import CategoryMigrator
from ticketbridge.migration.classifications import ClassificationMigrator
from ticketbridge.migration.comments import CommentMigrator
from ticketbridge.migration.engine import MigrationEngine
from ticketbridge.migration.files import FileTransferMigrator, extract_extension
from ticketbridge.migration.models import (
    BatchResult,
    CommentMigrationSummary,
    DownloadLink,
    FileMigrationSummary,
    ReconciliationReport,
    TicketBatchResult,
    TicketBundleResult,
    TicketMigrationResult,
    TicketMigrationStatus,
)
from ticketbridge.migration.reporter import ReconciliationReporter
from ticketbridge.migration.resolver import ReferenceResolver
from ticketbridge.migration.tickets import TicketMigrator

__all__ = [
    # Components
    "ReferenceResolver",
    "BatchRunner",
    "CategoryMigrator",
    "ClassificationMigrator",
    "TicketMigrator",
    "FileTransferMigrator",
    "CommentMigrator",
    "ReconciliationReporter",
    "MigrationEngine",
    "extract_extension",
    # Results
    "BatchResult",
    "TicketMigrationStatus",
    "TicketMigrationResult",
    "TicketBatchResult",
    "TicketBundleResult",
    "FileMigrationSummary",
    "CommentMigrationSummary",
    "DownloadLink",
    "ReconciliationReport",
]
