"""
ticketbridge - Migration and reconciliation engine for legacy ticket data.

This library provides:
- Idempotent migration of legacy tickets, classifications and categories
- File attachment transfer with integrity checks and compensating cleanup
- Comment migration onto polymorphic local owners
- Bounded, failure-isolated batch execution
- Reconciliation reporting between the legacy and local stores
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ticketbridge")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from ticketbridge.config import MigrationConfig
from ticketbridge.exceptions import (
    AlreadyMigratedError,
    DependencyUnresolvableError,
    IntegrityMismatchError,
    MigrationError,
    OwnerUnresolvedError,
    PersistenceFailureError,
    RecordNotFoundError,
    SourceDisabledError,
    SourceNotFoundError,
    TicketBridgeError,
    TransferFailureError,
)
from ticketbridge.migration import (
    BatchResult,
    BatchRunner,
    CategoryMigrator,
    ClassificationMigrator,
    CommentMigrationSummary,
    CommentMigrator,
    DownloadLink,
    FileMigrationSummary,
    FileTransferMigrator,
    MigrationEngine,
    ReconciliationReport,
    ReconciliationReporter,
    ReferenceResolver,
    TicketBatchResult,
    TicketBundleResult,
    TicketMigrationResult,
    TicketMigrationStatus,
    TicketMigrator,
)
from ticketbridge.models import (
    Category,
    Classification,
    Comment,
    FileAsset,
    RecordKind,
    SourceActor,
    SourceCategory,
    SourceClassification,
    SourceComment,
    SourceFile,
    SourceTicket,
    TargetRecord,
    Ticket,
    TicketFilter,
)
from ticketbridge.protocols import OwnerDescriptor, OwnerRef
from ticketbridge.repositories import (
    GatedSourceRepository,
    InMemorySourceRepository,
    InMemoryTargetRepository,
    SourceRepository,
    SQLAlchemySourceRepository,
    SQLAlchemyTargetRepository,
    TargetRepository,
)
from ticketbridge.storage import ContentStorage, InMemoryContentStorage, LocalContentStorage

__all__ = [
    "__version__",
    # Configuration
    "MigrationConfig",
    # Exceptions
    "TicketBridgeError",
    "RecordNotFoundError",
    "MigrationError",
    "SourceDisabledError",
    "SourceNotFoundError",
    "AlreadyMigratedError",
    "DependencyUnresolvableError",
    "TransferFailureError",
    "IntegrityMismatchError",
    "PersistenceFailureError",
    "OwnerUnresolvedError",
    # Records
    "RecordKind",
    "SourceTicket",
    "SourceClassification",
    "SourceCategory",
    "SourceFile",
    "SourceComment",
    "SourceActor",
    "TargetRecord",
    "Ticket",
    "Category",
    "Classification",
    "FileAsset",
    "Comment",
    "TicketFilter",
    # Owners
    "OwnerDescriptor",
    "OwnerRef",
    # Repositories
    "SourceRepository",
    "SQLAlchemySourceRepository",
    "InMemorySourceRepository",
    "GatedSourceRepository",
    "TargetRepository",
    "SQLAlchemyTargetRepository",
    "InMemoryTargetRepository",
    # Storage
    "ContentStorage",
    "LocalContentStorage",
    "InMemoryContentStorage",
    # Migration
    "ReferenceResolver",
    "BatchRunner",
    "CategoryMigrator",
    "ClassificationMigrator",
    "TicketMigrator",
    "FileTransferMigrator",
    "CommentMigrator",
    "ReconciliationReporter",
    "MigrationEngine",
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
