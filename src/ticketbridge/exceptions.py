"""
Exceptions for the ticketbridge migration engine.

Exception Hierarchy:
    TicketBridgeError (base)
    +-- RecordNotFoundError
    +-- MigrationError
        +-- SourceDisabledError
        +-- SourceNotFoundError
        +-- AlreadyMigratedError
        +-- DependencyUnresolvableError
        +-- TransferFailureError
        +-- IntegrityMismatchError
        +-- PersistenceFailureError
        +-- OwnerUnresolvedError

Every MigrationError carries the source id and the stage it failed in, so a
caller can log it and decide whether to retry. Only transfer failures are
flagged as retryable; nothing is retried internally.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from ticketbridge.models import RecordKind


class TicketBridgeError(Exception):
    """Base exception for the ticketbridge package."""

    pass


class RecordNotFoundError(TicketBridgeError):
    """Raised when a local (target) record cannot be found."""

    def __init__(self, kind: RecordKind, local_id: int | None, message: str | None = None) -> None:
        self.kind = kind
        self.local_id = local_id
        super().__init__(message or f"{kind.value} not found locally: {local_id}")


class MigrationError(TicketBridgeError):
    """
    Base exception for errors raised while migrating a record.

    Attributes:
        source_id: Identifier of the source row being migrated (if known)
        stage: Pipeline stage that failed (e.g. "fetch", "persist")
        retryable: Whether a caller may reasonably retry the same item
    """

    retryable: ClassVar[bool] = False

    def __init__(
        self,
        message: str,
        *,
        source_id: int | None = None,
        stage: str | None = None,
    ) -> None:
        self.source_id = source_id
        self.stage = stage
        super().__init__(message)


class SourceDisabledError(MigrationError):
    """Raised before any source read when the source connection is switched off."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or (
                "Source store is disabled. Set TICKETBRIDGE_SOURCE_ENABLED=true "
                "and make sure the legacy database is reachable."
            ),
            stage="source",
        )


class SourceNotFoundError(MigrationError):
    """Raised when a referenced source row does not exist upstream."""

    def __init__(self, kind: RecordKind, source_id: int) -> None:
        self.kind = kind
        super().__init__(
            f"Source {kind.value} not found: {source_id}",
            source_id=source_id,
            stage="fetch",
        )


class AlreadyMigratedError(MigrationError):
    """
    Raised by a target repository when a record with the same
    (kind, source_reference_id) pair already exists.

    Migrators treat this as the normal already-migrated outcome.
    """

    def __init__(self, kind: RecordKind, source_id: int | None) -> None:
        self.kind = kind
        super().__init__(
            f"{kind.value} with source reference {source_id} already migrated",
            source_id=source_id,
            stage="persist",
        )


class DependencyUnresolvableError(MigrationError):
    """Raised when a parent record cannot be created because its source row is missing."""

    def __init__(
        self,
        kind: RecordKind,
        source_id: int,
        dependency_kind: RecordKind,
        dependency_id: int | None,
    ) -> None:
        self.kind = kind
        self.dependency_kind = dependency_kind
        self.dependency_id = dependency_id
        super().__init__(
            f"Cannot migrate {kind.value} {source_id}: "
            f"{dependency_kind.value} {dependency_id} is missing upstream",
            source_id=source_id,
            stage="dependency",
        )


class TransferFailureError(MigrationError):
    """Raised when file bytes cannot be fetched (bad status, timeout, network)."""

    retryable: ClassVar[bool] = True

    def __init__(self, source_id: int, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(
            f"Could not download file {source_id} from {url or '<no url>'}: {reason}",
            source_id=source_id,
            stage="transfer",
        )


class IntegrityMismatchError(MigrationError):
    """Raised when the stored payload size differs from the fetched payload size."""

    def __init__(self, source_id: int, path: str, expected: int, actual: int | None) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Stored file {path} for source file {source_id} has size {actual}, "
            f"expected {expected}",
            source_id=source_id,
            stage="verify",
        )


class PersistenceFailureError(MigrationError):
    """Raised when the target store rejects a write."""

    def __init__(self, kind: RecordKind, message: str, source_id: int | None = None) -> None:
        self.kind = kind
        super().__init__(
            f"Could not persist {kind.value}: {message}",
            source_id=source_id,
            stage="persist",
        )


class OwnerUnresolvedError(MigrationError):
    """Raised when a polymorphic owner descriptor has no key."""

    def __init__(self, owner_type: str, source_id: int | None = None) -> None:
        self.owner_type = owner_type
        super().__init__(
            f"Owner of type {owner_type!r} has no key",
            source_id=source_id,
            stage="owner",
        )


__all__ = [
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
]
