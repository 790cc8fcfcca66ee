"""
Standard span attributes for ticketbridge.

This module defines attribute constants used across all ticketbridge
components for consistent span naming. These follow OpenTelemetry semantic
conventions where applicable.

Example:
    >>> from ticketbridge.observability.attributes import (
    ...     ATTR_RECORD_KIND,
    ...     ATTR_SOURCE_ID,
    ... )
    >>>
    >>> with tracer.span(
    ...     "ticketbridge.tickets.migrate_one",
    ...     {ATTR_RECORD_KIND: "ticket", ATTR_SOURCE_ID: 42},
    ... ):
    ...     pass
"""

# =============================================================================
# Record Attributes
# =============================================================================

ATTR_RECORD_KIND = "ticketbridge.record.kind"
"""Kind of target record (e.g., 'ticket', 'comment')."""

ATTR_SOURCE_ID = "ticketbridge.source.id"
"""Identifier of the legacy row being read or migrated (integer)."""

ATTR_LOCAL_ID = "ticketbridge.local.id"
"""Identifier of the local record (integer)."""

ATTR_OWNER_TYPE = "ticketbridge.owner.type"
"""Polymorphic owner type of a file or comment."""

ATTR_OWNER_ID = "ticketbridge.owner.id"
"""Polymorphic owner identifier of a file or comment."""

# =============================================================================
# Batch Attributes
# =============================================================================

ATTR_BATCH_LABEL = "ticketbridge.batch.label"
"""Human readable label of a batch run (e.g., 'files')."""

ATTR_BATCH_SIZE = "ticketbridge.batch.size"
"""Number of items in a batch (integer)."""

ATTR_ITEMS_MIGRATED = "ticketbridge.items.migrated"
"""Number of items migrated by an operation (integer)."""

ATTR_ITEMS_SKIPPED = "ticketbridge.items.skipped"
"""Number of items skipped as already migrated (integer)."""

ATTR_ITEMS_FAILED = "ticketbridge.items.failed"
"""Number of items that failed (integer)."""

# =============================================================================
# Transfer Attributes
# =============================================================================

ATTR_STORAGE_PATH = "ticketbridge.storage.path"
"""Relative path of a payload in content storage."""

ATTR_PAYLOAD_SIZE = "ticketbridge.payload.size"
"""Size in bytes of a transferred payload (integer)."""

ATTR_HTTP_URL = "http.url"
"""Download URL (OpenTelemetry semantic convention)."""

# =============================================================================
# Database Attributes (OpenTelemetry Semantic Conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql', 'sqlite')."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation name (e.g., 'SELECT', 'INSERT')."""

# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "ATTR_RECORD_KIND",
    "ATTR_SOURCE_ID",
    "ATTR_LOCAL_ID",
    "ATTR_OWNER_TYPE",
    "ATTR_OWNER_ID",
    "ATTR_BATCH_LABEL",
    "ATTR_BATCH_SIZE",
    "ATTR_ITEMS_MIGRATED",
    "ATTR_ITEMS_SKIPPED",
    "ATTR_ITEMS_FAILED",
    "ATTR_STORAGE_PATH",
    "ATTR_PAYLOAD_SIZE",
    "ATTR_HTTP_URL",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
]
