"""
Observability utilities for ticketbridge.

Provides the composition-based tracer and the standard span attribute names
used by every repository and migrator.

Example:
    >>> from ticketbridge.observability import create_tracer, ATTR_SOURCE_ID
    >>>
    >>> class MyRepository:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
    ...
    ...     async def get(self, source_id: int) -> None:
    ...         with self._tracer.span("my_repository.get", {ATTR_SOURCE_ID: source_id}):
    ...             pass
"""

from ticketbridge.observability.attributes import (
    ATTR_BATCH_LABEL,
    ATTR_BATCH_SIZE,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_HTTP_URL,
    ATTR_ITEMS_FAILED,
    ATTR_ITEMS_MIGRATED,
    ATTR_ITEMS_SKIPPED,
    ATTR_LOCAL_ID,
    ATTR_OWNER_ID,
    ATTR_OWNER_TYPE,
    ATTR_PAYLOAD_SIZE,
    ATTR_RECORD_KIND,
    ATTR_SOURCE_ID,
    ATTR_STORAGE_PATH,
)
from ticketbridge.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer (composition-based API)
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes - Record
    "ATTR_RECORD_KIND",
    "ATTR_SOURCE_ID",
    "ATTR_LOCAL_ID",
    "ATTR_OWNER_TYPE",
    "ATTR_OWNER_ID",
    # Attributes - Batch
    "ATTR_BATCH_LABEL",
    "ATTR_BATCH_SIZE",
    "ATTR_ITEMS_MIGRATED",
    "ATTR_ITEMS_SKIPPED",
    "ATTR_ITEMS_FAILED",
    # Attributes - Transfer
    "ATTR_STORAGE_PATH",
    "ATTR_PAYLOAD_SIZE",
    "ATTR_HTTP_URL",
    # Attributes - Database
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
]
