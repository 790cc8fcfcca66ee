"""Tests for ticketbridge.observability.attributes module."""

from ticketbridge.observability import attributes
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


class TestAttributeConstants:
    """Tests for attribute constant definitions."""

    def test_record_attributes_have_ticketbridge_prefix(self):
        """Record attributes should use ticketbridge prefix."""
        for name in (
            ATTR_RECORD_KIND,
            ATTR_SOURCE_ID,
            ATTR_LOCAL_ID,
            ATTR_OWNER_TYPE,
            ATTR_OWNER_ID,
        ):
            assert name.startswith("ticketbridge.")

    def test_batch_attributes_have_ticketbridge_prefix(self):
        for name in (
            ATTR_BATCH_LABEL,
            ATTR_BATCH_SIZE,
            ATTR_ITEMS_MIGRATED,
            ATTR_ITEMS_SKIPPED,
            ATTR_ITEMS_FAILED,
        ):
            assert name.startswith("ticketbridge.")

    def test_transfer_attributes(self):
        assert ATTR_STORAGE_PATH.startswith("ticketbridge.")
        assert ATTR_PAYLOAD_SIZE.startswith("ticketbridge.")

    def test_semantic_convention_attributes(self):
        """Database and HTTP attributes follow OpenTelemetry conventions."""
        assert ATTR_DB_SYSTEM == "db.system"
        assert ATTR_DB_OPERATION == "db.operation"
        assert ATTR_HTTP_URL == "http.url"

    def test_all_exports_are_unique_strings(self):
        values = [getattr(attributes, name) for name in attributes.__all__]
        assert all(isinstance(value, str) for value in values)
        assert len(values) == len(set(values))
