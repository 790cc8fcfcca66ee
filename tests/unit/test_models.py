"""
Unit tests for source and target records.

Tests immutability of source records, owner capability of target records
and TicketFilter matching.
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from ticketbridge.models import (
    RECORD_TYPES,
    Category,
    Classification,
    Comment,
    FileAsset,
    RecordKind,
    Ticket,
    TicketFilter,
)
from ticketbridge.protocols import OwnerDescriptor, OwnerRef
from tests.fixtures import make_ticket


class TestSourceRecords:
    def test_source_records_are_frozen(self):
        ticket = make_ticket()
        with pytest.raises(ValidationError):
            ticket.title = "changed"  # type: ignore[misc]

    def test_from_mapping(self):
        from ticketbridge.models import SourceCategory

        category = SourceCategory.model_validate({"id": 1, "name": "SUP", "description": "Support"})
        assert category.description == "Support"


class TestTargetRecords:
    def test_record_kinds_are_stable_strings(self):
        assert RecordKind.TICKET.value == "ticket"
        assert RecordKind.FILE_ASSET.value == "file_asset"

    def test_record_types_cover_every_kind(self):
        assert set(RECORD_TYPES) == set(RecordKind)
        for kind, record_type in RECORD_TYPES.items():
            assert record_type.kind is kind

    def test_table_names(self):
        assert Ticket.table_name() == "tickets"
        assert FileAsset.table_name() == "file_assets"

    def test_column_names_exclude_id(self):
        columns = Category.column_names()
        assert "id" not in columns
        assert {"source_reference_id", "name", "description", "deleted_at"} <= set(columns)

    def test_owner_capability(self):
        ticket = Ticket(id=4, source_reference_id=100, classification_id=1)
        assert isinstance(ticket, OwnerDescriptor)
        assert ticket.get_key() == 4
        assert ticket.get_type() == "ticket"

    def test_unsaved_record_has_no_key(self):
        classification = Classification(source_reference_id=10, name="x", category_id=1)
        assert classification.get_key() is None

    def test_is_deleted(self):
        comment = Comment(
            source_reference_id=1, owner_type="ticket", owner_id=1, text="hi"
        )
        assert not comment.is_deleted
        comment.deleted_at = datetime.now(UTC)
        assert comment.is_deleted

    def test_validate_assignment(self):
        ticket = Ticket(classification_id=1)
        with pytest.raises(ValidationError):
            ticket.classification_id = "not a number"  # type: ignore[assignment]


class TestOwnerRef:
    def test_enum_owner_type(self):
        owner = OwnerRef(RecordKind.TICKET, 42)
        assert isinstance(owner, OwnerDescriptor)
        assert owner.get_type() == "ticket"
        assert owner.get_key() == 42

    def test_string_owner_type(self):
        owner = OwnerRef("App\\Legacy\\Thing", None)
        assert owner.get_type() == "App\\Legacy\\Thing"
        assert owner.get_key() is None


class TestTicketFilter:
    def test_empty_filter_matches_everything(self):
        assert TicketFilter().matches(make_ticket())

    def test_classification_filter(self):
        ticket = make_ticket(classification_id=10)
        assert TicketFilter(classification_id=10).matches(ticket)
        assert not TicketFilter(classification_id=11).matches(ticket)

    def test_ticket_id_filter(self):
        assert TicketFilter(source_ticket_id=100).matches(make_ticket(100))
        assert not TicketFilter(source_ticket_id=101).matches(make_ticket(100))

    def test_date_range_is_inclusive(self):
        created = datetime(2024, 5, 1, tzinfo=UTC)
        ticket = make_ticket(created_at=created)
        assert TicketFilter(date_from=created, date_to=created).matches(ticket)
        assert not TicketFilter(date_from=datetime(2024, 5, 2, tzinfo=UTC)).matches(ticket)
        assert not TicketFilter(date_to=datetime(2024, 4, 30, tzinfo=UTC)).matches(ticket)

    def test_naive_bounds_are_read_as_utc(self):
        ticket = make_ticket(created_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC))

        ticket_filter = TicketFilter(date_from=datetime(2024, 5, 1), date_to=datetime(2024, 5, 2))

        assert ticket_filter.date_from == datetime(2024, 5, 1, tzinfo=UTC)
        assert ticket_filter.matches(ticket)
        assert not TicketFilter(date_from=datetime(2024, 5, 1, 12, 1)).matches(ticket)

    def test_naive_ticket_timestamp(self):
        ticket = make_ticket(created_at=datetime(2024, 5, 1, 12, 0))
        assert TicketFilter(date_to=datetime(2024, 5, 1, 12, 0, tzinfo=UTC)).matches(ticket)

    def test_bounds_in_other_zones_are_converted(self):
        madrid = timezone(timedelta(hours=2))
        ticket_filter = TicketFilter(date_from=datetime(2024, 5, 1, 14, 0, tzinfo=madrid))

        assert ticket_filter.date_from == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        ticket = make_ticket(created_at=datetime(2024, 5, 1, 12, 0, tzinfo=UTC))
        assert ticket_filter.matches(ticket)
