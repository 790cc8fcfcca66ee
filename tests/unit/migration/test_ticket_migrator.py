"""
Unit tests for TicketMigrator.

Tests cover:
- migrate_one outcomes (migrated, already exists, not found)
- The category -> classification -> ticket cascade
- migrate_batch counting, filtering and refresh_existing
- update_one
"""

from datetime import UTC, date, datetime

import pytest

from ticketbridge.config import MigrationConfig
from ticketbridge.exceptions import (
    DependencyUnresolvableError,
    RecordNotFoundError,
    SourceNotFoundError,
)
from ticketbridge.migration import TicketMigrationStatus, TicketMigrator
from ticketbridge.models import RecordKind, Ticket, TicketFilter
from tests.fixtures import make_category, make_classification, make_ticket


@pytest.fixture
def migrator(seeded_source, target_repo, config) -> TicketMigrator:
    return TicketMigrator(seeded_source, target_repo, config=config, enable_tracing=False)


class TestMigrateOne:
    @pytest.mark.asyncio
    async def test_dependency_cascade(self, migrator, target_repo):
        """One category, one classification and one ticket, linked in that order."""
        result = await migrator.migrate_one(100)

        assert result.status is TicketMigrationStatus.MIGRATED
        assert result.created is True
        categories = target_repo.all(RecordKind.CATEGORY)
        classifications = target_repo.all(RecordKind.CLASSIFICATION)
        tickets = target_repo.all(RecordKind.TICKET)
        assert len(categories) == len(classifications) == len(tickets) == 1
        assert classifications[0].category_id == categories[0].id
        assert tickets[0].classification_id == classifications[0].id
        assert result.ticket.id == tickets[0].id

    @pytest.mark.asyncio
    async def test_copies_ticket_fields(self, migrator):
        result = await migrator.migrate_one(100)
        ticket = result.ticket

        assert ticket.source_reference_id == 100
        assert ticket.title == "Ticket 100"
        assert ticket.description == "Printer on fire"
        assert ticket.estimated_date == date(2024, 3, 15)
        assert ticket.issue_number == "ISS-100"
        assert ticket.url == "https://legacy.test/tickets/100"

    @pytest.mark.asyncio
    async def test_default_description(self, seeded_source, target_repo):
        seeded_source.add(make_ticket(101, description=None))
        migrator = TicketMigrator(
            seeded_source,
            target_repo,
            config=MigrationConfig(default_ticket_description="(empty)"),
            enable_tracing=False,
        )

        result = await migrator.migrate_one(101)

        assert result.ticket.description == "(empty)"

    @pytest.mark.asyncio
    async def test_idempotent(self, migrator, target_repo):
        first = await migrator.migrate_one(100)
        second = await migrator.migrate_one(100)

        assert second.status is TicketMigrationStatus.ALREADY_EXISTS
        assert second.created is False
        assert second.ticket.id == first.ticket.id
        assert len(target_repo.all(RecordKind.TICKET)) == 1

    @pytest.mark.asyncio
    async def test_not_found(self, migrator, target_repo):
        result = await migrator.migrate_one(404)

        assert result.status is TicketMigrationStatus.NOT_FOUND
        assert result.ticket is None
        assert target_repo.operations["create"] == 0

    @pytest.mark.asyncio
    async def test_soft_deleted_ticket_is_not_recreated(self, migrator, target_repo):
        first = await migrator.migrate_one(100)
        await target_repo.soft_delete(RecordKind.TICKET, first.ticket.id)

        second = await migrator.migrate_one(100)

        assert second.status is TicketMigrationStatus.ALREADY_EXISTS
        assert len(target_repo.all(RecordKind.TICKET)) == 1

    @pytest.mark.asyncio
    async def test_missing_classification_upstream(self, source_repo, target_repo):
        source_repo.add(make_ticket(100, classification_id=77))
        migrator = TicketMigrator(source_repo, target_repo, enable_tracing=False)

        with pytest.raises(DependencyUnresolvableError) as exc_info:
            await migrator.migrate_one(100)

        assert exc_info.value.source_id == 100
        assert exc_info.value.dependency_kind is RecordKind.CLASSIFICATION
        assert exc_info.value.dependency_id == 77
        assert target_repo.all(RecordKind.TICKET) == []

    @pytest.mark.asyncio
    async def test_missing_category_upstream(self, source_repo, target_repo):
        source_repo.add(make_classification(10, category_id=5), make_ticket(100))
        migrator = TicketMigrator(source_repo, target_repo, enable_tracing=False)

        with pytest.raises(DependencyUnresolvableError) as exc_info:
            await migrator.migrate_one(100)

        assert exc_info.value.dependency_kind is RecordKind.CATEGORY
        assert exc_info.value.dependency_id == 5

    @pytest.mark.asyncio
    async def test_cascade_migrates_sibling_classifications(
        self, seeded_source, migrator, target_repo
    ):
        seeded_source.add(make_classification(11), make_classification(12))

        await migrator.migrate_one(100)

        assert await target_repo.existing_references(RecordKind.CLASSIFICATION) == {10, 11, 12}


class TestMigrateBatch:
    @pytest.fixture
    def populated(self, source_repo):
        source_repo.add(make_category(1), make_classification(10), make_classification(11))
        for ticket_id in range(1, 6):
            source_repo.add(make_ticket(ticket_id, classification_id=10 + ticket_id % 2))
        return source_repo

    @pytest.mark.asyncio
    async def test_migrates_everything(self, populated, target_repo, config):
        migrator = TicketMigrator(populated, target_repo, config=config, enable_tracing=False)

        result = await migrator.migrate_batch()

        assert (result.migrated, result.skipped, result.failed) == (5, 0, 0)
        assert result.total == 5
        assert len(target_repo.all(RecordKind.TICKET)) == 5

    @pytest.mark.asyncio
    async def test_second_run_skips(self, populated, target_repo, config):
        migrator = TicketMigrator(populated, target_repo, config=config, enable_tracing=False)
        await migrator.migrate_batch()
        target_repo.operations.clear()

        result = await migrator.migrate_batch()

        assert (result.migrated, result.skipped, result.refreshed) == (0, 5, 0)
        assert target_repo.operations["create"] == 0
        assert target_repo.operations["save"] == 0

    @pytest.mark.asyncio
    async def test_filter(self, populated, target_repo, config):
        migrator = TicketMigrator(populated, target_repo, config=config, enable_tracing=False)

        result = await migrator.migrate_batch(TicketFilter(classification_id=11))

        assert result.migrated == 3
        refs = await target_repo.existing_references(RecordKind.TICKET)
        assert refs == {1, 3, 5}

    @pytest.mark.asyncio
    async def test_naive_date_filter(self, source_repo, target_repo, config):
        source_repo.add(make_category(1), make_classification(10))
        source_repo.add(
            make_ticket(1, created_at=datetime(2023, 12, 31, 23, 0, tzinfo=UTC)),
            make_ticket(2, created_at=datetime(2024, 1, 1, 0, 0, tzinfo=UTC)),
            make_ticket(3, created_at=datetime(2024, 2, 1, tzinfo=UTC)),
        )
        migrator = TicketMigrator(source_repo, target_repo, config=config, enable_tracing=False)

        result = await migrator.migrate_batch(TicketFilter(date_from=datetime(2024, 1, 1)))

        assert (result.migrated, result.failed) == (2, 0)
        assert await target_repo.existing_references(RecordKind.TICKET) == {2, 3}

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, populated, target_repo, config):
        populated.add(make_ticket(6, classification_id=99))
        migrator = TicketMigrator(populated, target_repo, config=config, enable_tracing=False)

        result = await migrator.migrate_batch()

        assert result.migrated == 5
        assert result.failed == 1
        failed_id, error = result.errors[0]
        assert failed_id == 6
        assert isinstance(error, DependencyUnresolvableError)

    @pytest.mark.asyncio
    async def test_classifications_resolved_once(self, populated, target_repo, config):
        migrator = TicketMigrator(populated, target_repo, config=config, enable_tracing=False)

        await migrator.migrate_batch()

        # one category + two classifications + five tickets
        assert target_repo.operations["create"] == 8

    @pytest.mark.asyncio
    async def test_refresh_existing(self, populated, target_repo, config):
        migrator = TicketMigrator(populated, target_repo, config=config, enable_tracing=False)
        await migrator.migrate_batch()
        populated.add(make_ticket(1, classification_id=11, title="Renamed"))

        result = await migrator.migrate_batch(refresh_existing=True)

        assert (result.migrated, result.skipped, result.refreshed) == (0, 0, 5)
        local = await target_repo.find_by_reference(RecordKind.TICKET, 1)
        assert local.title == "Renamed"

    @pytest.mark.asyncio
    async def test_empty_source(self, source_repo, target_repo):
        migrator = TicketMigrator(source_repo, target_repo, enable_tracing=False)
        result = await migrator.migrate_batch()
        assert result.total == 0


class TestUpdateOne:
    @pytest.mark.asyncio
    async def test_refreshes_fields(self, migrator, seeded_source, target_repo):
        created = (await migrator.migrate_one(100)).ticket
        classified_at = datetime(2024, 3, 5, tzinfo=UTC)
        seeded_source.add(make_classification(11))
        seeded_source.add(
            make_ticket(
                100,
                classification_id=11,
                title="Printer replaced",
                description="Fixed",
                classification_date=classified_at,
                issue_number="ISS-9",
            )
        )

        updated = await migrator.update_one(created.id)

        assert updated.id == created.id
        assert updated.title == "Printer replaced"
        assert updated.description == "Fixed"
        assert updated.classification_date == classified_at
        assert updated.issue_number == "ISS-9"
        local_11 = await target_repo.find_by_reference(RecordKind.CLASSIFICATION, 11)
        assert updated.classification_id == local_11.id

    @pytest.mark.asyncio
    async def test_missing_local_ticket(self, migrator):
        with pytest.raises(RecordNotFoundError):
            await migrator.update_one(999)

    @pytest.mark.asyncio
    async def test_local_ticket_without_reference(self, migrator, target_repo):
        local = await target_repo.create(Ticket(classification_id=1, title="Local only"))

        with pytest.raises(RecordNotFoundError, match="no legacy reference"):
            await migrator.update_one(local.id)

    @pytest.mark.asyncio
    async def test_legacy_row_gone(self, migrator, target_repo):
        local = await target_repo.create(Ticket(source_reference_id=555, classification_id=1))

        with pytest.raises(SourceNotFoundError):
            await migrator.update_one(local.id)
