"""Unit tests for CategoryMigrator."""

from unittest.mock import AsyncMock

import pytest

from ticketbridge.exceptions import AlreadyMigratedError, SourceNotFoundError
from ticketbridge.migration import CategoryMigrator
from ticketbridge.models import Category, RecordKind
from tests.fixtures import make_category


@pytest.fixture
def migrator(seeded_source, target_repo, mock_tracer) -> CategoryMigrator:
    return CategoryMigrator(seeded_source, target_repo, tracer=mock_tracer)


class TestEnsureCategory:
    @pytest.mark.asyncio
    async def test_creates_missing_category(self, migrator, target_repo):
        category = await migrator.ensure_category(1)

        assert category.id is not None
        assert category.source_reference_id == 1
        # legacy label lives in description, code in name
        assert category.name == "Support"
        assert category.description == "SUP"
        assert len(target_repo.all(RecordKind.CATEGORY)) == 1

    @pytest.mark.asyncio
    async def test_falls_back_to_code_without_description(self, source_repo, target_repo):
        source_repo.add(make_category(2, name="OPS", description=None))
        migrator = CategoryMigrator(source_repo, target_repo, enable_tracing=False)

        category = await migrator.ensure_category(2)

        assert category.name == "OPS"

    @pytest.mark.asyncio
    async def test_is_idempotent(self, migrator, target_repo, seeded_source):
        first = await migrator.ensure_category(1)
        reads = seeded_source.read_count

        second = await migrator.ensure_category(1)

        assert second.id == first.id
        assert target_repo.operations["create"] == 1
        assert seeded_source.read_count == reads

    @pytest.mark.asyncio
    async def test_missing_upstream(self, migrator):
        with pytest.raises(SourceNotFoundError) as exc_info:
            await migrator.ensure_category(99)
        assert exc_info.value.kind is RecordKind.CATEGORY
        assert exc_info.value.source_id == 99

    @pytest.mark.asyncio
    async def test_lost_race_returns_winner(self, seeded_source):
        winner = Category(id=8, source_reference_id=1, name="Support")
        target = AsyncMock()
        target.find_by_reference.side_effect = [None, winner]
        target.create.side_effect = AlreadyMigratedError(RecordKind.CATEGORY, 1)
        migrator = CategoryMigrator(seeded_source, target, enable_tracing=False)

        category = await migrator.ensure_category(1)

        assert category is winner

    @pytest.mark.asyncio
    async def test_span_records_local_id(self, migrator, mock_tracer):
        await migrator.ensure_category(1)
        assert "ticketbridge.categories.ensure_category" in mock_tracer.span_names
