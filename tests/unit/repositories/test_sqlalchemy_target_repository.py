"""
Tests for SQLAlchemyTargetRepository against a file-backed aiosqlite engine.

Tests cover:
- Schema creation (idempotent)
- Insert with RETURNING and type round-trips
- Unique source reference enforcement by the database
- save / soft_delete / count
"""

from datetime import UTC, date, datetime

import pytest
from sqlalchemy import text

from ticketbridge.exceptions import AlreadyMigratedError, RecordNotFoundError
from ticketbridge.models import Category, Classification, Comment, FileAsset, RecordKind, Ticket
from ticketbridge.observability import MockTracer
from ticketbridge.repositories import SQLAlchemyTargetRepository


async def seed_chain(repo: SQLAlchemyTargetRepository) -> tuple[Category, Classification]:
    category = await repo.create(Category(source_reference_id=1, name="Support", description="SUP"))
    classification = await repo.create(
        Classification(source_reference_id=10, name="Hardware", category_id=category.id)
    )
    return category, classification


class TestInitialize:
    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, sqlite_target_repo):
        await sqlite_target_repo.initialize()
        assert await sqlite_target_repo.count(RecordKind.TICKET) == 0

    @pytest.mark.asyncio
    async def test_tables_created(self, sqlite_engine, sqlite_target_repo):
        async with sqlite_engine.connect() as conn:
            result = await conn.execute(
                text("SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name")
            )
            tables = {row[0] for row in result.fetchall()}
        assert {"categories", "classifications", "tickets", "file_assets", "comments"} <= tables


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_create_assigns_id(self, sqlite_target_repo):
        category, classification = await seed_chain(sqlite_target_repo)
        assert category.id == 1
        assert classification.id == 1
        assert classification.category_id == category.id

    @pytest.mark.asyncio
    async def test_ticket_round_trip(self, sqlite_target_repo):
        _, classification = await seed_chain(sqlite_target_repo)
        classified_at = datetime(2024, 3, 2, 10, 30, tzinfo=UTC)
        created = await sqlite_target_repo.create(
            Ticket(
                source_reference_id=100,
                classification_id=classification.id,
                title="Printer",
                description="On fire",
                estimated_date=date(2024, 3, 15),
                classification_date=classified_at,
                issue_number="ISS-100",
                url="https://legacy.test/tickets/100",
            )
        )

        loaded = await sqlite_target_repo.get(RecordKind.TICKET, created.id)

        assert isinstance(loaded, Ticket)
        assert loaded.title == "Printer"
        assert loaded.estimated_date == date(2024, 3, 15)
        assert loaded.classification_date == classified_at
        assert loaded.deleted_at is None

    @pytest.mark.asyncio
    async def test_polymorphic_owner_columns(self, sqlite_target_repo):
        comment = await sqlite_target_repo.create(
            Comment(
                source_reference_id=900,
                owner_type="ticket",
                owner_id=4,
                author_id=7,
                author_display_name="Ana Perez",
                text="Looking into it",
            )
        )
        asset = await sqlite_target_repo.create(
            FileAsset(
                source_reference_id=500,
                owner_type="ticket",
                owner_id=4,
                path="archivos/500_abc.pdf",
                display_name="report.pdf",
                extension="pdf",
            )
        )

        found_comment = await sqlite_target_repo.find_by_reference(RecordKind.COMMENT, 900)
        found_asset = await sqlite_target_repo.find_by_reference(RecordKind.FILE_ASSET, 500)

        assert found_comment.id == comment.id
        assert found_comment.get_type() == "comment"
        assert found_asset.path == asset.path

    @pytest.mark.asyncio
    async def test_unique_reference_enforced_by_database(self, sqlite_target_repo):
        await sqlite_target_repo.create(Category(source_reference_id=1, name="Support"))

        with pytest.raises(AlreadyMigratedError) as exc_info:
            await sqlite_target_repo.create(Category(source_reference_id=1, name="Duplicate"))

        assert exc_info.value.source_id == 1
        assert await sqlite_target_repo.count(RecordKind.CATEGORY) == 1

    @pytest.mark.asyncio
    async def test_existing_references(self, sqlite_target_repo):
        await seed_chain(sqlite_target_repo)
        await sqlite_target_repo.create(
            Classification(source_reference_id=11, name="Software", category_id=1)
        )

        found = await sqlite_target_repo.existing_references(
            RecordKind.CLASSIFICATION, [10, 11, 12]
        )
        everything = await sqlite_target_repo.existing_references(RecordKind.CLASSIFICATION)
        none = await sqlite_target_repo.existing_references(RecordKind.CLASSIFICATION, [])

        assert found == {10, 11}
        assert everything == {10, 11}
        assert none == set()

    @pytest.mark.asyncio
    async def test_classification_references_for_category(self, sqlite_target_repo):
        category, _ = await seed_chain(sqlite_target_repo)
        refs = await sqlite_target_repo.classification_references_for_category(category.id)
        assert refs == {10}


class TestSaveAndDelete:
    @pytest.mark.asyncio
    async def test_save(self, sqlite_target_repo):
        category, _ = await seed_chain(sqlite_target_repo)
        category.name = "Customer support"

        await sqlite_target_repo.save(category)

        loaded = await sqlite_target_repo.get(RecordKind.CATEGORY, category.id)
        assert loaded.name == "Customer support"

    @pytest.mark.asyncio
    async def test_save_missing_record(self, sqlite_target_repo):
        with pytest.raises(RecordNotFoundError):
            await sqlite_target_repo.save(Category(id=99, source_reference_id=1, name="x"))

    @pytest.mark.asyncio
    async def test_soft_delete_keeps_reference(self, sqlite_target_repo):
        category, _ = await seed_chain(sqlite_target_repo)

        assert await sqlite_target_repo.soft_delete(RecordKind.CATEGORY, category.id) is True
        assert await sqlite_target_repo.soft_delete(RecordKind.CATEGORY, category.id) is False

        assert await sqlite_target_repo.get(RecordKind.CATEGORY, category.id) is None
        found = await sqlite_target_repo.find_by_reference(RecordKind.CATEGORY, 1)
        assert found is not None and found.is_deleted
        assert await sqlite_target_repo.count(RecordKind.CATEGORY) == 0
        assert await sqlite_target_repo.count(RecordKind.CATEGORY, include_deleted=True) == 1

    @pytest.mark.asyncio
    async def test_count_with_reference(self, sqlite_target_repo):
        _, classification = await seed_chain(sqlite_target_repo)
        await sqlite_target_repo.create(
            Ticket(source_reference_id=100, classification_id=classification.id)
        )
        await sqlite_target_repo.create(Ticket(classification_id=classification.id))

        assert await sqlite_target_repo.count(RecordKind.TICKET) == 2
        assert await sqlite_target_repo.count(RecordKind.TICKET, with_reference=True) == 1


class TestTracing:
    @pytest.mark.asyncio
    async def test_spans_carry_db_attributes(self, sqlite_engine):
        tracer = MockTracer()
        repo = SQLAlchemyTargetRepository(sqlite_engine, tracer=tracer)
        await repo.initialize()

        await repo.create(Category(source_reference_id=1, name="Support"))

        name, attributes = tracer.spans[-1]
        assert name == "ticketbridge.target.create"
        assert attributes["db.system"] == "sqlite"
        assert attributes["db.operation"] == "INSERT"
        assert attributes["ticketbridge.record.kind"] == "category"
