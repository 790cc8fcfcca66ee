"""
Record models for the ticketbridge migration engine.

Two families of records live here:

Source records:
    Immutable snapshots of rows read from the legacy store. The engine never
    writes them back.

Target records:
    Mutable local records owned by the engine. Every target record carries a
    ``source_reference_id`` naming the legacy row it was derived from; the pair
    ``(kind, source_reference_id)`` is unique per store.

Target records double as polymorphic owners for files and comments: they
expose ``get_key()`` and ``get_type()`` where ``get_type()`` is the stable
``RecordKind`` value, never a class name.
"""

from datetime import UTC, date, datetime
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize a timestamp to UTC; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class RecordKind(Enum):
    """
    Kinds of target records.

    The values are persisted as polymorphic owner type names and scope
    reference lookups, so they must never change.
    """

    TICKET = "ticket"
    CATEGORY = "category"
    CLASSIFICATION = "classification"
    FILE_ASSET = "file_asset"
    COMMENT = "comment"


# =============================================================================
# Source records (read-only legacy rows)
# =============================================================================


class SourceRecord(BaseModel):
    """Base class for rows read from the legacy store."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int


class SourceTicket(SourceRecord):
    classification_id: int
    title: str = ""
    description: str | None = None
    estimated_date: date | None = None
    classification_date: datetime | None = None
    issue_number: str | None = None
    url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SourceClassification(SourceRecord):
    description: str
    category_id: int


class SourceCategory(SourceRecord):
    name: str
    description: str | None = None


class SourceFile(SourceRecord):
    display_name: str = ""
    filename: str = ""
    route: str = ""
    owner_type: str = ""
    owner_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SourceComment(SourceRecord):
    owner_type: str
    owner_id: int
    author_id: int
    text: str
    created_at: datetime | None = None


class SourceActor(SourceRecord):
    name: str | None = None
    email: str | None = None


# =============================================================================
# Target records (local, read-write)
# =============================================================================


class TargetRecord(BaseModel):
    """
    Base class for local records created by the migration engine.

    Attributes:
        id: Local identifier (None until persisted)
        source_reference_id: Identifier of the legacy row this record came from
        created_at: When the record was first persisted
        updated_at: When the record was last written
        deleted_at: Soft delete marker (None if not deleted)
    """

    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
    )

    kind: ClassVar[RecordKind]
    __table_name__: ClassVar[str]

    id: int | None = None
    source_reference_id: int | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    deleted_at: datetime | None = None

    @classmethod
    def table_name(cls) -> str:
        return cls.__table_name__

    @classmethod
    def column_names(cls) -> list[str]:
        """Columns written on insert (everything except the generated id)."""
        return [name for name in cls.model_fields if name != "id"]

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def get_key(self) -> int | None:
        return self.id

    def get_type(self) -> str:
        return self.kind.value


class Category(TargetRecord):
    kind: ClassVar[RecordKind] = RecordKind.CATEGORY
    __table_name__: ClassVar[str] = "categories"

    source_reference_id: int
    name: str
    description: str | None = None


class Classification(TargetRecord):
    kind: ClassVar[RecordKind] = RecordKind.CLASSIFICATION
    __table_name__: ClassVar[str] = "classifications"

    source_reference_id: int
    name: str
    category_id: int


class Ticket(TargetRecord):
    kind: ClassVar[RecordKind] = RecordKind.TICKET
    __table_name__: ClassVar[str] = "tickets"

    classification_id: int
    title: str = ""
    description: str = ""
    estimated_date: date | None = None
    classification_date: datetime | None = None
    issue_number: str | None = None
    url: str | None = None


class FileAsset(TargetRecord):
    kind: ClassVar[RecordKind] = RecordKind.FILE_ASSET
    __table_name__: ClassVar[str] = "file_assets"

    owner_type: str
    owner_id: int | None = None
    path: str
    display_name: str = ""
    extension: str = ""


class Comment(TargetRecord):
    kind: ClassVar[RecordKind] = RecordKind.COMMENT
    __table_name__: ClassVar[str] = "comments"

    source_reference_id: int
    owner_type: str
    owner_id: int
    author_id: int | None = None
    author_display_name: str | None = None
    text: str


class TicketFilter(BaseModel):
    """
    Selection filter for batch ticket migration.

    All fields are optional and combined with AND. Dates apply to the legacy
    ticket's creation timestamp (inclusive on both ends). Naive dates are
    read as UTC.
    """

    model_config = ConfigDict(frozen=True)

    date_from: datetime | None = None
    date_to: datetime | None = None
    classification_id: int | None = None
    source_ticket_id: int | None = None

    @field_validator("date_from", "date_to")
    @classmethod
    def validate_bound(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    def matches(self, ticket: SourceTicket) -> bool:
        """Check a source ticket against the filter (used by in-memory stores)."""
        if self.source_ticket_id is not None and ticket.id != self.source_ticket_id:
            return False
        if (
            self.classification_id is not None
            and ticket.classification_id != self.classification_id
        ):
            return False
        if self.date_from is not None or self.date_to is not None:
            if ticket.created_at is None:
                return False
            created_at = as_utc(ticket.created_at)
            if self.date_from is not None and created_at < self.date_from:
                return False
            if self.date_to is not None and created_at > self.date_to:
                return False
        return True


RECORD_TYPES: dict[RecordKind, type[TargetRecord]] = {
    RecordKind.TICKET: Ticket,
    RecordKind.CATEGORY: Category,
    RecordKind.CLASSIFICATION: Classification,
    RecordKind.FILE_ASSET: FileAsset,
    RecordKind.COMMENT: Comment,
}
"""Target record class for each kind."""


__all__ = [
    "RecordKind",
    "as_utc",
    "SourceRecord",
    "SourceTicket",
    "SourceClassification",
    "SourceCategory",
    "SourceFile",
    "SourceComment",
    "SourceActor",
    "TargetRecord",
    "Category",
    "Classification",
    "Ticket",
    "FileAsset",
    "Comment",
    "TicketFilter",
    "RECORD_TYPES",
]
