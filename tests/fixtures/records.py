"""
Factories for legacy (source) records used across the test suite.

Every factory has sensible defaults so a test only spells out the fields it
cares about. Ids are plain integers picked by the caller; the defaults form
one consistent chain: category 1 -> classification 10 -> ticket 100.
"""

from datetime import UTC, date, datetime, timedelta

from ticketbridge.models import (
    SourceActor,
    SourceCategory,
    SourceClassification,
    SourceComment,
    SourceFile,
    SourceTicket,
)

LEGACY_TICKET_TYPE = "App\\Sistema\\TicketNew\\TicketNew"
"""Owner type the legacy store uses for tickets."""

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


def make_category(
    category_id: int = 1,
    name: str = "SUP",
    description: str | None = "Support",
) -> SourceCategory:
    return SourceCategory(id=category_id, name=name, description=description)


def make_classification(
    classification_id: int = 10,
    category_id: int = 1,
    description: str | None = None,
) -> SourceClassification:
    return SourceClassification(
        id=classification_id,
        category_id=category_id,
        description=description or f"Classification {classification_id}",
    )


def make_ticket(
    ticket_id: int = 100,
    classification_id: int = 10,
    title: str | None = None,
    description: str | None = "Printer on fire",
    created_at: datetime | None = None,
    estimated_date: date | None = date(2024, 3, 15),
    classification_date: datetime | None = None,
    issue_number: str | None = None,
) -> SourceTicket:
    return SourceTicket(
        id=ticket_id,
        classification_id=classification_id,
        title=title if title is not None else f"Ticket {ticket_id}",
        description=description,
        estimated_date=estimated_date,
        classification_date=classification_date,
        issue_number=issue_number or f"ISS-{ticket_id}",
        url=f"https://legacy.test/tickets/{ticket_id}",
        created_at=created_at or BASE_TIME,
        updated_at=created_at or BASE_TIME,
    )


def make_file(
    file_id: int = 500,
    filename: str = "report.pdf",
    route: str | None = None,
    owner_type: str = LEGACY_TICKET_TYPE,
    owner_id: int | None = 100,
    display_name: str | None = None,
) -> SourceFile:
    return SourceFile(
        id=file_id,
        filename=filename,
        display_name=display_name or filename,
        route=route if route is not None else f"storage/tickets/{file_id}/{filename}",
        owner_type=owner_type,
        owner_id=owner_id,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


def make_comment(
    comment_id: int = 900,
    owner_id: int = 100,
    author_id: int = 7,
    text: str | None = None,
    owner_type: str = LEGACY_TICKET_TYPE,
    minutes: int = 0,
) -> SourceComment:
    """Comment created ``minutes`` after BASE_TIME."""
    return SourceComment(
        id=comment_id,
        owner_type=owner_type,
        owner_id=owner_id,
        author_id=author_id,
        text=text or f"Comment {comment_id}",
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def make_actor(actor_id: int = 7, name: str | None = "Ana Perez") -> SourceActor:
    return SourceActor(id=actor_id, name=name, email=f"user{actor_id}@legacy.test")
