"""
Shared test fixtures for the ticketbridge test suite.

This module provides:
- Source record factories (make_category, make_classification, make_ticket, ...)
- A fake legacy download endpoint (FakeFileServer)

Usage:
    from tests.fixtures import (
        LEGACY_TICKET_TYPE,
        FakeFileServer,
        make_category,
        make_classification,
        make_ticket,
    )
"""

from tests.fixtures.records import (
    BASE_TIME,
    LEGACY_TICKET_TYPE,
    make_actor,
    make_category,
    make_classification,
    make_comment,
    make_file,
    make_ticket,
)
from tests.fixtures.transport import DOWNLOAD_BASE_URL, FakeFileServer

__all__ = [
    # Records
    "BASE_TIME",
    "LEGACY_TICKET_TYPE",
    "make_actor",
    "make_category",
    "make_classification",
    "make_comment",
    "make_file",
    "make_ticket",
    # Transport
    "DOWNLOAD_BASE_URL",
    "FakeFileServer",
]
