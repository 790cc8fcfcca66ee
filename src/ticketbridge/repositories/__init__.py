"""
Repository implementations for the ticketbridge migration engine.

This module provides the two persistence seams of a migration run:

- **Source repository**: Read-only access to the legacy store
- **Target repository**: Read-write access to the local store

Each repository type provides:
- A Protocol (interface) defining the contract
- SQLAlchemy implementation (PostgreSQL or SQLite) for production use
- In-memory implementation for testing

Source reads are additionally guarded by ``GatedSourceRepository``, which
refuses every read while the source connection is switched off.

Naming Convention:
    - get_{entity}()          - Fetch a single entity by ID
    - list_{entities}()       - Fetch multiple entities with filtering
    - find_by_reference()     - Fetch a local record by its legacy id
    - create() / save()       - Insert / overwrite a local record
"""

from ticketbridge.repositories.source import (
    GatedSourceRepository,
    InMemorySourceRepository,
    SourceRepository,
    SQLAlchemySourceRepository,
)
from ticketbridge.repositories.target import (
    InMemoryTargetRepository,
    SQLAlchemyTargetRepository,
    TargetRepository,
)

__all__ = [
    # Source
    "SourceRepository",
    "SQLAlchemySourceRepository",
    "InMemorySourceRepository",
    "GatedSourceRepository",
    # Target
    "TargetRepository",
    "SQLAlchemyTargetRepository",
    "InMemoryTargetRepository",
]
