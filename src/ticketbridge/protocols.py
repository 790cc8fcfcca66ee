"""
Protocol definitions for the ticketbridge package.

Protocols:
- OwnerDescriptor: Capability exposed by anything that can own files or comments

Example:
    >>> from ticketbridge.protocols import OwnerDescriptor, OwnerRef
    >>> from ticketbridge.models import RecordKind
    >>>
    >>> owner = OwnerRef(RecordKind.TICKET, 42)
    >>> isinstance(owner, OwnerDescriptor)
    True
    >>> owner.get_type()
    'ticket'
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ticketbridge.models import RecordKind


@runtime_checkable
class OwnerDescriptor(Protocol):
    """
    Polymorphic owner of a migrated file or comment.

    ``get_type()`` must return a stable constant (a ``RecordKind`` value for
    local records) because it is persisted and used for later lookups.
    """

    def get_key(self) -> int | None:
        """Return the owner's local identifier, or None if it has none."""
        ...

    def get_type(self) -> str:
        """Return the owner's stable type name."""
        ...


@dataclass(frozen=True)
class OwnerRef:
    """
    Owner descriptor built from a bare (type, id) pair.

    Useful when the caller only holds identifiers, e.g. when re-attaching
    files to a record migrated in an earlier run.
    """

    owner_type: RecordKind | str
    owner_id: int | None

    def get_key(self) -> int | None:
        return self.owner_id

    def get_type(self) -> str:
        if isinstance(self.owner_type, RecordKind):
            return self.owner_type.value
        return self.owner_type


__all__ = ["OwnerDescriptor", "OwnerRef"]
