"""Common type definitions for the ticketbridge package."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

# Identifier of a row in the legacy (source) store
SourceId = int

# Identifier of a row in the local (target) store
LocalId = int

# Batch item / batch result type variables
TItem = TypeVar("TItem")
TResult = TypeVar("TResult")

# Resolves a legacy author id to a display name (None when unknown)
ActorNameResolver = Callable[[SourceId], Awaitable[str | None]]
