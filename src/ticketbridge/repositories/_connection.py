"""
Connection handling helpers for the SQL repositories.

Repositories accept either an AsyncEngine or an AsyncConnection. The
`execute_with_connection` context manager hides the difference, and
`dialect_name` tells a repository which backend it is talking to so it can
adapt parameter binding.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine


@asynccontextmanager
async def execute_with_connection(
    conn: AsyncConnection | AsyncEngine,
    transactional: bool = True,
) -> AsyncIterator[AsyncConnection]:
    """
    Context manager for executing database operations.

    Args:
        conn: Database connection or engine
        transactional: If True, wrap in a transaction (begin).
                       If False, use a bare connection (connect).
                       Only applies when conn is an AsyncEngine.

    Yields:
        AsyncConnection ready for execute() calls

    Example:
        >>> async with execute_with_connection(self.conn) as conn:
        ...     await conn.execute(query, params)

    Note:
        Reads against the legacy store always use transactional=False.
        When an AsyncConnection is passed in, the caller owns the
        transaction and the flag has no effect.
    """
    if isinstance(conn, AsyncEngine):
        if transactional:
            async with conn.begin() as connection:
                yield connection
        else:
            async with conn.connect() as connection:
                yield connection
    else:
        yield conn


def dialect_name(conn: AsyncConnection | AsyncEngine) -> str:
    """
    Get the SQLAlchemy dialect name ("sqlite", "postgresql", "mysql", ...).

    Args:
        conn: Database connection or engine

    Returns:
        Dialect name string
    """
    return conn.dialect.name
