"""
Target store schema for the ticketbridge migration engine.

Tables:
    - categories: Migrated legacy categories
    - classifications: Migrated legacy classifications (belong to a category)
    - tickets: Migrated legacy tickets (belong to a classification)
    - file_assets: Migrated file metadata (polymorphic owner)
    - comments: Migrated comments (polymorphic owner)

Every table carries a unique index on ``source_reference_id``; since each
table holds exactly one record kind, this enforces uniqueness of the
``(kind, source_reference_id)`` pair at the storage layer.

Supported backends:
    - postgresql (default)
    - sqlite

Usage:
    from ticketbridge.schema import get_schema_statements

    async with engine.begin() as conn:
        for statement in get_schema_statements("sqlite"):
            await conn.execute(text(statement))
"""

from typing import Literal

BackendName = Literal["postgresql", "sqlite"]

# (column name, postgresql type, sqlite type)
_Column = tuple[str, str, str]

_TIMESTAMPS: list[_Column] = [
    ("created_at", "TIMESTAMPTZ NOT NULL", "TEXT NOT NULL"),
    ("updated_at", "TIMESTAMPTZ NOT NULL", "TEXT NOT NULL"),
    ("deleted_at", "TIMESTAMPTZ", "TEXT"),
]

_TABLES: dict[str, list[_Column]] = {
    "categories": [
        ("source_reference_id", "BIGINT NOT NULL", "INTEGER NOT NULL"),
        ("name", "TEXT NOT NULL", "TEXT NOT NULL"),
        ("description", "TEXT", "TEXT"),
    ],
    "classifications": [
        ("source_reference_id", "BIGINT NOT NULL", "INTEGER NOT NULL"),
        ("name", "TEXT NOT NULL", "TEXT NOT NULL"),
        (
            "category_id",
            "BIGINT NOT NULL REFERENCES categories(id)",
            "INTEGER NOT NULL REFERENCES categories(id)",
        ),
    ],
    "tickets": [
        ("source_reference_id", "BIGINT", "INTEGER"),
        (
            "classification_id",
            "BIGINT NOT NULL REFERENCES classifications(id)",
            "INTEGER NOT NULL REFERENCES classifications(id)",
        ),
        ("title", "VARCHAR(255) NOT NULL DEFAULT ''", "TEXT NOT NULL DEFAULT ''"),
        ("description", "TEXT NOT NULL", "TEXT NOT NULL"),
        ("estimated_date", "DATE", "TEXT"),
        ("classification_date", "TIMESTAMPTZ", "TEXT"),
        ("issue_number", "VARCHAR(100)", "TEXT"),
        ("url", "VARCHAR(500)", "TEXT"),
    ],
    "file_assets": [
        ("source_reference_id", "BIGINT", "INTEGER"),
        ("owner_type", "VARCHAR(255) NOT NULL", "TEXT NOT NULL"),
        ("owner_id", "BIGINT", "INTEGER"),
        ("path", "VARCHAR(500) NOT NULL", "TEXT NOT NULL"),
        ("display_name", "VARCHAR(255) NOT NULL DEFAULT ''", "TEXT NOT NULL DEFAULT ''"),
        ("extension", "VARCHAR(32) NOT NULL DEFAULT ''", "TEXT NOT NULL DEFAULT ''"),
    ],
    "comments": [
        ("source_reference_id", "BIGINT NOT NULL", "INTEGER NOT NULL"),
        ("owner_type", "VARCHAR(255) NOT NULL", "TEXT NOT NULL"),
        ("owner_id", "BIGINT NOT NULL", "INTEGER NOT NULL"),
        ("author_id", "BIGINT", "INTEGER"),
        ("author_display_name", "VARCHAR(255)", "TEXT"),
        ("text", "TEXT NOT NULL", "TEXT NOT NULL"),
    ],
}

_OWNER_TABLES = ("file_assets", "comments")


def get_schema_statements(backend: BackendName = "postgresql") -> list[str]:
    """
    Get the DDL statements for the target store.

    Statements are idempotent (``IF NOT EXISTS``) and ordered so that
    referenced tables are created first.

    Args:
        backend: The database backend (postgresql, sqlite)

    Returns:
        List of SQL statements, one per table or index

    Raises:
        ValueError: If the backend is not supported
    """
    if backend not in ("postgresql", "sqlite"):
        raise ValueError(f"Unsupported backend: {backend}")

    type_index = 1 if backend == "postgresql" else 2
    primary_key = (
        "id BIGSERIAL PRIMARY KEY"
        if backend == "postgresql"
        else "id INTEGER PRIMARY KEY AUTOINCREMENT"
    )

    statements: list[str] = []
    for table, columns in _TABLES.items():
        lines = [primary_key]
        lines.extend(f"{column[0]} {column[type_index]}" for column in columns + _TIMESTAMPS)
        body = ",\n    ".join(lines)
        statements.append(f"CREATE TABLE IF NOT EXISTS {table} (\n    {body}\n)")
        statements.append(
            f"CREATE UNIQUE INDEX IF NOT EXISTS uq_{table}_source_reference "
            f"ON {table} (source_reference_id)"
        )
        if table in _OWNER_TABLES:
            statements.append(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_owner ON {table} (owner_type, owner_id)"
            )

    statements.append(
        "CREATE INDEX IF NOT EXISTS idx_classifications_category "
        "ON classifications (category_id)"
    )
    return statements


def get_schema(backend: BackendName = "postgresql") -> str:
    """
    Get the full schema as a single SQL script.

    Args:
        backend: The database backend (postgresql, sqlite)

    Returns:
        SQL script with statements separated by semicolons
    """
    return ";\n\n".join(get_schema_statements(backend)) + ";\n"


__all__ = ["BackendName", "get_schema", "get_schema_statements"]
