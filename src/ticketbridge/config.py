"""
Configuration for the ticketbridge migration engine.

Loading configuration from files or secrets managers is the caller's job;
this module only defines the validated settings object and a small helper
that reads it from environment variables.

Example:
    >>> config = MigrationConfig(
    ...     source_enabled=True,
    ...     file_download_base_url="https://legacy.example.com/download/public/",
    ... )
    >>> config.max_concurrency
    10

    >>> config = MigrationConfig.from_env({"TICKETBRIDGE_SOURCE_ENABLED": "true"})
    >>> config.source_enabled
    True
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class MigrationConfig:
    """
    Settings shared by all migrators.

    Attributes:
        source_enabled: Whether the legacy store may be read at all (default False).
        file_download_base_url: Endpoint prefix that encoded file routes are appended to.
        storage_root: Root directory for local content storage.
        storage_prefix: Sub-directory (relative path prefix) for migrated files.
        fetch_timeout: Seconds allowed for a single file download (default 30).
        max_concurrency: Upper bound on in-flight items per batch (default 10).
            Size it to the target store's connection pool.
        default_ticket_description: Description used when the legacy ticket has none.
        actor_placeholder: Author name used when the legacy user cannot be resolved.
            Formatted with ``author_id``.
        legacy_ticket_owner_type: Owner type the legacy store uses for tickets
            on comments and files.
    """

    source_enabled: bool = False
    file_download_base_url: str = ""
    storage_root: Path = field(default_factory=lambda: Path("storage"))
    storage_prefix: str = "archivos"
    fetch_timeout: float = 30.0
    max_concurrency: int = 10
    default_ticket_description: str = "No description"
    actor_placeholder: str = "Legacy user {author_id}"
    legacy_ticket_owner_type: str = "App\\Sistema\\TicketNew\\TicketNew"

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.fetch_timeout <= 0:
            raise ValueError(f"fetch_timeout must be > 0, got {self.fetch_timeout}")

        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")

        if "{author_id}" not in self.actor_placeholder:
            raise ValueError(
                f"actor_placeholder must contain '{{author_id}}', got {self.actor_placeholder!r}"
            )

        if self.storage_prefix.startswith("/"):
            raise ValueError(f"storage_prefix must be relative, got {self.storage_prefix!r}")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a plain dictionary (paths rendered as strings).

        Returns:
            Dictionary representation suitable for logging or JSON output.
        """
        return {
            "source_enabled": self.source_enabled,
            "file_download_base_url": self.file_download_base_url,
            "storage_root": str(self.storage_root),
            "storage_prefix": self.storage_prefix,
            "fetch_timeout": self.fetch_timeout,
            "max_concurrency": self.max_concurrency,
            "default_ticket_description": self.default_ticket_description,
            "actor_placeholder": self.actor_placeholder,
            "legacy_ticket_owner_type": self.legacy_ticket_owner_type,
        }

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        prefix: str = "TICKETBRIDGE_",
    ) -> MigrationConfig:
        """
        Create from environment variables.

        Variable names are the upper-cased attribute names with ``prefix``
        prepended, e.g. ``TICKETBRIDGE_SOURCE_ENABLED``. Unset variables keep
        their defaults.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``).
            prefix: Variable name prefix.

        Returns:
            MigrationConfig instance.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str) -> str | None:
            return env.get(f"{prefix}{name.upper()}")

        source_enabled = get("source_enabled")
        storage_root = get("storage_root")
        fetch_timeout = get("fetch_timeout")
        max_concurrency = get("max_concurrency")

        return cls(
            source_enabled=(
                source_enabled.strip().lower() in _TRUE_VALUES
                if source_enabled is not None
                else defaults.source_enabled
            ),
            file_download_base_url=get("file_download_base_url")
            or defaults.file_download_base_url,
            storage_root=Path(storage_root) if storage_root else defaults.storage_root,
            storage_prefix=get("storage_prefix") or defaults.storage_prefix,
            fetch_timeout=float(fetch_timeout) if fetch_timeout else defaults.fetch_timeout,
            max_concurrency=int(max_concurrency) if max_concurrency else defaults.max_concurrency,
            default_ticket_description=get("default_ticket_description")
            or defaults.default_ticket_description,
            actor_placeholder=get("actor_placeholder") or defaults.actor_placeholder,
            legacy_ticket_owner_type=get("legacy_ticket_owner_type")
            or defaults.legacy_ticket_owner_type,
        )


__all__ = ["MigrationConfig"]
