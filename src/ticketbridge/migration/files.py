"""
File migration: download legacy file bytes, store them locally, record metadata.

The byte store and the metadata store share no transaction, so a transfer is
run as a short saga:

    1. Build the download locator from the legacy route
    2. Fetch the payload (bounded by ``fetch_timeout``)
    3. Write it to content storage under a fresh unique name
    4. Read back the stored size and compare it to the payload size
    5. Create the FileAsset record

A size mismatch or a failed record insert deletes the written bytes before
the error propagates. If that cleanup fails too, the cleanup error is logged
and the original error is the one raised.
"""

import base64
import logging
from collections.abc import Iterable, Sequence
from uuid import uuid4

import httpx

from ticketbridge.config import MigrationConfig
from ticketbridge.exceptions import (
    AlreadyMigratedError,
    IntegrityMismatchError,
    OwnerUnresolvedError,
    SourceNotFoundError,
    TransferFailureError,
)
from ticketbridge.migration.batch import BatchRunner
from ticketbridge.migration.models import DownloadLink, FileMigrationSummary
from ticketbridge.migration.resolver import ReferenceResolver
from ticketbridge.models import FileAsset, RecordKind, SourceFile
from ticketbridge.observability import (
    ATTR_BATCH_SIZE,
    ATTR_HTTP_URL,
    ATTR_ITEMS_FAILED,
    ATTR_ITEMS_MIGRATED,
    ATTR_ITEMS_SKIPPED,
    ATTR_LOCAL_ID,
    ATTR_OWNER_ID,
    ATTR_OWNER_TYPE,
    ATTR_PAYLOAD_SIZE,
    ATTR_RECORD_KIND,
    ATTR_SOURCE_ID,
    ATTR_STORAGE_PATH,
    Tracer,
    create_tracer,
)
from ticketbridge.protocols import OwnerDescriptor
from ticketbridge.repositories.source import SourceRepository
from ticketbridge.repositories.target import TargetRepository
from ticketbridge.storage import ContentStorage

logger = logging.getLogger(__name__)


def extract_extension(filename: str | None) -> str:
    """
    Get the lower-cased extension of a file name, without the dot.

    Names that are empty, blank or have no dot yield an empty string.

    Example:
        >>> extract_extension("Report.PDF")
        'pdf'
        >>> extract_extension("README")
        ''
    """
    if not filename or not filename.strip():
        return ""
    parts = filename.split(".")
    if len(parts) < 2:
        return ""
    return parts[-1].lower()


class FileTransferMigrator:
    """
    Migrates legacy file attachments.

    Owner override:
        When an owner descriptor is given, the new FileAsset is attached to it
        (``owner.get_type()`` / ``owner.get_key()``). Otherwise the legacy
        owner type and id are copied as they are.

    Example:
        >>> migrator = FileTransferMigrator(source_repo, target_repo, storage, config)
        >>> summary = await migrator.migrate_many([10, 11, 12], owner=ticket)
        >>> summary.migrated, summary.skipped, summary.errors
        (2, 1, 0)
    """

    def __init__(
        self,
        source: SourceRepository,
        target: TargetRepository,
        storage: ContentStorage,
        config: MigrationConfig | None = None,
        client: httpx.AsyncClient | None = None,
        resolver: ReferenceResolver | None = None,
        batch_runner: BatchRunner | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the file migrator.

        Args:
            source: Legacy store
            target: Local store
            storage: Content storage for the downloaded bytes
            config: Migration settings (download endpoint, timeout, storage prefix)
            client: Shared HTTP client (a short-lived one is opened per fetch if None)
            resolver: Reference resolver (created from ``target`` if None)
            batch_runner: Batch runner (created from ``config`` if None)
            tracer: Optional tracer (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._config = config or MigrationConfig()
        self._source = source
        self._target = target
        self._storage = storage
        self._client = client
        self._resolver = resolver or ReferenceResolver(target, tracer=self._tracer)
        self._batch_runner = batch_runner or BatchRunner(
            self._config.max_concurrency, tracer=self._tracer
        )

    # -------------------------------------------------------------------------
    # Locators
    # -------------------------------------------------------------------------

    def download_url(self, route: str | None) -> str:
        """
        Build the download locator for a legacy route.

        The legacy endpoint expects the route base64-encoded and appended to
        ``file_download_base_url``. An empty route yields an empty string.

        Example:
            >>> migrator.download_url("storage/tickets/archivo.pdf")
            'https://legacy.example.com/download/public/c3RvcmFnZS90aWNrZXRzL2FyY2hpdm8ucGRm'
        """
        if not route or not route.strip():
            logger.warning("Empty route given; no download URL generated")
            return ""
        encoded = base64.b64encode(route.encode("utf-8")).decode("ascii")
        return f"{self._config.file_download_base_url}{encoded}"

    def decode_route(self, url: str) -> str:
        """
        Recover the legacy route from a download locator.

        Raises:
            ValueError: If the locator does not end in valid base64
        """
        base = self._config.file_download_base_url
        if base and url.startswith(base):
            encoded = url[len(base) :]
        else:
            encoded = url.rsplit("/", 1)[-1]
        return base64.b64decode(encoded, validate=True).decode("utf-8")

    def download_urls(self, files: Iterable[SourceFile]) -> list[DownloadLink]:
        """Build download locators for several legacy files."""
        return [
            DownloadLink(
                source_file_id=source_file.id,
                display_name=source_file.display_name,
                url=self.download_url(source_file.route),
            )
            for source_file in files
        ]

    def local_path(self, source_file: SourceFile) -> str:
        """Derive a fresh, unique storage path for a legacy file."""
        extension = extract_extension(source_file.filename)
        name = f"{source_file.id}_{uuid4().hex}"
        if extension:
            name = f"{name}.{extension}"
        prefix = self._config.storage_prefix.strip("/")
        return f"{prefix}/{name}" if prefix else name

    # -------------------------------------------------------------------------
    # Transfer
    # -------------------------------------------------------------------------

    async def _fetch(self, source_file: SourceFile, url: str) -> bytes:
        if not url:
            raise TransferFailureError(source_file.id, url, "no download route")

        timeout = self._config.fetch_timeout
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            raise TransferFailureError(source_file.id, url, str(e) or type(e).__name__) from e

        if response.status_code != 200:
            raise TransferFailureError(
                source_file.id, url, f"unexpected HTTP status {response.status_code}"
            )
        return response.content

    async def _discard(self, path: str, source_file_id: int) -> None:
        try:
            await self._storage.delete(path)
        except Exception as cleanup_error:
            logger.error(
                "Could not remove %s after failed migration of file %s: %s",
                path,
                source_file_id,
                cleanup_error,
                exc_info=cleanup_error,
            )
        else:
            logger.info("Removed %s after failed migration of file %s", path, source_file_id)

    def _owner_fields(
        self,
        source_file: SourceFile,
        owner: OwnerDescriptor | None,
    ) -> tuple[str, int | None]:
        if owner is None:
            return source_file.owner_type, source_file.owner_id
        key = owner.get_key()
        if key is None:
            raise OwnerUnresolvedError(owner.get_type(), source_file.id)
        return owner.get_type(), key

    async def transfer_one(
        self,
        source_file: SourceFile,
        owner: OwnerDescriptor | None = None,
    ) -> FileAsset:
        """
        Download one legacy file, store it and record it locally.

        Args:
            source_file: Legacy file row
            owner: Owner for the new record (legacy owner is kept if None)

        Returns:
            The created FileAsset

        Raises:
            OwnerUnresolvedError: If ``owner`` has no key
            TransferFailureError: If the download fails or times out
            IntegrityMismatchError: If the stored size differs from the payload size
            AlreadyMigratedError: If the file was migrated concurrently
            PersistenceFailureError: If the record cannot be written
        """
        with self._tracer.span(
            "ticketbridge.files.transfer_one",
            {ATTR_RECORD_KIND: RecordKind.FILE_ASSET.value, ATTR_SOURCE_ID: source_file.id},
        ) as span:
            owner_type, owner_id = self._owner_fields(source_file, owner)
            url = self.download_url(source_file.route)
            if span is not None:
                span.set_attribute(ATTR_OWNER_TYPE, owner_type)
                if url:
                    span.set_attribute(ATTR_HTTP_URL, url)

            logger.debug("Downloading file %s from %s", source_file.id, url)
            payload = await self._fetch(source_file, url)

            path = self.local_path(source_file)
            try:
                await self._storage.write(path, payload)
                stored_size = await self._storage.size(path)
            except Exception:
                await self._discard(path, source_file.id)
                raise

            if span is not None:
                span.set_attribute(ATTR_STORAGE_PATH, path)
                span.set_attribute(ATTR_PAYLOAD_SIZE, len(payload))

            if stored_size != len(payload):
                await self._discard(path, source_file.id)
                raise IntegrityMismatchError(source_file.id, path, len(payload), stored_size)

            asset = FileAsset(
                source_reference_id=source_file.id,
                owner_type=owner_type,
                owner_id=owner_id,
                path=path,
                display_name=source_file.display_name,
                extension=extract_extension(source_file.filename),
            )
            try:
                created = await self._target.create(asset)
            except Exception:
                await self._discard(path, source_file.id)
                raise

            if span is not None:
                span.set_attribute(ATTR_LOCAL_ID, created.id)
                if owner_id is not None:
                    span.set_attribute(ATTR_OWNER_ID, owner_id)
            logger.info(
                "Migrated file %s (%s, %d bytes) as local file %s",
                source_file.id,
                source_file.display_name,
                len(payload),
                created.id,
            )
            return created

    async def migrate_by_id(
        self,
        source_file_id: int,
        owner: OwnerDescriptor | None = None,
    ) -> FileAsset | None:
        """
        Migrate one legacy file by id.

        Returns:
            The created FileAsset, or None if the file was already migrated

        Raises:
            SourceNotFoundError: If the file does not exist upstream
        """
        with self._tracer.span(
            "ticketbridge.files.migrate_by_id",
            {ATTR_RECORD_KIND: RecordKind.FILE_ASSET.value, ATTR_SOURCE_ID: source_file_id},
        ):
            existing = await self._resolver.exists(RecordKind.FILE_ASSET, source_file_id)
            if existing is not None:
                logger.warning(
                    "File %s already migrated as local file %s", source_file_id, existing.id
                )
                return None

            rows = await self._source.get_files([source_file_id])
            if not rows:
                raise SourceNotFoundError(RecordKind.FILE_ASSET, source_file_id)
            return await self.transfer_one(rows[0], owner)

    async def migrate_many(
        self,
        source_file_ids: Sequence[int],
        owner: OwnerDescriptor | None = None,
    ) -> FileMigrationSummary:
        """
        Migrate several legacy files.

        Already-migrated files are skipped with one bulk lookup; the rest are
        transferred concurrently. Requested ids missing upstream are reported
        as failures.

        Args:
            source_file_ids: Legacy file ids
            owner: Owner for every new record (legacy owners are kept if None)

        Returns:
            FileMigrationSummary with migrated / skipped / errors counts
        """
        ids = list(dict.fromkeys(source_file_ids))
        summary = FileMigrationSummary()
        with self._tracer.span(
            "ticketbridge.files.migrate_many",
            {ATTR_RECORD_KIND: RecordKind.FILE_ASSET.value, ATTR_BATCH_SIZE: len(ids)},
        ) as span:
            if not ids:
                return summary

            logger.info("Starting migration of %d files", len(ids))
            rows = await self._source.get_files(ids)
            found = {row.id for row in rows}
            for missing_id in ids:
                if missing_id not in found:
                    logger.warning("File %s not found in legacy store", missing_id)
                    summary.errors += 1
                    summary.failures.append(
                        (missing_id, SourceNotFoundError(RecordKind.FILE_ASSET, missing_id))
                    )

            if not rows:
                return summary

            present = await self._resolver.existing(RecordKind.FILE_ASSET, found)
            pending = [row for row in rows if row.id not in present]
            summary.skipped = len(present)

            async def _transfer(row: SourceFile) -> FileAsset:
                return await self.transfer_one(row, owner)

            result = await self._batch_runner.run(pending, _transfer, label="files")
            summary.files.extend(result.values)
            summary.migrated = result.succeeded_count
            for row, error in result.failed:
                if isinstance(error, AlreadyMigratedError):
                    summary.skipped += 1
                    continue
                summary.errors += 1
                summary.failures.append((row.id, error))

            if span is not None:
                span.set_attribute(ATTR_ITEMS_MIGRATED, summary.migrated)
                span.set_attribute(ATTR_ITEMS_SKIPPED, summary.skipped)
                span.set_attribute(ATTR_ITEMS_FAILED, summary.errors)

            logger.info(
                "File migration completed: %d migrated, %d skipped, %d errors",
                summary.migrated,
                summary.skipped,
                summary.errors,
            )
            return summary


__all__ = ["FileTransferMigrator", "extract_extension"]
