"""Imports a container back into a record store"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from fileclerk.config import settings
from fileclerk.errors import CorruptArchive, FileClerkError, StorageError, StorageFull
from fileclerk.models.dao.archive_dao import ArchiveDAO
from fileclerk.models.dao.record_store import RecordStore
from fileclerk.models.manifest import ArchiveManifest, ManifestEntry
from fileclerk.models.report import ArchiveWarning, ImportResult
from fileclerk.utils.codec import PayloadCodec
from fileclerk.utils.mime import MimeResolver


class ArchiveReader:
    """
    Re-inserts the records of a container into a store.

    Every imported record gets a new id: archive ids are never used to
    overwrite existing records. Entries are imported one at a time and each
    one is committed on its own, so a cancelled or failed import keeps what it
    already imported.
    """

    def __init__(
        self,
        store: RecordStore,
        resolver: MimeResolver | None = None,
        strict: bool = False,
    ):
        self.store: RecordStore = store
        self.resolver: MimeResolver = resolver or MimeResolver()
        self.strict: bool = strict
        self.logger: logging.Logger = logging.getLogger("ArchiveReader")

    async def import_container(
        self,
        data: bytes,
        cancel_event: asyncio.Event | None = None,
        progress: Callable[[int, int], None] | None = None,
    ) -> ImportResult:
        """
        Import every manifest entry of a container.

        Args:
            data: Container bytes
            cancel_event: Checked between entries; once set the import stops
            progress: Optional progress callback (entries done, total entries)

        Raises:
            CorruptArchive: if the container cannot be parsed, or in strict
                mode if an entry's blob is missing
            StorageError: if the store medium fails (other than being full)
        """
        manifest, blobs = await asyncio.to_thread(ArchiveDAO.parse, data)
        if self.strict:
            self._check_blobs(manifest, blobs)

        result = ImportResult()
        seen_ids: set[str] = set()
        rejected_ids: set[str] = set()
        total = len(manifest)
        self.logger.debug("Importing %d entries", total)

        for position, raw_entry in enumerate(manifest.entries):
            if cancel_event is not None and cancel_event.is_set():
                self.logger.info(
                    "Import cancelled after %d of %d entries", position, total
                )
                result.cancelled = True
                break

            await self._import_entry(
                position, raw_entry, blobs, seen_ids, rejected_ids, result
            )

            if progress:
                progress(position + 1, total)

        orphan_ids: list[str] = []
        if not result.cancelled:
            orphan_ids = sorted(set(blobs) - seen_ids - rejected_ids)
        for orphan_id in orphan_ids:
            self.logger.warning("Blob %s has no manifest entry", orphan_id)
            result.warnings.append(
                ArchiveWarning(orphan_id, "Blob has no manifest entry, ignored")
            )

        self.logger.info(
            "Import completed: %d imported, %d skipped, %d unresolved media types",
            result.imported,
            len(result.warnings),
            len(result.unresolved),
        )
        return result

    async def import_file(
        self,
        filepath: Path,
        cancel_event: asyncio.Event | None = None,
        progress: Callable[[int, int], None] | None = None,
    ) -> ImportResult:
        """Read a container from disk and import it"""
        self.logger.info("Importing archive from %s", filepath)
        data = await asyncio.to_thread(ArchiveDAO.read_file, Path(filepath))
        return await self.import_container(data, cancel_event, progress)

    async def _import_entry(
        self,
        position: int,
        raw_entry: Any,
        blobs: dict[str, bytes],
        seen_ids: set[str],
        rejected_ids: set[str],
        result: ImportResult,
    ) -> None:
        """Import one manifest entry, downgrading its failures to warnings"""
        try:
            entry = ManifestEntry.from_dict(raw_entry)
        except ValueError as e:
            self._skip(result, f"entry #{position}", str(e))
            # Its blob, if any, was already reported with the entry
            if isinstance(raw_entry, dict):
                raw_id = raw_entry.get(settings.SERIALIZATION_KEYS.ID.value)
                if isinstance(raw_id, str):
                    rejected_ids.add(raw_id)
            return

        if entry.record_id in seen_ids:
            self._skip(result, entry.record_id, "Duplicate manifest entry", entry.name)
            return
        seen_ids.add(entry.record_id)

        blob = blobs.get(entry.record_id)
        if blob is None:
            self._skip(
                result,
                entry.record_id,
                f"Missing blob {ArchiveDAO.blob_name(entry.record_id)}",
                entry.name,
            )
            return

        resolution = self.resolver.resolve(entry.media_type, entry.name, blob)
        try:
            payload = PayloadCodec.encode(resolution.media_type, blob)
            new_id = await self.store.create(entry.name, payload, entry.metadata)
        except StorageFull as e:
            self._skip(result, entry.record_id, str(e), entry.name)
            return
        except StorageError:
            raise
        except (FileClerkError, ValueError) as e:
            self._skip(result, entry.record_id, str(e), entry.name)
            return

        if not resolution.resolved:
            self.logger.info(
                "Media type of %s (%r) unresolved, kept as %s",
                entry.record_id,
                entry.name,
                resolution.media_type,
            )
            result.unresolved.append(
                ArchiveWarning(
                    entry.record_id,
                    f"Media type unresolved, kept as {resolution.media_type}",
                    entry.name,
                )
            )

        result.imported += 1
        result.created_ids.append(new_id)

    def _skip(
        self, result: ImportResult, record_id: str, reason: str, name: str | None = None
    ) -> None:
        self.logger.warning("Skipping %s (%r): %s", record_id, name, reason)
        result.warnings.append(ArchiveWarning(record_id, reason, name))

    @staticmethod
    def _check_blobs(manifest: ArchiveManifest, blobs: dict[str, bytes]) -> None:
        """Fail the whole import if any well-formed entry has no blob"""
        for raw_entry in manifest.entries:
            try:
                entry = ManifestEntry.from_dict(raw_entry)
            except ValueError:
                continue
            if entry.record_id not in blobs:
                raise CorruptArchive(
                    f"Missing blob {ArchiveDAO.blob_name(entry.record_id)} for {entry.name!r}"
                )
