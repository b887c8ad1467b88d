"""Exports the whole record store into one container"""

import asyncio
import json
import logging
from pathlib import Path

from fileclerk.config import settings
from fileclerk.errors import MalformedPayload
from fileclerk.models.dao.archive_dao import ArchiveDAO
from fileclerk.models.dao.record_store import RecordStore
from fileclerk.models.manifest import ArchiveManifest, ManifestEntry
from fileclerk.models.report import ArchiveWarning, ExportResult
from fileclerk.utils.codec import PayloadCodec


class ArchiveWriter:
    """
    Produces a container holding every record of a store.

    The snapshot is a single `list()` call. Records created or deleted while an
    export is running may or may not be included; there is no snapshot
    isolation across the export.
    """

    def __init__(
        self,
        store: RecordStore,
        archive_format: str | None = None,
        compression_level: int | None = None,
    ):
        self.store: RecordStore = store
        self.archive_format: str = archive_format or settings.ARCHIVE_FORMAT
        if self.archive_format not in ArchiveDAO.FORMATS:
            raise ValueError(f"Unsupported format: {self.archive_format}")
        self.compression_level: int | None = compression_level
        self.logger: logging.Logger = logging.getLogger("ArchiveWriter")

    async def export(self) -> ExportResult:
        """
        Export every record into container bytes.

        A record whose payload cannot be decoded is left out and reported as a
        warning; the rest of the export goes on.
        """
        records = await self.store.list()
        self.logger.debug("Exporting %d records as %s", len(records), self.archive_format)

        manifest = ArchiveManifest()
        blobs: dict[str, bytes] = {}
        warnings: list[ArchiveWarning] = []

        for record in records:
            try:
                media_type, data = PayloadCodec.decode(record.payload)
            except MalformedPayload as e:
                self.logger.warning(
                    "Skipping record %s (%r): %s", record.record_id, record.name, e
                )
                warnings.append(ArchiveWarning(record.record_id, str(e), record.name))
                continue

            entry = ManifestEntry(
                record_id=record.record_id,
                name=record.name,
                media_type=media_type,
                metadata=record.metadata,
            )
            if self.archive_format == ArchiveDAO.FORMAT_ZIP:
                try:
                    _ = json.dumps(entry.to_dict())
                except (TypeError, ValueError) as e:
                    reason = f"Metadata cannot be written as JSON: {e}"
                    self.logger.warning("Skipping record %s: %s", record.record_id, reason)
                    warnings.append(ArchiveWarning(record.record_id, reason, record.name))
                    continue

            manifest.add(entry)
            blobs[record.record_id] = data

        container = await asyncio.to_thread(
            ArchiveDAO.build,
            manifest,
            blobs,
            self.archive_format,
            self.compression_level,
        )
        self.logger.info(
            "Export completed: %d records, %d skipped, %d bytes",
            len(blobs),
            len(warnings),
            len(container),
        )
        return ExportResult(data=container, exported=len(blobs), warnings=warnings)

    async def export_to_file(self, filepath: Path) -> ExportResult:
        """Export every record and write the container to filepath atomically"""
        result = await self.export()
        await asyncio.to_thread(ArchiveDAO.write_file, result.data, Path(filepath))
        return result
