"""Container format for whole-store archives"""

import io
import json
import logging
import struct
import tarfile
import zipfile
from pathlib import Path
from typing import cast

import msgpack
import zstd

from fileclerk.config import settings
from fileclerk.errors import CorruptArchive
from fileclerk.models.manifest import ArchiveManifest
from fileclerk.utils.move import atomic_write


class ArchiveDAO:
    """
    Handles reading/writing the container format.

    "archive" format (default):
    - FILECLERK1 (magic, 10 bytes)
    - Version (2 bytes, little-endian)
    - ZSTD-compressed TAR archive

    "zip" format:
    - Standard ZIP, can be opened with 7zip, WinRAR, etc.

    Inside either one:
    - manifest.msgpack (manifest.json for zip)
    - files/{record_id} (raw decoded bytes)
    """

    MAGIC: bytes = b"FILECLERK1"
    VERSION: int = 1
    HEADER_SIZE: int = 10 + 2  # magic + version
    ZIP_MAGIC: bytes = b"PK\x03\x04"

    FORMAT_ARCHIVE: str = "archive"
    FORMAT_ZIP: str = "zip"
    FORMATS: tuple[str, ...] = (FORMAT_ARCHIVE, FORMAT_ZIP)

    MANIFEST_MSGPACK: str = "manifest.msgpack"
    MANIFEST_JSON: str = "manifest.json"
    FILES_PREFIX: str = "files/"

    @staticmethod
    def build(
        manifest: ArchiveManifest,
        blobs: dict[str, bytes],
        archive_format: str = FORMAT_ARCHIVE,
        compression_level: int | None = None,
    ) -> bytes:
        """
        Serialize a manifest and its blobs into container bytes.

        Args:
            manifest: The manifest, one entry per blob
            blobs: Mapping of record_id to raw bytes
            archive_format: "archive" or "zip"
            compression_level: ZSTD level, defaults to settings.ARCHIVE_COMPRESSION_LEVEL
        """
        logger = logging.getLogger("ArchiveDAO")
        if archive_format == ArchiveDAO.FORMAT_ARCHIVE:
            level = (
                compression_level
                if compression_level is not None
                else settings.ARCHIVE_COMPRESSION_LEVEL
            )
            tar_bytes = ArchiveDAO._build_tar(manifest, blobs)
            compressed = zstd.ZSTD_compress(tar_bytes, level)
            header = ArchiveDAO.MAGIC + struct.pack("<H", ArchiveDAO.VERSION)
            output = header + compressed
        elif archive_format == ArchiveDAO.FORMAT_ZIP:
            output = ArchiveDAO._build_zip(manifest, blobs)
        else:
            raise ValueError(f"Unsupported format: {archive_format}")

        logger.debug(
            "Built %s container: %d entries, %d bytes",
            archive_format,
            len(manifest),
            len(output),
        )
        return output

    @staticmethod
    def parse(data: bytes) -> tuple[ArchiveManifest, dict[str, bytes]]:
        """
        Parse container bytes into the manifest and the blobs keyed by record_id.

        Raises:
            CorruptArchive: if the container or its manifest cannot be read
        """
        archive_format = ArchiveDAO.detect_format(data)
        if archive_format == ArchiveDAO.FORMAT_ARCHIVE:
            version = struct.unpack("<H", data[len(ArchiveDAO.MAGIC) : ArchiveDAO.HEADER_SIZE])[0]
            if version != ArchiveDAO.VERSION:
                raise CorruptArchive(f"Unsupported archive version: {version}")
            try:
                tar_bytes = zstd.decompress(data[ArchiveDAO.HEADER_SIZE :])
            except (zstd.Error, ValueError) as e:
                raise CorruptArchive(f"Archive payload cannot be decompressed: {e}") from e
            return ArchiveDAO._extract_tar(tar_bytes)
        return ArchiveDAO._extract_zip(data)

    @staticmethod
    def detect_format(data: bytes) -> str:
        """
        Detect container format from magic bytes.

        Returns:
            "archive" for the compressed TAR format
            "zip" for the plain ZIP format

        Raises:
            CorruptArchive for unknown formats
        """
        if len(data) >= ArchiveDAO.HEADER_SIZE and data[: len(ArchiveDAO.MAGIC)] == ArchiveDAO.MAGIC:
            return ArchiveDAO.FORMAT_ARCHIVE
        if data[: len(ArchiveDAO.ZIP_MAGIC)] == ArchiveDAO.ZIP_MAGIC:
            return ArchiveDAO.FORMAT_ZIP
        raise CorruptArchive(f"Unknown container format: {data[:10]!r}")

    @staticmethod
    def write_file(data: bytes, filepath: Path) -> None:
        """Write container bytes to disk atomically"""
        atomic_write(data, Path(filepath))
        logging.getLogger("ArchiveDAO").info("Container written to %s", filepath)

    @staticmethod
    def read_file(filepath: Path) -> bytes:
        """Read container bytes from disk"""
        with open(filepath, "rb") as f:
            return f.read()

    @staticmethod
    def blob_name(record_id: str) -> str:
        """Path of a record's bytes inside the container"""
        return f"{ArchiveDAO.FILES_PREFIX}{record_id}"

    @staticmethod
    def _build_tar(manifest: ArchiveManifest, blobs: dict[str, bytes]) -> bytes:
        """Build TAR archive in memory"""
        tar_buffer = io.BytesIO()

        with tarfile.open(fileobj=tar_buffer, mode="w") as tar:
            manifest_bytes = cast(
                bytes, msgpack.packb(manifest.to_dict(), use_bin_type=True)
            )
            ArchiveDAO._add_bytes_to_tar(tar, ArchiveDAO.MANIFEST_MSGPACK, manifest_bytes)

            for record_id, blob in blobs.items():
                ArchiveDAO._add_bytes_to_tar(tar, ArchiveDAO.blob_name(record_id), blob)

        return tar_buffer.getvalue()

    @staticmethod
    def _build_zip(manifest: ArchiveManifest, blobs: dict[str, bytes]) -> bytes:
        """Build ZIP archive in memory, with a human-readable manifest"""
        zip_buffer = io.BytesIO()

        with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(ArchiveDAO.MANIFEST_JSON, json.dumps(manifest.to_dict(), indent=2))
            for record_id, blob in blobs.items():
                zf.writestr(ArchiveDAO.blob_name(record_id), blob)

        return zip_buffer.getvalue()

    @staticmethod
    def _extract_tar(tar_bytes: bytes) -> tuple[ArchiveManifest, dict[str, bytes]]:
        """Extract manifest and blobs from TAR"""
        manifest_data: bytes | None = None
        blobs: dict[str, bytes] = {}

        try:
            with tarfile.open(fileobj=io.BytesIO(tar_bytes), mode="r") as tar:
                for member in tar.getmembers():
                    if not member.isfile():
                        continue

                    file_obj = tar.extractfile(member)
                    if file_obj is None:
                        continue

                    data = file_obj.read()
                    if member.name == ArchiveDAO.MANIFEST_MSGPACK:
                        manifest_data = data
                    elif member.name.startswith(ArchiveDAO.FILES_PREFIX):
                        blobs[member.name[len(ArchiveDAO.FILES_PREFIX) :]] = data
        except (tarfile.TarError, EOFError, OSError) as e:
            raise CorruptArchive(f"Archive is not a readable TAR: {e}") from e

        if manifest_data is None:
            raise CorruptArchive("Archive missing manifest")

        try:
            raw_manifest = msgpack.unpackb(manifest_data, raw=False, strict_map_key=False)
            manifest = ArchiveManifest.from_dict(raw_manifest)
        except (ValueError, TypeError) as e:
            raise CorruptArchive(f"Archive manifest is unreadable: {e}") from e
        return manifest, blobs

    @staticmethod
    def _extract_zip(zip_bytes: bytes) -> tuple[ArchiveManifest, dict[str, bytes]]:
        """Extract manifest and blobs from ZIP"""
        manifest_data: bytes | None = None
        blobs: dict[str, bytes] = {}

        try:
            with zipfile.ZipFile(io.BytesIO(zip_bytes), "r") as zf:
                for name in zf.namelist():
                    if name == ArchiveDAO.MANIFEST_JSON:
                        manifest_data = zf.read(name)
                    elif name.startswith(ArchiveDAO.FILES_PREFIX) and not name.endswith("/"):
                        blobs[name[len(ArchiveDAO.FILES_PREFIX) :]] = zf.read(name)
        except (zipfile.BadZipFile, EOFError, OSError, ValueError) as e:
            raise CorruptArchive(f"Archive is not a readable ZIP: {e}") from e

        if manifest_data is None:
            raise CorruptArchive("Archive missing manifest.json")

        try:
            manifest = ArchiveManifest.from_dict(json.loads(manifest_data))
        except ValueError as e:
            raise CorruptArchive(f"Archive manifest is unreadable: {e}") from e
        return manifest, blobs

    @staticmethod
    def _add_bytes_to_tar(tar: tarfile.TarFile, name: str, data: bytes) -> None:
        """Add bytes to a TAR archive as a file"""
        info = tarfile.TarInfo(name=name)
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))
