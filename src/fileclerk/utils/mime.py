"""Media type inference and repair for records coming out of an archive"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath

from fileclerk.config import settings


class MimeSource(Enum):
    """Where a resolved media type came from"""

    MANIFEST = "manifest"
    EXTENSION = "extension"
    CONTENT = "content"
    PLACEHOLDER = "placeholder"


@dataclass(frozen=True)
class MimeResolution:
    """Effective media type for a record, and how it was obtained"""

    media_type: str
    source: MimeSource

    @property
    def resolved(self) -> bool:
        """False when the record is carried through with the generic placeholder"""
        return self.source is not MimeSource.PLACEHOLDER


class MimeResolver:
    """
    Resolves the effective media type of a manifest entry.

    Order: declared type unless generic, then the name's extension, then
    (only if enabled) the content's magic bytes, then the placeholder.
    """

    PLACEHOLDER: str = "application/octet-stream"

    GENERIC_MEDIA_TYPES: frozenset[str] = frozenset(
        {
            "",
            "application/octet-stream",
            "binary/octet-stream",
            "application/unknown",
            "audio/octet-stream",
            "video/octet-stream",
        }
    )

    EXTENSION_TO_MIME: dict[str, str] = {
        # Text
        ".txt": "text/plain",
        ".md": "text/markdown",
        ".csv": "text/csv",
        ".html": "text/html",
        ".htm": "text/html",
        ".css": "text/css",
        ".js": "text/javascript",
        ".json": "application/json",
        ".xml": "application/xml",
        # Images
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".gif": "image/gif",
        ".webp": "image/webp",
        ".bmp": "image/bmp",
        ".svg": "image/svg+xml",
        ".ico": "image/x-icon",
        ".tif": "image/tiff",
        ".tiff": "image/tiff",
        # Audio
        ".wav": "audio/wav",
        ".mp3": "audio/mpeg",
        ".flac": "audio/flac",
        ".ogg": "audio/ogg",
        ".m4a": "audio/mp4",
        ".aac": "audio/aac",
        # Video
        ".mp4": "video/mp4",
        ".webm": "video/webm",
        ".mov": "video/quicktime",
        ".avi": "video/x-msvideo",
        ".mkv": "video/x-matroska",
        # Documents
        ".pdf": "application/pdf",
    }

    MIME_TO_EXTENSION: dict[str, str] = {
        "text/plain": ".txt",
        "text/html": ".html",
        "image/jpeg": ".jpg",
        "image/tiff": ".tif",
    }

    def __init__(self, sniff_content: bool | None = None):
        self.sniff_content: bool = (
            settings.SNIFF_MEDIA_TYPES if sniff_content is None else sniff_content
        )
        self.logger: logging.Logger = logging.getLogger("MimeResolver")

    def resolve(
        self, media_type: str | None, name: str, data: bytes | None = None
    ) -> MimeResolution:
        """Resolve the effective media type for a record named `name`"""
        declared = (media_type or "").strip()
        if not self.is_placeholder(declared):
            return MimeResolution(declared, MimeSource.MANIFEST)

        guessed = self.guess_from_name(name)
        if guessed != self.PLACEHOLDER:
            self.logger.debug(
                "Repaired media type of %r: %r -> %s", name, declared, guessed
            )
            return MimeResolution(guessed, MimeSource.EXTENSION)

        if self.sniff_content and data:
            sniffed = self.sniff(data)
            if sniffed != self.PLACEHOLDER:
                self.logger.debug("Sniffed media type of %r: %s", name, sniffed)
                return MimeResolution(sniffed, MimeSource.CONTENT)

        return MimeResolution(self.PLACEHOLDER, MimeSource.PLACEHOLDER)

    @staticmethod
    def is_placeholder(media_type: str | None) -> bool:
        """True for empty or generic media types that carry no real information"""
        essence = (media_type or "").split(";", 1)[0].strip().lower()
        return essence in MimeResolver.GENERIC_MEDIA_TYPES

    @staticmethod
    def guess_from_name(name: str) -> str:
        """Get MIME type for a file name's extension"""
        ext = PurePath(name).suffix.lower()
        return MimeResolver.EXTENSION_TO_MIME.get(ext, MimeResolver.PLACEHOLDER)

    @staticmethod
    def extension_for(media_type: str) -> str:
        """Get file extension for MIME type"""
        essence = media_type.split(";", 1)[0].strip().lower()
        if essence in MimeResolver.MIME_TO_EXTENSION:
            return MimeResolver.MIME_TO_EXTENSION[essence]
        for ext, mime in MimeResolver.EXTENSION_TO_MIME.items():
            if mime == essence:
                return ext
        return ".bin"

    @staticmethod
    def sniff(data: bytes) -> str:
        """Detect MIME type from header bytes"""
        # Images
        if data[:8] == b"\x89PNG\r\n\x1a\n":
            return "image/png"
        if data[:2] == b"\xff\xd8":
            return "image/jpeg"
        if data[:6] in (b"GIF87a", b"GIF89a"):
            return "image/gif"
        if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
            return "image/webp"
        # Audio
        if data[:4] == b"RIFF" and data[8:12] == b"WAVE":
            return "audio/wav"
        if data[:3] == b"ID3" or data[:2] == b"\xff\xfb":
            return "audio/mpeg"
        if data[:4] == b"fLaC":
            return "audio/flac"
        if data[:4] == b"OggS":
            return "audio/ogg"
        # Video
        if len(data) >= 12 and data[4:8] == b"ftyp":
            if data[8:12] in (b"qt  ", b"MSNV"):
                return "video/quicktime"
            return "video/mp4"
        if data[:4] == b"\x1a\x45\xdf\xa3":
            if b"webm" in data[:64]:
                return "video/webm"
            return "video/x-matroska"
        if data[:4] == b"RIFF" and data[8:12] == b"AVI ":
            return "video/x-msvideo"
        # Documents
        if data[:5] == b"%PDF-":
            return "application/pdf"
        return MimeResolver.PLACEHOLDER
