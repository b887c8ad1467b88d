"""The models used to represent stored files and archives at a high level"""

__all__ = [
    "Record",
    "Chunk",
    "ArchiveManifest",
    "ManifestEntry",
    "MediaKind",
    "ArchiveWarning",
    "ExportResult",
    "ImportResult",
]

from .record import Record
from .chunk import Chunk
from .manifest import ArchiveManifest, ManifestEntry
from .media_kind import MediaKind
from .report import ArchiveWarning, ExportResult, ImportResult
