"""Archive manifest model for the container format"""

import time
from dataclasses import dataclass, field
from typing import Any

from fileclerk.config import settings


@dataclass
class ManifestEntry:
    """Describes one exported record; its bytes live in `files/<record_id>`"""

    record_id: str
    name: str
    media_type: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize entry to dictionary"""
        return {
            settings.SERIALIZATION_KEYS.ID.value: self.record_id,
            settings.SERIALIZATION_KEYS.NAME.value: self.name,
            settings.SERIALIZATION_KEYS.MEDIA_TYPE.value: self.media_type,
            settings.SERIALIZATION_KEYS.METADATA.value: self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ManifestEntry":
        """
        Deserialize entry from dictionary.

        Raises:
            ValueError: if the entry has no usable id or name, or its metadata
                is not a mapping
        """
        if not isinstance(data, dict):
            raise ValueError(f"Manifest entry is not a mapping: {data!r}")

        record_id = data.get(settings.SERIALIZATION_KEYS.ID.value)
        if not isinstance(record_id, str) or not record_id:
            raise ValueError("Manifest entry has no id")

        name = data.get(settings.SERIALIZATION_KEYS.NAME.value)
        if not isinstance(name, str):
            raise ValueError(f"Manifest entry {record_id} has no name")

        media_type = data.get(settings.SERIALIZATION_KEYS.MEDIA_TYPE.value) or ""
        metadata = data.get(settings.SERIALIZATION_KEYS.METADATA.value)
        if metadata is not None and not isinstance(metadata, dict):
            raise ValueError(f"Manifest entry {record_id} metadata is not a mapping")
        return cls(
            record_id=record_id,
            name=name,
            media_type=str(media_type),
            metadata=metadata if metadata is not None else {},
        )


@dataclass
class ArchiveManifest:
    """Manifest containing metadata about the archive contents"""

    version: int = 1
    created_at: float = field(default_factory=time.time)
    entries: list[dict[str, Any]] = field(default_factory=list)

    def add(self, entry: ManifestEntry) -> None:
        """Append an entry to the manifest"""
        self.entries.append(entry.to_dict())

    def to_dict(self) -> dict[str, Any]:
        """Serialize manifest to dictionary"""
        return {
            settings.SERIALIZATION_KEYS.VERSION.value: self.version,
            settings.SERIALIZATION_KEYS.CREATED_AT.value: self.created_at,
            settings.SERIALIZATION_KEYS.ENTRIES.value: self.entries,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ArchiveManifest":
        """
        Deserialize manifest from dictionary.

        Entries are kept raw, each one is validated separately on import.
        """
        if not isinstance(data, dict):
            raise ValueError("Manifest is not a mapping")
        entries = data.get(settings.SERIALIZATION_KEYS.ENTRIES.value, [])
        if not isinstance(entries, list):
            raise ValueError("Manifest entries are not a list")
        return cls(
            version=data.get(settings.SERIALIZATION_KEYS.VERSION.value, 1),
            created_at=data.get(settings.SERIALIZATION_KEYS.CREATED_AT.value, time.time()),
            entries=entries,
        )

    def __len__(self) -> int:
        return len(self.entries)
