"""Chunk model: a slice of a payload string used for size-bounded transport"""

from dataclasses import dataclass
from typing import Any

from fileclerk.config import settings


@dataclass(frozen=True)
class Chunk:
    """One ordered slice of a payload. Never persisted by the store."""

    index: int
    data: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize chunk to dictionary"""
        return {
            settings.SERIALIZATION_KEYS.CHUNK_INDEX.value: self.index,
            settings.SERIALIZATION_KEYS.CHUNK_DATA.value: self.data,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Chunk":
        """Deserialize chunk from dictionary"""
        return cls(
            index=int(data[settings.SERIALIZATION_KEYS.CHUNK_INDEX.value]),
            data=data[settings.SERIALIZATION_KEYS.CHUNK_DATA.value],
        )
