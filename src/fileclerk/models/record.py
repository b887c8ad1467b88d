"""Record model: one stored file"""

from dataclasses import dataclass, field
from typing import Any

from fileclerk.config import settings


@dataclass
class Record:
    """A stored file: identity, user-visible name, encoded payload and metadata"""

    record_id: str
    name: str
    payload: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the record value (the id is the store key, not part of the value)"""
        return {
            settings.SERIALIZATION_KEYS.NAME.value: self.name,
            settings.SERIALIZATION_KEYS.PAYLOAD.value: self.payload,
            settings.SERIALIZATION_KEYS.METADATA.value: self.metadata,
        }

    @classmethod
    def from_dict(cls, record_id: str, data: dict[str, Any]) -> "Record":
        """Rebuild a record from its store key and serialized value"""
        metadata = data.get(settings.SERIALIZATION_KEYS.METADATA.value)
        return cls(
            record_id=record_id,
            name=data.get(settings.SERIALIZATION_KEYS.NAME.value, ""),
            payload=data.get(settings.SERIALIZATION_KEYS.PAYLOAD.value, ""),
            metadata=metadata if metadata is not None else {},
        )
