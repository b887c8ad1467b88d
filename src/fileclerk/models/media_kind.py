"""Media kinds a viewer knows how to render, looked up from a media type"""

from enum import Enum


class MediaKind(Enum):
    """Kind of content carried by a payload"""

    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    PDF = "pdf"
    TEXT = "text"
    UNKNOWN = "unknown"

    @classmethod
    def for_media_type(cls, media_type: str) -> "MediaKind":
        """Look up the kind for a media type: exact match first, then the top-level type"""
        essence = media_type.split(";", 1)[0].strip().lower()
        if essence in _EXACT_KINDS:
            return _EXACT_KINDS[essence]
        top_level = essence.split("/", 1)[0]
        return _TOP_LEVEL_KINDS.get(top_level, cls.UNKNOWN)


# Extend these tables to teach viewers a new type
_EXACT_KINDS: dict[str, MediaKind] = {
    "application/pdf": MediaKind.PDF,
    "application/json": MediaKind.TEXT,
    "application/xml": MediaKind.TEXT,
    "application/javascript": MediaKind.TEXT,
    "image/svg+xml": MediaKind.IMAGE,
}

_TOP_LEVEL_KINDS: dict[str, MediaKind] = {
    "image": MediaKind.IMAGE,
    "video": MediaKind.VIDEO,
    "audio": MediaKind.AUDIO,
    "text": MediaKind.TEXT,
}
