"""Text rendering of stored records, dispatched on the payload's media kind"""

import logging
from typing import Callable

from fileclerk.errors import MalformedPayload
from fileclerk.models.media_kind import MediaKind
from fileclerk.models.record import Record
from fileclerk.utils.codec import PayloadCodec

Renderer = Callable[[Record, str, bytes], str]


def _render_text(record: Record, media_type: str, data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _render_binary(record: Record, media_type: str, data: bytes) -> str:
    kind = MediaKind.for_media_type(media_type)
    return f"[{kind.value}] {record.name} ({media_type}, {len(data)} bytes)"


def _render_unknown(record: Record, media_type: str, data: bytes) -> str:
    return f"Unsupported file type: {media_type or 'unknown'} ({len(data)} bytes)"


RENDERERS: dict[MediaKind, Renderer] = {
    MediaKind.IMAGE: _render_binary,
    MediaKind.VIDEO: _render_binary,
    MediaKind.AUDIO: _render_binary,
    MediaKind.PDF: _render_binary,
    MediaKind.TEXT: _render_text,
    MediaKind.UNKNOWN: _render_unknown,
}


def render(record: Record) -> str:
    """Render a record for a terminal"""
    try:
        media_type, data = PayloadCodec.decode(record.payload)
    except MalformedPayload as e:
        logging.getLogger("Viewer").error("Cannot open %s: %s", record.record_id, e)
        return f"Cannot open {record.name}: {e}"
    renderer = RENDERERS[MediaKind.for_media_type(media_type)]
    return renderer(record, media_type, data)
