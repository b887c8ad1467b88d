"""
Payload codec and splitter.

A payload is a self-describing string `<media-type>;base64,<data>`, the same
shape as the tail of a browser data URL. Payloads can be split into ordered
chunks no bigger than CHUNK_SIZE characters and joined back.
"""

import binascii
import logging
import math
from base64 import b64decode, b64encode
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from fileclerk.config import settings
from fileclerk.errors import MalformedPayload
from fileclerk.models.chunk import Chunk
from fileclerk.utils.mime import MimeResolver


class PayloadCodec:
    """Converts between payload strings and (media type, bytes)"""

    ENCODING: str = "base64"
    DATA_URL_SCHEME: str = "data:"

    @staticmethod
    def encode(media_type: str, data: bytes) -> str:
        """
        Build a payload string from a media type and raw bytes.

        Raises:
            ValueError: if the media type cannot be carried in the header
        """
        if "," in media_type:
            raise ValueError(f"Media type cannot contain ',': {media_type!r}")
        if media_type.lower().startswith(PayloadCodec.DATA_URL_SCHEME):
            raise ValueError(f"Media type cannot start with 'data:': {media_type!r}")
        body = b64encode(bytes(data)).decode("ascii")
        return f"{media_type};{PayloadCodec.ENCODING},{body}"

    @staticmethod
    def decode(payload: str) -> tuple[str, bytes]:
        """
        Parse a payload string into its media type and raw bytes.

        A leading `data:` scheme is accepted, so full data URLs decode too.

        Raises:
            MalformedPayload: if the header structure is missing, the encoding
                is not base64 or the body is not valid base64
        """
        media_type, body = PayloadCodec._split(payload)
        try:
            data = b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedPayload(f"Payload body is not valid base64: {e}") from e
        return media_type, data

    @staticmethod
    def media_type_of(payload: str) -> str:
        """Read the declared media type without decoding the body"""
        media_type, _ = PayloadCodec._split(payload)
        return media_type

    @staticmethod
    def from_file(filepath: Path, media_type: str | None = None) -> str:
        """Read a file from disk into a payload, guessing the media type from its name"""
        data = Path(filepath).read_bytes()
        if media_type is None:
            media_type = MimeResolver.guess_from_name(Path(filepath).name)
        logging.getLogger("PayloadCodec").debug(
            "Encoding %s (%d bytes) as %s", filepath, len(data), media_type
        )
        return PayloadCodec.encode(media_type, data)

    @staticmethod
    def _split(payload: str) -> tuple[str, str]:
        """Split a payload into (media type, encoded body)"""
        if not isinstance(payload, str):
            raise MalformedPayload(f"Payload is not a string: {type(payload).__name__}")

        separator = payload.find(",")
        if separator < 0:
            raise MalformedPayload("Payload has no ',' between header and data")

        header = payload[:separator]
        if header.lower().startswith(PayloadCodec.DATA_URL_SCHEME):
            header = header[len(PayloadCodec.DATA_URL_SCHEME) :]

        media_type, found, encoding = header.rpartition(";")
        if not found:
            raise MalformedPayload(f"Payload header has no ';<encoding>': {header!r}")
        if encoding.strip().lower() != PayloadCodec.ENCODING:
            raise MalformedPayload(f"Unsupported payload encoding: {encoding!r}")

        return media_type, payload[separator + 1 :]


class FileSplitter:
    """Splits payload strings into ordered chunks and joins them back"""

    @staticmethod
    def split(payload: str, chunk_size: int | None = None) -> list[Chunk]:
        """
        Split a payload into ceil(len / chunk_size) chunks.

        Every chunk but the last is exactly chunk_size characters long.

        Args:
            payload: The payload string to split
            chunk_size: Characters per chunk, defaults to settings.CHUNK_SIZE

        Raises:
            ValueError: if chunk_size is not a positive integer
        """
        if chunk_size is None:
            chunk_size = settings.CHUNK_SIZE
        if (
            isinstance(chunk_size, bool)
            or not isinstance(chunk_size, int)
            or chunk_size <= 0
        ):
            raise ValueError(f"Chunk size must be a positive integer, got {chunk_size!r}")

        total_chunks = math.ceil(len(payload) / chunk_size)
        return [
            Chunk(index=i, data=payload[i * chunk_size : (i + 1) * chunk_size])
            for i in range(total_chunks)
        ]

    @staticmethod
    def join(chunks: Iterable[Chunk | Mapping[str, Any]]) -> str:
        """
        Join chunks back into a payload, in ascending index order.

        When two chunks share an index the last one seen wins. Gaps and
        out-of-range indices are not detected: the result is whatever the
        present chunks concatenate to.
        """
        by_index: dict[int, str] = {}
        for chunk in chunks:
            if isinstance(chunk, Mapping):
                chunk = Chunk.from_dict(dict(chunk))
            by_index[chunk.index] = chunk.data
        return "".join(by_index[index] for index in sorted(by_index))
