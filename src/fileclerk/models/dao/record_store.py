"""Async key-value persistence of file records"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, cast

import msgpack

from fileclerk.config import settings
from fileclerk.errors import NotFound, StorageError, StorageFull
from fileclerk.models.record import Record


class RecordStore:
    """
    Key-value store of records on a local SQLite file.

    Each record is one row: the id is the key and the value is the msgpack
    encoded {name, payload, metadata}. Every call goes to the file, nothing is
    cached in memory. Writes are serialized through a single asyncio lock;
    reads run concurrently, each in a worker thread with its own connection.
    """

    MAX_ID_ATTEMPTS: int = 5

    def __init__(self, filepath: Path | None = None, timeout: float | None = None):
        self.filepath: Path = Path(
            filepath if filepath is not None else settings.STORE_FILE_PATH
        )
        self.timeout: float = timeout if timeout is not None else settings.STORE_TIMEOUT
        self.logger: logging.Logger = logging.getLogger("RecordStore")
        self._write_lock: asyncio.Lock = asyncio.Lock()
        self._schema_ready: bool = False

    async def open(self) -> None:
        """Create the database file and schema if they don't exist yet"""
        if self._schema_ready:
            return
        await asyncio.to_thread(self._create_schema)

    async def close(self) -> None:
        """Release the store. Connections are per call, so only the state is reset."""
        self._schema_ready = False

    async def __aenter__(self) -> "RecordStore":
        await self.open()
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    async def create(
        self, name: str, payload: str, metadata: dict[str, Any] | None = None
    ) -> str:
        """
        Persist a new record and return its freshly generated id.

        Raises:
            StorageFull: if the medium has no room left
            StorageError: on any other medium failure
            ValueError: if the metadata cannot be serialized
        """
        record = Record(record_id="", name=name, payload=payload, metadata=metadata or {})
        value = self._pack(record)
        async with self._write_lock:
            record_id = await asyncio.to_thread(self._insert, name, value)
        self.logger.debug("Created record %s (%r, %d bytes)", record_id, name, len(value))
        return record_id

    async def list(self) -> list[Record]:
        """Return every record, in insertion order"""
        rows = await asyncio.to_thread(self._select_all)
        return [self._unpack(record_id, value) for record_id, value in rows]

    async def read(self, record_id: str) -> Record:
        """
        Return the record stored under record_id.

        Raises:
            NotFound: if no record has this id
        """
        value = await asyncio.to_thread(self._select_one, record_id)
        if value is None:
            raise NotFound(record_id)
        return self._unpack(record_id, value)

    async def delete(self, record_id: str) -> None:
        """
        Remove a record permanently.

        Raises:
            NotFound: if no record has this id
        """
        async with self._write_lock:
            deleted = await asyncio.to_thread(self._delete, record_id)
        if not deleted:
            raise NotFound(record_id)
        self.logger.debug("Deleted record %s", record_id)

    async def keys(self) -> list[str]:
        """Return every record id, in insertion order"""
        return await asyncio.to_thread(self._select_keys)

    async def count(self) -> int:
        """Return the number of stored records"""
        return await asyncio.to_thread(self._count)

    async def clear(self) -> None:
        """Remove every record"""
        async with self._write_lock:
            await asyncio.to_thread(self._clear)
        self.logger.debug("Cleared all records from %s", self.filepath)

    @contextmanager
    def _connection(self, action: str) -> Iterator[sqlite3.Connection]:
        """Open a connection for one call, commit on success, translate medium errors"""
        if not self._schema_ready:
            self._create_schema()
        try:
            conn = sqlite3.connect(self.filepath, timeout=self.timeout)
        except sqlite3.Error as e:
            raise self._translate_error(e, action) from e
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise self._translate_error(e, action) from e
        finally:
            conn.close()

    def _create_schema(self) -> None:
        """Create the key-value table"""
        try:
            self.filepath.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.filepath, timeout=self.timeout)
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Cannot open store {self.filepath}: {e}") from e
        try:
            with conn:
                _ = conn.execute("""
                    CREATE TABLE IF NOT EXISTS records (
                        id TEXT PRIMARY KEY,
                        value BLOB NOT NULL
                    )
                """)
        except sqlite3.Error as e:
            raise self._translate_error(e, "create the schema") from e
        finally:
            conn.close()
        self._schema_ready = True
        self.logger.debug("Store ready at %s", self.filepath)

    def _insert(self, name: str, value: bytes) -> str:
        with self._connection(f"create record {name!r}") as conn:
            for _ in range(self.MAX_ID_ATTEMPTS):
                record_id = str(uuid.uuid4())
                try:
                    _ = conn.execute(
                        "INSERT INTO records (id, value) VALUES (?, ?)",
                        (record_id, value),
                    )
                    return record_id
                except sqlite3.IntegrityError:
                    self.logger.warning("Generated id %s already in use, retrying", record_id)
        raise StorageError(f"Could not generate a unique id for record {name!r}")

    def _select_all(self) -> list[tuple[str, bytes]]:
        with self._connection("list records") as conn:
            rows = conn.execute("SELECT id, value FROM records ORDER BY rowid").fetchall()
        return cast(list[tuple[str, bytes]], rows)

    def _select_one(self, record_id: str) -> bytes | None:
        with self._connection(f"read record {record_id}") as conn:
            row = conn.execute(
                "SELECT value FROM records WHERE id = ?", (record_id,)
            ).fetchone()
        return None if row is None else cast(bytes, row[0])

    def _select_keys(self) -> list[str]:
        with self._connection("list record ids") as conn:
            rows = conn.execute("SELECT id FROM records ORDER BY rowid").fetchall()
        return [cast(str, row[0]) for row in rows]

    def _count(self) -> int:
        with self._connection("count records") as conn:
            row = conn.execute("SELECT COUNT(*) FROM records").fetchone()
        return cast(int, row[0])

    def _delete(self, record_id: str) -> bool:
        with self._connection(f"delete record {record_id}") as conn:
            cursor = conn.execute("DELETE FROM records WHERE id = ?", (record_id,))
        return cursor.rowcount > 0

    def _clear(self) -> None:
        with self._connection("clear records") as conn:
            _ = conn.execute("DELETE FROM records")

    @staticmethod
    def _pack(record: Record) -> bytes:
        try:
            return cast(bytes, msgpack.packb(record.to_dict(), use_bin_type=True))
        except (TypeError, ValueError, OverflowError) as e:
            raise ValueError(f"Record {record.name!r} cannot be serialized: {e}") from e

    @staticmethod
    def _unpack(record_id: str, value: bytes) -> Record:
        try:
            data = msgpack.unpackb(value, raw=False, strict_map_key=False)
        except ValueError as e:
            raise StorageError(f"Record {record_id} is unreadable: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"Record {record_id} is unreadable: not a mapping")
        return Record.from_dict(record_id, cast(dict[str, Any], data))

    @staticmethod
    def _translate_error(error: sqlite3.Error, action: str) -> StorageError:
        code = getattr(error, "sqlite_errorcode", None)
        if code == sqlite3.SQLITE_FULL or "full" in str(error).lower():
            return StorageFull(f"Storage is full, cannot {action}: {error}")
        return StorageError(f"Storage failure, cannot {action}: {error}")
