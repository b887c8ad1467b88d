"""File Clerk exception hierarchy.

Every error names the record id (or file name) it concerns when one is known,
so bulk export/import reports stay traceable.
"""


class FileClerkError(Exception):
    """Base exception for all File Clerk failures."""


class NotFound(FileClerkError):
    """Raised when a record id is absent from the store."""

    def __init__(self, record_id: str):
        super().__init__(f"Record not found: {record_id}")
        self.record_id: str = record_id


class StorageError(FileClerkError):
    """Raised when the storage medium fails (outage, unreadable database)."""


class StorageFull(StorageError):
    """Raised when the storage medium has no room left for a write."""


class MalformedPayload(FileClerkError):
    """Raised when a payload string is not `<media-type>;<encoding>,<data>`."""


class CorruptArchive(FileClerkError):
    """Raised when a container cannot be parsed."""
