"""Results returned by archive export and import"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ArchiveWarning:
    """A non-fatal problem with one record or manifest entry"""

    record_id: str
    reason: str
    name: str | None = None

    def __str__(self) -> str:
        if self.name:
            return f"{self.record_id} ({self.name}): {self.reason}"
        return f"{self.record_id}: {self.reason}"


@dataclass
class ExportResult:
    """Container bytes plus the records that could not be exported"""

    data: bytes
    exported: int
    warnings: list[ArchiveWarning] = field(default_factory=list)


@dataclass
class ImportResult:
    """
    Outcome of an import.

    `warnings` lists skipped entries. `unresolved` lists imported entries whose
    media type fell back to the generic placeholder (informational only).
    """

    imported: int = 0
    warnings: list[ArchiveWarning] = field(default_factory=list)
    unresolved: list[ArchiveWarning] = field(default_factory=list)
    created_ids: list[str] = field(default_factory=list)
    cancelled: bool = False
