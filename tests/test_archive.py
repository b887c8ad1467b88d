"""Tests for whole-store export and import"""

import asyncio
import io
import json
import tarfile
import zipfile
from pathlib import Path

import msgpack
import pytest
import zstd

from fileclerk.errors import CorruptArchive
from fileclerk.models.dao.archive_dao import ArchiveDAO
from fileclerk.models.dao.archive_reader import ArchiveReader
from fileclerk.models.dao.archive_writer import ArchiveWriter
from fileclerk.models.dao.record_store import RecordStore
from fileclerk.models.manifest import ArchiveManifest, ManifestEntry
from fileclerk.utils.codec import PayloadCodec

SAMPLES: list[tuple[str, str, bytes, dict[str, object]]] = [
    ("notes.txt", "text/plain", b"Remember the milk", {"notes": "0.02 KB"}),
    ("photo.png", "image/png", b"\x89PNG\r\n\x1a\n" + bytes(range(200)), {"tags": ["x"]}),
    ("song.mp3", "audio/mpeg", b"ID3" + b"\x00" * 64, {}),
    ("empty.pdf", "application/pdf", b"", {"pages": 0}),
]


async def _fill(store: RecordStore) -> list[str]:
    return [
        await store.create(name, PayloadCodec.encode(media_type, data), metadata)
        for name, media_type, data, metadata in SAMPLES
    ]


async def _decoded(store: RecordStore) -> list[tuple[str, str, bytes, dict[str, object]]]:
    result = []
    for record in await store.list():
        media_type, data = PayloadCodec.decode(record.payload)
        result.append((record.name, media_type, data, record.metadata))
    return sorted(result)


def _container(entries: list[ManifestEntry], blobs: dict[str, bytes]) -> bytes:
    manifest = ArchiveManifest()
    for entry in entries:
        manifest.add(entry)
    return ArchiveDAO.build(manifest, blobs)


class TestExportImportRoundtrip:
    """Tests that a store survives export then import into an empty store"""

    @pytest.mark.parametrize("archive_format", ["archive", "zip"])
    async def test_roundtrip(
        self, store: RecordStore, other_store: RecordStore, archive_format: str
    ):
        """Test that names, media types, bytes and metadata survive; ids do not"""
        original_ids = await _fill(store)

        exported = await ArchiveWriter(store, archive_format).export()
        result = await ArchiveReader(other_store).import_container(exported.data)

        assert exported.exported == len(SAMPLES)
        assert exported.warnings == []
        assert result.imported == len(SAMPLES)
        assert result.warnings == []
        assert result.unresolved == []
        assert await _decoded(other_store) == await _decoded(store)
        assert not set(await other_store.keys()) & set(original_ids)
        assert sorted(result.created_ids) == sorted(await other_store.keys())

    async def test_roundtrip_through_file(
        self, store: RecordStore, other_store: RecordStore, tmp_path: Path
    ):
        """Test exporting to disk and importing from the written file"""
        _ = await _fill(store)
        archive_path = tmp_path / "exports" / "backup.fclk"

        _ = await ArchiveWriter(store).export_to_file(archive_path)
        result = await ArchiveReader(other_store).import_file(archive_path)

        assert archive_path.read_bytes().startswith(ArchiveDAO.MAGIC)
        assert result.imported == len(SAMPLES)
        assert await _decoded(other_store) == await _decoded(store)

    async def test_nested_non_string_keys_survive(
        self, store: RecordStore, other_store: RecordStore
    ):
        """Test that metadata with integer-keyed mappings exports and imports"""
        metadata = {"counts": {1: 2}}
        _ = await store.create("a.txt", PayloadCodec.encode("text/plain", b"a"), metadata)

        exported = await ArchiveWriter(store).export()
        result = await ArchiveReader(other_store).import_container(exported.data)

        assert exported.warnings == []
        assert result.imported == 1
        assert [r.metadata for r in await other_store.list()] == [metadata]

    async def test_import_never_overwrites(self, store: RecordStore):
        """Test that importing into the source store duplicates instead of replacing"""
        _ = await _fill(store)
        exported = await ArchiveWriter(store).export()

        result = await ArchiveReader(store).import_container(exported.data)

        assert result.imported == len(SAMPLES)
        assert await store.count() == 2 * len(SAMPLES)

    async def test_export_empty_store(self, store: RecordStore, other_store: RecordStore):
        """Test that an empty store exports to a valid, empty container"""
        exported = await ArchiveWriter(store).export()
        result = await ArchiveReader(other_store).import_container(exported.data)

        assert exported.exported == 0
        assert result.imported == 0
        assert await other_store.count() == 0


class TestArchiveWriter:
    """Tests for export layout and failure policy"""

    async def test_container_layout(self, store: RecordStore):
        """Test manifest entries and files/<id> blobs inside the container"""
        ids = await _fill(store)

        exported = await ArchiveWriter(store).export()
        manifest, blobs = ArchiveDAO.parse(exported.data)

        assert set(blobs) == set(ids)
        entries = [ManifestEntry.from_dict(raw) for raw in manifest.entries]
        assert [e.record_id for e in entries] == ids
        assert [e.media_type for e in entries] == [s[1] for s in SAMPLES]
        assert blobs[ids[0]] == b"Remember the milk"

    async def test_zip_is_human_readable(self, store: RecordStore):
        """Test that the zip format holds a JSON manifest and plain files"""
        ids = await _fill(store)

        exported = await ArchiveWriter(store, "zip").export()

        with zipfile.ZipFile(io.BytesIO(exported.data)) as zf:
            manifest = json.loads(zf.read("manifest.json"))
            assert zf.read(f"files/{ids[0]}") == b"Remember the milk"
        assert manifest["entries"][0] == {
            "id": ids[0],
            "name": "notes.txt",
            "mediaType": "text/plain",
            "metadata": {"notes": "0.02 KB"},
        }

    async def test_malformed_payload_is_skipped(self, store: RecordStore):
        """Test that one undecodable record doesn't abort the export"""
        ids = await _fill(store)
        bad_id = await store.create("broken.bin", "this is not a payload")

        exported = await ArchiveWriter(store).export()
        manifest, blobs = ArchiveDAO.parse(exported.data)

        assert exported.exported == len(ids)
        assert len(exported.warnings) == 1
        assert exported.warnings[0].record_id == bad_id
        assert exported.warnings[0].name == "broken.bin"
        assert bad_id not in blobs
        assert len(manifest) == len(ids)

    async def test_zip_skips_non_json_metadata(self, store: RecordStore):
        """Test that metadata JSON cannot hold is reported, not fatal"""
        good = await store.create("a.txt", PayloadCodec.encode("text/plain", b"a"))
        bad = await store.create("b.txt", PayloadCodec.encode("text/plain", b"b"), {"raw": b"\x00"})

        exported = await ArchiveWriter(store, "zip").export()

        assert exported.exported == 1
        assert [w.record_id for w in exported.warnings] == [bad]
        _, blobs = ArchiveDAO.parse(exported.data)
        assert set(blobs) == {good}

    def test_unknown_format(self, tmp_path: Path):
        """Test that an unsupported format is refused up front"""
        with pytest.raises(ValueError):
            _ = ArchiveWriter(RecordStore(tmp_path / "r.sqlite3"), "rar")


class TestArchiveReader:
    """Tests for import repair and failure policy"""

    async def test_mime_repair_from_name(self, other_store: RecordStore):
        """Test that a placeholder type on notes.txt is repaired to text/plain"""
        data = _container(
            [ManifestEntry("orig-1", "notes.txt", "application/octet-stream", {})],
            {"orig-1": b"hello"},
        )

        result = await ArchiveReader(other_store).import_container(data)

        record = await other_store.read(result.created_ids[0])
        assert PayloadCodec.decode(record.payload) == ("text/plain", b"hello")
        assert result.unresolved == []

    async def test_unresolved_media_type_is_carried(self, other_store: RecordStore):
        """Test that an unknown type is imported with the placeholder and noted"""
        data = _container(
            [ManifestEntry("orig-1", "data.xyz", "", {"k": "v"})],
            {"orig-1": b"\x01\x02"},
        )

        result = await ArchiveReader(other_store).import_container(data)

        assert result.imported == 1
        assert result.warnings == []
        assert [n.record_id for n in result.unresolved] == ["orig-1"]
        record = await other_store.read(result.created_ids[0])
        assert PayloadCodec.media_type_of(record.payload) == "application/octet-stream"
        assert record.metadata == {"k": "v"}

    async def test_missing_blob_is_partial_failure(self, other_store: RecordStore):
        """Test 3 valid entries + 1 missing blob: 3 imported, 1 warning, no raise"""
        entries = [
            ManifestEntry("a", "a.txt", "text/plain", {}),
            ManifestEntry("b", "b.png", "image/png", {}),
            ManifestEntry("missing", "gone.txt", "text/plain", {}),
            ManifestEntry("c", "c.mp4", "video/mp4", {}),
        ]
        data = _container(entries, {"a": b"a", "b": b"b", "c": b"c"})

        result = await ArchiveReader(other_store).import_container(data)

        assert result.imported == 3
        assert len(result.warnings) == 1
        assert result.warnings[0].record_id == "missing"
        assert result.warnings[0].name == "gone.txt"
        assert await other_store.count() == 3

    async def test_strict_mode_missing_blob_is_fatal(self, other_store: RecordStore):
        """Test that strict mode rejects the archive before importing anything"""
        entries = [
            ManifestEntry("a", "a.txt", "text/plain", {}),
            ManifestEntry("missing", "gone.txt", "text/plain", {}),
        ]
        data = _container(entries, {"a": b"a"})

        with pytest.raises(CorruptArchive):
            _ = await ArchiveReader(other_store, strict=True).import_container(data)
        assert await other_store.count() == 0

    async def test_malformed_and_duplicate_entries(self, other_store: RecordStore):
        """Test that bad manifest entries are skipped with a warning each"""
        manifest = ArchiveManifest(
            entries=[
                {"name": "no-id.txt", "mediaType": "text/plain"},
                "not a mapping",
                {"id": "a", "name": "a.txt", "mediaType": "text/plain", "metadata": {}},
                {"id": "a", "name": "again.txt", "mediaType": "text/plain", "metadata": {}},
            ]
        )
        data = ArchiveDAO.build(manifest, {"a": b"a"})

        result = await ArchiveReader(other_store).import_container(data)

        assert result.imported == 1
        assert [w.record_id for w in result.warnings] == ["entry #0", "entry #1", "a"]

    async def test_non_mapping_metadata_is_skipped(self, other_store: RecordStore):
        """Test that an entry whose metadata isn't a mapping is skipped with a warning"""
        manifest = ArchiveManifest(
            entries=[
                {"id": "a", "name": "a.txt", "mediaType": "text/plain", "metadata": "oops"},
                {"id": "b", "name": "b.txt", "mediaType": "text/plain", "metadata": []},
            ]
        )
        data = ArchiveDAO.build(manifest, {"a": b"a", "b": b"b"})

        result = await ArchiveReader(other_store).import_container(data)

        assert result.imported == 0
        assert [w.record_id for w in result.warnings] == ["entry #0", "entry #1"]
        assert await other_store.count() == 0

    async def test_rejected_entry_blob_is_not_an_orphan(self, other_store: RecordStore):
        """Test that a malformed entry with a blob is reported once"""
        manifest = ArchiveManifest(
            entries=[
                {"id": "a", "name": 5, "mediaType": "text/plain"},
                {"id": "b", "name": "b.txt", "mediaType": "text/plain", "metadata": {}},
            ]
        )
        data = ArchiveDAO.build(manifest, {"a": b"a", "b": b"b"})

        result = await ArchiveReader(other_store).import_container(data)

        assert result.imported == 1
        assert [w.record_id for w in result.warnings] == ["entry #0"]

    async def test_orphan_blob_is_reported(self, other_store: RecordStore):
        """Test that a blob without a manifest entry is ignored with a warning"""
        data = _container(
            [ManifestEntry("a", "a.txt", "text/plain", {})],
            {"a": b"a", "stray": b"?"},
        )

        result = await ArchiveReader(other_store).import_container(data)

        assert result.imported == 1
        assert [w.record_id for w in result.warnings] == ["stray"]

    async def test_cancel_between_entries(self, other_store: RecordStore):
        """Test that cancelling keeps already imported entries committed"""
        entries = [ManifestEntry(str(i), f"{i}.txt", "text/plain", {}) for i in range(5)]
        data = _container(entries, {str(i): b"x" for i in range(5)})
        cancel = asyncio.Event()
        seen: list[tuple[int, int]] = []

        def progress(done: int, total: int) -> None:
            seen.append((done, total))
            if done == 2:
                cancel.set()

        result = await ArchiveReader(other_store).import_container(data, cancel, progress)

        assert result.cancelled
        assert result.imported == 2
        assert seen == [(1, 5), (2, 5)]
        assert await other_store.count() == 2

    @pytest.mark.parametrize(
        "data",
        [
            b"",
            b"garbage that is no container",
            ArchiveDAO.MAGIC + b"\x01\x00" + b"not zstd at all",
            ArchiveDAO.MAGIC + b"\x09\x00" + b"future version",
            b"PK\x03\x04 truncated zip",
        ],
    )
    async def test_unparsable_container_is_fatal(self, other_store: RecordStore, data: bytes):
        """Test that an unreadable container raises CorruptArchive"""
        with pytest.raises(CorruptArchive):
            _ = await ArchiveReader(other_store).import_container(data)

    async def test_missing_manifest_is_fatal(self, other_store: RecordStore):
        """Test that a container without manifest raises CorruptArchive"""
        tar_buffer = io.BytesIO()
        with tarfile.open(fileobj=tar_buffer, mode="w") as tar:
            ArchiveDAO._add_bytes_to_tar(tar, "files/a", b"a")
        data = ArchiveDAO.MAGIC + b"\x01\x00" + zstd.ZSTD_compress(tar_buffer.getvalue(), 3)

        with pytest.raises(CorruptArchive):
            _ = await ArchiveReader(other_store).import_container(data)

    async def test_unreadable_manifest_is_fatal(self, other_store: RecordStore):
        """Test that a manifest that is not a mapping raises CorruptArchive"""
        tar_buffer = io.BytesIO()
        with tarfile.open(fileobj=tar_buffer, mode="w") as tar:
            ArchiveDAO._add_bytes_to_tar(
                tar, "manifest.msgpack", msgpack.packb([1, 2, 3], use_bin_type=True)
            )
        data = ArchiveDAO.MAGIC + b"\x01\x00" + zstd.ZSTD_compress(tar_buffer.getvalue(), 3)

        with pytest.raises(CorruptArchive):
            _ = await ArchiveReader(other_store).import_container(data)
