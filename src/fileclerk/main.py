"""
Command line front end for the File Clerk store.

Maps argparse commands onto RecordStore, ArchiveWriter and ArchiveReader calls.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from fileclerk.config import settings
from fileclerk.errors import FileClerkError, MalformedPayload
from fileclerk.logger import configure_logging
from fileclerk.models.dao.archive_dao import ArchiveDAO
from fileclerk.models.dao.archive_reader import ArchiveReader
from fileclerk.models.dao.archive_writer import ArchiveWriter
from fileclerk.models.dao.record_store import RecordStore
from fileclerk.models.media_kind import MediaKind
from fileclerk.utils.codec import PayloadCodec
from fileclerk.utils.mime import MimeResolver
from fileclerk.viewer import render


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level CLI parser"""
    parser = argparse.ArgumentParser(
        prog="fileclerk", description="Store files locally and move them as archives"
    )
    parser.add_argument("--store", type=Path, help="Override the store database path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log to console")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add = subparsers.add_parser("add", help="Store a file")
    add.add_argument("path", type=Path)
    add.add_argument("--name", help="Name to store, defaults to the file name")
    add.add_argument("--type", dest="media_type", help="Media type, guessed if omitted")
    add.add_argument(
        "--meta", action="append", default=[], metavar="KEY=VALUE", help="Metadata entry"
    )

    _ = subparsers.add_parser("list", help="List stored files")

    show = subparsers.add_parser("show", help="Display a stored file")
    show.add_argument("record_id")

    get = subparsers.add_parser("get", help="Write a stored file back to disk")
    get.add_argument("record_id")
    get.add_argument("--out", type=Path, help="Output path, defaults to the stored name")

    delete = subparsers.add_parser("delete", help="Delete a stored file")
    delete.add_argument("record_id")

    export = subparsers.add_parser("export", help="Export the whole store")
    export.add_argument("path", type=Path)
    export.add_argument("--format", choices=ArchiveDAO.FORMATS, default=None)

    import_ = subparsers.add_parser("import", help="Import an archive")
    import_.add_argument("path", type=Path)
    import_.add_argument(
        "--strict", action="store_true", help="Fail if any file is missing from the archive"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return the process exit code"""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)
    try:
        return asyncio.run(_run(args))
    except (FileClerkError, OSError, ValueError) as e:
        logging.getLogger("Main").error("Command %s failed: %s", args.command, e)
        print(f"error: {e}", file=sys.stderr)
        return 1


async def _run(args: argparse.Namespace) -> int:
    async with RecordStore(args.store or settings.STORE_FILE_PATH) as store:
        handler = _COMMANDS[args.command]
        return await handler(store, args)


async def _add(store: RecordStore, args: argparse.Namespace) -> int:
    payload = await asyncio.to_thread(PayloadCodec.from_file, args.path, args.media_type)
    record_id = await store.create(args.name or args.path.name, payload, _parse_meta(args.meta))
    print(record_id)
    return 0


async def _list(store: RecordStore, _args: argparse.Namespace) -> int:
    for record in await store.list():
        try:
            media_type = PayloadCodec.media_type_of(record.payload)
        except MalformedPayload:
            media_type = "?"
        kind = MediaKind.for_media_type(media_type)
        print(f"{record.record_id}  {kind.value:<7}  {media_type:<24}  {record.name}")
    return 0


async def _show(store: RecordStore, args: argparse.Namespace) -> int:
    record = await store.read(args.record_id)
    print(render(record))
    return 0


async def _get(store: RecordStore, args: argparse.Namespace) -> int:
    record = await store.read(args.record_id)
    media_type, data = PayloadCodec.decode(record.payload)
    out = args.out or _default_output(record.record_id, record.name, media_type)
    _ = await asyncio.to_thread(out.write_bytes, data)
    print(out)
    return 0


async def _delete(store: RecordStore, args: argparse.Namespace) -> int:
    await store.delete(args.record_id)
    return 0


async def _export(store: RecordStore, args: argparse.Namespace) -> int:
    result = await ArchiveWriter(store, args.format).export_to_file(args.path)
    print(f"Exported {result.exported} files to {args.path}")
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    return 0


async def _import(store: RecordStore, args: argparse.Namespace) -> int:
    result = await ArchiveReader(store, strict=args.strict).import_file(args.path)
    print(f"Imported {result.imported} files from {args.path}")
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    for notice in result.unresolved:
        print(f"note: {notice}", file=sys.stderr)
    return 0


def _default_output(record_id: str, name: str, media_type: str) -> Path:
    """Bare file name in the working directory, never a path taken from the record name"""
    filename = Path(name.replace("\\", "/")).name
    if filename in ("", ".", ".."):
        filename = record_id + MimeResolver.extension_for(media_type)
    return Path(filename)


def _parse_meta(items: list[str]) -> dict[str, Any]:
    metadata: dict[str, Any] = {}
    for item in items:
        key, found, value = item.partition("=")
        if not found or not key:
            raise FileClerkError(f"Metadata must be KEY=VALUE, got {item!r}")
        metadata[key] = value
    return metadata


_COMMANDS = {
    "add": _add,
    "list": _list,
    "show": _show,
    "get": _get,
    "delete": _delete,
    "export": _export,
    "import": _import,
}


if __name__ == "__main__":
    sys.exit(main())
