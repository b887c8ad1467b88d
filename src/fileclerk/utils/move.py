"""Utils to write a file safely, writing a temporary file and moving it with rename"""

import logging
import os
import tempfile
from pathlib import Path


def atomic_write(data: bytes, output_file: Path):
    """Write bytes atomically (writing a temporary copy and moving it using rename)"""
    output_file = Path(output_file)
    output_dir = output_file.parent
    output_dir.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(suffix=".tmp", dir=output_dir, delete=False) as f:
        filename = f.name
        logging.getLogger("Move").debug(
            "Writing %d bytes to %s through %s", len(data), output_file, filename
        )
        try:
            _ = f.write(data)
            f.flush()
            os.fsync(f.fileno())
        except (IOError, OSError) as e:
            logging.getLogger("Move").error("Error writing %s: %s", output_file, e)
            f.close()
            _unlink_quietly(filename)
            raise

    try:
        os.replace(filename, output_file)
    except (IOError, OSError) as e:
        logging.getLogger("Move").error("Error moving %s to %s: %s", filename, output_file, e)
        _unlink_quietly(filename)
        raise


def _unlink_quietly(filename: str):
    try:
        os.unlink(filename)
    except OSError:
        pass
