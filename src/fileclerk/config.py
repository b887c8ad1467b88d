"""
Contains the configuration options for the File Clerk store
"""

import json
import logging
import os
from enum import Enum
from pathlib import Path

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

USERPROFILE: Path = Path(os.getenv("userprofile", os.getenv("HOME", "")))
BASE_FOLDER: Path = (USERPROFILE / ".fileclerk").resolve()
SETTINGS_FILE_PATH: Path = BASE_FOLDER / "config.json"


class Settings(BaseSettings):
    """Settings class for the File Clerk store"""

    model_config = SettingsConfigDict(env_prefix="FILECLERK_")

    DATA_DIR_PATH: Path = BASE_FOLDER / "data"
    STORE_FILE_PATH: Path = DATA_DIR_PATH / "records.sqlite3"
    LOGGING_DIR_PATH: Path = DATA_DIR_PATH / "logging"

    # Codec
    CHUNK_SIZE: int = 14000  # in payload characters

    # Archive
    ARCHIVE_FORMAT: str = "archive"  # "archive" or "zip"
    ARCHIVE_COMPRESSION_LEVEL: int = 3
    SNIFF_MEDIA_TYPES: bool = False

    STORE_TIMEOUT: float = 5.0  # in seconds

    class SERIALIZATION_KEYS(Enum):
        """Value used as the keys for the serialization"""

        ID = "id"
        NAME = "name"
        PAYLOAD = "payload"
        METADATA = "metadata"
        MEDIA_TYPE = "mediaType"
        VERSION = "ver"
        CREATED_AT = "created"
        ENTRIES = "entries"
        CHUNK_INDEX = "index"
        CHUNK_DATA = "data"

    @classmethod
    def load_from_file(cls, path: Path) -> "Settings":
        """Loads settings from a JSON file."""
        if not path.exists():
            return cls()  # Return default

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            logging.getLogger("Config").error("Error loading settings: %s", e)
            return cls()  # Return defaults

    def save_to_file(self, path: Path):
        """Saves settings to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(path, "w", encoding="utf-8") as f:
                _ = f.write(self.model_dump_json(indent=2))
        except (FileNotFoundError, OSError, IOError) as e:
            logging.getLogger("Config").error("Error saving settings: %s", e)


settings = Settings.load_from_file(Path(SETTINGS_FILE_PATH))
