import datetime
import logging
from pathlib import Path
from typing import override


from fileclerk.config import settings


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> Path:
    """Log everything to a dated file, and warnings (or everything if verbose) to the console"""
    log_dir = log_dir or settings.LOGGING_DIR_PATH
    log_dir.mkdir(parents=True, exist_ok=True)
    now: str = datetime.datetime.now().strftime("%Y-%m-%d-%H-%M")
    log_file = log_dir / f"{now}.log"

    file_handler = logging.FileHandler(log_file, encoding="UTF-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - [%(name)s]- %(levelname)s - [%(module)s:%(lineno)d] - %(message)s"
        )
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(ConsoleFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    # Noisy in debug mode: selector and thread pool chatter
    for module in ("asyncio",):
        logging.getLogger(module).setLevel(logging.WARNING)

    return log_file


class ConsoleFormatter(logging.Formatter):
    """Colors console lines by level"""

    GREY: str = "\x1b[38;20m"
    YELLOW: str = "\x1b[33;20m"
    RED: str = "\x1b[31;20m"
    BOLD_RED: str = "\x1b[31;1m"
    RESET: str = "\x1b[0m"
    LINE_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    LEVEL_COLORS: dict[int, str] = {
        logging.DEBUG: GREY,
        logging.INFO: GREY,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def __init__(self):
        super().__init__(self.LINE_FORMAT)
        self._formatters: dict[int, logging.Formatter] = {
            level: logging.Formatter(color + self.LINE_FORMAT + self.RESET)
            for level, color in self.LEVEL_COLORS.items()
        }

    @override
    def format(self, record: logging.LogRecord) -> str:
        formatter = self._formatters.get(record.levelno)
        if formatter is None:
            return super().format(record)
        return formatter.format(record)
