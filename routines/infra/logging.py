from __future__ import annotations

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from zoneinfo import ZoneInfo

from routines.config import SETTINGS, PROJECT_ROOT, Settings


class OperatingTimeFormatter(logging.Formatter):
    """Stamps records in the operating timezone instead of the host's."""

    def __init__(self, fmt: str, datefmt: str, timezone: ZoneInfo) -> None:
        super().__init__(fmt, datefmt)
        self._tz = timezone

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        moment = datetime.fromtimestamp(record.created, self._tz)
        return moment.strftime(datefmt or "%Y-%m-%d %H:%M:%S%z")


def build_formatter(settings: Settings) -> logging.Formatter:
    return OperatingTimeFormatter(
        f"%(asctime)s {settings.service_name} %(levelname)s %(name)s %(message)s",
        "%Y-%m-%d %H:%M:%S%z",
        ZoneInfo(settings.operating_timezone),
    )


def log_file_path(settings: Settings) -> Path:
    return PROJECT_ROOT / settings.log_dir / f"{settings.service_name}.log"


def setup_logging(settings: Settings = SETTINGS) -> None:
    log_file = log_file_path(settings)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    formatter = build_formatter(settings)

    file_handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=settings.log_level.upper(),
        handlers=[file_handler, console_handler],
    )
