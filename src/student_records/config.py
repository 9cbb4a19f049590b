"""
Configuration

Paths of the data files and the log level.
Order: defaults < environment (SRMS_DATA_DIR, SRMS_LOG_LEVEL) < command line.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

STUDENT_FILE = "students.txt"
CREDENTIAL_FILE = "credentials.txt"
BACKUP_FILE = "students_backup.txt"
REPORT_FILE = "report.txt"
CSV_FILE = "students.csv"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Where the files live and how much is logged."""
    data_dir: Path
    log_level: str = "WARNING"

    @property
    def student_file(self) -> Path:
        return self.data_dir / STUDENT_FILE

    @property
    def credential_file(self) -> Path:
        return self.data_dir / CREDENTIAL_FILE

    @property
    def backup_file(self) -> Path:
        return self.data_dir / BACKUP_FILE

    @property
    def report_file(self) -> Path:
        return self.data_dir / REPORT_FILE

    @property
    def csv_file(self) -> Path:
        return self.data_dir / CSV_FILE

    @classmethod
    def load(
        cls,
        data_dir: Optional[str] = None,
        log_level: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> "AppConfig":
        """
        Builds the config.
        Arguments win over the environment, the environment wins over defaults.
        """
        env = os.environ if env is None else env
        raw_dir = data_dir or env.get("SRMS_DATA_DIR") or "."
        level = (log_level or env.get("SRMS_LOG_LEVEL") or "WARNING").strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            level = "WARNING"
        return cls(data_dir=Path(raw_dir).expanduser(), log_level=level)

    def ensure_data_dir(self) -> None:
        """Creates the data directory if it is missing."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str = "WARNING") -> None:
    """
    Sets up logging to stderr.
    Default is WARNING, so the menus stay readable.
    """
    logging.basicConfig(level=getattr(logging, level, logging.WARNING), format=LOG_FORMAT)
