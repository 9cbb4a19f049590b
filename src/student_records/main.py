"""
Entry point for the Student Record Management System.
This module wires the components and starts the console.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from .archive import ArchiveService
from .auth import AccountService, SessionManager
from .config import AppConfig, configure_logging
from .controller import RecordsController
from .persistence import CredentialRepository, StudentRepository
from .service import RecordService
from .view import ConsoleView

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="srms", description="Student Record Management System")
    parser.add_argument("--data-dir", help="directory of the data files (default: $SRMS_DATA_DIR or .)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR (default: $SRMS_LOG_LEVEL or WARNING)")
    return parser


def build_controller(config: AppConfig, view: Optional[ConsoleView] = None) -> RecordsController:
    """
    Creates all components for one config.
    - repositories for both files
    - services
    - controller
    """
    students = StudentRepository(config.student_file)
    credentials = CredentialRepository(config.credential_file)
    if credentials.ensure_defaults():
        log.info("First start: default accounts created")

    archive = ArchiveService(
        students,
        backup_path=config.backup_file,
        csv_path=config.csv_file,
        report_path=config.report_file,
    )
    return RecordsController(
        records=RecordService(students),
        archive=archive,
        accounts=AccountService(credentials),
        sessions=SessionManager(credentials),
        view=view or ConsoleView(),
    )


def main(argv: Optional[List[str]] = None) -> None:
    """
    Start of the application.
    Steps:
    - read arguments and config
    - set up logging
    - create the data directory and default accounts
    - start the controller
    """
    args = build_parser().parse_args(argv)
    config = AppConfig.load(data_dir=args.data_dir, log_level=args.log_level)
    configure_logging(config.log_level)

    try:
        config.ensure_data_dir()
        controller = build_controller(config)
        controller.start_app()

    except (KeyboardInterrupt, EOFError):
        # Clean exit with Ctrl+C or end of input.
        print("\nApplication closed.")
        sys.exit(0)

    except Exception as e:
        log.exception("Unexpected error")
        print(f"\nERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
