"""
Configuration sources and command line.
"""

from __future__ import annotations

from pathlib import Path

from student_records.config import AppConfig
from student_records.main import build_parser


def test_defaults() -> None:
    cfg = AppConfig.load(env={})
    assert cfg.data_dir == Path(".")
    assert cfg.log_level == "WARNING"
    assert cfg.student_file == Path(".") / "students.txt"
    assert cfg.credential_file.name == "credentials.txt"
    assert cfg.backup_file.name == "students_backup.txt"
    assert cfg.csv_file.name == "students.csv"
    assert cfg.report_file.name == "report.txt"


def test_environment_and_arguments(tmp_path: Path) -> None:
    env = {"SRMS_DATA_DIR": str(tmp_path / "env"), "SRMS_LOG_LEVEL": "debug"}
    cfg = AppConfig.load(env=env)
    assert cfg.data_dir == tmp_path / "env"
    assert cfg.log_level == "DEBUG"

    cfg = AppConfig.load(data_dir=str(tmp_path / "cli"), log_level="info", env=env)
    assert cfg.data_dir == tmp_path / "cli"
    assert cfg.log_level == "INFO"


def test_unknown_log_level_falls_back() -> None:
    assert AppConfig.load(log_level="chatty", env={}).log_level == "WARNING"


def test_ensure_data_dir(tmp_path: Path) -> None:
    cfg = AppConfig(data_dir=tmp_path / "a" / "b")
    cfg.ensure_data_dir()
    assert cfg.data_dir.is_dir()


def test_parser() -> None:
    args = build_parser().parse_args(["--data-dir", "x", "--log-level", "INFO"])
    assert args.data_dir == "x"
    assert args.log_level == "INFO"
