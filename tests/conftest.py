"""
Pytest fixtures for the record store.

Every test gets its own data directory under tmp_path.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List

import pytest

from student_records.archive import ArchiveService
from student_records.auth import Session
from student_records.config import AppConfig
from student_records.domain import Role, Student
from student_records.persistence import CredentialRepository, StudentRepository
from student_records.service import RecordService


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    cfg = AppConfig(data_dir=tmp_path / "data")
    cfg.ensure_data_dir()
    return cfg


@pytest.fixture
def students(config: AppConfig) -> StudentRepository:
    return StudentRepository(config.student_file)


@pytest.fixture
def credentials(config: AppConfig) -> CredentialRepository:
    repo = CredentialRepository(config.credential_file)
    repo.ensure_defaults()
    return repo


@pytest.fixture
def records(students: StudentRepository) -> RecordService:
    return RecordService(students)


@pytest.fixture
def archive(config: AppConfig, students: StudentRepository) -> ArchiveService:
    return ArchiveService(
        students,
        backup_path=config.backup_file,
        csv_path=config.csv_file,
        report_path=config.report_file,
    )


@pytest.fixture
def session_for() -> Callable[[Role], Session]:
    def _make(role: Role, username: str = "") -> Session:
        return Session(username=username or role.value.lower(), role=role)
    return _make


@pytest.fixture
def admin(session_for) -> Session:
    return session_for(Role.ADMIN)


@pytest.fixture
def sample_students() -> List[Student]:
    return [
        Student(roll=3, name="Charlie", marks=(40, 40, 40)),
        Student(roll=1, name="alice", marks=(70, 70, 70)),
        Student(roll=2, name="Bob", marks=(70, 70, 70)),
    ]


class ScriptedView:
    """
    Stand-in for ConsoleView.
    Answers come from a list, every output line is collected.
    """

    def __init__(self, answers: List[str]) -> None:
        self._answers = list(answers)
        self.messages: List[str] = []
        self.tables: List[List[Student]] = []
        self.statistics = []

    def _next(self, question: str) -> str:
        if not self._answers:
            raise EOFError(f"No scripted answer for {question!r}")
        return self._answers.pop(0)

    def render_banner(self, session) -> None:
        pass

    def render_menu(self, title, entries) -> None:
        pass

    def prompt(self, question: str) -> str:
        return self._next(question)

    def prompt_secret(self, question: str) -> str:
        return self._next(question)

    def confirm(self, question: str) -> bool:
        return self._next(question).strip().lower().startswith("y")

    def show_message(self, text: str) -> None:
        self.messages.append(text)

    def render_students(self, students) -> None:
        self.tables.append(list(students))

    def render_statistics(self, stats) -> None:
        self.statistics.append(stats)


@pytest.fixture
def scripted_view() -> Callable[[List[str]], ScriptedView]:
    return ScriptedView
