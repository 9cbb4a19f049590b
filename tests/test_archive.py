"""
Export, backup, restore and XOR mask.
"""

from __future__ import annotations

from datetime import datetime

import pytest

from student_records.archive import ArchiveService, xor_file
from student_records.domain import Role, Student
from student_records.errors import NotFoundError, PermissionDenied, StorageError, ValidationError


def _fixed_clock() -> datetime:
    return datetime(2024, 3, 5, 14, 30, 0)


def test_export_writes_csv_and_report(config, students, admin) -> None:
    students.overwrite([
        Student(roll=1, name='Alice "Al" Smith', marks=(90, 85, 95)),
        Student(roll=2, name="Bob", marks=(40, 50, 60)),
    ])
    archive = ArchiveService(
        students,
        backup_path=config.backup_file,
        csv_path=config.csv_file,
        report_path=config.report_file,
        clock=_fixed_clock,
    )

    csv_path, report_path = archive.export(admin)

    assert csv_path.read_text(encoding="utf-8").splitlines() == [
        "Roll,Name,Math,Science,English,Total,Percentage,Grade",
        '1,"Alice ""Al"" Smith",90.00,85.00,95.00,270.00,90.00,A+',
        '2,"Bob",40.00,50.00,60.00,150.00,50.00,D',
    ]
    report = report_path.read_text(encoding="utf-8").splitlines()
    assert report[0] == "Student Report Generated on Tue Mar 05 14:30:00 2024"
    assert "Roll: 2" in report
    assert "Science: 50.00" in report
    assert "Grade: A+" in report
    assert report.count("-----------------") == 2


def test_export_without_records(archive, admin) -> None:
    with pytest.raises(NotFoundError):
        archive.export(admin)


def test_export_is_all_or_nothing(config, students, admin) -> None:
    students.append(Student(roll=1, name="Alice", marks=(90, 85, 95)))
    archive = ArchiveService(
        students,
        backup_path=config.backup_file,
        csv_path=config.csv_file,
        report_path=config.data_dir / "missing-dir" / "report.txt",
    )
    with pytest.raises(StorageError):
        archive.export(admin)
    assert not config.csv_file.exists()
    assert sorted(p.name for p in config.data_dir.iterdir()) == ["students.txt"]


def test_backup_and_restore(archive, students, admin, config) -> None:
    students.append(Student(roll=1, name="Alice", marks=(90, 85, 95)))
    original = students.path.read_bytes()

    archive.backup(admin)
    assert config.backup_file.read_bytes() == original

    students.overwrite([])
    archive.restore(admin)
    assert students.path.read_bytes() == original
    assert students.read_all()[0].name == "Alice"


def test_backup_without_data(archive, admin) -> None:
    with pytest.raises(NotFoundError):
        archive.backup(admin)


def test_restore_without_backup(archive, students, admin) -> None:
    students.append(Student(roll=1, name="Alice", marks=(90, 85, 95)))
    before = students.path.read_bytes()
    with pytest.raises(NotFoundError):
        archive.restore(admin)
    assert students.path.read_bytes() == before


def test_restore_denied_for_guest(archive, students, session_for, config) -> None:
    students.append(Student(roll=1, name="Alice", marks=(90, 85, 95)))
    guest = session_for(Role.GUEST)
    archive.backup(guest)
    with pytest.raises(PermissionDenied):
        archive.restore(guest)


def test_mask_twice_restores_content(archive, students, admin) -> None:
    students.overwrite([Student(roll=i, name=f"Student {i}", marks=(i % 100, 50, 75)) for i in range(1, 400)])
    original = students.path.read_bytes()
    assert len(original) > 4096

    archive.toggle_mask(admin, "k")
    masked = students.path.read_bytes()
    assert masked != original
    assert len(masked) == len(original)
    assert students.read_all() == []

    archive.toggle_mask(admin, "k")
    assert students.path.read_bytes() == original


def test_xor_file_chunks(tmp_path) -> None:
    path = tmp_path / "blob.bin"
    data = bytes(range(256)) * 5
    path.write_bytes(data)
    assert xor_file(path, 0x2A, chunk_size=100) == len(data)
    assert path.read_bytes() == bytes(b ^ 0x2A for b in data)


def test_mask_checks(archive, students, admin, session_for) -> None:
    with pytest.raises(NotFoundError):
        archive.toggle_mask(admin, "k")
    students.append(Student(roll=1, name="Alice", marks=(90, 85, 95)))
    with pytest.raises(ValidationError):
        archive.toggle_mask(admin, "")
    with pytest.raises(ValidationError):
        archive.toggle_mask(admin, "ab")
    with pytest.raises(ValidationError):
        archive.toggle_mask(admin, "\x00")
    with pytest.raises(PermissionDenied):
        archive.toggle_mask(session_for(Role.STAFF), "k")
