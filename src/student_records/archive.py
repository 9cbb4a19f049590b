"""
Export, backup, restore and mask toggle

- export: CSV table and text report from the same snapshot, both or neither
- backup/restore: byte copy of the student file to and from the backup path
- toggle_mask: XOR of every byte with a one-character key

The mask is NOT encryption. It only hides the text from a casual look and is
reversed by applying the same key again.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from .auth import Session, authorize
from .domain import Capability, SUBJECTS, Student
from .errors import NotFoundError, StorageError, ValidationError
from .persistence import FileStorage, StudentRepository

log = logging.getLogger(__name__)

MASK_CHUNK_SIZE = 4096
REPORT_SEPARATOR = "-----------------"


def xor_file(path: Path, key: int, chunk_size: int = MASK_CHUNK_SIZE) -> int:
    """
    XORs a file in place, chunk by chunk.
    After reading a chunk the position is set back to its start, the masked
    bytes are written over it and reading goes on after them.
    Returns the number of bytes changed.
    """
    changed = 0
    with open(path, "r+b") as f:
        pos = 0
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            f.seek(pos)
            f.write(bytes(b ^ key for b in chunk))
            pos = f.tell()
            f.seek(pos)
            changed += len(chunk)
    return changed


class ArchiveService:
    """
    File-level operations around the student file.
    Every method checks the session first.
    """

    def __init__(
        self,
        students: StudentRepository,
        backup_path: Path,
        csv_path: Path,
        report_path: Path,
        storage: Optional[FileStorage] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._students = students
        self._backup_path = Path(backup_path)
        self._csv_path = Path(csv_path)
        self._report_path = Path(report_path)
        self._storage = storage or FileStorage()
        self._clock = clock

    def export(self, session: Session) -> Tuple[Path, Path]:
        """
        Writes the CSV file and the report.
        Both files are staged first. If one can not be written, none is changed.
        """
        authorize(session, Capability.EXPORT)
        snapshot = self._students.read_all()
        if not snapshot:
            raise NotFoundError("No records to export.")

        self._storage.write_many({
            self._csv_path: self.build_csv(snapshot),
            self._report_path: self.build_report(snapshot, self._clock()),
        })
        log.info("Exported %d records to %s and %s", len(snapshot), self._csv_path, self._report_path)
        return self._csv_path, self._report_path

    def backup(self, session: Session) -> Path:
        """Copies the student file to the backup path."""
        authorize(session, Capability.BACKUP)
        try:
            self._storage.copy(self._students.path, self._backup_path)
        except FileNotFoundError:
            raise NotFoundError("No data to backup.") from None
        log.info("Backup saved to %s", self._backup_path)
        return self._backup_path

    def restore(self, session: Session) -> Path:
        """
        Copies the backup over the student file.
        The console asks for confirmation before calling this.
        """
        authorize(session, Capability.RESTORE)
        try:
            self._storage.copy(self._backup_path, self._students.path)
        except FileNotFoundError:
            raise NotFoundError("Backup file not found.") from None
        log.info("Restored %s from %s", self._students.path, self._backup_path)
        return self._students.path

    def toggle_mask(self, session: Session, key: str) -> int:
        """
        Masks or unmasks the student file with a single-character key.
        This is a reversible XOR, not a secure encryption.
        Returns the number of bytes changed.
        """
        authorize(session, Capability.MASK)
        if not key or len(key) != 1 or ord(key) > 0xFF:
            raise ValidationError("Key must be a single character.")
        if ord(key) == 0:
            raise ValidationError("Key must not be the zero byte, it would not change the file.")

        path = self._students.path
        if not path.exists():
            raise NotFoundError("No student file to mask.")
        try:
            changed = xor_file(path, ord(key))
        except OSError as e:
            raise StorageError(f"Could not mask {path}: {e}") from e
        log.info("XOR mask toggled on %s (%d bytes)", path, changed)
        return changed

    def build_csv(self, snapshot: Sequence[Student]) -> str:
        """CSV with header. Names are quoted, numbers have two decimals."""
        lines: List[str] = [",".join(["Roll", "Name", *SUBJECTS, "Total", "Percentage", "Grade"])]
        for s in snapshot:
            name = '"' + s.name.replace('"', '""') + '"'
            fields = [str(s.roll), name]
            fields.extend(f"{m:.2f}" for m in s.marks)
            fields.extend([f"{s.total:.2f}", f"{s.percentage:.2f}", s.grade])
            lines.append(",".join(fields))
        return "\n".join(lines) + "\n"

    def build_report(self, snapshot: Sequence[Student], generated: datetime) -> str:
        """Plain text report, one block per student."""
        out: List[str] = [f"Student Report Generated on {generated.strftime('%a %b %d %H:%M:%S %Y')}", ""]
        for s in snapshot:
            out.append(f"Roll: {s.roll}")
            out.append(f"Name: {s.name}")
            for subject, mark in zip(SUBJECTS, s.marks):
                out.append(f"{subject}: {mark:.2f}")
            out.append(f"Total: {s.total:.2f}")
            out.append(f"Percentage: {s.percentage:.2f}")
            out.append(f"Grade: {s.grade}")
            out.append(REPORT_SEPARATOR)
        return "\n".join(out) + "\n"
