"""
Persistence layer (flat files)

The records are kept in two plain text files. The domain stays free of file details.
- FileStorage: low-level file access (read, append, atomic replace, copy)
- StudentLineCodec: mapping between Student and one text line
- StudentRepository: the student file (read all, exists, append, overwrite)
- CredentialRepository: the credential file (authenticate, add, reset, remove)

Every whole-file rewrite goes to a temporary file first and is then renamed
over the target, so a crash leaves either the old or the new file.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

from .domain import Credential, RECORD_DELIMITER, Role, SUBJECTS, Student
from .errors import StorageError, ValidationError

log = logging.getLogger(__name__)

DEFAULT_CREDENTIALS = (
    ("admin", "admin", Role.ADMIN),
    ("staff", "staff", Role.STAFF),
    ("guest", "guest", Role.GUEST),
    ("principal", "principal", Role.PRINCIPAL),
    ("student", "student", Role.STUDENT),
)


class StudentStore(Protocol):
    """
    Interface for the student file.
    """
    def read_all(self) -> List[Student]:
        ...

    def exists(self, roll: int) -> bool:
        ...

    def append(self, student: Student) -> None:
        ...

    def overwrite(self, students: Iterable[Student]) -> None:
        ...


class FileStorage:
    """
    File handling for load and save.
    - UTF-8 is always used.
    - OSError is turned into StorageError, except a missing file on read.
    """

    def read_text(self, path: Path) -> str:
        """
        Reads a file as text.
        FileNotFoundError is passed on, callers decide what a missing file means.
        Undecodable bytes (e.g. a masked file) are replaced, the lines then fail to parse.
        """
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                return f.read()
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def append_text(self, path: Path, content: str) -> None:
        """Appends text at the end of a file. The file is created if missing."""
        try:
            with open(path, "a", encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as e:
            raise StorageError(f"Could not open {path} for writing: {e}") from e

    def write_text(self, path: Path, content: str) -> None:
        """
        Replaces a file with new text.
        Written to a temporary file in the same directory, then renamed.
        """
        self.write_many({path: content})

    def write_many(self, contents: Dict[Path, str]) -> None:
        """
        Replaces several files.
        All temporary files are written first. Only when every one was written
        they are renamed into place. If one fails, none of the targets change.
        """
        staged: Dict[Path, str] = {}
        try:
            for path, content in contents.items():
                staged[path] = self._stage(path, content)
        except OSError as e:
            self._discard(staged.values())
            raise StorageError(f"Could not write {path}: {e}") from e

        try:
            for path, tmp in staged.items():
                os.replace(tmp, path)
        except OSError as e:
            self._discard(staged.values())
            raise StorageError(f"Could not replace {path}: {e}") from e

    def copy(self, source: Path, target: Path) -> None:
        """
        Copies a file byte for byte.
        The target is replaced atomically.
        """
        if not source.exists():
            raise FileNotFoundError(source)
        staged: List[str] = []
        try:
            fd, tmp = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
            os.close(fd)
            staged.append(tmp)
            shutil.copyfile(source, tmp)
            os.replace(tmp, target)
        except OSError as e:
            self._discard(staged)
            raise StorageError(f"Could not copy {source} to {target}: {e}") from e

    def _stage(self, path: Path, content: str) -> str:
        """Writes content into a temporary file next to path."""
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError:
            self._discard([tmp])
            raise
        return tmp

    def _discard(self, paths: Iterable[str]) -> None:
        """Removes leftover temporary files."""
        for p in paths:
            try:
                os.unlink(p)
            except OSError:
                pass


class StudentLineCodec:
    """
    Student <-> line.
    Format: roll|name|mark1|mark2|mark3 with two decimals per mark.
    """

    def encode(self, student: Student) -> str:
        """Builds the line, without line break."""
        parts = [str(student.roll), student.name]
        parts.extend(f"{m:.2f}" for m in student.marks)
        return RECORD_DELIMITER.join(parts)

    def decode(self, line: str) -> Student:
        """
        Builds a Student from a line.
        - roll and name must be present, else ValueError
        - missing marks become 0.0
        - extra fields are ignored
        """
        tokens = line.rstrip("\r\n").split(RECORD_DELIMITER)
        if len(tokens) < 2 or not tokens[0].strip() or not tokens[1].strip():
            raise ValueError(f"Missing roll or name: {line!r}")

        roll = int(tokens[0].strip())
        marks = []
        for i in range(len(SUBJECTS)):
            raw = tokens[2 + i].strip() if len(tokens) > 2 + i else ""
            marks.append(float(raw) if raw else 0.0)

        return Student(roll=roll, name=tokens[1], marks=tuple(marks))


class StudentRepository:
    """
    Repository for the student file.
    - FileStorage for file access
    - StudentLineCodec for mapping
    Uniqueness of rolls is checked by the caller, not here.
    """

    def __init__(
        self,
        path: Path,
        storage: Optional[FileStorage] = None,
        codec: Optional[StudentLineCodec] = None,
    ) -> None:
        self._path = Path(path)
        self._storage = storage or FileStorage()
        self._codec = codec or StudentLineCodec()

    @property
    def path(self) -> Path:
        return self._path

    def read_all(self) -> List[Student]:
        """
        Reads every record in file order.
        Broken lines are skipped. A missing file gives an empty list.
        """
        try:
            raw = self._storage.read_text(self._path)
        except FileNotFoundError:
            return []

        students: List[Student] = []
        for number, line in enumerate(raw.split("\n"), 1):
            if not line.strip():
                continue
            try:
                students.append(self._codec.decode(line))
            except ValueError as e:
                log.debug("Skipping line %d of %s: %s", number, self._path, e)
        return students

    def exists(self, roll: int) -> bool:
        """True, if a record with this roll is in the file."""
        return roll in self.index_by_roll()

    def index_by_roll(self) -> Dict[int, Student]:
        """Fresh lookup table roll -> Student. The first record of a roll wins."""
        index: Dict[int, Student] = {}
        for s in self.read_all():
            index.setdefault(s.roll, s)
        return index

    def append(self, student: Student) -> None:
        """Writes one record at the end of the file."""
        self._storage.append_text(self._path, self._codec.encode(student) + "\n")

    def overwrite(self, students: Iterable[Student]) -> None:
        """
        Replaces the whole file with the given records, in the given order.
        This is the only way to change or remove existing records.
        """
        lines = [self._codec.encode(s) + "\n" for s in students]
        self._storage.write_text(self._path, "".join(lines))


class CredentialRepository:
    """
    Repository for the credential file.
    One row per account: username password ROLE
    """

    def __init__(self, path: Path, storage: Optional[FileStorage] = None) -> None:
        self._path = Path(path)
        self._storage = storage or FileStorage()

    @property
    def path(self) -> Path:
        return self._path

    def ensure_defaults(self) -> bool:
        """
        Writes the default accounts (one per role) if the file does not exist.
        Returns True, if the file was created.
        """
        if self._path.exists():
            return False
        self._write([Credential(u, p, r) for u, p, r in DEFAULT_CREDENTIALS])
        log.info("Created default credentials in %s", self._path)
        return True

    def read_all(self) -> List[Credential]:
        """
        Reads all accounts.
        - Rows with less than three fields are skipped.
        - Unknown roles are read as GUEST.
        """
        try:
            raw = self._storage.read_text(self._path)
        except FileNotFoundError:
            return []

        rows: List[Credential] = []
        for line in raw.splitlines():
            fields = line.split()
            if len(fields) < 3:
                continue
            role = Role.parse(fields[2], Role.GUEST)
            rows.append(Credential(username=fields[0], password=fields[1], role=role))
        return rows

    def authenticate(self, username: str, password: str) -> Optional[Role]:
        """Role of the matching account, or None."""
        for c in self.read_all():
            if c.username == username and c.password == password:
                return c.role
        return None

    def add(self, username: str, password: str, role: str) -> Credential:
        """
        Adds an account.
        The role is upper-cased. Existing usernames are rejected.
        """
        username = self._check_token(username, "Username")
        password = self._check_token(password, "Password")
        parsed = Role.parse(role)
        if parsed is None:
            raise ValidationError(f"Unknown role: {role!r}.")

        rows = self.read_all()
        if any(c.username == username for c in rows):
            raise ValidationError(f"User '{username}' already exists.")

        credential = Credential(username=username, password=password, role=parsed)
        self._write(rows + [credential])
        return credential

    def reset_password(self, username: str, new_password: str) -> bool:
        """
        Sets a new password. All other rows stay as they are.
        False, if the user does not exist.
        """
        new_password = self._check_token(new_password, "Password")
        rows = self.read_all()
        found = False
        updated: List[Credential] = []
        for c in rows:
            if c.username == username:
                updated.append(Credential(c.username, new_password, c.role))
                found = True
            else:
                updated.append(c)
        if not found:
            return False
        self._write(updated)
        return True

    def remove(self, username: str) -> bool:
        """Removes an account. False, if the user does not exist."""
        rows = self.read_all()
        remaining = [c for c in rows if c.username != username]
        if len(remaining) == len(rows):
            return False
        self._write(remaining)
        return True

    def _write(self, rows: Iterable[Credential]) -> None:
        content = "".join(f"{c.username} {c.password} {c.role.value}\n" for c in rows)
        self._storage.write_text(self._path, content)

    def _check_token(self, value: str, label: str) -> str:
        """Usernames and passwords are single words in the file."""
        value = (value or "").strip()
        if not value:
            raise ValidationError(f"{label} must not be empty.")
        if any(ch.isspace() for ch in value):
            raise ValidationError(f"{label} must not contain spaces.")
        return value
