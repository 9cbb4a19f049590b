"""
Domain layer: entities + enums

This module only contains the business rules of the record store.
No file, console or login logic lives here.

- Entities are dataclasses.
- Total, percentage and grade are always computed from the marks and never stored.
- Roles are a closed enum. What a role may do is decided by ROLE_CAPABILITIES.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Sequence, Tuple

from .errors import ValidationError

SUBJECTS: Tuple[str, ...] = ("Math", "Science", "English")
MAX_MARK = 100.0
PASS_PERCENTAGE = 50.0
RECORD_DELIMITER = "|"

# Highest threshold first, first match wins.
GRADE_THRESHOLDS: Tuple[Tuple[float, str], ...] = (
    (90.0, "A+"),
    (80.0, "A"),
    (70.0, "B"),
    (60.0, "C"),
    (50.0, "D"),
)
FAIL_GRADE = "F"


def grade_for(percentage: float) -> str:
    """Maps a percentage to the letter grade."""
    for threshold, grade in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return grade
    return FAIL_GRADE


def validate_mark(mark: float) -> float:
    """
    Checks one mark.
    - must be a number
    - must be in 0..100
    - kept with two decimals, the precision of the student file
    """
    try:
        value = float(mark)
    except (TypeError, ValueError):
        raise ValidationError(f"Mark must be a number, got {mark!r}.") from None
    if not (0.0 <= value <= MAX_MARK):
        raise ValidationError(f"Marks must be 0-100, got {value:g}.")
    return round(value, 2)


def validate_name(name: str) -> str:
    """
    Checks a student name.
    The delimiter and line breaks would break the line format, so they are rejected.
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Invalid name.")
    if RECORD_DELIMITER in cleaned or "\n" in cleaned or "\r" in cleaned:
        raise ValidationError(f"Name must not contain '{RECORD_DELIMITER}' or line breaks.")
    return cleaned


class Role(Enum):
    """Roles of a login account."""
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    PRINCIPAL = "PRINCIPAL"
    STUDENT = "STUDENT"
    GUEST = "GUEST"

    @classmethod
    def parse(cls, raw: Optional[str], default: Optional["Role"] = None) -> Optional["Role"]:
        """
        Parses a role name.
        Case is ignored. If nothing matches, default is returned.
        """
        if raw is None:
            return default
        s = str(raw).strip().upper()
        if s in cls.__members__:
            return cls[s]
        return default


class Capability(Enum):
    """Operations that are gated by role."""
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    DELETE_ALL = "delete_all"
    DISPLAY = "display"
    SEARCH = "search"
    SORT = "sort"
    STATISTICS = "statistics"
    EXPORT = "export"
    BACKUP = "backup"
    RESTORE = "restore"
    MASK = "mask"
    MANAGE_CREDENTIALS = "manage_credentials"
    VIEW_OWN = "view_own"


_READ_ONLY = frozenset({Capability.DISPLAY, Capability.SEARCH, Capability.EXPORT, Capability.BACKUP})

ROLE_CAPABILITIES: Dict[Role, FrozenSet[Capability]] = {
    Role.ADMIN: frozenset(Capability),
    Role.STAFF: _READ_ONLY | {
        Capability.ADD,
        Capability.UPDATE,
        Capability.DELETE,
        Capability.SORT,
        Capability.STATISTICS,
        Capability.RESTORE,
    },
    Role.PRINCIPAL: _READ_ONLY | {Capability.STATISTICS},
    Role.GUEST: _READ_ONLY,
    Role.STUDENT: frozenset({Capability.VIEW_OWN}),
}


def role_can(role: Role, capability: Capability) -> bool:
    """True, if the role has the capability."""
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


class SortOrder(Enum):
    """The four sort orders of the record list."""
    ROLL_ASC = "roll_asc"
    ROLL_DESC = "roll_desc"
    NAME_ASC = "name_asc"
    TOTAL_DESC = "total_desc"


@dataclass(slots=True)
class Student:
    """
    A student record.
    - roll is the unique key (>= 1)
    - marks has one score per subject in SUBJECTS
    Total, percentage and grade are properties. They follow the marks at all times.
    """
    roll: int
    name: str
    marks: Tuple[float, ...]

    def __post_init__(self) -> None:
        """Checks the basic rules after creation."""
        if isinstance(self.roll, bool) or not isinstance(self.roll, int):
            raise ValidationError(f"Roll must be an integer, got {self.roll!r}.")
        if self.roll < 1:
            raise ValidationError(f"Roll must be >= 1, got {self.roll}.")
        self.name = validate_name(self.name)
        if len(self.marks) != len(SUBJECTS):
            raise ValidationError(
                f"Expected {len(SUBJECTS)} marks, got {len(self.marks)}."
            )
        self.marks = tuple(validate_mark(m) for m in self.marks)

    @property
    def total(self) -> float:
        """Sum of all marks."""
        return sum(self.marks)

    @property
    def percentage(self) -> float:
        """Total relative to the maximum (100 per subject)."""
        return self.total * 100.0 / (MAX_MARK * len(self.marks))

    @property
    def grade(self) -> str:
        """Letter grade from the percentage."""
        return grade_for(self.percentage)

    def is_passed(self) -> bool:
        return self.percentage >= PASS_PERCENTAGE

    def with_changes(
        self,
        name: Optional[str] = None,
        marks: Optional[Sequence[Optional[float]]] = None,
    ) -> "Student":
        """
        Returns an updated copy.
        - name None or blank: keep the name
        - marks: one entry per subject, None keeps the old mark
        """
        new_name = self.name if name is None or not name.strip() else name
        new_marks = list(self.marks)
        if marks is not None:
            if len(marks) != len(SUBJECTS):
                raise ValidationError(f"Expected {len(SUBJECTS)} marks, got {len(marks)}.")
            for i, m in enumerate(marks):
                if m is not None:
                    new_marks[i] = m
        return Student(roll=self.roll, name=new_name, marks=tuple(new_marks))


@dataclass(frozen=True, slots=True)
class Credential:
    """One login account. Username is unique and case-sensitive."""
    username: str
    password: str
    role: Role


@dataclass(frozen=True, slots=True)
class Statistics:
    """Aggregates over one snapshot."""
    count: int
    average_percentage: float
    highest: Student
    lowest: Student
    pass_count: int
    fail_count: int
