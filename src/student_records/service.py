"""
Application/Use-Case layer

QueryService works on snapshots only (lists of Student). It never touches a file.
RecordService is the entry point for the console. Each method:
- checks the role of the session first
- reads a fresh snapshot from the store
- writes changes back through append/overwrite
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from .auth import Session, authorize
from .domain import Capability, SortOrder, Statistics, Student
from .errors import NotFoundError, ValidationError
from .persistence import StudentStore

log = logging.getLogger(__name__)


class QueryService:
    """
    Search, sort and statistics over one snapshot.
    """

    def search_by_name(self, snapshot: Sequence[Student], text: str) -> List[Student]:
        """Case-insensitive substring match. Empty text matches everything."""
        needle = (text or "").strip().casefold()
        return [s for s in snapshot if needle in s.name.casefold()]

    def search_by_roll(self, snapshot: Sequence[Student], roll: int) -> Optional[Student]:
        """First record with this roll, or None."""
        for s in snapshot:
            if s.roll == roll:
                return s
        return None

    def search_by_percentage(self, snapshot: Sequence[Student], lo: float, hi: float) -> List[Student]:
        """Records with lo <= percentage <= hi."""
        return [s for s in snapshot if lo <= s.percentage <= hi]

    def search_by_grade(self, snapshot: Sequence[Student], grade: str) -> List[Student]:
        """Exact grade match, case ignored."""
        wanted = (grade or "").strip().upper()
        return [s for s in snapshot if s.grade.upper() == wanted]

    def sort(self, snapshot: Sequence[Student], order: SortOrder) -> List[Student]:
        """
        Returns a sorted copy.
        Python's sort is stable, equal keys keep the snapshot order.
        """
        if order is SortOrder.ROLL_ASC:
            return sorted(snapshot, key=lambda s: s.roll)
        if order is SortOrder.ROLL_DESC:
            return sorted(snapshot, key=lambda s: s.roll, reverse=True)
        if order is SortOrder.NAME_ASC:
            return sorted(snapshot, key=lambda s: s.name.casefold())
        if order is SortOrder.TOTAL_DESC:
            return sorted(snapshot, key=lambda s: -s.total)
        raise ValidationError(f"Unknown sort order: {order!r}")

    def statistics(self, snapshot: Sequence[Student]) -> Optional[Statistics]:
        """
        Aggregates over the snapshot. None, if it is empty.
        - highest/lowest: strict > and <, the first record wins a tie
        - pass: percentage >= 50
        """
        if not snapshot:
            return None

        highest = lowest = snapshot[0]
        total = 0.0
        passed = 0
        for s in snapshot:
            total += s.percentage
            if s.percentage > highest.percentage:
                highest = s
            if s.percentage < lowest.percentage:
                lowest = s
            if s.is_passed():
                passed += 1

        return Statistics(
            count=len(snapshot),
            average_percentage=total / len(snapshot),
            highest=highest,
            lowest=lowest,
            pass_count=passed,
            fail_count=len(snapshot) - passed,
        )

    def find_own_record(self, snapshot: Sequence[Student], username: str) -> Optional[Student]:
        """
        Record of a STUDENT login.
        - username only digits: compared with the roll
        - otherwise: compared with the name, case ignored
        """
        ident = (username or "").strip()
        if ident.isdigit():
            return self.search_by_roll(snapshot, int(ident))
        wanted = ident.casefold()
        for s in snapshot:
            if s.name.casefold() == wanted:
                return s
        return None


class RecordService:
    """
    Gated use cases on the student file.
    The session is passed in explicitly. There is no global login state.
    """

    def __init__(self, store: StudentStore, query: Optional[QueryService] = None) -> None:
        self._store = store
        self._query = query or QueryService()

    def list_students(self, session: Session) -> List[Student]:
        authorize(session, Capability.DISPLAY)
        return self._store.read_all()

    def add_student(self, session: Session, student: Student) -> Student:
        """Adds a record. The roll must not exist yet."""
        authorize(session, Capability.ADD)
        if self._store.exists(student.roll):
            raise ValidationError("Roll number already exists!")
        self._store.append(student)
        log.info("Student %d added by %s", student.roll, session.username)
        return student

    def roll_exists(self, session: Session, roll: int) -> bool:
        """Early duplicate check for the console, before the rest is asked."""
        authorize(session, Capability.ADD)
        return self._store.exists(roll)

    def get_student(self, session: Session, roll: int) -> Student:
        authorize(session, Capability.SEARCH)
        found = self._query.search_by_roll(self._store.read_all(), roll)
        if found is None:
            raise NotFoundError("Roll not found.")
        return found

    def search_by_name(self, session: Session, text: str) -> List[Student]:
        authorize(session, Capability.SEARCH)
        return self._query.search_by_name(self._store.read_all(), text)

    def search_by_roll(self, session: Session, roll: int) -> Optional[Student]:
        authorize(session, Capability.SEARCH)
        return self._query.search_by_roll(self._store.read_all(), roll)

    def search_by_percentage(self, session: Session, lo: float, hi: float) -> List[Student]:
        authorize(session, Capability.SEARCH)
        return self._query.search_by_percentage(self._store.read_all(), lo, hi)

    def search_by_grade(self, session: Session, grade: str) -> List[Student]:
        authorize(session, Capability.SEARCH)
        return self._query.search_by_grade(self._store.read_all(), grade)

    def update_student(
        self,
        session: Session,
        roll: int,
        name: Optional[str] = None,
        marks: Optional[Sequence[Optional[float]]] = None,
    ) -> Student:
        """
        Changes name and/or marks of one record.
        The rest of the file keeps its order.
        """
        authorize(session, Capability.UPDATE)
        snapshot = self._store.read_all()
        for i, s in enumerate(snapshot):
            if s.roll == roll:
                snapshot[i] = s.with_changes(name=name, marks=marks)
                self._store.overwrite(snapshot)
                log.info("Student %d updated by %s", roll, session.username)
                return snapshot[i]
        raise NotFoundError("Roll not found.")

    def delete_student(self, session: Session, roll: int) -> Student:
        """Removes the first record with this roll."""
        authorize(session, Capability.DELETE)
        snapshot = self._store.read_all()
        for i, s in enumerate(snapshot):
            if s.roll == roll:
                del snapshot[i]
                self._store.overwrite(snapshot)
                log.info("Student %d deleted by %s", roll, session.username)
                return s
        raise NotFoundError("Roll not found.")

    def delete_all(self, session: Session) -> None:
        """Empties the student file."""
        authorize(session, Capability.DELETE_ALL)
        self._store.overwrite([])
        log.info("All students deleted by %s", session.username)

    def sorted_students(self, session: Session, order: SortOrder) -> List[Student]:
        """Sorted snapshot. Nothing is written."""
        authorize(session, Capability.SORT)
        return self._query.sort(self._store.read_all(), order)

    def save_order(self, session: Session, students: Iterable[Student]) -> None:
        """Writes an already sorted snapshot back to the file."""
        authorize(session, Capability.SORT)
        self._store.overwrite(students)
        log.info("Sorted order saved by %s", session.username)

    def statistics(self, session: Session) -> Optional[Statistics]:
        authorize(session, Capability.STATISTICS)
        return self._query.statistics(self._store.read_all())

    def own_record(self, session: Session) -> Optional[Student]:
        """The record that belongs to the logged-in student."""
        authorize(session, Capability.VIEW_OWN)
        return self._query.find_own_record(self._store.read_all(), session.username)
