"""
Controller layer

The RecordsController runs the console. It connects the services and the view.

Tasks:
- login loop with at most three attempts
- one numbered menu per role
- read input, call the gated services, show the result
The controller owns the only Session and passes it into every service call.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .archive import ArchiveService
from .auth import AccountService, Session, SessionManager, authorize
from .domain import Capability, Role, SUBJECTS, SortOrder, Student, validate_mark
from .errors import AuthenticationError, LoginAttemptsExceeded, RecordStoreError, ValidationError
from .service import RecordService
from .view import ConsoleView


LOGOUT = "logout"

# Role -> (title, [(label, action)]). The position is the menu number.
MENUS: Dict[Role, Tuple[str, List[Tuple[str, str]]]] = {
    Role.ADMIN: ("ADMIN MENU", [
        ("Add Student", "add"),
        ("Display All", "display"),
        ("Search", "search"),
        ("Update", "update"),
        ("Delete", "delete"),
        ("Delete All (Reset)", "delete_all"),
        ("Sorting", "sort"),
        ("Statistics", "statistics"),
        ("Manage Credentials", "credentials"),
        ("Reports/Backup", "reports"),
        ("Logout", LOGOUT),
    ]),
    Role.STAFF: ("STAFF MENU", [
        ("Display All", "display"),
        ("Search", "search"),
        ("Add Student", "add"),
        ("Update Student", "update"),
        ("Delete Student", "delete"),
        ("Sorting", "sort"),
        ("Statistics", "statistics"),
        ("Reports/Backup", "reports"),
        ("Logout", LOGOUT),
    ]),
    Role.PRINCIPAL: ("PRINCIPAL MENU", [
        ("Display All", "display"),
        ("Search", "search"),
        ("Statistics", "statistics"),
        ("Reports/Backup", "reports"),
        ("Logout", LOGOUT),
    ]),
    Role.GUEST: ("GUEST MENU", [
        ("Display All", "display"),
        ("Search", "search"),
        ("Reports/Backup", "reports"),
        ("Logout", LOGOUT),
    ]),
    Role.STUDENT: ("STUDENT MENU", [
        ("View My Record", "view_own"),
        ("Logout", LOGOUT),
    ]),
}

SEARCH_MENU = ["Name (partial)", "Roll No", "Percentage Range", "Grade"]
SORT_MENU: List[Tuple[str, SortOrder]] = [
    ("Roll Asc", SortOrder.ROLL_ASC),
    ("Roll Desc", SortOrder.ROLL_DESC),
    ("Name", SortOrder.NAME_ASC),
    ("Total Marks Desc", SortOrder.TOTAL_DESC),
]
CREDENTIAL_MENU = ["Add User", "Reset Password", "Remove User"]
REPORTS_MENU = ["Export (CSV & Report)", "Backup", "Restore", "Toggle Mask (ADMIN only)", "Back"]


class RecordsController:
    """
    Main controller.

    - login and logout
    - menu loop per role
    - one handler per menu action (_do_<action>)
    """

    def __init__(
        self,
        records: RecordService,
        archive: ArchiveService,
        accounts: AccountService,
        sessions: SessionManager,
        view: ConsoleView,
    ) -> None:
        self._records = records
        self._archive = archive
        self._accounts = accounts
        self._sessions = sessions
        self._view = view

    def start_app(self) -> None:
        """
        Starts the application.

        - login
        - menu of the role until logout
        - ask whether somebody else wants to log in
        """
        while True:
            session = self.login()
            if session is None:
                self._view.show_message("Exiting...")
                return

            self.run_menu(session)

            if not self._view.confirm("Log in as another user?"):
                break

        self._view.show_message("Goodbye.")

    def login(self) -> Optional[Session]:
        """
        Asks for username and password.
        None after three failed attempts.
        """
        self._sessions.begin_login()
        while True:
            self._view.render_banner(None)
            username = self._view.prompt("Username: ").strip()
            password = self._view.prompt_secret("Password: ")
            try:
                session = self._sessions.attempt(username, password)
            except LoginAttemptsExceeded as e:
                self._view.show_message(str(e))
                return None
            except AuthenticationError as e:
                self._view.show_message(str(e))
                continue

            self._view.show_message(f"Login successful. Welcome {session.username} [{session.role.value}]")
            return session

    def run_menu(self, session: Session) -> None:
        """
        Menu loop for the role of the session.
        Ends with the logout entry.
        """
        title, entries = MENUS[session.role]
        while True:
            self._view.render_banner(session)
            index = self._choose(title, [label for label, _ in entries], "Choose: ")
            if index is None:
                continue

            action = entries[index][1]
            if action == LOGOUT:
                self._sessions.logout()
                self._view.show_message("Logging out...")
                return

            handler: Callable[[Session], None] = getattr(self, f"_do_{action}")
            self._run(handler, session)

    def _run(self, handler: Callable[[Session], None], session: Session) -> None:
        """Runs one action. Expected errors are shown, the menu goes on."""
        try:
            handler(session)
        except RecordStoreError as e:
            self._view.show_message(str(e))

    # --- student records ---

    def _do_add(self, session: Session) -> None:
        """Asks for a new record and appends it."""
        authorize(session, Capability.ADD)
        roll = self._prompt_roll("Enter Roll Number: ")
        if self._records.roll_exists(session, roll):
            self._view.show_message("Roll number already exists!")
            return

        name = self._view.prompt("Enter Name: ")
        marks = [
            self._prompt_mark(f"Enter marks for {subject} (0-100): ")
            for subject in SUBJECTS
        ]
        student = Student(roll=roll, name=name, marks=tuple(marks))
        self._records.add_student(session, student)
        self._view.show_message(
            f"Student added successfully! ({student.percentage:.2f}%, grade {student.grade})"
        )

    def _do_display(self, session: Session) -> None:
        self._view.render_students(self._records.list_students(session))

    def _do_search(self, session: Session) -> None:
        """Search by name, roll, percentage range or grade."""
        authorize(session, Capability.SEARCH)
        index = self._choose("SEARCH BY", SEARCH_MENU, "Enter choice: ")
        if index is None:
            return

        if index == 0:
            text = self._view.prompt("Enter name or partial: ")
            found = self._records.search_by_name(session, text)
        elif index == 1:
            roll = self._prompt_roll("Enter roll: ")
            hit = self._records.search_by_roll(session, roll)
            found = [hit] if hit is not None else []
        elif index == 2:
            lo = self._prompt_float("Enter lower bound of percentage: ")
            hi = self._prompt_float("Enter upper bound of percentage: ")
            found = self._records.search_by_percentage(session, lo, hi)
        else:
            grade = self._view.prompt("Enter grade to search (A+, A, B, C, D, F): ")
            found = self._records.search_by_grade(session, grade)

        if found:
            self._view.render_students(found)
        else:
            self._view.show_message("No matching records found.")

    def _do_update(self, session: Session) -> None:
        """
        Changes one record.
        Blank input keeps the old value.
        """
        authorize(session, Capability.UPDATE)
        roll = self._prompt_roll("Enter roll to update: ")
        current = self._records.get_student(session, roll)

        name = self._view.prompt(f"Current name: {current.name}\nNew name (blank to keep): ")
        marks: List[Optional[float]] = []
        for subject, mark in zip(SUBJECTS, current.marks):
            raw = self._view.prompt(f"Current {subject}: {mark:.2f}\nNew {subject} (blank to keep): ").strip()
            marks.append(validate_mark(raw) if raw else None)

        updated = self._records.update_student(session, roll, name=name, marks=marks)
        self._view.show_message(f"Record updated. ({updated.percentage:.2f}%, grade {updated.grade})")

    def _do_delete(self, session: Session) -> None:
        authorize(session, Capability.DELETE)
        roll = self._prompt_roll("Enter roll to delete: ")
        self._records.delete_student(session, roll)
        self._view.show_message("Deleted successfully.")

    def _do_delete_all(self, session: Session) -> None:
        authorize(session, Capability.DELETE_ALL)
        if not self._view.confirm("Are you sure you want to DELETE ALL STUDENT RECORDS?"):
            self._view.show_message("Operation cancelled.")
            return
        self._records.delete_all(session)
        self._view.show_message("All records deleted.")

    def _do_sort(self, session: Session) -> None:
        """Shows a sorted list. Saving the order is asked separately."""
        authorize(session, Capability.SORT)
        index = self._choose("SORT BY", [label for label, _ in SORT_MENU], "Enter choice: ")
        if index is None:
            return

        students = self._records.sorted_students(session, SORT_MENU[index][1])
        if not students:
            self._view.show_message("No records to sort.")
            return

        self._view.render_students(students)
        if self._view.confirm("Save sorted order to file?"):
            self._records.save_order(session, students)
            self._view.show_message("Saved.")

    def _do_statistics(self, session: Session) -> None:
        stats = self._records.statistics(session)
        if stats is None:
            self._view.show_message("No records.")
            return
        self._view.render_statistics(stats)

    def _do_view_own(self, session: Session) -> None:
        record = self._records.own_record(session)
        if record is None:
            self._view.show_message("No record found for you.")
            return
        self._view.render_students([record])

    # --- accounts ---

    def _do_credentials(self, session: Session) -> None:
        """Add user, reset password or remove user."""
        authorize(session, Capability.MANAGE_CREDENTIALS)
        index = self._choose("CREDENTIALS MANAGER", CREDENTIAL_MENU, "Enter choice: ")
        if index is None:
            return

        if index == 0:
            username = self._view.prompt("Username: ")
            password = self._view.prompt_secret("Password: ")
            role = self._view.prompt("Role (ADMIN/STAFF/PRINCIPAL/STUDENT/GUEST): ")
            self._accounts.add_user(session, username, password, role)
            self._view.show_message("User added.")
        elif index == 1:
            username = self._view.prompt("Username to reset: ")
            password = self._view.prompt_secret("New password: ")
            self._accounts.reset_password(session, username, password)
            self._view.show_message("Password reset.")
        else:
            username = self._view.prompt("Username to remove: ")
            self._accounts.remove_user(session, username)
            self._view.show_message("User removed.")

    # --- reports & backup ---

    def _do_reports(self, session: Session) -> None:
        """Export, backup, restore, mask toggle."""
        index = self._choose("REPORTS / BACKUP", REPORTS_MENU, "Enter choice: ")
        if index is None or index == 4:
            return

        if index == 0:
            csv_path, report_path = self._archive.export(session)
            self._view.show_message(f"Exported to {csv_path} and {report_path}")
        elif index == 1:
            path = self._archive.backup(session)
            self._view.show_message(f"Backup saved to {path}")
        elif index == 2:
            authorize(session, Capability.RESTORE)
            if not self._view.confirm("Restore from backup? This will overwrite current records."):
                self._view.show_message("Restore cancelled.")
                return
            self._archive.restore(session)
            self._view.show_message("Restore complete.")
        else:
            self._toggle_mask(session)

    def _toggle_mask(self, session: Session) -> None:
        authorize(session, Capability.MASK)
        self._view.show_message(
            "Note: this is a reversible XOR mask, not a secure encryption."
        )
        if not self._view.confirm("Apply the XOR mask to the student file?"):
            self._view.show_message("Cancelled.")
            return
        key = self._view.prompt("Enter single character key: ")
        self._archive.toggle_mask(session, key[:1])
        self._view.show_message(f"XOR applied with key '{key[:1]}'. (Run again with same key to undo)")

    # --- input helpers ---

    def _choose(self, title: str, entries: Sequence[str], question: str) -> Optional[int]:
        """
        Shows a menu and reads the number.
        Returns the 0-based index, or None for invalid input.
        """
        self._view.render_menu(title, entries)
        raw = self._view.prompt(question).strip()
        try:
            choice = int(raw)
        except ValueError:
            self._view.show_message("Invalid choice.")
            return None
        if not (1 <= choice <= len(entries)):
            self._view.show_message("Invalid choice.")
            return None
        return choice - 1

    def _prompt_roll(self, question: str) -> int:
        raw = self._view.prompt(question).strip()
        try:
            roll = int(raw)
        except ValueError:
            raise ValidationError("Invalid roll.") from None
        if roll < 1:
            raise ValidationError("Invalid roll.")
        return roll

    def _prompt_mark(self, question: str) -> float:
        return validate_mark(self._view.prompt(question).strip())

    def _prompt_float(self, question: str) -> float:
        raw = self._view.prompt(question).strip()
        try:
            return float(raw)
        except ValueError:
            raise ValidationError("Invalid number.") from None
