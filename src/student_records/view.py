"""
UI layer for the console

This view is the only place that talks to the terminal.
- read a line, read a hidden password, ask yes/no
- show menus, record tables and statistics
"""

from __future__ import annotations

import getpass
import shutil
from typing import List, Optional, Sequence, Tuple

from .auth import Session
from .domain import SUBJECTS, Statistics, Student


class ConsoleView:
    """
    View for the console.

    The width follows the terminal, with a minimum so the table fits.
    """

    def __init__(self, width: int | None = None) -> None:
        term_cols = shutil.get_terminal_size(fallback=(100, 24)).columns
        if width is None:
            width = term_cols
        self._width = max(80, width)

    def render_banner(self, session: Optional[Session]) -> None:
        """Title with the logged-in user."""
        print("=" * 44)
        print("     STUDENT RECORD MANAGEMENT SYSTEM       ")
        print("=" * 44)
        if session is not None:
            print(f"Logged in as: {session.username} [{session.role.value}]")
        print("-" * 44)

    def render_menu(self, title: str, entries: Sequence[str]) -> None:
        """
        Shows a numbered menu in a box.
        The numbers start at 1 in the order of entries.
        """
        lines = [f"  {i}) {label}" for i, label in enumerate(entries, 1)]
        inner = max([len(title) + 4] + [len(line) + 2 for line in lines])
        # box must fit the view width, long labels are cut
        inner = min(inner, self._width - 2)
        title = title[:inner]
        lines = [line[:inner] for line in lines]
        print()
        print("╔" + "═" * inner + "╗")
        print("║" + title.center(inner) + "║")
        print("╠" + "═" * inner + "╣")
        for line in lines:
            print("║" + line.ljust(inner) + "║")
        print("╚" + "═" * inner + "╝")

    def prompt(self, question: str) -> str:
        """Asks for one line of input."""
        return input(question)

    def prompt_secret(self, question: str) -> str:
        """Asks for a password without echo."""
        return getpass.getpass(question)

    def confirm(self, question: str) -> bool:
        """Yes/no question. Only an answer starting with y counts as yes."""
        answer = self.prompt(f"{question} (y/n): ").strip().lower()
        return answer.startswith("y")

    def show_message(self, text: str) -> None:
        print(text)

    def render_students(self, students: Sequence[Student]) -> None:
        """Shows records as a table."""
        if not students:
            print("No student records.")
            return
        print(self._build_table(students))

    def render_statistics(self, stats: Statistics) -> None:
        """Shows the class statistics."""
        print()
        print(f"Total Students: {stats.count}")
        print(f"Average Percentage: {stats.average_percentage:.2f}")
        print(
            f"Highest: {stats.highest.percentage:.2f} "
            f"({stats.highest.name}, Roll {stats.highest.roll})"
        )
        print(
            f"Lowest: {stats.lowest.percentage:.2f} "
            f"({stats.lowest.name}, Roll {stats.lowest.roll})"
        )
        print(f"Pass Count: {stats.pass_count}")
        print(f"Fail Count: {stats.fail_count}")

    def _build_table(self, students: Sequence[Student]) -> str:
        """
        Builds the record table.

        Columns:
        - Roll, Name
        - one column per subject
        - Total, Percent, Grade

        The name column takes the width the other columns leave free.
        """
        cols: List[Tuple[str, int]] = [("Roll", 6)]
        cols += [(subject, 8) for subject in SUBJECTS]
        cols += [("Total", 8), ("Percent", 10), ("Grade", 5)]
        fixed = sum(width for _, width in cols) + len(cols)
        longest = max(len(s.name) for s in students)
        name_width = max(len("Name"), min(longest, self._width - fixed))
        cols.insert(1, ("Name", name_width))

        header = " ".join(name.ljust(width) for name, width in cols).rstrip()
        out = ["", header, "-" * min(self._width, len(header))]

        for s in students:
            cells = [str(s.roll).ljust(6), s.name[:name_width].ljust(name_width)]
            cells += [f"{m:.2f}".ljust(8) for m in s.marks]
            cells += [f"{s.total:.2f}".ljust(8), f"{s.percentage:.2f}".ljust(10), s.grade.ljust(5)]
            out.append(" ".join(cells).rstrip())

        return "\n".join(out)
