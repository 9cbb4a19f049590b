"""
student_records package

Console Student Record Management System (SRMS): a file-backed store for
student marks with role-based logins.

Layers:
- domain.py: entities, enums, grade rules, capability table
- errors.py: exception types
- persistence.py: flat-file storage of students and credentials
- service.py: search/sort/statistics and the gated record use cases
- archive.py: export, backup, restore, XOR mask
- auth.py: login state machine, sessions, credential management
- view.py: console output and input
- controller.py: menus per role
- config.py: paths and logging
- main.py: entry point
"""

__version__ = "1.0.0"
