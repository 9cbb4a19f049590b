"""
Login state machine, authorization gate and credential management.
"""

from __future__ import annotations

import pytest

from student_records.auth import (
    AccountService,
    Session,
    SessionManager,
    SessionState,
    authorize,
)
from student_records.domain import Capability, Role
from student_records.errors import (
    AuthenticationError,
    LoginAttemptsExceeded,
    NotFoundError,
    PermissionDenied,
)


def test_successful_login(credentials) -> None:
    manager = SessionManager(credentials)
    assert manager.state is SessionState.LOGGED_OUT

    manager.begin_login()
    assert manager.state is SessionState.AUTHENTICATING

    session = manager.attempt("admin", "admin")
    assert session == Session(username="admin", role=Role.ADMIN)
    assert manager.state is SessionState.LOGGED_IN
    assert manager.session is session


def test_logout_clears_session(credentials) -> None:
    manager = SessionManager(credentials)
    manager.begin_login()
    manager.attempt("staff", "staff")
    manager.logout()
    assert manager.state is SessionState.LOGGED_OUT
    assert manager.session is None


def test_three_failures_end_the_login(credentials) -> None:
    manager = SessionManager(credentials)
    manager.begin_login()

    with pytest.raises(AuthenticationError) as first:
        manager.attempt("admin", "nope")
    assert first.value.attempts_left == 2
    assert manager.state is SessionState.AUTHENTICATING

    with pytest.raises(AuthenticationError) as second:
        manager.attempt("admin", "nope")
    assert second.value.attempts_left == 1

    with pytest.raises(LoginAttemptsExceeded):
        manager.attempt("admin", "nope")
    assert manager.state is SessionState.LOGGED_OUT
    assert manager.session is None


def test_success_resets_failure_count(credentials) -> None:
    manager = SessionManager(credentials)
    manager.begin_login()
    with pytest.raises(AuthenticationError):
        manager.attempt("guest", "x")
    manager.attempt("guest", "guest")
    assert manager.attempts_left == 3


def test_authorize() -> None:
    staff = Session("staff", Role.STAFF)
    assert authorize(staff, Capability.ADD) is staff
    with pytest.raises(PermissionDenied):
        authorize(staff, Capability.MASK)
    with pytest.raises(PermissionDenied):
        authorize(None, Capability.DISPLAY)


def test_account_management_by_admin(credentials) -> None:
    accounts = AccountService(credentials)
    admin = Session("admin", Role.ADMIN)

    accounts.add_user(admin, "carol", "pw", "principal")
    assert credentials.authenticate("carol", "pw") is Role.PRINCIPAL

    accounts.reset_password(admin, "carol", "pw2")
    assert credentials.authenticate("carol", "pw2") is Role.PRINCIPAL

    accounts.remove_user(admin, "carol")
    assert credentials.authenticate("carol", "pw2") is None

    with pytest.raises(NotFoundError):
        accounts.remove_user(admin, "carol")
    with pytest.raises(NotFoundError):
        accounts.reset_password(admin, "carol", "x")


@pytest.mark.parametrize("role", [Role.STAFF, Role.PRINCIPAL, Role.GUEST, Role.STUDENT])
def test_account_management_denied_for_others(credentials, role) -> None:
    accounts = AccountService(credentials)
    before = credentials.path.read_text(encoding="utf-8")
    with pytest.raises(PermissionDenied):
        accounts.add_user(Session("x", role), "mallory", "pw", "ADMIN")
    with pytest.raises(PermissionDenied):
        accounts.remove_user(Session("x", role), "admin")
    assert credentials.path.read_text(encoding="utf-8") == before
