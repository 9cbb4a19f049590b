"""
Session & authorization

- Session: the logged-in user and role. Immutable, passed into every gated call.
- SessionManager: login state machine LOGGED_OUT -> AUTHENTICATING -> LOGGED_IN -> LOGGED_OUT
- authorize(): role check against the capability table in domain.py
- AccountService: credential management for ADMIN sessions
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .domain import Capability, Credential, Role, role_can
from .errors import (
    AuthenticationError,
    LoginAttemptsExceeded,
    NotFoundError,
    PermissionDenied,
)
from .persistence import CredentialRepository

log = logging.getLogger(__name__)

MAX_LOGIN_ATTEMPTS = 3


class SessionState(Enum):
    """States of the login flow."""
    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    LOGGED_IN = "logged_in"


@dataclass(frozen=True, slots=True)
class Session:
    """The authenticated identity for one interactive run."""
    username: str
    role: Role

    def can(self, capability: Capability) -> bool:
        return role_can(self.role, capability)


def authorize(session: Optional[Session], capability: Capability) -> Session:
    """
    Checks the capability before anything is read or written.
    Raises PermissionDenied without a session or with a role that lacks it.
    """
    if session is None:
        raise PermissionDenied("Permission denied: please log in first.")
    if not session.can(capability):
        log.warning("Denied %s for %s [%s]", capability.value, session.username, session.role.value)
        raise PermissionDenied(
            f"Permission denied: {session.role.value} may not {capability.value.replace('_', ' ')}."
        )
    return session


class SessionManager:
    """
    Login state machine.

    - begin_login(): start a login, the failure counter starts at 0
    - attempt(): check username/password
    - logout(): back to LOGGED_OUT, session cleared
    After MAX_LOGIN_ATTEMPTS failed attempts in a row the state goes back to
    LOGGED_OUT and LoginAttemptsExceeded is raised.
    """

    def __init__(self, credentials: CredentialRepository, max_attempts: int = MAX_LOGIN_ATTEMPTS) -> None:
        self._credentials = credentials
        self._max_attempts = max_attempts
        self._state = SessionState.LOGGED_OUT
        self._session: Optional[Session] = None
        self._failures = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def attempts_left(self) -> int:
        return self._max_attempts - self._failures

    def begin_login(self) -> None:
        """LOGGED_OUT -> AUTHENTICATING."""
        if self._state is SessionState.LOGGED_IN:
            raise AuthenticationError("Already logged in. Log out first.", self.attempts_left)
        self._state = SessionState.AUTHENTICATING
        self._failures = 0

    def attempt(self, username: str, password: str) -> Session:
        """
        One login try.
        - success: LOGGED_IN, the new session is returned
        - failure: AuthenticationError with the attempts left
        - last failure: LOGGED_OUT and LoginAttemptsExceeded
        """
        if self._state is not SessionState.AUTHENTICATING:
            self.begin_login()

        role = self._credentials.authenticate(username.strip(), password)
        if role is not None:
            self._session = Session(username=username.strip(), role=role)
            self._state = SessionState.LOGGED_IN
            self._failures = 0
            log.info("Login %s [%s]", self._session.username, role.value)
            return self._session

        self._failures += 1
        log.warning("Failed login for %r (%d/%d)", username, self._failures, self._max_attempts)
        if self._failures >= self._max_attempts:
            self._state = SessionState.LOGGED_OUT
            raise LoginAttemptsExceeded()
        raise AuthenticationError(
            f"Invalid credentials. Attempts left: {self.attempts_left}", self.attempts_left
        )

    def logout(self) -> None:
        """LOGGED_IN -> LOGGED_OUT."""
        if self._session is not None:
            log.info("Logout %s", self._session.username)
        self._session = None
        self._state = SessionState.LOGGED_OUT
        self._failures = 0


class AccountService:
    """
    Credential management.
    Every method needs a session with MANAGE_CREDENTIALS.
    """

    def __init__(self, credentials: CredentialRepository) -> None:
        self._credentials = credentials

    def add_user(self, session: Session, username: str, password: str, role: str) -> Credential:
        authorize(session, Capability.MANAGE_CREDENTIALS)
        credential = self._credentials.add(username, password, role)
        log.info("User %s added with role %s", credential.username, credential.role.value)
        return credential

    def reset_password(self, session: Session, username: str, new_password: str) -> None:
        authorize(session, Capability.MANAGE_CREDENTIALS)
        if not self._credentials.reset_password(username.strip(), new_password):
            raise NotFoundError("User not found.")
        log.info("Password reset for %s", username.strip())

    def remove_user(self, session: Session, username: str) -> None:
        authorize(session, Capability.MANAGE_CREDENTIALS)
        if not self._credentials.remove(username.strip()):
            raise NotFoundError("User not found.")
        log.info("User %s removed", username.strip())
