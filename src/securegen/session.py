"""Explicit session context.

Replaces ambient "who is logged in" state: operations that need an owner
take a :class:`SessionContext` and ask it for one. ``login``/``register``
start a session, ``logout`` ends it. With a *path* the token is kept in a
small JSON file (mode 0600) so a CLI stays logged in between runs.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from .backends import Backend
from .errors import Unauthorized
from .models import User

logger = logging.getLogger(__name__)


class Session(BaseModel):
    token: str
    user: User


class SessionContext:
    def __init__(self, auth: Backend, path: Optional[Path] = None) -> None:
        self.auth = auth
        self.path = path
        self.session: Optional[Session] = None

    @property
    def active(self) -> bool:
        return self.session is not None

    @property
    def user(self) -> Optional[User]:
        return self.session.user if self.session else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> User:
        result = self.auth.authenticate(username, password)
        self._start(Session(token=result.token, user=result.user))
        return result.user

    def register(self, username: str, password: str) -> User:
        result = self.auth.register(username, password)
        self._start(Session(token=result.token, user=result.user))
        return result.user

    def logout(self) -> None:
        """End the session locally even if the backend call fails."""
        session, self.session = self.session, None
        self._forget()
        if session is not None:
            self.auth.logout(session.token)

    def restore(self) -> Optional[User]:
        """Reload a saved token and check it is still valid.

        A stale token is discarded and ``None`` returned; transport
        failures propagate.
        """
        if self.path is None or not self.path.exists():
            return None
        try:
            saved = Session.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, exc)
            self._forget()
            return None
        try:
            user = self.auth.current_user(saved.token)
        except Unauthorized:
            logger.info("Saved session expired")
            self._forget()
            return None
        self.session = Session(token=saved.token, user=user)
        return user

    def require_owner(self) -> str:
        if self.session is None:
            raise Unauthorized("Log in first.")
        return self.session.user.id

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start(self, session: Session) -> None:
        self.session = session
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(session.model_dump_json(), encoding="utf-8")
            os.chmod(self.path, 0o600)

    def _forget(self) -> None:
        if self.path is not None:
            self.path.unlink(missing_ok=True)
