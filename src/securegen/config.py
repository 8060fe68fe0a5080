"""Runtime settings, read from ``SECUREGEN_*`` environment variables.

    SECUREGEN_BACKEND          memory | local | remote   (default: local)
    SECUREGEN_VAULT            encrypted vault path
    SECUREGEN_MASTER_PASSWORD  vault master password (prompted when unset)
    SECUREGEN_KDF_ITERATIONS   PBKDF2 iterations for new writes
    SECUREGEN_API_URL          remote API base URL
    SECUREGEN_API_TIMEOUT      remote request timeout, seconds
    SECUREGEN_MULTI_USER       true | false (default: true for remote only)
    SECUREGEN_SESSION          session token file
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from .backends import Backend, MemoryBackend, VaultBackend
from .crypto import PBKDF2_ITERATIONS
from .remote import DEFAULT_API_URL, DEFAULT_TIMEOUT, RemoteBackend
from .store import VaultStore

_ENV_PREFIX = "SECUREGEN_"


def default_data_dir() -> Path:
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home()))
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "securegen"


class Settings(BaseModel):
    backend: Literal["memory", "local", "remote"] = "local"
    vault: Path = Field(default_factory=lambda: default_data_dir() / "vault.sg")
    master_password: Optional[str] = Field(default=None, repr=False)
    kdf_iterations: int = Field(default=PBKDF2_ITERATIONS, ge=1)
    api_url: str = DEFAULT_API_URL
    api_timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    multi_user: Optional[bool] = None
    session: Optional[Path] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from *environ* (``os.environ`` by default).

        Raises :class:`ValueError` with a readable message on bad values.
        """
        environ = os.environ if environ is None else environ
        values = {
            name: environ[_ENV_PREFIX + name.upper()]
            for name in cls.model_fields
            if environ.get(_ENV_PREFIX + name.upper())
        }
        try:
            return cls(**values)
        except ValidationError as exc:
            problems = "; ".join(
                f"{_ENV_PREFIX}{str(e['loc'][0]).upper()}: {e['msg']}" for e in exc.errors()
            )
            raise ValueError(f"Invalid configuration: {problems}") from exc

    @property
    def is_multi_user(self) -> bool:
        if self.multi_user is not None:
            return self.multi_user
        return self.backend == "remote"

    @property
    def session_path(self) -> Path:
        return self.session or self.vault.with_name("session.json")


def build_backend(
    settings: Settings,
    ask_master_password: Optional[Callable[[], str]] = None,
) -> Backend:
    """The single place where the backend implementation is chosen."""
    if settings.backend == "memory":
        return MemoryBackend(kdf_iterations=settings.kdf_iterations)
    if settings.backend == "remote":
        return RemoteBackend(settings.api_url, timeout=settings.api_timeout)

    password = settings.master_password
    if not password:
        if ask_master_password is None:
            raise ValueError("SECUREGEN_MASTER_PASSWORD is not set.")
        password = ask_master_password()
    store = VaultStore(settings.vault, iterations=settings.kdf_iterations)
    return VaultBackend(store, password)
