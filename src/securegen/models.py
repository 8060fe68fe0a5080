"""Domain models for securegen."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PATTERN = "{adjective}{noun}{number}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class CredentialRecord(BaseModel):
    """One generated username/password pair plus metadata.

    The password is kept verbatim so it can be shown again from history.
    Only ``remark`` and ``group`` change after creation.
    """

    id: str = Field(default_factory=_new_id)
    owner_id: Optional[str] = None
    username: str
    password: str
    created_at: datetime = Field(default_factory=_utcnow)
    remark: Optional[str] = None
    group: Optional[str] = None


class GenerateConfig(BaseModel):
    """Rules for building one credential."""

    username_mode: Literal["manual", "pattern"] = "manual"
    username: str = ""
    pattern: Optional[str] = DEFAULT_PATTERN
    length: int = 16
    use_uppercase: bool = True
    use_numbers: bool = True
    use_symbols: bool = True
    remark: Optional[str] = None
    group: Optional[str] = None


class RecordPatch(BaseModel):
    """Partial update of the mutable record fields; unset fields are left alone."""

    model_config = ConfigDict(extra="forbid")

    group: Optional[str] = None
    remark: Optional[str] = None

    def changes(self) -> dict[str, Optional[str]]:
        """Return only the fields that were explicitly set, blanks as ``None``."""
        return {k: (v or None) for k, v in self.model_dump(exclude_unset=True).items()}

    def apply(self, record: CredentialRecord) -> CredentialRecord:
        return record.model_copy(update=self.changes())


class User(BaseModel):
    """Public view of an account."""

    id: str
    username: str


class UserAccount(User):
    """Stored account: salted PBKDF2 hash, never the password itself."""

    salt: str
    password_hash: str
    iterations: int
    created_at: datetime = Field(default_factory=_utcnow)

    def public(self) -> User:
        return User(id=self.id, username=self.username)


class AuthResult(BaseModel):
    token: str
    user: User


class Vault(BaseModel):
    """Top-level document held by the in-memory and local backends."""

    version: str = "1"
    users: dict[str, UserAccount] = Field(default_factory=dict)
    sessions: dict[str, str] = Field(default_factory=dict)
    records: dict[str, CredentialRecord] = Field(default_factory=dict)
