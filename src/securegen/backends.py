"""Persistence and authentication backends.

:class:`Backend` is the one interface the lifecycle manager and session
context talk to. :class:`MemoryBackend` keeps a :class:`Vault` document in
process; :class:`VaultBackend` keeps the same document in the encrypted
vault file. The remote implementation lives in :mod:`securegen.remote`.

Every record operation is scoped by owner: records owned by someone else are
treated as nonexistent. Mutations run against a working copy of the vault
and are committed only when the whole operation succeeds.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from .crypto import PBKDF2_ITERATIONS, generate_salt, hash_password, verify_password
from .errors import InvalidCredentials, NotFound, Unauthorized, UsernameTaken
from .models import AuthResult, CredentialRecord, RecordPatch, User, UserAccount, Vault
from .store import VaultStore

logger = logging.getLogger(__name__)


class Backend(ABC):
    """Record store plus auth provider, as seen by the core."""

    name = "abstract"

    # -- records -------------------------------------------------------

    @abstractmethod
    def create_record(self, owner_id: Optional[str], record: CredentialRecord) -> CredentialRecord:
        """Persist *record* for *owner_id* and return the stored copy."""

    @abstractmethod
    def list_records(self, owner_id: Optional[str]) -> list[CredentialRecord]:
        """All records of *owner_id*, newest first."""

    @abstractmethod
    def patch_record(self, owner_id: Optional[str], record_id: str, patch: RecordPatch) -> None:
        """Apply *patch*; raises :class:`NotFound` if the record is absent."""

    @abstractmethod
    def batch_patch(self, owner_id: Optional[str], ids: Iterable[str], patch: RecordPatch) -> int:
        """Apply *patch* to every listed record that exists; returns how many."""

    @abstractmethod
    def batch_delete(self, owner_id: Optional[str], ids: Iterable[str]) -> int:
        """Delete every listed record that exists; returns how many."""

    @abstractmethod
    def delete_all_for_owner(self, owner_id: Optional[str]) -> int:
        """Delete every record of *owner_id*; returns how many."""

    # -- auth ----------------------------------------------------------

    @abstractmethod
    def authenticate(self, username: str, password: str) -> AuthResult: ...

    @abstractmethod
    def register(self, username: str, password: str) -> AuthResult: ...

    @abstractmethod
    def logout(self, token: str) -> None: ...

    @abstractmethod
    def current_user(self, token: str) -> User: ...

    def close(self) -> None:
        """Release any held resources."""


class MemoryBackend(Backend):
    """In-process backend; state is lost when the object goes away."""

    name = "memory"

    def __init__(self, vault: Optional[Vault] = None, kdf_iterations: int = PBKDF2_ITERATIONS) -> None:
        self._vault = vault or Vault()
        self.kdf_iterations = kdf_iterations

    # ------------------------------------------------------------------
    # Storage hooks
    # ------------------------------------------------------------------

    def _load(self) -> Vault:
        return self._vault.model_copy(deep=True)

    def _commit(self, vault: Vault) -> None:
        self._vault = vault

    @contextmanager
    def _transaction(self) -> Iterator[Vault]:
        vault = self._load()
        yield vault
        self._commit(vault)

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    @staticmethod
    def _owned(vault: Vault, owner_id: Optional[str], record_id: str) -> Optional[CredentialRecord]:
        record = vault.records.get(record_id)
        if record is None or record.owner_id != owner_id:
            return None
        return record

    def create_record(self, owner_id: Optional[str], record: CredentialRecord) -> CredentialRecord:
        stored = record.model_copy(update={"owner_id": owner_id})
        with self._transaction() as vault:
            if stored.id in vault.records:
                raise ValueError(f"Record id {stored.id!r} already exists.")
            vault.records[stored.id] = stored
        logger.debug("Created record %s", stored.id)
        return stored

    def list_records(self, owner_id: Optional[str]) -> list[CredentialRecord]:
        vault = self._load()
        return [r for r in reversed(vault.records.values()) if r.owner_id == owner_id]

    def patch_record(self, owner_id: Optional[str], record_id: str, patch: RecordPatch) -> None:
        with self._transaction() as vault:
            record = self._owned(vault, owner_id, record_id)
            if record is None:
                raise NotFound(record_id)
            vault.records[record_id] = patch.apply(record)

    def batch_patch(self, owner_id: Optional[str], ids: Iterable[str], patch: RecordPatch) -> int:
        updated = 0
        with self._transaction() as vault:
            for record_id in dict.fromkeys(ids):
                record = self._owned(vault, owner_id, record_id)
                if record is None:
                    logger.debug("Skipping unknown record %s in batch update", record_id)
                    continue
                vault.records[record_id] = patch.apply(record)
                updated += 1
        return updated

    def batch_delete(self, owner_id: Optional[str], ids: Iterable[str]) -> int:
        deleted = 0
        with self._transaction() as vault:
            for record_id in dict.fromkeys(ids):
                if self._owned(vault, owner_id, record_id) is not None:
                    del vault.records[record_id]
                    deleted += 1
        return deleted

    def delete_all_for_owner(self, owner_id: Optional[str]) -> int:
        with self._transaction() as vault:
            doomed = [rid for rid, r in vault.records.items() if r.owner_id == owner_id]
            for record_id in doomed:
                del vault.records[record_id]
        return len(doomed)

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    @staticmethod
    def _find_account(vault: Vault, username: str) -> Optional[UserAccount]:
        wanted = username.lower()
        for account in vault.users.values():
            if account.username.lower() == wanted:
                return account
        return None

    @staticmethod
    def _issue_token(vault: Vault, account: UserAccount) -> AuthResult:
        token = secrets.token_urlsafe(32)
        vault.sessions[token] = account.id
        return AuthResult(token=token, user=account.public())

    def register(self, username: str, password: str) -> AuthResult:
        username = username.strip()
        if not username or not password:
            raise ValueError("Username and password are required.")
        with self._transaction() as vault:
            if self._find_account(vault, username) is not None:
                raise UsernameTaken(f"Username {username!r} is already taken.")
            salt = generate_salt()
            account = UserAccount(
                id=str(uuid.uuid4()),
                username=username,
                salt=salt.hex(),
                password_hash=hash_password(password, salt, self.kdf_iterations),
                iterations=self.kdf_iterations,
            )
            vault.users[account.id] = account
            result = self._issue_token(vault, account)
        logger.info("Registered user %s", account.id)
        return result

    def authenticate(self, username: str, password: str) -> AuthResult:
        with self._transaction() as vault:
            account = self._find_account(vault, username.strip())
            if account is None or not verify_password(
                password, bytes.fromhex(account.salt), account.password_hash, account.iterations
            ):
                raise InvalidCredentials("Invalid username or password.")
            result = self._issue_token(vault, account)
        logger.info("User %s logged in", account.id)
        return result

    def logout(self, token: str) -> None:
        with self._transaction() as vault:
            vault.sessions.pop(token, None)

    def current_user(self, token: str) -> User:
        vault = self._load()
        user_id = vault.sessions.get(token)
        account = vault.users.get(user_id) if user_id else None
        if account is None:
            raise Unauthorized("Session is not valid; please log in again.")
        return account.public()


class VaultBackend(MemoryBackend):
    """Backend persisted in the encrypted vault file.

    Every operation re-reads the file, so concurrent CLI invocations see
    each other's writes; the last write wins.
    """

    name = "local"

    def __init__(self, store: VaultStore, master_password: str) -> None:
        super().__init__(kdf_iterations=store.iterations)
        self.store = store
        self._master = master_password

    def _load(self) -> Vault:
        if not self.store.exists():
            return Vault()
        return self.store.load(self._master)

    def _commit(self, vault: Vault) -> None:
        self.store.save(vault, self._master)
