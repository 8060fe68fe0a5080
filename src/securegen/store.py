"""Encrypted vault file I/O.

Binary file format
------------------
Offset  Length  Content
0       4       Magic bytes b"SGEN"
4       1       Format version (uint8)
5       4       PBKDF2 iteration count (big-endian uint32)
9       2       Salt length in bytes (big-endian uint16)
11      N       Salt
11+N    …       Fernet ciphertext (JSON-encoded Vault)
"""

from __future__ import annotations

import logging
import os
import struct
from pathlib import Path

from .crypto import PBKDF2_ITERATIONS, decrypt, encrypt, generate_salt
from .errors import BadVaultError
from .models import Vault

logger = logging.getLogger(__name__)

_MAGIC = b"SGEN"
_FORMAT_VERSION = 1
_HEADER = struct.Struct(">BIH")


class VaultStore:
    """Manages reading and writing the encrypted vault file."""

    def __init__(self, path: Path, iterations: int = PBKDF2_ITERATIONS) -> None:
        self.path = path
        self.iterations = iterations

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        return self.path.exists()

    def init(self, password: str) -> None:
        """Create a new, empty vault protected by *password*."""
        self._write(Vault(), password)

    def load(self, password: str) -> Vault:
        """Read and decrypt the vault; returns a :class:`Vault` instance."""
        try:
            raw = self.path.read_bytes()
        except OSError as exc:
            raise BadVaultError(f"Cannot read vault {self.path}: {exc}") from exc
        iterations, salt, ciphertext = _parse(raw)
        plaintext = decrypt(ciphertext, password, salt, iterations)
        return Vault.model_validate_json(plaintext)

    def save(self, vault: Vault, password: str) -> None:
        """Encrypt and persist *vault* to disk."""
        self._write(vault, password)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _write(self, vault: Vault, password: str) -> None:
        salt = generate_salt()
        plaintext = vault.model_dump_json().encode("utf-8")
        ciphertext = encrypt(plaintext, password, salt, self.iterations)

        header = _MAGIC + _HEADER.pack(_FORMAT_VERSION, self.iterations, len(salt)) + salt
        data = header + ciphertext

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            # Atomic write via temp file
            tmp = self.path.with_suffix(".tmp")
            tmp.write_bytes(data)
            tmp.replace(self.path)

            # Restrict permissions: owner read/write only
            os.chmod(self.path, 0o600)
        except OSError as exc:
            raise BadVaultError(f"Cannot write vault {self.path}: {exc}") from exc
        logger.debug("Saved vault %s (%d records)", self.path, len(vault.records))


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def _parse(data: bytes) -> tuple[int, bytes, bytes]:
    """Return *(iterations, salt, ciphertext)* from raw vault bytes."""
    min_len = len(_MAGIC) + _HEADER.size
    if len(data) < min_len or not data.startswith(_MAGIC):
        raise BadVaultError("Not a valid securegen vault file.")

    fmt_ver, iterations, salt_len = _HEADER.unpack_from(data, len(_MAGIC))
    if fmt_ver != _FORMAT_VERSION:
        raise BadVaultError(f"Unsupported vault format version: {fmt_ver}.")

    offset = min_len
    salt = data[offset : offset + salt_len]
    offset += salt_len
    ciphertext = data[offset:]

    if not salt or not ciphertext or iterations < 1:
        raise BadVaultError("Vault file is truncated or corrupt.")

    return iterations, salt, ciphertext
