"""Cryptographic primitives for securegen.

Key derivation: PBKDF2-HMAC-SHA256 (600 000 iterations by default, 32-byte salt).
Vault encryption: Fernet (AES-128-CBC + HMAC-SHA256).

Account passwords are stored as PBKDF2 hashes. Generated credentials are
deliberately *not* hashed; they live in the encrypted vault so history can
show them again.
"""

from __future__ import annotations

import base64
import hmac
import os

from cryptography.exceptions import InvalidSignature
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

SALT_SIZE = 32
PBKDF2_ITERATIONS = 600_000


def generate_salt() -> bytes:
    """Return a cryptographically-random 32-byte salt."""
    return os.urandom(SALT_SIZE)


def _pbkdf2(password: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def derive_key(password: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS) -> bytes:
    """Derive a 32-byte Fernet-compatible key from *password* and *salt*."""
    return base64.urlsafe_b64encode(_pbkdf2(password, salt, iterations))


def encrypt(
    plaintext: bytes, password: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS
) -> bytes:
    """Encrypt *plaintext* with a password-derived key."""
    key = derive_key(password, salt, iterations)
    return Fernet(key).encrypt(plaintext)


def decrypt(
    ciphertext: bytes, password: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS
) -> bytes:
    """Decrypt *ciphertext*; raises :class:`ValueError` on failure."""
    key = derive_key(password, salt, iterations)
    try:
        return Fernet(key).decrypt(ciphertext)
    except (InvalidToken, InvalidSignature) as exc:
        raise ValueError("Decryption failed: wrong master password or corrupted vault.") from exc


def hash_password(password: str, salt: bytes, iterations: int = PBKDF2_ITERATIONS) -> str:
    """Hex PBKDF2 digest used for account login checks."""
    return _pbkdf2(password, salt, iterations).hex()


def verify_password(password: str, salt: bytes, expected: str, iterations: int) -> bool:
    return hmac.compare_digest(hash_password(password, salt, iterations), expected)
