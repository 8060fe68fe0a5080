"""Tests for securegen.store."""

import pytest

from securegen.errors import BadVaultError, TransportFailure
from securegen.models import CredentialRecord, Vault
from securegen.store import VaultStore

FAST = 1_000


def _store(tmp_path, name="vault.sg", iterations=FAST) -> VaultStore:
    return VaultStore(tmp_path / name, iterations=iterations)


def test_init_creates_restricted_file(tmp_path):
    store = _store(tmp_path)
    assert not store.exists()
    store.init("pw")
    assert store.exists()
    assert store.path.stat().st_mode & 0o777 == 0o600


def test_load_empty_vault(tmp_path):
    store = _store(tmp_path)
    store.init("pw")
    vault = store.load("pw")
    assert isinstance(vault, Vault)
    assert vault.records == {}


def test_wrong_password_raises_valueerror(tmp_path):
    store = _store(tmp_path)
    store.init("correct")
    with pytest.raises(ValueError):
        store.load("wrong")


def test_records_persist(tmp_path):
    store = _store(tmp_path)
    vault = Vault()
    for i in range(3):
        r = CredentialRecord(username=f"user{i}", password=f"pass-{i}", remark="r, with comma")
        vault.records[r.id] = r
    store.save(vault, "pw")

    loaded = store.load("pw")
    assert list(loaded.records) == list(vault.records)
    assert loaded.records == vault.records


def test_iterations_read_from_header(tmp_path):
    _store(tmp_path, iterations=1_500).init("pw")
    # A store configured differently still reads the file it did not write.
    assert _store(tmp_path, iterations=FAST).load("pw").records == {}


def test_bad_magic_raises(tmp_path):
    path = tmp_path / "bad.sg"
    path.write_bytes(b"BADMAGIC" + b"\x00" * 20)
    with pytest.raises(BadVaultError):
        VaultStore(path).load("pw")


def test_truncated_file_raises(tmp_path):
    path = tmp_path / "trunc.sg"
    path.write_bytes(b"SGEN")
    with pytest.raises(BadVaultError):
        VaultStore(path).load("pw")


def test_missing_file_is_a_transport_failure(tmp_path):
    with pytest.raises(TransportFailure):
        _store(tmp_path).load("pw")
