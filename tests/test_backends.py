"""Tests for securegen.backends."""

import pytest

from securegen.backends import MemoryBackend, VaultBackend
from securegen.errors import BadVaultError, InvalidCredentials, NotFound, Unauthorized, UsernameTaken
from securegen.models import CredentialRecord, RecordPatch
from securegen.store import VaultStore

FAST = 1_000


def _rec(username="u", **kw):
    return CredentialRecord(username=username, password="p", **kw)


@pytest.fixture(params=["memory", "vault"])
def any_backend(request, tmp_path):
    if request.param == "memory":
        return MemoryBackend(kdf_iterations=FAST)
    return VaultBackend(VaultStore(tmp_path / "vault.sg", iterations=FAST), "master")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def test_create_assigns_owner_and_lists_newest_first(any_backend):
    first = any_backend.create_record("alice", _rec("one"))
    second = any_backend.create_record("alice", _rec("two"))
    assert first.owner_id == "alice"
    assert [r.id for r in any_backend.list_records("alice")] == [second.id, first.id]


def test_records_are_owner_scoped(any_backend):
    mine = any_backend.create_record("alice", _rec())
    any_backend.create_record("bob", _rec())
    assert [r.id for r in any_backend.list_records("alice")] == [mine.id]

    with pytest.raises(NotFound):
        any_backend.patch_record("bob", mine.id, RecordPatch(group="stolen"))
    assert any_backend.batch_delete("bob", [mine.id]) == 0
    assert any_backend.list_records("alice")[0].group is None


def test_patch_is_partial(any_backend):
    r = any_backend.create_record(None, _rec(group="Work", remark="old"))
    any_backend.patch_record(None, r.id, RecordPatch(remark="new"))
    stored = any_backend.list_records(None)[0]
    assert (stored.group, stored.remark) == ("Work", "new")
    assert stored.password == r.password and stored.created_at == r.created_at


def test_patch_unknown_id_raises(any_backend):
    with pytest.raises(NotFound) as exc_info:
        any_backend.patch_record(None, "missing", RecordPatch(group="x"))
    assert exc_info.value.record_id == "missing"


def test_batch_patch_skips_unknown_ids(any_backend):
    r = any_backend.create_record(None, _rec())
    assert any_backend.batch_patch(None, [r.id, "ghost"], RecordPatch(group="Ops")) == 1
    assert any_backend.list_records(None)[0].group == "Ops"


def test_batch_delete_ignores_unknown_ids(any_backend):
    a = any_backend.create_record(None, _rec("a"))
    b = any_backend.create_record(None, _rec("b"))
    assert any_backend.batch_delete(None, [a.id, "ghost", a.id]) == 1
    assert [r.id for r in any_backend.list_records(None)] == [b.id]


def test_delete_all_for_owner_leaves_others(any_backend):
    for _ in range(3):
        any_backend.create_record("alice", _rec())
    any_backend.create_record("bob", _rec())
    assert any_backend.delete_all_for_owner("alice") == 3
    assert any_backend.list_records("alice") == []
    assert len(any_backend.list_records("bob")) == 1


def test_duplicate_record_id_rejected(any_backend):
    r = any_backend.create_record(None, _rec())
    with pytest.raises(ValueError):
        any_backend.create_record(None, r)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def test_register_then_login(any_backend):
    reg = any_backend.register("alice", "pw")
    assert any_backend.current_user(reg.token) == reg.user
    login = any_backend.authenticate("ALICE", "pw")
    assert login.user.id == reg.user.id
    assert login.token != reg.token


def test_register_conflict(any_backend):
    any_backend.register("alice", "pw")
    with pytest.raises(UsernameTaken):
        any_backend.register("Alice", "other")


def test_register_requires_fields(any_backend):
    with pytest.raises(ValueError, match="required"):
        any_backend.register("  ", "pw")


@pytest.mark.parametrize("username,password", [("alice", "wrong"), ("nobody", "pw")])
def test_bad_login(any_backend, username, password):
    any_backend.register("alice", "pw")
    with pytest.raises(InvalidCredentials):
        any_backend.authenticate(username, password)


def test_logout_invalidates_token(any_backend):
    token = any_backend.register("alice", "pw").token
    any_backend.logout(token)
    with pytest.raises(Unauthorized):
        any_backend.current_user(token)
    any_backend.logout(token)  # already gone: no error


# ---------------------------------------------------------------------------
# Vault specifics
# ---------------------------------------------------------------------------


def test_vault_backend_persists_across_instances(tmp_path):
    store = VaultStore(tmp_path / "vault.sg", iterations=FAST)
    VaultBackend(store, "master").create_record(None, _rec("kept"))
    assert [r.username for r in VaultBackend(store, "master").list_records(None)] == ["kept"]


def test_vault_backend_wrong_master_password(tmp_path):
    store = VaultStore(tmp_path / "vault.sg", iterations=FAST)
    VaultBackend(store, "master").create_record(None, _rec())
    with pytest.raises(ValueError):
        VaultBackend(store, "nope").list_records(None)


def test_failed_write_leaves_state_untouched(tmp_path, monkeypatch):
    store = VaultStore(tmp_path / "vault.sg", iterations=FAST)
    backend = VaultBackend(store, "master")
    backend.create_record(None, _rec("before"))

    def boom(vault, password):
        raise BadVaultError("disk full")

    monkeypatch.setattr(store, "save", boom)
    with pytest.raises(BadVaultError):
        backend.create_record(None, _rec("after"))
    monkeypatch.undo()
    assert [r.username for r in backend.list_records(None)] == ["before"]


def test_failed_patch_changes_nothing(backend):
    r = backend.create_record(None, _rec())
    with pytest.raises(NotFound):
        backend.patch_record(None, "ghost", RecordPatch(group="x"))
    assert backend.list_records(None) == [r]


def test_blank_password_is_not_an_auth_failure(any_backend):
    with pytest.raises(ValueError) as exc_info:
        any_backend.register("alice", "")
    assert not isinstance(exc_info.value, InvalidCredentials)
