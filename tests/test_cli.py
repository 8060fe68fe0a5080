"""Smoke tests for securegen.cli against a throwaway local vault."""

import re
from datetime import date

import pytest
from typer.testing import CliRunner

from securegen.cli import app

runner = CliRunner()


@pytest.fixture
def env(tmp_path, monkeypatch):
    values = {
        "SECUREGEN_BACKEND": "local",
        "SECUREGEN_VAULT": str(tmp_path / "vault.sg"),
        "SECUREGEN_MASTER_PASSWORD": "master",
        "SECUREGEN_KDF_ITERATIONS": "1000",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("SECUREGEN_MULTI_USER", raising=False)
    monkeypatch.chdir(tmp_path)
    return values


def _invoke(*args):
    result = runner.invoke(app, list(args))
    return result


def _ids(output):
    return re.findall(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", output)


def test_generate_then_history(env):
    result = _invoke("generate", "--username", "alice", "--group", "Work", "--remark", "vpn")
    assert result.exit_code == 0, result.output
    assert "alice" in result.output

    result = _invoke("history", "--group", "Work")
    assert result.exit_code == 0, result.output
    assert "alice" in result.output

    result = _invoke("history", "--group", "Nope")
    assert "No credentials match" in result.output


def test_pattern_generation(env):
    result = _invoke("generate", "--preset", "user id", "--length", "8", "--no-symbols")
    assert result.exit_code == 0, result.output
    assert re.search(r"user_\d{4}", result.output)


def test_length_out_of_range_rejected(env):
    assert _invoke("generate", "--length", "3").exit_code != 0


def test_edit_regroup_delete(env):
    first = _invoke("generate", "-u", "one")
    second = _invoke("generate", "-u", "two")
    id1, id2 = _ids(first.output)[0], _ids(second.output)[0]

    assert _invoke("edit", id1[:8], "--remark", "changed").exit_code == 0
    result = _invoke("regroup", id1, id2, "missing-id", "--group", "Team")
    assert "2 of 3" in result.output

    result = _invoke("history", "--grouped", "--sort", "username", "--asc")
    assert "Team (2)" in result.output

    assert _invoke("delete", id1, "--yes").exit_code == 0
    result = _invoke("history")
    assert "two" in result.output and "one" not in result.output


def test_edit_unknown_id_fails(env):
    _invoke("generate", "-u", "one")
    result = _invoke("edit", "ffffffff", "--group", "x")
    assert result.exit_code == 1


def test_export_writes_dated_csv(env, tmp_path):
    _invoke("generate", "-u", "carol", "--remark", "a, b")
    result = _invoke("export")
    assert result.exit_code == 0, result.output
    path = tmp_path / f"securegen_export_{date.today().isoformat()}.csv"
    lines = path.read_text().splitlines()
    assert lines[0] == "Username,Group,Remark,Created At"
    assert lines[1].startswith('carol,,"a, b",')


def test_clear(env):
    _invoke("generate", "-u", "gone")
    assert _invoke("clear", "--yes").exit_code == 0
    assert "No credentials" in _invoke("history").output


def test_strength_and_presets(env):
    assert "Very Strong" in _invoke("strength", "--length", "20").output
    assert "Weak" in _invoke("strength", "--length", "4", "--no-uppercase", "--no-numbers", "--no-symbols").output
    assert "user_####" in _invoke("presets").output


def test_multi_user_requires_login(env, monkeypatch):
    monkeypatch.setenv("SECUREGEN_MULTI_USER", "true")
    assert _invoke("generate").exit_code == 1

    assert _invoke("register", "-u", "alice", "-p", "pw").exit_code == 0
    assert "alice" in _invoke("whoami").output
    assert _invoke("generate", "-u", "mine").exit_code == 0

    assert _invoke("logout").exit_code == 0
    assert _invoke("history").exit_code == 1
    assert _invoke("login", "-u", "alice", "-p", "wrong").exit_code == 1
    assert _invoke("login", "-u", "alice", "-p", "pw").exit_code == 0
    assert "mine" in _invoke("history").output


def test_history_sorts_accented_usernames(env):
    for name in ("Zed", "Émile", "Adam"):
        _invoke("generate", "-u", name)
    output = _invoke("history", "--sort", "username", "--asc").output
    positions = [output.index(name) for name in ("Adam", "Émile", "Zed")]
    assert positions == sorted(positions)
