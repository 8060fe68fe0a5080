"""Tests for securegen.generator."""

import re
import string

import pytest

from securegen.generator import (
    ADJECTIVES,
    NOUNS,
    SYMBOLS,
    USERNAME_PRESETS,
    SeededRandomSource,
    build_charset,
    find_preset,
    generate_password,
    resolve_username,
    synthesize_username,
)
from securegen.models import GenerateConfig


class FixedSource:
    """Always returns the same index (clamped to the range)."""

    def __init__(self, value: int) -> None:
        self.value = value

    def randbelow(self, n: int) -> int:
        return min(self.value, n - 1)


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("length", [4, 5, 8, 16, 33, 64])
def test_password_has_exact_length(length):
    config = GenerateConfig(length=length)
    assert len(generate_password(config)) == length


def test_lowercase_only_when_all_toggles_off():
    config = GenerateConfig(length=64, use_uppercase=False, use_numbers=False, use_symbols=False)
    for _ in range(20):
        assert set(generate_password(config)) <= set(string.ascii_lowercase)


def test_charset_is_union_of_enabled_classes():
    config = GenerateConfig(use_uppercase=True, use_numbers=False, use_symbols=True)
    assert build_charset(config) == string.ascii_lowercase + string.ascii_uppercase + SYMBOLS


def test_every_enabled_class_eventually_appears():
    config = GenerateConfig(length=64)
    seen = set("".join(generate_password(config) for _ in range(20)))
    assert seen & set(string.ascii_uppercase)
    assert seen & set(string.digits)
    assert seen & set(SYMBOLS)


def test_password_characters_come_from_charset():
    config = GenerateConfig(length=64, use_symbols=False)
    allowed = set(build_charset(config))
    assert set(generate_password(config)) <= allowed


def test_out_of_range_lengths_do_not_raise():
    assert generate_password(GenerateConfig(length=0)) == ""
    assert generate_password(GenerateConfig(length=-3)) == ""
    assert len(generate_password(GenerateConfig(length=100))) == 100


def test_injected_source_makes_password_deterministic():
    config = GenerateConfig(length=12)
    a = generate_password(config, SeededRandomSource(7))
    b = generate_password(config, SeededRandomSource(7))
    assert a == b


def test_fixed_source_picks_first_character():
    config = GenerateConfig(length=5)
    assert generate_password(config, FixedSource(0)) == "aaaaa"


# ---------------------------------------------------------------------------
# Usernames
# ---------------------------------------------------------------------------


def test_user_id_pattern_shape():
    for _ in range(50):
        name = synthesize_username("user_####")
        assert len(name) == 9
        assert re.fullmatch(r"user_\d{4}", name)


def test_short_id_pattern_shape():
    assert re.fullmatch(r"u_[a-z]{5}", synthesize_username("u_?????"))


@pytest.mark.parametrize("pattern", ["", None])
def test_empty_pattern_uses_default(pattern):
    for _ in range(20):
        name = synthesize_username(pattern)
        assert "{" not in name and "}" not in name
        assert re.fullmatch(r"[A-Z][a-z]+[A-Z][a-z]+\d{1,3}", name)


def test_default_pattern_draws_from_word_lists():
    name = synthesize_username("{adjective}-{noun}")
    adjective, noun = name.split("-")
    assert adjective in ADJECTIVES
    assert noun in NOUNS


def test_number_placeholder_range_and_no_padding():
    values = {int(synthesize_username("{number}")) for _ in range(300)}
    assert all(0 <= v <= 999 for v in values)
    name = synthesize_username("{number}", FixedSource(5))
    assert name == "5"


def test_repeated_placeholders_draw_independently():
    pairs = [synthesize_username("{noun}|{noun}").split("|") for _ in range(100)]
    assert any(a != b for a, b in pairs)


def test_wildcards_are_independent():
    digits = {synthesize_username("##") for _ in range(100)}
    assert any(d[0] != d[1] for d in digits)


def test_literal_text_passes_through():
    name = synthesize_username("svc_{noun}_##@corp.example")
    assert re.fullmatch(r"svc_[A-Za-z]+_\d\d@corp\.example", name)


def test_unknown_braces_are_left_alone():
    assert synthesize_username("{colour}") == "{colour}"


def test_manual_username_wins_when_set():
    config = GenerateConfig(username_mode="manual", username="john.doe")
    assert resolve_username(config) == "john.doe"


def test_blank_manual_username_falls_back_to_pattern():
    config = GenerateConfig(username_mode="manual", username="   ", pattern="user_####")
    assert re.fullmatch(r"user_\d{4}", resolve_username(config))


def test_pattern_mode_ignores_manual_username():
    config = GenerateConfig(username_mode="pattern", username="john", pattern="u_?????")
    assert resolve_username(config).startswith("u_")


def test_presets_lookup():
    assert find_preset("User ID").pattern == "user_####"
    assert find_preset("short-id").pattern == "u_?????"
    assert len(USERNAME_PRESETS) == 5
    with pytest.raises(KeyError):
        find_preset("nope")
