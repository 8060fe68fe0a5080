"""Password and username generation.

Passwords are sampled uniformly from the union of the enabled character
classes. Usernames are expanded from a pattern: word placeholders
(``{adjective}``, ``{noun}``, ``{number}``) first, then the single-character
wildcards ``#`` (digit) and ``?`` (lowercase letter).

Randomness comes from a :class:`RandomSource`; the default draws from the
operating system via :mod:`secrets`. Tests pass a seeded source instead.
"""

from __future__ import annotations

import random
import re
import secrets
import string
from typing import NamedTuple, Optional, Protocol, Sequence

from .models import DEFAULT_PATTERN, GenerateConfig

LOWERCASE = string.ascii_lowercase
UPPERCASE = string.ascii_uppercase
DIGITS = string.digits
SYMBOLS = "!@#$%^&*()_+-=[]{}|;:,.<>?"

ADJECTIVES = (
    "Swift", "Silent", "Happy", "Brave", "Calm", "Witty", "Fancy",
    "Bold", "Crimson", "Neon", "Blue", "Red", "Green",
)
NOUNS = (
    "Fox", "Eagle", "Panda", "Tiger", "Lion", "Hawk", "Wolf",
    "Bear", "Falcon", "Badger", "Shark", "Whale", "Cat",
)

_PLACEHOLDER = re.compile(r"\{(adjective|noun|number)\}")


class RandomSource(Protocol):
    """Anything that can draw a uniform integer in ``[0, n)``."""

    def randbelow(self, n: int) -> int: ...


class SystemRandomSource:
    """Cryptographically strong source backed by :func:`secrets.randbelow`."""

    def randbelow(self, n: int) -> int:
        return secrets.randbelow(n)


class SeededRandomSource:
    """Deterministic source for tests and reproducible demos. Not for real use."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)

    def randbelow(self, n: int) -> int:
        return self._rng.randrange(n)


_SYSTEM = SystemRandomSource()


class UsernamePreset(NamedTuple):
    label: str
    pattern: str
    example: str


USERNAME_PRESETS: tuple[UsernamePreset, ...] = (
    UsernamePreset("Friendly Name", DEFAULT_PATTERN, "SilentFox42"),
    UsernamePreset("User ID", "user_####", "user_8392"),
    UsernamePreset("Email Address", "{noun}{number}@example.com", "Bear99@example.com"),
    UsernamePreset("Service Account", "svc_{noun}_##", "svc_Tiger_07"),
    UsernamePreset("Short ID", "u_?????", "u_xqkzf"),
)


def find_preset(name: str) -> UsernamePreset:
    """Look a preset up by label, case-insensitively, ignoring spaces/dashes."""
    key = re.sub(r"[\s_-]", "", name).lower()
    for preset in USERNAME_PRESETS:
        if re.sub(r"\s", "", preset.label).lower() == key:
            return preset
    raise KeyError(f"Unknown username preset {name!r}.")


def _pick(choices: Sequence[str], rng: RandomSource) -> str:
    return choices[rng.randbelow(len(choices))]


def build_charset(config: GenerateConfig) -> str:
    """Return the candidate characters for *config*; lowercase is always in."""
    charset = LOWERCASE
    if config.use_uppercase:
        charset += UPPERCASE
    if config.use_numbers:
        charset += DIGITS
    if config.use_symbols:
        charset += SYMBOLS
    return charset or LOWERCASE


def generate_password(config: GenerateConfig, rng: RandomSource = _SYSTEM) -> str:
    """Draw ``config.length`` independent characters from the enabled charset.

    There is no per-class minimum: every position is a uniform draw over the
    whole charset. A non-positive length yields an empty string.
    """
    charset = build_charset(config)
    return "".join(_pick(charset, rng) for _ in range(max(config.length, 0)))


def synthesize_username(pattern: Optional[str], rng: RandomSource = _SYSTEM) -> str:
    """Expand *pattern* into a username.

    Each placeholder occurrence draws independently. Words are substituted
    before wildcards are scanned, so characters inside a substituted word
    are never treated as ``#`` or ``?``; the word lists contain neither.
    """
    if not pattern:
        pattern = DEFAULT_PATTERN

    def word(match: re.Match[str]) -> str:
        token = match.group(1)
        if token == "adjective":
            return _pick(ADJECTIVES, rng)
        if token == "noun":
            return _pick(NOUNS, rng)
        return str(rng.randbelow(1000))

    expanded = _PLACEHOLDER.sub(word, pattern)

    out = []
    for ch in expanded:
        if ch == "#":
            out.append(_pick(DIGITS, rng))
        elif ch == "?":
            out.append(_pick(LOWERCASE, rng))
        else:
            out.append(ch)
    return "".join(out)


def resolve_username(config: GenerateConfig, rng: RandomSource = _SYSTEM) -> str:
    """Manual username when one is given, otherwise the pattern expansion."""
    if config.username_mode == "manual" and config.username.strip():
        return config.username
    return synthesize_username(config.pattern, rng)
