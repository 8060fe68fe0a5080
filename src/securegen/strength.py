"""Heuristic strength score for a password configuration.

Advisory only: nothing is rejected on the basis of this score.
"""

from __future__ import annotations

from pydantic import BaseModel

from .models import GenerateConfig

# (lower bound, label); a score on a boundary belongs to the higher band.
_BANDS = (
    (90, "Very Strong"),
    (70, "Strong"),
    (40, "Moderate"),
    (0, "Weak"),
)


class StrengthReport(BaseModel):
    score: int
    label: str


def strength_label(score: int) -> str:
    for floor, label in _BANDS:
        if score >= floor:
            return label
    return "Weak"


def estimate_strength(config: GenerateConfig) -> StrengthReport:
    length = config.length
    score = min(length * 4, 50)
    variety = 1  # lowercase

    if config.use_uppercase:
        score += 15
        variety += 1
    if config.use_numbers:
        score += 15
        variety += 1
    if config.use_symbols:
        score += 20
        variety += 1

    if length < 8:
        score = min(score, 20)
    elif variety < 2 and length < 20:
        score -= 10

    score = max(0, min(score, 100))
    return StrengthReport(score=score, label=strength_label(score))
