"""
Proficiency labels for percentage scores.

Five levels, with English and Russian labels:

    85-100  Expert       / Эксперт
    70-84   Advanced     / Опытный
    50-69   Proficient   / Компетентный
    30-49   Developing   / Развивающийся
    0-29    Beginning    / Начальный
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ScoreInterpretation:
    label: str
    level: str


# (lower bound, level, English label, Russian label), highest band first
_BANDS = (
    (85.0, "EXPERT", "Expert", "Эксперт"),
    (70.0, "ADVANCED", "Advanced", "Опытный"),
    (50.0, "PROFICIENT", "Proficient", "Компетентный"),
    (30.0, "DEVELOPING", "Developing", "Развивающийся"),
    (float("-inf"), "BEGINNING", "Beginning", "Начальный"),
)

SUPPORTED_LOCALES = ("en", "ru")


def interpret_score(percentage: float, locale: Optional[str] = "en") -> ScoreInterpretation:
    """
    Map a 0-100 percentage to a proficiency level.

    Unsupported or missing locales fall back to English.

    Example:
        >>> interpret_score(72.5).label
        'Advanced'
        >>> interpret_score(90, "ru").level
        'EXPERT'
    """
    use_russian = (locale or "en").lower() == "ru"
    for lower_bound, level, english, russian in _BANDS:
        if percentage >= lower_bound:
            return ScoreInterpretation(label=russian if use_russian else english, level=level)
    # Unreachable for real numbers; NaN lands here
    return ScoreInterpretation(label="Начальный" if use_russian else "Beginning", level="BEGINNING")
