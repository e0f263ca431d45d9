"""
Answer normalization to a common 0-1 scale.

Every question type is mapped to a scoring family:

- Likert (LIKERT, LIKERT_SCALE, FREQUENCY_SCALE): ``(value - 1) / 4`` on the
  stored 1-5 value, clamped into range first.
- Situational judgment (SJT, SITUATIONAL_JUDGMENT): the pre-computed option
  score, clamped to [0, 1].
- Multiple choice (MCQ, MULTIPLE_CHOICE): the stored score (0 or 1).
- Capability (CAPABILITY_ASSESSMENT, PEER_FEEDBACK): Likert value when
  present, otherwise the clamped score.
- Text (BEHAVIORAL_EXAMPLE, OPEN_TEXT, SELF_REFLECTION): the clamped manual
  grade. An ungraded answer scores 0.0 without complaint.

Skipped and missing answers score 0.0. An answer whose question type cannot
be resolved falls back to its clamped score and is logged as a warning.

``normalize`` has no side effects beyond logging, so the same instance is
shared by every scoring strategy and by the consistency analyzer.
"""
import enum
import logging
from typing import Any, Optional

from assessment.models.models import QuestionType

logger = logging.getLogger(__name__)

LIKERT_MIN = 1
LIKERT_MAX = 5


class ScoringFamily(str, enum.Enum):
    """How a question type's raw answer is turned into a 0-1 score."""

    LIKERT = "likert"
    SITUATIONAL = "situational"
    CHOICE = "choice"
    CAPABILITY = "capability"
    TEXT = "text"


QUESTION_TYPE_FAMILIES: dict[QuestionType, ScoringFamily] = {
    QuestionType.LIKERT: ScoringFamily.LIKERT,
    QuestionType.LIKERT_SCALE: ScoringFamily.LIKERT,
    QuestionType.FREQUENCY_SCALE: ScoringFamily.LIKERT,
    QuestionType.SJT: ScoringFamily.SITUATIONAL,
    QuestionType.SITUATIONAL_JUDGMENT: ScoringFamily.SITUATIONAL,
    QuestionType.MCQ: ScoringFamily.CHOICE,
    QuestionType.MULTIPLE_CHOICE: ScoringFamily.CHOICE,
    QuestionType.CAPABILITY_ASSESSMENT: ScoringFamily.CAPABILITY,
    QuestionType.PEER_FEEDBACK: ScoringFamily.CAPABILITY,
    QuestionType.BEHAVIORAL_EXAMPLE: ScoringFamily.TEXT,
    QuestionType.OPEN_TEXT: ScoringFamily.TEXT,
    QuestionType.SELF_REFLECTION: ScoringFamily.TEXT,
}


def _clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def likert_to_unit(value: int) -> float:
    """Map a 1-5 Likert value to 0-1, clamping out-of-range values."""
    clamped = max(LIKERT_MIN, min(LIKERT_MAX, int(value)))
    return (clamped - LIKERT_MIN) / (LIKERT_MAX - LIKERT_MIN)


def resolve_question_type(answer: Any) -> Optional[QuestionType]:
    """
    Return the answer's question type, or None if it cannot be determined.

    Accepts enum members or their string values so that answers built from
    serialized payloads normalize the same way as ORM-loaded ones.
    """
    question = getattr(answer, "question", None)
    raw_type = getattr(question, "question_type", None)
    if raw_type is None or isinstance(raw_type, QuestionType):
        return raw_type
    try:
        return QuestionType(str(raw_type).upper())
    except ValueError:
        return None


class ScoreNormalizer:
    """Converts a single answer of any question type into a 0-1 score."""

    def normalize(self, answer: Any) -> float:
        """
        Normalize a raw answer score to the 0-1 scale.

        Args:
            answer: A TestAnswer (or any object exposing ``is_skipped``,
                ``likert_value``, ``score`` and ``question.question_type``)

        Returns:
            Normalized score in [0, 1]; 0.0 for null, skipped or ungraded answers
        """
        if answer is None or getattr(answer, "is_skipped", False):
            return 0.0

        question_type = resolve_question_type(answer)
        family = QUESTION_TYPE_FAMILIES.get(question_type) if question_type else None
        if family is None:
            logger.warning(
                f"Cannot determine question type for answer {getattr(answer, 'id', None)}, "
                "falling back to stored score"
            )
            return self._score_fallback(answer)

        if family is ScoringFamily.LIKERT:
            return self._normalize_likert(answer)
        if family is ScoringFamily.SITUATIONAL:
            return self._normalize_clamped_score(answer, "SJT")
        if family is ScoringFamily.CHOICE:
            return self._normalize_choice(answer)
        if family is ScoringFamily.CAPABILITY:
            return self._normalize_capability(answer)
        return self._normalize_clamped_score(answer, "Text-based")

    def _normalize_likert(self, answer: Any) -> float:
        if answer.likert_value is None:
            logger.debug(f"Likert answer {answer.id} has no likert_value, defaulting to 0")
            return 0.0
        return likert_to_unit(answer.likert_value)

    def _normalize_choice(self, answer: Any) -> float:
        # Stored as 1.0 (correct) or 0.0 (incorrect) at submission time
        if answer.score is None:
            return 0.0
        return _clamp_unit(answer.score)

    def _normalize_capability(self, answer: Any) -> float:
        if answer.likert_value is not None:
            return likert_to_unit(answer.likert_value)
        if answer.score is not None:
            return _clamp_unit(answer.score)
        logger.debug(
            f"Capability answer {answer.id} has no likert_value or score, defaulting to 0"
        )
        return 0.0

    def _normalize_clamped_score(self, answer: Any, label: str) -> float:
        if answer.score is not None:
            return _clamp_unit(answer.score)
        logger.debug(f"{label} answer {answer.id} has no score yet, defaulting to 0")
        return 0.0

    def _score_fallback(self, answer: Any) -> float:
        score = getattr(answer, "score", None)
        if score is not None:
            return _clamp_unit(score)
        logger.warning(
            f"No score available for answer {getattr(answer, 'id', None)}, defaulting to 0"
        )
        return 0.0


# Stateless, safe to share across threads
default_normalizer = ScoreNormalizer()
