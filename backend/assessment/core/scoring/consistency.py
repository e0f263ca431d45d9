"""
Response consistency analysis.

Looks at every answer in a session for three engagement signals and blends
them into a composite score between 0 and 1:

- Speed anomaly rate: share of answered questions completed in under
  3 seconds.
- Straight-lining rate: how often the single most common Likert value was
  chosen, as a share of all Likert answers.
- Intra-competency variance: sample variance of normalized scores within
  each competency that has at least 3 answers, averaged across those
  competencies. Very low variance suggests disengagement, very high
  variance suggests random answering.

    consistency = 0.3 * (1 - speed) + 0.3 * (1 - straight) + 0.4 * variance_factor

Flags are advisory text generated from separate thresholds; they never
block scoring.
"""
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence
from uuid import UUID

import numpy as np

from assessment.core.scoring.normalizer import ScoreNormalizer, default_normalizer
from assessment.core.scoring.precision import round_half_up

logger = logging.getLogger(__name__)

# Answers faster than this cannot have been read properly
MIN_RESPONSE_TIME_SECONDS = 3

# Minimum answers in a competency group before its variance is meaningful
MIN_ANSWERS_FOR_VARIANCE = 3

# Composite score weights
SPEED_WEIGHT = 0.3
STRAIGHT_LINING_WEIGHT = 0.3
VARIANCE_WEIGHT = 0.4

# Variance factor bands (normalized scores, so variance is in [0, 0.25] for
# a two-point distribution and rarely above 1.0)
NORMAL_VARIANCE_LOW = 0.05
NORMAL_VARIANCE_HIGH = 0.4
MAX_VARIANCE = 1.0
NEUTRAL_VARIANCE_FACTOR = 0.7

# Flag thresholds
SPEED_ANOMALY_FLAG_RATE = 0.2
STRAIGHT_LINING_THRESHOLD = 0.70
LOW_VARIANCE_FLAG = 0.02
HIGH_VARIANCE_FLAG = 0.6


@dataclass(frozen=True)
class ConsistencyResult:
    """Outcome of a consistency analysis.

    ``intra_competency_variance`` is None when no competency had enough
    answers to compute a variance.
    """

    consistency_score: float
    flags: list[str] = field(default_factory=list)
    speed_anomaly_rate: float = 0.0
    straight_lining_rate: float = 0.0
    intra_competency_variance: Optional[float] = None

    def to_metrics(self) -> dict[str, Any]:
        return {
            "consistency_score": self.consistency_score,
            "consistency_flags": list(self.flags),
            "speed_anomaly_rate": self.speed_anomaly_rate,
            "straight_lining_rate": self.straight_lining_rate,
        }


def is_answered(answer: Any) -> bool:
    """An answer counts as answered when it is not skipped and has a timestamp."""
    return not getattr(answer, "is_skipped", False) and answer.answered_at is not None


def extract_competency_id(answer: Any) -> Optional[UUID]:
    """Follow answer -> question -> indicator -> competency, None on any gap."""
    question = getattr(answer, "question", None)
    indicator = getattr(question, "behavioral_indicator", None)
    competency = getattr(indicator, "competency", None)
    if competency is not None:
        return competency.id
    return getattr(indicator, "competency_id", None)


def variance_factor(avg_variance: Optional[float]) -> float:
    """
    Map average intra-competency variance onto [0, 1].

    1.0 inside the normal band [0.05, 0.4]; a linear ramp from 0.0 at zero
    variance up to the band; a linear ramp down to 0.0 at variance 1.0 and
    beyond. Without variance data the neutral 0.7 is used.
    """
    if avg_variance is None:
        return NEUTRAL_VARIANCE_FACTOR
    if NORMAL_VARIANCE_LOW <= avg_variance <= NORMAL_VARIANCE_HIGH:
        return 1.0
    if avg_variance < NORMAL_VARIANCE_LOW:
        return max(0.0, avg_variance / NORMAL_VARIANCE_LOW)
    return max(
        0.0,
        1.0 - (avg_variance - NORMAL_VARIANCE_HIGH) / (MAX_VARIANCE - NORMAL_VARIANCE_HIGH),
    )


class ResponseConsistencyAnalyzer:
    """Detects disengaged, rushed or patterned answering in a session."""

    def __init__(self, normalizer: Optional[ScoreNormalizer] = None):
        self._normalizer = normalizer or default_normalizer

    def analyze(self, answers: Optional[Sequence[Any]]) -> ConsistencyResult:
        """
        Analyze response consistency for all answers of one session.

        Args:
            answers: Every answer in the session, skipped ones included

        Returns:
            ConsistencyResult; an empty session scores a perfect 1.0 with no flags
        """
        if not answers:
            return ConsistencyResult(consistency_score=1.0)

        answered = [a for a in answers if is_answered(a)]
        speed_anomaly_count = sum(
            1
            for a in answered
            if a.time_spent_seconds is not None
            and a.time_spent_seconds < MIN_RESPONSE_TIME_SECONDS
        )
        speed_anomaly_rate = speed_anomaly_count / len(answered) if answered else 0.0
        straight_lining_rate = self._straight_lining_rate(answers)
        avg_variance = self._intra_competency_variance(answered)

        score = (
            SPEED_WEIGHT * (1.0 - speed_anomaly_rate)
            + STRAIGHT_LINING_WEIGHT * (1.0 - straight_lining_rate)
            + VARIANCE_WEIGHT * variance_factor(avg_variance)
        )
        consistency_score = round_half_up(score, 2)

        flags = self._build_flags(
            speed_anomaly_count, len(answered), speed_anomaly_rate,
            straight_lining_rate, avg_variance,
        )

        variance_text = f"{avg_variance:.4f}" if avg_variance is not None else "n/a"
        logger.debug(
            f"Consistency analysis: score={consistency_score:.2f}, "
            f"speed_anomaly={speed_anomaly_rate:.2f}, "
            f"straight_lining={straight_lining_rate:.2f}, "
            f"avg_variance={variance_text}, flags={len(flags)}"
        )

        return ConsistencyResult(
            consistency_score=consistency_score,
            flags=flags,
            speed_anomaly_rate=speed_anomaly_rate,
            straight_lining_rate=straight_lining_rate,
            intra_competency_variance=avg_variance,
        )

    @staticmethod
    def _straight_lining_rate(answers: Sequence[Any]) -> float:
        likert_values = [
            a.likert_value for a in answers if getattr(a, "likert_value", None) is not None
        ]
        if not likert_values:
            return 0.0
        _, max_frequency = Counter(likert_values).most_common(1)[0]
        return max_frequency / len(likert_values)

    def _intra_competency_variance(self, answered: Sequence[Any]) -> Optional[float]:
        scores_by_competency: dict[UUID, list[float]] = defaultdict(list)
        for answer in answered:
            competency_id = extract_competency_id(answer)
            if competency_id is None:
                continue
            scores_by_competency[competency_id].append(self._normalizer.normalize(answer))

        variances = [
            float(np.var(scores, ddof=1))
            for scores in scores_by_competency.values()
            if len(scores) >= MIN_ANSWERS_FOR_VARIANCE
        ]
        if not variances:
            return None
        return float(np.mean(variances))

    @staticmethod
    def _build_flags(
        speed_anomaly_count: int,
        answered_count: int,
        speed_anomaly_rate: float,
        straight_lining_rate: float,
        avg_variance: Optional[float],
    ) -> list[str]:
        flags: list[str] = []

        if speed_anomaly_rate > SPEED_ANOMALY_FLAG_RATE:
            flags.append(
                f"Speed anomaly: {speed_anomaly_count} of {answered_count} answers "
                f"were completed in under {MIN_RESPONSE_TIME_SECONDS} seconds"
            )

        if straight_lining_rate > STRAIGHT_LINING_THRESHOLD:
            pct = int(round_half_up(straight_lining_rate * 100, 0))
            flags.append(
                f"Straight-lining detected: {pct}% of Likert responses used the same value"
            )

        if avg_variance is not None:
            if avg_variance < LOW_VARIANCE_FLAG:
                flags.append("Low response variance suggests possible disengagement")
            if avg_variance > HIGH_VARIANCE_FLAG:
                flags.append("High response variance suggests inconsistent engagement")

        return flags
