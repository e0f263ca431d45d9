"""
Indicator and competency accumulators shared by every scoring strategy.

One accumulator is created per indicator/competency per scoring run and
discarded once it has produced its score record, so concurrent runs never
share state.

Competency roll-up is weighted by indicator weight:

    percentage = sum(w_k * p_k) / sum(w_k)
    score      = sum(w_k * indicator_score_k)
    max_score  = sum(w_k * indicator_max_score_k)

With every weight at 1.0 the percentage is the plain mean of the indicator
percentages.
"""
from typing import Any, Optional
from uuid import UUID

from assessment.core.scoring.results import CompetencyScore, IndicatorScore

UNKNOWN_INDICATOR_TITLE = "Unknown Indicator"
UNKNOWN_COMPETENCY_NAME = "Unknown Competency"
DEFAULT_INDICATOR_WEIGHT = 1.0


class IndicatorAggregation:
    """Sums normalized (0-1) answer scores for one indicator."""

    __slots__ = ("indicator_id", "total_score", "total_max_score", "question_count")

    def __init__(self, indicator_id: UUID):
        self.indicator_id = indicator_id
        self.total_score = 0.0
        self.total_max_score = 0.0
        self.question_count = 0

    def add_answer(self, normalized_score: float) -> None:
        self.total_score += normalized_score
        self.total_max_score += 1.0  # each normalized answer is worth at most 1.0
        self.question_count += 1

    @property
    def percentage(self) -> float:
        if self.total_max_score <= 0:
            return 0.0
        return (self.total_score / self.total_max_score) * 100.0

    def to_score(self, indicator: Optional[Any]) -> IndicatorScore:
        """Build the indicator's score record; ``indicator`` may be None."""
        weight = getattr(indicator, "weight", None)
        return IndicatorScore(
            indicator_id=self.indicator_id,
            indicator_title=(
                indicator.title if indicator is not None else UNKNOWN_INDICATOR_TITLE
            ),
            indicator_description=getattr(indicator, "description", None),
            weight=float(weight) if weight is not None else DEFAULT_INDICATOR_WEIGHT,
            score=self.total_score,
            max_score=self.total_max_score,
            percentage=self.percentage,
            questions_answered=self.question_count,
        )


class CompetencyAggregation:
    """Weighted roll-up of indicator scores for one competency."""

    def __init__(self, competency_id: UUID):
        self.competency_id = competency_id
        self.weighted_percentage_sum = 0.0
        self.total_weight = 0.0
        self.total_score = 0.0
        self.total_max_score = 0.0
        self.question_count = 0
        self.indicator_scores: list[IndicatorScore] = []

    def add_indicator(
        self, indicator_score: IndicatorScore, aggregation: IndicatorAggregation
    ) -> None:
        weight = indicator_score.weight
        self.weighted_percentage_sum += weight * indicator_score.percentage
        self.total_weight += weight
        self.total_score += weight * aggregation.total_score
        self.total_max_score += weight * aggregation.total_max_score
        self.question_count += aggregation.question_count
        self.indicator_scores.append(indicator_score)

    @property
    def weighted_percentage(self) -> float:
        if self.total_weight <= 0:
            return 0.0
        return self.weighted_percentage_sum / self.total_weight

    def to_score(self, competency: Optional[Any]) -> CompetencyScore:
        """Build the competency's score record; ``competency`` may be None."""
        return CompetencyScore(
            competency_id=self.competency_id,
            competency_name=(
                competency.name if competency is not None else UNKNOWN_COMPETENCY_NAME
            ),
            score=self.total_score,
            max_score=self.total_max_score,
            percentage=self.weighted_percentage,
            questions_answered=self.question_count,
            onet_code=getattr(competency, "onet_code", None),
            indicator_scores=tuple(self.indicator_scores),
        )
