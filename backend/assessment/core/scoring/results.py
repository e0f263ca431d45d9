"""
Immutable score records produced by the scoring pipeline.

Records are frozen; post-processing steps such as confidence-interval
enrichment return new instances via ``dataclasses.replace`` instead of
mutating the ones a strategy produced.
"""
from dataclasses import dataclass, field
from typing import Any, Optional
from uuid import UUID

from assessment.models.models import AssessmentGoal


@dataclass(frozen=True)
class IndicatorScore:
    """Score for one behavioral indicator within one session."""

    indicator_id: UUID
    indicator_title: str
    weight: float
    score: float
    max_score: float
    percentage: float
    questions_answered: int
    indicator_description: Optional[str] = None
    proficiency_label: Optional[str] = None


@dataclass(frozen=True)
class CompetencyScore:
    """Weighted roll-up of a competency's indicator scores.

    ``sem``, ``ci_lower``, ``ci_upper`` and ``cronbach_alpha`` stay None
    unless reliability data exists for the competency.
    """

    competency_id: UUID
    competency_name: str
    score: float
    max_score: float
    percentage: float
    questions_answered: int
    indicator_scores: tuple[IndicatorScore, ...] = ()
    onet_code: Optional[str] = None
    questions_correct: Optional[int] = None

    # Measurement precision
    sem: Optional[float] = None
    ci_lower: Optional[float] = None
    ci_upper: Optional[float] = None
    cronbach_alpha: Optional[float] = None
    # Rank among historical samples for the competency (0-100)
    percentile: Optional[int] = None

    # Interpretation
    insufficient_evidence: bool = False
    evidence_note: Optional[str] = None
    benchmark_score: Optional[float] = None
    proficiency_label: Optional[str] = None

    @property
    def has_confidence_interval(self) -> bool:
        return self.ci_lower is not None and self.ci_upper is not None


@dataclass(frozen=True)
class TeamFitMetrics:
    """Diversity/saturation balance of a candidate against team thresholds."""

    diversity_ratio: float
    saturation_ratio: float
    team_fit_multiplier: float
    diversity_count: int
    saturation_count: int
    gap_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "diversity_ratio": self.diversity_ratio,
            "saturation_ratio": self.saturation_ratio,
            "team_fit_multiplier": self.team_fit_multiplier,
            "diversity_count": self.diversity_count,
            "saturation_count": self.saturation_count,
            "gap_count": self.gap_count,
        }


@dataclass(frozen=True)
class ScoringResult:
    """Transient output of a scoring strategy.

    Not persisted directly; the caller converts it to whatever result entity
    or response payload it needs.
    """

    goal: Optional[AssessmentGoal]
    overall_score: float
    overall_percentage: float
    passed: bool
    competency_scores: tuple[CompetencyScore, ...] = ()
    extended_metrics: dict[str, Any] = field(default_factory=dict)
    big_five_profile: Optional[dict[str, float]] = None
    team_fit_metrics: Optional[TeamFitMetrics] = None
    consistency_score: Optional[float] = None
    consistency_flags: tuple[str, ...] = ()
