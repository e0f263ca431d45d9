"""
Goal-specific scoring strategies.

Every strategy runs the same two-level roll-up:

1. Normalize each answered question (``ScoreNormalizer``) and sum the
   results per behavioral indicator (``IndicatorAggregation``).
2. Roll indicators up into their competency with indicator weights
   (``CompetencyAggregation``).

The overall result is then

    overall_score      = sum(competency score)
    overall_percentage = sum(competency score) / sum(competency max) * 100
    passed             = meets_threshold(overall_percentage, template.passing_score)

and each goal layers its own interpretation on top:

- Overview: evidence sufficiency, proficiency labels, strength/gap profile.
- Job fit: O*NET benchmark propagation and the strictness-adjusted
  requirement threshold.
- Team fit: diversity/saturation balance and a Big Five trait profile.

Strategies are selected by assessment goal through the explicit table built
by ``create_strategy_table``. Goals without an entry are scored by
``LegacyScoringStrategy``, which groups raw stored scores by competency so a
result is always produced.

No strategy raises for an empty answer list; the result is simply zero.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Protocol, Sequence
from uuid import UUID

from assessment.core.assembly.blueprints import blueprint_for_goal
from assessment.core.assembly.name_matching import CompetencyNameMatcher
from assessment.core.config import settings
from assessment.core.lookups import BenchmarkLookup, CompetencyLookup
from assessment.core.scoring.aggregation import (
    UNKNOWN_COMPETENCY_NAME,
    CompetencyAggregation,
    IndicatorAggregation,
)
from assessment.core.scoring.interpretation import interpret_score
from assessment.core.scoring.normalizer import ScoreNormalizer, default_normalizer
from assessment.core.scoring.precision import meets_threshold
from assessment.core.scoring.results import (
    CompetencyScore,
    ScoringResult,
    TeamFitMetrics,
)
from assessment.models.models import AssessmentGoal

logger = logging.getLogger(__name__)

# Profile pattern categories, in report order
SIGNATURE_STRENGTH = "SIGNATURE_STRENGTH"
STRENGTH = "STRENGTH"
DEVELOPING = "DEVELOPING"
CRITICAL_GAP = "CRITICAL_GAP"
AVERAGE = "AVERAGE"
PROFILE_CATEGORIES = (SIGNATURE_STRENGTH, STRENGTH, DEVELOPING, CRITICAL_GAP, AVERAGE)

# O*NET benchmarks are stored on the 0-1 passport scale
BENCHMARK_TO_PERCENT = 100.0


class ScoringStrategy(Protocol):
    """
    Protocol for goal-specific scoring.

    ``goal`` is the assessment goal a strategy handles (None for the legacy
    fallback).
    """

    goal: Optional[AssessmentGoal]

    def calculate(self, session: Any, answers: Sequence[Any]) -> ScoringResult:
        """
        Score one session.

        Args:
            session: The TestSession (its template supplies goal, pass mark
                and blueprint)
            answers: All answers recorded for the session

        Returns:
            ScoringResult for the session; zero scores when nothing was answered
        """
        ...


def resolve_passing_score(session: Any) -> float:
    """Template pass mark, or the configured default when unset."""
    template = getattr(session, "template", None)
    passing_score = getattr(template, "passing_score", None)
    return passing_score if passing_score is not None else settings.DEFAULT_PASSING_SCORE


def extract_indicator_id(answer: Any) -> Optional[UUID]:
    """Indicator id from answer -> question, None if the chain is broken."""
    question = getattr(answer, "question", None)
    if question is None:
        return None
    if question.behavioral_indicator_id is not None:
        return question.behavioral_indicator_id
    indicator = getattr(question, "behavioral_indicator", None)
    return indicator.id if indicator is not None else None


@dataclass
class RollupOutcome:
    """Intermediate product of the shared indicator -> competency roll-up."""

    competency_scores: list[CompetencyScore] = field(default_factory=list)
    competencies: dict[UUID, Any] = field(default_factory=dict)
    indicator_count: int = 0
    answered_count: int = 0

    @property
    def total_score(self) -> float:
        return sum(cs.score for cs in self.competency_scores)

    @property
    def total_max_score(self) -> float:
        return sum(cs.max_score for cs in self.competency_scores)

    @property
    def overall_percentage(self) -> float:
        total_max = self.total_max_score
        if total_max <= 0:
            return 0.0
        return self.total_score / total_max * 100.0


class IndicatorRollupStrategy:
    """Shared machinery for the weighted indicator -> competency strategies."""

    goal: Optional[AssessmentGoal] = None

    def __init__(
        self,
        normalizer: Optional[ScoreNormalizer] = None,
        competency_lookup: Optional[CompetencyLookup] = None,
    ):
        self._normalizer = normalizer or default_normalizer
        self._competency_lookup = competency_lookup

    def calculate(self, session: Any, answers: Sequence[Any]) -> ScoringResult:
        rollup = self.rollup(answers)
        overall_percentage = rollup.overall_percentage
        passing_score = resolve_passing_score(session)
        result = ScoringResult(
            goal=self.goal,
            overall_score=rollup.total_score,
            overall_percentage=overall_percentage,
            passed=meets_threshold(overall_percentage, passing_score),
            competency_scores=tuple(rollup.competency_scores),
        )
        return self.interpret(session, answers, rollup, result)

    def interpret(
        self,
        session: Any,
        answers: Sequence[Any],
        rollup: RollupOutcome,
        result: ScoringResult,
    ) -> ScoringResult:
        """Goal-specific enrichment of the base result. Default: none."""
        return result

    def rollup(self, answers: Sequence[Any]) -> RollupOutcome:
        """Normalize answers and aggregate them per indicator, then per competency."""
        indicator_aggs: dict[UUID, IndicatorAggregation] = {}
        indicators: dict[UUID, Any] = {}
        answered_count = 0

        for answer in answers:
            if getattr(answer, "is_skipped", False) or answer.answered_at is None:
                continue

            indicator_id = extract_indicator_id(answer)
            if indicator_id is None:
                logger.warning(
                    f"Skipping answer {getattr(answer, 'id', None)} - "
                    "unable to extract indicator ID"
                )
                continue

            answered_count += 1
            if indicator_id not in indicator_aggs:
                indicator_aggs[indicator_id] = IndicatorAggregation(indicator_id)
                indicators[indicator_id] = answer.question.behavioral_indicator
            indicator_aggs[indicator_id].add_answer(self._normalizer.normalize(answer))

        logger.debug(
            f"Aggregated {len(indicator_aggs)} indicators from {len(answers)} answers"
        )

        competency_ids = {
            cid
            for cid in (self._competency_id_of(ind) for ind in indicators.values())
            if cid is not None
        }
        competencies = self._load_competencies(competency_ids, indicators.values())

        competency_aggs: dict[UUID, CompetencyAggregation] = {}
        for indicator_id, indicator_agg in indicator_aggs.items():
            indicator = indicators.get(indicator_id)
            competency_id = self._competency_id_of(indicator)
            if competency_id is None:
                logger.warning(f"Skipping indicator {indicator_id} - competency not found")
                continue

            indicator_score = indicator_agg.to_score(indicator)
            if competency_id not in competency_aggs:
                competency_aggs[competency_id] = CompetencyAggregation(competency_id)
            competency_aggs[competency_id].add_indicator(indicator_score, indicator_agg)

            logger.debug(
                f"Indicator {indicator_score.indicator_title}: "
                f"{indicator_agg.question_count} questions, "
                f"score {indicator_agg.total_score:.2f}/{indicator_agg.total_max_score:.2f} "
                f"({indicator_score.percentage:.2f}%)"
            )

        competency_scores = []
        for competency_id, competency_agg in competency_aggs.items():
            competency = competencies.get(competency_id)
            if competency is None:
                logger.warning(
                    f"Competency {competency_id} could not be loaded, "
                    f"reporting as '{UNKNOWN_COMPETENCY_NAME}'"
                )
            competency_scores.append(competency_agg.to_score(competency))

        return RollupOutcome(
            competency_scores=competency_scores,
            competencies=competencies,
            indicator_count=len(indicator_aggs),
            answered_count=answered_count,
        )

    @staticmethod
    def _competency_id_of(indicator: Any) -> Optional[UUID]:
        if indicator is None:
            return None
        if indicator.competency_id is not None:
            return indicator.competency_id
        competency = getattr(indicator, "competency", None)
        return competency.id if competency is not None else None

    def _load_competencies(
        self, competency_ids: set[UUID], indicators: Any
    ) -> dict[UUID, Any]:
        if not competency_ids:
            return {}
        if self._competency_lookup is not None:
            loaded = self._competency_lookup.get_competencies(competency_ids)
            missing = competency_ids - set(loaded)
            if missing:
                logger.warning(f"Missing competencies during batch load: {sorted(map(str, missing))}")
            return dict(loaded)
        # No loader configured: use the competencies already attached to indicators
        return {
            ind.competency.id: ind.competency
            for ind in indicators
            if ind is not None and getattr(ind, "competency", None) is not None
        }

    @staticmethod
    def questions_correct(competency_score: CompetencyScore) -> int:
        if competency_score.max_score <= 0:
            return 0
        return round(competency_score.percentage / 100.0 * competency_score.questions_answered)


class OverviewScoringStrategy(IndicatorRollupStrategy):
    """Universal baseline scoring with a strengths/gaps profile."""

    goal = AssessmentGoal.OVERVIEW

    def __init__(
        self,
        normalizer: Optional[ScoreNormalizer] = None,
        competency_lookup: Optional[CompetencyLookup] = None,
        *,
        min_questions_per_competency: Optional[int] = None,
        strength_threshold: Optional[float] = None,
        development_threshold: Optional[float] = None,
        critical_gap_threshold: Optional[float] = None,
        profile_band_width: Optional[float] = None,
        locale: str = "en",
    ):
        super().__init__(normalizer, competency_lookup)
        self.min_questions_per_competency = (
            min_questions_per_competency or settings.OVERVIEW_MIN_QUESTIONS_PER_COMPETENCY
        )
        self.strength_threshold = _setting_or(
            strength_threshold, settings.OVERVIEW_STRENGTH_THRESHOLD
        )
        self.development_threshold = _setting_or(
            development_threshold, settings.OVERVIEW_DEVELOPMENT_THRESHOLD
        )
        self.critical_gap_threshold = _setting_or(
            critical_gap_threshold, settings.OVERVIEW_CRITICAL_GAP_THRESHOLD
        )
        self.profile_band_width = _setting_or(
            profile_band_width, settings.OVERVIEW_PROFILE_BAND_WIDTH
        )
        self.locale = locale

    def interpret(self, session, answers, rollup, result):
        labelled = [self._label(cs) for cs in result.competency_scores]
        profile = self.profile_pattern(labelled, result.overall_percentage)

        logger.info(
            f"Overview score calculated: {result.overall_percentage:.2f}% with "
            f"{len(labelled)} competencies, {rollup.indicator_count} indicators; "
            f"profile {list(profile)}"
        )
        return replace(
            result,
            competency_scores=tuple(labelled),
            extended_metrics={**result.extended_metrics, "profile_pattern": profile},
        )

    def _label(self, cs: CompetencyScore) -> CompetencyScore:
        indicator_scores = tuple(
            replace(ind, proficiency_label=interpret_score(ind.percentage, self.locale).label)
            for ind in cs.indicator_scores
        )
        updates: dict[str, Any] = {
            "indicator_scores": indicator_scores,
            "proficiency_label": interpret_score(cs.percentage, self.locale).label,
        }
        if cs.questions_answered < self.min_questions_per_competency:
            updates["insufficient_evidence"] = True
            updates["evidence_note"] = (
                f"Score based on {cs.questions_answered} question(s); "
                f"minimum {self.min_questions_per_competency} required"
            )
            logger.debug(
                f"Insufficient evidence for competency {cs.competency_name}: "
                f"{cs.questions_answered} questions (min {self.min_questions_per_competency})"
            )
        return replace(cs, **updates)

    def classify(self, percentage: float, overall_percentage: float) -> str:
        """Profile category for one competency relative to the overall score."""
        if (
            percentage >= overall_percentage + self.profile_band_width
            and percentage >= self.strength_threshold
        ):
            return SIGNATURE_STRENGTH
        if percentage >= self.strength_threshold:
            return STRENGTH
        if percentage < self.critical_gap_threshold:
            return CRITICAL_GAP
        if percentage >= self.development_threshold:
            return DEVELOPING
        return AVERAGE

    def profile_pattern(
        self, competency_scores: Sequence[CompetencyScore], overall_percentage: float
    ) -> dict[str, list[str]]:
        """Competency names grouped by category; empty categories are omitted."""
        pattern: dict[str, list[str]] = {category: [] for category in PROFILE_CATEGORIES}
        for cs in competency_scores:
            pattern[self.classify(cs.percentage, overall_percentage)].append(cs.competency_name)
        return {category: names for category, names in pattern.items() if names}


class JobFitScoringStrategy(IndicatorRollupStrategy):
    """Targeted fit scoring against an O*NET occupation profile."""

    goal = AssessmentGoal.JOB_FIT

    def __init__(
        self,
        normalizer: Optional[ScoreNormalizer] = None,
        competency_lookup: Optional[CompetencyLookup] = None,
        benchmark_lookup: Optional[BenchmarkLookup] = None,
        *,
        name_matcher: Optional[CompetencyNameMatcher] = None,
        base_threshold: Optional[float] = None,
        strictness_max_adjustment: Optional[float] = None,
        min_questions_per_competency: Optional[int] = None,
    ):
        super().__init__(normalizer, competency_lookup)
        self._benchmark_lookup = benchmark_lookup
        self._name_matcher = name_matcher or CompetencyNameMatcher()
        self.base_threshold = _setting_or(base_threshold, settings.JOB_FIT_BASE_THRESHOLD)
        self.strictness_max_adjustment = _setting_or(
            strictness_max_adjustment, settings.JOB_FIT_STRICTNESS_MAX_ADJUSTMENT
        )
        self.min_questions_per_competency = (
            min_questions_per_competency or settings.JOB_FIT_MIN_QUESTIONS_PER_COMPETENCY
        )

    def effective_threshold(self, strictness_level: int) -> float:
        """Required share (0-1) of the maximum: higher strictness raises the bar."""
        return self.base_threshold + (strictness_level / 100.0) * self.strictness_max_adjustment

    def interpret(self, session, answers, rollup, result):
        template = getattr(session, "template", None)
        blueprint = blueprint_for_goal(getattr(template, "blueprint", None), AssessmentGoal.JOB_FIT)
        soc_code = blueprint.onet_soc_code if blueprint else None
        strictness = blueprint.strictness_level if blueprint else 50

        benchmarks = self._load_benchmarks(soc_code)
        scores = []
        for cs in result.competency_scores:
            updates: dict[str, Any] = {"questions_correct": self.questions_correct(cs)}
            benchmark = self._match_benchmark(cs, rollup.competencies.get(cs.competency_id), benchmarks)
            if benchmark is not None:
                updates["benchmark_score"] = benchmark * BENCHMARK_TO_PERCENT
            if cs.questions_answered < self.min_questions_per_competency:
                updates["insufficient_evidence"] = True
                updates["evidence_note"] = (
                    f"Only {cs.questions_answered} of "
                    f"{self.min_questions_per_competency} minimum questions answered"
                )
                logger.warning(
                    f"Insufficient evidence for competency {cs.competency_name}: "
                    f"{cs.questions_answered} questions "
                    f"(min: {self.min_questions_per_competency})"
                )
            scores.append(replace(cs, **updates))

        threshold = self.effective_threshold(strictness)
        meets_requirements = meets_threshold(result.overall_percentage / 100.0, threshold)
        logger.info(
            f"Job fit score calculated: {result.overall_percentage:.2f}% "
            f"(required {threshold * 100:.2f}%, SOC {soc_code}, strictness {strictness}) - "
            f"{'meets' if meets_requirements else 'below'} job requirements"
        )
        return replace(
            result,
            competency_scores=tuple(scores),
            extended_metrics={
                **result.extended_metrics,
                "onet_soc_code": soc_code,
                "strictness_level": strictness,
                "effective_threshold": threshold,
                "meets_job_requirements": meets_requirements,
            },
        )

    def _load_benchmarks(self, soc_code: Optional[str]) -> dict[str, float]:
        if not soc_code or self._benchmark_lookup is None:
            return {}
        profile = self._benchmark_lookup.get_profile(soc_code)
        if profile is None:
            logger.debug(f"No O*NET profile found for SOC code {soc_code}, skipping benchmarks")
            return {}
        return dict(profile.benchmarks)

    def _match_benchmark(
        self, cs: CompetencyScore, competency: Any, benchmarks: Mapping[str, float]
    ) -> Optional[float]:
        if not benchmarks:
            return None
        aliases = [cs.competency_name, getattr(competency, "onet_title", None)]
        for alias in aliases:
            if alias and alias in benchmarks:
                return benchmarks[alias]
        match = self._name_matcher.best_match(cs.competency_name, benchmarks.keys())
        if match is None:
            return None
        logger.info(
            f"Fuzzy-matched competency '{cs.competency_name}' to benchmark "
            f"'{match.candidate}' (similarity {match.similarity:.2f})"
        )
        return benchmarks[match.candidate]


class TeamFitScoringStrategy(IndicatorRollupStrategy):
    """Team fit scoring: diversity versus saturation and Big Five profile."""

    goal = AssessmentGoal.TEAM_FIT

    def __init__(
        self,
        normalizer: Optional[ScoreNormalizer] = None,
        competency_lookup: Optional[CompetencyLookup] = None,
        *,
        saturation_threshold: Optional[float] = None,
        diversity_threshold: Optional[float] = None,
        diversity_bonus_threshold: Optional[float] = None,
        bonus_max_saturation: Optional[float] = None,
        saturation_penalty_threshold: Optional[float] = None,
        diversity_bonus: Optional[float] = None,
        saturation_penalty: Optional[float] = None,
    ):
        super().__init__(normalizer, competency_lookup)
        self.saturation_threshold = _setting_or(
            saturation_threshold, settings.TEAM_FIT_SATURATION_THRESHOLD
        )
        self.diversity_threshold = _setting_or(
            diversity_threshold, settings.TEAM_FIT_DIVERSITY_THRESHOLD
        )
        self.diversity_bonus_threshold = _setting_or(
            diversity_bonus_threshold, settings.TEAM_FIT_DIVERSITY_BONUS_THRESHOLD
        )
        self.bonus_max_saturation = _setting_or(
            bonus_max_saturation, settings.TEAM_FIT_BONUS_MAX_SATURATION
        )
        self.saturation_penalty_threshold = _setting_or(
            saturation_penalty_threshold, settings.TEAM_FIT_SATURATION_PENALTY_THRESHOLD
        )
        self.diversity_bonus = _setting_or(diversity_bonus, settings.TEAM_FIT_DIVERSITY_BONUS)
        self.saturation_penalty = _setting_or(
            saturation_penalty, settings.TEAM_FIT_SATURATION_PENALTY
        )

    def interpret(self, session, answers, rollup, result):
        template = getattr(session, "template", None)
        blueprint = blueprint_for_goal(
            getattr(template, "blueprint", None), AssessmentGoal.TEAM_FIT
        )
        saturation_threshold = (
            blueprint.saturation_threshold if blueprint else self.saturation_threshold
        )

        scores = [
            replace(cs, questions_correct=self.questions_correct(cs))
            for cs in result.competency_scores
        ]
        metrics = self.team_fit_metrics(scores, saturation_threshold)
        big_five = self.big_five_profile(answers, rollup.competencies)

        logger.info(
            f"Team fit score calculated: {result.overall_percentage:.2f}%, "
            f"diversity {metrics.diversity_ratio * 100:.2f}%, "
            f"saturation {metrics.saturation_ratio * 100:.2f}%, "
            f"Big Five traits {len(big_five)}"
        )
        return replace(
            result,
            competency_scores=tuple(scores),
            team_fit_metrics=metrics,
            big_five_profile=big_five or None,
            extended_metrics={**result.extended_metrics, **metrics.to_dict()},
        )

    def team_fit_metrics(
        self, competency_scores: Sequence[CompetencyScore], saturation_threshold: float
    ) -> TeamFitMetrics:
        """Classify each competency as saturation, diversity or gap contributor."""
        saturation_count = diversity_count = 0
        for cs in competency_scores:
            average = cs.percentage / 100.0
            if average >= saturation_threshold:
                saturation_count += 1
            elif average >= self.diversity_threshold:
                diversity_count += 1

        total = len(competency_scores)
        diversity_ratio = diversity_count / total if total else 0.0
        saturation_ratio = saturation_count / total if total else 0.0

        multiplier = 1.0
        if (
            diversity_ratio > self.diversity_bonus_threshold
            and saturation_ratio < self.bonus_max_saturation
        ):
            multiplier = self.diversity_bonus
        elif saturation_ratio > self.saturation_penalty_threshold:
            multiplier = self.saturation_penalty

        return TeamFitMetrics(
            diversity_ratio=diversity_ratio,
            saturation_ratio=saturation_ratio,
            team_fit_multiplier=multiplier,
            diversity_count=diversity_count,
            saturation_count=saturation_count,
            gap_count=total - diversity_count - saturation_count,
        )

    def big_five_profile(
        self, answers: Sequence[Any], competencies: Mapping[UUID, Any]
    ) -> dict[str, float]:
        """Mean normalized score (as a percentage) per Big Five trait."""
        totals: dict[str, list[float]] = defaultdict(list)
        for answer in answers:
            if getattr(answer, "is_skipped", False) or answer.answered_at is None:
                continue
            question = getattr(answer, "question", None)
            indicator = getattr(question, "behavioral_indicator", None)
            if indicator is None:
                continue
            competency = competencies.get(self._competency_id_of(indicator))
            trait = getattr(competency, "big_five_category", None)
            if trait:
                totals[trait].append(self._normalizer.normalize(answer))
        return {trait: sum(vals) / len(vals) * 100.0 for trait, vals in totals.items()}


class LegacyScoringStrategy:
    """
    Fallback for goals without a dedicated strategy.

    Groups answers by competency using the raw stored ``score`` and
    ``max_score`` (1.0 when unset). No indicator weighting is applied.
    """

    goal: Optional[AssessmentGoal] = None

    def calculate(self, session: Any, answers: Sequence[Any]) -> ScoringResult:
        totals: dict[UUID, list[float]] = {}
        competencies: dict[UUID, Any] = {}
        counts: dict[UUID, int] = defaultdict(int)

        for answer in answers:
            if getattr(answer, "is_skipped", False) or answer.score is None:
                continue
            question = getattr(answer, "question", None)
            indicator = getattr(question, "behavioral_indicator", None)
            competency = getattr(indicator, "competency", None)
            if competency is None:
                continue

            if competency.id not in totals:
                totals[competency.id] = [0.0, 0.0]
                competencies[competency.id] = competency
            totals[competency.id][0] += answer.score
            totals[competency.id][1] += answer.max_score if answer.max_score is not None else 1.0
            counts[competency.id] += 1

        competency_scores = []
        for competency_id, (score, max_score) in totals.items():
            competency = competencies[competency_id]
            competency_scores.append(
                CompetencyScore(
                    competency_id=competency_id,
                    competency_name=competency.name,
                    score=score,
                    max_score=max_score,
                    percentage=score / max_score * 100.0 if max_score > 0 else 0.0,
                    questions_answered=counts[competency_id],
                    onet_code=competency.onet_code,
                )
            )

        total_score = sum(cs.score for cs in competency_scores)
        total_max = sum(cs.max_score for cs in competency_scores)
        percentage = total_score / total_max * 100.0 if total_max > 0 else 0.0

        logger.debug(f"Calculated {len(competency_scores)} competency scores in legacy mode")
        template = getattr(session, "template", None)
        return ScoringResult(
            goal=getattr(template, "goal", None),
            overall_score=total_score,
            overall_percentage=percentage,
            passed=meets_threshold(percentage, resolve_passing_score(session)),
            competency_scores=tuple(competency_scores),
        )


def create_strategy_table(
    normalizer: Optional[ScoreNormalizer] = None,
    competency_lookup: Optional[CompetencyLookup] = None,
    benchmark_lookup: Optional[BenchmarkLookup] = None,
) -> dict[AssessmentGoal, ScoringStrategy]:
    """Explicit goal -> strategy table used by ScoringService."""
    normalizer = normalizer or default_normalizer
    return {
        AssessmentGoal.OVERVIEW: OverviewScoringStrategy(normalizer, competency_lookup),
        AssessmentGoal.JOB_FIT: JobFitScoringStrategy(
            normalizer, competency_lookup, benchmark_lookup
        ),
        AssessmentGoal.TEAM_FIT: TeamFitScoringStrategy(normalizer, competency_lookup),
    }


def _setting_or(value: Optional[float], default: float) -> float:
    return value if value is not None else default
