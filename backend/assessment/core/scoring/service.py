"""
Session scoring orchestration.

``ScoringService.calculate_result`` is the entry point used when a test
session completes:

1. Select the strategy for the template's goal (legacy fallback otherwise)
2. Score the answers
3. Attach confidence intervals (non-critical)
4. Attach per-competency percentile ranks (non-critical)
5. Analyze response consistency (non-critical)

Steps 3 to 5 run under ``graceful_failure``: if they raise, the session is
still scored and the error is logged.
"""
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional, Sequence

from assessment.core.graceful_failure import graceful_failure
from assessment.core.logging_config import scoring_context
from assessment.core.scoring.confidence import ConfidenceIntervalCalculator
from assessment.core.scoring.consistency import ResponseConsistencyAnalyzer, is_answered
from assessment.core.scoring.percentiles import CompetencyPercentileCalculator
from assessment.core.scoring.results import ScoringResult
from assessment.core.scoring.strategies import (
    LegacyScoringStrategy,
    ScoringStrategy,
    create_strategy_table,
)
from assessment.models.models import AssessmentGoal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionScoreReport:
    """Everything the caller needs to persist a scored session."""

    session_id: Any
    result: ScoringResult
    answered_count: int
    skipped_count: int
    total_time_seconds: int
    extended_metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.result.passed

    @property
    def overall_percentage(self) -> float:
        return self.result.overall_percentage


class ScoringService:
    """Scores completed sessions with the strategy matching their goal."""

    def __init__(
        self,
        strategies: Optional[Mapping[AssessmentGoal, ScoringStrategy]] = None,
        *,
        legacy_strategy: Optional[ScoringStrategy] = None,
        ci_calculator: Optional[ConfidenceIntervalCalculator] = None,
        percentile_calculator: Optional[CompetencyPercentileCalculator] = None,
        consistency_analyzer: Optional[ResponseConsistencyAnalyzer] = None,
    ):
        self._strategies = dict(strategies) if strategies is not None else create_strategy_table()
        self._legacy_strategy = legacy_strategy or LegacyScoringStrategy()
        self._ci_calculator = ci_calculator
        self._percentile_calculator = percentile_calculator
        self._consistency_analyzer = consistency_analyzer or ResponseConsistencyAnalyzer()

    def select_strategy(self, goal: Optional[AssessmentGoal]) -> ScoringStrategy:
        """Strategy for ``goal``; the legacy strategy when none is registered."""
        strategy = self._strategies.get(goal) if goal is not None else None
        if strategy is None:
            logger.warning(f"No scoring strategy for goal {goal}, using legacy scoring")
            return self._legacy_strategy
        return strategy

    def calculate_result(self, session: Any, answers: Sequence[Any]) -> SessionScoreReport:
        """
        Score one completed session.

        Args:
            session: The TestSession being completed
            answers: All answers recorded for the session

        Returns:
            SessionScoreReport with the scoring result and session totals
        """
        token = scoring_context.set(str(session.id))
        started = time.perf_counter()
        try:
            template = getattr(session, "template", None)
            goal = getattr(template, "goal", None)
            strategy = self.select_strategy(goal)
            result = strategy.calculate(session, answers)

            if self._ci_calculator is not None:
                with graceful_failure(
                    "enrich confidence intervals",
                    logger,
                    context={"session_id": session.id},
                ):
                    enriched = self._ci_calculator.enrich_with_confidence_intervals(
                        result.competency_scores
                    )
                    result = replace(result, competency_scores=tuple(enriched))

            if self._percentile_calculator is not None:
                with graceful_failure(
                    "enrich subscale percentiles",
                    logger,
                    context={"session_id": session.id},
                ):
                    ranked = self._percentile_calculator.enrich_with_percentiles(
                        result.competency_scores
                    )
                    result = replace(result, competency_scores=tuple(ranked))

            consistency_metrics: dict[str, Any] = {}
            with graceful_failure(
                "analyze response consistency",
                logger,
                log_level=logging.ERROR,
                exc_info=True,
                context={"session_id": session.id},
            ):
                consistency = self._consistency_analyzer.analyze(answers)
                result = replace(
                    result,
                    consistency_score=consistency.consistency_score,
                    consistency_flags=tuple(consistency.flags),
                )
                consistency_metrics = consistency.to_metrics()

            answered_count = sum(1 for a in answers if is_answered(a))
            skipped_count = sum(1 for a in answers if getattr(a, "is_skipped", False))
            total_time = sum(a.time_spent_seconds or 0 for a in answers)

            report = SessionScoreReport(
                session_id=session.id,
                result=result,
                answered_count=answered_count,
                skipped_count=skipped_count,
                total_time_seconds=total_time,
                extended_metrics={**result.extended_metrics, **consistency_metrics},
            )

            duration_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"Scored session {session.id}: {result.overall_percentage:.2f}% "
                f"({'passed' if result.passed else 'failed'}), "
                f"{answered_count} answered, {skipped_count} skipped",
                extra={
                    "goal": goal.value if goal is not None else None,
                    "operation": "score_session",
                    "duration_ms": round(duration_ms, 2),
                },
            )
            return report
        finally:
            scoring_context.reset(token)
