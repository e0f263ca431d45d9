"""
Confidence intervals for competency scores.

For every competency with a usable Cronbach's alpha the calculator attaches
the Standard Error of Measurement and a two-tailed 95% confidence interval:

    SEM = SD * sqrt(1 - alpha)
    CI  = [max(0, score - 1.96 * SEM), min(100, score + 1.96 * SEM)]

The SD comes from a three-tier estimate keyed by the number of historical
samples ``n`` for the competency:

- ``n >= 30``: the historical population SD (DEFAULT_SD if missing or <= 0)
- ``5 < n < 30``: ``DEFAULT_SD * sqrt(30 / n)``, inflating the default to
  reflect small-sample uncertainty
- ``n <= 5``: DEFAULT_SD, with a warning that the interval may be unreliable

Competencies with no reliability record, a null alpha, or alpha outside
(0, 1] are returned unchanged. That is the normal state for a new bank.

SEM and CI bounds are rounded to 2 decimals and alpha to 4.

Example:
    >>> calculator = ConfidenceIntervalCalculator(reliability_repo, stats_repo)
    >>> enriched = calculator.enrich_with_confidence_intervals(result.competency_scores)
    >>> enriched[0].ci_lower, enriched[0].ci_upper
    (56.85, 83.15)  # score 70, alpha 0.8, SD 15
"""
import logging
import math
from dataclasses import replace
from typing import Optional, Sequence
from uuid import UUID

from scipy.stats import norm

from assessment.core.config import settings
from assessment.core.lookups import ReliabilityLookup, ScoreStatisticsLookup
from assessment.core.scoring.precision import round_half_up
from assessment.core.scoring.results import CompetencyScore

logger = logging.getLogger(__name__)

# Two-tailed critical value for a 95% interval, rounded to the conventional 1.96
Z_95 = round(float(norm.ppf(0.975)), 2)

SCORE_MIN = 0.0
SCORE_MAX = 100.0


def calculate_sem(sd: float, alpha: float) -> float:
    """
    Standard Error of Measurement for a given SD and reliability.

    Args:
        sd: Standard deviation of scores on the 0-100 scale
        alpha: Reliability coefficient in (0, 1]

    Returns:
        SEM on the same scale as ``sd``
    """
    return sd * math.sqrt(1.0 - alpha)


def calculate_confidence_interval(score: float, sem: float) -> tuple[float, float]:
    """95% interval around ``score``, clamped to the 0-100 score range."""
    margin = Z_95 * sem
    return max(SCORE_MIN, score - margin), min(SCORE_MAX, score + margin)


def is_usable_alpha(alpha: Optional[float]) -> bool:
    return alpha is not None and 0.0 < alpha <= 1.0


class ConfidenceIntervalCalculator:
    """Attaches SEM and 95% CI to competency scores backed by reliability data."""

    def __init__(
        self,
        reliability_lookup: ReliabilityLookup,
        statistics_lookup: ScoreStatisticsLookup,
        *,
        default_sd: Optional[float] = None,
        min_sample_size_for_sd: Optional[int] = None,
        min_sample_size_for_bootstrap: Optional[int] = None,
    ):
        self._reliability_lookup = reliability_lookup
        self._statistics_lookup = statistics_lookup
        self.default_sd = default_sd if default_sd is not None else settings.CI_DEFAULT_SD
        self.min_sample_size_for_sd = (
            min_sample_size_for_sd
            if min_sample_size_for_sd is not None
            else settings.CI_MIN_SAMPLE_SIZE_FOR_SD
        )
        self.min_sample_size_for_bootstrap = (
            min_sample_size_for_bootstrap
            if min_sample_size_for_bootstrap is not None
            else settings.CI_MIN_SAMPLE_SIZE_FOR_BOOTSTRAP
        )

    def enrich_with_confidence_intervals(
        self, competency_scores: Sequence[CompetencyScore]
    ) -> list[CompetencyScore]:
        """
        Return a copy of ``competency_scores`` with CI fields filled where possible.

        Reliability records for all competencies are loaded with a single
        lookup call. The input records are never modified.

        Args:
            competency_scores: Scores produced by a scoring strategy

        Returns:
            New list in the same order; entries without usable reliability
            data are the original (unchanged) records
        """
        if not competency_scores:
            return []

        competency_ids = {cs.competency_id for cs in competency_scores if cs.competency_id}
        alphas = self._load_alphas(competency_ids)

        enriched: list[CompetencyScore] = []
        sd_cache: dict[UUID, float] = {}
        for cs in competency_scores:
            alpha = alphas.get(cs.competency_id)
            if not is_usable_alpha(alpha):
                if alpha is None:
                    logger.debug(
                        f"No reliability data for competency {cs.competency_id}, "
                        "skipping CI calculation"
                    )
                else:
                    logger.debug(
                        f"Invalid alpha {alpha} for competency {cs.competency_id}, skipping CI"
                    )
                enriched.append(cs)
                continue

            if cs.competency_id not in sd_cache:
                sd_cache[cs.competency_id] = self.estimate_sd(cs.competency_id)
            sem = calculate_sem(sd_cache[cs.competency_id], alpha)
            ci_lower, ci_upper = calculate_confidence_interval(cs.percentage, sem)

            enriched.append(
                replace(
                    cs,
                    sem=round_half_up(sem, 2),
                    ci_lower=round_half_up(ci_lower, 2),
                    ci_upper=round_half_up(ci_upper, 2),
                    cronbach_alpha=round_half_up(alpha, 4),
                )
            )

        enriched_count = sum(1 for cs in enriched if cs.has_confidence_interval)
        logger.debug(
            f"Enriched {enriched_count}/{len(competency_scores)} competency scores "
            "with confidence intervals"
        )
        return enriched

    def estimate_sd(self, competency_id: UUID) -> float:
        """Three-tier SD estimate for one competency (see module docstring)."""
        n = self._statistics_lookup.count_samples(competency_id) or 0

        if n >= self.min_sample_size_for_sd:
            sd = self._statistics_lookup.population_sd(competency_id)
            if sd is not None and sd > 0:
                logger.debug(f"Competency {competency_id}: using historical SD={sd:.2f} (n={n})")
                return sd
            return self.default_sd

        if n > self.min_sample_size_for_bootstrap:
            bootstrap_sd = self.default_sd * math.sqrt(self.min_sample_size_for_sd / n)
            logger.debug(
                f"Competency {competency_id}: using bootstrap SD={bootstrap_sd:.2f} (n={n})"
            )
            return bootstrap_sd

        if n > 0:
            logger.warning(
                f"Competency {competency_id}: insufficient sample size (n={n}) for SD "
                f"estimation, using default SD={self.default_sd}. "
                "Confidence intervals may be unreliable."
            )
        return self.default_sd

    def _load_alphas(self, competency_ids: set[UUID]) -> dict[UUID, Optional[float]]:
        if not competency_ids:
            return {}
        records = self._reliability_lookup.find_by_competency_ids(competency_ids)
        alphas = {
            record.competency_id: (
                float(record.cronbach_alpha) if record.cronbach_alpha is not None else None
            )
            for record in records
            if record.competency_id is not None
        }
        logger.debug(
            f"Batch-loaded reliability data for {len(alphas)}/{len(competency_ids)} competencies"
        )
        return alphas
