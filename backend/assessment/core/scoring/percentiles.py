"""
Per-competency percentile ranks.

A candidate at the 50th percentile overall can sit at the 90th in one
competency and the 10th in another. The rank for each competency compares
its percentage with the historical samples for that competency
(``CompetencyScoreSample``):

    percentile = round(below / (total - 1) * 100), clamped to [0, 100]

where ``below`` counts samples strictly lower than the score and ``total``
counts every sample. With one sample or none there is nothing to compare
against and the rank defaults to 50.
"""
import logging
from dataclasses import replace
from typing import Sequence

from assessment.core.lookups import ScoreStatisticsLookup
from assessment.core.scoring.precision import round_half_up
from assessment.core.scoring.results import CompetencyScore

logger = logging.getLogger(__name__)

DEFAULT_PERCENTILE = 50


def percentile_rank(below: int, total: int) -> int:
    """
    Percentile rank from sample counts.

    Args:
        below: Number of historical samples strictly below the score
        total: Number of historical samples

    Returns:
        Rank in [0, 100]; DEFAULT_PERCENTILE when ``total <= 1``

    Example:
        >>> percentile_rank(3, 5)
        75
        >>> percentile_rank(0, 1)
        50
    """
    if total <= 1:
        return DEFAULT_PERCENTILE
    rank = int(round_half_up(below / (total - 1) * 100.0, 0))
    return max(0, min(100, rank))


class CompetencyPercentileCalculator:
    """Attaches a historical percentile rank to each competency score."""

    def __init__(self, statistics_lookup: ScoreStatisticsLookup):
        self._statistics_lookup = statistics_lookup

    def enrich_with_percentiles(
        self, competency_scores: Sequence[CompetencyScore]
    ) -> list[CompetencyScore]:
        """Return copies of ``competency_scores`` with ``percentile`` set."""
        enriched: list[CompetencyScore] = []
        for cs in competency_scores:
            if cs.competency_id is None:
                enriched.append(cs)
                continue

            total = self._statistics_lookup.count_samples(cs.competency_id) or 0
            below = 0
            if total > 1:
                below = self._statistics_lookup.count_below(cs.competency_id, cs.percentage) or 0
            enriched.append(replace(cs, percentile=percentile_rank(below, total)))

        logger.debug(
            f"Enriched {len(enriched)} competency scores with subscale percentiles"
        )
        return enriched
