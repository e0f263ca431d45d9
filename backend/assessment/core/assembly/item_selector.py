"""
Psychometric item selection.

Chooses questions for behavioral indicators based on each question's
validity status from item statistics:

1. ACTIVE items (validated) form the primary pool.
2. PROBATION items (not enough response data yet) are mixed in up to
   ``max(1, target * probation_percentage // 100)`` so they keep collecting
   statistics.
3. FLAGGED_FOR_REVIEW items are used only when the pool is still short.

RETIRED items are never selected. Questions without statistics count as
PROBATION. With psychometrics disabled, the indicator's active questions are
shuffled and taken as-is.
"""
import logging
import random
from typing import Iterable, Optional, Sequence
from uuid import UUID

from assessment.core.config import settings
from assessment.core.lookups import ItemStatisticsLookup, QuestionLookup
from assessment.models.models import AssessmentQuestion, DifficultyLevel, ItemValidityStatus

logger = logging.getLogger(__name__)

# Status assumed for questions that have no item statistics yet
DEFAULT_VALIDITY_STATUS = ItemValidityStatus.PROBATION

ELIGIBLE_STATUSES = frozenset(
    {
        ItemValidityStatus.ACTIVE,
        ItemValidityStatus.PROBATION,
        ItemValidityStatus.FLAGGED_FOR_REVIEW,
    }
)


class PsychometricItemSelector:
    """Selects questions per indicator, preferring validated items."""

    def __init__(
        self,
        question_lookup: QuestionLookup,
        item_statistics_lookup: ItemStatisticsLookup,
        *,
        enabled: Optional[bool] = None,
        probation_percentage: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self._questions = question_lookup
        self._item_statistics = item_statistics_lookup
        self.enabled = enabled if enabled is not None else settings.PSYCHOMETRICS_ENABLED
        self.probation_percentage = (
            probation_percentage
            if probation_percentage is not None
            else settings.PROBATION_PERCENTAGE
        )
        self._rng = rng or random.Random()

    def select_validated_questions(
        self, indicator_ids: Sequence[UUID], questions_per_indicator: int
    ) -> list[UUID]:
        """
        Select up to ``questions_per_indicator`` question ids for every indicator.

        Args:
            indicator_ids: Indicators in the order their questions should appear
            questions_per_indicator: Target count per indicator

        Returns:
            Question ids grouped by indicator, in ``indicator_ids`` order
        """
        selected: list[UUID] = []
        for indicator_id in indicator_ids:
            selected.extend(
                self.select_questions_for_indicator(indicator_id, questions_per_indicator)
            )
        return selected

    def select_questions_for_indicator(
        self,
        indicator_id: UUID,
        target_count: int,
        preferred_difficulty: Optional[DifficultyLevel] = None,
        exclude: Iterable[UUID] = (),
    ) -> list[UUID]:
        """
        Select up to ``target_count`` question ids for one indicator.

        Within each validity tier, questions closest to ``preferred_difficulty``
        come first (random order among equally close ones). Ids in ``exclude``
        are never returned.
        """
        if target_count <= 0:
            return []

        excluded = set(exclude)
        questions = [
            q
            for q in self._questions.find_by_indicator(indicator_id, active_only=True)
            if q.id not in excluded
        ]
        if not questions:
            logger.warning(f"No active questions found for indicator {indicator_id}")
            return []

        if not self.enabled:
            pool = self._ordered(questions, preferred_difficulty)
            return [q.id for q in pool[:target_count]]

        by_status = self._partition_by_status(questions)
        active = self._ordered(by_status[ItemValidityStatus.ACTIVE], preferred_difficulty)
        probation = self._ordered(by_status[ItemValidityStatus.PROBATION], preferred_difficulty)
        flagged = self._ordered(
            by_status[ItemValidityStatus.FLAGGED_FOR_REVIEW], preferred_difficulty
        )

        probation_target = max(1, target_count * self.probation_percentage // 100)
        pool = active + probation[:probation_target]
        if len(pool) < target_count:
            pool += flagged

        selected = [q.id for q in pool[:target_count]]
        if len(selected) < target_count:
            logger.debug(
                f"Indicator {indicator_id}: selected {len(selected)} of {target_count} "
                f"requested questions ({len(by_status[ItemValidityStatus.RETIRED])} retired)"
            )
        return selected

    def is_eligible_for_assembly(self, question_id: UUID) -> bool:
        """Active questions are eligible unless their statistics retired them."""
        question = self._questions.get_question(question_id)
        if question is None or not question.is_active:
            return False
        if not self.enabled:
            return True
        return self._status_of(question_id) != ItemValidityStatus.RETIRED

    def filter_eligible(
        self, questions: Sequence[AssessmentQuestion]
    ) -> list[AssessmentQuestion]:
        """
        Batch form of ``is_eligible_for_assembly`` for already-loaded questions.

        Statuses are fetched with a single lookup; input order is preserved.
        """
        candidates = [q for q in questions if q.is_active]
        if not self.enabled or not candidates:
            return candidates
        statuses = self._item_statistics.find_statuses([q.id for q in candidates])
        return [
            q
            for q in candidates
            if statuses.get(q.id, DEFAULT_VALIDITY_STATUS) != ItemValidityStatus.RETIRED
        ]

    def get_availability_summary(self, indicator_id: UUID) -> dict[ItemValidityStatus, int]:
        """Count of the indicator's active questions per validity status."""
        questions = self._questions.find_by_indicator(indicator_id, active_only=True)
        by_status = self._partition_by_status(questions)
        return {status: len(items) for status, items in by_status.items()}

    def has_sufficient_questions(self, indicator_id: UUID, required_count: int) -> bool:
        summary = self.get_availability_summary(indicator_id)
        eligible = sum(summary[status] for status in ELIGIBLE_STATUSES)
        return eligible >= required_count

    def count_active_questions(self, indicator_id: UUID) -> int:
        return self.get_availability_summary(indicator_id)[ItemValidityStatus.ACTIVE]

    def count_probation_questions(self, indicator_id: UUID) -> int:
        return self.get_availability_summary(indicator_id)[ItemValidityStatus.PROBATION]

    def _partition_by_status(
        self, questions: Sequence[AssessmentQuestion]
    ) -> dict[ItemValidityStatus, list[AssessmentQuestion]]:
        statuses = self._item_statistics.find_statuses([q.id for q in questions])
        partitions: dict[ItemValidityStatus, list[AssessmentQuestion]] = {
            status: [] for status in ItemValidityStatus
        }
        for question in questions:
            partitions[statuses.get(question.id, DEFAULT_VALIDITY_STATUS)].append(question)
        return partitions

    def _status_of(self, question_id: UUID) -> ItemValidityStatus:
        return self._item_statistics.find_statuses([question_id]).get(
            question_id, DEFAULT_VALIDITY_STATUS
        )

    def _ordered(
        self,
        questions: Sequence[AssessmentQuestion],
        preferred_difficulty: Optional[DifficultyLevel],
    ) -> list[AssessmentQuestion]:
        shuffled = list(questions)
        self._rng.shuffle(shuffled)
        if preferred_difficulty is None:
            return shuffled
        # Stable sort keeps the shuffle order among equally distant items
        return sorted(
            shuffled,
            key=lambda q: _difficulty_distance(q.difficulty_level, preferred_difficulty),
        )


def _difficulty_distance(
    level: Optional[DifficultyLevel], preferred: DifficultyLevel
) -> int:
    if level is None:
        return len(DifficultyLevel)
    return abs(DifficultyLevel(level).ordinal - preferred.ordinal)
