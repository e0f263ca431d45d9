"""
Overview (universal baseline) test assembly.

Covers every active indicator of the requested competencies with a
waterfall distribution: each round takes one question from every indicator
in weight order, so if the bank runs short, every indicator still gets its
first questions before any gets its third.
"""
import logging
from typing import Any, Optional, Sequence
from uuid import UUID

from assessment.core.assembly.blueprints import OverviewBlueprint
from assessment.core.assembly.item_selector import PsychometricItemSelector
from assessment.core.lookups import IndicatorLookup, QuestionLookup
from assessment.models.models import AssessmentGoal, BehavioralIndicator, DifficultyLevel

logger = logging.getLogger(__name__)


class OverviewAssembler:
    """Assembles OVERVIEW tests across all indicators of the chosen competencies."""

    goal = AssessmentGoal.OVERVIEW

    def __init__(
        self,
        indicator_lookup: IndicatorLookup,
        question_lookup: QuestionLookup,
        item_selector: PsychometricItemSelector,
    ):
        self._indicators = indicator_lookup
        self._questions = question_lookup
        self._selector = item_selector

    def supports(self, blueprint: Any) -> bool:
        return isinstance(blueprint, OverviewBlueprint)

    def assemble(self, blueprint: Any) -> list[UUID]:
        """
        Select question ids for an overview test.

        Raises:
            ValueError: If blueprint is None or not an OverviewBlueprint
        """
        if not self.supports(blueprint):
            raise ValueError(
                "OverviewAssembler requires OverviewBlueprint, got: "
                f"{type(blueprint).__name__ if blueprint is not None else 'None'}"
            )

        competency_ids = blueprint.competency_ids
        if not competency_ids:
            logger.warning("No competency IDs provided in OverviewBlueprint")
            return []

        logger.info(f"Assembling OVERVIEW test for {len(competency_ids)} competencies")

        indicators = self._indicators_by_weight(competency_ids)
        if not indicators:
            logger.warning(f"No behavioral indicators found for competencies: {competency_ids}")
            return []
        logger.debug(
            f"Found {len(indicators)} indicators across {len(competency_ids)} competencies"
        )

        candidates = {
            indicator.id: self._eligible_questions(indicator.id, blueprint.preferred_difficulty)
            for indicator in indicators
        }
        selected = self._waterfall(indicators, candidates, blueprint.questions_per_indicator)

        logger.info(f"Assembled {len(selected)} questions for OVERVIEW assessment")
        return selected

    def _indicators_by_weight(self, competency_ids: Sequence[UUID]) -> list[BehavioralIndicator]:
        indicators = [
            indicator
            for competency_id in competency_ids
            for indicator in self._indicators.find_by_competency(competency_id, active_only=True)
            if indicator.is_active
        ]
        # Stable: equal weights keep competency order
        return sorted(indicators, key=lambda ind: -(ind.weight or 0.0))

    def _eligible_questions(
        self, indicator_id: UUID, preferred: Optional[DifficultyLevel]
    ) -> list[UUID]:
        preferred = preferred or DifficultyLevel.INTERMEDIATE
        questions = self._selector.filter_eligible(
            self._questions.find_by_indicator(indicator_id, active_only=True)
        )
        questions.sort(key=lambda q: 0 if q.difficulty_level == preferred else 1)
        return [q.id for q in questions]

    @staticmethod
    def _waterfall(
        indicators: Sequence[BehavioralIndicator],
        candidates: dict[UUID, list[UUID]],
        questions_per_indicator: int,
    ) -> list[UUID]:
        selected: list[UUID] = []
        used: set[UUID] = set()
        cursors = {indicator.id: 0 for indicator in indicators}

        for _round in range(questions_per_indicator):
            for indicator in indicators:
                questions = candidates.get(indicator.id, [])
                cursor = cursors[indicator.id]
                while cursor < len(questions):
                    question_id = questions[cursor]
                    cursor += 1
                    if question_id not in used:
                        selected.append(question_id)
                        used.add(question_id)
                        break
                cursors[indicator.id] = cursor

        return selected
