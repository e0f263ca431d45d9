"""
Team-fit test assembly.

Targets the competencies a team covers least. Competencies whose team
saturation is below the blueprint threshold are assessed, lowest saturation
first, with more questions for bigger gaps:

    saturation < 0.1  -> 6 questions (critical gap)
    saturation < 0.3  -> 4 questions
    saturation < 0.5  -> 3 questions
    otherwise         -> 2 questions
"""
import logging
from typing import Any, Mapping, Sequence
from uuid import UUID

from assessment.core.assembly.blueprints import TeamFitBlueprint
from assessment.core.assembly.item_selector import PsychometricItemSelector
from assessment.core.lookups import IndicatorLookup, QuestionLookup, TeamProfileLookup
from assessment.models.models import AssessmentGoal

logger = logging.getLogger(__name__)

# Used when the blueprint threshold is not a usable ratio
DEFAULT_SATURATION_THRESHOLD = 0.3

DEFAULT_QUESTIONS_PER_GAP = 4


def questions_for_saturation(saturation: float) -> int:
    if saturation < 0.1:
        return DEFAULT_QUESTIONS_PER_GAP + 2
    if saturation < 0.3:
        return DEFAULT_QUESTIONS_PER_GAP
    if saturation < 0.5:
        return DEFAULT_QUESTIONS_PER_GAP - 1
    return DEFAULT_QUESTIONS_PER_GAP - 2


class TeamFitAssembler:
    """Assembles TEAM_FIT tests targeting a team's undersaturated competencies."""

    goal = AssessmentGoal.TEAM_FIT

    def __init__(
        self,
        team_profile_lookup: TeamProfileLookup,
        indicator_lookup: IndicatorLookup,
        question_lookup: QuestionLookup,
        item_selector: PsychometricItemSelector,
    ):
        self._teams = team_profile_lookup
        self._indicators = indicator_lookup
        self._questions = question_lookup
        self._selector = item_selector

    def supports(self, blueprint: Any) -> bool:
        return isinstance(blueprint, TeamFitBlueprint)

    def assemble(self, blueprint: Any) -> list[UUID]:
        """
        Select question ids for a team-fit test.

        Raises:
            ValueError: If blueprint is None or not a TeamFitBlueprint
        """
        if not self.supports(blueprint):
            raise ValueError(
                "TeamFitAssembler requires TeamFitBlueprint, got: "
                f"{type(blueprint).__name__ if blueprint is not None else 'None'}"
            )

        team_id = blueprint.team_id
        if team_id is None:
            logger.warning("No team ID provided in TeamFitBlueprint")
            return []

        threshold = blueprint.saturation_threshold
        if threshold <= 0 or threshold > 1:
            threshold = DEFAULT_SATURATION_THRESHOLD

        logger.info(f"Assembling TEAM_FIT test for team: {team_id} (threshold: {threshold})")

        profile = self._teams.get_team_profile(team_id)
        if profile is None:
            logger.warning(f"No team profile found for team: {team_id}")
            return []

        competency_ids = profile.undersaturated_competencies(threshold)
        if not competency_ids:
            logger.info(
                f"No undersaturated competencies found for team: {team_id}, "
                "assessing every profiled competency"
            )
            competency_ids = list(profile.competency_saturation)
        logger.debug(f"Found {len(competency_ids)} undersaturated competencies for team: {team_id}")

        selected = self._select_for_competencies(competency_ids, profile.competency_saturation)
        logger.info(f"Assembled {len(selected)} questions for TEAM_FIT assessment (team: {team_id})")
        return selected

    def _select_for_competencies(
        self, competency_ids: Sequence[UUID], saturation: Mapping[UUID, float]
    ) -> list[UUID]:
        selected: list[UUID] = []
        used: set[UUID] = set()

        for competency_id in sorted(competency_ids, key=lambda cid: saturation.get(cid, 1.0)):
            target = questions_for_saturation(saturation.get(competency_id, 1.0))
            indicators = sorted(
                (
                    ind
                    for ind in self._indicators.find_by_competency(competency_id, active_only=True)
                    if ind.is_active
                ),
                key=lambda ind: -(ind.weight or 0.0),
            )

            taken = 0
            for indicator in indicators:
                if taken >= target:
                    break
                eligible = self._selector.filter_eligible(
                    self._questions.find_by_indicator(indicator.id, active_only=True)
                )
                for question in eligible:
                    if taken >= target:
                        break
                    if question.id in used:
                        continue
                    selected.append(question.id)
                    used.add(question.id)
                    taken += 1

            if taken < target:
                logger.debug(
                    f"Competency {competency_id}: only {taken} of {target} questions available"
                )

        return selected
