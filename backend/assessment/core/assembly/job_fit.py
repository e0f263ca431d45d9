"""
Job-fit test assembly by gap analysis (delta testing).

Compares an O*NET occupation benchmark with the candidate's competency
passport and spends questions where the candidate falls short:

    gap                 = max(0, benchmark - candidate_score)
    adjusted_threshold  = 0.2 * (100 - strictness) / 100
    is_significant      = gap > adjusted_threshold

The gap also sets the target difficulty (scaled by
``strictness_factor = 1 - strictness / 200``) and the per-indicator
question allocation:

    allocation = clamp(round(2 + gap * (8 - 2)), 2, 8)

Gaps are processed largest first and the whole test is capped at 50
questions. Without a passport (no candidate id, unknown candidate, stale or
invalid passport) every candidate score is 0.0, so the full benchmark is
assessed.
"""
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence
from uuid import UUID

from assessment.core.assembly.blueprints import JobFitBlueprint
from assessment.core.assembly.item_selector import PsychometricItemSelector
from assessment.core.assembly.name_matching import CompetencyNameMatcher
from assessment.core.datetime_utils import age_in_days
from assessment.core.lookups import (
    BenchmarkLookup,
    CompetencyCatalog,
    IndicatorLookup,
    PassportLookup,
)
from assessment.core.scoring.precision import meets_threshold, round4, round_half_up
from assessment.models.models import AssessmentGoal, Competency, DifficultyLevel

logger = logging.getLogger(__name__)

SIGNIFICANT_GAP_THRESHOLD = 0.2
MIN_QUESTIONS_PER_INDICATOR = 2
MAX_QUESTIONS_PER_INDICATOR = 8
MAX_TOTAL_QUESTIONS = 50

# Gap boundaries (before strictness scaling) for each target difficulty
EXPERT_GAP = 0.8
ADVANCED_GAP = 0.5
INTERMEDIATE_GAP = 0.2


@dataclass(frozen=True)
class GapInfo:
    """Gap between an occupation benchmark and the candidate for one competency."""

    competency_name: str
    benchmark: float
    candidate_score: float
    gap: float
    is_significant: bool
    target_difficulty: DifficultyLevel
    allocation: int


def adjusted_gap_threshold(strictness_level: int) -> float:
    """Gap above which a shortfall is significant; stricter means lower."""
    return SIGNIFICANT_GAP_THRESHOLD * (100 - strictness_level) / 100.0


def difficulty_for_gap(gap: float, strictness_level: int) -> DifficultyLevel:
    factor = 1.0 - strictness_level / 200.0
    if meets_threshold(gap, EXPERT_GAP * factor):
        return DifficultyLevel.EXPERT
    if meets_threshold(gap, ADVANCED_GAP * factor):
        return DifficultyLevel.ADVANCED
    if meets_threshold(gap, INTERMEDIATE_GAP * factor):
        return DifficultyLevel.INTERMEDIATE
    return DifficultyLevel.FOUNDATIONAL


def questions_for_gap(gap: float) -> int:
    """Questions per indicator, proportional to the gap."""
    span = MAX_QUESTIONS_PER_INDICATOR - MIN_QUESTIONS_PER_INDICATOR
    allocation = int(round_half_up(MIN_QUESTIONS_PER_INDICATOR + gap * span, 0))
    return max(MIN_QUESTIONS_PER_INDICATOR, min(MAX_QUESTIONS_PER_INDICATOR, allocation))


class JobFitAssembler:
    """Assembles JOB_FIT tests from an O*NET benchmark and a competency passport."""

    goal = AssessmentGoal.JOB_FIT

    def __init__(
        self,
        benchmark_lookup: BenchmarkLookup,
        passport_lookup: PassportLookup,
        competency_catalog: CompetencyCatalog,
        indicator_lookup: IndicatorLookup,
        item_selector: PsychometricItemSelector,
        *,
        name_matcher: Optional[CompetencyNameMatcher] = None,
    ):
        self._benchmarks = benchmark_lookup
        self._passports = passport_lookup
        self._catalog = competency_catalog
        self._indicators = indicator_lookup
        self._selector = item_selector
        self._name_matcher = name_matcher or CompetencyNameMatcher()

    def supports(self, blueprint: Any) -> bool:
        return isinstance(blueprint, JobFitBlueprint)

    def assemble(self, blueprint: Any) -> list[UUID]:
        """
        Select question ids for a job-fit test.

        Args:
            blueprint: JobFitBlueprint for the occupation and candidate

        Returns:
            Ordered question ids; empty when no SOC code or benchmark exists

        Raises:
            ValueError: If blueprint is None or not a JobFitBlueprint
        """
        if not self.supports(blueprint):
            raise ValueError(
                "JobFitAssembler requires JobFitBlueprint, got: "
                f"{type(blueprint).__name__ if blueprint is not None else 'None'}"
            )

        soc_code = blueprint.onet_soc_code
        if not soc_code or not soc_code.strip():
            logger.warning("No O*NET SOC code provided in JobFitBlueprint")
            return []

        logger.info(f"Assembling JOB_FIT test for SOC code: {soc_code}")
        profile = self._benchmarks.get_profile(soc_code)
        if profile is None or not profile.benchmarks:
            logger.warning(f"No O*NET profile found for SOC code: {soc_code}")
            return []
        logger.debug(f"Found {len(profile.benchmarks)} benchmark competencies for {soc_code}")

        competencies = self._catalog_competencies(blueprint.competency_ids)
        candidate_scores = self._candidate_scores(blueprint, competencies)
        gaps = self.analyze_gaps(
            profile.benchmarks, candidate_scores, blueprint.strictness_level
        )
        selected = self._select_questions(gaps, competencies)

        logger.info(
            f"Assembled {len(selected)} questions for JOB_FIT assessment "
            f"(SOC: {soc_code}, significant gaps: {sum(g.is_significant for g in gaps)})"
        )
        return selected

    def analyze_gaps(
        self,
        benchmarks: Mapping[str, float],
        candidate_scores: Mapping[str, float],
        strictness_level: int,
    ) -> list[GapInfo]:
        """
        Gap per benchmarked competency, largest gap first.

        ``candidate_scores`` maps names (competency names and O*NET aliases)
        to passport scores. Names without an exact key are fuzzy-matched.
        """
        threshold = adjusted_gap_threshold(strictness_level)
        gaps = []
        for name, benchmark in benchmarks.items():
            candidate_score = self._candidate_score_for(name, candidate_scores)
            gap = max(0.0, benchmark - candidate_score)
            gaps.append(
                GapInfo(
                    competency_name=name,
                    benchmark=benchmark,
                    candidate_score=candidate_score,
                    gap=gap,
                    is_significant=round4(gap) > round4(threshold),
                    target_difficulty=difficulty_for_gap(gap, strictness_level),
                    allocation=questions_for_gap(gap),
                )
            )
        # Name breaks ties so equal gaps always assemble in the same order
        return sorted(gaps, key=lambda g: (-g.gap, g.competency_name))

    def _candidate_score_for(self, name: str, candidate_scores: Mapping[str, float]) -> float:
        if not candidate_scores:
            return 0.0
        if name in candidate_scores:
            return candidate_scores[name]
        match = self._name_matcher.best_match(name, candidate_scores.keys())
        if match is None:
            return 0.0
        logger.info(
            f"Fuzzy-matched benchmark '{name}' to passport entry '{match.candidate}' "
            f"(similarity {match.similarity:.2f})"
        )
        return candidate_scores[match.candidate]

    def _catalog_competencies(self, scope: Sequence[UUID]) -> list[Competency]:
        competencies = self._catalog.list_competencies(active_only=True)
        if scope:
            wanted = set(scope)
            competencies = [c for c in competencies if c.id in wanted]
        return competencies

    def _candidate_scores(
        self, blueprint: JobFitBlueprint, competencies: Sequence[Competency]
    ) -> dict[str, float]:
        """Name -> passport score, or empty for full-assessment mode."""
        candidate_id = blueprint.candidate_clerk_user_id
        if not candidate_id:
            logger.debug("No candidate id on blueprint, running full assessment")
            return {}

        passport = self._passports.find_by_user(candidate_id)
        if passport is None:
            logger.info(f"No passport for candidate {candidate_id}, running full assessment")
            return {}
        if not passport.is_valid:
            logger.warning(f"Passport for candidate {candidate_id} is invalid, ignoring it")
            return {}
        if passport.last_assessed is None:
            logger.warning(
                f"Passport for candidate {candidate_id} has no assessment date, ignoring it"
            )
            return {}

        age = age_in_days(passport.last_assessed)
        if age > blueprint.passport_max_age_days:
            logger.warning(
                f"Passport for candidate {candidate_id} is stale ({age} days old, "
                f"max {blueprint.passport_max_age_days}), running full assessment"
            )
            return {}

        by_id = {str(c.id): c for c in competencies}
        scores: dict[str, float] = {}
        for competency_key, score in (passport.competency_scores or {}).items():
            competency = by_id.get(str(competency_key))
            if competency is None:
                continue
            if score is None:
                logger.debug(
                    f"Passport for candidate {candidate_id} has no score for "
                    f"{competency.name}, treating it as unassessed"
                )
                continue
            for alias in (competency.name, competency.onet_code, competency.onet_title):
                if alias:
                    scores.setdefault(alias, float(score))

        logger.debug(
            f"Loaded passport for candidate {candidate_id} with {len(scores)} name aliases"
        )
        return scores

    def _resolve_competencies(
        self, name: str, competencies: Sequence[Competency]
    ) -> list[Competency]:
        lowered = name.lower()
        exact = [
            c
            for c in competencies
            if (c.name or "").lower() == lowered or (c.onet_title or "").lower() == lowered
        ]
        if exact:
            return exact

        by_name = {c.name: c for c in competencies if c.name}
        match = self._name_matcher.best_match(name, by_name.keys())
        if match is None:
            return []
        logger.info(
            f"Fuzzy-matched benchmark '{name}' to competency '{match.candidate}' "
            f"(similarity {match.similarity:.2f})"
        )
        return [by_name[match.candidate]]

    def _select_questions(
        self, gaps: Sequence[GapInfo], competencies: Sequence[Competency]
    ) -> list[UUID]:
        selected: list[UUID] = []
        used: set[UUID] = set()

        for gap_info in gaps:
            if len(selected) >= MAX_TOTAL_QUESTIONS:
                logger.info(f"Reached the {MAX_TOTAL_QUESTIONS}-question cap, stopping")
                break

            indicators = [
                indicator
                for competency in self._resolve_competencies(gap_info.competency_name, competencies)
                for indicator in self._indicators.find_by_competency(competency.id, active_only=True)
            ]
            if not indicators:
                logger.warning(
                    f"No indicators found for benchmark competency "
                    f"'{gap_info.competency_name}', contributing no questions"
                )
                continue

            indicators.sort(key=lambda ind: -(ind.weight or 0.0))
            for indicator in indicators:
                remaining = MAX_TOTAL_QUESTIONS - len(selected)
                if remaining <= 0:
                    break
                question_ids = self._selector.select_questions_for_indicator(
                    indicator.id,
                    min(gap_info.allocation, remaining),
                    preferred_difficulty=gap_info.target_difficulty,
                    exclude=used,
                )
                selected.extend(question_ids)
                used.update(question_ids)

            logger.debug(
                f"Gap '{gap_info.competency_name}': gap={gap_info.gap:.2f}, "
                f"difficulty={gap_info.target_difficulty.value}, "
                f"allocation={gap_info.allocation}/indicator"
            )

        return selected
