"""
Interfaces for the external collaborators used by scoring and assembly.

Scoring and assembly never touch the database directly. They depend on the
Protocols below, which ``assessment.db.repositories`` implements over a
SQLAlchemy session and which tests replace with in-memory doubles.

Every lookup treats "not found" as an expected outcome: single-item lookups
return ``None`` and batch lookups omit missing keys rather than raising.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol, TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from assessment.models.models import (
        AssessmentQuestion,
        BehavioralIndicator,
        Competency,
        CompetencyPassport,
        CompetencyReliability,
        ItemValidityStatus,
    )


@dataclass(frozen=True)
class OnetProfile:
    """Benchmark requirements for one O*NET occupation.

    ``benchmarks`` maps competency name to the required level on the 0-1
    scale used by competency passports.
    """

    soc_code: str
    title: str
    benchmarks: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class TeamProfile:
    """How well a team already covers each competency (0-1 per competency)."""

    team_id: UUID
    competency_saturation: dict[UUID, float] = field(default_factory=dict)

    def undersaturated_competencies(self, threshold: float) -> list[UUID]:
        """Competency ids whose saturation is strictly below ``threshold``."""
        return [
            competency_id
            for competency_id, saturation in self.competency_saturation.items()
            if saturation < threshold
        ]


class CompetencyLookup(Protocol):
    """Competency access by id."""

    def get_competency(self, competency_id: UUID) -> Optional["Competency"]:
        ...

    def get_competencies(self, competency_ids: Iterable[UUID]) -> dict[UUID, "Competency"]:
        """Batch load; ids that do not exist are absent from the result."""
        ...


class CompetencyCatalog(Protocol):
    """Enumerates the competency catalog for name-based resolution."""

    def list_competencies(self, active_only: bool = True) -> list["Competency"]:
        ...


class IndicatorLookup(Protocol):
    """Behavioral indicator access."""

    def get_indicator(self, indicator_id: UUID) -> Optional["BehavioralIndicator"]:
        ...

    def find_by_competency(
        self, competency_id: UUID, active_only: bool = True
    ) -> list["BehavioralIndicator"]:
        ...


class QuestionLookup(Protocol):
    """Question bank access."""

    def get_question(self, question_id: UUID) -> Optional["AssessmentQuestion"]:
        ...

    def find_by_indicator(
        self, indicator_id: UUID, active_only: bool = True
    ) -> list["AssessmentQuestion"]:
        ...


class ReliabilityLookup(Protocol):
    """Cronbach's alpha records, loaded for many competencies in one call."""

    def find_by_competency_ids(
        self, competency_ids: Iterable[UUID]
    ) -> list["CompetencyReliability"]:
        ...


class ScoreStatisticsLookup(Protocol):
    """Historical per-competency percentage statistics."""

    def count_samples(self, competency_id: UUID) -> int:
        ...

    def population_sd(self, competency_id: UUID) -> Optional[float]:
        """Population SD of historical percentages, or None without data."""
        ...

    def count_below(self, competency_id: UUID, percentage: float) -> int:
        """Historical samples strictly below ``percentage``."""
        ...


class BenchmarkLookup(Protocol):
    """External occupational benchmark source (O*NET)."""

    def get_profile(self, soc_code: str) -> Optional[OnetProfile]:
        ...


class PassportLookup(Protocol):
    """Candidate competency passports keyed by external user id."""

    def find_by_user(self, clerk_user_id: str) -> Optional["CompetencyPassport"]:
        ...


class ItemStatisticsLookup(Protocol):
    """Psychometric validity status per question.

    Questions without statistics are absent from the returned map.
    """

    def find_statuses(
        self, question_ids: Iterable[UUID]
    ) -> dict[UUID, "ItemValidityStatus"]:
        ...


class TeamProfileLookup(Protocol):
    """Team competency saturation profiles."""

    def get_team_profile(self, team_id: UUID) -> Optional[TeamProfile]:
        ...
