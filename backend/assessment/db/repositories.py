"""
Database-backed lookups.

Each class wraps a SQLAlchemy ``Session`` owned by the caller (see
``assessment.models.base.get_db``); none of them commit or close it.
"""
import logging
from typing import Iterable, Optional
from uuid import UUID

import numpy as np
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from assessment.core.lookups import OnetProfile, TeamProfile
from assessment.models import (
    AssessmentQuestion,
    BehavioralIndicator,
    Competency,
    CompetencyPassport,
    CompetencyReliability,
    CompetencyScoreSample,
    ItemStatistics,
    ItemValidityStatus,
    OccupationBenchmark,
    TeamCompetencySaturation,
)

logger = logging.getLogger(__name__)


class SqlQuestionBank:
    """Competency, indicator and question access over one session."""

    def __init__(self, db: Session):
        self.db = db

    def get_competency(self, competency_id: UUID) -> Optional[Competency]:
        return self.db.get(Competency, competency_id)

    def get_competencies(self, competency_ids: Iterable[UUID]) -> dict[UUID, Competency]:
        ids = set(competency_ids)
        if not ids:
            return {}
        rows = self.db.execute(select(Competency).where(Competency.id.in_(ids))).scalars().all()
        return {c.id: c for c in rows}

    def list_competencies(self, active_only: bool = True) -> list[Competency]:
        stmt = select(Competency).order_by(Competency.name)
        if active_only:
            stmt = stmt.where(Competency.is_active.is_(True))
        return list(self.db.execute(stmt).scalars().all())

    def get_indicator(self, indicator_id: UUID) -> Optional[BehavioralIndicator]:
        return self.db.get(BehavioralIndicator, indicator_id)

    def find_by_competency(
        self, competency_id: UUID, active_only: bool = True
    ) -> list[BehavioralIndicator]:
        stmt = select(BehavioralIndicator).where(
            BehavioralIndicator.competency_id == competency_id
        )
        if active_only:
            stmt = stmt.where(BehavioralIndicator.is_active.is_(True))
        return list(self.db.execute(stmt).scalars().all())

    def get_question(self, question_id: UUID) -> Optional[AssessmentQuestion]:
        return self.db.get(AssessmentQuestion, question_id)

    def find_by_indicator(
        self, indicator_id: UUID, active_only: bool = True
    ) -> list[AssessmentQuestion]:
        stmt = select(AssessmentQuestion).where(
            AssessmentQuestion.behavioral_indicator_id == indicator_id
        )
        if active_only:
            stmt = stmt.where(AssessmentQuestion.is_active.is_(True))
        return list(self.db.execute(stmt).scalars().all())


class SqlReliabilityLookup:
    def __init__(self, db: Session):
        self.db = db

    def find_by_competency_ids(
        self, competency_ids: Iterable[UUID]
    ) -> list[CompetencyReliability]:
        ids = set(competency_ids)
        if not ids:
            return []
        stmt = select(CompetencyReliability).where(CompetencyReliability.competency_id.in_(ids))
        return list(self.db.execute(stmt).scalars().all())


class SqlScoreStatisticsLookup:
    """Historical competency percentages from ``CompetencyScoreSample``."""

    def __init__(self, db: Session):
        self.db = db

    def count_samples(self, competency_id: UUID) -> int:
        stmt = select(func.count(CompetencyScoreSample.id)).where(
            CompetencyScoreSample.competency_id == competency_id
        )
        return self.db.execute(stmt).scalar_one()

    def count_below(self, competency_id: UUID, percentage: float) -> int:
        stmt = select(func.count(CompetencyScoreSample.id)).where(
            CompetencyScoreSample.competency_id == competency_id,
            CompetencyScoreSample.percentage < percentage,
        )
        return self.db.execute(stmt).scalar_one()

    def population_sd(self, competency_id: UUID) -> Optional[float]:
        stmt = select(CompetencyScoreSample.percentage).where(
            CompetencyScoreSample.competency_id == competency_id
        )
        values = self.db.execute(stmt).scalars().all()
        if not values:
            return None
        return float(np.std(np.asarray(values, dtype=float), ddof=0))


class SqlItemStatisticsLookup:
    def __init__(self, db: Session):
        self.db = db

    def find_statuses(self, question_ids: Iterable[UUID]) -> dict[UUID, ItemValidityStatus]:
        ids = set(question_ids)
        if not ids:
            return {}
        stmt = select(ItemStatistics.question_id, ItemStatistics.validity_status).where(
            ItemStatistics.question_id.in_(ids)
        )
        return {question_id: status for question_id, status in self.db.execute(stmt).all()}


class SqlPassportLookup:
    def __init__(self, db: Session):
        self.db = db

    def find_by_user(self, clerk_user_id: str) -> Optional[CompetencyPassport]:
        stmt = select(CompetencyPassport).where(CompetencyPassport.clerk_user_id == clerk_user_id)
        return self.db.execute(stmt).scalar_one_or_none()


class SqlBenchmarkLookup:
    """O*NET benchmarks stored locally in ``OccupationBenchmark`` rows."""

    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, soc_code: str) -> Optional[OnetProfile]:
        stmt = select(OccupationBenchmark).where(OccupationBenchmark.soc_code == soc_code)
        rows = self.db.execute(stmt).scalars().all()
        if not rows:
            logger.debug(f"No benchmark rows for SOC code {soc_code}")
            return None
        return OnetProfile(
            soc_code=soc_code,
            title=rows[0].occupation_title,
            benchmarks={row.competency_name: row.benchmark for row in rows},
        )


class SqlTeamProfileLookup:
    def __init__(self, db: Session):
        self.db = db

    def get_team_profile(self, team_id: UUID) -> Optional[TeamProfile]:
        stmt = select(TeamCompetencySaturation).where(TeamCompetencySaturation.team_id == team_id)
        rows = self.db.execute(stmt).scalars().all()
        if not rows:
            return None
        return TeamProfile(
            team_id=team_id,
            competency_saturation={row.competency_id: row.saturation for row in rows},
        )
