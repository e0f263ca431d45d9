"""
Models package for the assessment backend.
"""
from .base import Base, engine, SessionLocal, get_db
from .models import (
    AssessmentGoal,
    AssessmentQuestion,
    BehavioralIndicator,
    Competency,
    CompetencyPassport,
    CompetencyReliability,
    CompetencyScoreSample,
    DifficultyLevel,
    ItemStatistics,
    ItemValidityStatus,
    OccupationBenchmark,
    QuestionType,
    SessionStatus,
    TeamCompetencySaturation,
    TestAnswer,
    TestSession,
    TestTemplate,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "AssessmentGoal",
    "AssessmentQuestion",
    "BehavioralIndicator",
    "Competency",
    "CompetencyPassport",
    "CompetencyReliability",
    "CompetencyScoreSample",
    "DifficultyLevel",
    "ItemStatistics",
    "ItemValidityStatus",
    "OccupationBenchmark",
    "QuestionType",
    "SessionStatus",
    "TeamCompetencySaturation",
    "TestAnswer",
    "TestSession",
    "TestTemplate",
]
