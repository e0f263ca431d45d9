"""
Pytest configuration and shared fixtures for testing.
"""
import sys
from pathlib import Path

# Make the ``assessment`` package importable when pytest is run from the
# repository root without an editable install
backend_root = Path(__file__).parent.parent
if str(backend_root) not in sys.path:
    sys.path.insert(0, str(backend_root))

import uuid  # noqa: E402
from datetime import timedelta  # noqa: E402
from typing import Any, Optional  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from assessment.core.datetime_utils import utc_now  # noqa: E402
from assessment.models import (  # noqa: E402
    AssessmentGoal,
    AssessmentQuestion,
    Base,
    BehavioralIndicator,
    Competency,
    DifficultyLevel,
    QuestionType,
    TestAnswer,
    TestSession,
    TestTemplate,
)

# Use SQLite for tests. The path is relative to this file so the .db lands
# inside tests/ regardless of the working directory.
_TEST_DB = Path(__file__).parent / "test.db"
SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DB}"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    """
    # Create all tables
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=engine)


# In-memory builders. Objects are transient ORM instances wired through
# their relationships, so scoring code sees the same attribute graph it
# gets from the database without a session.


@pytest.fixture
def make_competency():
    def _make(name: str = "Communication", **kwargs: Any) -> Competency:
        kwargs.setdefault("is_active", True)
        return Competency(id=uuid.uuid4(), name=name, **kwargs)

    return _make


@pytest.fixture
def make_indicator():
    def _make(
        competency: Competency,
        title: str = "Explains ideas clearly",
        weight: float = 1.0,
        is_active: bool = True,
    ) -> BehavioralIndicator:
        return BehavioralIndicator(
            id=uuid.uuid4(),
            competency_id=competency.id,
            competency=competency,
            title=title,
            weight=weight,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def make_question():
    def _make(
        indicator: BehavioralIndicator,
        question_type: QuestionType = QuestionType.LIKERT,
        difficulty_level: DifficultyLevel = DifficultyLevel.INTERMEDIATE,
        is_active: bool = True,
    ) -> AssessmentQuestion:
        return AssessmentQuestion(
            id=uuid.uuid4(),
            behavioral_indicator_id=indicator.id,
            behavioral_indicator=indicator,
            question_text=f"{indicator.title} ({question_type.value})",
            question_type=question_type,
            difficulty_level=difficulty_level,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def make_answer():
    def _make(
        question: AssessmentQuestion,
        likert_value: Optional[int] = None,
        score: Optional[float] = None,
        max_score: Optional[float] = None,
        is_skipped: bool = False,
        time_spent_seconds: Optional[int] = 12,
        answered: bool = True,
    ) -> TestAnswer:
        return TestAnswer(
            id=uuid.uuid4(),
            question_id=question.id,
            question=question,
            likert_value=likert_value,
            score=score,
            max_score=max_score,
            is_skipped=is_skipped,
            time_spent_seconds=time_spent_seconds,
            answered_at=utc_now() - timedelta(minutes=1) if answered and not is_skipped else None,
        )

    return _make


@pytest.fixture
def make_session():
    def _make(
        goal: Optional[AssessmentGoal] = AssessmentGoal.OVERVIEW,
        passing_score: Optional[float] = 70.0,
        blueprint: Optional[dict] = None,
        clerk_user_id: Optional[str] = None,
    ) -> TestSession:
        template = TestTemplate(
            id=uuid.uuid4(),
            name="Test template",
            goal=goal,
            passing_score=passing_score,
            blueprint=blueprint,
        )
        return TestSession(id=uuid.uuid4(), template=template, clerk_user_id=clerk_user_id)

    return _make


class InMemoryQuestionBank:
    """
    Dict-backed stand-in for the SQL lookups used by the assemblers.

    Implements the competency, catalog, indicator, question and item
    statistics lookups over objects registered with ``add_*``.
    """

    def __init__(self):
        self.competencies: dict[uuid.UUID, Competency] = {}
        self.indicators: dict[uuid.UUID, BehavioralIndicator] = {}
        self.questions: dict[uuid.UUID, AssessmentQuestion] = {}
        self.statuses: dict[uuid.UUID, Any] = {}

    def add_competency(self, competency: Competency) -> Competency:
        self.competencies[competency.id] = competency
        return competency

    def add_indicator(self, indicator: BehavioralIndicator) -> BehavioralIndicator:
        self.indicators[indicator.id] = indicator
        return indicator

    def add_question(self, question: AssessmentQuestion, status: Any = None) -> AssessmentQuestion:
        self.questions[question.id] = question
        if status is not None:
            self.statuses[question.id] = status
        return question

    # CompetencyLookup / CompetencyCatalog
    def get_competency(self, competency_id):
        return self.competencies.get(competency_id)

    def get_competencies(self, competency_ids):
        return {cid: self.competencies[cid] for cid in competency_ids if cid in self.competencies}

    def list_competencies(self, active_only: bool = True):
        return [c for c in self.competencies.values() if c.is_active or not active_only]

    # IndicatorLookup
    def get_indicator(self, indicator_id):
        return self.indicators.get(indicator_id)

    def find_by_competency(self, competency_id, active_only: bool = True):
        return [
            ind
            for ind in self.indicators.values()
            if ind.competency_id == competency_id and (ind.is_active or not active_only)
        ]

    # QuestionLookup
    def get_question(self, question_id):
        return self.questions.get(question_id)

    def find_by_indicator(self, indicator_id, active_only: bool = True):
        return [
            q
            for q in self.questions.values()
            if q.behavioral_indicator_id == indicator_id and (q.is_active or not active_only)
        ]

    # ItemStatisticsLookup
    def find_statuses(self, question_ids):
        return {qid: self.statuses[qid] for qid in question_ids if qid in self.statuses}


@pytest.fixture
def question_bank():
    return InMemoryQuestionBank()


@pytest.fixture
def seed_bank(question_bank, make_competency, make_indicator, make_question):
    """Register a competency with indicators and questions in ``question_bank``."""

    def _seed(
        name: str = "Communication",
        indicator_weights: tuple = (1.0,),
        questions_per_indicator: int = 3,
        difficulty_level: DifficultyLevel = DifficultyLevel.INTERMEDIATE,
        status: Any = None,
        **competency_kwargs: Any,
    ):
        competency = question_bank.add_competency(make_competency(name, **competency_kwargs))
        indicators = []
        for position, weight in enumerate(indicator_weights):
            indicator = question_bank.add_indicator(
                make_indicator(competency, title=f"{name} indicator {position}", weight=weight)
            )
            indicators.append(indicator)
            for _ in range(questions_per_indicator):
                question_bank.add_question(
                    make_question(indicator, difficulty_level=difficulty_level), status
                )
        return competency, indicators

    return _seed
