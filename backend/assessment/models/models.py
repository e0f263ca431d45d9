"""
Database models for the assessment scoring backend.

The question bank is a three-level hierarchy: a Competency groups weighted
BehavioralIndicators, and each indicator is measured by AssessmentQuestions.
Sessions are taken against a TestTemplate and record one TestAnswer per
presented question. Psychometric side tables (CompetencyReliability,
ItemStatistics, CompetencyScoreSample) feed the confidence-interval
calculator and the item selector; CompetencyPassport, OccupationBenchmark and
TeamCompetencySaturation feed test assembly.
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from .base import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuestionType(str, enum.Enum):
    """Question type enumeration.

    Several names are aliases of the same scoring family (for example LIKERT,
    LIKERT_SCALE and FREQUENCY_SCALE are all 1-5 scale items). The families
    are resolved in ``assessment.core.scoring.normalizer``.
    """

    LIKERT = "LIKERT"
    LIKERT_SCALE = "LIKERT_SCALE"
    FREQUENCY_SCALE = "FREQUENCY_SCALE"
    MCQ = "MCQ"
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    SJT = "SJT"
    SITUATIONAL_JUDGMENT = "SITUATIONAL_JUDGMENT"
    CAPABILITY_ASSESSMENT = "CAPABILITY_ASSESSMENT"
    PEER_FEEDBACK = "PEER_FEEDBACK"
    BEHAVIORAL_EXAMPLE = "BEHAVIORAL_EXAMPLE"
    OPEN_TEXT = "OPEN_TEXT"
    SELF_REFLECTION = "SELF_REFLECTION"


class DifficultyLevel(str, enum.Enum):
    """Difficulty level enumeration, ordered from easiest to hardest."""

    FOUNDATIONAL = "foundational"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def ordinal(self) -> int:
        return list(DifficultyLevel).index(self)


class ItemValidityStatus(str, enum.Enum):
    """Psychometric lifecycle state of a question."""

    ACTIVE = "active"
    PROBATION = "probation"
    FLAGGED_FOR_REVIEW = "flagged_for_review"
    RETIRED = "retired"


class AssessmentGoal(str, enum.Enum):
    """What a template is assembled and scored for."""

    OVERVIEW = "overview"
    JOB_FIT = "job_fit"
    TEAM_FIT = "team_fit"


class SessionStatus(str, enum.Enum):
    """Test session status enumeration."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Competency(Base):
    """A broad skill or trait composed of weighted behavioral indicators."""

    __tablename__ = "competencies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text)
    # External standard mappings. onet_code drives benchmark matching,
    # big_five_category feeds the team-fit personality profile.
    onet_code = Column(String(20), nullable=True)
    onet_title = Column(String(255), nullable=True)
    esco_uri = Column(String(500), nullable=True)
    big_five_category = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    indicators = relationship(
        "BehavioralIndicator",
        back_populates="competency",
        cascade="all, delete-orphan",
    )
    reliability = relationship(
        "CompetencyReliability",
        back_populates="competency",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Competency {self.name!r}>"


class BehavioralIndicator(Base):
    """An observable behavior measured by one or more questions."""

    __tablename__ = "behavioral_indicators"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    competency_id = Column(
        Uuid,
        ForeignKey("competencies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    description = Column(Text)
    weight = Column(Float, default=1.0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    competency = relationship("Competency", back_populates="indicators")
    questions = relationship(
        "AssessmentQuestion",
        back_populates="behavioral_indicator",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("weight >= 0", name="ck_indicator_weight_non_negative"),
    )


class AssessmentQuestion(Base):
    """A bank item measuring one behavioral indicator.

    ``answer_options`` is a JSON array of ``{"id", "text", "score"}`` objects
    for scorable types and NULL for free-text types, which are scored only
    through manual grading.
    """

    __tablename__ = "assessment_questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    behavioral_indicator_id = Column(
        Uuid,
        ForeignKey("behavioral_indicators.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_text = Column(Text, nullable=False)
    question_type = Column(Enum(QuestionType), nullable=False)
    answer_options = Column(JSON, nullable=True)
    difficulty_level = Column(
        Enum(DifficultyLevel), default=DifficultyLevel.INTERMEDIATE, nullable=False
    )
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    behavioral_indicator = relationship(
        "BehavioralIndicator", back_populates="questions"
    )
    statistics = relationship(
        "ItemStatistics",
        back_populates="question",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index(
            "ix_assessment_questions_indicator_active",
            "behavioral_indicator_id",
            "is_active",
        ),
    )


class TestTemplate(Base):
    """A configured assessment: goal, pass mark and assembly blueprint."""

    __test__ = False  # keep pytest from collecting the model

    __tablename__ = "test_templates"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    goal = Column(Enum(AssessmentGoal), default=AssessmentGoal.OVERVIEW, nullable=True)
    passing_score = Column(Float, default=70.0, nullable=True)
    # Serialized blueprint (see assessment.core.assembly.blueprints).
    blueprint = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    sessions = relationship("TestSession", back_populates="template")


class TestSession(Base):
    """One attempt at a template by one (possibly anonymous) taker."""

    __test__ = False  # keep pytest from collecting the model

    __tablename__ = "test_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id = Column(
        Uuid, ForeignKey("test_templates.id", ondelete="CASCADE"), nullable=False
    )
    clerk_user_id = Column(String(255), nullable=True, index=True)
    status = Column(
        Enum(SessionStatus), default=SessionStatus.IN_PROGRESS, nullable=False
    )
    started_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    template = relationship("TestTemplate", back_populates="sessions")
    answers = relationship(
        "TestAnswer", back_populates="session", cascade="all, delete-orphan"
    )


class TestAnswer(Base):
    """One response to one question within a session."""

    __test__ = False  # keep pytest from collecting the model

    __tablename__ = "test_answers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid,
        ForeignKey("test_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id = Column(
        Uuid, ForeignKey("assessment_questions.id"), nullable=False, index=True
    )
    likert_value = Column(Integer, nullable=True)
    selected_option_ids = Column(JSON, nullable=True)
    text_response = Column(Text, nullable=True)
    # Pre-computed score (MCQ/SJT option score or manual grade)
    score = Column(Float, nullable=True)
    max_score = Column(Float, nullable=True)
    is_skipped = Column(Boolean, default=False, nullable=False)
    time_spent_seconds = Column(Integer, nullable=True)
    answered_at = Column(DateTime(timezone=True), nullable=True)

    session = relationship("TestSession", back_populates="answers")
    question = relationship("AssessmentQuestion")

    __table_args__ = (
        UniqueConstraint("session_id", "question_id", name="uq_answer_session_question"),
    )


class CompetencyReliability(Base):
    """Cronbach's alpha for one competency."""

    __tablename__ = "competency_reliability"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    competency_id = Column(
        Uuid,
        ForeignKey("competencies.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    cronbach_alpha = Column(Float, nullable=True)
    sample_size = Column(Integer, default=0, nullable=False)
    item_count = Column(Integer, default=0, nullable=False)
    calculated_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    competency = relationship("Competency", back_populates="reliability")


class ItemStatistics(Base):
    """Per-question psychometric status.

    A question without a row here is treated as PROBATION by the item
    selector.
    """

    __tablename__ = "item_statistics"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id = Column(
        Uuid,
        ForeignKey("assessment_questions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    validity_status = Column(
        Enum(ItemValidityStatus),
        default=ItemValidityStatus.PROBATION,
        nullable=False,
        index=True,
    )
    difficulty_index = Column(Float, nullable=True)
    discrimination_index = Column(Float, nullable=True)
    response_count = Column(Integer, default=0, nullable=False)
    last_calculated_at = Column(DateTime(timezone=True), nullable=True)

    question = relationship("AssessmentQuestion", back_populates="statistics")


class CompetencyScoreSample(Base):
    """Historical competency percentage from a completed result.

    Sample count and population SD over these rows drive the CI tiering.
    """

    __tablename__ = "competency_score_samples"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    competency_id = Column(Uuid, nullable=False, index=True)
    session_id = Column(Uuid, nullable=True)
    percentage = Column(Float, nullable=False)
    recorded_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)


class CompetencyPassport(Base):
    """A candidate's previously measured competency scores (0-1 scale).

    ``competency_scores`` maps competency id (string UUID) to score.
    """

    __tablename__ = "competency_passports"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    clerk_user_id = Column(String(255), nullable=False, unique=True)
    competency_scores = Column(JSON, nullable=False, default=dict)
    big_five_profile = Column(JSON, nullable=True)
    last_assessed = Column(DateTime(timezone=True), nullable=True)
    is_valid = Column(Boolean, default=True, nullable=False)


class OccupationBenchmark(Base):
    """One O*NET benchmark: an occupation's required level for a competency.

    Benchmarks are stored on the 0-1 scale used by passports.
    """

    __tablename__ = "occupation_benchmarks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    soc_code = Column(String(20), nullable=False, index=True)
    occupation_title = Column(String(255), nullable=False)
    competency_name = Column(String(255), nullable=False)
    benchmark = Column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint("soc_code", "competency_name", name="uq_benchmark_soc_name"),
    )


class TeamCompetencySaturation(Base):
    """How much of a competency a team already covers (0-1)."""

    __tablename__ = "team_competency_saturation"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    team_id = Column(Uuid, nullable=False, index=True)
    competency_id = Column(
        Uuid, ForeignKey("competencies.id", ondelete="CASCADE"), nullable=False
    )
    saturation = Column(Float, nullable=False)

    __table_args__ = (
        UniqueConstraint("team_id", "competency_id", name="uq_team_competency"),
    )
