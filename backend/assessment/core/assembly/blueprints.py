"""
Pydantic schemas for test assembly blueprints.

A template stores its blueprint as JSON with a ``strategy`` discriminator
(``overview``, ``job_fit`` or ``team_fit``). ``parse_blueprint`` turns that
JSON into the matching model; ``blueprint_for_goal`` additionally accepts
older templates that stored the goal-specific keys without a strategy.
"""
import logging
from typing import Annotated, Any, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from assessment.core.config import settings
from assessment.models.models import AssessmentGoal, DifficultyLevel

logger = logging.getLogger(__name__)


class OverviewBlueprint(BaseModel):
    """Universal baseline: balanced coverage of the chosen competencies."""

    strategy: Literal[AssessmentGoal.OVERVIEW] = AssessmentGoal.OVERVIEW
    competency_ids: List[UUID] = Field(
        default_factory=list, description="Competencies to cover"
    )
    questions_per_indicator: int = Field(
        3, ge=1, le=10, description="Questions drawn per behavioral indicator"
    )
    preferred_difficulty: DifficultyLevel = Field(
        DifficultyLevel.INTERMEDIATE,
        description="Difficulty tried first for every indicator",
    )
    include_big_five: bool = Field(True, description="Project results onto Big Five")


class JobFitBlueprint(BaseModel):
    """Targeted fit: gap analysis against an O*NET occupation benchmark."""

    strategy: Literal[AssessmentGoal.JOB_FIT] = AssessmentGoal.JOB_FIT
    onet_soc_code: Optional[str] = Field(
        None,
        pattern=r"^\d{2}-\d{4}\.\d{2}$",
        description="O*NET SOC code, format XX-XXXX.XX (e.g. 15-1252.00)",
    )
    strictness_level: int = Field(
        50, ge=0, le=100, description="0 = lenient, 100 = strict"
    )
    candidate_clerk_user_id: Optional[str] = Field(
        None, description="Candidate whose competency passport drives delta testing"
    )
    passport_max_age_days: int = Field(
        default_factory=lambda: settings.PASSPORT_MAX_AGE_DAYS,
        ge=0,
        le=730,
        description="Passports older than this are ignored",
    )
    competency_ids: List[UUID] = Field(
        default_factory=list, description="Optional explicit competency scope"
    )

    @field_validator("candidate_clerk_user_id")
    @classmethod
    def blank_user_id_is_none(cls, v: Optional[str]) -> Optional[str]:
        """An empty or whitespace id means no candidate (full assessment)."""
        if v is not None and not v.strip():
            return None
        return v


class TeamFitBlueprint(BaseModel):
    """Dynamic gap analysis: target competencies the team lacks."""

    strategy: Literal[AssessmentGoal.TEAM_FIT] = AssessmentGoal.TEAM_FIT
    team_id: Optional[UUID] = Field(None, description="Team being analyzed")
    saturation_threshold: float = Field(
        0.75,
        ge=0.0,
        le=1.0,
        description="Team coverage at which a competency counts as saturated",
    )
    target_role: Optional[str] = Field(None, description="Role the candidate would fill")


TestBlueprint = Annotated[
    Union[OverviewBlueprint, JobFitBlueprint, TeamFitBlueprint],
    Field(discriminator="strategy"),
]

_blueprint_adapter: TypeAdapter[Any] = TypeAdapter(TestBlueprint)

_BLUEPRINT_TYPES: dict[AssessmentGoal, type[BaseModel]] = {
    AssessmentGoal.OVERVIEW: OverviewBlueprint,
    AssessmentGoal.JOB_FIT: JobFitBlueprint,
    AssessmentGoal.TEAM_FIT: TeamFitBlueprint,
}


def parse_blueprint(data: Any) -> Union[OverviewBlueprint, JobFitBlueprint, TeamFitBlueprint]:
    """
    Validate serialized blueprint data into the model named by ``strategy``.

    Raises:
        pydantic.ValidationError: If the data is malformed or the strategy is unknown
    """
    return _blueprint_adapter.validate_python(data)


def blueprint_for_goal(raw: Any, goal: AssessmentGoal) -> Optional[BaseModel]:
    """
    Resolve a template's stored blueprint for ``goal``, or None.

    Accepts an already-parsed model of the right type, or a dict with or
    without a ``strategy`` key. A dict for a different strategy, or one that
    fails validation, is logged and treated as absent: scoring must still
    produce a result when template configuration is bad.
    """
    model_type = _BLUEPRINT_TYPES[goal]
    if raw is None:
        return None
    if isinstance(raw, model_type):
        return raw
    if isinstance(raw, BaseModel):
        logger.warning(
            f"Expected {model_type.__name__} for goal {goal.value}, "
            f"got {type(raw).__name__}"
        )
        return None
    if not isinstance(raw, dict):
        logger.warning(f"Unsupported blueprint payload type {type(raw).__name__}")
        return None

    payload = dict(raw)
    payload.setdefault("strategy", goal)
    try:
        return model_type.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid {goal.value} blueprint: {e.error_count()} error(s)")
        return None
