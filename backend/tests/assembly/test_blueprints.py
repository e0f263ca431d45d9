"""
Tests for blueprint schemas and parsing.
"""
import uuid

import pytest
from pydantic import ValidationError

from assessment.core.assembly.blueprints import (
    JobFitBlueprint,
    OverviewBlueprint,
    TeamFitBlueprint,
    blueprint_for_goal,
    parse_blueprint,
)
from assessment.core.config import settings
from assessment.models import AssessmentGoal, DifficultyLevel


class TestParseBlueprint:
    """Tests for strategy-discriminated parsing."""

    def test_overview_defaults(self):
        """Overview blueprints default to 3 intermediate questions per indicator."""
        blueprint = parse_blueprint({"strategy": "overview"})
        assert isinstance(blueprint, OverviewBlueprint)
        assert blueprint.questions_per_indicator == 3
        assert blueprint.preferred_difficulty == DifficultyLevel.INTERMEDIATE

    def test_job_fit(self):
        """Job-fit blueprints carry SOC code and strictness."""
        blueprint = parse_blueprint(
            {"strategy": "job_fit", "onet_soc_code": "15-1252.00", "strictness_level": 80}
        )
        assert isinstance(blueprint, JobFitBlueprint)
        assert blueprint.strictness_level == 80
        assert blueprint.passport_max_age_days == settings.PASSPORT_MAX_AGE_DAYS

    def test_team_fit(self):
        """Team ids are parsed as UUIDs."""
        team_id = uuid.uuid4()
        blueprint = parse_blueprint({"strategy": "team_fit", "team_id": str(team_id)})
        assert isinstance(blueprint, TeamFitBlueprint)
        assert blueprint.team_id == team_id
        assert blueprint.saturation_threshold == 0.75

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValidationError):
            parse_blueprint({"strategy": "culture_fit"})

    @pytest.mark.parametrize("soc_code", ["151252.00", "15-1252", "ab-cdef.gh"])
    def test_soc_code_format(self, soc_code):
        """SOC codes must look like XX-XXXX.XX."""
        with pytest.raises(ValidationError):
            JobFitBlueprint(onet_soc_code=soc_code)

    @pytest.mark.parametrize("strictness", [-1, 101])
    def test_strictness_bounds(self, strictness):
        with pytest.raises(ValidationError):
            JobFitBlueprint(strictness_level=strictness)

    def test_questions_per_indicator_bounds(self):
        with pytest.raises(ValidationError):
            OverviewBlueprint(questions_per_indicator=11)

    def test_blank_candidate_id_is_none(self):
        """Whitespace candidate ids mean a full assessment."""
        assert JobFitBlueprint(candidate_clerk_user_id="   ").candidate_clerk_user_id is None


class TestBlueprintForGoal:
    """Tests for blueprint_for_goal."""

    def test_none(self):
        assert blueprint_for_goal(None, AssessmentGoal.JOB_FIT) is None

    def test_dict_without_strategy(self):
        """Stored blueprints without a strategy key are accepted for the goal."""
        blueprint = blueprint_for_goal({"strictness_level": 10}, AssessmentGoal.JOB_FIT)
        assert isinstance(blueprint, JobFitBlueprint)
        assert blueprint.strictness_level == 10

    def test_model_passthrough(self):
        model = TeamFitBlueprint(team_id=uuid.uuid4())
        assert blueprint_for_goal(model, AssessmentGoal.TEAM_FIT) is model

    def test_wrong_model_type(self):
        """A model for another goal is treated as absent."""
        assert blueprint_for_goal(OverviewBlueprint(), AssessmentGoal.JOB_FIT) is None

    def test_invalid_payload_is_absent(self, caplog):
        """Invalid configuration is logged and ignored."""
        with caplog.at_level("WARNING"):
            result = blueprint_for_goal({"strictness_level": 500}, AssessmentGoal.JOB_FIT)
        assert result is None
        assert "Ignoring invalid job_fit blueprint" in caplog.text

    def test_mismatched_strategy_is_absent(self):
        assert blueprint_for_goal({"strategy": "overview"}, AssessmentGoal.JOB_FIT) is None

    def test_non_dict_payload(self):
        assert blueprint_for_goal("job_fit", AssessmentGoal.JOB_FIT) is None
