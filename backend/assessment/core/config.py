"""
Application configuration settings.
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Self


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Assessment Scoring Backend"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./assessment.db"
    DATABASE_ECHO: bool = False

    # Scoring
    # Pass mark (percent) used when a template does not define one
    DEFAULT_PASSING_SCORE: float = Field(default=70.0, ge=0.0, le=100.0)

    # Confidence intervals. Scores are on a 0-100 scale, so 15 points is the
    # conventional population SD when no history exists.
    CI_DEFAULT_SD: float = Field(default=15.0, gt=0.0)
    CI_MIN_SAMPLE_SIZE_FOR_SD: int = Field(default=30, ge=1)
    CI_MIN_SAMPLE_SIZE_FOR_BOOTSTRAP: int = Field(default=5, ge=0)

    # Overview (universal baseline) profile analysis
    OVERVIEW_MIN_QUESTIONS_PER_COMPETENCY: int = Field(default=3, ge=1)
    OVERVIEW_STRENGTH_THRESHOLD: float = 75.0
    OVERVIEW_DEVELOPMENT_THRESHOLD: float = 40.0
    OVERVIEW_CRITICAL_GAP_THRESHOLD: float = 30.0
    OVERVIEW_PROFILE_BAND_WIDTH: float = 10.0

    # Job fit
    JOB_FIT_BASE_THRESHOLD: float = Field(default=0.5, ge=0.0, le=1.0)
    JOB_FIT_STRICTNESS_MAX_ADJUSTMENT: float = Field(default=0.3, ge=0.0, le=1.0)
    JOB_FIT_MIN_QUESTIONS_PER_COMPETENCY: int = Field(default=3, ge=1)

    # Team fit (ratios on the 0-1 scale)
    TEAM_FIT_SATURATION_THRESHOLD: float = Field(default=0.75, ge=0.0, le=1.0)
    TEAM_FIT_DIVERSITY_THRESHOLD: float = Field(default=0.5, ge=0.0, le=1.0)
    TEAM_FIT_DIVERSITY_BONUS_THRESHOLD: float = Field(default=0.4, ge=0.0, le=1.0)
    TEAM_FIT_BONUS_MAX_SATURATION: float = Field(default=0.6, ge=0.0, le=1.0)
    TEAM_FIT_SATURATION_PENALTY_THRESHOLD: float = Field(default=0.8, ge=0.0, le=1.0)
    TEAM_FIT_DIVERSITY_BONUS: float = Field(default=1.1, gt=0.0)
    TEAM_FIT_SATURATION_PENALTY: float = Field(default=0.9, gt=0.0)

    # Psychometric item selection
    PSYCHOMETRICS_ENABLED: bool = True
    PROBATION_PERCENTAGE: int = Field(
        default=20,
        ge=0,
        le=100,
        description="Share of each indicator's questions drawn from PROBATION items",
    )

    # Test assembly
    PASSPORT_MAX_AGE_DAYS: int = Field(default=180, ge=0)
    FUZZY_MATCH_THRESHOLD: float = Field(
        default=0.5,
        gt=0.0,
        le=1.0,
        description="Minimum token Jaccard similarity for a fuzzy competency name match",
    )

    # Competency lookup circuit breaker
    COMPETENCY_LOOKUP_FAILURE_RATE_THRESHOLD: float = Field(
        default=50.0,
        gt=0.0,
        le=100.0,
        description="Failure percentage over the rolling window that opens the breaker",
    )
    COMPETENCY_LOOKUP_WINDOW_SIZE: int = Field(default=10, ge=1)
    COMPETENCY_LOOKUP_MIN_CALLS: int = Field(default=5, ge=1)
    COMPETENCY_LOOKUP_OPEN_SECONDS: float = Field(default=30.0, gt=0.0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_overview_thresholds(self) -> Self:
        """Overview bands must be ordered critical <= development <= strength."""
        if not (
            self.OVERVIEW_CRITICAL_GAP_THRESHOLD
            <= self.OVERVIEW_DEVELOPMENT_THRESHOLD
            <= self.OVERVIEW_STRENGTH_THRESHOLD
        ):
            raise ValueError(
                "Overview thresholds must satisfy critical <= development <= strength, "
                f"got {self.OVERVIEW_CRITICAL_GAP_THRESHOLD}, "
                f"{self.OVERVIEW_DEVELOPMENT_THRESHOLD}, "
                f"{self.OVERVIEW_STRENGTH_THRESHOLD}"
            )
        return self

    @model_validator(mode="after")
    def validate_team_fit_thresholds(self) -> Self:
        """A competency cannot be saturated before it counts toward diversity."""
        if self.TEAM_FIT_DIVERSITY_THRESHOLD > self.TEAM_FIT_SATURATION_THRESHOLD:
            raise ValueError(
                "TEAM_FIT_DIVERSITY_THRESHOLD must not exceed "
                f"TEAM_FIT_SATURATION_THRESHOLD, got "
                f"{self.TEAM_FIT_DIVERSITY_THRESHOLD} > "
                f"{self.TEAM_FIT_SATURATION_THRESHOLD}"
            )
        return self

    @model_validator(mode="after")
    def validate_circuit_breaker_window(self) -> Self:
        """The breaker can never trip if it needs more calls than it remembers."""
        if self.COMPETENCY_LOOKUP_MIN_CALLS > self.COMPETENCY_LOOKUP_WINDOW_SIZE:
            raise ValueError(
                "COMPETENCY_LOOKUP_MIN_CALLS must not exceed "
                "COMPETENCY_LOOKUP_WINDOW_SIZE"
            )
        return self


settings = Settings()
