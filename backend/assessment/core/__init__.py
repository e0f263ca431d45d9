"""
Core module for configuration, scoring and test assembly.

Scoring and assembly subpackages are not imported at package level to avoid
circular imports with assessment.models (which imports settings from here).
Import them directly: from assessment.core.scoring.strategies import ...
"""
from .config import settings

__all__ = ["settings"]
