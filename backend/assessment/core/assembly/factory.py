"""
Goal -> assembler dispatch.
"""
import logging
from typing import Any, Iterable, Optional, Protocol, Union
from uuid import UUID

from pydantic import BaseModel

from assessment.models.models import AssessmentGoal

logger = logging.getLogger(__name__)


class TestAssembler(Protocol):
    """Builds an ordered question list from a blueprint for one goal."""

    __test__ = False  # keep pytest from collecting the protocol

    goal: AssessmentGoal

    def supports(self, blueprint: Any) -> bool:
        ...

    def assemble(self, blueprint: Any) -> list[UUID]:
        ...


class TestAssemblerFactory:
    """
    Explicit table of assemblers keyed by assessment goal.

    Example:
        >>> factory = TestAssemblerFactory([overview, job_fit, team_fit])
        >>> factory.get_assembler(blueprint).assemble(blueprint)
    """

    __test__ = False

    def __init__(self, assemblers: Iterable[TestAssembler]):
        self._assemblers: list[TestAssembler] = list(assemblers)
        self._by_goal: dict[AssessmentGoal, TestAssembler] = {}
        for assembler in self._assemblers:
            if assembler.goal in self._by_goal:
                raise ValueError(f"Duplicate assembler for goal: {assembler.goal.value}")
            self._by_goal[assembler.goal] = assembler

    def get_assembler(
        self, blueprint_or_goal: Optional[Union[BaseModel, AssessmentGoal]]
    ) -> TestAssembler:
        """
        Resolve the assembler for a blueprint (by its ``strategy``) or a goal.

        Raises:
            ValueError: If the argument is None, has no strategy, or no
                assembler handles its goal
        """
        if blueprint_or_goal is None:
            raise ValueError("Blueprint cannot be null")

        if isinstance(blueprint_or_goal, AssessmentGoal):
            goal = blueprint_or_goal
        else:
            goal = getattr(blueprint_or_goal, "strategy", None)
            if goal is None:
                raise ValueError("Blueprint strategy cannot be null")

        assembler = self._by_goal.get(goal)
        if assembler is None:
            available = sorted(g.value for g in self._by_goal)
            raise ValueError(
                f"No assembler found for goal: {goal}. Available goals: {available}"
            )
        return assembler

    def has_assembler(self, goal: Optional[AssessmentGoal]) -> bool:
        return goal is not None and goal in self._by_goal

    def all_assemblers(self) -> list[TestAssembler]:
        return list(self._assemblers)
