"""
Tests for PsychometricItemSelector.
"""
import random
from unittest.mock import MagicMock

import pytest

from assessment.core.assembly.item_selector import PsychometricItemSelector
from assessment.models import DifficultyLevel, ItemValidityStatus


@pytest.fixture
def indicator(question_bank, make_competency, make_indicator):
    competency = question_bank.add_competency(make_competency())
    return question_bank.add_indicator(make_indicator(competency))


@pytest.fixture
def add_questions(question_bank, make_question, indicator):
    def _add(count, status=None, difficulty_level=DifficultyLevel.INTERMEDIATE, is_active=True):
        return [
            question_bank.add_question(
                make_question(indicator, difficulty_level=difficulty_level, is_active=is_active),
                status,
            ).id
            for _ in range(count)
        ]

    return _add


def make_selector(question_bank, **kwargs):
    kwargs.setdefault("rng", random.Random(42))
    return PsychometricItemSelector(question_bank, question_bank, **kwargs)


class TestSelectQuestionsForIndicator:
    """Tests for select_questions_for_indicator."""

    def test_retired_never_selected(self, question_bank, indicator, add_questions):
        """RETIRED items are excluded on every run, even when the pool is short."""
        add_questions(2, ItemValidityStatus.ACTIVE)
        retired = set(add_questions(5, ItemValidityStatus.RETIRED))

        for seed in range(20):
            selector = make_selector(question_bank, rng=random.Random(seed))
            selected = selector.select_questions_for_indicator(indicator.id, 5)
            assert not retired & set(selected)
            assert len(selected) == 2

    def test_active_items_fill_first(self, question_bank, indicator, add_questions):
        """Validated items make up the selection before probation ones."""
        active = set(add_questions(5, ItemValidityStatus.ACTIVE))
        add_questions(5, ItemValidityStatus.PROBATION)

        selected = make_selector(question_bank).select_questions_for_indicator(indicator.id, 4)

        assert set(selected) <= active

    def test_probation_quota(self, question_bank, indicator, add_questions):
        """Probation items are capped at max(1, target * pct // 100)."""
        active = set(add_questions(2, ItemValidityStatus.ACTIVE))
        probation = set(add_questions(10, ItemValidityStatus.PROBATION))

        selected = make_selector(question_bank, probation_percentage=20).select_questions_for_indicator(
            indicator.id, 10
        )

        # 2 active + max(1, 10 * 20 // 100) = 2 probation
        assert len(selected) == 4
        assert active <= set(selected)
        assert len(probation & set(selected)) == 2

    def test_questions_without_statistics_are_probation(self, question_bank, indicator, add_questions):
        """Unscored items are treated as PROBATION and still get a slot."""
        add_questions(3)

        selected = make_selector(question_bank).select_questions_for_indicator(indicator.id, 3)

        assert len(selected) == 1

    def test_flagged_used_only_when_short(self, question_bank, indicator, add_questions):
        """FLAGGED_FOR_REVIEW items only fill a pool that is otherwise short."""
        add_questions(1, ItemValidityStatus.ACTIVE)
        flagged = set(add_questions(3, ItemValidityStatus.FLAGGED_FOR_REVIEW))

        selected = make_selector(question_bank).select_questions_for_indicator(indicator.id, 3)

        assert len(selected) == 3
        assert len(flagged & set(selected)) == 2

    def test_flagged_not_used_when_pool_full(self, question_bank, indicator, add_questions):
        """A full active pool leaves flagged items out."""
        add_questions(3, ItemValidityStatus.ACTIVE)
        flagged = set(add_questions(3, ItemValidityStatus.FLAGGED_FOR_REVIEW))

        selected = make_selector(question_bank).select_questions_for_indicator(indicator.id, 3)

        assert not flagged & set(selected)

    def test_preferred_difficulty_first(self, question_bank, indicator, add_questions):
        """Questions at the preferred difficulty lead within a tier."""
        add_questions(3, ItemValidityStatus.ACTIVE, DifficultyLevel.FOUNDATIONAL)
        expert = set(add_questions(2, ItemValidityStatus.ACTIVE, DifficultyLevel.EXPERT))

        selected = make_selector(question_bank).select_questions_for_indicator(
            indicator.id, 2, preferred_difficulty=DifficultyLevel.EXPERT
        )

        assert set(selected) == expert

    def test_excluded_ids_are_skipped(self, question_bank, indicator, add_questions):
        """Already used questions are never returned again."""
        ids = add_questions(3, ItemValidityStatus.ACTIVE)

        selected = make_selector(question_bank).select_questions_for_indicator(
            indicator.id, 3, exclude={ids[0]}
        )

        assert ids[0] not in selected
        assert len(selected) == 2

    def test_inactive_questions_ignored(self, question_bank, indicator, add_questions):
        """Deactivated questions are not candidates."""
        add_questions(2, ItemValidityStatus.ACTIVE, is_active=False)

        assert make_selector(question_bank).select_questions_for_indicator(indicator.id, 2) == []

    def test_zero_target(self, question_bank, indicator, add_questions):
        """A non-positive target selects nothing."""
        add_questions(2, ItemValidityStatus.ACTIVE)
        assert make_selector(question_bank).select_questions_for_indicator(indicator.id, 0) == []

    def test_disabled_mode_ignores_statuses(self, question_bank, indicator, add_questions):
        """With psychometrics off every active question is a candidate."""
        add_questions(2, ItemValidityStatus.RETIRED)
        add_questions(2, ItemValidityStatus.PROBATION)

        selected = make_selector(question_bank, enabled=False).select_questions_for_indicator(
            indicator.id, 4
        )

        assert len(selected) == 4


class TestSelectValidatedQuestions:
    """Tests for select_validated_questions."""

    def test_grouped_in_indicator_order(self, question_bank, seed_bank):
        """Selections are concatenated in the given indicator order."""
        _, first = seed_bank("Communication", status=ItemValidityStatus.ACTIVE)
        _, second = seed_bank("Leadership", status=ItemValidityStatus.ACTIVE)
        selector = make_selector(question_bank)

        selected = selector.select_validated_questions([second[0].id, first[0].id], 2)

        owners = [question_bank.get_question(qid).behavioral_indicator_id for qid in selected]
        assert owners == [second[0].id] * 2 + [first[0].id] * 2


class TestAvailability:
    """Tests for eligibility and availability helpers."""

    def test_summary_counts_every_status(self, question_bank, indicator, add_questions):
        """The summary has an entry for every validity status."""
        add_questions(2, ItemValidityStatus.ACTIVE)
        add_questions(1)
        add_questions(1, ItemValidityStatus.RETIRED)

        summary = make_selector(question_bank).get_availability_summary(indicator.id)

        assert summary == {
            ItemValidityStatus.ACTIVE: 2,
            ItemValidityStatus.PROBATION: 1,
            ItemValidityStatus.FLAGGED_FOR_REVIEW: 0,
            ItemValidityStatus.RETIRED: 1,
        }

    def test_counts_and_sufficiency(self, question_bank, indicator, add_questions):
        """Retired items do not count towards sufficiency."""
        add_questions(2, ItemValidityStatus.ACTIVE)
        add_questions(1, ItemValidityStatus.PROBATION)
        add_questions(3, ItemValidityStatus.RETIRED)
        selector = make_selector(question_bank)

        assert selector.count_active_questions(indicator.id) == 2
        assert selector.count_probation_questions(indicator.id) == 1
        assert selector.has_sufficient_questions(indicator.id, 3) is True
        assert selector.has_sufficient_questions(indicator.id, 4) is False

    def test_eligibility(self, question_bank, indicator, add_questions):
        """Retired, inactive and unknown questions are not eligible."""
        [active] = add_questions(1, ItemValidityStatus.ACTIVE)
        [retired] = add_questions(1, ItemValidityStatus.RETIRED)
        [inactive] = add_questions(1, ItemValidityStatus.ACTIVE, is_active=False)
        selector = make_selector(question_bank)

        assert selector.is_eligible_for_assembly(active) is True
        assert selector.is_eligible_for_assembly(retired) is False
        assert selector.is_eligible_for_assembly(inactive) is False
        assert selector.is_eligible_for_assembly(indicator.id) is False

    def test_disabled_mode_eligibility(self, question_bank, indicator, add_questions):
        """With psychometrics off, retirement does not apply."""
        [retired] = add_questions(1, ItemValidityStatus.RETIRED)
        assert make_selector(question_bank, enabled=False).is_eligible_for_assembly(retired) is True

    def test_filter_eligible_single_status_lookup(self, question_bank, indicator, add_questions):
        """Eligibility for a batch of questions costs one status lookup, order kept."""
        first, second = add_questions(2, ItemValidityStatus.ACTIVE)
        [retired] = add_questions(1, ItemValidityStatus.RETIRED)
        [unscored] = add_questions(1)
        statistics = MagicMock(wraps=question_bank)
        selector = PsychometricItemSelector(question_bank, statistics)

        eligible = selector.filter_eligible(question_bank.find_by_indicator(indicator.id))

        assert [q.id for q in eligible] == [first, second, unscored]
        assert retired not in {q.id for q in eligible}
        statistics.find_statuses.assert_called_once()

    def test_filter_eligible_disabled_mode(self, question_bank, indicator, add_questions):
        """With psychometrics off no statuses are looked up."""
        add_questions(2, ItemValidityStatus.RETIRED)
        statistics = MagicMock(wraps=question_bank)
        selector = PsychometricItemSelector(question_bank, statistics, enabled=False)

        eligible = selector.filter_eligible(question_bank.find_by_indicator(indicator.id))

        assert len(eligible) == 2
        statistics.find_statuses.assert_not_called()
