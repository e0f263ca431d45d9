"""
Tests for decimal threshold rounding.
"""
import pytest

from assessment.core.scoring.precision import meets_threshold, round4, round_half_up


class TestRound4:
    """Tests for round4."""

    def test_half_rounds_up(self):
        """0.49995 rounds up to 0.5."""
        assert round4(0.49995) == 0.5

    def test_below_half_rounds_down(self):
        """0.49994 rounds down to 0.4999."""
        assert round4(0.49994) == 0.4999

    def test_float_noise_just_below_half(self):
        """The float just below 0.5 still rounds to 0.5."""
        assert round4(0.49999999999999994) == 0.5

    def test_negative_values(self):
        """Half-up on a negative value rounds away from zero."""
        assert round4(-0.12345) == -0.1235


class TestRoundHalfUp:
    """Tests for round_half_up at other scales."""

    @pytest.mark.parametrize(
        "value,places,expected",
        [(2.5, 0, 3.0), (3.5, 0, 4.0), (6.705, 2, 6.71), (0.8, 4, 0.8)],
    )
    def test_rounds_half_up(self, value, places, expected):
        """Ties go up, unlike Python's banker's rounding."""
        assert round_half_up(value, places) == expected


class TestMeetsThreshold:
    """Tests for meets_threshold."""

    def test_tiny_excess_passes(self):
        """A value a hair above the threshold passes."""
        assert meets_threshold(0.65000000001, 0.65) is True

    def test_accumulated_float_error_passes(self):
        """0.1 + 0.2 meets a 0.3 threshold despite binary representation."""
        assert meets_threshold(0.1 + 0.2, 0.3) is True

    def test_percentage_just_below_threshold(self):
        """64.99999999999999 counts as 65.0."""
        assert meets_threshold(64.99999999999999, 65.0) is True

    def test_clearly_below_fails(self):
        """A value below the threshold at 4 decimals fails."""
        assert meets_threshold(0.6499, 0.65) is False
