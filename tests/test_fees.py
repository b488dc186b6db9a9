"""Unit tests for the fee calculation engine."""

import pytest

from clubfees.fees import (
    calculate_player_fees,
    combine_fees,
    late_fee_applies,
    round2,
    video_fee_for,
)
from clubfees.models import AttendanceGrid

from conftest import full_section, make_grid


class TestRounding:
    """Tests for money rounding."""

    def test_round_half_up(self):
        """Test 2.675 rounds up to 2.68 (no binary float artifact)."""
        assert round2(2.675) == 2.68

    def test_round_product(self):
        """Test 3 x 12.78 is exactly 38.34."""
        assert round2(3 * 12.78) == 38.34

    def test_combine_fees(self):
        """Test components are summed and rounded."""
        assert combine_fees(38.34, 2, 10) == 50.34


class TestVideoFee:
    """Tests for the video fee step function."""

    @pytest.mark.parametrize(
        'parts, expected',
        [(0, 0), (0.5, 1), (1, 1), (1.5, 1), (2, 2), (2.5, 2), (3, 2)],
    )
    def test_ceiling_table(self, parts, expected):
        """Test ROUNDUP(parts / 3 x 2) for the standard rate."""
        assert video_fee_for(parts, 2) == expected

    def test_full_match(self):
        """Test 9 units at rate 2 is 6."""
        assert video_fee_for(9, 2) == 6

    def test_result_is_integer(self):
        """Test the video fee is always a whole number."""
        assert isinstance(video_fee_for(4.5, 2), int)


class TestCalculatePlayerFees:
    """Tests for calculate_player_fees."""

    def test_end_to_end_scenario(self):
        """Test late player with one goalkeeper half part totals 50.34."""
        data = make_grid(
            cells=[(1, 1, 1), (1, 2, 1), (1, 3, 0.5), (2, 1, 1)],
            goalkeeper=[(1, 3)],
            late=True,
        )
        result = calculate_player_fees(data, True, 12.78, 10, 2)

        assert result.normal_player_parts == 3
        assert result.sections_with_normal_play == 2
        assert result.field_fee == 38.34
        assert result.video_fee == 2
        assert result.late_fee == 10
        assert result.total_fee == 50.34

    def test_goalkeeper_exemption(self):
        """Test a player in goal for every played part pays no field or video fee."""
        data = make_grid(
            cells=full_section(1) + full_section(3, 0.5),
            goalkeeper=[(1, 1), (1, 2), (1, 3), (3, 1), (3, 2), (3, 3)],
        )
        for coefficient in (0, 12.78, 1000):
            result = calculate_player_fees(data, False, coefficient)
            assert result.field_fee == 0
            assert result.video_fee == 0
            assert result.total_fee == 0

    def test_all_goalkeeper_still_late(self):
        """Test the pure function charges the late fee even without normal play."""
        data = make_grid(cells=full_section(2), goalkeeper=[(2, 1), (2, 2), (2, 3)])
        result = calculate_player_fees(data, True, 12.78)
        assert result.field_fee == 0
        assert result.late_fee == 10
        assert result.total_fee == 10

    def test_empty_grid(self):
        """Test an absent player gets an all-zero breakdown."""
        result = calculate_player_fees(None, False, 12.78)
        assert result.to_dict() == {
            'normalPlayerParts': 0,
            'sectionsWithNormalPlay': 0,
            'fieldFee': 0,
            'lateFee': 0,
            'videoFee': 0,
            'totalFee': 0,
        }

    def test_malformed_grid_defaults_to_zero(self):
        """Test junk section/part values never raise."""
        data = {'attendance': {'1': 'oops', '2': {'1': None, '2': 'x', '3': 1}}, 'goalkeeper': []}
        result = calculate_player_fees(data, False, 10)
        assert result.normal_player_parts == 1
        assert result.field_fee == 10

    def test_fractional_parts_exact(self):
        """Test 0.5 + 0.5 + 1 sums to exactly 2."""
        data = make_grid(cells=[(1, 1, 0.5), (1, 2, 0.5), (1, 3, 1)])
        result = calculate_player_fees(data, False, 12.78)
        assert result.normal_player_parts == 2
        assert result.field_fee == 25.56
        assert result.video_fee == 2

    def test_custom_rates(self):
        """Test match-specific late and video rates are used."""
        data = make_grid(cells=full_section(1) + full_section(2))
        result = calculate_player_fees(data, True, 5, late_fee_rate=20, video_fee_rate=3)
        assert result.field_fee == 30
        assert result.video_fee == 6
        assert result.late_fee == 20
        assert result.total_fee == 56

    def test_accepts_grid_object(self):
        """Test an AttendanceGrid gives the same result as its dict form."""
        data = make_grid(cells=[(1, 1, 1), (3, 3, 0.5)], goalkeeper=[(3, 3)])
        grid = AttendanceGrid.from_dict(data)
        assert calculate_player_fees(grid, False, 12.78) == calculate_player_fees(data, False, 12.78)

    def test_idempotent(self):
        """Test identical inputs give identical outputs."""
        data = make_grid(cells=full_section(1, 0.5) + [(2, 2, 1)], late=True)
        first = calculate_player_fees(data, True, 12.777777)
        second = calculate_player_fees(data, True, 12.777777)
        assert first == second


class TestLateFeeBoundary:
    """Tests for the no-playing-time late fee rule."""

    def test_late_with_time(self):
        assert late_fee_applies(True, 1.5) is True

    def test_late_without_time(self):
        """Test a late player who never played owes no late fee."""
        assert late_fee_applies(True, 0) is False

    def test_on_time(self):
        assert late_fee_applies(False, 3) is False
