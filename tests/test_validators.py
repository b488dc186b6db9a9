"""Unit tests for validation functions."""

import pytest

from clubfees.exceptions import OverrideValidationError
from clubfees.models import (
    FeeCalculationResult,
    FinalFees,
    MatchFeeBreakdown,
    PlayerFeeBreakdown,
)
from clubfees.schemas import FeeOverrideInput
from clubfees.validators import (
    is_fee_anomaly,
    parse_override,
    validate_attendance_grid,
    validate_fee_result,
    validate_match_fees,
    validate_override,
)

from conftest import make_grid


class TestParseOverride:
    """Tests for override payload parsing."""

    def test_camel_case(self):
        override = parse_override({'fieldFeeOverride': 20, 'notes': 'ok'})
        assert override.field_fee_override == 20
        assert override.video_fee_override is None

    def test_snake_case(self):
        override = parse_override({'late_fee_override': 0})
        assert override.late_fee_override == 0

    def test_passthrough(self):
        override = FeeOverrideInput(video_fee_override=1)
        assert parse_override(override) is override

    def test_negative_has_details(self):
        with pytest.raises(OverrideValidationError) as exc_info:
            parse_override({'videoFeeOverride': -2})
        details = exc_info.value.details
        assert len(details) == 1
        assert details[0]['value'] == -2
        assert details[0]['field'].replace('_', '').lower() == 'videofeeoverride'


class TestValidateOverride:
    """Tests for override sanity warnings."""

    def test_normal_override(self):
        assert validate_override(FeeOverrideInput(field_fee_override=25)) == []

    def test_high_values(self):
        warnings = validate_override(
            FeeOverrideInput(
                field_fee_override=1200,
                video_fee_override=150,
                late_fee_override=60,
                notes='agreed with the treasurer',
            )
        )
        assert len(warnings) == 3
        assert all('unusually high' in w for w in warnings)

    def test_large_override_needs_notes(self):
        warnings = validate_override(FeeOverrideInput(field_fee_override=250, notes='short'))
        assert warnings == ['Large overrides should include justification notes']

    def test_large_override_with_notes(self):
        override = FeeOverrideInput(late_fee_override=25, notes='double booking penalty')
        assert validate_override(override) == []


class TestValidateAttendanceGrid:
    """Tests for submitted attendance documents."""

    def test_valid(self):
        data = make_grid([(1, 1, 1), (2, 3, 0.5)], goalkeeper=[(1, 1)], late=True)
        assert validate_attendance_grid('p1', data) == []

    def test_missing_cells_allowed(self):
        assert validate_attendance_grid('p1', {'attendance': {}}) == []

    def test_bad_fraction(self):
        errors = validate_attendance_grid('p1', make_grid([(1, 1, 0.25)]))
        assert errors
        assert errors[0]['field'].startswith('p1')

    def test_bad_section_key(self):
        errors = validate_attendance_grid('p1', {'attendance': {'4': {'1': 1}}})
        assert errors

    def test_goalkeeper_needs_attendance(self):
        errors = validate_attendance_grid('p1', make_grid([], goalkeeper=[(3, 1)]))
        assert errors == [
            {
                'field': 'p1.goalkeeper.3.1',
                'message': 'Goalkeeper part must have attendance',
                'value': 0,
            }
        ]


class TestValidateFeeResult:
    """Tests for breakdown consistency checks."""

    def test_consistent(self):
        result = FeeCalculationResult(3, 2, 38.34, 10, 2, 50.34)
        assert validate_fee_result('p1', result) == []

    def test_components_do_not_add_up(self):
        result = FeeCalculationResult(3, 2, 38.34, 10, 2, 60)
        warnings = validate_fee_result('p1', result)
        assert len(warnings) == 1
        assert '!= total' in warnings[0]

    def test_negative(self):
        result = FeeCalculationResult(0, 0, -5, 0, 0, -5)
        assert any('negative field_fee' in w for w in validate_fee_result('p1', result))

    def test_nan(self):
        result = FeeCalculationResult(0, 0, float('nan'), 0, 0, 0)
        assert 'invalid field_fee' in validate_fee_result('p1', result)[0]


class TestAnomaly:
    """Tests for the stored-vs-calculated mismatch flag."""

    def test_match(self):
        assert not is_fee_anomaly(50.34, 50.34, has_override=False)

    def test_mismatch(self):
        assert is_fee_anomaly(60, 50.34, has_override=False)

    def test_override_never_flagged(self):
        assert not is_fee_anomaly(60, 50.34, has_override=True)


class TestValidateMatchFees:
    """Tests for match-level cost coverage."""

    def _breakdown(self, field_fees):
        players = [
            PlayerFeeBreakdown(
                player_id=f'p{i}',
                player_name='',
                total_time=3,
                is_late_arrival=False,
                calculated_fees=FeeCalculationResult(3, 1, fee, 0, 2, fee + 2),
                final_fees=FinalFees(fee, 2, 0, fee + 2),
            )
            for i, fee in enumerate(field_fees)
        ]
        return MatchFeeBreakdown(
            match_id='m1',
            fee_coefficient=10,
            players=players,
            total_calculated_fees=sum(f + 2 for f in field_fees),
            total_final_fees=sum(f + 2 for f in field_fees),
        )

    def test_covered(self):
        assert validate_match_fees(self._breakdown([383.33, 383.33, 383.34]), 1100, 50) == []

    def test_not_covered(self):
        warnings = validate_match_fees(self._breakdown([100, 100]), 1100, 50)
        assert len(warnings) == 1
        assert 'differ' in warnings[0]
