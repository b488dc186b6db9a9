"""Validation functions for overrides, attendance grids and fee results."""

import math
from typing import Any

from pydantic import ValidationError

from .constants import (
    OVERRIDE_FIELDS,
    OVERRIDE_NOTE_LIMITS,
    OVERRIDE_NOTES_MIN_JUSTIFICATION,
    OVERRIDE_WARNING_LIMITS,
    PARTS,
    SECTIONS,
)
from .exceptions import OverrideValidationError
from .models import FeeCalculationResult, MatchFeeBreakdown
from .schemas import AttendanceInput, FeeOverrideInput


def validation_error_details(error: ValidationError, prefix: str = '') -> list[dict[str, Any]]:
    """
    Flatten a pydantic ValidationError into [{field, message, value}, ...].

    Field names use the attribute name (e.g. 'field_fee_override'), prefixed
    with prefix when given, so the admin UI can highlight the offending input.
    """
    details = []
    for err in error.errors():
        loc = '.'.join(str(part) for part in err.get('loc', ()))
        field = f'{prefix}.{loc}' if prefix and loc else (prefix or loc)
        details.append({'field': field, 'message': err.get('msg', ''), 'value': err.get('input')})
    return details


def parse_override(override: FeeOverrideInput | dict[str, Any]) -> FeeOverrideInput:
    """
    Validate an override payload.

    Accepts camelCase (fieldFeeOverride) or snake_case keys.

    Raises:
        OverrideValidationError: With per-field details for negative amounts,
            over-long notes or unknown keys
    """
    if isinstance(override, FeeOverrideInput):
        return override
    try:
        return FeeOverrideInput.model_validate(override)
    except ValidationError as e:
        raise OverrideValidationError(
            'Override validation failed', validation_error_details(e)
        ) from e


def validate_override(override: FeeOverrideInput) -> list[str]:
    """
    Check an already-parsed override for suspicious values.

    Sanity checks:
    - Each component below its usual ceiling (field 1000, video 100, late 50)
    - Large overrides carry a justification note

    Returns:
        List of warning messages (empty if nothing looks unusual)
    """
    warnings = []

    for name in OVERRIDE_FIELDS:
        value = getattr(override, name)
        limit = OVERRIDE_WARNING_LIMITS[name]
        if value is not None and value > limit:
            label = name.replace('_override', '').replace('_', ' ')
            warnings.append(f'{label} override {value:.2f} is unusually high (>{limit})')

    has_large_override = any(
        getattr(override, name) is not None and getattr(override, name) > limit
        for name, limit in OVERRIDE_NOTE_LIMITS.items()
    )
    notes = (override.notes or '').strip()
    if has_large_override and len(notes) < OVERRIDE_NOTES_MIN_JUSTIFICATION:
        warnings.append('Large overrides should include justification notes')

    return warnings


def validate_attendance_grid(player_id: str, data: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Validate one player's submitted attendance document.

    Checks:
    - Section and part keys are 1-3
    - Fractions are 0, 0.5 or 1
    - isLateArrival is a boolean
    - A goalkeeper cell has attendance > 0

    Missing cells are allowed; they count as 0.

    Returns:
        List of {field, message, value} error details (empty if valid)
    """
    try:
        parsed = AttendanceInput.model_validate(data)
    except ValidationError as e:
        return validation_error_details(e, prefix=player_id)

    errors = []
    for section in SECTIONS:
        for part in PARTS:
            is_goalkeeper = parsed.goalkeeper.get(str(section), {}).get(str(part), False)
            attendance = parsed.attendance.get(str(section), {}).get(str(part), 0)
            if is_goalkeeper and attendance == 0:
                errors.append(
                    {
                        'field': f'{player_id}.goalkeeper.{section}.{part}',
                        'message': 'Goalkeeper part must have attendance',
                        'value': attendance,
                    }
                )
    return errors


def validate_fee_result(player_id: str, result: FeeCalculationResult) -> list[str]:
    """
    Check a calculated breakdown is internally consistent.

    Sanity checks:
    - No NaN, infinite or negative components
    - Components add up to the total (within a cent)

    Returns:
        List of warning messages (empty if no issues)
    """
    warnings = []
    components = {
        'field_fee': result.field_fee,
        'video_fee': result.video_fee,
        'late_fee': result.late_fee,
        'total_fee': result.total_fee,
    }

    for name, value in components.items():
        if not isinstance(value, (int, float)) or math.isnan(value) or math.isinf(value):
            warnings.append(f'{player_id} has invalid {name}: {value!r}')
            return warnings
        if value < 0:
            warnings.append(f'{player_id} has negative {name}: {value:.2f}')

    component_sum = result.field_fee + result.video_fee + result.late_fee
    diff = abs(component_sum - result.total_fee)
    if diff > 0.01:
        warnings.append(
            f'{player_id} fee components ({component_sum:.2f}) != total ({result.total_fee:.2f})'
            f' - difference: {diff:.2f}'
        )

    return warnings


def is_fee_anomaly(display_fee: float, calculated_total: float, has_override: bool) -> bool:
    """
    Flag a stored fee that disagrees with a fresh calculation.

    Overridden players are expected to differ, so they are never flagged.
    """
    if has_override:
        return False
    return abs(display_fee - calculated_total) > 0.005


def validate_match_fees(
    breakdown: MatchFeeBreakdown, field_fee_total: float, water_fee_total: float
) -> list[str]:
    """
    Compare a match's collected field fees with what the club paid.

    Sanity checks:
    - Sum of calculated field fees covers the field + water cost (within 1 per player)
    - Final totals are not negative

    Returns:
        List of warning messages (empty if no issues)
    """
    warnings = []

    cost = field_fee_total + water_fee_total
    collected = sum(p.calculated_fees.field_fee for p in breakdown.players)
    tolerance = max(1.0, 0.01 * len(breakdown.players))
    if breakdown.players and cost > 0 and abs(collected - cost) > tolerance:
        warnings.append(
            f'{breakdown.match_id} field fees collected ({collected:.2f}) differ from '
            f'field + water cost ({cost:.2f})'
        )

    if breakdown.total_final_fees < 0:
        warnings.append(
            f'{breakdown.match_id} final fees total {breakdown.total_final_fees:.2f} is negative'
        )

    return warnings
