"""Match fee coefficient: money per unit of normal playing time."""

import logging
from enum import Enum

from .constants import FIXED_TOTAL_TIME_UNITS

logger = logging.getLogger('clubfees.coefficient')


class CoefficientMode(str, Enum):
    """How the coefficient denominator is chosen."""

    # Sum of every participant's normal playing time
    DYNAMIC = 'dynamic'
    # Fixed 90 units, kept for matches imported from spreadsheets
    FIXED = 'fixed'


def calculate_coefficient(
    field_fee_total: float, water_fee_total: float, total_play_time_units: float
) -> float:
    """
    Calculate the fee coefficient.

    Formula: (field_fee_total + water_fee_total) / total_play_time_units

    A match with no recorded time yet has nothing to share the cost over, so
    zero (or negative) time gives a coefficient of 0 instead of raising.
    Negative fee totals also give 0.

    Example:
        calculate_coefficient(1100, 50, 90)  # 12.777...
    """
    if field_fee_total < 0 or water_fee_total < 0:
        logger.warning(
            f'Negative fee totals (field={field_fee_total}, water={water_fee_total}), using 0'
        )
        return 0.0
    if total_play_time_units <= 0:
        return 0.0
    return (field_fee_total + water_fee_total) / total_play_time_units


def calculate_fixed_coefficient(
    field_fee_total: float,
    water_fee_total: float,
    total_units: float = FIXED_TOTAL_TIME_UNITS,
) -> float:
    """Coefficient over the fixed spreadsheet denominator."""
    return calculate_coefficient(field_fee_total, water_fee_total, total_units)


def resolve_coefficient(
    mode: CoefficientMode | str,
    field_fee_total: float,
    water_fee_total: float,
    total_play_time: float,
    fixed_units: float = FIXED_TOTAL_TIME_UNITS,
) -> float:
    """Pick the denominator for the given mode and calculate the coefficient."""
    mode = CoefficientMode(mode)
    if mode is CoefficientMode.FIXED:
        return calculate_fixed_coefficient(field_fee_total, water_fee_total, fixed_units)
    return calculate_coefficient(field_fee_total, water_fee_total, total_play_time)


def validate_fees(field_fee: float, water_fee: float) -> tuple[bool, str | None]:
    """Check match fee totals are not negative."""
    if field_fee < 0:
        return False, 'Field fee cannot be negative'
    if water_fee < 0:
        return False, 'Water fee cannot be negative'
    return True, None


def format_coefficient(coefficient: float) -> str:
    return f'{coefficient:.2f}'
