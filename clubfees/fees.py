"""Fee calculation for a single player's attendance grid."""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Any, Dict, Union

from .constants import DEFAULT_LATE_FEE_RATE, DEFAULT_VIDEO_FEE_RATE, VIDEO_FEE_UNIT_DIVISOR
from .models import AttendanceGrid, FeeCalculationResult

_CENT = Decimal('0.01')


def _dec(value: Union[int, float, Decimal]) -> Decimal:
    # str() first so 12.78 stays 12.78 instead of its binary expansion
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value: Union[int, float, Decimal]) -> float:
    """Round a money amount to 2 decimals, half away from zero."""
    return float(_dec(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def video_fee_for(normal_player_parts: float, video_fee_rate: float = DEFAULT_VIDEO_FEE_RATE) -> int:
    """
    Video fee for the given normal playing time.

    Follows the spreadsheet formula ROUNDUP(parts / 3 * rate, 0): any started
    fraction of a 3-unit block is charged in full.
    """
    amount = _dec(normal_player_parts) * _dec(video_fee_rate) / VIDEO_FEE_UNIT_DIVISOR
    return int(amount.to_integral_value(rounding=ROUND_CEILING))


def calculate_player_fees(
    attendance_data: Union[AttendanceGrid, Dict[str, Any], None],
    is_late_arrival: bool,
    fee_coefficient: float,
    late_fee_rate: float = DEFAULT_LATE_FEE_RATE,
    video_fee_rate: float = DEFAULT_VIDEO_FEE_RATE,
) -> FeeCalculationResult:
    """
    Calculate one player's fees.

    Fees:
        - Field fee: normal (non-goalkeeper) parts x coefficient, 2 decimals
        - Video fee: ROUNDUP(normal parts / 3 x video rate)
        - Late fee: flat late rate if the player arrived late
        - Total: sum of the three, 2 decimals

    Goalkeeper parts are free. Missing grid cells count as 0.

    Args:
        attendance_data: AttendanceGrid or its JSON dict form
        is_late_arrival: Whether to charge the late fee
        fee_coefficient: Money per unit of normal playing time
        late_fee_rate: Flat late penalty
        video_fee_rate: Video rate per 3 units of play
    """
    if isinstance(attendance_data, AttendanceGrid):
        grid = attendance_data
    else:
        grid = AttendanceGrid.from_dict(attendance_data)

    normal_parts = Decimal(0)
    sections_with_normal_play = set()

    for section, _part, value, is_goalkeeper in grid.cells():
        if value > 0 and not is_goalkeeper:
            normal_parts += _dec(value)
            sections_with_normal_play.add(section)

    field_fee = round2(normal_parts * _dec(fee_coefficient))
    video_fee = video_fee_for(normal_parts, video_fee_rate)
    late_fee = float(late_fee_rate) if is_late_arrival else 0.0
    total_fee = round2(_dec(field_fee) + _dec(late_fee) + video_fee)

    return FeeCalculationResult(
        normal_player_parts=float(normal_parts),
        sections_with_normal_play=len(sections_with_normal_play),
        field_fee=field_fee,
        late_fee=late_fee,
        video_fee=float(video_fee),
        total_fee=total_fee,
    )


def late_fee_applies(is_late_arrival: bool, participation_time: float) -> bool:
    """A late player who never took the field owes no late fee."""
    return bool(is_late_arrival) and participation_time > 0


def combine_fees(field_fee: float, video_fee: float, late_fee: float) -> float:
    """Total of three (possibly overridden) fee components."""
    return round2(_dec(field_fee) + _dec(video_fee) + _dec(late_fee))
