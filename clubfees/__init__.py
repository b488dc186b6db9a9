from .models import (
    AttendanceGrid,
    FeeCalculationResult,
    PlayerFeeBreakdown,
    MatchFeeBreakdown,
    OverrideStatistics,
    GoalkeeperConflict,
    BulkOverrideResult,
)
from .fees import calculate_player_fees, round2, video_fee_for
from .coefficient import (
    CoefficientMode,
    calculate_coefficient,
    calculate_fixed_coefficient,
    resolve_coefficient,
    validate_fees,
)
from .exceptions import (
    FeeError,
    MatchNotFoundError,
    ParticipationNotFoundError,
    OverrideValidationError,
    AttendanceValidationError,
)
from .store import MatchStore
from .attendance import AttendanceService, calculate_participation_fees
from .fee_service import FeeCalculationService
from .override_service import FeeOverrideService
from .excel_io import parse_match_sheet, import_match_from_excel, export_match_to_excel
from .events import EventType, EVENT_EFFECTS, summarize_events

__all__ = [
    # Models
    'AttendanceGrid',
    'FeeCalculationResult',
    'PlayerFeeBreakdown',
    'MatchFeeBreakdown',
    'OverrideStatistics',
    'GoalkeeperConflict',
    'BulkOverrideResult',
    # Engine
    'calculate_player_fees',
    'round2',
    'video_fee_for',
    'CoefficientMode',
    'calculate_coefficient',
    'calculate_fixed_coefficient',
    'resolve_coefficient',
    'validate_fees',
    # Errors
    'FeeError',
    'MatchNotFoundError',
    'ParticipationNotFoundError',
    'OverrideValidationError',
    'AttendanceValidationError',
    # Services
    'MatchStore',
    'AttendanceService',
    'calculate_participation_fees',
    'FeeCalculationService',
    'FeeOverrideService',
    # Excel
    'parse_match_sheet',
    'import_match_from_excel',
    'export_match_to_excel',
    # Events
    'EventType',
    'EVENT_EFFECTS',
    'summarize_events',
]
