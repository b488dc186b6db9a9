"""Attendance processing at save time.

Validates submitted grids, enforces one goalkeeper per part across the
match, works out the match coefficient and stores each participation with
the fees calculated at that moment.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from .coefficient import resolve_coefficient
from .config import get_fixed_total_time_units
from .events import summarize_events
from .exceptions import AttendanceValidationError
from .fees import calculate_player_fees, late_fee_applies
from .models import AttendanceGrid, FeeCalculationResult, GoalkeeperConflict
from .schemas import AttendanceInput, MatchEventRecord, ParticipationRecord
from .store import MatchStore
from .validators import validate_attendance_grid, validate_fee_result

logger = logging.getLogger('clubfees.attendance')

GridInput = Union[AttendanceGrid, Mapping[str, Any]]


def calculate_participation_fees(
    grid: AttendanceGrid,
    fee_coefficient: float,
    late_fee_rate: float,
    video_fee_rate: float,
) -> FeeCalculationResult:
    """
    Fees as stored and displayed for a participation.

    Same as calculate_player_fees, except a late player with no playing time
    at all (goalkeeper time included) is not charged the late fee.
    """
    is_late = late_fee_applies(grid.is_late_arrival, grid.total_attendance())
    return calculate_player_fees(grid, is_late, fee_coefficient, late_fee_rate, video_fee_rate)


def build_participation(
    player_id: str,
    grid: AttendanceGrid,
    fee_coefficient: float,
    late_fee_rate: float,
    video_fee_rate: float,
    player_name: str = '',
    short_id: str = '',
) -> ParticipationRecord:
    """Create the stored participation row with its calculated fee columns."""
    fees = calculate_participation_fees(grid, fee_coefficient, late_fee_rate, video_fee_rate)
    for warning in validate_fee_result(player_id, fees):
        logger.warning(warning)
    return ParticipationRecord(
        player_id=player_id,
        player_name=player_name,
        short_id=short_id,
        attendance_data=grid.to_dict(),
        is_late_arrival=grid.is_late_arrival,
        total_time=fees.normal_player_parts,
        field_fee_calculated=fees.field_fee,
        video_fee=fees.video_fee,
        late_fee=fees.late_fee,
        total_fee_calculated=fees.total_fee,
    )


def detect_goalkeeper_conflicts(grids: Mapping[str, AttendanceGrid]) -> list[GoalkeeperConflict]:
    """
    Find parts claimed by more than one goalkeeper.

    Players are processed in mapping order and the latest claimant of a part
    is treated as its goalkeeper, so with claimants A, B, C the conflicts are
    (A -> B) and (B -> C).
    """
    holders: dict[tuple[int, int], str] = {}
    conflicts = []

    for player_id, grid in grids.items():
        for section, part, _value, is_goalkeeper in grid.cells():
            if not is_goalkeeper:
                continue
            key = (section, part)
            existing = holders.get(key)
            if existing is not None and existing != player_id:
                conflicts.append(
                    GoalkeeperConflict(
                        section=section,
                        part=part,
                        existing_goalkeeper_id=existing,
                        new_goalkeeper_id=player_id,
                    )
                )
            holders[key] = player_id

    return conflicts


def resolve_goalkeeper_conflicts(
    grids: Mapping[str, AttendanceGrid], conflicts: Iterable[GoalkeeperConflict]
) -> dict[str, AttendanceGrid]:
    """Unset the displaced goalkeeper and clear their attendance for that part."""
    resolved = dict(grids)
    for conflict in conflicts:
        displaced = resolved.get(conflict.existing_goalkeeper_id)
        if displaced is None:
            continue
        resolved[conflict.existing_goalkeeper_id] = displaced.with_cell(
            conflict.section, conflict.part, 0, goalkeeper=False
        )
    return resolved


def convert_legacy_participation(participation: Mapping[str, Any]) -> AttendanceGrid:
    """
    Convert a flat legacy row (section1Part1 ... section3Part3) to a grid.

    Legacy rows only carry a single isGoalkeeper flag, which cannot be mapped
    to specific parts; it is logged and ignored.
    """
    grid = AttendanceGrid.empty(is_late_arrival=bool(participation.get('isLateArrival', False)))
    for section, part, _value, _gk in grid.cells():
        value = participation.get(f'section{section}Part{part}')
        if value is not None:
            grid = grid.with_cell(section, part, value)

    if participation.get('isGoalkeeper'):
        logger.warning(
            'Legacy participation has an isGoalkeeper flag; goalkeeper parts cannot be determined'
        )
    return grid


@dataclass
class AttendanceValidationResult:
    """Outcome of validating a match's attendance submission."""
    errors: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    conflicts: list[GoalkeeperConflict] = field(default_factory=list)
    resolved: dict[str, AttendanceGrid] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class AttendanceService:
    """Save-time attendance handling for a match."""

    def __init__(self, store: MatchStore):
        self.store = store

    def validate_attendance_data(
        self,
        attendance_by_player: Mapping[str, GridInput],
        selected_player_ids: Optional[Iterable[str]] = None,
    ) -> AttendanceValidationResult:
        """
        Validate grids and resolve goalkeeper conflicts.

        Args:
            attendance_by_player: player_id -> grid (AttendanceGrid or JSON dict)
            selected_player_ids: If given, players outside this set are dropped

        Returns:
            AttendanceValidationResult with resolved grids
        """
        result = AttendanceValidationResult()
        selected = set(selected_player_ids) if selected_player_ids is not None else None

        grids: dict[str, AttendanceGrid] = {}
        for player_id, data in attendance_by_player.items():
            if selected is not None and player_id not in selected:
                logger.debug(f'Dropping attendance for unselected player {player_id}')
                continue
            if isinstance(data, AttendanceGrid):
                grids[player_id] = data
                continue
            errors = validate_attendance_grid(player_id, dict(data))
            if errors:
                result.errors.extend(errors)
                continue
            parsed = AttendanceInput.model_validate(dict(data))
            grids[player_id] = AttendanceGrid.from_dict(parsed.model_dump(by_alias=True))

        result.conflicts = detect_goalkeeper_conflicts(grids)
        if result.conflicts:
            result.warnings.append(
                f'Found {len(result.conflicts)} goalkeeper conflict(s) that will be auto-resolved'
            )
            result.resolved = resolve_goalkeeper_conflicts(grids, result.conflicts)
        else:
            result.resolved = grids

        return result

    def preview_goalkeeper_conflicts(
        self, attendance_by_player: Mapping[str, GridInput]
    ) -> list[GoalkeeperConflict]:
        """Conflicts that saving this attendance would auto-resolve."""
        return self.validate_attendance_data(attendance_by_player).conflicts

    def update_attendance(
        self,
        match_id: str,
        attendance_by_player: Mapping[str, GridInput],
        events: Optional[Iterable[Mapping[str, Any]]] = None,
        selected_player_ids: Optional[Iterable[str]] = None,
        player_names: Optional[Mapping[str, str]] = None,
    ) -> dict[str, Any]:
        """
        Replace a match's participations and events.

        Fees are calculated here, once, with the match's current rates and
        coefficient mode, and stored with each participation. Overrides are
        left untouched.

        Raises:
            MatchNotFoundError: If the match does not exist
            AttendanceValidationError: If any grid is malformed (nothing saved)
        """
        if selected_player_ids is not None:
            selected_player_ids = list(selected_player_ids)
        validation = self.validate_attendance_data(attendance_by_player, selected_player_ids)
        if not validation.is_valid:
            raise AttendanceValidationError('Attendance validation failed', validation.errors)

        event_records = [MatchEventRecord.model_validate(dict(e)) for e in (events or [])]
        names = dict(player_names or {})

        with self.store.update(match_id) as match:
            previous = {p.player_id: p for p in match.participations}
            grids = validation.resolved

            total_play_time = sum(grid.normal_player_parts() for grid in grids.values())
            coefficient = resolve_coefficient(
                match.coefficient_mode,
                match.field_fee_total,
                match.water_fee_total,
                total_play_time,
                get_fixed_total_time_units(),
            )

            participations = []
            for player_id, grid in grids.items():
                old = previous.get(player_id)
                participations.append(
                    build_participation(
                        player_id,
                        grid,
                        coefficient,
                        match.late_fee_rate,
                        match.video_fee_per_unit,
                        player_name=names.get(player_id) or (old.player_name if old else ''),
                        short_id=old.short_id if old else '',
                    )
                )

            match.participations = participations
            match.events = event_records
            if selected_player_ids is not None:
                match.selected_player_ids = list(selected_player_ids)

        logger.info(
            f'Saved attendance for match {match_id}: {len(participations)} participations, '
            f'{len(event_records)} events, coefficient {coefficient:.4f}'
        )
        if validation.conflicts:
            logger.info(f'Resolved {len(validation.conflicts)} goalkeeper conflict(s) in {match_id}')

        return {
            'participations_count': len(participations),
            'events_count': len(event_records),
            'fee_coefficient': coefficient,
            'conflicts_resolved': len(validation.conflicts),
            'warnings': validation.warnings,
        }

    def get_attendance_data(self, match_id: str) -> dict[str, Any]:
        """Stored grids and per-player event counts for a match."""
        match = self.store.load_match(match_id)

        attendance = {}
        for p in match.participations:
            grid = AttendanceGrid.from_dict(p.attendance_data)
            data = grid.to_dict()
            data['isLateArrival'] = p.is_late_arrival
            attendance[p.player_id] = data

        events_summary = summarize_events(e.model_dump() for e in match.events)

        return {
            'attendance_data': attendance,
            'events_summary': events_summary,
            'total_participants': len(match.participations),
            'total_events': len(match.events),
            'selected_players': list(match.selected_player_ids),
        }
