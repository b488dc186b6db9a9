"""Fee calculation service: stored calculated fees joined with manual overrides.

Participations keep the fees calculated at save time; overrides live in their
own records and are only combined with the calculated values when a breakdown
is read.
"""

import logging
from typing import Any, Optional

from .attendance import calculate_participation_fees
from .coefficient import resolve_coefficient
from .config import get_fixed_total_time_units
from .exceptions import ParticipationNotFoundError
from .fees import combine_fees, round2
from .models import (
    AttendanceGrid,
    FeeCalculationResult,
    FinalFees,
    MatchFeeBreakdown,
    OverrideValues,
    PlayerFeeBreakdown,
)
from .schemas import (
    FeeOverrideInput,
    FeeOverrideRecord,
    FeeRateInput,
    MatchRecord,
    ParticipationRecord,
)
from .store import MatchStore
from .utils import utc_now
from .validators import is_fee_anomaly, parse_override

logger = logging.getLogger('clubfees.fee_service')


def _match_coefficient(match: MatchRecord, total_play_time: Optional[float] = None) -> float:
    """Coefficient for a match, using its mode and stored participant time."""
    if total_play_time is None:
        total_play_time = sum(p.total_time for p in match.participations)
    return resolve_coefficient(
        match.coefficient_mode,
        match.field_fee_total,
        match.water_fee_total,
        total_play_time,
        get_fixed_total_time_units(),
    )


def _stored_fees(participation: ParticipationRecord) -> FeeCalculationResult:
    """The calculated columns of a participation as an engine result."""
    grid = AttendanceGrid.from_dict(participation.attendance_data)
    sections = {section for section, _part, value, gk in grid.cells() if value > 0 and not gk}
    return FeeCalculationResult(
        normal_player_parts=participation.total_time,
        sections_with_normal_play=len(sections),
        field_fee=participation.field_fee_calculated,
        late_fee=participation.late_fee,
        video_fee=participation.video_fee,
        total_fee=participation.total_fee_calculated,
    )


def _override_values(record: Optional[FeeOverrideRecord]) -> Optional[OverrideValues]:
    if record is None:
        return None
    return OverrideValues(
        field_fee_override=record.field_fee_override,
        video_fee_override=record.video_fee_override,
        late_fee_override=record.late_fee_override,
        notes=record.notes,
    )


def final_fees(calculated: FeeCalculationResult, overrides: Optional[OverrideValues]) -> FinalFees:
    """
    Effective fees: each override component replaces the calculated one.

    None means "use calculated"; 0 is a real override.
    """
    field_fee = calculated.field_fee
    video_fee = calculated.video_fee
    late_fee = calculated.late_fee
    if overrides is not None:
        if overrides.field_fee_override is not None:
            field_fee = overrides.field_fee_override
        if overrides.video_fee_override is not None:
            video_fee = overrides.video_fee_override
        if overrides.late_fee_override is not None:
            late_fee = overrides.late_fee_override
    return FinalFees(
        field_fee=field_fee,
        video_fee=video_fee,
        late_fee=late_fee,
        total_fee=combine_fees(field_fee, video_fee, late_fee),
    )


class FeeCalculationService:
    """
    Calculated fees, overrides and the effective breakdown for matches.

    Example:
        store = MatchStore('data')
        service = FeeCalculationService(store)
        breakdown = service.get_fee_breakdown('2024-05-12-rovers')
    """

    def __init__(self, store: MatchStore):
        self.store = store

    def _player_breakdown(
        self,
        match: MatchRecord,
        participation: ParticipationRecord,
        coefficient: float,
    ) -> PlayerFeeBreakdown:
        calculated = _stored_fees(participation)
        overrides = _override_values(match.override_for(participation.player_id))

        grid = AttendanceGrid.from_dict(participation.attendance_data)
        live = calculate_participation_fees(
            grid, coefficient, match.late_fee_rate, match.video_fee_per_unit
        )
        anomaly = is_fee_anomaly(calculated.total_fee, live.total_fee, overrides is not None)
        if anomaly:
            logger.warning(
                f'{match.match_id}/{participation.player_id}: stored total '
                f'{calculated.total_fee:.2f} != recalculated {live.total_fee:.2f}'
            )

        return PlayerFeeBreakdown(
            player_id=participation.player_id,
            player_name=participation.player_name,
            total_time=participation.total_time,
            is_late_arrival=participation.is_late_arrival,
            calculated_fees=calculated,
            overrides=overrides,
            final_fees=final_fees(calculated, overrides),
            is_anomaly=anomaly,
        )

    def _match_breakdown(self, match: MatchRecord) -> MatchFeeBreakdown:
        coefficient = _match_coefficient(match)
        players = [self._player_breakdown(match, p, coefficient) for p in match.participations]
        return MatchFeeBreakdown(
            match_id=match.match_id,
            fee_coefficient=coefficient,
            players=players,
            total_calculated_fees=round2(sum(p.calculated_fees.total_fee for p in players)),
            total_final_fees=round2(sum(p.final_fees.total_fee for p in players)),
        )

    def calculate_player_fees(
        self,
        match_id: str,
        player_id: str,
        attendance_data: AttendanceGrid | dict[str, Any],
        is_late_arrival: bool,
    ) -> PlayerFeeBreakdown:
        """
        Preview a player's fees for the given grid without saving anything.

        The match's rates and coefficient mode are used; in dynamic mode the
        player's stored time is replaced by the new grid's time. Any existing
        override is applied to the final fees.

        Raises:
            MatchNotFoundError: If the match does not exist
        """
        match = self.store.load_match(match_id)
        if isinstance(attendance_data, AttendanceGrid):
            grid = attendance_data
        else:
            grid = AttendanceGrid.from_dict(attendance_data)
        if grid.is_late_arrival != is_late_arrival:
            grid = AttendanceGrid(grid.attendance, grid.goalkeeper, bool(is_late_arrival))

        existing = match.participation_for(player_id)
        others = sum(p.total_time for p in match.participations if p.player_id != player_id)
        coefficient = _match_coefficient(match, others + grid.normal_player_parts())

        calculated = calculate_participation_fees(
            grid, coefficient, match.late_fee_rate, match.video_fee_per_unit
        )
        overrides = _override_values(match.override_for(player_id))
        return PlayerFeeBreakdown(
            player_id=player_id,
            player_name=existing.player_name if existing else '',
            total_time=calculated.normal_player_parts,
            is_late_arrival=grid.is_late_arrival,
            calculated_fees=calculated,
            overrides=overrides,
            final_fees=final_fees(calculated, overrides),
        )

    def _recalculate(self, match: MatchRecord) -> MatchFeeBreakdown:
        """Rewrite the calculated columns of a loaded match in place."""
        grids = {
            p.player_id: AttendanceGrid.from_dict(p.attendance_data)
            for p in match.participations
        }
        total_play_time = sum(g.normal_player_parts() for g in grids.values())
        coefficient = _match_coefficient(match, total_play_time)

        for p in match.participations:
            fees = calculate_participation_fees(
                grids[p.player_id], coefficient, match.late_fee_rate, match.video_fee_per_unit
            )
            p.total_time = fees.normal_player_parts
            p.field_fee_calculated = fees.field_fee
            p.video_fee = fees.video_fee
            p.late_fee = fees.late_fee
            p.total_fee_calculated = fees.total_fee

        return self._match_breakdown(match)

    def recalculate_all_fees(self, match_id: str) -> MatchFeeBreakdown:
        """
        Recompute every participation's calculated fee columns.

        Uses the match's current rates and coefficient mode. Overrides are
        preserved and never written into the calculated columns.

        Raises:
            MatchNotFoundError: If the match does not exist
        """
        with self.store.update(match_id) as match:
            breakdown = self._recalculate(match)

        logger.info(
            f'Recalculated {breakdown.total_participants} participations for {match_id} '
            f'(coefficient {breakdown.fee_coefficient:.4f}, '
            f'{len(match.overrides)} overrides preserved)'
        )
        return breakdown

    def update_match_rates(
        self, match_id: str, rates: FeeRateInput | dict[str, Any]
    ) -> MatchFeeBreakdown:
        """
        Change a match's field/water totals and rates and recalculate its fees.

        Accepts {fieldFeeTotal, waterFeeTotal, lateFeeRate?, videoFeeRate?}.
        Rates and recalculated fees are saved together.

        Raises:
            ValueError: If any amount is negative or missing
            MatchNotFoundError: If the match does not exist
        """
        if not isinstance(rates, FeeRateInput):
            rates = FeeRateInput.model_validate(rates)

        with self.store.update(match_id) as match:
            match.field_fee_total = rates.field_fee_total
            match.water_fee_total = rates.water_fee_total
            match.late_fee_rate = rates.late_fee_rate
            match.video_fee_per_unit = rates.video_fee_rate
            breakdown = self._recalculate(match)

        logger.info(
            f'Rates for {match_id}: field {rates.field_fee_total}, water {rates.water_fee_total}, '
            f'late {rates.late_fee_rate}, video {rates.video_fee_rate}; '
            f'coefficient {breakdown.fee_coefficient:.4f}'
        )
        return breakdown

    def apply_manual_override(
        self, match_id: str, player_id: str, override: FeeOverrideInput | dict[str, Any]
    ) -> PlayerFeeBreakdown:
        """
        Create or replace a player's override.

        One store write per call, so the override either lands completely or
        not at all.

        Raises:
            MatchNotFoundError: If the match does not exist
            ParticipationNotFoundError: If the player did not take part
            OverrideValidationError: If the override payload is invalid
        """
        override = parse_override(override)
        with self.store.update(match_id) as match:
            participation = match.participation_for(player_id)
            if participation is None:
                raise ParticipationNotFoundError(match_id, player_id)

            now = utc_now()
            existing = match.override_for(player_id)
            record = FeeOverrideRecord(
                player_id=player_id,
                field_fee_override=override.field_fee_override,
                video_fee_override=override.video_fee_override,
                late_fee_override=override.late_fee_override,
                notes=override.notes,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            match.overrides = [o for o in match.overrides if o.player_id != player_id]
            match.overrides.append(record)

            result = self._player_breakdown(match, participation, _match_coefficient(match))

        logger.info(
            f'Override {"updated" if existing else "created"} for {player_id} in {match_id}: '
            f'final total {result.final_fees.total_fee:.2f}'
        )
        return result

    def remove_override(self, match_id: str, player_id: str) -> PlayerFeeBreakdown:
        """
        Delete a player's override and return the calculated breakdown.

        Removing an override that does not exist is a no-op.

        Raises:
            MatchNotFoundError: If the match does not exist
            ParticipationNotFoundError: If the player did not take part
        """
        with self.store.update(match_id) as match:
            participation = match.participation_for(player_id)
            if participation is None:
                raise ParticipationNotFoundError(match_id, player_id)

            removed = match.override_for(player_id) is not None
            match.overrides = [o for o in match.overrides if o.player_id != player_id]
            result = self._player_breakdown(match, participation, _match_coefficient(match))

        if removed:
            logger.info(f'Removed override for {player_id} in {match_id}')
        return result

    def get_fee_breakdown(self, match_id: str) -> MatchFeeBreakdown:
        """
        Effective fees for every participant in a match.

        Raises:
            MatchNotFoundError: If the match does not exist
        """
        return self._match_breakdown(self.store.load_match(match_id))
