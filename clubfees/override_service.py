"""Manual fee overrides: validation, batches, audit views and statistics."""

import logging
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from .constants import OVERRIDE_NOTES_MAX_LENGTH
from .exceptions import FeeError, OverrideValidationError, ParticipationNotFoundError
from .fee_service import FeeCalculationService
from .fees import round2
from .models import (
    BulkOverrideResult,
    CopyOverridesResult,
    OverrideHistoryEntry,
    OverrideStatistics,
    PlayerFeeBreakdown,
)
from .schemas import FeeOverrideInput, FeesUpdateRequest, MatchRecord
from .validators import parse_override, validate_override, validation_error_details

logger = logging.getLogger('clubfees.override_service')

OverrideInput = Union[FeeOverrideInput, Mapping[str, Any]]


def _history_entries(match: MatchRecord, player_id: Optional[str] = None) -> list[OverrideHistoryEntry]:
    names = {p.player_id: p.player_name for p in match.participations}
    return [
        OverrideHistoryEntry(
            match_id=match.match_id,
            player_id=o.player_id,
            player_name=names.get(o.player_id, ''),
            field_fee_override=o.field_fee_override,
            video_fee_override=o.video_fee_override,
            late_fee_override=o.late_fee_override,
            notes=o.notes,
            created_at=o.created_at,
            updated_at=o.updated_at,
        )
        for o in match.overrides
        if player_id is None or o.player_id == player_id
    ]


class FeeOverrideService:
    """Admin-facing override operations on top of FeeCalculationService."""

    def __init__(self, fee_service: FeeCalculationService):
        self.fee_service = fee_service
        self.store = fee_service.store

    def apply_override(
        self, match_id: str, player_id: str, override: OverrideInput
    ) -> PlayerFeeBreakdown:
        """
        Validate and apply one player's override.

        Unusual values are logged as warnings but still applied.

        Raises:
            OverrideValidationError: Negative amounts, notes over 500 chars, unknown keys
            MatchNotFoundError: If the match does not exist
            ParticipationNotFoundError: If the player did not take part
        """
        parsed = parse_override(dict(override) if isinstance(override, Mapping) else override)
        for warning in validate_override(parsed):
            logger.warning(f'{match_id}/{player_id}: {warning}')
        return self.fee_service.apply_manual_override(match_id, player_id, parsed)

    def apply_bulk_overrides(
        self,
        match_id: str,
        overrides: Iterable[Union[tuple[str, OverrideInput], Mapping[str, Any]]],
    ) -> BulkOverrideResult:
        """
        Apply overrides for several players, best effort.

        Each player is applied on its own; a failure is recorded in errors
        and does not undo or stop the others.

        Args:
            match_id: Match to update
            overrides: (player_id, override) pairs or {"playerId", "override"} dicts

        Returns:
            BulkOverrideResult with one breakdown per applied player and
            {player_id, error, details} per failed player
        """
        result = BulkOverrideResult()

        for item in overrides:
            player_id = None
            try:
                if isinstance(item, Mapping):
                    player_id = item.get('playerId', item.get('player_id'))
                    override = item.get('override', {})
                else:
                    player_id, override = item
                result.results.append(self.apply_override(match_id, player_id, override))
            except OverrideValidationError as e:
                result.errors.append({'player_id': player_id, 'error': str(e), 'details': e.details})
            except (FeeError, ValidationError, ValueError, TypeError) as e:
                result.errors.append({'player_id': player_id, 'error': str(e), 'details': []})

        if result.errors:
            logger.warning(
                f'Bulk override for {match_id}: {len(result.results)} applied, '
                f'{len(result.errors)} failed'
            )
        else:
            logger.info(f'Bulk override for {match_id}: {len(result.results)} applied')
        return result

    def apply_fees_update(self, match_id: str, payload: Mapping[str, Any]) -> BulkOverrideResult:
        """
        Apply a {"manualOverrides": {player_id: {...}}} payload.

        The envelope is validated strictly; individual player overrides are
        validated and applied one by one.

        Raises:
            OverrideValidationError: If the envelope itself is malformed
        """
        manual = payload.get('manualOverrides', payload.get('manual_overrides'))
        if not isinstance(manual, Mapping):
            try:
                FeesUpdateRequest.model_validate(payload)
            except ValidationError as e:
                raise OverrideValidationError(
                    'Invalid fees update payload', validation_error_details(e)
                ) from e
            raise OverrideValidationError('Invalid fees update payload')
        return self.apply_bulk_overrides(match_id, list(manual.items()))

    def remove_override(self, match_id: str, player_id: str) -> PlayerFeeBreakdown:
        return self.fee_service.remove_override(match_id, player_id)

    def remove_bulk_overrides(self, match_id: str, player_ids: Iterable[str]) -> BulkOverrideResult:
        """Remove overrides for several players, best effort."""
        result = BulkOverrideResult()
        for player_id in player_ids:
            try:
                result.results.append(self.fee_service.remove_override(match_id, player_id))
            except FeeError as e:
                result.errors.append({'player_id': player_id, 'error': str(e), 'details': []})
        logger.info(
            f'Bulk removal for {match_id}: {len(result.results)} removed, '
            f'{len(result.errors)} failed'
        )
        return result

    def get_override_history(self, match_id: str) -> list[OverrideHistoryEntry]:
        """Overrides of a match, most recently updated first."""
        entries = _history_entries(self.store.load_match(match_id))
        return sorted(entries, key=lambda e: e.updated_at, reverse=True)

    def get_player_override_history(self, player_id: str) -> list[OverrideHistoryEntry]:
        """A player's overrides across all stored matches, most recent first."""
        entries = []
        for match_id in self.store.list_match_ids():
            entries.extend(_history_entries(self.store.load_match(match_id), player_id))
        return sorted(entries, key=lambda e: e.updated_at, reverse=True)

    def copy_overrides_from_match(
        self,
        source_match_id: str,
        target_match_id: str,
        player_mapping: Optional[Mapping[str, str]] = None,
    ) -> CopyOverridesResult:
        """
        Copy overrides from one match to another.

        Players are mapped through player_mapping (source id -> target id)
        when given. Players without a participation in the target match are
        skipped and reported in errors.

        Raises:
            MatchNotFoundError: If either match does not exist
        """
        source = self.store.load_match(source_match_id)
        target = self.store.load_match(target_match_id)
        result = CopyOverridesResult()

        if not source.overrides:
            result.errors.append('No overrides found in source match')
            return result

        mapping = dict(player_mapping or {})
        for record in source.overrides:
            target_player_id = mapping.get(record.player_id, record.player_id)
            if target.participation_for(target_player_id) is None:
                result.skipped_count += 1
                result.errors.append(f'Player {target_player_id} not found in target match')
                continue

            notes = f'Copied from match {source_match_id}: {record.notes or ""}'
            override = FeeOverrideInput(
                field_fee_override=record.field_fee_override,
                video_fee_override=record.video_fee_override,
                late_fee_override=record.late_fee_override,
                notes=notes[:OVERRIDE_NOTES_MAX_LENGTH],
            )
            try:
                self.apply_override(target_match_id, target_player_id, override)
            except (OverrideValidationError, ParticipationNotFoundError) as e:
                result.skipped_count += 1
                result.errors.append(f'Failed to copy override for {target_player_id}: {e}')
                continue
            result.copied_count += 1

        logger.info(
            f'Copied {result.copied_count} override(s) from {source_match_id} to '
            f'{target_match_id}, skipped {result.skipped_count}'
        )
        return result

    def get_override_statistics(self, match_id: str) -> OverrideStatistics:
        """
        Summarize overrides for a match.

        override_percentage is the ratio players_with_overrides / total_players
        (0 for a match without participants).
        """
        breakdown = self.fee_service.get_fee_breakdown(match_id)
        overridden = [p for p in breakdown.players if p.overrides is not None]

        override_types = {'field_fee': 0, 'video_fee': 0, 'late_fee': 0}
        for player in overridden:
            if player.overrides.field_fee_override is not None:
                override_types['field_fee'] += 1
            if player.overrides.video_fee_override is not None:
                override_types['video_fee'] += 1
            if player.overrides.late_fee_override is not None:
                override_types['late_fee'] += 1

        total = breakdown.total_participants
        return OverrideStatistics(
            total_players=total,
            players_with_overrides=len(overridden),
            override_percentage=len(overridden) / total if total else 0.0,
            total_calculated_fees=breakdown.total_calculated_fees,
            total_final_fees=breakdown.total_final_fees,
            fee_difference=round2(breakdown.total_final_fees - breakdown.total_calculated_fees),
            override_types=override_types,
        )
