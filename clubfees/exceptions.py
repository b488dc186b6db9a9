"""Exception types raised by the fee services."""

from typing import Any


class FeeError(Exception):
    """Base class for fee engine errors."""


class MatchNotFoundError(FeeError, LookupError):
    def __init__(self, match_id: str):
        super().__init__(f'Match {match_id} not found')
        self.match_id = match_id


class ParticipationNotFoundError(FeeError, LookupError):
    def __init__(self, match_id: str, player_id: str):
        super().__init__(f'Player {player_id} has no participation record for match {match_id}')
        self.match_id = match_id
        self.player_id = player_id


class _DetailedValueError(FeeError, ValueError):
    """ValueError carrying per-field details: [{field, message, value}, ...]."""

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        self.details = details or []
        if self.details:
            fields = ', '.join(f"{d['field']}: {d['message']}" for d in self.details)
            message = f'{message}: {fields}'
        super().__init__(message)


class OverrideValidationError(_DetailedValueError):
    pass


class AttendanceValidationError(_DetailedValueError):
    pass
