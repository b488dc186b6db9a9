"""Pydantic schemas for request payloads and stored JSON documents."""

from pydantic import BaseModel, Field, field_validator

from .coefficient import CoefficientMode
from .constants import (
    ATTENDANCE_VALUES,
    DEFAULT_LATE_FEE_RATE,
    DEFAULT_VIDEO_FEE_RATE,
    FIXED_TOTAL_TIME_UNITS,
    OVERRIDE_NOTES_MAX_LENGTH,
)
from .events import EventType

_VALID_KEYS = {'1', '2', '3'}


def _check_grid_keys(v: dict) -> dict:
    for section, parts in v.items():
        if section not in _VALID_KEYS:
            raise ValueError(f'Invalid section: {section}')
        for part in parts:
            if part not in _VALID_KEYS:
                raise ValueError(f'Invalid part: {section}.{part}')
    return v


class FeeOverrideInput(BaseModel):
    """Admin-entered override for one player. None keeps the calculated value."""

    field_fee_override: float | None = Field(None, ge=0, alias='fieldFeeOverride')
    video_fee_override: float | None = Field(None, ge=0, alias='videoFeeOverride')
    late_fee_override: float | None = Field(None, ge=0, alias='lateFeeOverride')
    notes: str | None = Field(None, max_length=OVERRIDE_NOTES_MAX_LENGTH)

    class Config:
        extra = 'forbid'
        populate_by_name = True


class FeesUpdateRequest(BaseModel):
    """PUT payload: {"manualOverrides": {player_id: {...}}}."""

    manual_overrides: dict[str, FeeOverrideInput] = Field(..., alias='manualOverrides')

    class Config:
        extra = 'forbid'
        populate_by_name = True


class FeeRateInput(BaseModel):
    """Per-match rate configuration."""

    field_fee_total: float = Field(..., ge=0, alias='fieldFeeTotal')
    water_fee_total: float = Field(..., ge=0, alias='waterFeeTotal')
    late_fee_rate: float = Field(DEFAULT_LATE_FEE_RATE, ge=0, alias='lateFeeRate')
    video_fee_rate: float = Field(DEFAULT_VIDEO_FEE_RATE, ge=0, alias='videoFeeRate')

    class Config:
        extra = 'forbid'
        populate_by_name = True


class AttendanceInput(BaseModel):
    """Attendance grid as submitted for one player."""

    attendance: dict[str, dict[str, float]]
    goalkeeper: dict[str, dict[str, bool]] = Field(default_factory=dict)
    is_late_arrival: bool = Field(False, alias='isLateArrival')

    @field_validator('attendance')
    @classmethod
    def validate_attendance(cls, v):
        """Ensure keys are 1-3 and fractions are 0, 0.5 or 1."""
        _check_grid_keys(v)
        for section, parts in v.items():
            for part, value in parts.items():
                if value not in ATTENDANCE_VALUES:
                    raise ValueError(
                        f'Attendance {section}.{part} must be 0, 0.5 or 1, got {value}'
                    )
        return v

    @field_validator('goalkeeper')
    @classmethod
    def validate_goalkeeper(cls, v):
        """Ensure keys are 1-3."""
        return _check_grid_keys(v)

    class Config:
        extra = 'forbid'
        populate_by_name = True


class MatchEventRecord(BaseModel):
    """A goal, assist, card or save recorded for a player."""

    player_id: str = Field(..., min_length=1)
    event_type: EventType
    minute: int | None = Field(None, ge=0, le=120)

    class Config:
        extra = 'forbid'


class ParticipationRecord(BaseModel):
    """A player's stored attendance and the fees calculated at save time."""

    player_id: str = Field(..., min_length=1)
    player_name: str = ''
    short_id: str = ''
    attendance_data: dict
    is_late_arrival: bool = False
    total_time: float = Field(0.0, ge=0)
    field_fee_calculated: float = 0.0
    video_fee: float = 0.0
    late_fee: float = 0.0
    total_fee_calculated: float = 0.0

    class Config:
        extra = 'forbid'


class FeeOverrideRecord(BaseModel):
    """Stored override for one player in one match."""

    player_id: str = Field(..., min_length=1)
    field_fee_override: float | None = Field(None, ge=0)
    video_fee_override: float | None = Field(None, ge=0)
    late_fee_override: float | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=OVERRIDE_NOTES_MAX_LENGTH)
    created_at: str
    updated_at: str

    class Config:
        extra = 'forbid'


class MatchRecord(BaseModel):
    """Complete matches/<match_id>.json file structure."""

    match_id: str = Field(..., min_length=1)
    opponent_team: str = ''
    match_date: str | None = None
    our_score: int | None = Field(None, ge=0)
    opponent_score: int | None = Field(None, ge=0)
    field_fee_total: float = Field(0.0, ge=0)
    water_fee_total: float = Field(0.0, ge=0)
    late_fee_rate: float = Field(DEFAULT_LATE_FEE_RATE, ge=0)
    video_fee_per_unit: float = Field(DEFAULT_VIDEO_FEE_RATE, ge=0)
    coefficient_mode: CoefficientMode = CoefficientMode.DYNAMIC
    notes: str | None = None
    selected_player_ids: list[str] = Field(default_factory=list)
    participations: list[ParticipationRecord] = Field(default_factory=list)
    overrides: list[FeeOverrideRecord] = Field(default_factory=list)
    events: list[MatchEventRecord] = Field(default_factory=list)

    @field_validator('participations')
    @classmethod
    def validate_unique_participations(cls, v):
        """Ensure a player participates at most once."""
        seen = set()
        for p in v:
            if p.player_id in seen:
                raise ValueError(f'Duplicate participation for player {p.player_id}')
            seen.add(p.player_id)
        return v

    def participation_for(self, player_id: str) -> ParticipationRecord | None:
        return next((p for p in self.participations if p.player_id == player_id), None)

    def override_for(self, player_id: str) -> FeeOverrideRecord | None:
        return next((o for o in self.overrides if o.player_id == player_id), None)

    class Config:
        extra = 'forbid'


class ClubConfig(BaseModel):
    """Club-wide fee settings."""

    default_late_fee_rate: float = Field(DEFAULT_LATE_FEE_RATE, ge=0)
    default_video_fee_rate: float = Field(DEFAULT_VIDEO_FEE_RATE, ge=0)
    fixed_total_time_units: float = Field(FIXED_TOTAL_TIME_UNITS, gt=0)
    data_dir: str = 'data'

    class Config:
        extra = 'forbid'
