"""Data models for the club fee engine."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .constants import PARTS, SECTIONS

Row = Tuple[float, float, float]
FlagRow = Tuple[bool, bool, bool]

_EMPTY_ROW: Row = (0.0, 0.0, 0.0)
_EMPTY_FLAGS: FlagRow = (False, False, False)


def _to_fraction(value: Any) -> float:
    """Coerce a stored attendance value to a float, treating junk as 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class AttendanceGrid:
    """
    One player's participation in a match.

    attendance[s][p] is the fraction of part p of section s played as a field
    player, goalkeeper[s][p] marks the parts the player kept goal. Indices are
    0-based internally; use cell()/is_goalkeeper() with 1-based numbers.
    """
    attendance: Tuple[Row, Row, Row] = (_EMPTY_ROW, _EMPTY_ROW, _EMPTY_ROW)
    goalkeeper: Tuple[FlagRow, FlagRow, FlagRow] = (_EMPTY_FLAGS, _EMPTY_FLAGS, _EMPTY_FLAGS)
    is_late_arrival: bool = False

    @classmethod
    def empty(cls, is_late_arrival: bool = False) -> 'AttendanceGrid':
        return cls(is_late_arrival=is_late_arrival)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AttendanceGrid':
        """
        Build a grid from the JSON shape stored with a participation.

        Missing sections or parts default to 0 / False, so a partial or
        malformed document never raises.
        """
        data = data or {}
        attendance = data.get('attendance') or {}
        goalkeeper = data.get('goalkeeper') or {}
        if not isinstance(attendance, dict):
            attendance = {}
        if not isinstance(goalkeeper, dict):
            goalkeeper = {}

        rows = []
        flags = []
        for section in SECTIONS:
            att_section = attendance.get(str(section)) or {}
            gk_section = goalkeeper.get(str(section)) or {}
            if not isinstance(att_section, dict):
                att_section = {}
            if not isinstance(gk_section, dict):
                gk_section = {}
            rows.append(tuple(_to_fraction(att_section.get(str(part))) for part in PARTS))
            flags.append(tuple(gk_section.get(str(part)) is True for part in PARTS))

        late = data.get('isLateArrival', data.get('is_late_arrival', False))
        return cls(
            attendance=tuple(rows),  # type: ignore[arg-type]
            goalkeeper=tuple(flags),  # type: ignore[arg-type]
            is_late_arrival=bool(late),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON shape (string keys, all 9 cells present)."""
        return {
            'attendance': {
                str(s): {str(p): self.attendance[s - 1][p - 1] for p in PARTS} for s in SECTIONS
            },
            'goalkeeper': {
                str(s): {str(p): self.goalkeeper[s - 1][p - 1] for p in PARTS} for s in SECTIONS
            },
            'isLateArrival': self.is_late_arrival,
        }

    def cell(self, section: int, part: int) -> float:
        return self.attendance[section - 1][part - 1]

    def is_goalkeeper(self, section: int, part: int) -> bool:
        return self.goalkeeper[section - 1][part - 1]

    def cells(self):
        """Yield (section, part, fraction, is_goalkeeper) for all 9 cells."""
        for section in SECTIONS:
            for part in PARTS:
                yield section, part, self.cell(section, part), self.is_goalkeeper(section, part)

    def normal_player_parts(self) -> float:
        """Fraction of the match played as a field player."""
        return sum(value for _, _, value, gk in self.cells() if value > 0 and not gk)

    def total_attendance(self) -> float:
        """Fraction of the match played in any role, goalkeeper included."""
        return sum(value for _, _, value, _ in self.cells() if value > 0)

    def with_cell(
        self, section: int, part: int, value: float, goalkeeper: Optional[bool] = None
    ) -> 'AttendanceGrid':
        """Return a copy with one cell replaced."""
        rows = [list(r) for r in self.attendance]
        flags = [list(f) for f in self.goalkeeper]
        rows[section - 1][part - 1] = float(value)
        if goalkeeper is not None:
            flags[section - 1][part - 1] = goalkeeper
        return AttendanceGrid(
            attendance=tuple(tuple(r) for r in rows),  # type: ignore[arg-type]
            goalkeeper=tuple(tuple(f) for f in flags),  # type: ignore[arg-type]
            is_late_arrival=self.is_late_arrival,
        )


@dataclass
class FeeCalculationResult:
    """Fee breakdown for one player, as produced by the engine."""
    normal_player_parts: float = 0.0
    sections_with_normal_play: int = 0
    field_fee: float = 0.0
    late_fee: float = 0.0
    video_fee: float = 0.0
    total_fee: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            'normalPlayerParts': self.normal_player_parts,
            'sectionsWithNormalPlay': self.sections_with_normal_play,
            'fieldFee': self.field_fee,
            'lateFee': self.late_fee,
            'videoFee': self.video_fee,
            'totalFee': self.total_fee,
        }


@dataclass
class FinalFees:
    """Effective fees after overrides are applied."""
    field_fee: float = 0.0
    video_fee: float = 0.0
    late_fee: float = 0.0
    total_fee: float = 0.0


@dataclass
class OverrideValues:
    """Override columns for one player; None means use the calculated value."""
    field_fee_override: Optional[float] = None
    video_fee_override: Optional[float] = None
    late_fee_override: Optional[float] = None
    notes: Optional[str] = None


@dataclass
class PlayerFeeBreakdown:
    """Calculated, override and effective fees for one player in one match."""
    player_id: str
    player_name: str
    total_time: float
    is_late_arrival: bool
    calculated_fees: FeeCalculationResult
    overrides: Optional[OverrideValues] = None
    final_fees: FinalFees = field(default_factory=FinalFees)
    is_anomaly: bool = False

    @property
    def has_override(self) -> bool:
        return self.overrides is not None


@dataclass
class MatchFeeBreakdown:
    """Effective fee view for a whole match."""
    match_id: str
    fee_coefficient: float
    players: List[PlayerFeeBreakdown] = field(default_factory=list)
    total_calculated_fees: float = 0.0
    total_final_fees: float = 0.0

    @property
    def total_participants(self) -> int:
        return len(self.players)

    @property
    def fee_difference(self) -> float:
        from .fees import round2

        return round2(self.total_final_fees - self.total_calculated_fees)


@dataclass
class OverrideStatistics:
    """Audit summary of the overrides applied to a match."""
    total_players: int = 0
    players_with_overrides: int = 0
    override_percentage: float = 0.0
    total_calculated_fees: float = 0.0
    total_final_fees: float = 0.0
    fee_difference: float = 0.0
    override_types: Dict[str, int] = field(default_factory=dict)


@dataclass
class OverrideHistoryEntry:
    """A stored override with the context needed for auditing."""
    match_id: str
    player_id: str
    player_name: str
    field_fee_override: Optional[float]
    video_fee_override: Optional[float]
    late_fee_override: Optional[float]
    notes: Optional[str]
    created_at: str
    updated_at: str


@dataclass
class CopyOverridesResult:
    """Outcome of copying overrides from one match to another."""
    copied_count: int = 0
    skipped_count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class SheetPlayer:
    """One player row read from a match spreadsheet."""
    name: str
    short_id: str = ''
    index: Optional[int] = None
    grid: AttendanceGrid = field(default_factory=AttendanceGrid)
    actual_fee: Optional[float] = None
    notes: str = ''
    goals: int = 0
    assists: int = 0

    @property
    def player_id(self) -> str:
        return self.short_id or self.name


@dataclass
class MatchSheet:
    """Match-level data read from a spreadsheet."""
    title: str
    field_fee_total: float = 0.0
    water_fee_total: float = 0.0
    fee_coefficient: Optional[float] = None
    our_score: Optional[int] = None
    opponent_score: Optional[int] = None
    players: List[SheetPlayer] = field(default_factory=list)
    skipped_rows: List[int] = field(default_factory=list)


@dataclass
class GoalkeeperConflict:
    """Two players marked as goalkeeper for the same part."""
    section: int
    part: int
    existing_goalkeeper_id: str
    new_goalkeeper_id: str


@dataclass
class BulkOverrideResult:
    """Outcome of a best-effort batch of override operations."""
    results: List[PlayerFeeBreakdown] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors
