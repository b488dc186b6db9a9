"""Excel import and export of match fee sheets."""

import logging
import re
from pathlib import Path
from typing import Any, Optional

import openpyxl
from openpyxl.styles import Alignment, Font

from .attendance import build_participation, detect_goalkeeper_conflicts, resolve_goalkeeper_conflicts
from .coefficient import CoefficientMode, calculate_fixed_coefficient
from .config import get_base_fee_rates, get_fixed_total_time_units
from .constants import (
    ATTENDANCE_VALUES,
    EXCEL_COL,
    EXCEL_COLUMNS,
    EXCEL_FIRST_DATA_ROW,
    EXCEL_GROUP_HEADER_ROW,
    EXCEL_HEADER_ROW,
    GOALKEEPER_MARK,
    LATE_MARK,
    LEGACY_ON_TIME_HEADER,
    SECTION_HEADERS,
    TOTALS_LABEL,
)
from .events import EventType, format_goals_assists, parse_goals_assists, summarize_events
from .fee_service import FeeCalculationService
from .fees import combine_fees, round2
from .models import AttendanceGrid, MatchSheet, SheetPlayer
from .schemas import FeeOverrideRecord, MatchEventRecord, MatchRecord
from .store import MatchStore
from .utils import utc_now

logger = logging.getLogger('clubfees.excel_io')

_SCORE_PATTERN = re.compile(r'(\d+)\s*[:：]\s*(\d+)')
_FEES_NOTE_PATTERN = re.compile(r'场地(\d+(?:\.\d+)?)\+?.*?水费(\d+(?:\.\d+)?)')
_GRID_HEADERS = {'1', '2', '3'}


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _header_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip() if value is not None else ''


def parse_attendance_cell(value: Any) -> tuple[float, bool]:
    """
    Parse one grid cell into (fraction, is_goalkeeper).

    Examples:
        1 -> (1.0, False)
        '0.5' -> (0.5, False)
        '守门' -> (1.0, True)
        None -> (0.0, False)
    """
    if isinstance(value, str) and value.strip() == GOALKEEPER_MARK:
        return 1.0, True
    number = _to_number(value)
    if number is None:
        return 0.0, False
    if number not in ATTENDANCE_VALUES:
        logger.warning(f'Unexpected attendance value {value!r}, keeping {number}')
    return number, False


def parse_fee_note(value: Any) -> Optional[tuple[float, float]]:
    """Parse '场地1100+水费50' into (1100.0, 50.0)."""
    if not isinstance(value, str):
        return None
    match = _FEES_NOTE_PATTERN.search(value)
    if not match:
        return None
    return float(match.group(1)), float(match.group(2))


def _find_header_row(ws) -> int:
    for row in range(1, min(ws.max_row, 10) + 1):
        for col in range(1, ws.max_column + 1):
            if _header_text(ws.cell(row=row, column=col).value) == '姓名':
                return row
    raise ValueError('Could not find a header row with 姓名')


def parse_match_sheet(filepath: Path | str, sheet_name: Optional[str] = None) -> MatchSheet:
    """
    Read a match fee sheet.

    Columns are located by their header text, so sheets with or without the
    短编号 column are both accepted. Late arrival comes from 是否迟到 (迟到 = late)
    or, on older sheets, 准时到场 (1 = on time). Field and water totals come from
    the 合计 row's note, e.g. '场地1100+水费50'.

    Args:
        filepath: Path to the .xlsx file
        sheet_name: Sheet to read (default: first sheet)

    Returns:
        MatchSheet with one SheetPlayer per player row

    Raises:
        ValueError: If no header row or no attendance columns are found
    """
    wb = openpyxl.load_workbook(filepath, data_only=True)
    try:
        ws = wb[sheet_name] if sheet_name else wb.worksheets[0]
        sheet = MatchSheet(title=ws.title)

        header_row = _find_header_row(ws)
        columns: dict[str, int] = {}
        grid_columns: list[int] = []
        for col in range(1, ws.max_column + 1):
            text = _header_text(ws.cell(row=header_row, column=col).value)
            if text in _GRID_HEADERS and 'name' in columns:
                grid_columns.append(col)
            elif text == '姓名':
                columns['name'] = col
            elif text and text not in columns:
                columns[text] = col
        grid_columns = grid_columns[:9]
        if len(grid_columns) != 9:
            raise ValueError(f'Expected 9 attendance columns, found {len(grid_columns)}')

        # Score lives in the group header row, e.g. '进球助攻 3:2'
        for row in range(1, header_row + 1):
            for col in range(1, ws.max_column + 1):
                value = ws.cell(row=row, column=col).value
                if isinstance(value, str):
                    score = _SCORE_PATTERN.search(value)
                    if score:
                        sheet.our_score = int(score.group(1))
                        sheet.opponent_score = int(score.group(2))

        name_col = columns['name']
        notes_col = columns.get('备注')

        for row in range(header_row + 1, ws.max_row + 1):
            raw_name = ws.cell(row=row, column=name_col).value
            name = str(raw_name).strip() if raw_name is not None else ''
            if not name:
                continue

            if name == TOTALS_LABEL:
                fees = parse_fee_note(ws.cell(row=row, column=notes_col).value) if notes_col else None
                if fees:
                    sheet.field_fee_total, sheet.water_fee_total = fees
                else:
                    logger.warning(f'Totals row {row} has no 场地/水费 note')
                break

            cells = [parse_attendance_cell(ws.cell(row=row, column=c).value) for c in grid_columns]
            grid = AttendanceGrid(
                attendance=tuple(tuple(v for v, _ in cells[i:i + 3]) for i in (0, 3, 6)),
                goalkeeper=tuple(tuple(gk for _, gk in cells[i:i + 3]) for i in (0, 3, 6)),
                is_late_arrival=_is_late(ws, row, columns),
            )

            player = SheetPlayer(name=name, grid=grid)
            if '短编号' in columns:
                short_id = ws.cell(row=row, column=columns['短编号']).value
                player.short_id = str(short_id).strip() if short_id is not None else ''
            if '序号' in columns:
                index = _to_number(ws.cell(row=row, column=columns['序号']).value)
                player.index = int(index) if index is not None else None
            if '实收费用' in columns:
                player.actual_fee = _to_number(ws.cell(row=row, column=columns['实收费用']).value)
            if notes_col:
                notes = ws.cell(row=row, column=notes_col).value
                player.notes = str(notes).strip() if notes is not None else ''
            if '进球助攻' in columns:
                player.goals, player.assists = parse_goals_assists(
                    ws.cell(row=row, column=columns['进球助攻']).value
                )
            if sheet.fee_coefficient is None and '费用系数' in columns:
                sheet.fee_coefficient = _to_number(ws.cell(row=row, column=columns['费用系数']).value)

            if player.grid.total_attendance() == 0 and not player.grid.is_late_arrival:
                logger.debug(f'Row {row} ({name}) has no attendance')
            sheet.players.append(player)
    finally:
        wb.close()

    logger.info(f'Parsed {len(sheet.players)} players from sheet {sheet.title!r}')
    return sheet


def _is_late(ws, row: int, columns: dict[str, int]) -> bool:
    if '是否迟到' in columns:
        value = ws.cell(row=row, column=columns['是否迟到']).value
        if isinstance(value, str):
            return value.strip() == LATE_MARK
        return bool(value)
    if LEGACY_ON_TIME_HEADER in columns:
        return _to_number(ws.cell(row=row, column=columns[LEGACY_ON_TIME_HEADER]).value) != 1
    return False


def _default_match_id(path: Path) -> str:
    match_id = re.sub(r'[^A-Za-z0-9_.\-]+', '-', path.stem).strip('-.')
    return match_id or 'imported-match'


def _collected_override(
    actual_fee: float, video_fee: float, late_fee: float
) -> tuple[float, Optional[float], Optional[float]]:
    """
    Split a collected amount into (field, video, late) overrides.

    The field fee absorbs the difference first. When the amount is below
    video + late, the late fee is reduced next and then the video fee, so the
    three parts always add up to the collected amount.
    """
    field_fee = round2(actual_fee - video_fee - late_fee)
    if field_fee >= 0:
        return field_fee, None, None

    shortfall = -field_fee
    late_cut = min(late_fee, shortfall)
    late_override = round2(late_fee - late_cut)
    video_cut = shortfall - late_cut
    if video_cut <= 0:
        return 0.0, None, late_override
    return 0.0, round2(max(0.0, video_fee - video_cut)), late_override


def import_match_from_excel(
    store: MatchStore, filepath: Path | str, match_id: Optional[str] = None
) -> MatchRecord:
    """
    Create a match from a fee sheet.

    Imported matches use the fixed 90-unit coefficient and the club's base
    late/video rates. Goals and assists become match events. A player row
    with notes gets an override whose field fee makes the final total equal
    the sheet's 实收费用.

    Raises:
        FileExistsError: If match_id is already stored
        ValueError: If the sheet cannot be parsed
    """
    filepath = Path(filepath)
    sheet = parse_match_sheet(filepath)
    match_id = match_id or _default_match_id(filepath)

    late_fee_rate, video_fee_rate = get_base_fee_rates()
    coefficient = calculate_fixed_coefficient(
        sheet.field_fee_total, sheet.water_fee_total, get_fixed_total_time_units()
    )

    players: dict[str, SheetPlayer] = {}
    for player in sheet.players:
        if player.player_id in players:
            logger.warning(f'Duplicate player {player.player_id} in sheet, keeping first row')
            continue
        players[player.player_id] = player

    grids = {pid: p.grid for pid, p in players.items()}
    conflicts = detect_goalkeeper_conflicts(grids)
    if conflicts:
        logger.warning(f'{len(conflicts)} goalkeeper conflict(s) in sheet, latest row wins')
        grids = resolve_goalkeeper_conflicts(grids, conflicts)

    participations = []
    events = []
    overrides = []
    now = utc_now()
    for player_id, player in players.items():
        participation = build_participation(
            player_id,
            grids[player_id],
            coefficient,
            late_fee_rate,
            video_fee_rate,
            player_name=player.name,
            short_id=player.short_id,
        )
        participations.append(participation)

        for event_type, count in ((EventType.GOAL, player.goals), (EventType.ASSIST, player.assists)):
            events.extend(
                MatchEventRecord(player_id=player_id, event_type=event_type) for _ in range(count)
            )

        if player.notes and player.actual_fee is not None:
            field_fee, video_fee, late_fee = _collected_override(
                player.actual_fee, participation.video_fee, participation.late_fee
            )
            overrides.append(
                FeeOverrideRecord(
                    player_id=player_id,
                    field_fee_override=field_fee,
                    video_fee_override=video_fee,
                    late_fee_override=late_fee,
                    notes=player.notes,
                    created_at=now,
                    updated_at=now,
                )
            )

    match = MatchRecord(
        match_id=match_id,
        opponent_team=sheet.title,
        our_score=sheet.our_score,
        opponent_score=sheet.opponent_score,
        field_fee_total=sheet.field_fee_total,
        water_fee_total=sheet.water_fee_total,
        late_fee_rate=late_fee_rate,
        video_fee_per_unit=video_fee_rate,
        coefficient_mode=CoefficientMode.FIXED,
        selected_player_ids=list(players),
        participations=participations,
        overrides=overrides,
        events=events,
    )
    store.create_match(match)

    if sheet.fee_coefficient is not None and abs(sheet.fee_coefficient - coefficient) > 0.01:
        logger.warning(
            f'Sheet coefficient {sheet.fee_coefficient:.4f} differs from fixed coefficient '
            f'{coefficient:.4f}'
        )
    logger.info(
        f'Imported {match_id}: {len(participations)} players, {len(events)} events, '
        f'{len(overrides)} overrides'
    )
    return match


def export_match_to_excel(store: MatchStore, match_id: str, filepath: Path | str) -> Path:
    """
    Write a match's effective fees to a sheet.

    Fees are the final (override-aware) values. A player with no time on the
    pitch is never shown a late fee.

    Raises:
        MatchNotFoundError: If the match does not exist
    """
    filepath = Path(filepath)
    match = store.load_match(match_id)
    breakdown = FeeCalculationService(store).get_fee_breakdown(match_id)
    stats = summarize_events(e.model_dump() for e in match.events)
    participations = {p.player_id: p for p in match.participations}

    wb = openpyxl.Workbook()
    ws = wb.active
    # Sheet titles cannot contain []:*?/\ and are limited to 31 characters
    ws.title = re.sub(r'[\[\]:*?/\\]', '-', match.opponent_team or match_id)[:31]

    # Group header row
    for i, label in enumerate(SECTION_HEADERS):
        start = EXCEL_COL['grid_start'] + i * 3
        ws.cell(row=EXCEL_GROUP_HEADER_ROW, column=start, value=label)
        ws.merge_cells(
            start_row=EXCEL_GROUP_HEADER_ROW, start_column=start,
            end_row=EXCEL_GROUP_HEADER_ROW, end_column=start + 2,
        )
    score = ''
    if match.our_score is not None and match.opponent_score is not None:
        score = f' {match.our_score}:{match.opponent_score}'
    ws.cell(row=EXCEL_GROUP_HEADER_ROW, column=EXCEL_COL['goals_assists'], value=f'进球助攻{score}')

    for col, header in enumerate(EXCEL_COLUMNS, start=1):
        cell = ws.cell(row=EXCEL_HEADER_ROW, column=col, value=header)
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal='center')

    totals = {'time': 0.0, 'actual': 0.0, 'field': 0.0, 'late': 0.0, 'video': 0.0}
    row = EXCEL_FIRST_DATA_ROW
    for index, player in enumerate(breakdown.players, start=1):
        participation = participations[player.player_id]
        grid = AttendanceGrid.from_dict(participation.attendance_data)

        fees = player.final_fees
        late_fee = fees.late_fee if grid.total_attendance() > 0 else 0.0
        total_fee = combine_fees(fees.field_fee, fees.video_fee, late_fee)

        ws.cell(row=row, column=EXCEL_COL['index'], value=index)
        ws.cell(row=row, column=EXCEL_COL['short_id'], value=participation.short_id or None)
        ws.cell(row=row, column=EXCEL_COL['name'], value=player.player_name or player.player_id)

        for offset, (_section, _part, value, is_goalkeeper) in enumerate(grid.cells()):
            if is_goalkeeper:
                cell_value: Any = GOALKEEPER_MARK
            elif value > 0:
                cell_value = int(value) if float(value).is_integer() else value
            else:
                cell_value = None
            ws.cell(row=row, column=EXCEL_COL['grid_start'] + offset, value=cell_value)

        ws.cell(row=row, column=EXCEL_COL['late'], value=LATE_MARK if player.is_late_arrival else None)
        ws.cell(row=row, column=EXCEL_COL['actual_fee'], value=total_fee)
        ws.cell(row=row, column=EXCEL_COL['total_time'], value=player.total_time)
        coefficient_cell = ws.cell(row=row, column=EXCEL_COL['coefficient'], value=breakdown.fee_coefficient)
        coefficient_cell.number_format = '0.00'
        ws.cell(row=row, column=EXCEL_COL['field_fee'], value=fees.field_fee)
        ws.cell(row=row, column=EXCEL_COL['late_fee'], value=late_fee)
        ws.cell(row=row, column=EXCEL_COL['video_fee'], value=fees.video_fee)
        notes = player.overrides.notes if player.overrides else None
        ws.cell(row=row, column=EXCEL_COL['notes'], value=notes)

        player_stats = stats.get(player.player_id, {})
        goals_assists = format_goals_assists(player_stats.get('goals', 0), player_stats.get('assists', 0))
        ws.cell(row=row, column=EXCEL_COL['goals_assists'], value=goals_assists or None)

        totals['time'] += player.total_time
        totals['actual'] += total_fee
        totals['field'] += fees.field_fee
        totals['late'] += late_fee
        totals['video'] += fees.video_fee
        row += 1

    ws.cell(row=row, column=EXCEL_COL['name'], value=TOTALS_LABEL).font = Font(bold=True)
    ws.cell(row=row, column=EXCEL_COL['actual_fee'], value=round2(totals['actual']))
    ws.cell(row=row, column=EXCEL_COL['total_time'], value=totals['time'])
    ws.cell(row=row, column=EXCEL_COL['field_fee'], value=round2(totals['field']))
    ws.cell(row=row, column=EXCEL_COL['late_fee'], value=round2(totals['late']))
    ws.cell(row=row, column=EXCEL_COL['video_fee'], value=round2(totals['video']))
    ws.cell(
        row=row,
        column=EXCEL_COL['notes'],
        value=f'场地{_plain(match.field_fee_total)}+水费{_plain(match.water_fee_total)}',
    )

    ws.column_dimensions['C'].width = 12
    ws.column_dimensions['T'].width = 24

    filepath.parent.mkdir(parents=True, exist_ok=True)
    wb.save(filepath)
    logger.info(f'Exported {len(breakdown.players)} players of {match_id} to {filepath}')
    return filepath


def _plain(amount: float) -> str:
    """1100.0 -> '1100', 12.5 -> '12.5'."""
    return str(int(amount)) if float(amount).is_integer() else str(amount)
