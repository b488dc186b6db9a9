"""Constants and mappings for the club fee engine."""

# A match is played in 3 sections of 3 parts each
SECTIONS = (1, 2, 3)
PARTS = (1, 2, 3)

# Allowed attendance fractions for a single part
ATTENDANCE_VALUES = (0, 0.5, 1)

# Fallback rates when no club configuration is available
DEFAULT_LATE_FEE_RATE = 10
DEFAULT_VIDEO_FEE_RATE = 2

# Denominator used by the Excel import path (3 sections x 3 parts x 10 minutes)
FIXED_TOTAL_TIME_UNITS = 90

# Video fee is charged per 3 units of normal play
VIDEO_FEE_UNIT_DIVISOR = 3

# Override sanity thresholds (warnings only)
OVERRIDE_WARNING_LIMITS = {
    'field_fee_override': 1000,
    'video_fee_override': 100,
    'late_fee_override': 50,
}
# Overrides above these values should carry a justification note
OVERRIDE_NOTE_LIMITS = {
    'field_fee_override': 200,
    'video_fee_override': 20,
    'late_fee_override': 20,
}
OVERRIDE_NOTES_MAX_LENGTH = 500
OVERRIDE_NOTES_MIN_JUSTIFICATION = 10

OVERRIDE_FIELDS = ('field_fee_override', 'video_fee_override', 'late_fee_override')

# Excel sheet layout
GOALKEEPER_MARK = '守门'
LATE_MARK = '迟到'
TOTALS_LABEL = '合计'
SECTION_HEADERS = ('第一节', '第二节', '第三节')

EXCEL_COLUMNS = [
    '序号',
    '短编号',
    '姓名',
    '1', '2', '3',
    '1', '2', '3',
    '1', '2', '3',
    '是否迟到',
    '实收费用',
    '合计时间单位',
    '费用系数',
    '场地费用',
    '迟到罚款',
    '录像费用',
    '备注',
    '进球助攻',
]

# Column positions (1-based) in the exported sheet
EXCEL_COL = {
    'index': 1,
    'short_id': 2,
    'name': 3,
    'grid_start': 4,
    'late': 13,
    'actual_fee': 14,
    'total_time': 15,
    'coefficient': 16,
    'field_fee': 17,
    'late_fee': 18,
    'video_fee': 19,
    'notes': 20,
    'goals_assists': 21,
}

EXCEL_GROUP_HEADER_ROW = 1
EXCEL_HEADER_ROW = 2
EXCEL_FIRST_DATA_ROW = 3

# Legacy sheets carry an on-time column instead of a late column
LEGACY_ON_TIME_HEADER = '准时到场'
