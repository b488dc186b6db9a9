"""Shared fixtures: a temporary match store with one saved match."""

import pytest

from clubfees.attendance import AttendanceService
from clubfees.fee_service import FeeCalculationService
from clubfees.override_service import FeeOverrideService
from clubfees.schemas import MatchRecord
from clubfees.store import MatchStore


def make_grid(cells=(), goalkeeper=(), late=False):
    """
    Build an attendance JSON document.

    Args:
        cells: (section, part, fraction) tuples
        goalkeeper: (section, part) tuples kept in goal
        late: isLateArrival flag
    """
    attendance = {}
    keepers = {}
    for section, part, value in cells:
        attendance.setdefault(str(section), {})[str(part)] = value
    for section, part in goalkeeper:
        keepers.setdefault(str(section), {})[str(part)] = True
    return {'attendance': attendance, 'goalkeeper': keepers, 'isLateArrival': late}


def full_section(section, value=1):
    return [(section, part, value) for part in (1, 2, 3)]


@pytest.fixture
def store(tmp_path):
    return MatchStore(tmp_path / 'data')


@pytest.fixture
def match(store):
    """A dynamic-mode match costing 90 + 0, so 90 played units give coefficient 1."""
    record = MatchRecord(
        match_id='m1',
        opponent_team='Rovers',
        field_fee_total=90,
        water_fee_total=0,
        late_fee_rate=10,
        video_fee_per_unit=2,
    )
    return store.create_match(record)


@pytest.fixture
def attendance_service(store):
    return AttendanceService(store)


@pytest.fixture
def fee_service(store):
    return FeeCalculationService(store)


@pytest.fixture
def override_service(fee_service):
    return FeeOverrideService(fee_service)


@pytest.fixture
def three_players(match, attendance_service):
    """
    Save attendance for p1, p2, p3.

    p1: 3 units, on time
    p2: 3 units, late
    p3: 3 units as field player + section 2 in goal
    """
    attendance_service.update_attendance(
        'm1',
        {
            'p1': make_grid(full_section(1)),
            'p2': make_grid(full_section(1), late=True),
            'p3': make_grid(full_section(1) + full_section(2), goalkeeper=[(2, 1), (2, 2), (2, 3)]),
        },
        player_names={'p1': 'Alice', 'p2': 'Bob', 'p3': 'Chen'},
    )
    return match
