"""Tests for attendance grids, goalkeeper conflicts and save-time fees."""

import pytest

from clubfees.attendance import (
    build_participation,
    calculate_participation_fees,
    convert_legacy_participation,
    detect_goalkeeper_conflicts,
    resolve_goalkeeper_conflicts,
)
from clubfees.coefficient import CoefficientMode
from clubfees.exceptions import AttendanceValidationError, MatchNotFoundError
from clubfees.models import AttendanceGrid

from conftest import full_section, make_grid


def grid(cells=(), goalkeeper=(), late=False):
    return AttendanceGrid.from_dict(make_grid(cells, goalkeeper, late))


class TestAttendanceGrid:
    """Tests for the typed grid."""

    def test_round_trip_dict(self):
        """Test to_dict always writes all 9 cells with string keys."""
        g = grid([(1, 1, 1), (3, 2, 0.5)], goalkeeper=[(3, 2)], late=True)
        data = g.to_dict()
        assert data['attendance']['1'] == {'1': 1.0, '2': 0.0, '3': 0.0}
        assert data['goalkeeper']['3']['2'] is True
        assert data['isLateArrival'] is True
        assert AttendanceGrid.from_dict(data) == g

    def test_goalkeeper_flag_must_be_true(self):
        """Test only a real True marks a goalkeeper cell; strings default to False."""
        g = AttendanceGrid.from_dict({
            'attendance': {'1': {'1': 1, '2': 1, '3': 1}},
            'goalkeeper': {'1': {'1': 'false', '2': 1, '3': True}},
        })
        assert not g.is_goalkeeper(1, 1)
        assert not g.is_goalkeeper(1, 2)
        assert g.is_goalkeeper(1, 3)
        assert calculate_participation_fees(g, 10, 10, 2).field_fee == 20

    def test_normal_vs_total(self):
        """Test goalkeeper time counts as attendance but not normal play."""
        g = grid(full_section(1) + [(2, 1, 0.5)], goalkeeper=[(1, 3)])
        assert g.normal_player_parts() == 2.5
        assert g.total_attendance() == 3.5

    def test_with_cell(self):
        g = grid([(1, 1, 1)], goalkeeper=[(1, 1)])
        updated = g.with_cell(1, 1, 0, goalkeeper=False)
        assert updated.cell(1, 1) == 0
        assert not updated.is_goalkeeper(1, 1)
        assert g.cell(1, 1) == 1


class TestParticipationFees:
    """Tests for the late fee rule applied when fees are stored."""

    def test_late_without_any_time(self):
        """Test a late player who never played is not charged."""
        result = calculate_participation_fees(grid(late=True), 12.78, 10, 2)
        assert result.late_fee == 0
        assert result.total_fee == 0

    def test_late_goalkeeper_only(self):
        """Test goalkeeper time counts as taking part for the late fee."""
        g = grid([(1, 1, 1)], goalkeeper=[(1, 1)], late=True)
        result = calculate_participation_fees(g, 12.78, 10, 2)
        assert result.field_fee == 0
        assert result.late_fee == 10

    def test_late_with_play(self):
        g = grid(full_section(1), late=True)
        result = calculate_participation_fees(g, 10, 10, 2)
        assert result.total_fee == 42

    def test_build_participation_row(self):
        """Test the stored row carries the grid and its calculated columns."""
        g = grid(full_section(1), late=True)
        row = build_participation('p1', g, 10, 10, 2, player_name='Alice', short_id='A1')
        assert row.player_name == 'Alice'
        assert row.short_id == 'A1'
        assert row.is_late_arrival is True
        assert row.total_time == 3
        assert row.field_fee_calculated == 30
        assert row.video_fee == 2
        assert row.late_fee == 10
        assert row.total_fee_calculated == 42
        assert AttendanceGrid.from_dict(row.attendance_data) == g


class TestGoalkeeperConflicts:
    """Tests for one goalkeeper per part."""

    def test_no_conflict(self):
        grids = {
            'a': grid([(1, 1, 1)], goalkeeper=[(1, 1)]),
            'b': grid([(1, 2, 1)], goalkeeper=[(1, 2)]),
        }
        assert detect_goalkeeper_conflicts(grids) == []

    def test_latest_claimant_wins(self):
        """Test each new claimant displaces the previous holder."""
        grids = {
            'a': grid([(2, 1, 1)], goalkeeper=[(2, 1)]),
            'b': grid([(2, 1, 1)], goalkeeper=[(2, 1)]),
            'c': grid([(2, 1, 1)], goalkeeper=[(2, 1)]),
        }
        conflicts = detect_goalkeeper_conflicts(grids)
        assert [(c.existing_goalkeeper_id, c.new_goalkeeper_id) for c in conflicts] == [
            ('a', 'b'),
            ('b', 'c'),
        ]

        resolved = resolve_goalkeeper_conflicts(grids, conflicts)
        assert resolved['c'].is_goalkeeper(2, 1)
        for displaced in ('a', 'b'):
            assert not resolved[displaced].is_goalkeeper(2, 1)
            assert resolved[displaced].cell(2, 1) == 0

    def test_resolution_keeps_other_cells(self):
        grids = {
            'a': grid(full_section(1), goalkeeper=[(1, 1)]),
            'b': grid([(1, 1, 1)], goalkeeper=[(1, 1)]),
        }
        resolved = resolve_goalkeeper_conflicts(grids, detect_goalkeeper_conflicts(grids))
        assert resolved['a'].cell(1, 2) == 1
        assert resolved['a'].normal_player_parts() == 2


class TestLegacyConversion:
    """Tests for flat section{n}Part{m} rows."""

    def test_convert(self):
        row = {'section1Part1': 1, 'section2Part3': 0.5, 'isLateArrival': True}
        g = convert_legacy_participation(row)
        assert g.cell(1, 1) == 1
        assert g.cell(2, 3) == 0.5
        assert g.is_late_arrival
        assert g.normal_player_parts() == 1.5

    def test_goalkeeper_flag_ignored(self, caplog):
        """Test the unmappable legacy goalkeeper flag is logged, not applied."""
        g = convert_legacy_participation({'section1Part1': 1, 'isGoalkeeper': True})
        assert not g.is_goalkeeper(1, 1)
        assert 'isGoalkeeper' in caplog.text


class TestAttendanceService:
    """Tests for save-time attendance processing."""

    def test_update_stores_fees(self, store, three_players):
        """Test fees are calculated with the dynamic coefficient and stored."""
        match = store.load_match('m1')
        stored = {p.player_id: p for p in match.participations}

        # 90 cost over 9 normal units
        assert stored['p1'].total_fee_calculated == 32
        assert stored['p2'].late_fee == 10
        assert stored['p2'].total_fee_calculated == 42
        assert stored['p3'].total_time == 3
        assert stored['p3'].field_fee_calculated == 30
        assert stored['p3'].player_name == 'Chen'

    def test_update_summary(self, match, attendance_service):
        summary = attendance_service.update_attendance(
            'm1',
            {'a': make_grid(full_section(1)), 'b': make_grid(full_section(2))},
            events=[{'player_id': 'a', 'event_type': 'GOAL'}],
        )
        assert summary['participations_count'] == 2
        assert summary['events_count'] == 1
        assert summary['fee_coefficient'] == 15.0
        assert summary['conflicts_resolved'] == 0

    def test_conflicts_resolved_on_save(self, store, match, attendance_service):
        summary = attendance_service.update_attendance(
            'm1',
            {
                'a': make_grid([(1, 1, 1)], goalkeeper=[(1, 1)]),
                'b': make_grid([(1, 1, 1)], goalkeeper=[(1, 1)]),
            },
        )
        assert summary['conflicts_resolved'] == 1
        assert summary['warnings']

        saved = attendance_service.get_attendance_data('m1')['attendance_data']
        assert saved['a']['goalkeeper']['1']['1'] is False
        assert saved['a']['attendance']['1']['1'] == 0
        assert saved['b']['goalkeeper']['1']['1'] is True

    def test_invalid_grid_rejected(self, store, three_players, attendance_service):
        """Test a bad value raises with details and leaves stored data alone."""
        with pytest.raises(AttendanceValidationError) as exc_info:
            attendance_service.update_attendance('m1', {'p1': make_grid([(1, 1, 0.7)])})

        assert exc_info.value.details[0]['field'].startswith('p1')
        assert len(store.load_match('m1').participations) == 3

    def test_goalkeeper_without_attendance_rejected(self, match, attendance_service):
        result = attendance_service.validate_attendance_data(
            {'a': make_grid([], goalkeeper=[(2, 2)])}
        )
        assert not result.is_valid
        assert result.errors[0]['field'] == 'a.goalkeeper.2.2'

    def test_unselected_players_dropped(self, store, match, attendance_service):
        attendance_service.update_attendance(
            'm1',
            {'a': make_grid(full_section(1)), 'b': make_grid(full_section(1))},
            selected_player_ids=['a'],
        )
        match = store.load_match('m1')
        assert [p.player_id for p in match.participations] == ['a']
        assert match.selected_player_ids == ['a']

    def test_submitted_goalkeeper_flags_coerced(self, store, match, attendance_service):
        """Test flags accepted by validation ('true', 1) still mark the goalkeeper on save."""
        data = make_grid(full_section(1))
        data['goalkeeper'] = {'1': {'1': 'true', '2': 1}}
        attendance_service.update_attendance('m1', {'a': data})

        stored = store.load_match('m1').participation_for('a')
        grid = AttendanceGrid.from_dict(stored.attendance_data)
        assert grid.is_goalkeeper(1, 1)
        assert grid.is_goalkeeper(1, 2)
        assert stored.total_time == 1

    def test_selection_from_generator(self, store, match, attendance_service):
        """Test a one-shot iterable of selected ids is both applied and stored."""
        attendance_service.update_attendance(
            'm1',
            {'a': make_grid(full_section(1)), 'b': make_grid(full_section(1))},
            selected_player_ids=(player_id for player_id in ['a']),
        )
        match = store.load_match('m1')
        assert [p.player_id for p in match.participations] == ['a']
        assert match.selected_player_ids == ['a']

    def test_overrides_survive_attendance_update(
        self, store, three_players, fee_service, attendance_service
    ):
        fee_service.apply_manual_override('m1', 'p1', {'fieldFeeOverride': 5})
        attendance_service.update_attendance('m1', {'p1': make_grid(full_section(1))})
        assert store.load_match('m1').override_for('p1').field_fee_override == 5

    def test_fixed_mode_coefficient(self, store, match, attendance_service):
        """Test a fixed-mode match shares cost over 90 units regardless of time."""
        with store.update('m1') as m:
            m.coefficient_mode = CoefficientMode.FIXED
        summary = attendance_service.update_attendance('m1', {'a': make_grid(full_section(1))})
        assert summary['fee_coefficient'] == 1.0
        assert store.load_match('m1').participations[0].field_fee_calculated == 3

    def test_unknown_match(self, store, attendance_service):
        with pytest.raises(MatchNotFoundError):
            attendance_service.update_attendance('nope', {'a': make_grid(full_section(1))})

    def test_get_attendance_data(self, three_players, attendance_service):
        attendance_service.update_attendance(
            'm1',
            {'p1': make_grid(full_section(1))},
            events=[
                {'player_id': 'p1', 'event_type': 'PENALTY_GOAL'},
                {'player_id': 'p1', 'event_type': 'ASSIST'},
            ],
        )
        data = attendance_service.get_attendance_data('m1')
        assert data['total_participants'] == 1
        assert data['events_summary']['p1']['goals'] == 1
        assert data['events_summary']['p1']['penalty_goals'] == 1
        assert data['events_summary']['p1']['assists'] == 1

    def test_preview_conflicts(self, attendance_service):
        conflicts = attendance_service.preview_goalkeeper_conflicts(
            {
                'a': make_grid([(3, 3, 1)], goalkeeper=[(3, 3)]),
                'b': make_grid([(3, 3, 1)], goalkeeper=[(3, 3)]),
            }
        )
        assert len(conflicts) == 1
        assert (conflicts[0].section, conflicts[0].part) == (3, 3)
