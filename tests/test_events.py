"""Unit tests for match event effects."""

import pytest

from clubfees.events import (
    EVENT_EFFECTS,
    STAT_NAMES,
    EventType,
    event_effects,
    format_goals_assists,
    parse_goals_assists,
    summarize_events,
)


class TestEventEffects:
    """Tests for the event type -> stat table."""

    def test_every_type_mapped(self):
        assert set(EVENT_EFFECTS) == set(EventType)

    def test_penalty_goal_counts_as_goal(self):
        assert event_effects('PENALTY_GOAL') == ('goals', 'penalty_goals')

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            event_effects('CORNER')

    def test_summarize(self):
        events = [
            {'player_id': 'a', 'event_type': EventType.GOAL},
            {'player_id': 'a', 'event_type': 'PENALTY_GOAL'},
            {'player_id': 'a', 'event_type': 'YELLOW_CARD'},
            {'player_id': 'b', 'event_type': 'ASSIST'},
        ]
        summary = summarize_events(events)
        assert summary['a']['goals'] == 2
        assert summary['a']['penalty_goals'] == 1
        assert summary['a']['yellow_cards'] == 1
        assert summary['a']['assists'] == 0
        assert summary['b']['assists'] == 1
        assert set(summary['b']) == set(STAT_NAMES)


class TestGoalsAssistsText:
    """Tests for the sheet's 进球助攻 column."""

    def test_format(self):
        assert format_goals_assists(1, 2) == '进球1 助攻2'
        assert format_goals_assists(0, 1) == '助攻1'
        assert format_goals_assists(0, 0) == ''

    def test_parse(self):
        assert parse_goals_assists('进球2 助攻1') == (2, 1)
        assert parse_goals_assists('助攻3') == (0, 3)
        assert parse_goals_assists(None) == (0, 0)
        assert parse_goals_assists(5) == (0, 0)
