"""Match event types and the statistics each one contributes to."""

import re
from collections import Counter
from enum import Enum
from typing import Iterable, Mapping


class EventType(str, Enum):
    GOAL = 'GOAL'
    PENALTY_GOAL = 'PENALTY_GOAL'
    ASSIST = 'ASSIST'
    YELLOW_CARD = 'YELLOW_CARD'
    RED_CARD = 'RED_CARD'
    PENALTY_MISS = 'PENALTY_MISS'
    OWN_GOAL = 'OWN_GOAL'
    SAVE = 'SAVE'


# Stat counters incremented by each event type. Every EventType must appear here.
EVENT_EFFECTS: dict[EventType, tuple[str, ...]] = {
    EventType.GOAL: ('goals',),
    EventType.PENALTY_GOAL: ('goals', 'penalty_goals'),
    EventType.ASSIST: ('assists',),
    EventType.YELLOW_CARD: ('yellow_cards',),
    EventType.RED_CARD: ('red_cards',),
    EventType.PENALTY_MISS: ('penalty_misses',),
    EventType.OWN_GOAL: ('own_goals',),
    EventType.SAVE: ('saves',),
}

STAT_NAMES = tuple(sorted({stat for stats in EVENT_EFFECTS.values() for stat in stats}))


def event_effects(event_type: EventType | str) -> tuple[str, ...]:
    """Stat counters for an event type. Raises ValueError for unknown types."""
    return EVENT_EFFECTS[EventType(event_type)]


def summarize_events(events: Iterable[Mapping]) -> dict[str, dict[str, int]]:
    """
    Count stats per player.

    Args:
        events: Dicts with 'player_id' and 'event_type'

    Returns:
        Dict of player_id -> {stat_name: count} with every stat present
    """
    counters: dict[str, Counter] = {}
    for event in events:
        player_id = event['player_id']
        counter = counters.setdefault(player_id, Counter())
        for stat in event_effects(event['event_type']):
            counter[stat] += 1

    return {
        player_id: {stat: counter.get(stat, 0) for stat in STAT_NAMES}
        for player_id, counter in counters.items()
    }


def format_goals_assists(goals: int, assists: int) -> str:
    """Spreadsheet form, e.g. '进球1 助攻2'."""
    parts = []
    if goals > 0:
        parts.append(f'进球{goals}')
    if assists > 0:
        parts.append(f'助攻{assists}')
    return ' '.join(parts)


def parse_goals_assists(value) -> tuple[int, int]:
    """Parse '进球1 助攻1', '进球1' or '助攻1' into (goals, assists)."""
    if not value or not isinstance(value, str):
        return 0, 0

    goal_match = re.search(r'进球(\d+)', value)
    assist_match = re.search(r'助攻(\d+)', value)
    goals = int(goal_match.group(1)) if goal_match else 0
    assists = int(assist_match.group(1)) if assist_match else 0
    return goals, assists
