"""
String enum definitions for match scoring concepts.
"""

from enum import StrEnum


class EventKind(StrEnum):
    """Kinds of records appended to the match history."""

    BONUS_PENALTY = "bonus_penalty"
    SELF_DRAW = "self_draw"
    DISCARD_WIN = "discard_win"
    STALEMATE = "stalemate"
    SURRENDER = "surrender"


class BonusPenaltyKind(StrEnum):
    """Direction of a bonus/penalty payment relative to the acting player."""

    BONUS = "bonus"
    PENALTY = "penalty"


class WindName(StrEnum):
    """Wind names used for the prevailing wind and the hand within it."""

    EAST = "east"
    SOUTH = "south"
    WEST = "west"
    NORTH = "north"


class BreakdownLabel(StrEnum):
    """Labels for the terms of a matchup breakdown."""

    FAN = "fan"
    BASE_SCORE = "base_score"
    DEALER_BONUS = "dealer_bonus"
    PULL_BONUS = "pull_bonus"
    HALF_CARRY = "half_carry"


class TimelineLabel(StrEnum):
    """Fixed labels of score timeline points."""

    START = "start"
    HAND = "hand"
    CURRENT = "current"
