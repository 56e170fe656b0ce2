"""
Pydantic models for data crossing the engine boundary.

Contains request inputs (player setup, discard-win winners), the matchup
result with its display breakdown, and the statistics views.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from scorekeeper.logic.enums import BreakdownLabel, TimelineLabel


class PlayerSetup(BaseModel):
    """Name and optional icon of a player at match creation."""

    model_config = ConfigDict(frozen=True)

    name: str
    icon: str | None = None


class WinnerFan(BaseModel):
    """One declared winner of a discard win and the fan they scored."""

    model_config = ConfigDict(frozen=True)

    winner_id: int
    fan: int


class BreakdownTerm(BaseModel):
    """A single labelled contribution to a matchup total."""

    model_config = ConfigDict(frozen=True)

    label: BreakdownLabel
    value: Decimal


class MatchupResult(BaseModel):
    """
    Score transfer from one loser to one winner.

    streak_contribution is what the streak ledger records; total adds the
    half-carry on top and is what actually changes hands.
    """

    model_config = ConfigDict(frozen=True)

    winner_id: int
    loser_id: int
    fan: int
    base: Decimal
    dealer_bonus: int
    pull_bonus: Decimal
    streak_contribution: Decimal
    half_carry: Decimal
    total: Decimal
    breakdown: tuple[BreakdownTerm, ...]


class PlayerStats(BaseModel):
    """Per-player tallies derived from the match history."""

    player_id: int
    name: str
    icon: str
    wins: int = 0
    self_draws: int = 0
    deal_ins: int = 0
    bonus_penalty_net: Decimal = Decimal(0)


class TimelinePoint(BaseModel):
    """Cumulative scores after a completed hand (or at start / now)."""

    label: TimelineLabel
    hand: int | None = None
    scores: dict[int, Decimal]
