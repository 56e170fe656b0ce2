"""
Matchup calculation: the score one loser pays one winner.

Folds the hand's fan together with the base score, the dealer bonus, the
pull bonus of an ongoing streak and the half-carry of a reversed streak.
Rounding to one decimal place happens at every accumulation step, not only
on the final total; moving it changes results.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from scorekeeper.logic.enums import BreakdownLabel
from scorekeeper.logic.exceptions import EventValidationError
from scorekeeper.logic.settings import HALF_CARRY_RATIO
from scorekeeper.logic.state import ZERO, PairKey
from scorekeeper.logic.streaks import get_streak
from scorekeeper.logic.types import BreakdownTerm, MatchupResult

if TYPE_CHECKING:
    from scorekeeper.logic.settings import MatchConfig
    from scorekeeper.logic.state import Player
    from scorekeeper.logic.streaks import Streaks

_TENTH = Decimal("0.1")


def round1(value: Decimal) -> Decimal:
    """Round to one decimal place, halves away from zero."""
    return value.quantize(_TENTH, rounding=ROUND_HALF_UP)


def validate_fan(fan: object) -> int:
    """Return fan if it is a positive integer, else raise EventValidationError."""
    if isinstance(fan, bool) or not isinstance(fan, int) or fan <= 0:
        raise EventValidationError(f"fan must be a positive integer, got {fan!r}")
    return fan


def dealer_bonus(winner: Player, loser: Player) -> int:
    """
    Return the dealer bonus 2n + 1 when either side is dealer, n being their retention count.
    """
    if winner.is_dealer:
        return 2 * winner.dealer_retention_count + 1
    if loser.is_dealer:
        return 2 * loser.dealer_retention_count + 1
    return 0


def compute_matchup(
    winner: Player,
    loser: Player,
    fan: int,
    streaks: Streaks,
    config: MatchConfig,
) -> MatchupResult:
    """
    Compute the transfer from loser to winner for a hand of the given fan.

    Pure: the caller applies total to the scores and streak_contribution
    to the streak ledger.

    Raises:
        EventValidationError: If fan is not a positive integer or both sides are the same player

    """
    validate_fan(fan)
    if winner.id == loser.id:
        raise EventValidationError(f"player {winner.id} cannot win against themselves")

    bonus = dealer_bonus(winner, loser)
    base = Decimal(fan + config.base_score + bonus)

    pull_bonus = ZERO
    streak_contribution = base
    streak = get_streak(streaks, PairKey(winner.id, loser.id))
    if streak.is_active:
        pull_bonus = round1(streak.last_score_change * config.pull_multiplier)
        streak_contribution = round1(base + pull_bonus)

    half_carry = ZERO
    total = streak_contribution
    reverse = get_streak(streaks, PairKey(loser.id, winner.id))
    if reverse.is_active:
        half_carry = round1(reverse.total_amount * HALF_CARRY_RATIO)
        total = streak_contribution + half_carry

    breakdown = [
        BreakdownTerm(label=BreakdownLabel.FAN, value=Decimal(fan)),
        BreakdownTerm(label=BreakdownLabel.BASE_SCORE, value=Decimal(config.base_score)),
    ]
    if bonus:
        breakdown.append(BreakdownTerm(label=BreakdownLabel.DEALER_BONUS, value=Decimal(bonus)))
    if streak.is_active:
        breakdown.append(BreakdownTerm(label=BreakdownLabel.PULL_BONUS, value=pull_bonus))
    if reverse.is_active:
        breakdown.append(BreakdownTerm(label=BreakdownLabel.HALF_CARRY, value=half_carry))

    return MatchupResult(
        winner_id=winner.id,
        loser_id=loser.id,
        fan=fan,
        base=base,
        dealer_bonus=bonus,
        pull_bonus=pull_bonus,
        streak_contribution=streak_contribution,
        half_carry=half_carry,
        total=total,
        breakdown=tuple(breakdown),
    )
