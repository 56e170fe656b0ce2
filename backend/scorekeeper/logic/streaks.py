"""
Streak ledger: consecutive-win runs between ordered player pairs.

A streak belongs to one aggressor against one victim. It grows with every
repeat win of the same pair, is wiped when the victim beats the aggressor
back (the wiped amount having just been settled as half-carry), and ends for
every player who fails to win an event.

The ledger is a sorted tuple holding only active entries; all functions
return a new tuple.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from scorekeeper.logic.state import PairKey, StreakEntry

if TYPE_CHECKING:
    from collections.abc import Collection
    from decimal import Decimal

Streaks = tuple[StreakEntry, ...]

logger = structlog.get_logger()


def get_streak(streaks: Streaks, pair: PairKey) -> StreakEntry:
    """Return the entry for pair, or a zero entry when the pair has none."""
    for entry in streaks:
        if entry.key == pair:
            return entry
    return StreakEntry(winner_id=pair.winner_id, loser_id=pair.loser_id)


def _put(streaks: Streaks, entry: StreakEntry) -> Streaks:
    """Replace the entry's pair; zero entries are dropped."""
    kept = [e for e in streaks if e.key != entry.key]
    if entry.is_active:
        kept.append(entry)
    return tuple(sorted(kept, key=lambda e: e.key))


def zero_pair(streaks: Streaks, pair: PairKey) -> Streaks:
    """Return streaks with pair reset to zero."""
    return tuple(e for e in streaks if e.key != pair)


def record_win(
    streaks: Streaks,
    winner_id: int,
    loser_id: int,
    streak_contribution: Decimal,
) -> Streaks:
    """
    Extend the winner's streak over the loser and break the loser's reverse streak.

    Args:
        streaks: Current ledger
        winner_id: Player who won the matchup
        loser_id: Player who paid the matchup
        streak_contribution: Matchup amount excluding half-carry

    Returns:
        New ledger

    """
    pair = PairKey(winner_id, loser_id)
    current = get_streak(streaks, pair)
    updated = current.model_copy(
        update={
            "count": current.count + 1,
            "total_amount": current.total_amount + streak_contribution,
            "last_score_change": streak_contribution,
        },
    )
    logger.debug("streak extended", winner_id=winner_id, loser_id=loser_id, count=updated.count)
    return _put(zero_pair(streaks, pair.reversed()), updated)


def break_all_except(streaks: Streaks, winner_ids: Collection[int]) -> Streaks:
    """
    End every streak held by a player outside winner_ids.

    A player who did not win this event loses every run they were building,
    against anyone, not only against the players who beat them.
    """
    kept = tuple(e for e in streaks if e.winner_id in winner_ids)
    if len(kept) != len(streaks):
        broken = [e.key for e in streaks if e.winner_id not in winner_ids]
        logger.debug("streaks broken", pairs=broken)
    return kept


def active_streaks(streaks: Streaks) -> Streaks:
    """Return the entries with a positive count."""
    return tuple(e for e in streaks if e.is_active)
