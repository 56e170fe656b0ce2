"""
Surrender handling (投降): resetting a pair's accumulated streak.

After a win event every touched pair whose count has just reached a multiple
of SURRENDER_INTERVAL is queued for confirmation. The queue lives on the
match state (Idle -> AwaitingConfirmation(queue) -> Idle) and is answered
one pair at a time, since accepting one surrender changes the ledger the
next answer sees. Players can also surrender an active streak at any time.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from scorekeeper.logic.exceptions import NoPendingSurrenderError, StreakNotFoundError
from scorekeeper.logic.settings import SURRENDER_INTERVAL
from scorekeeper.logic.state import PairKey, PendingSurrender, SurrenderRecord
from scorekeeper.logic.state_utils import append_records, get_dealer, require_idle, require_players
from scorekeeper.logic.streaks import active_streaks, get_streak, zero_pair

if TYPE_CHECKING:
    from collections.abc import Iterable

    from scorekeeper.logic.state import MatchState
    from scorekeeper.logic.streaks import Streaks

logger = structlog.get_logger()


def collect_surrender_candidates(streaks: Streaks, touched: Iterable[PairKey]) -> tuple[PairKey, ...]:
    """Return touched pairs whose count is a positive multiple of SURRENDER_INTERVAL, in touched order."""
    candidates: list[PairKey] = []
    for pair in touched:
        entry = get_streak(streaks, pair)
        if entry.count > 0 and entry.count % SURRENDER_INTERVAL == 0 and pair not in candidates:
            candidates.append(pair)
    return tuple(candidates)


def check_surrenders(state: MatchState, touched: Iterable[PairKey], timestamp: datetime) -> MatchState:
    """
    Queue surrender confirmations for the pairs an event just extended.

    Leaves the state idle when no pair qualifies.
    """
    queue = collect_surrender_candidates(state.streaks, touched)
    if not queue:
        return state
    logger.debug("surrender confirmation pending", pairs=list(queue))
    return state.model_copy(update={"pending_surrender": PendingSurrender(queue=queue, timestamp=timestamp)})


def _surrender_record(state: MatchState, pair: PairKey, timestamp: datetime) -> SurrenderRecord:
    entry = get_streak(state.streaks, pair)
    return SurrenderRecord(
        winner_id=pair.winner_id,
        loser_id=pair.loser_id,
        count=entry.count,
        total_amount=entry.total_amount,
        dealer_id=get_dealer(state).id,
        rotation_count=state.rotation_count,
        timestamp=timestamp,
    )


def resolve_surrender(state: MatchState, *, accept: bool) -> MatchState:
    """
    Answer the confirmation at the head of the pending queue.

    Accepting zeroes the pair and appends a SurrenderRecord stamped with the
    triggering event's timestamp; declining leaves the pair as it is. The
    state returns to idle once the queue is exhausted.

    Raises:
        NoPendingSurrenderError: If no confirmation is pending

    """
    pending = state.pending_surrender
    if pending is None:
        raise NoPendingSurrenderError("no surrender confirmation is pending")

    pair = pending.current
    if accept:
        record = _surrender_record(state, pair, pending.timestamp)
        state = append_records(state, record)
        state = state.model_copy(update={"streaks": zero_pair(state.streaks, pair)})
        logger.debug("surrender accepted", winner_id=pair.winner_id, loser_id=pair.loser_id, count=record.count)
    else:
        logger.debug("surrender declined", winner_id=pair.winner_id, loser_id=pair.loser_id)

    remaining = pending.queue[1:]
    next_pending = pending.model_copy(update={"queue": remaining}) if remaining else None
    return state.model_copy(update={"pending_surrender": next_pending})


def surrender_streak(
    state: MatchState,
    winner_id: int,
    loser_id: int,
    *,
    now: datetime | None = None,
) -> MatchState:
    """
    Let loser_id surrender to winner_id outside of the periodic check.

    Raises:
        EventValidationError: If either id is unknown
        StreakNotFoundError: If the pair has no active streak

    """
    require_idle(state)
    require_players(state, (winner_id, loser_id))
    pair = PairKey(winner_id, loser_id)
    if not get_streak(state.streaks, pair).is_active:
        raise StreakNotFoundError(winner_id, loser_id)
    record = _surrender_record(state, pair, now or datetime.now(UTC))
    state = append_records(state, record)
    return state.model_copy(update={"streaks": zero_pair(state.streaks, pair)})


def surrender_all(state: MatchState, *, now: datetime | None = None) -> MatchState:
    """Surrender every active streak at once, one record per pair sharing one timestamp."""
    require_idle(state)
    timestamp = now or datetime.now(UTC)
    records = tuple(_surrender_record(state, entry.key, timestamp) for entry in active_streaks(state.streaks))
    if records:
        logger.debug("all streaks surrendered", count=len(records))
    return append_records(state, *records).model_copy(update={"streaks": ()})
