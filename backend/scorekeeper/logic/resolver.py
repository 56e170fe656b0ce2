"""
Event resolution for a match.

Each entry point takes the current MatchState and returns a new one. A
scoring event runs in a fixed order: every matchup is computed against the
pre-event state, then the score deltas are applied, the streak ledger and
the dealer seat are updated, the record is appended (carrying the dealer and
rotation as they were before the event) and finally the touched pairs are
handed to the surrender check. Input is validated up front so a rejected
request never yields a partially updated state.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from scorekeeper.logic import dealer
from scorekeeper.logic.enums import BonusPenaltyKind
from scorekeeper.logic.exceptions import EventValidationError
from scorekeeper.logic.matchup import compute_matchup, validate_fan
from scorekeeper.logic.settings import BONUS_PENALTY_MULTIPLIERS
from scorekeeper.logic.state import (
    BonusPenaltyRecord,
    DiscardWinRecord,
    LoserDetail,
    PairKey,
    SelfDrawRecord,
    StalemateRecord,
    WinnerDetail,
)
from scorekeeper.logic.state_utils import (
    append_records,
    apply_score_deltas,
    get_dealer,
    get_player,
    require_idle,
)
from scorekeeper.logic.streaks import break_all_except, record_win
from scorekeeper.logic.surrender import check_surrenders
from scorekeeper.logic.types import MatchupResult, WinnerFan

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from scorekeeper.logic.state import MatchState

logger = structlog.get_logger()

WinnerInput = WinnerFan | Mapping[str, int] | tuple[int, int]


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(UTC)


def _validate_bonus_multiplier(value: object) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, int | float | Decimal | str):
        raise EventValidationError(f"units_multiplier must be a number, got {value!r}")
    try:
        multiplier = Decimal(str(value))
    except InvalidOperation:
        raise EventValidationError(f"units_multiplier must be a number, got {value!r}") from None
    # signaling NaN cannot be hashed for the membership test
    if not multiplier.is_finite() or multiplier not in BONUS_PENALTY_MULTIPLIERS:
        allowed = ", ".join(str(m) for m in sorted(BONUS_PENALTY_MULTIPLIERS))
        raise EventValidationError(f"units_multiplier must be one of {allowed}, got {value!r}")
    return multiplier


def _coerce_winner(item: WinnerInput) -> WinnerFan:
    if isinstance(item, WinnerFan):
        return item
    try:
        if isinstance(item, Mapping):
            return WinnerFan.model_validate(item, strict=True)
        winner_id, fan = item
        return WinnerFan.model_validate({"winner_id": winner_id, "fan": fan}, strict=True)
    except (ValidationError, TypeError, ValueError) as e:
        raise EventValidationError(f"invalid winner entry {item!r}: {e}") from e


def _validate_discard_win(state: MatchState, discarder_id: int, winners: Iterable[WinnerInput]) -> list[WinnerFan]:
    get_player(state, discarder_id)
    entries = [_coerce_winner(w) for w in winners]
    if not entries:
        raise EventValidationError("discard win requires at least one winner")
    winner_ids = [w.winner_id for w in entries]
    if len(set(winner_ids)) != len(winner_ids):
        raise EventValidationError(f"duplicate winner ids in {winner_ids}")
    if discarder_id in winner_ids:
        raise EventValidationError(f"discarder {discarder_id} cannot also be a winner")
    for entry in entries:
        get_player(state, entry.winner_id)
        validate_fan(entry.fan)
    return entries


def _rotate_or_retain(state: MatchState, *, dealer_won: bool) -> MatchState:
    if dealer_won:
        return dealer.on_dealer_win(state)
    return dealer.on_dealer_loss(state)


def preview_self_draw(state: MatchState, winner_id: int, fan: int) -> tuple[MatchupResult, ...]:
    """Return the matchup against each other player for a prospective self-draw, without committing it."""
    winner = get_player(state, winner_id)
    validate_fan(fan)
    return tuple(
        compute_matchup(winner, loser, fan, state.streaks, state.config)
        for loser in state.players
        if loser.id != winner.id
    )


def preview_discard_win(
    state: MatchState,
    discarder_id: int,
    winners: Sequence[WinnerInput],
) -> tuple[MatchupResult, ...]:
    """Return the matchup of each declared winner against the discarder, without committing it."""
    entries = _validate_discard_win(state, discarder_id, winners)
    discarder = get_player(state, discarder_id)
    return tuple(
        compute_matchup(get_player(state, w.winner_id), discarder, w.fan, state.streaks, state.config) for w in entries
    )


def apply_bonus_penalty(
    state: MatchState,
    actor_id: int,
    kind: BonusPenaltyKind | str,
    units_multiplier: float | Decimal,
    *,
    now: datetime | None = None,
) -> MatchState:
    """
    Settle an in-hand bonus or penalty between the actor and the other three players.

    One unit is base_score x units_multiplier. A bonus pays the actor three
    units, one from each other player; a penalty is the reverse. Streaks and
    the dealer seat are not affected.
    """
    require_idle(state)
    actor = get_player(state, actor_id)
    try:
        bp_kind = BonusPenaltyKind(kind)
    except ValueError:
        raise EventValidationError(f"kind must be 'bonus' or 'penalty', got {kind!r}") from None
    multiplier = _validate_bonus_multiplier(units_multiplier)

    unit = state.config.base_score * multiplier
    total = unit * 3
    sign = 1 if bp_kind == BonusPenaltyKind.BONUS else -1
    deltas = {p.id: (sign * total if p.id == actor.id else -sign * unit) for p in state.players}

    record = BonusPenaltyRecord(
        kind=bp_kind,
        player_id=actor.id,
        units_multiplier=multiplier,
        score=total,
        dealer_id=get_dealer(state).id,
        rotation_count=state.rotation_count,
        timestamp=_now(now),
    )
    state = apply_score_deltas(state, deltas)
    logger.debug("bonus/penalty applied", player_id=actor.id, kind=bp_kind, score=total)
    return append_records(state, record)


def apply_self_draw_win(
    state: MatchState,
    winner_id: int,
    fan: int,
    *,
    now: datetime | None = None,
) -> MatchState:
    """
    Resolve a self-drawn win: every other player pays the winner their own matchup total.

    The dealer keeps the seat when the winner is dealer, otherwise it rotates.
    """
    require_idle(state)
    winner = get_player(state, winner_id)
    validate_fan(fan)
    timestamp = _now(now)

    results = preview_self_draw(state, winner_id, fan)
    total_won = sum((r.total for r in results), Decimal(0))
    deltas = {r.loser_id: -r.total for r in results}
    deltas[winner.id] = total_won

    streaks = state.streaks
    for r in results:
        streaks = record_win(streaks, r.winner_id, r.loser_id, r.streak_contribution)
    streaks = break_all_except(streaks, {winner.id})

    record = SelfDrawRecord(
        winner_id=winner.id,
        fan=fan,
        total_score_change=total_won,
        loser_details=tuple(LoserDetail(loser_id=r.loser_id, score=r.total) for r in results),
        dealer_id=get_dealer(state).id,
        rotation_count=state.rotation_count,
        timestamp=timestamp,
    )

    state = apply_score_deltas(state, deltas)
    state = state.model_copy(update={"streaks": streaks})
    state = _rotate_or_retain(state, dealer_won=winner.is_dealer)
    state = append_records(state, record)
    logger.debug("self-draw resolved", winner_id=winner.id, fan=fan, total=total_won)

    touched = [PairKey(r.winner_id, r.loser_id) for r in results]
    return check_surrenders(state, touched, timestamp)


def apply_discard_win(
    state: MatchState,
    discarder_id: int,
    winners: Sequence[WinnerInput],
    *,
    now: datetime | None = None,
) -> MatchState:
    """
    Resolve a win off a discard, possibly with several simultaneous winners.

    Each winner receives their own matchup against the discarder, who pays
    the sum. The dealer keeps the seat when any winner is dealer.

    Raises:
        EventValidationError: If the winner list is empty, repeats an id,
            includes the discarder, or carries a non-positive fan

    """
    require_idle(state)
    entries = _validate_discard_win(state, discarder_id, winners)
    timestamp = _now(now)

    results = preview_discard_win(state, discarder_id, entries)
    total_lost = sum((r.total for r in results), Decimal(0))
    deltas = {r.winner_id: r.total for r in results}
    deltas[discarder_id] = -total_lost

    winner_ids = tuple(r.winner_id for r in results)
    streaks = state.streaks
    for r in results:
        streaks = record_win(streaks, r.winner_id, r.loser_id, r.streak_contribution)
    streaks = break_all_except(streaks, set(winner_ids))

    dealer_won = any(get_player(state, wid).is_dealer for wid in winner_ids)
    record = DiscardWinRecord(
        loser_id=discarder_id,
        winner_ids=winner_ids,
        winner_details=tuple(WinnerDetail(winner_id=r.winner_id, fan=r.fan, final_score=r.total) for r in results),
        total_score_change=total_lost,
        dealer_id=get_dealer(state).id,
        rotation_count=state.rotation_count,
        timestamp=timestamp,
    )

    state = apply_score_deltas(state, deltas)
    state = state.model_copy(update={"streaks": streaks})
    state = _rotate_or_retain(state, dealer_won=dealer_won)
    state = append_records(state, record)
    logger.debug("discard win resolved", discarder_id=discarder_id, winner_ids=list(winner_ids), total=total_lost)

    touched = [PairKey(r.winner_id, r.loser_id) for r in results]
    return check_surrenders(state, touched, timestamp)


def apply_stalemate(state: MatchState, *, now: datetime | None = None) -> MatchState:
    """
    Resolve a drawn hand (流局): no payments, streaks kept, dealer seat always passes on.
    """
    require_idle(state)
    record = StalemateRecord(
        dealer_id=get_dealer(state).id,
        rotation_count=state.rotation_count,
        timestamp=_now(now),
    )
    state = dealer.on_dealer_loss(state)
    logger.debug("stalemate resolved", rotation=state.rotation_count)
    return append_records(state, record)


def set_dealer_manually(state: MatchState, player_id: int) -> MatchState:
    """Manual dealer override; see dealer.set_dealer."""
    require_idle(state)
    return dealer.set_dealer(state, player_id)


def set_rotation(state: MatchState, wind_index: int, round_index: int) -> MatchState:
    """Manual wind/hand override; see dealer.set_rotation."""
    require_idle(state)
    return dealer.set_rotation(state, wind_index, round_index)


def set_seating(state: MatchState, seating: Sequence[int]) -> MatchState:
    """Manual seat order override; see dealer.set_seating."""
    require_idle(state)
    return dealer.set_seating(state, seating)
