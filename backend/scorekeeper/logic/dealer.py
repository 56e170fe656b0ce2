"""
Dealer rotation and wind/round position.

rotation_count is the single source for the table position: it grows by one
every time the dealer seat passes on, and the prevailing wind, the hand
within that wind and the completed wind cycles are all derived from it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from scorekeeper.logic.enums import WindName
from scorekeeper.logic.exceptions import EventValidationError
from scorekeeper.logic.settings import NUM_PLAYERS, MatchConfig
from scorekeeper.logic.state_utils import get_dealer, player_index, update_player

if TYPE_CHECKING:
    from collections.abc import Sequence

    from scorekeeper.logic.state import MatchState

logger = structlog.get_logger()

WINDS = (WindName.EAST, WindName.SOUTH, WindName.WEST, WindName.NORTH)
HANDS_PER_WIND = 4
HANDS_PER_CYCLE = HANDS_PER_WIND * len(WINDS)


def prevailing_wind(rotation_count: int) -> WindName:
    """Return the prevailing wind (圈風) for a rotation count."""
    return WINDS[(rotation_count // HANDS_PER_WIND) % len(WINDS)]


def hand_number(rotation_count: int) -> int:
    """Return the 0-based hand within the prevailing wind."""
    return rotation_count % HANDS_PER_WIND


def wind_cycle(rotation_count: int) -> int:
    """Return how many full east-to-north cycles have been completed."""
    return rotation_count // HANDS_PER_CYCLE


def on_dealer_win(state: MatchState) -> MatchState:
    """Dealer keeps the seat: bump their retention count, rotation unchanged."""
    dealer = get_dealer(state)
    logger.debug("dealer retained", dealer_id=dealer.id, retention=dealer.dealer_retention_count + 1)
    return update_player(state, dealer.id, dealer_retention_count=dealer.dealer_retention_count + 1)


def next_dealer_id(state: MatchState) -> int:
    """Return the id seated after the current dealer."""
    seating = state.config.seating
    index = seating.index(get_dealer(state).id)
    return seating[(index + 1) % len(seating)]


def on_dealer_loss(state: MatchState) -> MatchState:
    """
    Pass the dealer seat to the next player in seating order.

    The outgoing dealer's retention count resets to 0 and rotation_count
    advances by exactly one.
    """
    dealer = get_dealer(state)
    successor_id = next_dealer_id(state)
    state = update_player(state, dealer.id, is_dealer=False, dealer_retention_count=0)
    state = update_player(state, successor_id, is_dealer=True)
    logger.debug("dealer rotated", from_id=dealer.id, to_id=successor_id, rotation=state.rotation_count + 1)
    return state.model_copy(update={"rotation_count": state.rotation_count + 1})


def set_dealer(state: MatchState, player_id: int) -> MatchState:
    """
    Hand the dealer seat to player_id without a win or loss.

    Every player's retention count resets to 0; rotation_count is untouched.
    """
    player_index(state, player_id)
    players = tuple(
        p.model_copy(update={"is_dealer": p.id == player_id, "dealer_retention_count": 0}) for p in state.players
    )
    return state.model_copy(update={"players": players})


def _validate_index(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < len(WINDS):
        raise EventValidationError(f"{name} must be an integer in 0..{len(WINDS) - 1}, got {value!r}")
    return value


def set_rotation(state: MatchState, wind_index: int, round_index: int) -> MatchState:
    """
    Overwrite rotation_count from a wind and a hand index.

    This places the match back in the first cycle and may move it backwards
    relative to the rotations actually played; it is an explicit override.
    """
    wind = _validate_index("wind_index", wind_index)
    hand = _validate_index("round_index", round_index)
    return state.model_copy(update={"rotation_count": wind * HANDS_PER_WIND + hand})


def set_seating(state: MatchState, seating: Sequence[int]) -> MatchState:
    """Replace the table order; it must be a permutation of the match's player ids."""
    new_seating = tuple(seating)
    if any(isinstance(pid, bool) or not isinstance(pid, int) for pid in new_seating):
        raise EventValidationError(f"seating must list integer player ids, got {list(new_seating)!r}")
    if len(new_seating) != NUM_PLAYERS or sorted(new_seating) != sorted(state.player_ids):
        raise EventValidationError(
            f"seating must be a permutation of {sorted(state.player_ids)}, got {list(new_seating)}",
        )
    try:
        config = MatchConfig.model_validate({**state.config.model_dump(), "seating": new_seating}, strict=True)
    except ValidationError as e:
        raise EventValidationError(str(e)) from e
    return state.model_copy(update={"config": config})
