"""
Immutable state update utilities using Pydantic model_copy.

Provides helper functions for common immutable state updates on frozen
Pydantic models. These functions never mutate the input state - they
always return new state objects with the requested changes applied.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from scorekeeper.logic.exceptions import EventValidationError, SurrenderPendingError
from scorekeeper.logic.state import MatchState, Player

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from decimal import Decimal

    from scorekeeper.logic.state import EventRecord

_PLAYER_FIELDS = set(Player.model_fields)


def player_index(state: MatchState, player_id: int) -> int:
    """
    Return the position of player_id in state.players.

    Raises:
        EventValidationError: If no player has that id

    """
    for i, player in enumerate(state.players):
        if player.id == player_id:
            return i
    raise EventValidationError(f"unknown player id {player_id}, expected one of {list(state.player_ids)}")


def get_player(state: MatchState, player_id: int) -> Player:
    """Return the player with player_id or raise EventValidationError."""
    return state.players[player_index(state, player_id)]


def get_dealer(state: MatchState) -> Player:
    """
    Return the current dealer.

    Raises:
        EventValidationError: If no player holds the dealer seat

    """
    for player in state.players:
        if player.is_dealer:
            return player
    raise EventValidationError("match has no dealer")


def require_players(state: MatchState, player_ids: Iterable[int]) -> None:
    """Raise EventValidationError unless every id belongs to the match."""
    for player_id in player_ids:
        player_index(state, player_id)


def require_idle(state: MatchState) -> None:
    """Reject a new operation while a surrender confirmation is pending."""
    if state.pending_surrender is not None:
        winner_id, loser_id = state.pending_surrender.current
        raise SurrenderPendingError(
            f"surrender of pair ({winner_id}, {loser_id}) must be answered first",
        )


def update_player(
    state: MatchState,
    player_id: int,
    **updates: object,
) -> MatchState:
    """
    Return new match state with updated player.

    Args:
        state: Current match state
        player_id: Id of the player to update
        **updates: Fields to update on the player

    Returns:
        New MatchState with updated player

    Raises:
        EventValidationError: If player_id is unknown
        ValueError: If update fields are invalid

    """
    index = player_index(state, player_id)
    invalid_fields = set(updates) - _PLAYER_FIELDS
    if invalid_fields:
        raise ValueError(f"Invalid player fields: {invalid_fields}")
    players = list(state.players)
    players[index] = state.players[index].model_copy(update=updates)
    return state.model_copy(update={"players": tuple(players)})


def apply_score_deltas(
    state: MatchState,
    deltas: Mapping[int, Decimal],
) -> MatchState:
    """
    Return new match state with each player's score shifted by deltas[player.id].

    Players missing from deltas keep their score.
    """
    players = tuple(
        p.model_copy(update={"score": p.score + deltas[p.id]}) if p.id in deltas else p for p in state.players
    )
    return state.model_copy(update={"players": players})


def append_records(
    state: MatchState,
    *records: EventRecord,
) -> MatchState:
    """Return new match state with records appended to the history."""
    return state.model_copy(update={"history": (*state.history, *records)})
