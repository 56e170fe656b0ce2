"""
JSON export and import of a full match.

Import treats the payload as a copy of the exported match and issues it a
fresh match_id so it never collides with the original; everything else,
history and streaks included, comes back unchanged. Undo snapshots are
serialized separately as a JSON list of exported states.
"""

from __future__ import annotations

from pydantic import TypeAdapter, ValidationError

from scorekeeper.logic.exceptions import MatchImportError
from scorekeeper.logic.match import new_match_id
from scorekeeper.logic.settings import NUM_PLAYERS
from scorekeeper.logic.state import MatchState
from scorekeeper.logic.streaks import get_streak

_SNAPSHOTS = TypeAdapter(tuple[MatchState, ...])


def export_match(state: MatchState) -> str:
    """Serialize the match to indented JSON."""
    return state.model_dump_json(indent=2)


def _check_streaks(state: MatchState) -> None:
    ids = set(state.player_ids)
    seen = set()
    for entry in state.streaks:
        if entry.winner_id not in ids or entry.loser_id not in ids or entry.winner_id == entry.loser_id:
            raise MatchImportError(f"streak pair {tuple(entry.key)} does not name two different players")
        if entry.key in seen:
            raise MatchImportError(f"duplicate streak pair {tuple(entry.key)}")
        seen.add(entry.key)
        # the ledger only stores active entries, and an active streak always carries a positive amount
        if entry.count == 0 or entry.total_amount == 0:
            raise MatchImportError(
                f"streak pair {tuple(entry.key)} has count {entry.count} and total {entry.total_amount}",
            )

    pending = state.pending_surrender
    if pending is not None:
        if not pending.queue:
            raise MatchImportError("pending surrender has an empty queue")
        for pair in pending.queue:
            if not get_streak(state.streaks, pair).is_active:
                raise MatchImportError(f"pending surrender pair {tuple(pair)} has no active streak")


def _check_integrity(state: MatchState) -> None:
    ids = state.player_ids
    if len(ids) != NUM_PLAYERS or len(set(ids)) != NUM_PLAYERS:
        raise MatchImportError(f"match must have {NUM_PLAYERS} players with distinct ids, got {list(ids)}")
    if sorted(state.config.seating) != sorted(ids):
        raise MatchImportError(f"seating {list(state.config.seating)} does not match player ids {list(ids)}")
    dealers = [p.id for p in state.players if p.is_dealer]
    if len(dealers) != 1:
        raise MatchImportError(f"match must have exactly one dealer, got {dealers}")
    _check_streaks(state)


def _parse(payload: str | bytes) -> MatchState:
    try:
        state = MatchState.model_validate_json(payload)
    except ValidationError as e:
        raise MatchImportError(f"invalid match payload: {e.error_count()} validation error(s)") from e
    _check_integrity(state)
    return state.model_copy(update={"streaks": tuple(sorted(state.streaks, key=lambda e: e.key))})


def import_match(payload: str | bytes, *, match_id: str | None = None) -> MatchState:
    """
    Parse an exported match and re-issue its id.

    Raises:
        MatchImportError: If the payload is not a valid exported match

    """
    state = _parse(payload)
    return state.model_copy(update={"match_id": match_id or new_match_id()})


def export_snapshots(snapshots: tuple[MatchState, ...]) -> str:
    """Serialize undo snapshots, oldest first."""
    return _SNAPSHOTS.dump_json(snapshots, indent=2).decode()


def import_snapshots(payload: str | bytes) -> tuple[MatchState, ...]:
    """
    Parse serialized undo snapshots, keeping each snapshot's match_id.

    Raises:
        MatchImportError: If the payload is not a list of valid exported matches

    """
    try:
        snapshots = _SNAPSHOTS.validate_json(payload)
    except ValidationError as e:
        raise MatchImportError(f"invalid undo payload: {e.error_count()} validation error(s)") from e
    for state in snapshots:
        _check_integrity(state)
    return snapshots
