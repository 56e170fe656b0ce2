"""
Match creation.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import ValidationError

from scorekeeper.logic.exceptions import EventValidationError
from scorekeeper.logic.settings import DEFAULT_BASE_SCORE, DEFAULT_PULL_MULTIPLIER, NUM_PLAYERS, MatchConfig
from scorekeeper.logic.state import MatchState, Player
from scorekeeper.logic.types import PlayerSetup

if TYPE_CHECKING:
    from collections.abc import Sequence
    from decimal import Decimal

ICONS = ("🐶", "🐱", "🐭", "🐹", "🐰", "🦊", "🐻", "🐼", "🐨", "🐯", "🦁", "🐮", "🐷", "🐸", "🐵")


def new_match_id() -> str:
    return uuid.uuid4().hex


def _assign_icons(setups: Sequence[PlayerSetup]) -> list[str]:
    """Keep explicit icons and fill the rest from ICONS in order, skipping ones already taken."""
    taken = {s.icon for s in setups if s.icon}
    pool = (icon for icon in ICONS if icon not in taken)
    return [s.icon if s.icon else next(pool) for s in setups]


def create_match(
    players: Sequence[PlayerSetup | str],
    dealer_id: int,
    config: MatchConfig | None = None,
    *,
    base_score: int = DEFAULT_BASE_SCORE,
    pull_multiplier: Decimal = DEFAULT_PULL_MULTIPLIER,
    player_ids: Sequence[int] | None = None,
    match_id: str | None = None,
    now: datetime | None = None,
) -> MatchState:
    """
    Create a new match with four players, all starting at score 0.

    Player ids default to 1-4 in the given order. Without an explicit config
    the rules come from base_score and pull_multiplier and the seating
    follows the player order. Names are stripped and must be non-empty and
    unique.

    Raises:
        EventValidationError: If the setup is not a valid four-player table

    """
    setups = [PlayerSetup(name=p) if isinstance(p, str) else p for p in players]
    if len(setups) != NUM_PLAYERS:
        raise EventValidationError(f"a match needs exactly {NUM_PLAYERS} players, got {len(setups)}")

    names = [s.name.strip() for s in setups]
    if not all(names):
        raise EventValidationError("player names must not be empty")
    if len(set(names)) != NUM_PLAYERS:
        raise EventValidationError(f"player names must be unique, got {names}")

    icons = [s.icon for s in setups if s.icon]
    if len(set(icons)) != len(icons):
        raise EventValidationError(f"player icons must be unique, got {icons}")

    ids = tuple(player_ids) if player_ids is not None else tuple(range(1, NUM_PLAYERS + 1))
    if len(ids) != NUM_PLAYERS or len(set(ids)) != NUM_PLAYERS:
        raise EventValidationError(f"player ids must be {NUM_PLAYERS} distinct integers, got {list(ids)}")
    if dealer_id not in ids:
        raise EventValidationError(f"dealer {dealer_id} is not one of the players {list(ids)}")

    if config is None:
        try:
            config = MatchConfig(base_score=base_score, pull_multiplier=pull_multiplier, seating=ids)
        except ValidationError as e:
            raise EventValidationError(str(e)) from e
    elif sorted(config.seating) != sorted(ids):
        raise EventValidationError(f"seating {list(config.seating)} does not match player ids {list(ids)}")

    return MatchState(
        match_id=match_id or new_match_id(),
        created_at=now or datetime.now(UTC),
        players=tuple(
            Player(id=pid, name=name, icon=icon, is_dealer=pid == dealer_id)
            for pid, name, icon in zip(ids, names, _assign_icons(setups), strict=True)
        ),
        config=config,
    )
