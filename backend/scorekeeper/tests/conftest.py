from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from scorekeeper.logic.settings import MatchConfig
from scorekeeper.logic.state import MatchState, Player, StreakEntry
from scorekeeper.session.manager import MatchManager
from scorekeeper.session.settings import ScorekeeperSettings

if TYPE_CHECKING:
    from collections.abc import Sequence

FIXED_TIME = datetime(2025, 3, 15, 10, 30, 45, tzinfo=UTC)
PLAYER_NAMES = ("Alice", "Bob", "Carol", "Dave")


# ============================================================================
# Test State Builder Helpers
# ============================================================================


def create_player(
    player_id: int = 1,
    name: str | None = None,
    *,
    icon: str = "🐶",
    score: Decimal | int | str = 0,
    is_dealer: bool = False,
    dealer_retention_count: int = 0,
) -> Player:
    """Create a Player with sensible defaults for testing."""
    return Player(
        id=player_id,
        name=name if name is not None else f"Player{player_id}",
        icon=icon,
        score=Decimal(score),
        is_dealer=is_dealer,
        dealer_retention_count=dealer_retention_count,
    )


def create_streak(
    winner_id: int,
    loser_id: int,
    count: int = 1,
    total_amount: Decimal | int | str = 0,
    last_score_change: Decimal | int | str | None = None,
) -> StreakEntry:
    """Create a StreakEntry; last_score_change defaults to total_amount."""
    return StreakEntry(
        winner_id=winner_id,
        loser_id=loser_id,
        count=count,
        total_amount=Decimal(total_amount),
        last_score_change=Decimal(total_amount if last_score_change is None else last_score_change),
    )


def create_match_state(
    *,
    dealer_id: int = 1,
    dealer_retention_count: int = 0,
    base_score: int = 5,
    pull_multiplier: str = "0.5",
    seating: tuple[int, int, int, int] = (1, 2, 3, 4),
    streaks: Sequence[StreakEntry] = (),
    rotation_count: int = 0,
    scores: dict[int, Decimal | int | str] | None = None,
) -> MatchState:
    """Create a MatchState with players 1-4 (Alice, Bob, Carol, Dave) for testing."""
    scores = scores or {}
    players = tuple(
        create_player(
            player_id=i,
            name=PLAYER_NAMES[i - 1],
            icon=f"icon{i}",
            score=scores.get(i, 0),
            is_dealer=i == dealer_id,
            dealer_retention_count=dealer_retention_count if i == dealer_id else 0,
        )
        for i in range(1, 5)
    )
    return MatchState(
        match_id="match-1",
        created_at=FIXED_TIME,
        players=players,
        config=MatchConfig(base_score=base_score, pull_multiplier=Decimal(pull_multiplier), seating=seating),
        streaks=tuple(sorted(streaks, key=lambda e: e.key)),
        rotation_count=rotation_count,
    )


def player(state: MatchState, player_id: int) -> Player:
    return next(p for p in state.players if p.id == player_id)


def scores_of(state: MatchState) -> dict[int, Decimal]:
    return {p.id: p.score for p in state.players}


@pytest.fixture
def state():
    return create_match_state()


@pytest.fixture
def manager():
    return MatchManager(ScorekeeperSettings())
