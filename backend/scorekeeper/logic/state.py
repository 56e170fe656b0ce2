"""
Match state models.

All models are frozen; every transition returns a new MatchState built with
model_copy(update=...), so an old state value doubles as an undo snapshot.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, Field

from scorekeeper.logic.enums import BonusPenaltyKind, EventKind
from scorekeeper.logic.settings import MatchConfig

ZERO = Decimal(0)


class MatchPhase(Enum):
    """Whether the match accepts new events or waits on a surrender answer."""

    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


class PairKey(NamedTuple):
    """Ordered (winner, loser) pair; (a, b) and (b, a) are distinct streaks."""

    winner_id: int
    loser_id: int

    def reversed(self) -> PairKey:
        return PairKey(self.loser_id, self.winner_id)


class Player(BaseModel):
    """
    A seated player and their running score.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    icon: str
    score: Decimal = ZERO
    is_dealer: bool = False
    dealer_retention_count: int = Field(default=0, ge=0)  # 連莊


class StreakEntry(BaseModel):
    """
    Consecutive wins of winner_id over loser_id.

    total_amount accumulates the streak contributions (half-carry excluded);
    last_score_change is the most recent contribution, the basis of the next
    pull bonus.
    """

    model_config = ConfigDict(frozen=True)

    winner_id: int
    loser_id: int
    count: int = Field(default=0, ge=0)
    total_amount: Decimal = ZERO
    last_score_change: Decimal = ZERO

    @property
    def key(self) -> PairKey:
        return PairKey(self.winner_id, self.loser_id)

    @property
    def is_active(self) -> bool:
        return self.count > 0


class LoserDetail(BaseModel):
    """Amount one loser paid in a self-draw win."""

    model_config = ConfigDict(frozen=True)

    loser_id: int
    score: Decimal


class WinnerDetail(BaseModel):
    """Fan and payout of one winner in a discard win."""

    model_config = ConfigDict(frozen=True)

    winner_id: int
    fan: int
    final_score: Decimal


class _RecordBase(BaseModel):
    """Fields shared by every history record.

    dealer_id and rotation_count are snapshots taken before the event's own
    dealer change. timestamp only groups records produced by one operation.
    """

    model_config = ConfigDict(frozen=True)

    dealer_id: int
    rotation_count: int
    timestamp: datetime


class BonusPenaltyRecord(_RecordBase):
    type: Literal["bonus_penalty"] = EventKind.BONUS_PENALTY.value
    kind: BonusPenaltyKind
    player_id: int
    units_multiplier: Decimal
    score: Decimal  # total exchanged, 3 units


class SelfDrawRecord(_RecordBase):
    type: Literal["self_draw"] = EventKind.SELF_DRAW.value
    winner_id: int
    fan: int
    total_score_change: Decimal
    loser_details: tuple[LoserDetail, ...]


class DiscardWinRecord(_RecordBase):
    type: Literal["discard_win"] = EventKind.DISCARD_WIN.value
    loser_id: int
    winner_ids: tuple[int, ...]
    winner_details: tuple[WinnerDetail, ...]
    total_score_change: Decimal


class StalemateRecord(_RecordBase):
    type: Literal["stalemate"] = EventKind.STALEMATE.value


class SurrenderRecord(_RecordBase):
    type: Literal["surrender"] = EventKind.SURRENDER.value
    winner_id: int
    loser_id: int
    count: int
    total_amount: Decimal


EventRecord = Annotated[
    BonusPenaltyRecord | SelfDrawRecord | DiscardWinRecord | StalemateRecord | SurrenderRecord,
    Field(discriminator="type"),
]


class PendingSurrender(BaseModel):
    """
    Surrender confirmations still waiting for an answer, answered head first.
    """

    model_config = ConfigDict(frozen=True)

    queue: tuple[PairKey, ...]
    timestamp: datetime  # of the event that raised them

    @property
    def current(self) -> PairKey:
        return self.queue[0]


class MatchState(BaseModel):
    """
    Full state of one match.

    streaks holds only active entries, sorted by pair key; a missing pair
    reads as a zero entry.
    """

    model_config = ConfigDict(frozen=True)

    match_id: str
    created_at: datetime
    players: tuple[Player, ...]
    config: MatchConfig
    history: tuple[EventRecord, ...] = ()
    rotation_count: int = Field(default=0, ge=0)
    streaks: tuple[StreakEntry, ...] = ()
    pending_surrender: PendingSurrender | None = None

    @property
    def phase(self) -> MatchPhase:
        if self.pending_surrender is None:
            return MatchPhase.IDLE
        return MatchPhase.AWAITING_CONFIRMATION

    @property
    def player_ids(self) -> tuple[int, ...]:
        return tuple(p.id for p in self.players)
