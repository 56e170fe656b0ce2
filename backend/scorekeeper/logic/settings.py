"""Scoring rules for a match - everything fixed at setup time."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

NUM_PLAYERS = 4

# A pair's streak raises a surrender confirmation each time its count reaches a multiple of this.
SURRENDER_INTERVAL = 3

# Snapshots kept by the undo ledger before the oldest is evicted.
DEFAULT_UNDO_LIMIT = 50

# Share of the loser's reversed streak paid to the winner as half-carry.
HALF_CARRY_RATIO = Decimal("0.5")

PULL_MULTIPLIERS = frozenset({Decimal("0.5"), Decimal("1.0"), Decimal("1.5")})
BONUS_PENALTY_MULTIPLIERS = frozenset({Decimal("0.5"), Decimal(1), Decimal(2)})

DEFAULT_BASE_SCORE = 5
DEFAULT_PULL_MULTIPLIER = Decimal("0.5")


class MatchConfig(BaseModel):
    """
    Scoring configuration of a single match.

    base_score is the flat amount added to every hand's fan (底).
    pull_multiplier scales the previous streak payout into the pull bonus
    (0.5 half pull, 1.0 full pull, 1.5 one-and-a-half).
    seating lists the player ids in table order; the dealer seat passes to
    the next id in this order.
    """

    model_config = ConfigDict(frozen=True)

    base_score: int = Field(default=DEFAULT_BASE_SCORE, ge=0, strict=True)
    pull_multiplier: Decimal = DEFAULT_PULL_MULTIPLIER
    seating: tuple[int, int, int, int] = (1, 2, 3, 4)

    @field_validator("pull_multiplier")
    @classmethod
    def _validate_pull_multiplier(cls, v: Decimal) -> Decimal:
        if v not in PULL_MULTIPLIERS:
            allowed = ", ".join(str(m) for m in sorted(PULL_MULTIPLIERS))
            raise ValueError(f"pull_multiplier must be one of {allowed}, got {v}")
        return v

    @field_validator("seating")
    @classmethod
    def _validate_seating(cls, v: tuple[int, int, int, int]) -> tuple[int, int, int, int]:
        if len(set(v)) != NUM_PLAYERS:
            raise ValueError(f"seating must list {NUM_PLAYERS} distinct player ids, got {v}")
        return v
