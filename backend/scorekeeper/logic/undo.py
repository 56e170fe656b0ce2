"""Bounded undo ledger of match snapshots."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from scorekeeper.logic.exceptions import EmptyHistoryError
from scorekeeper.logic.settings import DEFAULT_UNDO_LIMIT
from scorekeeper.logic.state import MatchState


class UndoLedger(BaseModel):
    """
    Stack of pre-operation match states, newest last.

    Snapshots are the frozen state values themselves, so pushing is a
    reference append and restoring is a full replace. Holds at most limit
    entries; pushing beyond that evicts the oldest.
    """

    model_config = ConfigDict(frozen=True)

    snapshots: tuple[MatchState, ...] = ()
    limit: int = Field(default=DEFAULT_UNDO_LIMIT, ge=1)

    def __len__(self) -> int:
        return len(self.snapshots)

    def push(self, state: MatchState) -> UndoLedger:
        """Return a ledger with state on top, oldest entries evicted past limit."""
        snapshots = (*self.snapshots, state)[-self.limit :]
        return self.model_copy(update={"snapshots": snapshots})

    def pop(self) -> tuple[MatchState, UndoLedger]:
        """
        Return the most recent snapshot and the ledger without it.

        Raises:
            EmptyHistoryError: If there is nothing to undo

        """
        if not self.snapshots:
            raise EmptyHistoryError("nothing to roll back")
        return self.snapshots[-1], self.model_copy(update={"snapshots": self.snapshots[:-1]})
