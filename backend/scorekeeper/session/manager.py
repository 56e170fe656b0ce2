from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from scorekeeper.logic import codec, resolver, surrender
from scorekeeper.logic.exceptions import MatchNotFoundError, MatchRuleError
from scorekeeper.logic.match import create_match
from scorekeeper.logic.undo import UndoLedger
from scorekeeper.session.settings import ScorekeeperSettings
from shared.logging import setup_logging
from shared.storage import LocalMatchStorage

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from decimal import Decimal

    from scorekeeper.logic.enums import BonusPenaltyKind
    from scorekeeper.logic.resolver import WinnerInput
    from scorekeeper.logic.settings import MatchConfig
    from scorekeeper.logic.state import MatchState, PendingSurrender
    from scorekeeper.logic.types import MatchupResult, PlayerSetup
    from shared.storage import MatchStorage

logger = structlog.get_logger()


def _undo_key(match_id: str) -> str:
    return f"{match_id}.undo"


class MatchManager:
    """
    Service boundary over the pure match engine.

    Holds every open match and its undo ledger, keeps the pre-operation state
    of each successful mutating operation on that ledger, and persists a match
    together with its ledger whenever it is left with no surrender
    confirmation pending. Rule violations are logged and re-raised unchanged;
    the stored state is only replaced on success.
    """

    def __init__(
        self,
        settings: ScorekeeperSettings | None = None,
        storage: MatchStorage | None = None,
    ) -> None:
        self._settings = settings or ScorekeeperSettings()
        if storage is None and self._settings.storage_dir is not None:
            storage = LocalMatchStorage(self._settings.storage_dir)
        self._storage = storage
        self._matches: dict[str, MatchState] = {}  # match_id -> current state
        self._undo: dict[str, UndoLedger] = {}  # match_id -> undo ledger

    @property
    def match_count(self) -> int:
        return len(self._matches)

    def get_match(self, match_id: str) -> MatchState:
        state = self._matches.get(match_id)
        if state is None:
            raise MatchNotFoundError(match_id)
        return state

    def undo_depth(self, match_id: str) -> int:
        self.get_match(match_id)
        return len(self._undo[match_id])

    def pending_surrender(self, match_id: str) -> PendingSurrender | None:
        return self.get_match(match_id).pending_surrender

    def _register(self, state: MatchState, snapshots: tuple[MatchState, ...] = ()) -> MatchState:
        limit = self._settings.undo_limit
        self._matches[state.match_id] = state
        self._undo[state.match_id] = UndoLedger(snapshots=snapshots[-limit:], limit=limit)
        self._persist(state)
        return state

    def _persist(self, state: MatchState) -> None:
        """Save the match and its undo snapshots; skipped while a surrender answer is pending."""
        if self._storage is None or state.pending_surrender is not None:
            return
        self._storage.save_match(state.match_id, codec.export_match(state))
        snapshots = self._undo[state.match_id].snapshots
        self._storage.save_match(_undo_key(state.match_id), codec.export_snapshots(snapshots))

    def _apply(
        self,
        match_id: str,
        operation: str,
        transition: Callable[[MatchState], MatchState],
        *,
        snapshot: bool = True,
    ) -> MatchState:
        """Run a transition, keeping the previous state on the undo ledger."""
        state = self.get_match(match_id)
        with structlog.contextvars.bound_contextvars(match_id=match_id, operation=operation):
            try:
                new_state = transition(state)
            except MatchRuleError as e:
                logger.warning("operation rejected", error=str(e), error_type=type(e).__name__)
                raise
            if snapshot:
                self._undo[match_id] = self._undo[match_id].push(state)
            self._matches[match_id] = new_state
            self._persist(new_state)
            if new_state.pending_surrender is not None:
                logger.info("awaiting surrender confirmation", pairs=list(new_state.pending_surrender.queue))
            else:
                logger.info("operation applied", history_length=len(new_state.history))
        return new_state

    def create_match(
        self,
        players: Sequence[PlayerSetup | str],
        dealer_id: int,
        config: MatchConfig | None = None,
        **kwargs: Any,  # noqa: ANN401
    ) -> MatchState:
        """Create and register a match; rules default to the configured base score and pull multiplier."""
        kwargs.setdefault("base_score", self._settings.default_base_score)
        kwargs.setdefault("pull_multiplier", self._settings.default_pull_multiplier)
        state = create_match(players, dealer_id, config, **kwargs)
        logger.info("match created", match_id=state.match_id, players=[p.name for p in state.players])
        return self._register(state)

    def delete_match(self, match_id: str) -> None:
        self.get_match(match_id)
        del self._matches[match_id]
        del self._undo[match_id]
        if self._storage is not None:
            self._storage.delete_match(match_id)
            self._storage.delete_match(_undo_key(match_id))
        logger.info("match deleted", match_id=match_id)

    def apply_bonus_penalty(
        self,
        match_id: str,
        actor_id: int,
        kind: BonusPenaltyKind | str,
        units_multiplier: float | Decimal,
    ) -> MatchState:
        return self._apply(
            match_id,
            "bonus_penalty",
            lambda s: resolver.apply_bonus_penalty(s, actor_id, kind, units_multiplier),
        )

    def apply_self_draw_win(self, match_id: str, winner_id: int, fan: int) -> MatchState:
        return self._apply(match_id, "self_draw", lambda s: resolver.apply_self_draw_win(s, winner_id, fan))

    def apply_discard_win(self, match_id: str, discarder_id: int, winners: Sequence[WinnerInput]) -> MatchState:
        return self._apply(match_id, "discard_win", lambda s: resolver.apply_discard_win(s, discarder_id, winners))

    def apply_stalemate(self, match_id: str) -> MatchState:
        return self._apply(match_id, "stalemate", resolver.apply_stalemate)

    def set_dealer_manually(self, match_id: str, player_id: int) -> MatchState:
        return self._apply(match_id, "set_dealer", lambda s: resolver.set_dealer_manually(s, player_id))

    def set_rotation(self, match_id: str, wind_index: int, round_index: int) -> MatchState:
        return self._apply(match_id, "set_rotation", lambda s: resolver.set_rotation(s, wind_index, round_index))

    def set_seating(self, match_id: str, seating: Sequence[int]) -> MatchState:
        return self._apply(match_id, "set_seating", lambda s: resolver.set_seating(s, seating))

    def resolve_surrender(self, match_id: str, *, accept: bool) -> MatchState:
        """Answer the pending confirmation; part of the event that raised it, so no new snapshot."""
        return self._apply(
            match_id,
            "resolve_surrender",
            lambda s: surrender.resolve_surrender(s, accept=accept),
            snapshot=False,
        )

    def surrender_streak(self, match_id: str, winner_id: int, loser_id: int) -> MatchState:
        return self._apply(match_id, "surrender", lambda s: surrender.surrender_streak(s, winner_id, loser_id))

    def surrender_all(self, match_id: str) -> MatchState:
        return self._apply(match_id, "surrender_all", surrender.surrender_all)

    def preview_self_draw(self, match_id: str, winner_id: int, fan: int) -> tuple[MatchupResult, ...]:
        return resolver.preview_self_draw(self.get_match(match_id), winner_id, fan)

    def preview_discard_win(
        self,
        match_id: str,
        discarder_id: int,
        winners: Sequence[WinnerInput],
    ) -> tuple[MatchupResult, ...]:
        return resolver.preview_discard_win(self.get_match(match_id), discarder_id, winners)

    def rollback(self, match_id: str) -> MatchState:
        """
        Restore the state from before the most recent mutating operation.

        Raises:
            MatchNotFoundError: If the match does not exist
            EmptyHistoryError: If there is nothing to undo

        """
        self.get_match(match_id)
        with structlog.contextvars.bound_contextvars(match_id=match_id, operation="rollback"):
            try:
                previous, ledger = self._undo[match_id].pop()
            except MatchRuleError as e:
                logger.warning("operation rejected", error=str(e), error_type=type(e).__name__)
                raise
            self._undo[match_id] = ledger
            self._matches[match_id] = previous
            self._persist(previous)
            logger.info("rolled back", undo_depth=len(ledger))
        return previous

    def export_match(self, match_id: str) -> str:
        return codec.export_match(self.get_match(match_id))

    def import_match(self, payload: str | bytes) -> MatchState:
        """Register an exported match as a new match with a fresh id and an empty undo ledger."""
        state = codec.import_match(payload)
        logger.info("match imported", match_id=state.match_id)
        return self._register(state)

    def load_match(self, match_id: str) -> MatchState:
        """
        Open a match previously persisted by this manager's storage, keeping its id and undo snapshots.

        Raises:
            MatchNotFoundError: If no storage is configured or nothing is stored under match_id
            MatchImportError: If the stored match or its undo snapshots are not valid

        """
        payload = self._storage.load_match(match_id) if self._storage is not None else None
        if payload is None:
            raise MatchNotFoundError(match_id)
        state = codec.import_match(payload, match_id=match_id)
        undo_payload = self._storage.load_match(_undo_key(match_id))
        snapshots = codec.import_snapshots(undo_payload) if undo_payload is not None else ()
        logger.info("match loaded", match_id=match_id, undo_depth=len(snapshots))
        return self._register(state, snapshots)


def get_manager() -> MatchManager:
    """Manager factory for production use: settings from the environment, logging configured."""
    settings = ScorekeeperSettings()
    setup_logging(log_dir=settings.log_dir)
    manager = MatchManager(settings)
    logger.info("scorekeeper ready", storage_dir=settings.storage_dir, undo_limit=settings.undo_limit)
    return manager
