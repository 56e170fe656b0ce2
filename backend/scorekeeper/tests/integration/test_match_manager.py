"""
MatchManager over whole matches: undo snapshots around every operation,
surrender confirmation flow, persistence through LocalMatchStorage, and
rejection logging.
"""

import logging
from decimal import Decimal
from unittest.mock import patch

import pytest

from scorekeeper.logic.enums import BonusPenaltyKind, EventKind
from scorekeeper.logic.exceptions import (
    EmptyHistoryError,
    EventValidationError,
    MatchImportError,
    MatchNotFoundError,
    SurrenderPendingError,
)
from scorekeeper.logic.state import PairKey
from scorekeeper.logic.state_utils import get_dealer
from scorekeeper.logic.types import PlayerSetup
from scorekeeper.session.manager import MatchManager, get_manager
from scorekeeper.session.settings import ScorekeeperSettings
from scorekeeper.tests.conftest import PLAYER_NAMES
from shared.storage import LocalMatchStorage


def _new_match(manager, dealer_id=1):
    return manager.create_match(PLAYER_NAMES, dealer_id=dealer_id).match_id


class TestCreateAndLookup:
    def test_create_registers_match(self, manager):
        match_id = _new_match(manager)
        assert manager.match_count == 1
        assert manager.get_match(match_id).player_ids == (1, 2, 3, 4)
        assert manager.undo_depth(match_id) == 0

    def test_settings_supply_default_rules(self):
        manager = MatchManager(ScorekeeperSettings(default_base_score=2, default_pull_multiplier=Decimal("1.0")))
        state = manager.create_match([PlayerSetup(name=n) for n in PLAYER_NAMES], dealer_id=1)
        assert state.config.base_score == 2
        assert state.config.pull_multiplier == Decimal("1.0")

    def test_unknown_match(self, manager):
        with pytest.raises(MatchNotFoundError):
            manager.get_match("missing")
        with pytest.raises(MatchNotFoundError):
            manager.apply_stalemate("missing")
        with pytest.raises(MatchNotFoundError):
            manager.rollback("missing")

    def test_delete_match(self, manager):
        match_id = _new_match(manager)
        manager.delete_match(match_id)
        assert manager.match_count == 0
        with pytest.raises(MatchNotFoundError):
            manager.get_match(match_id)


class TestRollback:
    @pytest.mark.parametrize(
        "operation",
        [
            lambda m, mid: m.apply_bonus_penalty(mid, 2, BonusPenaltyKind.BONUS, 1),
            lambda m, mid: m.apply_self_draw_win(mid, 1, 3),
            lambda m, mid: m.apply_discard_win(mid, 3, [(2, 4)]),
            lambda m, mid: m.apply_discard_win(mid, 1, [(2, 1), (4, 2)]),
            lambda m, mid: m.apply_stalemate(mid),
            lambda m, mid: m.set_dealer_manually(mid, 3),
            lambda m, mid: m.set_rotation(mid, 2, 1),
            lambda m, mid: m.set_seating(mid, [4, 3, 2, 1]),
            lambda m, mid: m.surrender_all(mid),
        ],
    )
    def test_rollback_restores_previous_state(self, manager, operation):
        match_id = _new_match(manager)
        manager.apply_self_draw_win(match_id, 2, 1)
        before = manager.get_match(match_id)

        operation(manager, match_id)
        restored = manager.rollback(match_id)

        assert restored == before
        assert manager.get_match(match_id) == before

    def test_rollback_unwinds_in_order(self, manager):
        match_id = _new_match(manager)
        initial = manager.get_match(match_id)
        manager.apply_self_draw_win(match_id, 1, 3)
        manager.apply_stalemate(match_id)

        manager.rollback(match_id)
        assert len(manager.get_match(match_id).history) == 1
        manager.rollback(match_id)
        assert manager.get_match(match_id) == initial

        with pytest.raises(EmptyHistoryError):
            manager.rollback(match_id)

    def test_rejected_operation_leaves_state_and_undo_untouched(self, manager):
        match_id = _new_match(manager)
        before = manager.get_match(match_id)

        with pytest.raises(EventValidationError):
            manager.apply_discard_win(match_id, 1, [(1, 3)])

        assert manager.get_match(match_id) == before
        assert manager.undo_depth(match_id) == 0

    def test_undo_limit_from_settings(self):
        manager = MatchManager(ScorekeeperSettings(undo_limit=2))
        match_id = _new_match(manager)
        for _ in range(4):
            manager.apply_stalemate(match_id)

        assert manager.undo_depth(match_id) == 2
        manager.rollback(match_id)
        manager.rollback(match_id)
        assert manager.get_match(match_id).rotation_count == 2
        with pytest.raises(EmptyHistoryError):
            manager.rollback(match_id)


class TestSurrenderFlow:
    def _reach_third_win(self, manager):
        match_id = _new_match(manager, dealer_id=3)
        for _ in range(3):
            manager.apply_discard_win(match_id, 2, [(1, 1)])
        return match_id

    def test_confirmation_then_accept(self, manager):
        match_id = self._reach_third_win(manager)
        assert manager.pending_surrender(match_id).current == PairKey(1, 2)

        with pytest.raises(SurrenderPendingError):
            manager.apply_stalemate(match_id)

        state = manager.resolve_surrender(match_id, accept=True)
        assert manager.pending_surrender(match_id) is None
        assert state.history[-1].type == EventKind.SURRENDER
        assert manager.undo_depth(match_id) == 3

    def test_rollback_undoes_event_and_its_surrender(self, manager):
        match_id = self._reach_third_win(manager)
        manager.resolve_surrender(match_id, accept=True)

        state = manager.rollback(match_id)

        assert state.pending_surrender is None
        assert len(state.history) == 2
        assert all(r.type == EventKind.DISCARD_WIN for r in state.history)

    def test_rollback_while_pending_drops_the_event(self, manager):
        match_id = self._reach_third_win(manager)
        state = manager.rollback(match_id)
        assert state.pending_surrender is None
        assert len(state.history) == 2

    def test_manual_surrender(self, manager):
        match_id = _new_match(manager)
        manager.apply_self_draw_win(match_id, 1, 2)
        state = manager.surrender_streak(match_id, 1, 3)
        assert [e.key for e in state.streaks] == [PairKey(1, 2), PairKey(1, 4)]


class TestPreview:
    def test_preview_does_not_touch_state(self, manager):
        match_id = _new_match(manager)
        results = manager.preview_self_draw(match_id, 1, 3)
        assert [r.total for r in results] == [Decimal(9)] * 3
        assert manager.preview_discard_win(match_id, 2, [(3, 1)])[0].total == Decimal(6)
        assert manager.get_match(match_id).history == ()
        assert manager.undo_depth(match_id) == 0


class TestExportImport:
    def test_import_creates_independent_copy(self, manager):
        match_id = _new_match(manager)
        manager.apply_self_draw_win(match_id, 1, 3)
        payload = manager.export_match(match_id)

        copy = manager.import_match(payload)

        assert copy.match_id != match_id
        assert manager.match_count == 2
        assert manager.undo_depth(copy.match_id) == 0
        manager.apply_stalemate(copy.match_id)
        assert get_dealer(manager.get_match(match_id)).id == 1

    def test_import_rejects_garbage(self, manager):
        with pytest.raises(MatchImportError):
            manager.import_match("[]")


class TestPersistence:
    def test_operations_are_saved_and_reloadable(self, tmp_path):
        storage = LocalMatchStorage(str(tmp_path))
        manager = MatchManager(ScorekeeperSettings(), storage=storage)
        match_id = _new_match(manager)
        manager.apply_self_draw_win(match_id, 1, 3)
        saved = manager.get_match(match_id)

        reloaded = MatchManager(ScorekeeperSettings(), storage=storage).load_match(match_id)

        assert reloaded == saved

    def test_storage_dir_setting_enables_persistence(self, tmp_path):
        manager = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path)))
        match_id = _new_match(manager)
        assert (tmp_path / f"{match_id}.json").exists()

    def test_pending_state_is_not_saved(self, tmp_path):
        manager = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path)))
        match_id = _new_match(manager, dealer_id=3)
        manager.apply_discard_win(match_id, 2, [(1, 1)])
        manager.apply_discard_win(match_id, 2, [(1, 1)])
        manager.apply_discard_win(match_id, 2, [(1, 1)])

        stored = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path))).load_match(match_id)
        assert len(stored.history) == 2

        manager.resolve_surrender(match_id, accept=False)
        stored = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path))).load_match(match_id)
        assert len(stored.history) == 3
        assert stored.pending_surrender is None

    def test_reload_keeps_undo_snapshots(self, tmp_path):
        manager = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path)))
        match_id = _new_match(manager)
        initial = manager.get_match(match_id)
        manager.apply_self_draw_win(match_id, 1, 3)
        after_draw = manager.get_match(match_id)
        manager.apply_stalemate(match_id)

        reloaded = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path)))
        reloaded.load_match(match_id)

        assert reloaded.undo_depth(match_id) == 2
        assert reloaded.rollback(match_id) == after_draw
        assert reloaded.rollback(match_id) == initial
        with pytest.raises(EmptyHistoryError):
            reloaded.rollback(match_id)

    def test_rollback_is_persisted(self, tmp_path):
        manager = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path)))
        match_id = _new_match(manager)
        manager.apply_self_draw_win(match_id, 1, 3)
        manager.apply_stalemate(match_id)
        manager.rollback(match_id)

        reloaded = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path)))
        state = reloaded.load_match(match_id)
        assert len(state.history) == 1
        assert reloaded.undo_depth(match_id) == 1

    def test_reload_trims_snapshots_to_undo_limit(self, tmp_path):
        manager = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path)))
        match_id = _new_match(manager)
        for _ in range(4):
            manager.apply_stalemate(match_id)

        reloaded = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path), undo_limit=2))
        reloaded.load_match(match_id)
        assert reloaded.undo_depth(match_id) == 2
        assert reloaded.rollback(match_id).rotation_count == 3

    def test_delete_removes_file(self, tmp_path):
        manager = MatchManager(ScorekeeperSettings(storage_dir=str(tmp_path)))
        match_id = _new_match(manager)
        manager.apply_stalemate(match_id)
        manager.delete_match(match_id)
        assert list(tmp_path.iterdir()) == []

    def test_load_without_storage(self, manager):
        with pytest.raises(MatchNotFoundError):
            manager.load_match("anything")


class TestGetManager:
    def test_reads_environment_and_configures_logging(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SCOREKEEPER_UNDO_LIMIT", "7")
        monkeypatch.setenv("SCOREKEEPER_STORAGE_DIR", str(tmp_path / "matches"))
        monkeypatch.setenv("SCOREKEEPER_LOG_DIR", str(tmp_path / "logs"))

        with patch("scorekeeper.session.manager.setup_logging") as mock_setup:
            manager = get_manager()

        mock_setup.assert_called_once_with(log_dir=str(tmp_path / "logs"))
        match_id = _new_match(manager)
        for _ in range(8):
            manager.apply_stalemate(match_id)
        assert manager.undo_depth(match_id) == 7
        assert (tmp_path / "matches" / f"{match_id}.json").exists()


class TestLogging:
    def test_rejection_is_logged_with_match_context(self, manager, caplog):
        match_id = _new_match(manager)
        with caplog.at_level(logging.WARNING), pytest.raises(EventValidationError):
            manager.apply_self_draw_win(match_id, 1, 0)

        messages = [r.getMessage() for r in caplog.records]
        assert any("operation rejected" in m and match_id in m for m in messages)
