"""
merkledrop/tests/test_rounds.py

Tests for round lifecycle and rollover.
"""

import pytest

from merkledrop.config import Config
from merkledrop.errors import (
    AirdropArithmeticError,
    AuthorizationError,
    DecodeError,
    NotFoundError,
)
from merkledrop.protocol.rounds import ActiveRound, GlobalState, RoundManager
from merkledrop.protocol.storage import MemoryBackend

from conftest import BACKEND, FIXED_TIME, OWNER, config_dict


ROOT_1 = "0x" + "11" * 32
ROOT_2 = "0x" + "22" * 32


@pytest.fixture
def config():
    return Config.from_dict(config_dict())


@pytest.fixture
def manager():
    manager = RoundManager(MemoryBackend(), clock=lambda: FIXED_TIME)
    manager.initialize()
    return manager


# ============================================================================
# Test data classes
# ============================================================================

class TestDataClasses:
    """Tests for GlobalState and ActiveRound serialization."""

    def test_global_state_round_trip(self):
        state = GlobalState(pending_reward=2 ** 128 + 1, current_round_id=7)
        data = state.to_dict()
        assert data["pending_reward"] == str(2 ** 128 + 1)
        assert GlobalState.from_dict(data) == state

    def test_active_round_amounts_are_strings(self):
        active = ActiveRound(
            round_id=1,
            merkle_root=ROOT_1,
            total_amount=800,
            total_stake=400,
            claimed_amount=200,
            start_time=FIXED_TIME,
        )
        data = active.to_dict()
        assert data["total_amount"] == "800"
        assert data["total_stake"] == "400"
        assert data["claimed_amount"] == "200"
        assert data["round_id"] == 1
        assert ActiveRound.from_dict(data) == active
        assert active.unclaimed == 600


# ============================================================================
# Test state and funding
# ============================================================================

class TestFunding:
    """Tests for initial state and record_funding."""

    def test_initial_state(self, manager):
        state = manager.load_state()
        assert state.pending_reward == 0
        assert state.current_round_id == 0
        assert manager.current_round() is None

    def test_uninitialized_state_raises(self):
        with pytest.raises(NotFoundError):
            RoundManager(MemoryBackend()).load_state()

    def test_require_round_before_reset(self, manager):
        with pytest.raises(NotFoundError):
            manager.require_round()

    def test_funding_accumulates(self, manager):
        manager.record_funding(500)
        manager.record_funding(300)
        assert manager.load_state().pending_reward == 800

    def test_negative_funding_rejected(self, manager):
        with pytest.raises(AirdropArithmeticError):
            manager.record_funding(-1)


# ============================================================================
# Test reset
# ============================================================================

class TestReset:
    """Tests for RoundManager.reset."""

    def test_first_reset_takes_pending(self, manager, config):
        manager.record_funding(800)
        outcome = manager.reset(BACKEND, config, ROOT_1, 400)

        assert outcome.unclaimed == 0
        assert outcome.round.round_id == 1
        assert outcome.round.total_amount == 800
        assert outcome.round.total_stake == 400
        assert outcome.round.claimed_amount == 0
        assert outcome.round.start_time == FIXED_TIME

        state = manager.load_state()
        assert state.pending_reward == 0
        assert state.current_round_id == 1
        assert manager.require_round() == outcome.round

    def test_rollover(self, manager, config):
        """total 1000, claimed 400, +50 funding -> next total 650."""
        manager.record_funding(1000)
        manager.reset(BACKEND, config, ROOT_1, 400)
        manager.record_payout(manager.require_round(), 400)
        manager.record_funding(50)

        outcome = manager.reset(BACKEND, config, ROOT_2, 100)

        assert outcome.unclaimed == 600
        assert outcome.round.round_id == 2
        assert outcome.round.total_amount == 650
        assert outcome.round.claimed_amount == 0
        assert manager.load_state().pending_reward == 0

    def test_round_id_increments(self, manager, config):
        ids = [manager.reset(BACKEND, config, ROOT_1, 1).round.round_id for _ in range(3)]
        assert ids == [1, 2, 3]

    def test_reset_with_nothing_funded(self, manager, config):
        outcome = manager.reset(BACKEND, config, ROOT_1, 400)
        assert outcome.round.total_amount == 0

    def test_root_is_normalized(self, manager, config):
        outcome = manager.reset(BACKEND, config, "AB" * 32, 400)
        assert outcome.round.merkle_root == "0x" + "ab" * 32

    def test_non_operator_rejected(self, manager, config):
        manager.record_funding(800)
        with pytest.raises(AuthorizationError):
            manager.reset(OWNER, config, ROOT_1, 400)
        assert manager.current_round() is None
        assert manager.load_state().pending_reward == 800

    def test_zero_total_stake_rejected(self, manager, config):
        with pytest.raises(AirdropArithmeticError):
            manager.reset(BACKEND, config, ROOT_1, 0)

    def test_malformed_root_rejected(self, manager, config):
        with pytest.raises(DecodeError):
            manager.reset(BACKEND, config, "0xnot-a-root", 400)


# ============================================================================
# Test payouts
# ============================================================================

class TestRecordPayout:
    """Tests for RoundManager.record_payout."""

    def test_payout_updates_claimed(self, manager, config):
        manager.record_funding(800)
        manager.reset(BACKEND, config, ROOT_1, 400)

        manager.record_payout(manager.require_round(), 200)
        manager.record_payout(manager.require_round(), 600)

        active = manager.require_round()
        assert active.claimed_amount == 800
        assert active.unclaimed == 0

    def test_payout_beyond_total_rejected(self, manager, config):
        manager.record_funding(800)
        manager.reset(BACKEND, config, ROOT_1, 400)
        manager.record_payout(manager.require_round(), 700)

        with pytest.raises(AirdropArithmeticError):
            manager.record_payout(manager.require_round(), 101)
        assert manager.require_round().claimed_amount == 700
