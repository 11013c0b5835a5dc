"""
merkledrop/tests/test_ledger.py

Tests for the per-round claim ledger.
"""

import pytest

from merkledrop.errors import AlreadyClaimedError
from merkledrop.protocol.ledger import ClaimLedger
from merkledrop.protocol.storage import MemoryBackend


@pytest.fixture
def ledger():
    return ClaimLedger(MemoryBackend())


class TestClaimLedger:
    """Tests for ClaimLedger."""

    def test_unclaimed_is_none(self, ledger):
        assert ledger.has_claimed(1, "addrA") is None

    def test_record_then_lookup(self, ledger):
        ledger.record_claim(1, "addrA", "100")
        assert ledger.has_claimed(1, "addrA") == "100"

    def test_second_record_rejected(self, ledger):
        """Existing entries are never overwritten."""
        ledger.record_claim(1, "addrA", "100")
        with pytest.raises(AlreadyClaimedError):
            ledger.record_claim(1, "addrA", "999")
        assert ledger.has_claimed(1, "addrA") == "100"

    def test_rounds_are_isolated(self, ledger):
        ledger.record_claim(1, "addrA", "100")
        assert ledger.has_claimed(2, "addrA") is None
        ledger.record_claim(2, "addrA", "50")
        assert ledger.has_claimed(1, "addrA") == "100"
        assert ledger.has_claimed(2, "addrA") == "50"

    def test_round_prefix_does_not_collide(self, ledger):
        """Round 1 records are not listed under round 11."""
        ledger.record_claim(1, "addrA", "1")
        ledger.record_claim(11, "addrB", "2")
        assert ledger.claims_for_round(1) == {"addrA": "1"}
        assert ledger.claims_for_round(11) == {"addrB": "2"}

    def test_claims_for_round(self, ledger):
        ledger.record_claim(3, "addrA", "100")
        ledger.record_claim(3, "addrB", "300")
        assert ledger.claims_for_round(3) == {"addrA": "100", "addrB": "300"}
        assert ledger.claims_for_round(4) == {}
