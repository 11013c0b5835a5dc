"""
merkledrop/protocol/ledger.py

Per-round claim ledger.

One record per (round_id, participant), holding the stake string submitted
with the claim. Records are written once and never updated or deleted, so
key existence is the "has claimed" predicate. Keys are scoped by round id:
a new round gives every participant a fresh claim.
"""

import logging
from typing import Dict, Optional

from ..config import CLAIMS_PREFIX
from ..errors import AlreadyClaimedError
from .storage import StorageBackend

logger = logging.getLogger("merkledrop.protocol.ledger")


class ClaimLedger:
    """
    Keyed record store enforcing at most one claim per participant per round.

    Usage:
        ledger = ClaimLedger(storage)

        if ledger.has_claimed(round_id, address) is None:
            ledger.record_claim(round_id, address, "100")
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    @staticmethod
    def _round_prefix(round_id: int) -> str:
        return f"{CLAIMS_PREFIX}{round_id}:"

    def _make_key(self, round_id: int, participant: str) -> str:
        return f"{self._round_prefix(round_id)}{participant}"

    def has_claimed(self, round_id: int, participant: str) -> Optional[str]:
        """Stake string recorded for the participant, or None."""
        data = self.storage.get(self._make_key(round_id, participant))
        if data is None:
            return None
        return data.decode("utf-8")

    def record_claim(self, round_id: int, participant: str, stake: str) -> None:
        """
        Record a claim.

        Raises:
            AlreadyClaimedError: If the participant already claimed this round
        """
        key = self._make_key(round_id, participant)
        if self.storage.get(key) is not None:
            raise AlreadyClaimedError(f"Already claimed for round {round_id}")
        self.storage.put(key, stake.encode("utf-8"))

    def claims_for_round(self, round_id: int) -> Dict[str, str]:
        """All {participant: stake} records of a round."""
        prefix = self._round_prefix(round_id)
        claims = {}
        for key in self.storage.list_keys(prefix):
            claims[key[len(prefix):]] = self.storage.get(key).decode("utf-8")
        return claims
