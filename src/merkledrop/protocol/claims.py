"""
merkledrop/protocol/claims.py

End-to-end processing of a claim request.

Steps, short-circuiting on the first failure:
1. Load config and the active round (NotFoundError if none)
2. Ledger lookup (AlreadyClaimedError if present)
3. Merkle proof of (caller, stake) against the round root (InvalidProofError)
4. Proportional payout
5. Ledger write
6. Round claimed_amount update
7. Transfer intent to the caller, allocation claim intent to the funding source

Writes from steps 5 and 6 land in the request's staged storage; the contract
commits them together with the returned intents.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from ..config import Config, TRANSFER_PADDING
from ..errors import AlreadyClaimedError, InvalidProofError
from ..messages import ClaimAllocationIntent, Intent, TransferIntent
from .ledger import ClaimLedger
from .merkle import verify
from .payout import compute_claim
from .rounds import RoundManager

logger = logging.getLogger("merkledrop.protocol.claims")


@dataclass
class ClaimOutcome:
    """Successful claim: amount paid and intents to emit."""
    claimant: str
    round_id: int
    stake: int
    payout: int
    intents: List[Intent] = field(default_factory=list)


class ClaimOrchestrator:
    """
    Composes ledger, rounds, verifier and payout math for one claim.

    Usage:
        orchestrator = ClaimOrchestrator(rounds, ledger)
        outcome = orchestrator.claim(config, caller, 100, proof)
    """

    def __init__(self, rounds: RoundManager, ledger: ClaimLedger):
        self.rounds = rounds
        self.ledger = ledger

    def claim(
        self,
        config: Config,
        caller: str,
        stake: int,
        proof: Sequence[str],
    ) -> ClaimOutcome:
        """
        Process a claim.

        Args:
            config: Current config
            caller: Claimant address
            stake: Claimed stake, must match the leaf in the round's tree
            proof: Sibling hashes from leaf to root

        Returns:
            ClaimOutcome with payout and intents

        Raises:
            NotFoundError: No active round
            AlreadyClaimedError: Caller already claimed this round
            InvalidProofError: Proof does not verify or is malformed
            AirdropArithmeticError: Payout would exceed the round total
        """
        active = self.rounds.require_round()

        if self.ledger.has_claimed(active.round_id, caller) is not None:
            logger.warning(f"Duplicate claim by {caller} in round {active.round_id}")
            raise AlreadyClaimedError(f"Already claimed for round {active.round_id}")

        stake_str = str(stake)
        if not verify(proof, active.merkle_root, caller, stake_str):
            logger.warning(f"Invalid merkle proof from {caller} in round {active.round_id}")
            raise InvalidProofError("Invalid merkle proof")

        payout = compute_claim(stake, active.total_stake, active.total_amount)

        self.ledger.record_claim(active.round_id, caller, stake_str)
        self.rounds.record_payout(active, payout)

        intents = self._build_intents(config, caller, payout)

        logger.info(f"Claim by {caller} in round {active.round_id}: {payout}")
        return ClaimOutcome(
            claimant=caller,
            round_id=active.round_id,
            stake=stake,
            payout=payout,
            intents=intents,
        )

    @staticmethod
    def _build_intents(config: Config, caller: str, payout: int) -> List[Intent]:
        transfer = TransferIntent(
            contract=config.reward_token,
            code_hash=config.reward_token_hash,
            recipient=caller,
            amount=payout,
            padding=TRANSFER_PADDING,
        )
        allocation = ClaimAllocationIntent(
            contract=config.funding_source,
            code_hash=config.funding_source_hash,
            allocation_id=config.allocation_id,
        )
        return [transfer, allocation]
