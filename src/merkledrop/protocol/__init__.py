"""
merkledrop/protocol/

Airdrop core: proof verification, payout math, claim ledger, round
lifecycle, authorization and claim processing.
"""

from .storage import StorageBackend, MemoryBackend, FileBackend, StagedStorage
from .merkle import compute_leaf_hash, normalize_hex, verify, verify_merkle_proof
from .payout import compute_claim
from .ledger import ClaimLedger
from .rounds import ActiveRound, GlobalState, RoundManager, RoundReset
from .access import Role, require_role
from .claims import ClaimOrchestrator, ClaimOutcome

__all__ = [
    # Storage
    "StorageBackend",
    "MemoryBackend",
    "FileBackend",
    "StagedStorage",
    # Merkle proofs
    "compute_leaf_hash",
    "normalize_hex",
    "verify",
    "verify_merkle_proof",
    # Payout
    "compute_claim",
    # Ledger and rounds
    "ClaimLedger",
    "ActiveRound",
    "GlobalState",
    "RoundManager",
    "RoundReset",
    # Access
    "Role",
    "require_role",
    # Claims
    "ClaimOrchestrator",
    "ClaimOutcome",
]
