"""
merkledrop - Merkle-proof airdrop with rolling reward rounds

Holders of an off-chain stake snapshot claim a proportional share of a
pooled reward by proving membership against a published merkle root.
Unclaimed reward rolls into the next round.

Usage:
    from merkledrop import AirdropContract, MemoryBackend

    contract = AirdropContract(MemoryBackend())
    contract.instantiate("admin", {
        "owner": "admin",
        "backend_operator": "backend",
        "reward_token": "token",
        "reward_token_hash": "tokenhash",
        "funding_source": "allocation",
        "funding_source_hash": "allocationhash",
    })

    contract.execute("backend", {"reset_airdrop": {"merkle_root": root, "total_stake": "400"}})
    response = contract.execute("addrA", {"claim": {"amount": "100", "proof": proof}})

REST API Usage:
    from merkledrop.api import AirdropAPI

    api = AirdropAPI(contract, host="0.0.0.0", port=24650)
    trio.run(api.start)
"""

from .config import Config, ServiceSettings, DEFAULT_API_PORT, DEFAULT_ALLOCATION_ID
from .contract import AirdropContract
from .errors import (
    AirdropError,
    AuthorizationError,
    NotFoundError,
    AlreadyClaimedError,
    InvalidProofError,
    InvalidHexError,
    AirdropArithmeticError,
    DecodeError,
)
from .messages import Response, TransferIntent, ClaimAllocationIntent
from .metrics import MetricsCollector
from .protocol import (
    MemoryBackend,
    FileBackend,
    ClaimLedger,
    RoundManager,
    ClaimOrchestrator,
    compute_claim,
    compute_leaf_hash,
    verify,
)

__version__ = "1.0.0"
__all__ = [
    # Core
    "AirdropContract",
    "Config",
    "ServiceSettings",
    "Response",
    "TransferIntent",
    "ClaimAllocationIntent",
    "MetricsCollector",
    # Protocol
    "MemoryBackend",
    "FileBackend",
    "ClaimLedger",
    "RoundManager",
    "ClaimOrchestrator",
    "compute_claim",
    "compute_leaf_hash",
    "verify",
    # Errors
    "AirdropError",
    "AuthorizationError",
    "NotFoundError",
    "AlreadyClaimedError",
    "InvalidProofError",
    "InvalidHexError",
    "AirdropArithmeticError",
    "DecodeError",
    # Config
    "DEFAULT_API_PORT",
    "DEFAULT_ALLOCATION_ID",
]
