"""
merkledrop/errors.py

Error taxonomy for airdrop requests.

Every error aborts the whole request: nothing staged is committed and no
intent is emitted. Each class carries a stable ``code`` so host adapters
can map failures without string matching.
"""

from typing import Any, Dict


class AirdropError(Exception):
    """Base class for all request failures."""

    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"error": self.code, "message": self.message}


class AuthorizationError(AirdropError):
    """Caller is not the principal required for this operation."""

    code = "unauthorized"


class NotFoundError(AirdropError):
    """No active airdrop round exists."""

    code = "not_found"


class AlreadyClaimedError(AirdropError):
    """Participant already claimed in the active round."""

    code = "already_claimed"


class InvalidProofError(AirdropError):
    """Merkle proof did not verify against the round root."""

    code = "invalid_proof"


class InvalidHexError(InvalidProofError):
    """A proof, root or leaf value is not well-formed hex."""


class AirdropArithmeticError(AirdropError, ArithmeticError):
    """Zero total stake, negative quantity or payout beyond the round total."""

    code = "arithmetic"


class DecodeError(AirdropError, ValueError):
    """Inbound message or payload could not be decoded."""

    code = "decode"
