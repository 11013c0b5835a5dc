"""
merkledrop/protocol/merkle.py

Merkle membership proof verification.

Leaves are SHA-256 of "address:amount". Interior nodes use sorted-pair
hashing: the two children are compared as unsigned byte strings and the
smaller one goes first, so proofs carry no left/right directions.

Usage:
    from merkledrop.protocol.merkle import verify

    ok = verify(proof, round.merkle_root, "addrA", "100")
"""

import hashlib
import logging
from typing import Sequence

from ..errors import InvalidHexError

logger = logging.getLogger("merkledrop.protocol.merkle")

HEX_PREFIX = "0x"
_HEX_DIGITS = frozenset("0123456789abcdef")


def normalize_hex(value: str) -> str:
    """
    Normalize a hex string to lowercase without prefix.

    Accepts at most one leading "0x". Raises InvalidHexError on an empty
    body, odd length or any non-hex character.
    """
    if not isinstance(value, str):
        raise InvalidHexError(f"Invalid hex: expected string, got {type(value).__name__}")
    body = value.lower()
    if body.startswith(HEX_PREFIX):
        body = body[len(HEX_PREFIX):]
    if not body:
        raise InvalidHexError(f"Invalid hex: empty value {value!r}")
    if len(body) % 2:
        raise InvalidHexError(f"Invalid hex: odd length in {value!r}")
    if not set(body) <= _HEX_DIGITS:
        raise InvalidHexError(f"Invalid hex: bad character in {value!r}")
    return body


def hex_to_bytes(value: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    return bytes.fromhex(normalize_hex(value))


def compute_leaf_hash(address: str, amount: str) -> str:
    """Compute "0x"-prefixed leaf hash for an address and decimal amount."""
    leaf = f"{address}:{amount}"
    return HEX_PREFIX + hashlib.sha256(leaf.encode("utf-8")).hexdigest()


def hash_pair(a: bytes, b: bytes) -> bytes:
    """Hash two nodes, smaller first."""
    if a <= b:
        return hashlib.sha256(a + b).digest()
    return hashlib.sha256(b + a).digest()


def verify_merkle_proof(proof: Sequence[str], root: str, leaf_hash: str) -> bool:
    """
    Verify a merkle proof for a leaf hash.

    Args:
        proof: Sibling hashes from leaf to root (hex strings)
        root: Expected root (hex string)
        leaf_hash: Leaf hash (hex string)

    Returns:
        True if folding the proof over the leaf yields the root

    Raises:
        InvalidHexError: If any value is malformed hex
    """
    expected = normalize_hex(root)
    computed = hex_to_bytes(leaf_hash)

    for element in proof:
        computed = hash_pair(computed, hex_to_bytes(element))

    return computed.hex() == expected


def verify(proof: Sequence[str], root: str, address: str, amount: str) -> bool:
    """Verify that (address, amount) is a leaf under root."""
    leaf_hash = compute_leaf_hash(address, amount)
    valid = verify_merkle_proof(proof, root, leaf_hash)
    if not valid:
        logger.debug(f"Proof of {len(proof)} elements failed for {address}")
    return valid
