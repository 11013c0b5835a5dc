"""
Shared fixtures for merkledrop tests.

Includes a small sorted-pair merkle tree builder used only to produce test
roots and proofs.
"""

import hashlib
from typing import Dict, List, Sequence, Tuple

import pytest

from merkledrop.contract import AirdropContract
from merkledrop.protocol.storage import MemoryBackend


OWNER = "owner"
BACKEND = "backend"
TOKEN = "token"
ALLOCATION = "allocation"
FIXED_TIME = 1_700_000_000


def build_tree(leaves: Sequence[Tuple[str, str]]) -> Tuple[str, Dict[str, List[str]]]:
    """
    Build a sorted-pair tree over (address, amount) leaves.

    A node without a sibling is promoted to the next level unchanged.

    Returns:
        (root as "0x" hex, {address: proof})
    """
    level = [
        hashlib.sha256(f"{address}:{amount}".encode()).digest()
        for address, amount in leaves
    ]
    positions = {address: i for i, (address, _) in enumerate(leaves)}
    proofs: Dict[str, List[str]] = {address: [] for address, _ in leaves}

    while len(level) > 1:
        for address, idx in positions.items():
            sibling = idx ^ 1
            if sibling < len(level):
                proofs[address].append("0x" + level[sibling].hex())
        next_level = []
        for i in range(0, len(level), 2):
            if i + 1 < len(level):
                a, b = level[i], level[i + 1]
                next_level.append(hashlib.sha256(min(a, b) + max(a, b)).digest())
            else:
                next_level.append(level[i])
        level = next_level
        positions = {address: idx // 2 for address, idx in positions.items()}

    return "0x" + level[0].hex(), proofs


def config_dict(**overrides) -> dict:
    """Instantiate message with test principals."""
    data = {
        "owner": OWNER,
        "backend_operator": BACKEND,
        "reward_token": TOKEN,
        "reward_token_hash": "tokenhash",
        "funding_source": ALLOCATION,
        "funding_source_hash": "allocationhash",
    }
    data.update(overrides)
    return data


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def contract(backend):
    """Instantiated contract with a fixed clock."""
    contract = AirdropContract(backend, clock=lambda: FIXED_TIME)
    contract.instantiate(OWNER, config_dict())
    return contract


@pytest.fixture
def example_tree():
    """The addrA/addrB snapshot: stakes 100 and 300."""
    return build_tree([("addrA", "100"), ("addrB", "300")])
