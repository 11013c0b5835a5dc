"""
merkledrop/protocol/rounds.py

Airdrop round lifecycle.

State machine:
    Uninitialized --reset--> Active(round 1) --reset--> Active(round 2) ...

There is exactly one round slot. Reset overwrites it, carrying the previous
round's unclaimed amount plus all funding received since into the new
round's total. Claim records of old rounds stay in the ledger under their
round id.

Usage:
    manager = RoundManager(storage)

    manager.record_funding(500)
    outcome = manager.reset(caller, config, merkle_root, total_stake=400)
    active = manager.require_round()
"""

import time
import logging
from dataclasses import dataclass, asdict
from typing import Callable, Optional

from ..config import Config, STATE_KEY, CURRENT_ROUND_KEY
from ..errors import AirdropArithmeticError, NotFoundError, DecodeError, InvalidHexError
from .access import Role, require_role
from .merkle import HEX_PREFIX, normalize_hex
from .storage import StorageBackend, load_json, save_json

logger = logging.getLogger("merkledrop.protocol.rounds")


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class GlobalState:
    """Funding received since the last reset, and the latest round id."""
    pending_reward: int = 0
    current_round_id: int = 0  # 0 = no round yet

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "pending_reward": str(self.pending_reward),
            "current_round_id": self.current_round_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GlobalState":
        """Create from dictionary."""
        return cls(
            pending_reward=int(data["pending_reward"]),
            current_round_id=int(data["current_round_id"]),
        )


@dataclass
class ActiveRound:
    """The single active airdrop round."""
    round_id: int
    merkle_root: str
    total_amount: int
    total_stake: int
    claimed_amount: int = 0
    start_time: int = 0

    @property
    def unclaimed(self) -> int:
        """Amount not yet paid out in this round."""
        return self.total_amount - self.claimed_amount

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        result = asdict(self)
        for name in ("total_amount", "total_stake", "claimed_amount"):
            result[name] = str(result[name])
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ActiveRound":
        """Create from dictionary."""
        return cls(
            round_id=int(data["round_id"]),
            merkle_root=data["merkle_root"],
            total_amount=int(data["total_amount"]),
            total_stake=int(data["total_stake"]),
            claimed_amount=int(data.get("claimed_amount", 0)),
            start_time=int(data.get("start_time", 0)),
        )


@dataclass
class RoundReset:
    """Result of a reset: the new round and the amount rolled over."""
    round: ActiveRound
    unclaimed: int


# ============================================================================
# ROUND MANAGER
# ============================================================================

class RoundManager:
    """
    Owns GlobalState and the active round slot.

    All writes go to the storage it was given; callers pass a StagedStorage
    so a failed request leaves the backend untouched.
    """

    def __init__(
        self,
        storage: StorageBackend,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize RoundManager.

        Args:
            storage: Storage for state and round records
            clock: Time source in unix seconds (default: time.time)
        """
        self.storage = storage
        self.clock = clock or time.time

    # ========== State ==========

    def initialize(self) -> GlobalState:
        """Create the zeroed global state."""
        state = GlobalState()
        self.save_state(state)
        return state

    def load_state(self) -> GlobalState:
        data = load_json(self.storage, STATE_KEY)
        if data is None:
            raise NotFoundError("Contract state not initialized")
        return GlobalState.from_dict(data)

    def save_state(self, state: GlobalState) -> None:
        save_json(self.storage, STATE_KEY, state.to_dict())

    # ========== Round slot ==========

    def current_round(self) -> Optional[ActiveRound]:
        """The active round, or None before the first reset."""
        data = load_json(self.storage, CURRENT_ROUND_KEY)
        if data is None:
            return None
        return ActiveRound.from_dict(data)

    def require_round(self) -> ActiveRound:
        """
        The active round.

        Raises:
            NotFoundError: If no round has been started
        """
        active = self.current_round()
        if active is None:
            raise NotFoundError("No active airdrop round")
        return active

    def save_round(self, active: ActiveRound) -> None:
        save_json(self.storage, CURRENT_ROUND_KEY, active.to_dict())

    # ========== Transitions ==========

    def record_funding(self, amount: int) -> GlobalState:
        """Add received funding to the pending reward."""
        if amount < 0:
            raise AirdropArithmeticError("Funding amount must be non-negative")
        state = self.load_state()
        state.pending_reward += amount
        self.save_state(state)
        logger.info(f"Funding received: {amount} (pending {state.pending_reward})")
        return state

    def record_payout(self, active: ActiveRound, payout: int) -> ActiveRound:
        """
        Add a payout to the round's claimed amount.

        Raises:
            AirdropArithmeticError: If claimed_amount would exceed total_amount
        """
        claimed = active.claimed_amount + payout
        if payout < 0 or claimed > active.total_amount:
            raise AirdropArithmeticError(
                f"Payout {payout} exceeds unclaimed {active.unclaimed} in round {active.round_id}"
            )
        active.claimed_amount = claimed
        self.save_round(active)
        return active

    def reset(
        self,
        caller: str,
        config: Config,
        merkle_root: str,
        total_stake: int,
    ) -> RoundReset:
        """
        Start a new round, rolling over the previous round's unclaimed amount.

        new total = pending_reward + (prev.total_amount - prev.claimed_amount)

        Args:
            caller: Requesting address (must be the backend operator)
            config: Current config
            merkle_root: Root committing to the new (address, stake) leaves
            total_stake: Sum of all stakes in the new snapshot

        Returns:
            RoundReset with the new round and the rolled over amount

        Raises:
            AuthorizationError: If caller is not the backend operator
            AirdropArithmeticError: If total_stake is not positive
            DecodeError: If merkle_root is malformed hex
        """
        require_role(Role.BACKEND_OPERATOR, caller, config)

        if total_stake <= 0:
            raise AirdropArithmeticError("Total stake must be positive")

        try:
            root = HEX_PREFIX + normalize_hex(merkle_root)
        except InvalidHexError as e:
            raise DecodeError(f"Invalid merkle root: {e.message}") from e

        state = self.load_state()

        unclaimed = 0
        if state.current_round_id > 0:
            unclaimed = self.require_round().unclaimed

        state.current_round_id += 1
        new_round = ActiveRound(
            round_id=state.current_round_id,
            merkle_root=root,
            total_amount=state.pending_reward + unclaimed,
            total_stake=total_stake,
            claimed_amount=0,
            start_time=int(self.clock()),
        )
        state.pending_reward = 0

        self.save_round(new_round)
        self.save_state(state)

        logger.info(
            f"Round {new_round.round_id} started: total {new_round.total_amount} "
            f"(rollover {unclaimed}), stake {total_stake}"
        )
        return RoundReset(round=new_round, unclaimed=unclaimed)
