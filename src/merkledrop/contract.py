"""
merkledrop/contract.py

Contract entry points: instantiate, execute, query, migrate.

Every entry point runs under a single-writer lock and against a fresh
StagedStorage. On success the staged writes are committed in one batch and
the Response (intents + attributes) is returned; on any AirdropError the
staged writes are dropped and the error propagates to the caller.

Usage:
    from merkledrop.contract import AirdropContract
    from merkledrop.protocol.storage import MemoryBackend

    contract = AirdropContract(MemoryBackend())
    contract.instantiate("admin", {"owner": "admin", ...})

    contract.execute("backend", {"reset_airdrop": {"merkle_root": root, "total_stake": "400"}})
    response = contract.execute("addrA", {"claim": {"amount": "100", "proof": proof}})
    round_info = contract.query({"get_current_round": {}})
"""

import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, Optional, Union

from .config import Config, CONFIG_KEY
from .errors import AirdropError, AuthorizationError, NotFoundError
from .messages import (
    ClaimMsg,
    ExecuteMsg,
    GetConfigQuery,
    GetCurrentRoundQuery,
    HasClaimedQuery,
    InstantiateMsg,
    QueryMsg,
    ReceiveMsg,
    ResetAirdropMsg,
    Response,
    UpdateConfigMsg,
    parse_execute_msg,
    parse_instantiate_msg,
    parse_query_msg,
    parse_receive_payload,
)
from .protocol.access import Role, require_role
from .protocol.claims import ClaimOrchestrator
from .protocol.ledger import ClaimLedger
from .protocol.rounds import RoundManager
from .protocol.storage import StagedStorage, StorageBackend, load_json, save_json

if TYPE_CHECKING:
    from .metrics import MetricsCollector

logger = logging.getLogger("merkledrop.contract")


class AirdropContract:
    """
    Merkle airdrop with rolling rounds.

    Args:
        backend: Persistent key-value storage
        clock: Time source in unix seconds (default: time.time)
        metrics: Optional collector notified of request outcomes
    """

    def __init__(
        self,
        backend: StorageBackend,
        clock: Optional[Callable[[], float]] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.backend = backend
        self.clock = clock
        self.metrics = metrics
        self._lock = threading.Lock()

        self._execute_handlers: Dict[type, tuple] = {
            ClaimMsg: ("claim", self._execute_claim),
            ResetAirdropMsg: ("reset_airdrop", self._execute_reset_airdrop),
            UpdateConfigMsg: ("update_config", self._execute_update_config),
            ReceiveMsg: ("receive", self._execute_receive),
        }
        self._query_handlers: Dict[type, Callable] = {
            GetCurrentRoundQuery: self._query_current_round,
            HasClaimedQuery: self._query_has_claimed,
            GetConfigQuery: self._query_config,
        }

    # ========== Transactions ==========

    @contextmanager
    def _transaction(self) -> Iterator[StagedStorage]:
        """Serialize the request and commit its writes only on success."""
        with self._lock:
            staged = StagedStorage(self.backend)
            try:
                yield staged
            except Exception:
                staged.discard()
                raise
            staged.commit()

    def _record(self, action: str, result: str) -> None:
        if self.metrics:
            self.metrics.record_request(action, result)

    def _observe(self, action: str, response: Response) -> None:
        """Report a committed execute to the metrics collector."""
        if not self.metrics:
            return
        self.metrics.record_request(action, "ok")
        if action == "claim":
            self.metrics.record_claim(int(response.attribute("claim_amount")))
        elif action == "reset_airdrop":
            self.metrics.record_reset()
        elif action == "receive":
            self.metrics.record_funding(int(response.attribute("amount")))

    @staticmethod
    def _load_config(storage: StorageBackend) -> Config:
        data = load_json(storage, CONFIG_KEY)
        if data is None:
            raise NotFoundError("Contract not instantiated")
        return Config.from_dict(data)

    # ========== Entry points ==========

    def instantiate(self, sender: str, msg: Union[InstantiateMsg, Dict[str, Any]]) -> Response:
        """Store the initial config and zeroed global state."""
        try:
            if not isinstance(msg, InstantiateMsg):
                msg = parse_instantiate_msg(msg)
            with self._transaction() as storage:
                if load_json(storage, CONFIG_KEY) is not None:
                    raise AuthorizationError("Contract already instantiated")
                save_json(storage, CONFIG_KEY, msg.config.to_dict())
                RoundManager(storage, self.clock).initialize()
        except AirdropError as e:
            self._record("instantiate", e.code)
            raise

        self._record("instantiate", "ok")
        logger.info(f"Instantiated by {sender}, owner {msg.config.owner}")
        return (
            Response()
            .add_attribute("action", "instantiate")
            .add_attribute("owner", msg.config.owner)
        )

    def execute(self, sender: str, msg: Union[ExecuteMsg, Dict[str, Any]]) -> Response:
        """
        Dispatch an execute message from sender.

        Raises:
            AirdropError: Any failure; no state was changed
        """
        action = "execute"
        try:
            if type(msg) not in self._execute_handlers:
                msg = parse_execute_msg(msg)
            action, handler = self._execute_handlers[type(msg)]
            with self._transaction() as storage:
                response = handler(storage, sender, msg)
        except AirdropError as e:
            self._record(action, e.code)
            raise

        self._observe(action, response)
        return response

    def query(self, msg: Union[QueryMsg, Dict[str, Any]]) -> Dict[str, Any]:
        """Answer a read-only query."""
        if type(msg) not in self._query_handlers:
            msg = parse_query_msg(msg)
        handler = self._query_handlers[type(msg)]
        with self._lock:
            return handler(self.backend, msg)

    def migrate(self, sender: str, msg: Optional[Dict[str, Any]] = None) -> Response:
        """Accept a code migration; state layout is unchanged."""
        logger.info(f"Migrated by {sender}")
        return Response().add_attribute("action", "migrate")

    # ========== Execute handlers ==========

    def _execute_claim(self, storage: StorageBackend, sender: str, msg: ClaimMsg) -> Response:
        config = self._load_config(storage)
        orchestrator = ClaimOrchestrator(RoundManager(storage, self.clock), ClaimLedger(storage))
        outcome = orchestrator.claim(config, sender, msg.amount, msg.proof)

        response = Response()
        for intent in outcome.intents:
            response.add_message(intent)
        return (
            response
            .add_attribute("action", "claim")
            .add_attribute("claimant", outcome.claimant)
            .add_attribute("claim_amount", outcome.payout)
            .add_attribute("round_id", outcome.round_id)
        )

    def _execute_reset_airdrop(
        self, storage: StorageBackend, sender: str, msg: ResetAirdropMsg
    ) -> Response:
        config = self._load_config(storage)
        outcome = RoundManager(storage, self.clock).reset(
            sender, config, msg.merkle_root, msg.total_stake
        )

        return (
            Response()
            .add_attribute("action", "reset_airdrop")
            .add_attribute("new_round_id", outcome.round.round_id)
            .add_attribute("merkle_root", outcome.round.merkle_root)
            .add_attribute("total_amount", outcome.round.total_amount)
            .add_attribute("unclaimed_rollover", outcome.unclaimed)
        )

    def _execute_update_config(
        self, storage: StorageBackend, sender: str, msg: UpdateConfigMsg
    ) -> Response:
        config = self._load_config(storage)
        require_role(Role.OWNER, sender, config)
        save_json(storage, CONFIG_KEY, msg.config.to_dict())
        logger.info(f"Config updated by {sender}")
        return Response().add_attribute("action", "update_config")

    def _execute_receive(self, storage: StorageBackend, sender: str, msg: ReceiveMsg) -> Response:
        config = self._load_config(storage)
        require_role(Role.FUNDING_SOURCE, sender, config)

        # Only one payload kind exists: funding forwarded by the allocation contract
        parse_receive_payload(msg.msg)
        RoundManager(storage, self.clock).record_funding(msg.amount)

        return (
            Response()
            .add_attribute("action", "receive_allocation")
            .add_attribute("amount", msg.amount)
        )

    # ========== Query handlers ==========

    def _query_current_round(self, storage: StorageBackend, msg: GetCurrentRoundQuery) -> Dict[str, Any]:
        return RoundManager(storage, self.clock).require_round().to_dict()

    def _query_has_claimed(self, storage: StorageBackend, msg: HasClaimedQuery) -> Dict[str, Any]:
        active = RoundManager(storage, self.clock).require_round()
        amount = ClaimLedger(storage).has_claimed(active.round_id, msg.address)
        return {"has_claimed": amount is not None, "amount": amount}

    def _query_config(self, storage: StorageBackend, msg: GetConfigQuery) -> Dict[str, Any]:
        return self._load_config(storage).to_dict()

    # ========== Introspection ==========

    def state_summary(self) -> Dict[str, Any]:
        """Global state and active round totals, for metrics and health checks."""
        with self._lock:
            rounds = RoundManager(self.backend, self.clock)
            state = rounds.load_state()
            active = rounds.current_round()
        return {"state": state, "round": active}
