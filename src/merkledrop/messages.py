"""
merkledrop/messages.py

Wire messages for the contract boundary.

Messages are JSON objects tagged by a single snake_case key:

    {"claim": {"amount": "100", "proof": ["0xab..", "0xcd.."]}}
    {"reset_airdrop": {"merkle_root": "0x..", "total_stake": "400"}}
    {"has_claimed": {"address": "addrA"}}

All token and stake quantities travel as decimal strings and are parsed into
Python ints, never floats. Any shape error raises DecodeError.
"""

import json
import base64
import binascii
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .config import Config, DEFAULT_ALLOCATION_ID
from .errors import DecodeError

logger = logging.getLogger("merkledrop.messages")

_DECIMAL_RE = re.compile(r"[0-9]+")


# ============================================================================
# FIELD PARSING
# ============================================================================

def parse_uint(value: Any, name: str) -> int:
    """Parse an unsigned decimal string ("0", "100", ...) into an int."""
    if not isinstance(value, str) or not _DECIMAL_RE.fullmatch(value):
        raise DecodeError(f"Invalid {name}: expected unsigned decimal string, got {value!r}")
    return int(value)


def parse_address(value: Any, name: str = "address") -> str:
    """Parse a non-empty address without whitespace."""
    if not isinstance(value, str) or not value or any(ch.isspace() for ch in value):
        raise DecodeError(f"Invalid {name}: {value!r}")
    return value


def _require(body: Dict[str, Any], name: str) -> Any:
    if name not in body:
        raise DecodeError(f"Missing field: {name}")
    return body[name]


def _parse_str(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise DecodeError(f"Invalid {name}: expected string")
    return value


def _split_variant(data: Any, kind: str) -> Tuple[str, Dict[str, Any]]:
    """Split {"variant": {...}} into its tag and body."""
    if not isinstance(data, dict) or len(data) != 1:
        raise DecodeError(f"Invalid {kind} message: expected exactly one variant")
    tag, body = next(iter(data.items()))
    if body is None:
        body = {}
    if not isinstance(body, dict):
        raise DecodeError(f"Invalid {kind} message: body of {tag!r} must be an object")
    return tag, body


def parse_config(data: Any) -> Config:
    """Parse a Config object, validating every address."""
    if not isinstance(data, dict):
        raise DecodeError("Invalid config: expected object")
    allocation_id = data.get("allocation_id", DEFAULT_ALLOCATION_ID)
    if isinstance(allocation_id, bool) or not isinstance(allocation_id, int) or allocation_id < 0:
        raise DecodeError(f"Invalid allocation_id: {allocation_id!r}")
    return Config(
        owner=parse_address(_require(data, "owner"), "owner"),
        backend_operator=parse_address(_require(data, "backend_operator"), "backend_operator"),
        reward_token=parse_address(_require(data, "reward_token"), "reward_token"),
        reward_token_hash=_parse_str(_require(data, "reward_token_hash"), "reward_token_hash"),
        funding_source=parse_address(_require(data, "funding_source"), "funding_source"),
        funding_source_hash=_parse_str(_require(data, "funding_source_hash"), "funding_source_hash"),
        allocation_id=allocation_id,
    )


# ============================================================================
# INBOUND MESSAGES
# ============================================================================

@dataclass
class InstantiateMsg:
    """Initial configuration."""
    config: Config


@dataclass
class ClaimMsg:
    """Claim the caller's share of the active round."""
    amount: int
    proof: List[str] = field(default_factory=list)


@dataclass
class ResetAirdropMsg:
    """Start a new round (backend operator only)."""
    merkle_root: str
    total_stake: int


@dataclass
class UpdateConfigMsg:
    """Replace the config (owner only)."""
    config: Config


@dataclass
class ReceiveMsg:
    """Reward token receive hook: funds were sent to this contract."""
    sender: str
    origin: str
    amount: int
    msg: str  # base64 JSON payload, see parse_receive_payload
    memo: Optional[str] = None


@dataclass
class AllocationSendMsg:
    """Receive payload: funding from the allocation contract."""
    allocation_id: int


@dataclass
class GetCurrentRoundQuery:
    pass


@dataclass
class HasClaimedQuery:
    address: str


@dataclass
class GetConfigQuery:
    pass


ExecuteMsg = Union[ClaimMsg, ResetAirdropMsg, UpdateConfigMsg, ReceiveMsg]
QueryMsg = Union[GetCurrentRoundQuery, HasClaimedQuery, GetConfigQuery]


def _parse_claim(body: Dict[str, Any]) -> ClaimMsg:
    proof = _require(body, "proof")
    if not isinstance(proof, list) or not all(isinstance(p, str) for p in proof):
        raise DecodeError("Invalid proof: expected list of hex strings")
    return ClaimMsg(amount=parse_uint(_require(body, "amount"), "amount"), proof=list(proof))


def _parse_reset_airdrop(body: Dict[str, Any]) -> ResetAirdropMsg:
    return ResetAirdropMsg(
        merkle_root=_parse_str(_require(body, "merkle_root"), "merkle_root"),
        total_stake=parse_uint(_require(body, "total_stake"), "total_stake"),
    )


def _parse_update_config(body: Dict[str, Any]) -> UpdateConfigMsg:
    return UpdateConfigMsg(config=parse_config(_require(body, "config")))


def _parse_receive(body: Dict[str, Any]) -> ReceiveMsg:
    memo = body.get("memo")
    if memo is not None and not isinstance(memo, str):
        raise DecodeError("Invalid memo: expected string")
    return ReceiveMsg(
        sender=parse_address(_require(body, "sender"), "sender"),
        origin=parse_address(_require(body, "from"), "from"),
        amount=parse_uint(_require(body, "amount"), "amount"),
        msg=_parse_str(_require(body, "msg"), "msg"),
        memo=memo,
    )


_EXECUTE_PARSERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "claim": _parse_claim,
    "reset_airdrop": _parse_reset_airdrop,
    "update_config": _parse_update_config,
    "receive": _parse_receive,
}

_QUERY_PARSERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "get_current_round": lambda body: GetCurrentRoundQuery(),
    "has_claimed": lambda body: HasClaimedQuery(
        address=parse_address(_require(body, "address"))
    ),
    "get_config": lambda body: GetConfigQuery(),
}


def parse_instantiate_msg(data: Any) -> InstantiateMsg:
    """Parse an instantiate message (a flat Config object)."""
    return InstantiateMsg(config=parse_config(data))


def parse_execute_msg(data: Any) -> ExecuteMsg:
    """Parse an execute message."""
    tag, body = _split_variant(data, "execute")
    parser = _EXECUTE_PARSERS.get(tag)
    if parser is None:
        raise DecodeError(f"Unknown execute message: {tag}")
    return parser(body)


def parse_query_msg(data: Any) -> QueryMsg:
    """Parse a query message."""
    tag, body = _split_variant(data, "query")
    parser = _QUERY_PARSERS.get(tag)
    if parser is None:
        raise DecodeError(f"Unknown query message: {tag}")
    return parser(body)


def parse_receive_payload(payload: str) -> AllocationSendMsg:
    """
    Decode the base64 JSON payload of a receive hook.

    The only recognised payload is {"allocation_send": {"allocation_id": n}}.
    """
    try:
        raw = base64.b64decode(payload, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"Invalid receive payload: {e}") from e

    tag, body = _split_variant(data, "receive")
    if tag != "allocation_send":
        raise DecodeError(f"Unknown receive message: {tag}")
    allocation_id = _require(body, "allocation_id")
    if isinstance(allocation_id, bool) or not isinstance(allocation_id, int) or allocation_id < 0:
        raise DecodeError(f"Invalid allocation_id: {allocation_id!r}")
    return AllocationSendMsg(allocation_id=allocation_id)


def encode_receive_payload(allocation_id: int) -> str:
    """Build the base64 payload the allocation contract attaches to a send."""
    data = {"allocation_send": {"allocation_id": allocation_id}}
    return base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")


# ============================================================================
# OUTBOUND INTENTS
# ============================================================================

@dataclass
class TransferIntent:
    """Request to transfer reward tokens to a recipient."""
    contract: str
    code_hash: str
    recipient: str
    amount: int
    padding: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "contract_addr": self.contract,
            "code_hash": self.code_hash,
            "msg": {
                "transfer": {
                    "recipient": self.recipient,
                    "amount": str(self.amount),
                    "padding": self.padding,
                }
            },
        }


@dataclass
class ClaimAllocationIntent:
    """Notification to the funding source that one allocation was claimed."""
    contract: str
    code_hash: str
    allocation_id: int

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "contract_addr": self.contract,
            "code_hash": self.code_hash,
            "msg": {"claim_allocation": {"allocation_id": self.allocation_id}},
        }


Intent = Union[TransferIntent, ClaimAllocationIntent]


# ============================================================================
# RESPONSE
# ============================================================================

@dataclass
class Response:
    """
    Result of an instantiate or execute call.

    Intents are requests for the host to execute after this response's
    state changes are committed.
    """
    messages: List[Intent] = field(default_factory=list)
    attributes: List[Tuple[str, str]] = field(default_factory=list)

    def add_message(self, intent: Intent) -> "Response":
        self.messages.append(intent)
        return self

    def add_attribute(self, key: str, value: Any) -> "Response":
        self.attributes.append((key, str(value)))
        return self

    def attribute(self, key: str) -> Optional[str]:
        """First attribute value for key, or None."""
        for name, value in self.attributes:
            if name == key:
                return value
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "messages": [m.to_dict() for m in self.messages],
            "attributes": [{"key": k, "value": v} for k, v in self.attributes],
        }
