"""
merkledrop/tests/test_messages.py

Tests for wire message parsing and response serialization.
"""

import base64

import pytest

from merkledrop.errors import DecodeError
from merkledrop.messages import (
    AllocationSendMsg,
    ClaimAllocationIntent,
    ClaimMsg,
    GetConfigQuery,
    GetCurrentRoundQuery,
    HasClaimedQuery,
    ReceiveMsg,
    ResetAirdropMsg,
    Response,
    TransferIntent,
    UpdateConfigMsg,
    encode_receive_payload,
    parse_execute_msg,
    parse_instantiate_msg,
    parse_query_msg,
    parse_receive_payload,
    parse_uint,
)

from conftest import config_dict


class TestParseUint:
    """Tests for decimal string parsing."""

    def test_valid(self):
        assert parse_uint("0", "amount") == 0
        assert parse_uint("340282366920938463463374607431768211455", "amount") == 2 ** 128 - 1

    def test_leading_zeros_canonicalized(self):
        assert parse_uint("0042", "amount") == 42

    @pytest.mark.parametrize("value", ["", "-1", "1.5", "1e3", " 1", "0x10", 10, None, True])
    def test_invalid(self, value):
        with pytest.raises(DecodeError):
            parse_uint(value, "amount")


class TestExecuteMessages:
    """Tests for parse_execute_msg."""

    def test_claim(self):
        msg = parse_execute_msg({"claim": {"amount": "100", "proof": ["0xab", "cd"]}})
        assert msg == ClaimMsg(amount=100, proof=["0xab", "cd"])

    def test_claim_requires_proof(self):
        with pytest.raises(DecodeError):
            parse_execute_msg({"claim": {"amount": "100"}})

    def test_claim_proof_must_be_strings(self):
        with pytest.raises(DecodeError):
            parse_execute_msg({"claim": {"amount": "100", "proof": [1, 2]}})

    def test_reset_airdrop(self):
        msg = parse_execute_msg({"reset_airdrop": {"merkle_root": "0xabcd", "total_stake": "400"}})
        assert msg == ResetAirdropMsg(merkle_root="0xabcd", total_stake=400)

    def test_update_config(self):
        msg = parse_execute_msg({"update_config": {"config": config_dict(allocation_id=2)}})
        assert isinstance(msg, UpdateConfigMsg)
        assert msg.config.owner == "owner"
        assert msg.config.allocation_id == 2

    def test_receive(self):
        msg = parse_execute_msg({
            "receive": {"sender": "alloc", "from": "alloc", "amount": "800", "msg": "e30="}
        })
        assert msg == ReceiveMsg(sender="alloc", origin="alloc", amount=800, msg="e30=", memo=None)

    @pytest.mark.parametrize("data", [
        {},
        {"claim": {}, "reset_airdrop": {}},
        {"unknown": {}},
        {"claim": "100"},
        ["claim"],
        "claim",
    ])
    def test_malformed_envelope(self, data):
        with pytest.raises(DecodeError):
            parse_execute_msg(data)


class TestQueryMessages:
    """Tests for parse_query_msg."""

    def test_variants(self):
        assert parse_query_msg({"get_current_round": {}}) == GetCurrentRoundQuery()
        assert parse_query_msg({"get_config": None}) == GetConfigQuery()
        assert parse_query_msg({"has_claimed": {"address": "addrA"}}) == HasClaimedQuery("addrA")

    def test_has_claimed_requires_address(self):
        with pytest.raises(DecodeError):
            parse_query_msg({"has_claimed": {}})
        with pytest.raises(DecodeError):
            parse_query_msg({"has_claimed": {"address": "has space"}})


class TestConfigParsing:
    """Tests for instantiate config validation."""

    def test_defaults(self):
        msg = parse_instantiate_msg(config_dict())
        assert msg.config.allocation_id == 4
        assert msg.config.reward_token == "token"

    def test_missing_field(self):
        data = config_dict()
        del data["funding_source"]
        with pytest.raises(DecodeError):
            parse_instantiate_msg(data)

    @pytest.mark.parametrize("allocation_id", [-1, "4", True, 1.0])
    def test_invalid_allocation_id(self, allocation_id):
        with pytest.raises(DecodeError):
            parse_instantiate_msg(config_dict(allocation_id=allocation_id))


class TestReceivePayload:
    """Tests for the base64 receive payload."""

    def test_encode_then_parse(self):
        assert parse_receive_payload(encode_receive_payload(4)) == AllocationSendMsg(allocation_id=4)

    def test_wire_shape(self):
        raw = base64.b64decode(encode_receive_payload(4))
        assert raw == b'{"allocation_send": {"allocation_id": 4}}'

    @pytest.mark.parametrize("payload", [
        "!!!",
        base64.b64encode(b"not json").decode(),
        base64.b64encode(b'{"other": {}}').decode(),
        base64.b64encode(b'{"allocation_send": {}}').decode(),
        base64.b64encode(b'{"allocation_send": {"allocation_id": "4"}}').decode(),
    ])
    def test_invalid(self, payload):
        with pytest.raises(DecodeError):
            parse_receive_payload(payload)


class TestResponse:
    """Tests for Response and intents."""

    def test_attributes_are_strings(self):
        response = Response().add_attribute("claim_amount", 200).add_attribute("action", "claim")
        assert response.attribute("claim_amount") == "200"
        assert response.attribute("missing") is None
        assert response.to_dict()["attributes"] == [
            {"key": "claim_amount", "value": "200"},
            {"key": "action", "value": "claim"},
        ]

    def test_intent_serialization(self):
        response = (
            Response()
            .add_message(TransferIntent("token", "th", "addrA", 2 ** 127, 256))
            .add_message(ClaimAllocationIntent("alloc", "ah", 4))
        )
        transfer, allocation = response.to_dict()["messages"]
        assert transfer["msg"]["transfer"]["amount"] == str(2 ** 127)
        assert transfer["msg"]["transfer"]["padding"] == 256
        assert allocation == {
            "contract_addr": "alloc",
            "code_hash": "ah",
            "msg": {"claim_allocation": {"allocation_id": 4}},
        }
