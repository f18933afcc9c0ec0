"""Tests for the chain bridge JSON-RPC client."""

import pytest
import requests
from decimal import Decimal
from unittest.mock import MagicMock

from chain import (
    ChainBridge,
    ChainBridgeError,
    BridgeConnectionError,
    BridgeAuthError,
    ContractError
)

def make_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} error")
    return response

@pytest.fixture
def bridge():
    client = ChainBridge(url="http://gateway.test", user="", password="", timeout=3,
                         amount_scale=100, enabled=True)
    client.session = MagicMock()
    return client

def test_create_order_sends_minor_units(bridge):
    bridge.session.post.return_value = make_response(
        {"jsonrpc": "2.0", "id": 1, "result": {"success": True, "transactionHash": "0xfeed"}}
    )

    result = bridge.create_order("ORD-001", "medx://orders/ORD-001", Decimal("300.005"))

    assert result == {"success": True, "transaction_hash": "0xfeed"}
    payload = bridge.session.post.call_args.kwargs["json"]
    assert payload["method"] == "createOrder"
    assert payload["params"] == ["ORD-001", "medx://orders/ORD-001", 30001]
    assert bridge.session.post.call_args.kwargs["timeout"] == 3

def test_unsuccessful_reply_is_an_error(bridge):
    bridge.session.post.return_value = make_response(
        {"jsonrpc": "2.0", "id": 1, "result": {"success": False, "error": "paused"}}
    )

    with pytest.raises(ChainBridgeError, match="paused"):
        bridge.create_order("ORD-001", "medx://orders/ORD-001", Decimal("1"))

def test_rpc_error_object(bridge):
    bridge.session.post.return_value = make_response(
        {"jsonrpc": "2.0", "id": 1, "error": {"code": -32002, "message": "duplicate"}},
        status_code=500
    )

    with pytest.raises(ContractError) as exc_info:
        bridge.accept_order("ORD-001")

    assert exc_info.value.code == -32002
    assert exc_info.value.method == "acceptOrder"
    assert exc_info.value.kind == "upstream_failure"

def test_get_order_missing_returns_none(bridge):
    bridge.session.post.return_value = make_response(
        {"jsonrpc": "2.0", "id": 1, "error": {"code": -32001, "message": "Order not found"}}
    )

    assert bridge.get_order("ORD-404") is None

def test_get_order(bridge):
    record = {"orderId": "ORD-001", "amount": 30000, "state": "Created"}
    bridge.session.post.return_value = make_response({"jsonrpc": "2.0", "id": 1, "result": record})

    assert bridge.get_order("ORD-001") == record

def test_auth_failure(bridge):
    bridge.session.post.return_value = make_response({}, status_code=401)

    with pytest.raises(BridgeAuthError):
        bridge.complete_order("ORD-001")

def test_timeout(bridge):
    bridge.session.post.side_effect = requests.exceptions.Timeout()

    with pytest.raises(BridgeConnectionError, match="timed out"):
        bridge.complete_order("ORD-001")

def test_connection_refused(bridge):
    bridge.session.post.side_effect = requests.exceptions.ConnectionError()

    with pytest.raises(BridgeConnectionError):
        bridge.verify_message("0xabc", "sig", "message")

def test_verify_message(bridge):
    bridge.session.post.return_value = make_response({"jsonrpc": "2.0", "id": 1, "result": True})

    assert bridge.verify_message("0xabc", "sig", "message") is True

def test_request_ids_increase(bridge):
    bridge.session.post.return_value = make_response({"jsonrpc": "2.0", "id": 1, "result": "pong"})

    bridge.ping()
    bridge.ping()

    ids = [call.kwargs["json"]["id"] for call in bridge.session.post.call_args_list]
    assert ids == [1, 2]
