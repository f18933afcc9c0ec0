"""Chain bridge module for anchoring orders on the supply-chain contract.

The contract is reached through a JSON-RPC 2.0 gateway that holds the signing
key and exposes the contract calls as RPC methods (createOrder, getOrder,
acceptOrder, completeOrder) plus verifyMessage for wallet signatures. The
gateway's own gas and confirmation handling is opaque to this service: a call
either returns a result or fails, and failures are never retried here.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import requests

from config import settings_conf

logger = logging.getLogger(__name__)

class ChainBridgeError(Exception):
    """Base exception for chain bridge errors"""
    kind = 'upstream_failure'

    def __init__(self, message: str, code: Optional[int] = None, method: Optional[str] = None):
        self.code = code
        self.method = method
        super().__init__(f"Bridge Error [{code}] in {method}: {message}" if code else message)

class BridgeConnectionError(ChainBridgeError):
    """Raised when connection to the gateway fails"""
    pass

class BridgeAuthError(ChainBridgeError):
    """Raised when the gateway rejects our credentials"""
    pass

class BridgeDisabledError(ChainBridgeError):
    """Raised when a flow needs the bridge but it is switched off"""
    pass

class ContractError(ChainBridgeError):
    """The gateway reported a failed or reverted contract call

    Common error codes:
    -32000 - Execution reverted
    -32001 - Order not found
    -32002 - Order already exists
    -32003 - Invalid order state for this call
    -32602 - Invalid params
    """
    ERROR_MESSAGES = {
        -32000: "Execution reverted",
        -32001: "Order not found",
        -32002: "Order already exists",
        -32003: "Invalid order state",
        -32602: "Invalid params",
    }

    def __init__(self, message: str, code: int, method: str):
        standard_msg = self.ERROR_MESSAGES.get(code, "Unknown error")
        full_msg = f"{standard_msg} - {message}" if message != standard_msg else message
        super().__init__(full_msg, code, method)

ORDER_NOT_FOUND = -32001

class RPCMethod:
    """Descriptor class for RPC methods"""
    def __init__(self, method_name: str):
        self.method_name = method_name

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self

        def caller(*args) -> Any:
            return obj._call_method(self.method_name, *args)

        return caller

class ChainBridge:
    """JSON-RPC client for the contract gateway"""

    def __init__(
        self,
        url: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[int] = None,
        amount_scale: Optional[int] = None,
        enabled: Optional[bool] = None
    ):
        """Initialize the client, falling back to settings.conf for anything not given"""
        self.url = url or settings_conf['chain_rpc_url']
        self.timeout = timeout or settings_conf['chain_rpc_timeout']
        self.amount_scale = amount_scale or settings_conf['amount_scale']
        self.enabled = settings_conf['chain_enabled'] if enabled is None else enabled

        self.session = requests.Session()
        user = user if user is not None else settings_conf['chain_rpc_user']
        password = password if password is not None else settings_conf['chain_rpc_password']
        if user:
            self.session.auth = (user, password)
        self.session.headers['content-type'] = 'application/json'

        self._request_id = 0

    def _get_request_id(self) -> int:
        """Get unique request ID"""
        self._request_id += 1
        return self._request_id

    def _call_method(self, method: str, *args) -> Any:
        """Make an RPC call to the gateway

        Raises:
            BridgeConnectionError: Connection to gateway failed
            BridgeAuthError: Authentication failed
            ContractError: Gateway returned an error object
        """
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": list(args),
            "id": self._get_request_id()
        }

        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise BridgeConnectionError(
                f"Request timed out after {self.timeout} seconds"
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise BridgeConnectionError(
                f"Failed to connect to chain gateway at {self.url}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise BridgeConnectionError(f"Request failed: {str(e)}") from e

        if response.status_code == 401:
            raise BridgeAuthError("Authentication failed - check chain_rpc_user/chain_rpc_password")

        # Try to parse the body even on HTTP errors, it may carry an RPC error
        try:
            result = response.json()
        except ValueError as e:
            raise BridgeConnectionError(
                f"Invalid response format (HTTP {response.status_code}): {str(e)}"
            ) from e

        if isinstance(result, dict) and result.get('error') is not None:
            error = result['error']
            raise ContractError(
                error.get('message', 'Unknown error'),
                error.get('code', -32000),
                method
            )

        try:
            response.raise_for_status()
            return result['result']
        except requests.exceptions.HTTPError as e:
            raise BridgeConnectionError(f"HTTP error occurred: {str(e)}") from e
        except (KeyError, TypeError) as e:
            raise BridgeConnectionError(f"Invalid response format: {str(e)}") from e

    # Contract methods exposed by the gateway
    createOrder = RPCMethod('createOrder')
    getOrder = RPCMethod('getOrder')
    acceptOrder = RPCMethod('acceptOrder')
    completeOrder = RPCMethod('completeOrder')
    verifyMessage = RPCMethod('verifyMessage')
    ping = RPCMethod('ping')

    def to_chain_amount(self, amount: Decimal) -> int:
        """Convert a decimal amount to the contract's integer minor units."""
        scaled = Decimal(str(amount)) * self.amount_scale
        return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))

    def _require_success(self, method: str, result: Any) -> Dict[str, Any]:
        if not isinstance(result, dict) or not result.get('success'):
            reason = result.get('error') if isinstance(result, dict) else result
            raise ContractError(f"call did not succeed: {reason}", -32000, method)
        return {
            'success': True,
            'transaction_hash': result.get('transactionHash') or result.get('transactionHandle')
        }

    def create_order(self, order_id: str, metadata_uri: str, amount: Decimal) -> Dict[str, Any]:
        """Anchor a new order on chain.

        Returns:
            Dict with success flag and transaction_hash
        """
        chain_amount = self.to_chain_amount(amount)
        logger.info(f"Anchoring order {order_id} on chain (amount={chain_amount})")
        result = self.createOrder(order_id, metadata_uri, chain_amount)
        return self._require_success('createOrder', result)

    def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        """Fetch the on-chain order record, or None if the contract has no such order."""
        try:
            return self.getOrder(order_id) or None
        except ContractError as e:
            if e.code == ORDER_NOT_FOUND:
                return None
            raise

    def accept_order(self, order_id: str) -> Dict[str, Any]:
        logger.info(f"Accepting order {order_id} on chain")
        return self._require_success('acceptOrder', self.acceptOrder(order_id))

    def complete_order(self, order_id: str) -> Dict[str, Any]:
        logger.info(f"Completing order {order_id} on chain")
        return self._require_success('completeOrder', self.completeOrder(order_id))

    def verify_message(self, address: str, signature: str, message: str) -> bool:
        """Check that `signature` over `message` was produced by `address`."""
        return bool(self.verifyMessage(address, signature, message))

# Create global instance
bridge = ChainBridge()

__all__ = [
    'bridge',
    'ChainBridge',
    'ChainBridgeError',
    'BridgeConnectionError',
    'BridgeAuthError',
    'BridgeDisabledError',
    'ContractError'
]
