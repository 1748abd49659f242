"""JSON-RPC client for read-only queries against a Creditcoin node.

Substrate nodes answer plain JSON-RPC over HTTP on the same port as their
websocket endpoint. Status queries (chain head, runtime version, raw storage)
go through this thin ``requests`` client so they never need to download and
decode runtime metadata. Extrinsic submission, which needs metadata and a
subscription, lives in :mod:`creditcoin_cli.client`.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

import requests
from requests import RequestException, Response

from .config import ConfigurationError, NodeConfig

logger = logging.getLogger(__name__)

CODE_STORAGE_KEY = "0x" + b":code".hex()


class RPCError(RuntimeError):
    """Raised when the node responds with a JSON-RPC error."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        detail = f"RPC error {code}: {message}"
        if data:
            detail += f" ({data})"
        super().__init__(detail)
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def from_response(cls, error: Dict[str, Any]) -> "RPCError":
        return cls(error.get("code", -1), error.get("message", "unknown"), error.get("data"))


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | None) -> str | None:
    """Return a human-friendly hint for common Substrate JSON-RPC errors."""

    if error_obj is None:
        return None

    code = None
    message = ""
    data = ""
    if isinstance(error_obj, RPCError):
        code = error_obj.code
        message = error_obj.message
        data = str(error_obj.data or "")
    elif isinstance(error_obj, dict):
        code = error_obj.get("code")
        message = str(error_obj.get("message", ""))
        data = str(error_obj.get("data", ""))

    detail = f"{message} {data}".lower()
    if code == 1010 and "pay some fees" in detail:
        return (
            "The signing account cannot pay the transaction fee. Fund it (for example with "
            "`send-extrinsic set-balance`) or pick another --suri."
        )
    if code == 1010 and "bad signature" in detail:
        return (
            "The node rejected the signature. Check that --suri matches the chain's key type and "
            "that the runtime metadata is current."
        )
    if code == 1010:
        return "The node considers the transaction invalid; check the call arguments and signer."
    if code == 1012:
        return "The transaction is temporarily banned; wait for the pool to clear before resubmitting."
    if code == 1013:
        return "This exact transaction is already in the pool; wait for it instead of resubmitting."
    if code == 1014:
        return (
            "Another transaction with the same nonce is pending. Wait for it to be included "
            "before sending a new one from this account."
        )
    if code == -32601:
        return "The node does not expose this RPC method; check --endpoint/--rpc-url and the node's --rpc-methods."
    return None


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ChainRPCClient:
    """Typed JSON-RPC client for Creditcoin nodes.

    Each helper maps directly onto an RPC method exposed by the node and
    returns the parsed ``result`` value.
    """

    def __init__(self, config: NodeConfig) -> None:
        self.config = config
        self._session = requests.Session()
        self._url = config.http_url

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self._url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                timeout=self.config.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"RPC connection to {self._url} failed. Ensure the node is running with its RPC "
                "server enabled and that --endpoint/--rpc-url (or CTC_* variables) point to it."
            ) from exc
        try:
            self._raise_for_status(response)
        except requests.HTTPError as exc:
            raise RPCTransportError(
                "RPC server returned an HTTP error; check --rpc-url and the node's --rpc-cors/--rpc-methods settings.",
                status_code=response.status_code,
            ) from exc
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if not isinstance(result, dict):
            raise RPCTransportError("RPC server returned an unexpected response shape")
        if result.get("error"):
            raise RPCError.from_response(result["error"])
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if not response.ok:
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            logger.debug("RPC error body: %s", response.text)
        response.raise_for_status()

    # Convenience wrappers -------------------------------------------------

    def chain_get_block_hash(self, number: int | None = None) -> str | None:
        params = [] if number is None else [number]
        return self.call("chain_getBlockHash", params)

    def state_get_runtime_version(self, at: str | None = None) -> Dict[str, Any]:
        return self.call("state_getRuntimeVersion", [] if at is None else [at])

    def state_get_storage(self, key: str, at: str | None = None) -> str | None:
        params: list[Any] = [key]
        if at is not None:
            params.append(at)
        return self.call("state_getStorage", params)

    def get_code(self, at: str | None = None) -> bytes | None:
        """Return the runtime code blob stored under ``:code``."""

        code_hex = self.state_get_storage(CODE_STORAGE_KEY, at)
        if code_hex is None:
            return None
        return bytes.fromhex(code_hex[2:] if code_hex.startswith("0x") else code_hex)


__all__ = [
    "CODE_STORAGE_KEY",
    "ChainRPCClient",
    "ConfigurationError",
    "RPCError",
    "RPCTransportError",
    "format_rpc_hint",
]
