"""Typed JSON-RPC client for Bitcoin Core nodes.

The client is the only component that talks to the network. It forwards
requests, parses responses and turns failures into a small set of exception
types so that callers can decide whether an error is fatal (batch scans) or
recoverable (the interactive explorer).
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

import requests
from requests import RequestException, Response

from .config import ConfigurationError, RPCConfig, load_rpc_config

logger = logging.getLogger(__name__)

RPC_METHOD_NOT_FOUND = -32601
RPC_INVALID_PARAMETER = -8
RPC_INVALID_ADDRESS_OR_KEY = -5


class RPCError(RuntimeError):
    """Raised when the node responds with an RPC error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RPCAuthError(RPCTransportError):
    """Raised when the node rejects the configured credentials."""


def format_rpc_hint(error_obj: dict[str, Any] | RPCError | None) -> str | None:
    """Return a human-friendly hint for common Bitcoin Core JSON-RPC errors."""

    if error_obj is None:
        return None

    code = None
    message = ""
    if isinstance(error_obj, RPCError):
        code = error_obj.code
        message = error_obj.message
    elif isinstance(error_obj, dict):
        code = error_obj.get("code")
        message = str(error_obj.get("message", ""))

    if code == RPC_INVALID_ADDRESS_OR_KEY and "-txindex" in message:
        return (
            "The node has no transaction index. Restart bitcoind with -txindex=1, "
            "or pass --block so the transaction can be looked up inside its block."
        )
    if code == RPC_INVALID_ADDRESS_OR_KEY and "block not found" in message.lower():
        return "Check the block hash; the node does not know this block (is it fully synced?)."
    if code == RPC_INVALID_PARAMETER and "out of range" in message.lower():
        return "The requested height is above the node's current tip."
    if code == -28:
        return "The node is still starting up (loading blocks or verifying); retry in a moment."
    return None


class BitcoinRPCClient:
    """Typed JSON-RPC client for Bitcoin Core compatible nodes.

    Each helper maps directly to an RPC method exposed by the node and returns
    the parsed JSON response.
    """

    def __init__(self, config: RPCConfig, timeout: float = 30) -> None:
        self.config = config
        self.timeout = timeout
        self._session = requests.Session()
        self._base_url = config.base_url

    @classmethod
    def from_env(cls) -> "BitcoinRPCClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_rpc_config())

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "1.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self._base_url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                auth=(self.config.user, self.config.password),
                timeout=self.timeout,
            )
        except RequestException as exc:
            logger.debug("RPC connection failed: %s", exc, exc_info=True)
            raise RPCTransportError(
                f"RPC connection to {self._base_url} failed. Ensure bitcoind is running with -server "
                "and that BITCOIN_RPC_* variables (or ~/.ordscope.yaml) point to the right host and port."
            ) from exc

        body = self._parse_body(response)
        if body.get("error"):
            error = body["error"]
            raise RPCError(error.get("code", -1), error.get("message", "unknown"))
        return body.get("result")

    def _parse_body(self, response: Response) -> Dict[str, Any]:
        # Bitcoin Core reports JSON-RPC errors with HTTP 404/500 and a JSON
        # body, so the body is inspected before the status code.
        if response.status_code == 401:
            logger.debug("RPC HTTP error 401 from %s", response.url)
            raise RPCAuthError(
                "Unauthorized (401). Check BITCOIN_RPC_USER/BITCOIN_RPC_PASSWORD or the cookie file.",
                status_code=response.status_code,
            )
        try:
            body = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            if not response.ok:
                logger.debug("RPC HTTP error %s from %s", response.status_code, response.url)
                raise RPCTransportError(
                    f"RPC server returned HTTP {response.status_code}; check the URL and port.",
                    status_code=response.status_code,
                ) from exc
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if not isinstance(body, dict):
            raise RPCTransportError("RPC server returned an unexpected JSON payload")
        if not response.ok and not body.get("error"):
            logger.debug("RPC HTTP error %s from %s", response.status_code, response.url)
            logger.debug("RPC error body: %s", body)
            raise RPCTransportError(
                f"RPC server returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return body

    # Convenience wrappers -------------------------------------------------

    def getblockchaininfo(self) -> Dict[str, Any]:
        return self.call("getblockchaininfo")

    def getblockcount(self) -> int:
        return int(self.call("getblockcount"))

    def getblockhash(self, height: int) -> str:
        return self.call("getblockhash", [height])

    def getblockheader(self, block_hash: str) -> Dict[str, Any]:
        return self.call("getblockheader", [block_hash, True])

    def getblock(self, block_hash: str, verbosity: int = 1) -> Dict[str, Any]:
        return self.call("getblock", [block_hash, verbosity])

    def getrawtransaction(self, txid: str, verbose: bool = False, block_hash: str | None = None) -> Any:
        params: list[Any] = [txid, bool(verbose)]
        if block_hash is not None:
            params.append(block_hash)
        return self.call("getrawtransaction", params)

    def getindexinfo(self) -> Dict[str, Any]:
        return self.call("getindexinfo")
