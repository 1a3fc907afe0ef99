"""
CKB node JSON-RPC backend (with the built-in indexer enabled).
"""

from __future__ import annotations

import os
from typing import Any

import httpx
from ckbcore.errors import BroadcastRejectedError, CellLookupError
from ckbcore.models import SignedTransaction, hex_to_int, to_hex
from loguru import logger

from ckbwallet.backends.base import CkbBackend

DEFAULT_RPC_URL = "http://127.0.0.1:8114"

# Timeout for RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0

# Environment variable to enable sensitive logging (full transactions, lock args)
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")


class CkbRpcError(ValueError):
    """JSON-RPC level error returned by the node."""

    def __init__(self, code: Any, message: str):
        self.code = code
        self.message = message
        super().__init__(f"RPC error {code}: {message}")


class CkbRpcBackend(CkbBackend):
    """
    Backend talking to a CKB node over JSON-RPC.
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        outputs_validator: str | None = "passthrough",
        client: httpx.AsyncClient | None = None,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        self.outputs_validator = outputs_validator
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

    async def _rpc_call(self, method: str, params: list | None = None) -> Any:
        """
        Make an RPC call to the node.

        Raises:
            CkbRpcError: On RPC errors
            httpx.HTTPError: On connection/timeout errors
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            response = await self.client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise

        if data.get("error"):
            error_info = data["error"]
            raise CkbRpcError(
                error_info.get("code", "unknown"), error_info.get("message", str(error_info))
            )

        return data.get("result")

    async def get_cells(
        self,
        search_key: dict[str, Any],
        order: str,
        limit: int,
        after: str | None = None,
    ) -> dict[str, Any]:
        if SENSITIVE_LOGGING:
            logger.debug(f"get_cells search_key={search_key} after={after}")
        try:
            result = await self._rpc_call("get_cells", [search_key, order, to_hex(limit), after])
        except (CkbRpcError, httpx.HTTPError, ValueError) as e:
            raise CellLookupError(f"get_cells failed: {e}") from e

        if not isinstance(result, dict):
            raise CellLookupError(f"get_cells returned malformed result: {result!r}")
        return result

    async def get_block_by_number(self, block_number: int) -> dict[str, Any] | None:
        try:
            return await self._rpc_call("get_block_by_number", [to_hex(block_number)])
        except (CkbRpcError, httpx.HTTPError, ValueError) as e:
            raise CellLookupError(f"get_block_by_number({block_number}) failed: {e}") from e

    async def get_tip_block_number(self) -> int:
        try:
            result = await self._rpc_call("get_tip_block_number")
        except (CkbRpcError, httpx.HTTPError, ValueError) as e:
            raise CellLookupError(f"get_tip_block_number failed: {e}") from e
        return hex_to_int(result)

    async def broadcast_transaction(self, tx: SignedTransaction) -> str:
        tx_json = tx.to_json()
        if SENSITIVE_LOGGING:
            logger.debug(f"send_transaction: {tx_json}")

        params: list[Any] = [tx_json]
        if self.outputs_validator is not None:
            params.append(self.outputs_validator)

        try:
            result = await self._rpc_call("send_transaction", params)
        except CkbRpcError as e:
            logger.error(f"Node rejected transaction {to_hex(tx.tx_hash)}: {e.message}")
            raise BroadcastRejectedError(e.message) from e
        except (httpx.HTTPError, ValueError) as e:
            raise BroadcastRejectedError(f"send_transaction failed: {e}") from e

        if not isinstance(result, str):
            raise BroadcastRejectedError(f"send_transaction returned {result!r}")

        logger.info(f"Broadcast transaction {result}")
        return result

    async def close(self) -> None:
        await self.client.aclose()
