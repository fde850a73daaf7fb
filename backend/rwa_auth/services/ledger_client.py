from typing import NamedTuple, Optional
import httpx
from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError

DEFAULT_RPC_URL = "https://rpc.sepolia.mantle.xyz"

# Selector of Solidity's Error(string)
ERROR_STRING_SELECTOR = "0x08c379a0"


class RemoteCallResult(NamedTuple):
    success: bool
    result: Optional[str] = None
    revert_reason: Optional[str] = None


def decode_revert_reason(data: Optional[str]) -> Optional[str]:
    """Decode an ``Error(string)`` revert payload, returning raw data otherwise."""
    if not data or not isinstance(data, str):
        return None
    if not data.startswith(ERROR_STRING_SELECTOR):
        return data
    try:
        (reason,) = abi_decode(["string"], bytes.fromhex(data[len(ERROR_STRING_SELECTOR):]))
    except (ValueError, DecodingError):
        return data
    return reason


class LedgerClient:
    """Opaque JSON-RPC access to the deployed contracts.

    Reads go through ``eth_call``; a state-mutating transaction is observed
    through its receipt. Either way the answer is success or a revert reason.
    No retries: the calling script decides what to do on failure.
    """

    def __init__(self, rpc_url: str = DEFAULT_RPC_URL, timeout: float = 30.0):
        self.rpc_url = rpc_url
        self.timeout = timeout

    async def _rpc(self, method: str, params: list) -> dict:
        client = httpx.AsyncClient(timeout=self.timeout)
        try:
            resp = await client.post(
                self.rpc_url,
                json={"jsonrpc": "2.0", "method": method, "params": params, "id": 1},
            )
            resp.raise_for_status()
            return resp.json()
        finally:
            await client.aclose()

    async def call(self, to: str, data: str, block: str = "latest") -> RemoteCallResult:
        reply = await self._rpc("eth_call", [{"to": to, "data": data}, block])
        error = reply.get("error")
        if error:
            reason = decode_revert_reason(error.get("data")) or error.get("message")
            return RemoteCallResult(success=False, revert_reason=reason)
        return RemoteCallResult(success=True, result=reply.get("result"))

    async def transaction_status(self, tx_hash: str) -> RemoteCallResult:
        reply = await self._rpc("eth_getTransactionReceipt", [tx_hash])
        if reply.get("error"):
            return RemoteCallResult(success=False, revert_reason=reply["error"].get("message"))
        receipt = reply.get("result")
        if not receipt:
            return RemoteCallResult(success=False, revert_reason="Transaction not found or pending")
        if receipt.get("status") != "0x1":
            return RemoteCallResult(success=False, result=tx_hash, revert_reason=receipt.get("revertReason", "Transaction reverted"))
        return RemoteCallResult(success=True, result=tx_hash)
