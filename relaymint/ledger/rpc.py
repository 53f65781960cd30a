"""
JSON-RPC ledger client over urllib.

Implements LedgerClient against a standard ledger RPC node:
getLatestBlockhash, getAccountInfo, getTokenAccountBalance,
getSignatureStatuses, getBlockHeight.
"""

import base64
import json
import logging
import time
import urllib.error
import urllib.request
from typing import Any, Callable, Dict, List, Optional

from solders.hash import Hash, ParseHashError

from ..core.errors import ConfirmationTimeout, LedgerRejected, LedgerUnavailable
from .client import AccountInfo, Anchor, AssetState, LedgerClient

logger = logging.getLogger(__name__)

CONFIRMED_STATUSES = ("confirmed", "finalized")


class RpcLedgerClient(LedgerClient):
    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        timeout: float = 30.0,
        poll_interval: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._request_id = 0

    def _call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        self._request_id += 1
        body = json.dumps({
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }).encode("utf-8")
        req = urllib.request.Request(
            self.rpc_url,
            data=body,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                payload = json.loads(response.read().decode("utf-8"))
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise LedgerUnavailable(f"RPC {method} failed: {e}") from e

        if "error" in payload:
            err = payload["error"]
            raise LedgerUnavailable(f"RPC {method} error {err.get('code')}: {err.get('message')}")
        return payload.get("result")

    def get_latest_anchor(self) -> Anchor:
        result = self._call("getLatestBlockhash", [{"commitment": self.commitment}])
        try:
            value = result["value"]
            return Anchor(
                blockhash=str(Hash.from_string(value["blockhash"])),
                last_valid_block_height=int(value["lastValidBlockHeight"]),
            )
        except (KeyError, TypeError, ValueError, ParseHashError) as e:
            raise LedgerUnavailable(f"Malformed getLatestBlockhash response: {result!r}") from e

    def get_account_info(self, address: str) -> Optional[AccountInfo]:
        result = self._call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self.commitment}],
        )
        value = (result or {}).get("value")
        if value is None:
            return None
        data = value.get("data") or ["", "base64"]
        return AccountInfo(
            address=address,
            owner=value.get("owner", ""),
            lamports=int(value.get("lamports", 0)),
            data=base64.b64decode(data[0]) if data[0] else b"",
        )

    def get_token_balance(self, account: str) -> Optional[int]:
        if self.get_account_info(account) is None:
            return None
        result = self._call("getTokenAccountBalance", [account, {"commitment": self.commitment}])
        try:
            return int(result["value"]["amount"])
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerUnavailable(f"Malformed getTokenAccountBalance response: {result!r}") from e

    def get_asset(self, address: str) -> Optional[AssetState]:
        result = self._call(
            "getAccountInfo",
            [address, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        value = (result or {}).get("value")
        if value is None:
            return None
        data = value.get("data")
        parsed = data.get("parsed") if isinstance(data, dict) else None
        if not parsed or parsed.get("type") != "mint":
            logger.warning(f"Account {address} exists but is not a token mint")
            return None
        info: Dict[str, Any] = parsed.get("info", {})
        return AssetState(
            address=address,
            supply=int(info.get("supply", 0)),
            decimals=int(info.get("decimals", 0)),
            mint_authority=info.get("mintAuthority"),
            freeze_authority=info.get("freezeAuthority"),
        )

    def get_block_height(self) -> int:
        return int(self._call("getBlockHeight", [{"commitment": self.commitment}]))

    def confirm(self, signature: str, anchor: Anchor) -> None:
        while True:
            result = self._call(
                "getSignatureStatuses",
                [[signature], {"searchTransactionHistory": False}],
            )
            statuses = (result or {}).get("value") or [None]
            status = statuses[0]
            if status is not None:
                if status.get("err") is not None:
                    raise LedgerRejected(f"Transaction {signature} failed on-chain: {status['err']}")
                if status.get("confirmationStatus") in CONFIRMED_STATUSES:
                    return

            height = self.get_block_height()
            if height > anchor.last_valid_block_height:
                raise ConfirmationTimeout(
                    f"Transaction {signature} not confirmed before block height "
                    f"{anchor.last_valid_block_height} (now {height})"
                )
            self._sleep(self.poll_interval)
