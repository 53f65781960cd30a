"""
Relay submitter: fee-delegated submission with retry and confirmation.

Flow for one operation:
1. Resolve a fresh anchor right before dispatch
2. Set the relay as fee payer, partially sign with the identity and any
   extra keypairs wherever the transaction needs their signature
3. POST {"signedPayloadBase64": ...} to the relay (up to 3 attempts, 1s apart)
4. Block until the ledger confirms within the anchor's window

Only the relay hand-off is retried. On-chain rejection and anchor expiry
are terminal for the call; re-invoking the whole step is the recovery path.
"""

import base64
import json
import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from ..core.config import DeployConfig
from ..core.errors import LedgerRejected, RelayExhausted, RelayTransportError
from ..core.metrics import track_relay_attempt
from ..identity.keys import Identity
from ..ledger.client import Anchor, LedgerClient
from ..operations.model import Operation

logger = logging.getLogger(__name__)

DRY_RUN_SIGNATURE = "DRY_RUN_SIGNATURE"

# Stands in for a real anchor in dry runs (no network access at all).
DRY_RUN_ANCHOR = Anchor(blockhash="11111111111111111111111111111111", last_valid_block_height=0)

PAYLOAD_PREVIEW_CHARS = 120


@dataclass(frozen=True)
class SubmissionResult:
    signature: str
    dry_run: bool = False
    elapsed_ms: int = 0
    payload_size: int = 0


class RelayTransport:
    """
    Request/response channel to the relay over urllib.

    post() returns (http_status, decoded_json_body) and raises
    RelayTransportError when no usable response arrived.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def post(self, url: str, body: Dict[str, Any], headers: Dict[str, str]) -> Tuple[int, Dict[str, Any]]:
        req = urllib.request.Request(
            url,
            data=json.dumps(body).encode("utf-8"),
            headers=headers,
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                status = response.status
                raw = response.read()
        except urllib.error.HTTPError as e:
            status = e.code
            raw = e.read() or b"{}"
        except (urllib.error.URLError, OSError) as e:
            raise RelayTransportError(f"Relay unreachable: {e}") from e

        try:
            decoded = json.loads(raw.decode("utf-8") or "{}")
        except (UnicodeDecodeError, ValueError) as e:
            raise RelayTransportError(f"Relay returned non-JSON response (HTTP {status})") from e
        if not isinstance(decoded, dict):
            raise RelayTransportError(f"Relay returned unexpected body (HTTP {status})")
        return status, decoded


class RelaySubmitter:
    def __init__(
        self,
        config: DeployConfig,
        ledger: LedgerClient,
        identity: Identity,
        transport: Optional[RelayTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.ledger = ledger
        self.identity = identity
        self.transport = transport or RelayTransport()
        self._sleep = sleep

    def submit(
        self,
        operation: Operation,
        extra_signers: Sequence[Identity] = (),
        dry_run: Optional[bool] = None,
    ) -> SubmissionResult:
        """
        Sign, hand off to the relay and wait for confirmation.

        Args:
            operation: Unsigned operation
            extra_signers: Additional keypairs the operation needs (e.g. new asset)
            dry_run: Override config.dry_run for this call

        Returns:
            SubmissionResult (signature is DRY_RUN_SIGNATURE in dry runs)

        Raises:
            RelayExhausted: Every relay attempt failed
            LedgerRejected: Relay or ledger deterministically rejected the operation
            ConfirmationTimeout: Anchor window expired before confirmation
        """
        dry_run = self.config.dry_run if dry_run is None else dry_run
        start = time.monotonic()

        anchor = DRY_RUN_ANCHOR if dry_run else self.ledger.get_latest_anchor()
        operation.prepare(fee_payer=self.config.relayer_pubkey, anchor=anchor)
        required = operation.required_signers
        operation.sign(*[s for s in (self.identity, *extra_signers) if s.address in required])

        missing = [a for a in operation.missing_signers() if a != self.config.relayer_pubkey]
        if missing:
            raise ValueError(f"{operation!r} is missing signatures from {missing}")

        payload = base64.b64encode(operation.serialize()).decode("ascii")

        if dry_run:
            track_relay_attempt("dry_run")
            logger.info(f"[DRY_RUN] {operation!r} base64: {payload[:PAYLOAD_PREVIEW_CHARS]}...")
            logger.info(f"[DRY_RUN] Transaction size: {len(payload)} bytes")
            return SubmissionResult(
                signature=DRY_RUN_SIGNATURE,
                dry_run=True,
                payload_size=len(payload),
            )

        headers = {"Content-Type": "application/json"}
        if self.config.relayer_api_key:
            headers["Authorization"] = f"Bearer {self.config.relayer_api_key}"

        max_attempts = self.config.relay_max_attempts
        last_error: Optional[RelayTransportError] = None
        signature = None
        for attempt in range(1, max_attempts + 1):
            try:
                signature = self._dispatch(payload, headers, attempt)
                break
            except RelayTransportError as e:
                track_relay_attempt("transport_error")
                last_error = e
                logger.warning(f"Relay attempt {attempt}/{max_attempts} failed: {e}")
                if attempt < max_attempts:
                    self._sleep(self.config.relay_retry_delay)

        if signature is None:
            raise RelayExhausted(max_attempts, last_error)

        track_relay_attempt("accepted")
        logger.info(f"Relay accepted {operation!r}: {signature}, awaiting confirmation")
        self.ledger.confirm(signature, anchor)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            f"Transaction confirmed: {self.config.explorer_url('tx', signature)} ({elapsed_ms}ms)"
        )
        return SubmissionResult(
            signature=signature,
            elapsed_ms=elapsed_ms,
            payload_size=len(payload),
        )

    def _dispatch(self, payload: str, headers: Dict[str, str], attempt: int) -> str:
        status, body = self.transport.post(
            self.config.relayer_url,
            {"signedPayloadBase64": payload},
            headers,
        )

        if status == 422 or body.get("rejected") is True:
            track_relay_attempt("rejected")
            raise LedgerRejected(f"Relay rejected operation: {body.get('error') or f'HTTP {status}'}")

        if not 200 <= status < 300:
            raise RelayTransportError(f"Relay HTTP {status}: {body.get('error', 'no error message')}")

        if not body.get("success"):
            raise RelayTransportError(body.get("error") or f"Relayer error (attempt {attempt})")

        signature = body.get("txSignature")
        if not signature:
            raise RelayTransportError("Relay reported success without txSignature")
        return signature
