"""
Exception types for the deployment engine.

Every failure that can reach the orchestrator boundary derives from
DeployError and carries the step it happened in (when known). Steps convert
DeployError into a FAILED outcome; anything else is a bug and propagates.

Retry classification:
- retryable = True: re-invoking the same step is safe (steps are idempotent)
- retryable = False: operator intervention or a prerequisite step is needed
"""

from typing import Optional


class DeployError(Exception):
    """Base exception for relaymint."""

    retryable = False

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.step = step

    def with_step(self, step: str) -> "DeployError":
        """Attach the step name if not already set and return self."""
        if self.step is None:
            self.step = step
        return self

    def __str__(self) -> str:
        if self.step:
            return f"[{self.step}] {self.message}"
        return self.message


class ConfigInvalid(DeployError):
    """Bad or missing required settings. Raised before any network activity."""
    pass


class PreconditionUnmet(DeployError):
    """Step invoked out of order, or a one-way gate was already closed."""
    pass


class RelayExhausted(DeployError):
    """
    Relay hand-off failed on every attempt.

    Safe to retry by re-invoking the step: the step reconciles live state
    before submitting again.
    """

    retryable = True

    def __init__(self, attempts: int, last_error: Exception, step: Optional[str] = None):
        super().__init__(f"Relay failed after {attempts} attempts: {last_error}", step=step)
        self.attempts = attempts
        self.last_error = last_error


class ConfirmationTimeout(DeployError):
    """The anchor's validity window expired before the ledger confirmed."""

    retryable = True


class LedgerRejected(DeployError):
    """Deterministic on-chain failure (e.g. missing authorization). Not retried."""
    pass


class LedgerUnavailable(DeployError):
    """Ledger read failed (RPC unreachable or malformed response)."""

    retryable = True


class StorageFailure(DeployError):
    """Local identity or checkpoint read/write failed. Fatal."""
    pass


class RelayTransportError(DeployError):
    """
    A single relay attempt failed (network, non-2xx, success=false).

    Internal to the submitter: it is retried and surfaces only as the
    last_error of RelayExhausted.
    """

    retryable = True
