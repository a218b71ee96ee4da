"""
Error taxonomy for the relay pipeline.

Every stage raises one of these; the orchestrator catches them once and
turns them into an audit record.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for relay pipeline failures."""


class TransportError(RelayError):
    """An RPC endpoint was unreachable or answered with an HTTP error."""


class ValidationError(RelayError):
    """A required context field (account number, sequence, chain id, key) is missing or malformed."""


class ChainRejectionError(RelayError):
    """A chain refused a transaction (non-zero result code or error event)."""

    def __init__(self, message: str, code: Optional[int] = None, tx_hash: Optional[str] = None):
        self.code = code
        self.tx_hash = tx_hash
        detail = message
        if code is not None:
            detail = f"{detail} (code {code})"
        if tx_hash:
            detail = f"{detail} [tx {tx_hash}]"
        super().__init__(detail)


class SigningError(RelayError):
    """Unexpected failure while producing a signature."""
