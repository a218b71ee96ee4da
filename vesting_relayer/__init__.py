"""
Vesting Claim Relayer

Watches the vesting contract for NewLock claim events, pays each claim out
with a hand-signed transfer on the Cosmos-SDK target chain, then records the
transfer hash back on the vesting contract via addProof. Every attempt is
appended to an audit log.

Usage:
    # Show the relay's target-chain address
    vesting-relayer address

    # Inspect the relay account's number and sequence
    vesting-relayer account

    # Run the relayer
    vesting-relayer run --config .env
"""

__version__ = "0.1.0"

from .config import RelayerConfig, Settings
from .context import RelayContext
from .cyber import CyberClient
from .errors import ChainRejectionError, RelayError, SigningError, TransportError, ValidationError
from .ethereum import ProofWriter
from .listener import NewLockSubscription
from .models import SEND_PROOF_ERROR, SEND_TOKENS_ERROR, AccountState, AuditRecord, RelayEvent
from .relayer import ClaimRelayer

__all__ = [
    "__version__",
    "RelayerConfig",
    "Settings",
    "RelayContext",
    "CyberClient",
    "ProofWriter",
    "NewLockSubscription",
    "ClaimRelayer",
    "RelayEvent",
    "AccountState",
    "AuditRecord",
    "SEND_TOKENS_ERROR",
    "SEND_PROOF_ERROR",
    "RelayError",
    "TransportError",
    "ValidationError",
    "ChainRejectionError",
    "SigningError",
]
