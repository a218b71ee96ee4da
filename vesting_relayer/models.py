"""
Data model shared by the relay pipeline.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from web3 import Web3

# Placeholders written to the audit log for fields a failed stage never produced
SEND_TOKENS_ERROR = "sendTokensError"
SEND_PROOF_ERROR = "sendProofError"

AUDIT_HEADER = [
    "HistoryID",
    "EthereumFrom",
    "PersonalID",
    "Amount",
    "CyberTo",
    "CyberSendTx",
    "EthereumProofTx",
    "Timestamp",
]


@dataclass(frozen=True)
class RelayEvent:
    """A NewLock claim event emitted by the vesting contract."""

    history_id: int
    claimer: str  # Source-chain address of the claimer
    vesting_id: int
    amount: int  # Base units, never float
    target_address: str  # Destination-chain bech32 address
    source_tx_hash: str

    @classmethod
    def from_event_data(cls, event: Any) -> "RelayEvent":
        """Build a RelayEvent from a decoded web3 NewLock event."""
        args = event["args"]
        tx_hash = event["transactionHash"]
        if not isinstance(tx_hash, str):
            tx_hash = Web3.to_hex(tx_hash)
        return cls(
            history_id=int(args["historyId"]),
            claimer=args["claimer"],
            vesting_id=int(args["vestingId"]),
            amount=int(args["amount"]),
            target_address=args["account"],
            source_tx_hash=tx_hash,
        )

    def memo(self) -> str:
        return (
            f"Claim #{self.vesting_id} of {self.claimer}. "
            f"History ID#{self.history_id}. Tx {self.source_tx_hash}"
        )


@dataclass
class AccountState:
    """Target-chain account context, fetched fresh before every transaction."""

    account_number: int
    sequence: int
    chain_id: str
    address: str
    public_key_hex: str


@dataclass
class SubmissionResult:
    """Result of a sync-mode broadcast."""

    tx_hash: str
    result_code: int = 0
    raw_log: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.result_code == 0


@dataclass
class ConfirmationResult:
    """Commit status of a broadcast transaction."""

    tx_hash: str
    result_code: int = 0
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def committed(self) -> bool:
        return self.result_code == 0


@dataclass
class AuditRecord:
    """One row of the relay audit trail."""

    history_id: int
    ethereum_from: str
    personal_id: int
    amount: int
    cyber_to: str
    cyber_send_tx: str = SEND_TOKENS_ERROR
    ethereum_proof_tx: str = SEND_PROOF_ERROR
    timestamp: int = field(default_factory=lambda: int(time.time()))

    @classmethod
    def for_event(cls, event: RelayEvent) -> "AuditRecord":
        """Record for an event with every downstream field still at its sentinel."""
        return cls(
            history_id=event.history_id,
            ethereum_from=event.claimer,
            personal_id=event.vesting_id,
            amount=event.amount,
            cyber_to=event.target_address,
        )

    @property
    def succeeded(self) -> bool:
        return (
            self.cyber_send_tx != SEND_TOKENS_ERROR
            and self.ethereum_proof_tx != SEND_PROOF_ERROR
        )

    def as_row(self) -> list[Any]:
        """Values in AUDIT_HEADER order."""
        return [
            self.history_id,
            self.ethereum_from,
            self.personal_id,
            self.amount,
            self.cyber_to,
            self.cyber_send_tx,
            self.ethereum_proof_tx,
            self.timestamp,
        ]
