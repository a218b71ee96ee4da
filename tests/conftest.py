from __future__ import annotations

from typing import Any

import pytest

from vesting_relayer.address import load_private_key, pubkey_to_address
from vesting_relayer.config import RelayerConfig, Settings
from vesting_relayer.models import AccountState, AuditRecord, RelayEvent

# secp256k1 generator point: private key 1
GENERATOR_PRIVATE_KEY = "00" * 31 + "01"
GENERATOR_PUBKEY = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"

RELAY_PRIVATE_KEY = "a3f1" * 16
ETHEREUM_PRIVATE_KEY = "0x" + "4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
CONTRACT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
CLAIMER = "0x" + "aa" * 20


class MemoryAuditLog:
    """Collects audit records in a list."""

    def __init__(self) -> None:
        self.records: list[AuditRecord] = []
        self.closed = False

    def append(self, record: AuditRecord) -> None:
        self.records.append(record)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        cyber_rpc_url="http://cyber.test",
        cyber_chain_id="test-1",
        cyber_private_key=RELAY_PRIVATE_KEY,
        ethereum_rpc_url="http://eth.test",
        ethereum_ws_url="ws://eth.test",
        ethereum_contract=CONTRACT_ADDRESS,
        ethereum_private_key=ETHEREUM_PRIVATE_KEY,
        confirmation_delay_seconds=0,
        confirmation_interval_seconds=0,
    )


@pytest.fixture
def config(settings: Settings) -> RelayerConfig:
    return RelayerConfig(settings=settings)


@pytest.fixture
def relay_key():
    return load_private_key(RELAY_PRIVATE_KEY)


@pytest.fixture
def account_state(relay_key: Any) -> AccountState:
    pubkey_hex = relay_key.public_key.format(compressed=True).hex()
    return AccountState(
        account_number=7,
        sequence=2,
        chain_id="test-1",
        address=pubkey_to_address(pubkey_hex, "cyber"),
        public_key_hex=pubkey_hex,
    )


@pytest.fixture
def relay_event() -> RelayEvent:
    return RelayEvent(
        history_id=1,
        claimer=CLAIMER,
        vesting_id=5,
        amount=1000,
        target_address="cyber1w508d6qejxtdg4y5r3zarvary0c5xw7kaksjxz",
        source_tx_hash="0x" + "ab" * 32,
    )
