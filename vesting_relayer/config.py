"""
Configuration management for the vesting claim relayer.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ValidationError


class Settings(BaseSettings):
    """Environment-based settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Target chain (Cosmos-SDK)
    cyber_rpc_url: str = "http://localhost:26657"
    cyber_chain_id: str = ""
    cyber_private_key: str = ""
    cyber_denom: str = "eul"
    cyber_address_prefix: str = "cyber"
    cyber_account_path: str = "/api/account"
    cyber_broadcast_path: str = "/lcd/txs"
    cyber_tx_path: str = "/lcd/txs"
    http_timeout_seconds: float = 30.0

    # Fee policy. Zero fee is the current policy; chains with a minimum gas
    # price need real values here.
    fee_amount: int = 0
    gas: int = 0

    # Confirmation: wait, then check. More than one attempt turns the single
    # check into a bounded poll.
    confirmation_delay_seconds: float = 21.0
    confirmation_attempts: int = Field(default=1, ge=1)
    confirmation_interval_seconds: float = 7.0

    # Source chain (EVM)
    ethereum_rpc_url: str = "http://localhost:8545"
    ethereum_ws_url: str = "ws://localhost:8546"
    ethereum_contract: str = ""
    ethereum_private_key: str = ""
    ethereum_chain_id: int = 4
    ethereum_gas_price_gwei: str = "1"
    proof_gas_limit: int = 200_000
    receipt_timeout_seconds: float = 120.0

    # Event subscription
    reconnect_base_delay_seconds: float = 3.0
    reconnect_max_delay_seconds: float = 60.0
    event_queue_size: int = Field(default=100, ge=1)

    # Audit log: CSV path or SQLAlchemy URL
    results_path: str = "./results.csv"


@dataclass
class RelayerConfig:
    """Full relayer configuration."""

    settings: Settings

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "RelayerConfig":
        """Load configuration from environment."""
        settings = Settings(_env_file=env_path) if env_path else Settings()
        return cls(settings=settings)

    def missing_keys(self) -> list[str]:
        """Names of required settings that are empty."""
        required = [
            "cyber_rpc_url",
            "cyber_chain_id",
            "cyber_private_key",
            "ethereum_rpc_url",
            "ethereum_ws_url",
            "ethereum_contract",
            "ethereum_private_key",
        ]
        return [name for name in required if not getattr(self.settings, name)]

    def validate_for_run(self) -> None:
        """Fail before startup if a required setting is missing."""
        missing = self.missing_keys()
        if missing:
            raise ValidationError(
                "missing required settings: " + ", ".join(name.upper() for name in missing)
            )
