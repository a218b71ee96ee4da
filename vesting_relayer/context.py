"""
Process-wide relay context, built once at startup.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from coincurve import PrivateKey

from .address import load_private_key, pubkey_to_address
from .audit import AuditLog, open_audit_log
from .config import RelayerConfig, Settings
from .cyber import CyberClient
from .ethereum import ProofWriter

logger = structlog.get_logger()


@dataclass
class RelayContext:
    """Clients, sinks and key material shared by every relay."""

    settings: Settings
    cyber: CyberClient
    proof_writer: ProofWriter
    audit: AuditLog
    signing_key: PrivateKey
    public_key_hex: str
    address: str

    @classmethod
    def from_config(
        cls,
        config: RelayerConfig,
        cyber: Optional[CyberClient] = None,
        proof_writer: Optional[ProofWriter] = None,
        audit: Optional[AuditLog] = None,
    ) -> "RelayContext":
        settings = config.settings
        signing_key = load_private_key(settings.cyber_private_key)
        public_key_hex = signing_key.public_key.format(compressed=True).hex()
        address = pubkey_to_address(public_key_hex, settings.cyber_address_prefix)

        context = cls(
            settings=settings,
            cyber=cyber or CyberClient.from_settings(settings),
            proof_writer=proof_writer or ProofWriter.from_settings(settings),
            audit=audit or open_audit_log(settings.results_path),
            signing_key=signing_key,
            public_key_hex=public_key_hex,
            address=address,
        )

        logger.info(
            "relay_context_initialized",
            cyber_rpc=settings.cyber_rpc_url,
            chain_id=settings.cyber_chain_id,
            relay_address=address,
            proof_sender=context.proof_writer.address,
            results=settings.results_path,
        )
        return context

    async def aclose(self) -> None:
        await self.cyber.aclose()
        self.audit.close()
