"""
Source-chain side: writing proof-of-relay transactions to the vesting contract.
"""

from typing import Any, Optional

import structlog
from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from .models import SEND_PROOF_ERROR

logger = structlog.get_logger()


# Vesting contract ABI (minimal for NewLock and addProof)
VESTING_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": False, "name": "historyId", "type": "uint256"},
            {"indexed": False, "name": "claimer", "type": "address"},
            {"indexed": False, "name": "vestingId", "type": "uint256"},
            {"indexed": False, "name": "amount", "type": "uint256"},
            {"indexed": False, "name": "account", "type": "string"},
        ],
        "name": "NewLock",
        "type": "event",
    },
    {
        "inputs": [
            {"name": "claimer", "type": "address"},
            {"name": "vestingId", "type": "uint256"},
            {"name": "proof", "type": "string"},
        ],
        "name": "addProof",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]


class ProofWriter:
    """Signs and submits addProof transactions from the relay's own account."""

    def __init__(
        self,
        w3: AsyncWeb3,
        contract_address: str,
        private_key: str,
        chain_id: int,
        gas_price_gwei: str = "1",
        gas_limit: int = 200_000,
        receipt_timeout: float = 120.0,
    ):
        self.w3 = w3
        self.account = Account.from_key(private_key)
        self.chain_id = chain_id
        self.gas_price = Web3.to_wei(gas_price_gwei, "gwei")
        self.gas_limit = gas_limit
        self.receipt_timeout = receipt_timeout
        self.contract = w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=VESTING_ABI,
        )

        logger.info(
            "proof_writer_initialized",
            contract=contract_address,
            sender=self.account.address,
            chain_id=chain_id,
        )

    @classmethod
    def from_settings(cls, settings: Any, w3: Optional[AsyncWeb3] = None) -> "ProofWriter":
        if w3 is None:
            w3 = AsyncWeb3(AsyncHTTPProvider(settings.ethereum_rpc_url))
        return cls(
            w3=w3,
            contract_address=settings.ethereum_contract,
            private_key=settings.ethereum_private_key,
            chain_id=settings.ethereum_chain_id,
            gas_price_gwei=settings.ethereum_gas_price_gwei,
            gas_limit=settings.proof_gas_limit,
            receipt_timeout=settings.receipt_timeout_seconds,
        )

    @property
    def address(self) -> str:
        return self.account.address

    async def build_proof_tx(self, claimer: str, vesting_id: int, proof: str) -> dict[str, Any]:
        """Build the addProof call with the next pending nonce of the relay account."""
        # Always live state: the relay is the only sender from this account
        nonce = await self.w3.eth.get_transaction_count(self.account.address, "pending")
        return await self.contract.functions.addProof(
            Web3.to_checksum_address(claimer), vesting_id, proof
        ).build_transaction(
            {
                "from": self.account.address,
                "chainId": self.chain_id,
                "nonce": nonce,
                "gas": self.gas_limit,
                "gasPrice": self.gas_price,
            }
        )

    async def send_proof(self, claimer: str, vesting_id: int, proof: str) -> str:
        """
        Record the target-chain tx hash on the vesting contract.

        Returns:
            The mined transaction hash, or SEND_PROOF_ERROR if submission
            or mining failed.
        """
        tx = await self.build_proof_tx(claimer, vesting_id, proof)
        signed = self.account.sign_transaction(tx)

        try:
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
            logger.info(
                "proof_tx_sent",
                tx_hash=Web3.to_hex(tx_hash),
                claimer=claimer,
                vesting_id=vesting_id,
                nonce=tx["nonce"],
            )
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout
            )
        except Exception as e:
            logger.error("proof_tx_error", claimer=claimer, vesting_id=vesting_id, error=str(e))
            return SEND_PROOF_ERROR

        mined_hash = Web3.to_hex(receipt["transactionHash"])
        if receipt["status"] != 1:
            logger.error("proof_tx_reverted", tx_hash=mined_hash)
            return SEND_PROOF_ERROR

        logger.info("proof_tx_confirmed", tx_hash=mined_hash, gas_used=receipt["gasUsed"])
        return mined_hash

