"""
Target-chain REST client: account state, sync broadcast and commit check.
"""

import asyncio
from typing import Any, Optional

import httpx
import structlog

from .errors import ChainRejectionError, TransportError, ValidationError
from .models import AccountState, ConfirmationResult, SubmissionResult

logger = structlog.get_logger()


def _extract_account(payload: Any) -> dict[str, Any]:
    """
    Locate the account object in an account query response.

    Accepted shapes:
        {"account_number": ..., "sequence": ...}
        {"result": {"account": {...}}}
        {"result": {"type": ..., "value": {...}}}
    """
    if not isinstance(payload, dict):
        raise ValidationError(f"account response is not an object: {payload!r}")

    account: Any = payload
    if "result" in payload:
        account = payload["result"]
        if not account:
            raise ValidationError("account response has an empty result")
        if isinstance(account, dict) and "account" in account:
            account = account["account"]

    if isinstance(account, dict) and "value" in account and "account_number" not in account:
        account = account["value"]

    if not isinstance(account, dict) or not account:
        raise ValidationError("account response does not contain an account")
    return account


def _require_int(account: dict[str, Any], key: str, address: str) -> int:
    value = account.get(key)
    if value is None or value == "":
        raise ValidationError(f"account {address} does not contain {key}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"account {address} has a malformed {key}: {value!r}") from e


class CyberClient:
    """Async client for the target chain's REST endpoints."""

    def __init__(
        self,
        base_url: str,
        chain_id: str,
        account_path: str = "/api/account",
        broadcast_path: str = "/lcd/txs",
        tx_path: str = "/lcd/txs",
        confirmation_delay: float = 21.0,
        confirmation_attempts: int = 1,
        confirmation_interval: float = 7.0,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.chain_id = chain_id
        self.account_path = account_path
        self.broadcast_path = broadcast_path
        self.tx_path = tx_path.rstrip("/")
        self.confirmation_delay = confirmation_delay
        self.confirmation_attempts = max(1, confirmation_attempts)
        self.confirmation_interval = confirmation_interval
        self.client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Any, client: Optional[httpx.AsyncClient] = None) -> "CyberClient":
        return cls(
            base_url=settings.cyber_rpc_url,
            chain_id=settings.cyber_chain_id,
            account_path=settings.cyber_account_path,
            broadcast_path=settings.cyber_broadcast_path,
            tx_path=settings.cyber_tx_path,
            confirmation_delay=settings.confirmation_delay_seconds,
            confirmation_attempts=settings.confirmation_attempts,
            confirmation_interval=settings.confirmation_interval_seconds,
            timeout=settings.http_timeout_seconds,
            client=client,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"{method} {url} returned invalid JSON: {e}") from e

    async def get_account_state(self, address: str, public_key_hex: str) -> AccountState:
        """
        Fetch the current account number and sequence for an address.

        Raises:
            TransportError: if the node cannot be reached
            ValidationError: if a required field is missing
        """
        if not self.chain_id:
            raise ValidationError("target chain id is not configured")

        # The node's RPC expects string arguments in double quotes
        payload = await self._request("GET", self.account_path, params={"address": f'"{address}"'})
        account = _extract_account(payload)

        account_number = _require_int(account, "account_number", address)
        sequence = _require_int(account, "sequence", address)

        state = AccountState(
            account_number=account_number,
            sequence=sequence,
            chain_id=self.chain_id,
            address=address,
            public_key_hex=public_key_hex,
        )
        logger.info(
            "cyber_account_fetched",
            address=address,
            account_number=state.account_number,
            sequence=state.sequence,
        )
        return state

    async def broadcast(self, signed_tx: dict[str, Any]) -> SubmissionResult:
        """POST a signed transaction in sync mode."""
        body = {"tx": signed_tx["value"], "mode": "sync"}
        data = await self._request("POST", self.broadcast_path, json=body)

        if data.get("error"):
            raise ChainRejectionError(f"broadcast failed: {data['error']}")
        tx_hash = data.get("txhash")
        if not tx_hash:
            raise ChainRejectionError(f"broadcast response has no txhash: {data!r}")

        return SubmissionResult(
            tx_hash=tx_hash,
            result_code=int(data.get("code") or 0),
            raw_log=data.get("raw_log"),
        )

    async def submit(self, signed_tx: dict[str, Any]) -> SubmissionResult:
        """
        Broadcast and require acceptance. No retry.

        Raises:
            ChainRejectionError: on a non-zero result code
        """
        result = await self.broadcast(signed_tx)
        if not result.accepted:
            logger.error(
                "cyber_tx_rejected",
                tx_hash=result.tx_hash,
                code=result.result_code,
                raw_log=result.raw_log,
            )
            raise ChainRejectionError("transfer rejected at broadcast", result.result_code, result.tx_hash)

        logger.info("cyber_tx_broadcast", tx_hash=result.tx_hash)
        return result

    async def get_tx(self, tx_hash: str) -> ConfirmationResult:
        """Query a transaction by hash."""
        data = await self._request("GET", f"{self.tx_path}/{tx_hash}")
        if data.get("error"):
            raise TransportError(f"transaction {tx_hash} not available: {data['error']}")
        return ConfirmationResult(
            tx_hash=data.get("txhash", tx_hash),
            result_code=int(data.get("code") or 0),
            payload=data,
        )

    async def wait_for_commit(self, tx_hash: str) -> ConfirmationResult:
        """
        Wait the configured delay, then check the transaction's commit status.

        With one attempt (the default) this is a single wait-then-check; a
        slow block leaves the transfer reported as failed. Further attempts
        re-check every confirmation_interval while the lookup fails.

        Raises:
            TransportError: if the transaction is still unknown after the last attempt
            ChainRejectionError: if the committed transaction has a non-zero code
        """
        await asyncio.sleep(self.confirmation_delay)

        for attempt in range(1, self.confirmation_attempts + 1):
            try:
                result = await self.get_tx(tx_hash)
            except TransportError as e:
                logger.warning(
                    "cyber_tx_not_committed",
                    tx_hash=tx_hash,
                    attempt=attempt,
                    attempts=self.confirmation_attempts,
                    error=str(e),
                )
                if attempt == self.confirmation_attempts:
                    raise
                await asyncio.sleep(self.confirmation_interval)
                continue

            if not result.committed:
                logger.error("cyber_tx_failed", tx_hash=tx_hash, code=result.result_code)
                raise ChainRejectionError("transfer failed on commit", result.result_code, tx_hash)

            logger.info("cyber_tx_committed", tx_hash=result.tx_hash)
            return result

        raise TransportError(f"transaction {tx_hash} was not checked")

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
