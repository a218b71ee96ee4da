"""
NewLock event subscription over a source-chain websocket.

Decoded events are handed to the orchestrator through a bounded queue in
arrival order. The connection is driven by an explicit state machine:

    DISCONNECTED -> CONNECTING -> CONNECTED -> RECONNECTING -> CONNECTING ...

with capped exponential backoff between attempts.
"""

import asyncio
from enum import Enum
from typing import Any, Optional

import structlog
from web3 import AsyncWeb3, Web3
from web3.providers import WebSocketProvider

from .ethereum import VESTING_ABI
from .models import RelayEvent

logger = structlog.get_logger()

NEW_LOCK_SIGNATURE = "NewLock(uint256,address,uint256,uint256,string)"


class ConnectionState(Enum):
    """Connection state of the subscription."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class NewLockSubscription:
    """Subscribes to NewLock logs and feeds RelayEvents into a queue."""

    def __init__(
        self,
        ws_url: str,
        contract_address: str,
        queue: "asyncio.Queue[RelayEvent]",
        base_delay: float = 3.0,
        max_delay: float = 60.0,
    ):
        self.ws_url = ws_url
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.queue = queue
        self.base_delay = base_delay
        self.max_delay = max_delay

        self.state = ConnectionState.DISCONNECTED
        self.attempt = 0
        self.subscription_id: Optional[str] = None
        self._stopped = False

        # Offline contract object, only used to decode logs
        self._event = Web3().eth.contract(address=self.contract_address, abi=VESTING_ABI).events.NewLock()
        self.topic = Web3.to_hex(Web3.keccak(text=NEW_LOCK_SIGNATURE))

    def next_delay(self) -> float:
        """Backoff before the next connection attempt."""
        return min(self.base_delay * (2 ** self.attempt), self.max_delay)

    async def run(self) -> None:
        """Keep the subscription alive until stop() is called."""
        self._stopped = False
        while not self._stopped:
            self.state = ConnectionState.CONNECTING
            try:
                await self._session()
            except asyncio.CancelledError:
                self.state = ConnectionState.DISCONNECTED
                raise
            except Exception as e:
                logger.warning(
                    "subscription_lost",
                    ws_url=self.ws_url,
                    error=str(e),
                    error_type=type(e).__name__,
                )

            if self._stopped:
                break
            await self.reconnect()

        self.state = ConnectionState.DISCONNECTED

    async def reconnect(self) -> bool:
        """
        Wait out the backoff before the next connection attempt.

        Returns False without waiting if a reconnect is already pending.
        """
        if self.state == ConnectionState.RECONNECTING:
            return False
        self.state = ConnectionState.RECONNECTING
        self.subscription_id = None

        delay = self.next_delay()
        self.attempt += 1
        logger.warning("subscription_reconnecting", delay=delay, attempt=self.attempt)
        await asyncio.sleep(delay)
        return True

    def mark_connected(self, subscription_id: str) -> None:
        self.state = ConnectionState.CONNECTED
        self.subscription_id = subscription_id
        self.attempt = 0
        logger.info(
            "subscription_connected",
            subscription_id=subscription_id,
            contract=self.contract_address,
        )

    async def _session(self) -> None:
        """One websocket connection; returns or raises when it ends."""
        async with AsyncWeb3(WebSocketProvider(self.ws_url)) as w3:
            subscription_id = await w3.eth.subscribe(
                "logs",
                {"address": self.contract_address, "topics": [self.topic]},
            )
            self.mark_connected(subscription_id)

            async for message in w3.socket.process_subscriptions():
                await self.handle_log(message["result"])

    async def handle_log(self, log: Any) -> Optional[RelayEvent]:
        """Decode one log and enqueue it. Undecodable logs are skipped."""
        try:
            event = RelayEvent.from_event_data(self._event.process_log(log))
        except Exception as e:
            logger.error("new_lock_decode_error", error=str(e), log=str(log))
            return None

        logger.info(
            "new_lock_received",
            history_id=event.history_id,
            claimer=event.claimer,
            vesting_id=event.vesting_id,
            amount=event.amount,
            account=event.target_address,
            source_tx=event.source_tx_hash,
        )
        # Blocks while the queue is full
        await self.queue.put(event)
        return event

    def stop(self) -> None:
        self._stopped = True
