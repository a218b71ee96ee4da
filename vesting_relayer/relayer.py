"""
Relay orchestration: one NewLock event -> target-chain transfer -> proof
on the source chain -> audit record.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

import structlog

from .config import RelayerConfig
from .context import RelayContext
from .errors import SigningError
from .listener import NewLockSubscription
from .models import SEND_PROOF_ERROR, AuditRecord, RelayEvent
from .signer import sign_tx
from .tx import build_send_tx

logger = structlog.get_logger()


class RelayStage(Enum):
    """Progress of a single relay. Any stage may end in FAILED."""

    RECEIVED = "received"
    ACCOUNT_FETCHED = "account_fetched"
    BUILT = "built"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    PROOF_WRITTEN = "proof_written"
    FAILED = "failed"
    LOGGED = "logged"


@dataclass
class RelayerState:
    """Current relayer state."""

    is_running: bool = False
    last_event_time: Optional[datetime] = None
    relays_succeeded: int = 0
    relays_failed: int = 0
    signing_failures: int = 0


class ClaimRelayer:
    """
    Drives claim events through the pipeline one at a time.

    Events are consumed from a queue by a single worker, so the relay
    account's sequence is read, used and committed by one transaction
    before the next event fetches it again.
    """

    # Consecutive signing failures that suggest damaged key material
    SIGNING_ALERT_THRESHOLD = 3

    def __init__(self, context: RelayContext, queue: Optional["asyncio.Queue[RelayEvent]"] = None):
        self.context = context
        self.queue: "asyncio.Queue[RelayEvent]" = queue or asyncio.Queue(
            maxsize=context.settings.event_queue_size
        )
        self.state = RelayerState()
        self._consecutive_signing_failures = 0
        self._stopping = False

    async def relay(self, event: RelayEvent) -> AuditRecord:
        """
        Relay one event end to end and append exactly one audit record.

        Never raises for a stage failure: the record keeps sentinels for
        every field the failed stage and its successors did not produce.
        A cancelled relay still writes its record before the cancellation
        propagates.
        """
        ctx = self.context
        settings = ctx.settings
        record = AuditRecord.for_event(event)
        stage = RelayStage.RECEIVED
        log = logger.bind(history_id=event.history_id, vesting_id=event.vesting_id)
        log.info("relay_started", claimer=event.claimer, amount=event.amount, to=event.target_address)

        try:
            account = await ctx.cyber.get_account_state(ctx.address, ctx.public_key_hex)
            stage = RelayStage.ACCOUNT_FETCHED

            unsigned_tx = build_send_tx(
                account,
                recipient=event.target_address,
                amount=event.amount,
                denom=settings.cyber_denom,
                memo=event.memo(),
                fee_amount=settings.fee_amount,
                gas=settings.gas,
            )
            stage = RelayStage.BUILT

            signed_tx = sign_tx(unsigned_tx, account, ctx.signing_key)
            self._consecutive_signing_failures = 0
            stage = RelayStage.SIGNED

            submission = await ctx.cyber.submit(signed_tx)
            stage = RelayStage.SUBMITTED

            confirmation = await ctx.cyber.wait_for_commit(submission.tx_hash)
            record.cyber_send_tx = confirmation.tx_hash
            stage = RelayStage.CONFIRMED

            record.ethereum_proof_tx = await ctx.proof_writer.send_proof(
                event.claimer, event.vesting_id, confirmation.tx_hash
            )
            if record.ethereum_proof_tx == SEND_PROOF_ERROR:
                log.error("relay_failed", stage=stage.value, error="proof transaction failed")
                stage = RelayStage.FAILED
            else:
                stage = RelayStage.PROOF_WRITTEN

        except SigningError as e:
            self._on_signing_error(e, log)
            log.error("relay_failed", stage=stage.value, error=str(e), error_type=type(e).__name__)
            stage = RelayStage.FAILED
        except asyncio.CancelledError:
            log.error("relay_cancelled", stage=stage.value)
            self.state.relays_failed += 1
            raise
        except Exception as e:
            log.error("relay_failed", stage=stage.value, error=str(e), error_type=type(e).__name__)
            stage = RelayStage.FAILED
        finally:
            # Also runs when the relay is cancelled mid-flight
            self._write_audit(record, log)

        succeeded = stage == RelayStage.PROOF_WRITTEN
        stage = RelayStage.LOGGED

        if succeeded:
            self.state.relays_succeeded += 1
            log.info(
                "relay_completed",
                cyber_tx=record.cyber_send_tx,
                proof_tx=record.ethereum_proof_tx,
            )
        else:
            self.state.relays_failed += 1
        self.state.last_event_time = datetime.now()
        return record

    def _on_signing_error(self, error: SigningError, log: Any) -> None:
        self.state.signing_failures += 1
        self._consecutive_signing_failures += 1
        if self._consecutive_signing_failures >= self.SIGNING_ALERT_THRESHOLD:
            log.critical(
                "signing_failures_repeated",
                consecutive=self._consecutive_signing_failures,
                message="check the target-chain key material",
            )

    def _write_audit(self, record: AuditRecord, log: Any) -> None:
        try:
            self.context.audit.append(record)
        except Exception as e:
            # The relay already happened on-chain; keep the row in the console log
            log.critical("audit_write_failed", error=str(e), record=record.as_row())

    async def submit_event(self, event: RelayEvent) -> None:
        """Queue an event for the worker."""
        await self.queue.put(event)

    async def run_once(self) -> list[AuditRecord]:
        """Relay every event currently queued, in order."""
        records = []
        while not self.queue.empty():
            event = self.queue.get_nowait()
            try:
                records.append(await self.relay(event))
            finally:
                self.queue.task_done()
        return records

    async def run(self) -> None:
        """Consume the queue until stop() is called, then drain what is left."""
        self.state.is_running = True
        logger.info("relayer_starting", relay_address=self.context.address)

        while not self._stopping:
            try:
                event = await asyncio.wait_for(self.queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            try:
                await self.relay(event)
            finally:
                self.queue.task_done()

        drained = await self.run_once()
        self.state.is_running = False
        logger.info(
            "relayer_stopped",
            succeeded=self.state.relays_succeeded,
            failed=self.state.relays_failed,
            drained=len(drained),
        )

    def stop(self) -> None:
        """Finish the relay in flight and everything already queued, then return from run()."""
        self._stopping = True
        logger.info("relayer_stopping", queued=self.queue.qsize())


async def serve(config: RelayerConfig) -> None:
    """Run the subscription and the relay worker until cancelled."""
    config.validate_for_run()
    settings = config.settings
    context = RelayContext.from_config(config)

    queue: "asyncio.Queue[RelayEvent]" = asyncio.Queue(maxsize=settings.event_queue_size)
    relayer = ClaimRelayer(context, queue)
    subscription = NewLockSubscription(
        ws_url=settings.ethereum_ws_url,
        contract_address=settings.ethereum_contract,
        queue=queue,
        base_delay=settings.reconnect_base_delay_seconds,
        max_delay=settings.reconnect_max_delay_seconds,
    )

    tasks = {
        "subscription": asyncio.create_task(subscription.run()),
        "relayer": asyncio.create_task(relayer.run()),
    }
    try:
        done, _ = await asyncio.wait(tasks.values(), return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            # Surface the failure of whichever task ended first
            task.result()
    finally:
        # Stop the source first so the queue stops growing
        subscription.stop()
        if not tasks["subscription"].done():
            tasks["subscription"].cancel()
        await asyncio.gather(tasks["subscription"], return_exceptions=True)

        # The worker is not cancelled: a started relay always reaches its audit record
        relayer.stop()
        await asyncio.gather(asyncio.shield(tasks["relayer"]), return_exceptions=True)
        await context.aclose()
