"""
Event Ingestor Storage Mixin.

Idempotent persistence of log entries and webhook payloads.
"""

from typing import Any

from loguru import logger
from sqlalchemy.exc import IntegrityError

from settlement.services.blockchain.types import to_hex_str
from settlement.utils.security import mask_tx_hash

from .schemas import IngestOutcome, IngestResult, WebhookPayload


def normalize_event_args(args: Any) -> dict[str, Any]:
    """Convert decoded event args to JSON-safe values."""
    normalized: dict[str, Any] = {}
    for key, value in dict(args or {}).items():
        if isinstance(value, (bytes, bytearray)):
            normalized[key] = to_hex_str(value)
        elif isinstance(value, (list, tuple)):
            normalized[key] = [
                to_hex_str(item) if isinstance(item, (bytes, bytearray)) else item for item in value
            ]
        else:
            normalized[key] = value
    return normalized


class StorageMixin:
    """Mixin providing event persistence."""

    async def ingest_webhook(self, payload: Any) -> IngestResult:
        """
        Store an externally delivered event.

        Args:
            payload: Raw dict or WebhookPayload

        Returns:
            IngestResult (STORED, DUPLICATE or UNKNOWN_TRANSACTION)

        Raises:
            InvalidWebhookPayloadError: Payload failed validation, nothing stored
        """
        event = WebhookPayload.parse(payload)

        try:
            async with self.uow.transaction() as tx:
                existing = await tx.blockchain_events.find_by_tx_and_log_index(
                    event.transaction_hash, event.log_index
                )
                if existing is not None:
                    logger.debug(
                        f"Duplicate {event.event} event {mask_tx_hash(event.transaction_hash)}"
                        f"#{event.log_index}"
                    )
                    return IngestResult(IngestOutcome.DUPLICATE, existing.id)

                transaction = await tx.blockchain_transactions.find_by_hash(event.transaction_hash)
                if transaction is None:
                    logger.warning(
                        f"Webhook {event.event} for unknown transaction "
                        f"{mask_tx_hash(event.transaction_hash)}, skipped"
                    )
                    return IngestResult(IngestOutcome.UNKNOWN_TRANSACTION)

                stored = await tx.blockchain_events.create(
                    network_id=transaction.network_id,
                    contract_id=transaction.contract_id,
                    event_name=event.event,
                    transaction_hash=event.transaction_hash,
                    log_index=event.log_index,
                    block_number=event.block_number,
                    block_hash=event.block_hash,
                    event_data=event.data,
                )
        except IntegrityError:
            logger.debug(
                f"Concurrent insert of {mask_tx_hash(event.transaction_hash)}#{event.log_index}, "
                f"treated as duplicate"
            )
            return IngestResult(IngestOutcome.DUPLICATE)

        logger.info(
            f"Stored webhook event {event.event} {mask_tx_hash(event.transaction_hash)}"
            f"#{event.log_index} (block {event.block_number})"
        )
        return IngestResult(IngestOutcome.STORED, stored.id)

    async def store_log_entry(
        self, network_id: int, contract_id: int | None, entry: Any
    ) -> IngestResult:
        """
        Store a decoded log entry from a contract event filter.

        Returns:
            IngestResult (STORED or DUPLICATE)
        """
        tx_hash = to_hex_str(entry["transactionHash"])
        log_index = int(entry["logIndex"])
        event_name = entry["event"]

        try:
            async with self.uow.transaction() as tx:
                existing = await tx.blockchain_events.find_by_tx_and_log_index(tx_hash, log_index)
                if existing is not None:
                    return IngestResult(IngestOutcome.DUPLICATE, existing.id)

                stored = await tx.blockchain_events.create(
                    network_id=network_id,
                    contract_id=contract_id,
                    event_name=event_name,
                    transaction_hash=tx_hash,
                    log_index=log_index,
                    block_number=int(entry["blockNumber"]),
                    block_hash=to_hex_str(entry.get("blockHash")),
                    event_data=normalize_event_args(entry.get("args")),
                )
        except IntegrityError:
            return IngestResult(IngestOutcome.DUPLICATE)

        logger.info(
            f"Stored {event_name} event {mask_tx_hash(tx_hash)}#{log_index} "
            f"(block {stored.block_number})"
        )
        return IngestResult(IngestOutcome.STORED, stored.id)
