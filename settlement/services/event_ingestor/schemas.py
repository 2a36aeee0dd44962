"""
Event Ingestor - Schemas.

Module: schemas.py
Webhook payload validation and ingestion result types.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from settlement.utils.exceptions import InvalidWebhookPayloadError


class WebhookPayload(BaseModel):
    """
    Event delivered by an external watcher.

    Accepts camelCase keys (blockNumber, transactionHash, logIndex,
    blockHash) as well as snake_case.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event: str = Field(min_length=1, max_length=64)
    block_number: int = Field(alias="blockNumber", ge=0)
    transaction_hash: str = Field(alias="transactionHash", pattern=r"^0x[0-9a-fA-F]{64}$")
    log_index: int = Field(default=0, alias="logIndex", ge=0)
    block_hash: str | None = Field(default=None, alias="blockHash")
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("transaction_hash", "block_hash")
    @classmethod
    def lowercase_hash(cls, v: str | None) -> str | None:
        return v.lower() if v else v

    @classmethod
    def parse(cls, payload: Any) -> "WebhookPayload":
        """
        Validate a raw payload.

        Raises:
            InvalidWebhookPayloadError: With one message per invalid field
        """
        if isinstance(payload, cls):
            return payload
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in error['loc']) or 'payload'}: {error['msg']}"
                for error in e.errors()
            ]
            raise InvalidWebhookPayloadError(errors) from e


class IngestOutcome(StrEnum):
    STORED = "stored"
    DUPLICATE = "duplicate"
    UNKNOWN_TRANSACTION = "unknown_transaction"


@dataclass(frozen=True)
class IngestResult:
    outcome: IngestOutcome
    event_id: int | None = None
