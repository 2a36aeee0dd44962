"""
Settlement enumerations.

Status values are stored as plain strings (``.value``) in String columns.
"""

from enum import StrEnum


class CashbackStatus(StrEnum):
    """Cashback settlement status."""

    PENDING = "pending"  # Created by payment domain, waiting for settlement
    PROCESSING = "processing"  # Claimed by a worker, transfer in flight
    COMPLETED = "completed"  # Transfer confirmed on chain
    FAILED = "failed"  # Last attempt failed, may be retried
    CANCELLED = "cancelled"  # Expired before settlement


class TransactionStatus(StrEnum):
    """Local mirror of an on-chain transaction status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class ContractType(StrEnum):
    """Contract types the service deploys and talks to."""

    CASHBACK_TOKEN = "CASHBACK_TOKEN"
    CASHBACK_MANAGER = "CASHBACK_MANAGER"
    CASHBACK_POOL = "CASHBACK_POOL"


CASHBACK_TRANSITIONS: dict[CashbackStatus, frozenset[CashbackStatus]] = {
    CashbackStatus.PENDING: frozenset({CashbackStatus.PROCESSING, CashbackStatus.CANCELLED}),
    CashbackStatus.PROCESSING: frozenset({CashbackStatus.COMPLETED, CashbackStatus.FAILED}),
    # FAILED -> COMPLETED only via reconciliation of an already broadcast transfer
    CashbackStatus.FAILED: frozenset({CashbackStatus.PROCESSING, CashbackStatus.COMPLETED}),
    CashbackStatus.COMPLETED: frozenset(),
    CashbackStatus.CANCELLED: frozenset(),
}

TERMINAL_CASHBACK_STATUSES = frozenset({CashbackStatus.COMPLETED, CashbackStatus.CANCELLED})


def can_transition(current: str, target: str) -> bool:
    """Check whether the cashback state machine allows current -> target."""
    return CashbackStatus(target) in CASHBACK_TRANSITIONS[CashbackStatus(current)]
