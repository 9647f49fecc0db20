"""StoreSettlement aggregate (CQRS) — one store's share of one order.

Identified by ``"<order_id>:<store_id>"`` so that a redelivered order event
cannot open a second row for the same store, and transfers are keyed by the
same pair so a retried transfer cannot pay a store twice.

State Machine:
    RETAINED                          (primary store: its share stayed in the charge)
    PENDING → TRANSFERRED
    PENDING → FAILED → TRANSFERRED    (retry with exponential backoff)
    FAILED → MANUAL_REVIEW            (attempts exhausted)
"""

import os
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String

from settlement.domain import settlement
from settlement.fees import StoreShare
from settlement.payout.events import (
    StoreSettlementOpened,
    StoreTransferEscalated,
    StoreTransferFailed,
    StoreTransferSucceeded,
)


class TransferStatus(Enum):
    PENDING = "Pending"
    TRANSFERRED = "Transferred"
    FAILED = "Failed"
    MANUAL_REVIEW = "ManualReview"
    RETAINED = "Retained"


_VALID_TRANSITIONS = {
    TransferStatus.PENDING: {TransferStatus.TRANSFERRED, TransferStatus.FAILED},
    TransferStatus.FAILED: {TransferStatus.TRANSFERRED, TransferStatus.FAILED, TransferStatus.MANUAL_REVIEW},
    TransferStatus.TRANSFERRED: set(),
    TransferStatus.MANUAL_REVIEW: {TransferStatus.TRANSFERRED},  # operator-driven
    TransferStatus.RETAINED: set(),
}


def max_transfer_attempts() -> int:
    return int(os.environ.get("MAX_TRANSFER_ATTEMPTS", "5"))


def retry_base_seconds() -> int:
    return int(os.environ.get("TRANSFER_RETRY_BASE_SECONDS", "60"))


def settlement_key(order_id, store_id) -> str:
    return f"{order_id}:{store_id}"


@settlement.aggregate
class StoreSettlement:
    settlement_id = Identifier(identifier=True, required=True)
    order_id = Identifier(required=True)
    store_id = Identifier(required=True)
    gross_share = Integer(required=True, min_value=0)
    fee_share = Integer(required=True)
    net_transfer = Integer(required=True, min_value=0)
    retained_amount = Integer(default=0)
    is_primary = Boolean(default=False)
    currency = String(max_length=3, default="usd")
    transfer_status = String(choices=TransferStatus, default=TransferStatus.PENDING.value)
    transfer_id = String(max_length=255)
    attempt_count = Integer(default=0)
    last_error = String(max_length=1000)
    next_attempt_at = DateTime()
    settled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def share_must_balance(self):
        if self.gross_share != self.fee_share + self.net_transfer + (self.retained_amount or 0):
            raise ValidationError({"net_transfer": ["Gross share must equal fee + transfer + retained amount"]})

    @invariant.post
    def only_primary_retains(self):
        if not self.is_primary and self.retained_amount:
            raise ValidationError({"retained_amount": ["Only the primary store retains part of the charge"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, order_id, share: StoreShare, currency="usd"):
        now = datetime.now(UTC)
        status = TransferStatus.RETAINED if share.is_primary else TransferStatus.PENDING
        row = cls(
            settlement_id=settlement_key(order_id, share.store_id),
            order_id=order_id,
            store_id=share.store_id,
            gross_share=share.gross_share,
            fee_share=share.fee_share,
            net_transfer=share.net_transfer,
            retained_amount=share.retained_amount,
            is_primary=share.is_primary,
            currency=currency,
            transfer_status=status.value,
            settled_at=now if share.is_primary else None,
            created_at=now,
            updated_at=now,
        )
        row.raise_(
            StoreSettlementOpened(
                settlement_id=row.settlement_id,
                order_id=str(order_id),
                store_id=share.store_id,
                gross_share=share.gross_share,
                fee_share=share.fee_share,
                net_transfer=share.net_transfer,
                retained_amount=share.retained_amount,
                is_primary=share.is_primary,
            )
        )
        return row

    @property
    def transfer_idempotency_key(self) -> str:
        return f"transfer:{self.order_id}:{self.store_id}"

    def _assert_can_transition(self, target_status: TransferStatus) -> None:
        current = TransferStatus(self.transfer_status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError(
                {"transfer_status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )

    def is_due(self, now=None) -> bool:
        """Whether a transfer should be attempted now."""
        status = TransferStatus(self.transfer_status)
        if status == TransferStatus.PENDING:
            return True
        if status != TransferStatus.FAILED:
            return False
        now = (now or datetime.now(UTC)).replace(tzinfo=None)
        return self.next_attempt_at is None or self.next_attempt_at.replace(tzinfo=None) <= now

    # -------------------------------------------------------------------
    # Transfer outcomes
    # -------------------------------------------------------------------
    def record_transfer(self, transfer_id):
        self._assert_can_transition(TransferStatus.TRANSFERRED)

        now = datetime.now(UTC)
        self.transfer_status = TransferStatus.TRANSFERRED.value
        self.transfer_id = transfer_id
        self.attempt_count = (self.attempt_count or 0) + 1
        self.last_error = None
        self.next_attempt_at = None
        self.settled_at = now
        self.updated_at = now

        self.raise_(
            StoreTransferSucceeded(
                settlement_id=str(self.settlement_id),
                order_id=str(self.order_id),
                store_id=str(self.store_id),
                transfer_id=transfer_id,
                amount=self.net_transfer,
                transferred_at=now,
            )
        )

    def record_failure(self, error: str) -> None:
        """Record a failed attempt; back off exponentially, then escalate."""
        self._assert_can_transition(TransferStatus.FAILED)

        now = datetime.now(UTC)
        self.attempt_count = (self.attempt_count or 0) + 1
        self.last_error = error[:1000]
        self.updated_at = now

        if self.attempt_count >= max_transfer_attempts():
            self.transfer_status = TransferStatus.MANUAL_REVIEW.value
            self.next_attempt_at = None
            self.raise_(
                StoreTransferEscalated(
                    settlement_id=str(self.settlement_id),
                    order_id=str(self.order_id),
                    store_id=str(self.store_id),
                    attempts=self.attempt_count,
                    error=self.last_error,
                )
            )
            return

        delay = retry_base_seconds() * (2 ** (self.attempt_count - 1))
        self.transfer_status = TransferStatus.FAILED.value
        self.next_attempt_at = now + timedelta(seconds=delay)
        self.raise_(
            StoreTransferFailed(
                settlement_id=str(self.settlement_id),
                order_id=str(self.order_id),
                store_id=str(self.store_id),
                attempt=self.attempt_count,
                error=self.last_error,
                next_attempt_at=self.next_attempt_at,
            )
        )
