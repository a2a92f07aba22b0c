"""
Payment service for booking payments.

Records payment results reported by the gateway onto the booking's payment
sub-record. Gateway results are matched on the exact booking id AND
transaction id; a result for any other pairing is rejected.
"""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from clients.payment_client import GatewayPayment, PaymentGatewayClient, PaymentGatewayError, from_minor_units
from core.audit import AuditLogger, AuditAction
from core.errors import BookingNotFound, PaymentError
from core.event_bus import EventBus
from core.events import PaymentReceived
from core.locks import SlotLocks, hold_all
from core.models import Booking, BookingStatus, PaymentMethod, PaymentStatus, TERMINAL_STATUSES
from core.stores.base import BookingStore
from utils.clock import now_utc

logger = logging.getLogger(__name__)

# Gateway status -> recorded payment status
_GATEWAY_STATUSES = {
    "initiated": PaymentStatus.PENDING,
    "pending": PaymentStatus.PENDING,
    "authorized": PaymentStatus.PENDING,
    "paid": PaymentStatus.PAID,
    "captured": PaymentStatus.PAID,
    "failed": PaymentStatus.FAILED,
    "voided": PaymentStatus.FAILED,
    "refunded": PaymentStatus.REFUNDED,
}

_WEBHOOK_STATUSES = {
    "payment_paid": "paid",
    "payment_failed": "failed",
}


class PaymentService:
    """Service for booking payment operations."""

    def __init__(
        self,
        store: BookingStore,
        locks: SlotLocks,
        gateway: PaymentGatewayClient,
        audit: AuditLogger,
        event_bus: EventBus,
    ):
        self.store = store
        self.locks = locks
        self.gateway = gateway
        self.audit = audit
        self.event_bus = event_bus

    def start_payment(
        self,
        booking_id: UUID,
        method: PaymentMethod = PaymentMethod.GATEWAY,
        source: dict[str, Any] | None = None,
        callback_url: str | None = None,
    ) -> tuple[Booking, GatewayPayment]:
        """
        Open a gateway payment for a booking's total.

        Args:
            booking_id: Booking UUID
            method: How the customer pays
            source: Gateway payment source (card token, wallet)
            callback_url: Redirect target after 3-D Secure

        Returns:
            (booking with transaction recorded, gateway payment)

        Raises:
            BookingNotFound: If booking doesn't exist
            PaymentError: If booking is paid, closed, or the gateway fails
        """
        booking = self._get(booking_id)
        _ensure_holds_payment(booking)

        if booking.is_paid:
            raise PaymentError(
                f"Booking {booking.booking_number} is already paid",
                field="payment", entity_id=booking.id,
            )
        if booking.status in TERMINAL_STATUSES and booking.status != BookingStatus.COMPLETED:
            raise PaymentError(
                f"Booking {booking.booking_number} is {booking.status.value} and cannot be paid",
                field="status", entity_id=booking.id,
            )

        try:
            payment = self.gateway.create_payment(
                amount=booking.pricing.total_amount,
                currency=booking.pricing.currency,
                description=f"Booking {booking.booking_number}",
                metadata={"booking_id": str(booking.id), "booking_number": booking.booking_number},
                source=source,
                callback_url=callback_url,
            )
        except PaymentGatewayError as e:
            raise PaymentError(str(e), field="payment", entity_id=booking.id)

        updated = self._record(booking_id, {
            "status": PaymentStatus.PENDING,
            "method": method,
            "transaction_id": payment.id,
        })
        return updated, payment

    def apply_gateway_result(
        self,
        booking_id: UUID,
        transaction_id: str,
        status: str,
        amount: Decimal | None = None,
    ) -> Booking:
        """
        Record a payment result reported by the gateway.

        Args:
            booking_id: Booking the result claims to belong to
            transaction_id: Gateway payment id
            status: Gateway status string (paid, failed, ...)
            amount: Paid amount in major units (defaults to booking total)

        Returns:
            Updated booking

        Raises:
            BookingNotFound: If booking doesn't exist
            PaymentError: If the transaction is not this booking's, or the status is unknown
        """
        booking = self._get(booking_id)
        _ensure_holds_payment(booking)
        if not transaction_id or booking.payment.transaction_id != transaction_id:
            raise PaymentError(
                f"Transaction {transaction_id} does not belong to booking {booking.booking_number}",
                field="transaction_id", entity_id=booking.id,
            )

        recorded = _GATEWAY_STATUSES.get(status)
        if recorded is None:
            raise PaymentError(f"Unknown gateway status '{status}'", field="status", entity_id=booking.id)

        if recorded == booking.payment.status:
            return booking

        if recorded == PaymentStatus.PAID:
            updated = self._record(booking_id, {
                "status": PaymentStatus.PAID,
                "paid_amount": amount if amount is not None else booking.pricing.total_amount,
                "paid_at": now_utc(),
            })
            logger.info(f"Payment confirmed for booking {updated.booking_number}")
            self.event_bus.publish(PaymentReceived.create(updated))
            return updated

        if recorded == PaymentStatus.FAILED:
            logger.info(f"Payment failed for booking {booking.booking_number}")

        return self._record(booking_id, {"status": recorded})

    def handle_webhook(self, payload: dict[str, Any]) -> Booking | None:
        """
        Apply a gateway webhook body.

        Only payment_paid and payment_failed are acted on. The booking is the
        one currently holding the transaction; a payment started before a
        reschedule lands on the replacement. The metadata booking id is used
        only when no booking holds the transaction.

        Returns:
            Updated booking, or None if the event is ignored

        Raises:
            BookingNotFound: If the referenced booking doesn't exist
            PaymentError: If the transaction is not that booking's
        """
        status = _WEBHOOK_STATUSES.get(payload.get("type", ""))
        data = payload.get("data") or {}
        booking_id = (data.get("metadata") or {}).get("booking_id")

        if status is None or not booking_id:
            logger.warning(f"Ignoring webhook {payload.get('type')} (booking_id={booking_id})")
            return None

        transaction_id = data.get("id", "")
        holder = self.store.find_by_transaction_id(transaction_id) if transaction_id else None
        if holder is not None and str(holder.id) != booking_id:
            logger.info(f"Webhook for booking {booking_id} applied to {holder.booking_number} (rescheduled)")

        amount = data.get("amount")
        return self.apply_gateway_result(
            holder.id if holder is not None else UUID(booking_id),
            transaction_id,
            status,
            from_minor_units(amount) if amount is not None else None,
        )

    def verify_payment(self, booking_id: UUID) -> Booking:
        """
        Ask the gateway for the recorded transaction's status and apply it.

        Raises:
            BookingNotFound: If booking doesn't exist
            PaymentError: If no transaction is recorded or the gateway fails
        """
        booking = self._get(booking_id)
        transaction_id = booking.payment.transaction_id
        if not transaction_id:
            raise PaymentError(
                f"Booking {booking.booking_number} has no payment to verify",
                field="transaction_id", entity_id=booking.id,
            )

        try:
            payment = self.gateway.get_payment(transaction_id)
        except PaymentGatewayError as e:
            raise PaymentError(str(e), field="payment", entity_id=booking.id)

        return self.apply_gateway_result(booking_id, transaction_id, payment.status, payment.amount)

    def refund(self, booking_id: UUID, amount: Decimal | None = None, reason: str | None = None) -> Booking:
        """
        Refund a paid booking, fully or partially.

        Args:
            booking_id: Booking UUID
            amount: Amount to refund (defaults to the paid amount)
            reason: Refund reason

        Raises:
            BookingNotFound: If booking doesn't exist
            PaymentError: If booking isn't paid, amount is out of range, or the gateway fails
        """
        booking = self._get(booking_id)
        _ensure_holds_payment(booking)
        if not booking.is_paid:
            raise PaymentError(
                f"Booking {booking.booking_number} is not paid",
                field="payment", entity_id=booking.id,
            )

        amount = booking.payment.paid_amount if amount is None else Decimal(amount)
        if amount <= 0 or amount > booking.payment.paid_amount:
            raise PaymentError(
                f"Refund amount {amount} must be between 0 and {booking.payment.paid_amount}",
                field="amount", entity_id=booking.id,
            )

        try:
            self.gateway.refund(booking.payment.transaction_id, amount, reason)
        except PaymentGatewayError as e:
            raise PaymentError(str(e), field="payment", entity_id=booking.id)

        updated = self._record(booking_id, {
            "status": PaymentStatus.REFUNDED,
            "refund_amount": amount,
            "refund_reason": reason,
            "refunded_at": now_utc(),
        })
        logger.info(f"Refunded {amount} on booking {updated.booking_number}")
        return updated

    def _get(self, booking_id: UUID) -> Booking:
        booking = self.store.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id, field="booking_id")
        return booking

    def _record(self, booking_id: UUID, payment_changes: dict[str, Any]) -> Booking:
        """Apply payment field changes under the booking's calendar lock."""
        booking = self._get(booking_id)

        with hold_all(self.locks, [(booking.interval.resource, booking.interval.day)]):
            current = self._get(booking_id)
            payment = current.payment.model_copy(update=payment_changes)
            updated = self.store.update(current.model_copy(update={
                "payment": payment,
                "updated_at": now_utc(),
            }))

        self.audit.log_change(
            entity_type="booking",
            entity_id=updated.id,
            action=AuditAction.PAYMENT,
            changes={"payment": {
                "old": current.payment.model_dump(mode="json"),
                "new": updated.payment.model_dump(mode="json"),
            }},
        )
        return updated


def _ensure_holds_payment(booking: Booking) -> None:
    """Rescheduled bookings hand their payment to the replacement."""
    if booking.status == BookingStatus.RESCHEDULED:
        raise PaymentError(
            f"Booking {booking.booking_number} was rescheduled; its payment belongs to the replacement",
            field="status", entity_id=booking.id,
        )
