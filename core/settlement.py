"""Settlement engine: payment intents, confirmation and webhook reconciliation.

Money is handled as ``Decimal`` in the settlement currency's major unit
(e.g. 100.00); conversion to the gateway's minor units happens in
``core.gateway``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from models import db
from models.booking import Booking, BookingStatus
from models.transaction import Transaction, TransactionStatus
from core.errors import AccessDenied, Conflict, InternalFailure, InvalidState, NotFound
from core.gateway import PAYMENT_FAILED, PAYMENT_SUCCEEDED
from core.state_machine import confirm_from_payment

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# gateway intent status -> transaction status; anything else leaves it pending
GATEWAY_STATUS_MAP = {
    "succeeded": TransactionStatus.COMPLETED,
    "canceled": TransactionStatus.FAILED,
}


def split_amount(amount, fee_percentage):
    """Return ``(commission, provider_amount)``; they always sum to ``amount``."""
    amount = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    commission = (amount * Decimal(str(fee_percentage)) / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    return commission, amount - commission


@dataclass
class IntentResult:
    external_ref: str
    client_secret: str
    amount: Decimal
    currency: str


@dataclass
class ConfirmResult:
    status: str
    booking_id: int
    booking_number: str
    amount: Decimal


class SettlementEngine:
    def __init__(self, gateway, fee_percentage, currency: str):
        self.gateway = gateway
        self.fee_percentage = fee_percentage
        self.currency = currency

    def create_intent(self, booking_id: int, customer_id: int) -> IntentResult:
        booking = Booking.query.filter_by(id=booking_id).with_for_update().first()
        if not booking:
            raise NotFound("Booking not found")
        if booking.customer_id != customer_id:
            raise AccessDenied("Booking access denied")
        if Transaction.query.filter_by(booking_id=booking.id).first():
            raise Conflict("Booking already paid")
        if booking.status == BookingStatus.CANCELLED:
            raise InvalidState("Booking is cancelled")

        provider = booking.provider
        if not provider or not provider.payout_account_id:
            raise InvalidState("Provider has no payout destination")

        amount = Decimal(booking.price).quantize(CENT)
        commission, provider_amount = split_amount(amount, self.fee_percentage)

        try:
            intent = self.gateway.create_payment_intent(
                amount=amount,
                currency=self.currency,
                application_fee=commission,
                transfer_destination=provider.payout_account_id,
                metadata={
                    "booking_id": booking.id,
                    "booking_number": booking.booking_number,
                    "customer_id": booking.customer_id,
                    "provider_id": booking.provider_id,
                    "service_id": booking.service_id,
                },
            )
        except Exception:
            db.session.rollback()
            raise

        txn = Transaction(
            booking_id=booking.id,
            amount=amount,
            commission=commission,
            provider_amount=provider_amount,
            currency=self.currency,
            status=TransactionStatus.PENDING,
            external_payment_ref=intent.id,
        )
        db.session.add(txn)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.error("orphaned payment intent %s: booking %s already has a transaction", intent.id, booking_id)
            raise Conflict("Booking already paid")
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("orphaned payment intent %s: could not persist transaction for booking %s",
                             intent.id, booking_id)
            raise InternalFailure()

        logger.info("payment intent %s created for booking %s (amount=%s commission=%s)",
                    intent.id, booking_id, amount, commission)
        return IntentResult(
            external_ref=intent.id,
            client_secret=intent.client_secret,
            amount=amount,
            currency=self.currency,
        )

    def confirm_payment(self, external_ref: str, customer_id: int) -> ConfirmResult:
        txn = Transaction.query.filter_by(external_payment_ref=external_ref).with_for_update().first()
        if not txn:
            raise NotFound("Transaction not found")
        booking = txn.booking
        if booking.customer_id != customer_id:
            raise AccessDenied("Transaction access denied")

        try:
            gateway_status = self.gateway.retrieve_intent(external_ref)
        except Exception:
            db.session.rollback()
            raise

        new_status = GATEWAY_STATUS_MAP.get(gateway_status, TransactionStatus.PENDING)
        self._apply(txn, new_status)
        self._commit(f"confirm {external_ref}")

        return ConfirmResult(
            status=txn.status,
            booking_id=booking.id,
            booking_number=booking.booking_number,
            amount=Decimal(txn.amount),
        )

    def handle_gateway_event(self, event) -> bool:
        """
        Apply a verified gateway event. Returns True if anything changed.
        Unknown references and unrelated event types are logged and ignored.
        """
        if event.type == PAYMENT_SUCCEEDED:
            new_status = TransactionStatus.COMPLETED
        elif event.type == PAYMENT_FAILED:
            new_status = TransactionStatus.FAILED
        else:
            logger.debug("ignoring gateway event %s", event.type)
            return False

        if not event.intent_id:
            logger.warning("gateway event %s without payment reference", event.type)
            return False

        txn = Transaction.query.filter_by(external_payment_ref=event.intent_id).with_for_update().first()
        if not txn:
            logger.info("gateway event %s for unknown payment %s; ignoring", event.type, event.intent_id)
            db.session.rollback()
            return False

        changed = self._apply(txn, new_status, transfer_ref=event.transfer_ref)
        if not changed:
            db.session.rollback()
            logger.info("gateway event %s for %s already applied", event.type, event.intent_id)
            return False

        try:
            self._commit(f"webhook {event.type} {event.intent_id}")
        except Conflict:
            # a concurrent confirm call won; the gateway will redeliver and find it applied
            raise InternalFailure()
        return True

    def _apply(self, txn: Transaction, new_status: str, transfer_ref=None) -> bool:
        if txn.status == TransactionStatus.COMPLETED:
            # confirm usually wins the race; the webhook still carries the transfer
            if new_status == TransactionStatus.COMPLETED and transfer_ref and not txn.external_transfer_ref:
                txn.external_transfer_ref = transfer_ref
                txn.updated_at = datetime.utcnow()
                logger.info("transaction %s transfer recorded: %s", txn.id, transfer_ref)
                return True
            return False
        if new_status == TransactionStatus.PENDING:
            return False
        if new_status == txn.status:
            return False

        now = datetime.utcnow()
        txn.status = new_status
        txn.updated_at = now
        if new_status == TransactionStatus.COMPLETED:
            if transfer_ref:
                txn.external_transfer_ref = transfer_ref
            confirm_from_payment(txn.booking)
        logger.info("transaction %s for booking %s -> %s", txn.id, txn.booking_id, new_status)
        return True

    def _commit(self, what: str):
        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            raise Conflict("Payment was modified concurrently, retry")
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("failed to persist settlement update (%s)", what)
            raise InternalFailure()
