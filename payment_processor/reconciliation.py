"""
🚀 PAYMENT RECONCILIATION

Applies a gateway outcome (callback, retrieve or status sync) to the Payment and
Registration rows. The state machine never raises for a stale or unknown
reference: it logs a warning and reports what it found. Side effects are not run
here; they come back as an outbox list for ``payment_processor.tasks`` to
dispatch once the transaction commits.

Transition rules:

* ``paid`` is final for both rows: a late ``failure`` or ``pending`` is ignored.
* ``failed`` can still become ``paid`` (the attempt succeeded after all) but never
  goes back to ``pending``.
* ``completed_at`` is stamped when a row enters a terminal status and is left
  untouched when the same status is asserted again.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.bookings.models import Registration
from apps.events.models import Coupon, Ticket
from core.exceptions import ValidationError
from core.utils import is_valid_uuid
from .gateway import FLOW_FAILURE, FLOW_PENDING, FLOW_SUCCESS
from .models import Payment

logger = logging.getLogger(__name__)

ISSUE_TICKET = 'issue_ticket'
SEND_SUCCESS_EMAIL = 'send_success_email'
SEND_FAILURE_EMAIL = 'send_failure_email'

FLOW_TO_STATUS = {
    FLOW_SUCCESS: Payment.STATUS_PAID,
    FLOW_FAILURE: Payment.STATUS_FAILED,
    FLOW_PENDING: Payment.STATUS_PENDING,
}


@dataclass(frozen=True)
class CallbackOutcome:
    """A gateway-reported outcome for one transaction."""
    flow: str
    transaction_id: str = ''
    gateway_reference: str = ''
    registration_id: str = ''
    gateway_status: str = ''
    gateway_message: str = ''
    payment_mode: str = ''
    gateway_payment_id: str = ''
    skip_failure_email: bool = False

    @property
    def target_status(self) -> str:
        try:
            return FLOW_TO_STATUS[self.flow]
        except KeyError:
            raise ValidationError(f"Unsupported payment flow: {self.flow}")


@dataclass
class ReconciliationResult:
    flow: str
    payment_id: Optional[str] = None
    registration_id: Optional[str] = None
    payment_found: bool = False
    registration_found: bool = False
    previous_payment_status: Optional[str] = None
    payment_status: Optional[str] = None
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    side_effects: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'flow': self.flow,
            'paymentId': self.payment_id,
            'registrationId': self.registration_id,
            'paymentFound': self.payment_found,
            'registrationFound': self.registration_found,
            'paymentStatus': self.payment_status,
            'registrationStatus': self.new_status,
            'sideEffects': list(self.side_effects),
        }


def _next_status(current: str, target: str) -> str:
    """Status a row ends up in when ``target`` is asserted over ``current``."""
    if current == Payment.STATUS_PAID:
        return current
    if current == Payment.STATUS_FAILED and target == Payment.STATUS_PENDING:
        return current
    return target


class PaymentReconciler:
    """Payment reconciliation state machine."""

    def apply(self, outcome: CallbackOutcome) -> ReconciliationResult:
        target = outcome.target_status
        result = ReconciliationResult(flow=outcome.flow)

        with transaction.atomic():
            payment = self._lookup_payment(outcome)
            if payment is None:
                logger.warning(
                    f"⚠️ [RECONCILE] No payment for txn={outcome.transaction_id or '-'} "
                    f"ref={outcome.gateway_reference or '-'}; skipping payment update"
                )
            else:
                result.payment_found = True
                result.payment_id = str(payment.id)
                result.previous_payment_status = payment.status
                self._update_payment(payment, target, outcome)
                result.payment_status = payment.status

        registration_id = self._registration_reference(outcome, payment)
        if registration_id is None:
            logger.warning(
                f"⚠️ [RECONCILE] Registration reference {outcome.registration_id!r} is not a valid id; "
                f"skipping registration update"
            )
            return result

        with transaction.atomic():
            registration = Registration.objects.select_for_update().filter(pk=registration_id).first()
            if registration is None:
                logger.warning(f"⚠️ [RECONCILE] Registration {registration_id} not found; skipping")
                return result

            result.registration_found = True
            result.registration_id = str(registration.id)
            result.previous_status = registration.payment_status

            if self._is_superseded_attempt(registration, payment, target):
                logger.info(
                    f"🔁 [RECONCILE] Payment {payment.id} is not the active attempt of registration "
                    f"{registration.id}; registration left as {registration.payment_status}"
                )
                result.new_status = registration.payment_status
                return result

            self._update_registration(registration, target, payment, outcome)
            result.new_status = registration.payment_status

            newly_paid = (
                result.previous_status != Registration.PAYMENT_PAID
                and registration.payment_status == Registration.PAYMENT_PAID
            )
            if newly_paid:
                self._record_settlement(registration)

            result.side_effects = self._side_effects(result.previous_status, registration, target, outcome)

        logger.info(
            f"✅ [RECONCILE] {outcome.flow}: payment {result.payment_id or '-'} "
            f"{result.previous_payment_status}->{result.payment_status}, registration {result.registration_id} "
            f"{result.previous_status}->{result.new_status}, outbox={result.side_effects}"
        )
        return result

    # ------------------------------------------------------------------ payment

    @staticmethod
    def _lookup_payment(outcome: CallbackOutcome) -> Optional[Payment]:
        criteria = Q()
        if outcome.transaction_id and is_valid_uuid(outcome.transaction_id.lower()):
            criteria |= Q(pk=outcome.transaction_id.lower())
        if outcome.gateway_reference:
            criteria |= Q(gateway_txn_id=outcome.gateway_reference)
        if not criteria:
            return None
        return Payment.objects.select_for_update().filter(criteria).first()

    @staticmethod
    def _update_payment(payment: Payment, target: str, outcome: CallbackOutcome):
        previous = payment.status
        new_status = _next_status(previous, target)
        if new_status != target:
            logger.info(
                f"🔒 [RECONCILE] Payment {payment.id} stays {previous}; ignoring late {target}"
            )
            return

        payment.status = new_status
        if new_status in Payment.TERMINAL_STATUSES and (previous != new_status or payment.completed_at is None):
            payment.completed_at = timezone.now()
        if outcome.payment_mode:
            payment.payment_mode = outcome.payment_mode
        if outcome.gateway_status:
            payment.gateway_status = outcome.gateway_status[:50]
        if outcome.gateway_message:
            payment.gateway_message = outcome.gateway_message
        if outcome.gateway_payment_id:
            payment.gateway_payment_id = outcome.gateway_payment_id
        payment.save()

    # ------------------------------------------------------------------ registration

    @staticmethod
    def _registration_reference(outcome: CallbackOutcome, payment: Optional[Payment]) -> Optional[str]:
        reference = (outcome.registration_id or '').strip().lower()
        if reference:
            return reference if is_valid_uuid(reference) else None
        if payment is not None:
            return str(payment.registration_id)
        return None

    @staticmethod
    def _is_superseded_attempt(registration: Registration, payment: Optional[Payment], target: str) -> bool:
        """A non-success outcome for an attempt that is no longer linked to the registration."""
        if payment is None or target == Payment.STATUS_PAID or registration.transaction_id is None:
            return False
        return str(registration.transaction_id) != str(payment.id)

    @staticmethod
    def _update_registration(registration: Registration, target: str, payment: Optional[Payment],
                             outcome: CallbackOutcome):
        previous = registration.payment_status
        new_status = _next_status(previous, target)
        if new_status != target:
            logger.info(
                f"🔒 [RECONCILE] Registration {registration.id} stays {previous}; ignoring late {target}"
            )
            return

        update_fields = ['payment_status', 'updated_at']
        registration.payment_status = new_status
        if payment is not None:
            registration.transaction_id = payment.id
            update_fields.append('transaction_id')
        elif is_valid_uuid((outcome.transaction_id or '').lower()):
            registration.transaction_id = outcome.transaction_id.lower()
            update_fields.append('transaction_id')
        registration.save(update_fields=update_fields)

    @staticmethod
    def _record_settlement(registration: Registration):
        """Count the coupon use and the sold units once, when the booking becomes paid."""
        if registration.coupon_id:
            coupon = Coupon(pk=registration.coupon_id)
            if not coupon.increment_usage():
                logger.warning(
                    f"⚠️ [RECONCILE] Coupon {registration.coupon_id} already at its usage limit "
                    f"when registration {registration.id} settled"
                )

        for ticket_id, quantity in (registration.tickets_bought or {}).items():
            Ticket.objects.filter(pk=ticket_id).update(
                sold_count=F('sold_count') + int(quantity),
                updated_at=timezone.now(),
            )
            ticket = Ticket.objects.filter(pk=ticket_id).only('quantity', 'sold_count').first()
            if ticket and ticket.quantity is not None and ticket.sold_count > ticket.quantity:
                logger.warning(
                    f"⚠️ [RECONCILE] Ticket {ticket_id} oversold: {ticket.sold_count}/{ticket.quantity} "
                    f"after registration {registration.id}"
                )

    @staticmethod
    def _side_effects(previous_status: str, registration: Registration, target: str,
                      outcome: CallbackOutcome) -> List[str]:
        if registration.payment_status != target:
            return []
        if target == Registration.PAYMENT_PAID:
            if previous_status != Registration.PAYMENT_PAID:
                return [ISSUE_TICKET, SEND_SUCCESS_EMAIL]
            if not registration.ticket_url:
                return [ISSUE_TICKET]
            return []
        if target == Registration.PAYMENT_FAILED:
            if previous_status != Registration.PAYMENT_FAILED and not outcome.skip_failure_email:
                return [SEND_FAILURE_EMAIL]
        return []
