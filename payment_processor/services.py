"""
🚀 PAYMENT SERVICES
Easebuzz payment initiation, callback handling and transaction status sync.

State changes go through ``PaymentReconciler``; every gateway interaction is
written to ``PaymentLog`` whether it worked or not.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.db import DatabaseError, transaction
from django.utils import timezone
from rest_framework import status

from apps.bookings.models import Registration
from core.exceptions import (
    DomainError,
    GatewayError,
    NotFoundError,
    PersistenceError,
    StateConflictError,
    ValidationError,
)
from core.utils import is_valid_uuid
from .gateway import (
    FLOW_PENDING,
    FLOW_UNKNOWN,
    CallbackData,
    EasebuzzClient,
    EasebuzzConfig,
    build_callback_urls,
    build_initiate_payload,
    verify_response_hash,
)
from .models import Payment, PaymentLog
from .reconciliation import CallbackOutcome, PaymentReconciler, ReconciliationResult
from .tasks import dispatch_side_effects

logger = logging.getLogger(__name__)


def _as_log_payload(value: Any) -> Dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    if value is None:
        return {}
    return {'raw': str(value)[:2000]}


def log_gateway_interaction(action: str, *, payment_id=None, registration_id=None, gateway_url: str = '',
                            request_payload=None, response_payload=None, http_status=None,
                            gateway_status: str = '', error_message: str = '', duration_ms=None):
    """Append one row to the gateway audit trail. A failed write is logged, never raised."""
    try:
        with transaction.atomic():
            return PaymentLog.objects.create(
                payment_id=str(payment_id) if payment_id else None,
                registration_id=str(registration_id) if registration_id else None,
                action=action,
                gateway_url=gateway_url or '',
                request_payload=_as_log_payload(request_payload),
                response_payload=_as_log_payload(response_payload),
                http_status=http_status,
                gateway_status=(gateway_status or '')[:50],
                error_message=error_message or '',
                duration_ms=duration_ms,
            )
    except DatabaseError as e:
        logger.error(f"📝 [PAYMENT_LOG] Could not record {action} for payment {payment_id}: {e}", exc_info=True)
        return None


def _redacted(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: value for name, value in payload.items() if name not in ('hash', 'key')}


class PaymentInitiationService:
    """
    🚀 Start an Easebuzz payment for a pending registration.

    The Payment row is committed and linked to the registration before the
    gateway is called, so a callback can never arrive for an unknown attempt.
    """

    def __init__(self, config: Optional[EasebuzzConfig] = None, client: Optional[EasebuzzClient] = None):
        self.config = config or EasebuzzConfig.from_settings()
        self._client = client

    @property
    def client(self) -> EasebuzzClient:
        if self._client is None:
            self._client = EasebuzzClient(self.config)
        return self._client

    def initiate(self, registration_id, request_origin: str = '') -> Dict[str, Any]:
        if not is_valid_uuid(str(registration_id or '').strip().lower()):
            raise ValidationError("registrationId must be a valid UUID")
        registration_id = str(registration_id).strip().lower()
        client = self.client

        try:
            payment, registration = self._create_attempt(registration_id)
        except DomainError:
            raise
        except DatabaseError as e:
            logger.error(f"💥 [PAYMENT] Could not create payment for {registration_id}: {e}", exc_info=True)
            raise PersistenceError("Unable to initiate payment")

        success_url, failure_url = build_callback_urls(
            self.config, request_origin, str(payment.id), str(registration.id), str(registration.event_id)
        )
        payload = build_initiate_payload(
            self.config,
            txnid=payment.gateway_txn_id,
            amount=payment.amount,
            productinfo=(registration.event.name or 'Event booking')[:100],
            firstname=registration.first_name,
            email=registration.email,
            phone=registration.phone,
            surl=success_url,
            furl=failure_url,
            registration_id=str(registration.id),
            event_id=str(registration.event_id),
            user_id=str(registration.user_id),
        )

        result, response = client.initiate(payload)
        log_gateway_interaction(
            'initiate',
            payment_id=payment.id,
            registration_id=registration.id,
            gateway_url=self.config.initiate_url,
            request_payload=_redacted(payload),
            response_payload=response.get('data'),
            http_status=response.get('status_code') or None,
            gateway_status='initiated' if result.ok else result.category,
            error_message='' if result.ok else result.message,
            duration_ms=response.get('duration_ms'),
        )

        if not result.ok:
            Payment.objects.filter(pk=payment.pk, status=Payment.STATUS_PENDING).update(
                status=Payment.STATUS_FAILED,
                failure_category=result.category,
                gateway_message=result.message,
                completed_at=timezone.now(),
                updated_at=timezone.now(),
            )
            logger.warning(
                f"❌ [PAYMENT] Initiate failed for payment {payment.id} ({result.category}): {result.message}"
            )
            raise GatewayError(
                result.message,
                category=result.category,
                gateway_response=result.raw,
                details={'transactionId': str(payment.id)},
            )

        Payment.objects.filter(pk=payment.pk).update(
            access_key=result.access_key,
            gateway_status='initiated',
            updated_at=timezone.now(),
        )
        logger.info(f"✅ [PAYMENT] Payment {payment.id} initiated for registration {registration.id}")
        return {
            'ok': True,
            'transactionId': str(payment.id),
            'paymentUrl': result.payment_url,
            'gateway': result.raw,
        }

    def _create_attempt(self, registration_id: str):
        with transaction.atomic():
            registration = (
                Registration.objects.alive()
                .select_for_update()
                .filter(pk=registration_id)
                .first()
            )
            if registration is None:
                raise NotFoundError("Registration not found")
            if registration.is_waitlisted:
                raise StateConflictError("Waitlisted registrations cannot be paid")
            if registration.payment_status == Registration.PAYMENT_PAID:
                raise StateConflictError("Registration is already paid")
            if registration.final_amount is None or registration.final_amount <= 0:
                raise ValidationError("amount must be a positive number")

            payment_id = uuid.uuid4()
            superseded = Payment.objects.filter(
                registration=registration, status=Payment.STATUS_PENDING
            ).update(
                status=Payment.STATUS_FAILED,
                gateway_message=f"Superseded by {payment_id}",
                completed_at=timezone.now(),
                updated_at=timezone.now(),
            )
            if superseded:
                logger.info(f"🔁 [PAYMENT] Superseded {superseded} pending payment(s) of {registration.id}")

            payment = Payment.objects.create(
                id=payment_id,
                registration=registration,
                user_id=registration.user_id,
                amount=registration.final_amount,
                gateway_txn_id=str(payment_id),
            )
            registration.transaction_id = payment.id
            registration.save(update_fields=['transaction_id', 'updated_at'])

        registration = Registration.objects.select_related('event').get(pk=registration.pk)
        return payment, registration


@dataclass
class CallbackResult:
    ok: bool
    flow: str
    http_status: int
    message: str = ''
    transaction_id: str = ''
    registration_id: str = ''
    reconciliation: Optional[ReconciliationResult] = None
    hash_check: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        body = {
            'ok': self.ok,
            'flow': self.flow,
            'transactionId': self.transaction_id or None,
            'registrationId': self.registration_id or None,
        }
        if self.message:
            body['message'] = self.message
        if self.reconciliation is not None:
            body['reconciliation'] = self.reconciliation.to_dict()
        return body


class CallbackService:
    """Handle an Easebuzz redirect/webhook callback end to end."""

    def __init__(self, config: Optional[EasebuzzConfig] = None, client: Optional[EasebuzzClient] = None,
                 reconciler: Optional[PaymentReconciler] = None, sleep=time.sleep):
        self.config = config or EasebuzzConfig.from_settings()
        self._client = client
        self.reconciler = reconciler or PaymentReconciler()
        self.sleep = sleep

    @property
    def client(self) -> EasebuzzClient:
        if self._client is None:
            self._client = EasebuzzClient(self.config)
        return self._client

    def handle(self, payload: Optional[Mapping[str, Any]], query: Optional[Mapping[str, Any]] = None,
               endpoint: str = '') -> CallbackResult:
        query = query or {}
        data = CallbackData.from_payload(payload if isinstance(payload, Mapping) else None)
        result = CallbackResult(ok=False, flow=FLOW_UNKNOWN, http_status=status.HTTP_400_BAD_REQUEST)
        try:
            result = self._process(data, query)
            return result
        finally:
            log_gateway_interaction(
                'callback',
                payment_id=data.payment_reference or query.get('paymentRef') or data.txnid,
                registration_id=data.registration_id or query.get('registrationId'),
                gateway_url=endpoint,
                request_payload=data.to_dict() if not data.is_empty else _as_log_payload(payload),
                response_payload=result.to_dict(),
                http_status=result.http_status,
                gateway_status=data.status,
                error_message='' if result.ok else result.message,
            )

    def _process(self, data: CallbackData, query: Mapping[str, Any]) -> CallbackResult:
        if data.is_empty or not data.txnid:
            logger.warning("⚠️ [CALLBACK] Empty or unparseable callback body")
            return CallbackResult(ok=False, flow=FLOW_UNKNOWN, http_status=status.HTTP_400_BAD_REQUEST,
                                  message='Invalid callback payload')

        verification = verify_response_hash(self.config, data.fields)
        if not verification.valid:
            logger.warning(f"⚠️ [CALLBACK] Rejected callback for txn {data.txnid}: {verification.reason}")
            return CallbackResult(ok=False, flow=data.flow, http_status=status.HTTP_400_BAD_REQUEST,
                                  message='Invalid callback signature', transaction_id=data.txnid,
                                  hash_check=verification.to_dict())

        if data.flow == FLOW_PENDING:
            data = self._poll_pending(data)

        flow = data.flow
        if flow == FLOW_UNKNOWN:
            logger.warning(f"⚠️ [CALLBACK] Unknown status {data.status!r} for txn {data.txnid}")
            return CallbackResult(ok=False, flow=flow, http_status=status.HTTP_400_BAD_REQUEST,
                                  message='Unknown payment status', transaction_id=data.txnid)

        outcome = CallbackOutcome(
            flow=flow,
            transaction_id=data.payment_reference or str(query.get('paymentRef') or ''),
            gateway_reference=data.txnid,
            registration_id=data.registration_id or str(query.get('registrationId') or ''),
            gateway_status=data.status,
            gateway_message=data.gateway_message,
            payment_mode=data.payment_mode,
            gateway_payment_id=data.easepayid,
        )
        reconciliation = self.reconciler.apply(outcome)
        dispatch_side_effects(reconciliation)

        logger.info(f"🔔 [CALLBACK] txn {data.txnid} processed as {flow}")
        return CallbackResult(
            ok=True,
            flow=flow,
            http_status=status.HTTP_200_OK,
            transaction_id=reconciliation.payment_id or outcome.transaction_id or data.txnid,
            registration_id=reconciliation.registration_id or outcome.registration_id,
            reconciliation=reconciliation,
        )

    def _poll_pending(self, data: CallbackData) -> CallbackData:
        """Ask the gateway again while it still says pending."""
        for attempt in range(1, self.config.pending_retries + 1):
            if self.config.pending_retry_delay:
                self.sleep(self.config.pending_retry_delay)

            response = self.client.retrieve(data.txnid)
            transaction_data = response.get('transaction') or {}
            log_gateway_interaction(
                'retrieve',
                payment_id=data.payment_reference or data.txnid,
                registration_id=data.registration_id,
                gateway_url=response.get('endpoint', ''),
                request_payload={**response.get('request_payload', {}), 'attempt': attempt},
                response_payload=response.get('data'),
                http_status=response.get('status_code') or None,
                gateway_status=str(transaction_data.get('status') or ''),
                error_message=response.get('error', ''),
                duration_ms=response.get('duration_ms'),
            )

            if not transaction_data:
                continue
            refreshed = CallbackData.from_payload({**data.fields, **transaction_data})
            if refreshed.flow != FLOW_PENDING:
                logger.info(f"🔄 [CALLBACK] txn {data.txnid} resolved to {refreshed.flow} on attempt {attempt}")
                return refreshed

        return data


class TransactionSyncService:
    """Pull the gateway's view of a registration's transaction and apply it."""

    def __init__(self, config: Optional[EasebuzzConfig] = None, client: Optional[EasebuzzClient] = None,
                 reconciler: Optional[PaymentReconciler] = None):
        self.config = config or EasebuzzConfig.from_settings()
        self._client = client
        self.reconciler = reconciler or PaymentReconciler()

    @property
    def client(self) -> EasebuzzClient:
        if self._client is None:
            self._client = EasebuzzClient(self.config)
        return self._client

    def sync_registration(self, registration_id) -> Dict[str, Any]:
        if not is_valid_uuid(str(registration_id or '').strip().lower()):
            raise ValidationError("registrationId must be a valid UUID")
        registration_id = str(registration_id).strip().lower()

        registration = Registration.objects.alive().filter(pk=registration_id).first()
        if registration is None:
            raise NotFoundError("Registration not found")
        if registration.transaction_id is None:
            raise StateConflictError("Registration has no payment to sync")

        payment = Payment.objects.filter(pk=registration.transaction_id).first()
        txnid = payment.gateway_txn_id if payment else str(registration.transaction_id)

        response = self.client.retrieve(txnid)
        transaction_data = response.get('transaction') or {}
        log_gateway_interaction(
            'transaction',
            payment_id=registration.transaction_id,
            registration_id=registration.id,
            gateway_url=response.get('endpoint', ''),
            request_payload=response.get('request_payload'),
            response_payload=response.get('data'),
            http_status=response.get('status_code') or None,
            gateway_status=str(transaction_data.get('status') or ''),
            error_message=response.get('error', ''),
            duration_ms=response.get('duration_ms'),
        )

        if not response.get('success') or not transaction_data:
            raise GatewayError(
                response.get('error') or 'Transaction not found at payment gateway',
                category='retrieve_failed',
                gateway_response=response.get('data'),
            )

        data = CallbackData.from_payload(transaction_data)
        if data.flow == FLOW_UNKNOWN:
            raise GatewayError(f"Unknown payment status: {data.status or 'missing'}", category='unknown_status')

        outcome = CallbackOutcome(
            flow=data.flow,
            transaction_id=str(registration.transaction_id),
            gateway_reference=txnid,
            registration_id=str(registration.id),
            gateway_status=data.status,
            gateway_message=data.gateway_message,
            payment_mode=data.payment_mode,
            gateway_payment_id=data.easepayid,
            skip_failure_email=True,
        )
        reconciliation = self.reconciler.apply(outcome)
        dispatch_side_effects(reconciliation)
        return {
            'ok': True,
            'registrationId': str(registration.id),
            'transactionId': str(registration.transaction_id),
            'gatewayStatus': data.status,
            'reconciliation': reconciliation.to_dict(),
        }

    def sync_many(self, registration_ids: Iterable[str]) -> List[Dict[str, Any]]:
        results = []
        for registration_id in registration_ids:
            try:
                results.append(self.sync_registration(registration_id))
            except DomainError as e:
                logger.warning(f"⚠️ [SYNC] {registration_id}: {e.message}")
                results.append({'ok': False, 'registrationId': str(registration_id), 'error': e.message})
            except Exception as e:
                logger.error(f"💥 [SYNC] Unexpected error syncing {registration_id}: {e}", exc_info=True)
                results.append({'ok': False, 'registrationId': str(registration_id),
                                'error': 'Unable to sync transaction'})
        return results
