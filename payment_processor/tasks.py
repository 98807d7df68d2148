"""
🚀 PAYMENT TASKS

Celery side effects of a reconciled payment: ticket issuance, success and
failure emails, and the periodic sync of pending payments against the gateway.
"""

import logging

from celery import shared_task
from django.conf import settings
from django.db import transaction

from .reconciliation import ISSUE_TICKET, SEND_FAILURE_EMAIL, SEND_SUCCESS_EMAIL

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def issue_ticket_task(self, registration_id, send_success_email=False):
    """
    Generate and store the ticket for a paid registration.

    With ``send_success_email`` the success email goes out afterwards, with the
    fresh PDF attached when issuance worked and without it when it did not.
    """
    from .issuance import TicketIssuer

    result = TicketIssuer().issue(registration_id)
    if not result.ok and not result.skipped and self.request.retries < self.max_retries:
        logger.warning(f"🎫 [ISSUANCE] Retrying ticket for {registration_id}: {result.error}")
        raise self.retry(countdown=60 * (self.request.retries + 1))

    if send_success_email and not result.skipped:
        _send_success_email(registration_id, result.pdf)

    return {
        'ok': result.ok,
        'registration_id': result.registration_id,
        'ticket_url': result.ticket_url,
        'error': result.error,
    }


def _send_success_email(registration_id, ticket_pdf=None):
    from apps.bookings.models import Registration
    from apps.bookings.notifications import send_booking_success_email

    registration = Registration.objects.select_related('event').filter(pk=registration_id).first()
    if registration is None:
        logger.warning(f"📧 [EMAIL] Registration {registration_id} not found, skipping success email")
        return {'status': 'skipped', 'reason': 'registration_not_found'}
    return send_booking_success_email(registration, ticket_pdf=ticket_pdf)


@shared_task(bind=True, max_retries=3)
def send_booking_success_email_task(self, registration_id):
    """Success email on its own, attaching the stored ticket if there is one."""
    from .issuance import TicketIssuer

    result = _send_success_email(registration_id, TicketIssuer().load_pdf(registration_id))
    if result['status'] == 'failed' and self.request.retries < self.max_retries:
        raise self.retry(countdown=60 * (self.request.retries + 1))
    return result


@shared_task(bind=True, max_retries=3)
def send_booking_failure_email_task(self, registration_id):
    from apps.bookings.models import Registration
    from apps.bookings.notifications import send_booking_failure_email

    registration = Registration.objects.select_related('event').filter(pk=registration_id).first()
    if registration is None:
        logger.warning(f"📧 [EMAIL] Registration {registration_id} not found, skipping failure email")
        return {'status': 'skipped', 'reason': 'registration_not_found'}

    result = send_booking_failure_email(registration)
    if result['status'] == 'failed' and self.request.retries < self.max_retries:
        raise self.retry(countdown=60 * (self.request.retries + 1))
    return result


@shared_task(bind=True)
def sync_pending_payments(self, batch_size=None):
    """
    Periodic: ask the gateway about every pending registration that has a
    transaction id and apply what it says. Failure emails are not sent from here.
    """
    from apps.bookings.models import Registration
    from .services import TransactionSyncService

    batch_size = batch_size or settings.PAYMENT_SYNC_BATCH_SIZE
    pending_ids = list(
        Registration.objects.alive()
        .filter(payment_status=Registration.PAYMENT_PENDING, is_waitlisted=False, transaction_id__isnull=False)
        .order_by('created_at')
        .values_list('id', flat=True)
    )
    if not pending_ids:
        logger.info("🔄 [SYNC] No pending payments to sync")
        return {'synced': 0, 'batches': 0}

    service = TransactionSyncService()
    synced = 0
    batches = 0
    for start in range(0, len(pending_ids), batch_size):
        batch = [str(registration_id) for registration_id in pending_ids[start:start + batch_size]]
        results = service.sync_many(batch)
        synced += sum(1 for item in results if item.get('ok'))
        batches += 1

    logger.info(f"🔄 [SYNC] Synced {synced}/{len(pending_ids)} pending registrations in {batches} batches")
    return {'synced': synced, 'total': len(pending_ids), 'batches': batches}


def _enqueue(task, registration_id, queue='emails', **kwargs):
    try:
        task.apply_async(args=[registration_id], kwargs=kwargs, queue=queue)
    except Exception as e:
        logger.error(f"📤 [OUTBOX] Could not enqueue {task.name} for {registration_id}: {e}", exc_info=True)


def run_side_effects(registration_id, side_effects):
    """Enqueue the Celery task for each outbox entry."""
    if not registration_id or not side_effects:
        return
    registration_id = str(registration_id)
    effects = set(side_effects)

    if ISSUE_TICKET in effects:
        _enqueue(issue_ticket_task, registration_id, queue='tickets', send_success_email=SEND_SUCCESS_EMAIL in effects)
    elif SEND_SUCCESS_EMAIL in effects:
        _enqueue(send_booking_success_email_task, registration_id)

    if SEND_FAILURE_EMAIL in effects:
        _enqueue(send_booking_failure_email_task, registration_id)

    logger.info(f"📤 [OUTBOX] Dispatched {sorted(effects)} for registration {registration_id}")


def dispatch_side_effects(result):
    """Run a reconciliation outbox once the surrounding transaction commits."""
    if not result.side_effects:
        return
    registration_id = result.registration_id
    side_effects = list(result.side_effects)
    transaction.on_commit(lambda: run_side_effects(registration_id, side_effects))
