"""
Celery tasks for the bookings app.
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def send_waitlist_confirmation_task(self, registration_id):
    """Email the attendee that their waitlist spot is saved."""
    from .models import Registration
    from .notifications import send_waitlist_confirmation_email

    try:
        registration = Registration.objects.select_related('event').get(id=registration_id)
    except Registration.DoesNotExist:
        logger.warning(f"📧 [WAITLIST] Registration {registration_id} not found, skipping email")
        return {'status': 'skipped', 'reason': 'registration_not_found'}

    result = send_waitlist_confirmation_email(registration)
    if result['status'] == 'failed' and self.request.retries < self.max_retries:
        raise self.retry(countdown=60 * (self.request.retries + 1))
    return result


def enqueue_waitlist_confirmation(registration_id):
    """Queue the waitlist email. Enqueue failures are logged, never raised."""
    try:
        send_waitlist_confirmation_task.apply_async(args=[str(registration_id)], queue='emails')
    except Exception as e:
        logger.error(f"📧 [WAITLIST] Could not enqueue confirmation for {registration_id}: {e}", exc_info=True)
