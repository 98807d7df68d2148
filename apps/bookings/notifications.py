"""
📧 Booking notification emails.

Success (with the ticket PDF attached when available), failure and waitlist
confirmation. Sending never raises: every function returns a result dict and logs
what went wrong.
"""

import logging
from typing import Any, Dict, Optional

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


def _booking_context(registration) -> Dict[str, Any]:
    event = registration.event
    return {
        'registration': registration,
        'event': event,
        'first_name': registration.first_name,
        'event_name': event.name,
        'ticket_count': registration.ticket_count,
        'final_amount': registration.final_amount,
        'ticket_url': registration.ticket_url,
        'booking_url': f"{settings.FRONTEND_URL}/bookings/{registration.id}",
        'event_url': f"{settings.FRONTEND_URL}/event/{event.id}",
    }


def _send(template: str, subject: str, registration, attachment: Optional[tuple] = None) -> Dict[str, Any]:
    try:
        context = _booking_context(registration)
        text_body = render_to_string(f"bookings/emails/{template}.txt", context)
        html_body = render_to_string(f"bookings/emails/{template}.html", context)

        message = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            to=[registration.email],
        )
        message.attach_alternative(html_body, "text/html")
        if attachment:
            message.attach(*attachment)
        message.send(fail_silently=False)

        logger.info(f"📧 [EMAIL] {template} sent to {registration.email} for registration {registration.id}")
        return {'status': 'sent', 'to': registration.email}
    except Exception as e:
        logger.error(f"📧 [EMAIL] {template} failed for registration {registration.id}: {e}", exc_info=True)
        return {'status': 'failed', 'error': str(e)}


def send_booking_success_email(registration, ticket_pdf: Optional[bytes] = None) -> Dict[str, Any]:
    attachment = None
    if ticket_pdf:
        attachment = (f"ticket-{registration.id}.pdf", ticket_pdf, 'application/pdf')
    return _send(
        'booking_success',
        f"Your tickets for {registration.event.name}",
        registration,
        attachment,
    )


def send_booking_failure_email(registration) -> Dict[str, Any]:
    return _send(
        'booking_failure',
        f"Payment failed for {registration.event.name}",
        registration,
    )


def send_waitlist_confirmation_email(registration) -> Dict[str, Any]:
    return _send(
        'waitlist_confirmation',
        f"You're on the waitlist for {registration.event.name}",
        registration,
    )
