"""
🎫 Registration lifecycle.

Creates registrations (payment or waitlist mode), converts waitlist entries into
payable bookings, cancels unpaid bookings and serves a user's booking history.
Payment state itself only moves through ``payment_processor.reconciliation``.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from apps.events.models import Event
from apps.events.pricing import PriceBreakdown, to_amount
from apps.events.services import PricingService, registration_window_open
from core.exceptions import (
    ConversionNotAllowed,
    EventNotBookable,
    NotFoundError,
    PersistenceError,
    StateConflictError,
    ValidationError,
)
from .intake import BookingIntakeValidator, BookingIntent, parse_uuid
from .models import Registration
from .tasks import enqueue_waitlist_confirmation

logger = logging.getLogger(__name__)

MODE_PAYMENT = 'payment'
MODE_WAITLIST = 'waitlist'

NOT_BOOKABLE_MESSAGES = {
    Event.STATUS_DRAFT: "Event is not open for bookings yet",
    Event.STATUS_CANCELLED: "Event has been cancelled",
    Event.STATUS_COMPLETED: "Event has already been completed",
}


@dataclass(frozen=True)
class BookingConfig:
    name_max_length: int = 80
    name_suffix_length: int = 12
    list_max_page_size: int = 50

    @classmethod
    def from_settings(cls) -> 'BookingConfig':
        return cls(
            name_max_length=getattr(settings, 'REGISTRATION_NAME_MAX_LENGTH', 80),
            list_max_page_size=getattr(settings, 'BOOKING_LIST_MAX_PAGE_SIZE', 50),
        )


@dataclass(frozen=True)
class BookingResult:
    booking_mode: str
    registration: Registration
    pricing: PriceBreakdown
    converted: bool = False


def resolve_booking_mode(event: Event) -> str:
    if event.status == Event.STATUS_WAITLIST:
        return MODE_WAITLIST
    if event.status == Event.STATUS_PUBLISHED:
        return MODE_PAYMENT
    raise EventNotBookable(NOT_BOOKABLE_MESSAGES.get(event.status, "Event is not accepting bookings"))


class BookingService:
    """Registration lifecycle manager."""

    def __init__(self, config: Optional[BookingConfig] = None,
                 validator: Optional[BookingIntakeValidator] = None,
                 pricing: Optional[PricingService] = None):
        self.config = config or BookingConfig.from_settings()
        self.validator = validator or BookingIntakeValidator()
        self.pricing = pricing or PricingService()

    # ------------------------------------------------------------------ create

    def load_bookable_event(self, event_id: str) -> Tuple[Event, str]:
        event = Event.objects.alive().filter(pk=event_id).first()
        if event is None:
            raise NotFoundError("Event not found")
        mode = resolve_booking_mode(event)
        if not registration_window_open(event):
            raise StateConflictError("Registration is closed for this event")
        return event, mode

    def create_booking(self, payload: Mapping[str, Any], user_id=None) -> BookingResult:
        """Validate, price and persist a booking request."""
        event_id = parse_uuid(payload.get('eventId') or payload.get('event_id'), 'eventId')
        user_id = parse_uuid(user_id or payload.get('userId') or payload.get('user_id'), 'userId')

        event, mode = self.load_bookable_event(event_id)
        intent = self.validator.validate(
            payload,
            event_id=event_id,
            user_id=user_id,
            waitlist_mode=(mode == MODE_WAITLIST),
            form_fields=event.form_fields.all(),
        )

        if intent.registration_id and mode != MODE_PAYMENT:
            raise ConversionNotAllowed()

        pricing = self.pricing.quote(
            event, intent.tickets, intent.coupon_id, intent.bundle_id,
            enforce_availability=(mode == MODE_PAYMENT),
        )
        self._warn_on_amount_mismatch(intent, pricing)

        try:
            with transaction.atomic():
                if intent.registration_id:
                    registration = self._convert_waitlisted(event, intent, pricing)
                    converted = True
                else:
                    registration = self._create_registration(event, intent, pricing, mode)
                    converted = False
        except DatabaseError as e:
            logger.error(f"🎫 [BOOKING] Could not persist booking for event {event_id}: {e}", exc_info=True)
            raise PersistenceError("Unable to initiate booking at this time")

        if mode == MODE_WAITLIST:
            enqueue_waitlist_confirmation(registration.id)

        logger.info(
            f"🎫 [BOOKING] {'Converted' if converted else 'Created'} registration {registration.id} "
            f"({mode}) for event {event.id}: final {pricing.final_amount}"
        )
        return BookingResult(booking_mode=mode, registration=registration, pricing=pricing, converted=converted)

    def _warn_on_amount_mismatch(self, intent: BookingIntent, pricing: PriceBreakdown):
        if intent.client_amount is None:
            return
        try:
            client_amount = to_amount(intent.client_amount)
        except ValidationError:
            logger.warning(f"🎫 [BOOKING] Unparseable client amount {intent.client_amount!r}, using server price")
            return
        if client_amount != pricing.final_amount:
            logger.warning(
                f"🎫 [BOOKING] Client amount {client_amount} differs from server price "
                f"{pricing.final_amount} for event {intent.event_id}; server price wins"
            )

    def _registration_name(self, event: Event) -> str:
        suffix = uuid.uuid4().hex[:self.config.name_suffix_length]
        return f"{event.name.strip()[:self.config.name_max_length]}-{suffix}"

    @staticmethod
    def _verification_default(event: Event) -> Optional[bool]:
        return False if event.verification_required else None

    @staticmethod
    def _pricing_fields(intent: BookingIntent, pricing: PriceBreakdown) -> Dict[str, Any]:
        return {
            'first_name': intent.attendee.first_name,
            'email': intent.attendee.email,
            'phone': intent.attendee.phone,
            'tickets_bought': intent.tickets,
            'coupon_id': intent.coupon_id,
            'bundle_id': intent.bundle_id,
            'total_amount': pricing.subtotal,
            'bundle_discount': pricing.bundle_discount,
            'coupon_discount': pricing.coupon_discount,
            'final_amount': pricing.final_amount,
            'form_response': intent.form_response,
        }

    def _create_registration(self, event: Event, intent: BookingIntent, pricing: PriceBreakdown,
                             mode: str) -> Registration:
        return Registration.objects.create(
            event=event,
            user_id=intent.user_id,
            name=self._registration_name(event),
            payment_status=Registration.PAYMENT_PENDING,
            is_waitlisted=(mode == MODE_WAITLIST),
            is_verified=self._verification_default(event),
            **self._pricing_fields(intent, pricing),
        )

    def _convert_waitlisted(self, event: Event, intent: BookingIntent, pricing: PriceBreakdown) -> Registration:
        registration = (
            Registration.objects.select_for_update()
            .filter(pk=intent.registration_id)
            .first()
        )
        eligible = (
            registration is not None
            and str(registration.user_id) == intent.user_id
            and str(registration.event_id) == str(event.id)
            and registration.deleted_at is None
            and registration.is_waitlisted
        )
        if not eligible:
            logger.warning(
                f"🎫 [BOOKING] Registration {intent.registration_id} not eligible for conversion "
                f"by user {intent.user_id}"
            )
            raise ConversionNotAllowed()

        for field_name, value in self._pricing_fields(intent, pricing).items():
            setattr(registration, field_name, value)
        registration.is_waitlisted = False
        registration.payment_status = Registration.PAYMENT_PENDING
        registration.is_verified = self._verification_default(event)
        registration.save()
        return registration

    # ------------------------------------------------------------------ cancel

    def cancel(self, user_id, registration_id) -> Registration:
        """Soft-delete an unpaid booking owned by ``user_id``."""
        user_id = parse_uuid(user_id, 'userId')
        registration_id = parse_uuid(registration_id, 'registrationId')

        registration = Registration.objects.filter(pk=registration_id, user_id=user_id).first()
        if registration is None:
            raise NotFoundError("Booking not found")
        if registration.deleted_at is not None:
            raise StateConflictError("Booking is already cancelled")
        if registration.is_paid:
            raise StateConflictError("Paid bookings cannot be cancelled")

        now = timezone.now()
        updated = Registration.objects.filter(
            pk=registration.pk,
            deleted_at__isnull=True,
        ).exclude(
            payment_status=Registration.PAYMENT_PAID,
        ).update(deleted_at=now, updated_at=now)
        if not updated:
            raise StateConflictError("Booking is already cancelled")

        registration.refresh_from_db()
        logger.info(f"🎫 [BOOKING] Registration {registration.id} cancelled by user {user_id}")
        return registration

    # ------------------------------------------------------------------ read

    def get_for_user(self, user_id, registration_id) -> Registration:
        user_id = parse_uuid(user_id, 'userId')
        registration_id = parse_uuid(registration_id, 'registrationId')
        registration = (
            Registration.objects.alive()
            .select_related('event')
            .filter(pk=registration_id, user_id=user_id)
            .first()
        )
        if registration is None:
            raise NotFoundError("Booking not found")
        return registration

    def list_for_user(self, user_id, page=1, limit=None, event_id=None) -> Dict[str, Any]:
        user_id = parse_uuid(user_id, 'userId')
        page = self._positive_int(page, 'page', default=1)
        limit = min(
            self._positive_int(limit, 'limit', default=self.config.list_max_page_size),
            self.config.list_max_page_size,
        )

        queryset = Registration.objects.alive().select_related('event').filter(user_id=user_id)
        if event_id:
            queryset = queryset.filter(event_id=parse_uuid(event_id, 'eventId'))

        total = queryset.count()
        offset = (page - 1) * limit
        return {
            'items': list(queryset.order_by('-created_at')[offset:offset + limit]),
            'page': page,
            'limit': limit,
            'total': total,
            'has_more': offset + limit < total,
        }

    @staticmethod
    def _positive_int(value, name: str, default: int) -> int:
        if value in (None, ''):
            return default
        try:
            parsed = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be a positive integer")
        if parsed < 1:
            raise ValidationError(f"{name} must be a positive integer")
        return parsed
