"""
Tests for the registration lifecycle: payment and waitlist creation, conversion,
cancellation and listing.
"""

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.core import mail
from django.test import TestCase
from django.utils import timezone

from apps.bookings.models import Registration
from apps.bookings.services import MODE_PAYMENT, MODE_WAITLIST, BookingService
from apps.events.models import BundleOffer, Coupon, Event, EventFormField, Ticket
from core.exceptions import (
    ConversionNotAllowed,
    CouponInvalid,
    EventNotBookable,
    NotFoundError,
    RequiredFieldMissing,
    StateConflictError,
    TicketUnavailable,
    ValidationError,
)


class BookingTestMixin:

    def setUp(self):
        self.user_id = str(uuid.uuid4())
        self.event = Event.objects.create(name='Sunburn Arena', status=Event.STATUS_PUBLISHED)
        self.gold = Ticket.objects.create(event=self.event, name='Gold', price=Decimal('500.00'), quantity=100)
        self.silver = Ticket.objects.create(event=self.event, name='Silver', price=Decimal('300.00'))
        self.service = BookingService()

    def payload(self, tickets=None, **overrides):
        data = {
            'eventId': str(self.event.id),
            'firstName': 'Asha',
            'email': 'asha@example.com',
            'phone': '9876543210',
            'ticketsBought': {str(self.gold.id): 1} if tickets is None else tickets,
        }
        data.update(overrides)
        return data


class PaymentModeBookingTestCase(BookingTestMixin, TestCase):

    def test_creates_pending_registration(self):
        result = self.service.create_booking(self.payload(), user_id=self.user_id)

        registration = result.registration
        self.assertEqual(result.booking_mode, MODE_PAYMENT)
        self.assertFalse(result.converted)
        self.assertEqual(registration.payment_status, Registration.PAYMENT_PENDING)
        self.assertFalse(registration.is_waitlisted)
        self.assertIsNone(registration.is_verified)
        self.assertEqual(registration.final_amount, Decimal('500.00'))
        self.assertEqual(registration.tickets_bought, {str(self.gold.id): 1})

    def test_registration_name_format(self):
        registration = self.service.create_booking(self.payload(), user_id=self.user_id).registration
        prefix, suffix = registration.name.rsplit('-', 1)
        self.assertEqual(prefix, 'Sunburn Arena')
        self.assertEqual(len(suffix), 12)
        int(suffix, 16)

    def test_long_event_name_is_truncated(self):
        self.event.name = 'X' * 120
        self.event.save()
        registration = self.service.create_booking(self.payload(), user_id=self.user_id).registration
        self.assertEqual(registration.name, f"{'X' * 80}-{registration.name[-12:]}")

    def test_verification_required_event(self):
        self.event.verification_required = True
        self.event.save()
        registration = self.service.create_booking(self.payload(), user_id=self.user_id).registration
        self.assertIs(registration.is_verified, False)

    def test_bundle_and_coupon_pricing(self):
        BundleOffer.objects.create(event=self.event, buy_quantity=2, get_quantity=1,
                                   applicable_ticket_ids=[str(self.gold.id)])
        coupon = Coupon.objects.create(event=self.event, code='TEN', discount_type='percentage',
                                       discount_value=Decimal('10'))

        result = self.service.create_booking(
            self.payload(tickets={str(self.gold.id): 3}, couponId=str(coupon.id)), user_id=self.user_id
        )

        self.assertEqual(result.pricing.subtotal, Decimal('1500.00'))
        self.assertEqual(result.pricing.bundle_discount, Decimal('500.00'))
        self.assertEqual(result.pricing.coupon_discount, Decimal('100.00'))
        self.assertEqual(result.registration.final_amount, Decimal('900.00'))
        self.assertEqual(result.pricing.applied_offers[0].name, 'Bundle: Buy 2 Get 1')
        coupon.refresh_from_db()
        self.assertEqual(coupon.used_count, 0)

    def test_client_amount_is_informational(self):
        with self.assertLogs('apps.bookings.services', level='WARNING') as logs:
            result = self.service.create_booking(self.payload(amount='1'), user_id=self.user_id)
        self.assertEqual(result.registration.final_amount, Decimal('500.00'))
        self.assertIn('server price wins', logs.output[0])

    def test_empty_selection_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.service.create_booking(self.payload(tickets={}), user_id=self.user_id)
        self.assertEqual(ctx.exception.message, 'tickets_bought cannot be empty')
        self.assertEqual(Registration.objects.count(), 0)

    def test_ticket_of_other_event_rejected(self):
        other_event = Event.objects.create(name='Other', status=Event.STATUS_PUBLISHED)
        foreign = Ticket.objects.create(event=other_event, name='VIP', price=Decimal('900'))
        with self.assertRaises(NotFoundError):
            self.service.create_booking(self.payload(tickets={str(foreign.id): 1}), user_id=self.user_id)

    def test_capacity_read_check(self):
        self.gold.quantity = 2
        self.gold.sold_count = 1
        self.gold.save()
        with self.assertRaises(TicketUnavailable):
            self.service.create_booking(self.payload(tickets={str(self.gold.id): 2}), user_id=self.user_id)

    def test_max_per_booking(self):
        self.silver.max_per_booking = 4
        self.silver.save()
        with self.assertRaises(TicketUnavailable):
            self.service.create_booking(self.payload(tickets={str(self.silver.id): 5}), user_id=self.user_id)

    def test_inactive_ticket(self):
        self.silver.status = 'inactive'
        self.silver.save()
        with self.assertRaises(TicketUnavailable):
            self.service.create_booking(self.payload(tickets={str(self.silver.id): 1}), user_id=self.user_id)

    def test_invalid_coupon_rejected(self):
        with self.assertRaises(CouponInvalid):
            self.service.create_booking(self.payload(couponId=str(uuid.uuid4())), user_id=self.user_id)
        self.assertEqual(Registration.objects.count(), 0)

    def test_required_form_field(self):
        EventFormField.objects.create(event=self.event, field_name='college', label='College', is_required=True)
        with self.assertRaises(RequiredFieldMissing) as ctx:
            self.service.create_booking(self.payload(), user_id=self.user_id)
        self.assertEqual(ctx.exception.message, 'College is required')

    def test_closed_registration_window(self):
        self.event.registration_closes_at = timezone.now() - timedelta(hours=1)
        self.event.save()
        with self.assertRaises(StateConflictError) as ctx:
            self.service.create_booking(self.payload(), user_id=self.user_id)
        self.assertEqual(ctx.exception.message, 'Registration is closed for this event')

    def test_unknown_and_deleted_events(self):
        with self.assertRaises(NotFoundError):
            self.service.create_booking(self.payload(eventId=str(uuid.uuid4())), user_id=self.user_id)
        self.event.soft_delete()
        with self.assertRaises(NotFoundError):
            self.service.create_booking(self.payload(), user_id=self.user_id)


class NotBookableEventTestCase(BookingTestMixin, TestCase):

    def test_rejected_statuses_write_nothing(self):
        for event_status in (Event.STATUS_DRAFT, Event.STATUS_CANCELLED, Event.STATUS_COMPLETED):
            self.event.status = event_status
            self.event.save()
            with self.assertRaises(EventNotBookable, msg=event_status):
                self.service.create_booking(self.payload(), user_id=self.user_id)
        self.assertEqual(Registration.objects.count(), 0)


class WaitlistBookingTestCase(BookingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.event.status = Event.STATUS_WAITLIST
        self.event.save()

    def test_waitlist_registration_is_flagged(self):
        result = self.service.create_booking(self.payload(tickets={}), user_id=self.user_id)

        self.assertEqual(result.booking_mode, MODE_WAITLIST)
        self.assertTrue(result.registration.is_waitlisted)
        self.assertEqual(result.registration.tickets_bought, {})
        self.assertEqual(result.pricing.final_amount, Decimal('0.00'))

    def test_waitlist_confirmation_email(self):
        self.service.create_booking(self.payload(tickets={}), user_id=self.user_id)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['asha@example.com'])

    @mock.patch('apps.bookings.tasks.send_waitlist_confirmation_task.apply_async')
    def test_waitlist_booking_survives_enqueue_failure(self, mock_apply_async):
        mock_apply_async.side_effect = ConnectionError('broker unavailable')

        result = self.service.create_booking(self.payload(tickets={}), user_id=self.user_id)

        mock_apply_async.assert_called_once()
        self.assertEqual(result.booking_mode, MODE_WAITLIST)
        registration = Registration.objects.get(pk=result.registration.pk)
        self.assertTrue(registration.is_waitlisted)
        self.assertEqual(len(mail.outbox), 0)

    def test_sold_out_ticket_can_be_waitlisted(self):
        self.gold.quantity = 1
        self.gold.sold_count = 1
        self.gold.save()
        result = self.service.create_booking(self.payload(), user_id=self.user_id)
        self.assertTrue(result.registration.is_waitlisted)

    def test_conversion_requires_payment_mode(self):
        existing = self.service.create_booking(self.payload(tickets={}), user_id=self.user_id).registration
        with self.assertRaises(ConversionNotAllowed):
            self.service.create_booking(self.payload(registrationId=str(existing.id)), user_id=self.user_id)


class WaitlistConversionTestCase(BookingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.event.status = Event.STATUS_WAITLIST
        self.event.save()
        self.waitlisted = self.service.create_booking(self.payload(tickets={}), user_id=self.user_id).registration
        self.event.status = Event.STATUS_PUBLISHED
        self.event.save()

    def test_conversion_updates_row_in_place(self):
        result = self.service.create_booking(
            self.payload(tickets={str(self.gold.id): 2}, registrationId=str(self.waitlisted.id)),
            user_id=self.user_id,
        )

        self.assertTrue(result.converted)
        self.assertEqual(result.registration.pk, self.waitlisted.pk)
        self.assertEqual(result.registration.name, self.waitlisted.name)
        self.assertFalse(result.registration.is_waitlisted)
        self.assertEqual(result.registration.final_amount, Decimal('1000.00'))
        self.assertEqual(Registration.objects.count(), 1)

    def test_other_user_cannot_convert(self):
        with self.assertRaises(ConversionNotAllowed) as ctx:
            self.service.create_booking(
                self.payload(registrationId=str(self.waitlisted.id)), user_id=str(uuid.uuid4())
            )
        self.assertEqual(ctx.exception.message, 'Existing registration is not eligible for waitlist conversion')

    def test_already_converted_cannot_convert_again(self):
        self.service.create_booking(self.payload(registrationId=str(self.waitlisted.id)), user_id=self.user_id)
        with self.assertRaises(ConversionNotAllowed):
            self.service.create_booking(self.payload(registrationId=str(self.waitlisted.id)), user_id=self.user_id)

    def test_deleted_registration_cannot_convert(self):
        self.waitlisted.soft_delete()
        with self.assertRaises(ConversionNotAllowed):
            self.service.create_booking(self.payload(registrationId=str(self.waitlisted.id)), user_id=self.user_id)


class CancelAndListTestCase(BookingTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.registration = self.service.create_booking(self.payload(), user_id=self.user_id).registration

    def test_cancel_pending_booking(self):
        cancelled = self.service.cancel(self.user_id, str(self.registration.id))
        self.assertIsNotNone(cancelled.deleted_at)

    def test_second_cancel_conflicts(self):
        self.service.cancel(self.user_id, str(self.registration.id))
        with self.assertRaises(StateConflictError) as ctx:
            self.service.cancel(self.user_id, str(self.registration.id))
        self.assertEqual(ctx.exception.message, 'Booking is already cancelled')

    def test_paid_booking_cannot_be_cancelled(self):
        Registration.objects.filter(pk=self.registration.pk).update(payment_status=Registration.PAYMENT_PAID)
        with self.assertRaises(StateConflictError):
            self.service.cancel(self.user_id, str(self.registration.id))

    def test_cancel_other_users_booking(self):
        with self.assertRaises(NotFoundError):
            self.service.cancel(str(uuid.uuid4()), str(self.registration.id))

    def test_list_for_user(self):
        self.service.create_booking(self.payload(), user_id=self.user_id)
        self.service.create_booking(self.payload(), user_id=str(uuid.uuid4()))

        listing = self.service.list_for_user(self.user_id, page=1, limit=1)

        self.assertEqual(listing['total'], 2)
        self.assertEqual(len(listing['items']), 1)
        self.assertTrue(listing['has_more'])

    def test_list_page_size_is_capped(self):
        listing = self.service.list_for_user(self.user_id, limit=500)
        self.assertEqual(listing['limit'], 50)

    def test_cancelled_bookings_are_hidden(self):
        self.service.cancel(self.user_id, str(self.registration.id))
        self.assertEqual(self.service.list_for_user(self.user_id)['total'], 0)
        with self.assertRaises(NotFoundError):
            self.service.get_for_user(self.user_id, str(self.registration.id))
