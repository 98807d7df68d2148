"""
Tests for the booking endpoints.
"""

import uuid
from decimal import Decimal

from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Registration
from apps.events.models import Event, Ticket

BOOKINGS_URL = '/api/v1/bookings/'


class BookingEndpointsTestCase(APITestCase):
    """Tests for /api/v1/bookings/."""

    def setUp(self):
        self.user_id = str(uuid.uuid4())
        self.event = Event.objects.create(name='Sunburn Arena', status=Event.STATUS_PUBLISHED)
        self.gold = Ticket.objects.create(event=self.event, name='Gold', price=Decimal('500.00'))

    def booking_body(self, **overrides):
        body = {
            'eventId': str(self.event.id),
            'userId': self.user_id,
            'firstName': 'Asha',
            'email': 'asha@example.com',
            'phone': '9876543210',
            'eventName': 'Sunburn Arena',
            'amount': 1000,
            'tickets_bought': {str(self.gold.id): 2},
        }
        body.update(overrides)
        return body

    def test_create_booking(self):
        response = self.client.post(BOOKINGS_URL, self.booking_body(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['ok'])
        self.assertEqual(response.data['bookingMode'], 'payment')
        self.assertEqual(response.data['pricing']['finalAmount'], '1000.00')
        self.assertEqual(response.data['booking']['paymentStatus'], 'pending')
        self.assertEqual(response.data['booking']['userId'], self.user_id)

    def test_create_requires_user(self):
        body = self.booking_body()
        del body['userId']
        response = self.client.post(BOOKINGS_URL, body, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'userId is required')

    def test_create_with_bad_phone(self):
        response = self.client.post(BOOKINGS_URL, self.booking_body(phone='98765 43210'), format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'phone must be exactly 10 digits')
        self.assertEqual(Registration.objects.count(), 0)

    def test_create_for_draft_event(self):
        self.event.status = Event.STATUS_DRAFT
        self.event.save()
        response = self.client.post(BOOKINGS_URL, self.booking_body(), format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'event_not_bookable')
        self.assertEqual(Registration.objects.count(), 0)

    def test_list_detail_and_cancel(self):
        created = self.client.post(BOOKINGS_URL, self.booking_body(), format='json')
        booking_id = created.data['booking']['id']
        detail_url = f"{BOOKINGS_URL}{booking_id}/"

        listing = self.client.get(BOOKINGS_URL, {'userId': self.user_id})
        self.assertEqual(listing.status_code, status.HTTP_200_OK)
        self.assertEqual(listing.data['total'], 1)
        self.assertEqual(listing.data['bookings'][0]['id'], booking_id)

        detail = self.client.get(detail_url, {'userId': self.user_id})
        self.assertEqual(detail.status_code, status.HTTP_200_OK)
        self.assertEqual(detail.data['booking']['finalAmount'], '1000.00')

        cancelled = self.client.delete(f"{detail_url}?userId={self.user_id}")
        self.assertEqual(cancelled.status_code, status.HTTP_200_OK)

        again = self.client.delete(f"{detail_url}?userId={self.user_id}")
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data['error'], 'Booking is already cancelled')

    def test_detail_of_unknown_booking(self):
        response = self.client.get(f"{BOOKINGS_URL}{uuid.uuid4()}/", {'userId': self.user_id})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_list_rejects_bad_limit(self):
        response = self.client.get(BOOKINGS_URL, {'userId': self.user_id, 'limit': 0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
