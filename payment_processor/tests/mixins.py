"""Shared fixtures for payment tests."""

import uuid
from decimal import Decimal
from unittest import mock

from apps.bookings.models import Registration
from apps.events.models import Event, Ticket
from payment_processor.gateway import EasebuzzConfig, response_hash
from payment_processor.models import Payment


def gateway_response(payload, status_code=200):
    return mock.Mock(status_code=status_code, json=mock.Mock(return_value=payload), text=str(payload))


class PaymentFixturesMixin:

    def setUp(self):
        self.config = EasebuzzConfig.from_settings()
        self.event = Event.objects.create(name='Sunburn Arena', status=Event.STATUS_PUBLISHED, location='Goa')
        self.ticket = Ticket.objects.create(event=self.event, name='Gold', price=Decimal('450.00'))
        self.registration = Registration.objects.create(
            event=self.event,
            user_id=uuid.uuid4(),
            name=f"Sunburn Arena-{uuid.uuid4().hex[:12]}",
            first_name='Asha',
            email='asha@example.com',
            phone='9876543210',
            tickets_bought={str(self.ticket.id): 2},
            total_amount=Decimal('900.00'),
            final_amount=Decimal('900.00'),
        )

    def create_payment(self, status=Payment.STATUS_PENDING):
        payment_id = uuid.uuid4()
        payment = Payment.objects.create(
            id=payment_id,
            registration=self.registration,
            user_id=self.registration.user_id,
            amount=self.registration.final_amount,
            status=status,
            gateway_txn_id=str(payment_id),
        )
        Registration.objects.filter(pk=self.registration.pk).update(transaction_id=payment.id)
        self.registration.refresh_from_db()
        return payment

    def callback_params(self, payment, status='success', signed=True, **overrides):
        params = {
            'txnid': payment.gateway_txn_id,
            'status': status,
            'amount': '900.00',
            'productinfo': 'Sunburn Arena',
            'firstname': 'Asha',
            'email': 'asha@example.com',
            'easepayid': 'E12345',
            'mode': 'UPI',
            'udf1': str(self.registration.id),
            'udf2': str(self.event.id),
            'udf3': str(self.registration.user_id),
            'udf4': str(payment.id),
        }
        params.update(overrides)
        if signed:
            params['hash'] = response_hash(self.config, params)
        return params
