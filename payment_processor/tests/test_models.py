"""
Tests for payment models.
"""

from django.test import TestCase

from payment_processor.models import Payment, PaymentLog
from .mixins import PaymentFixturesMixin


class PaymentLogTestCase(TestCase):

    def setUp(self):
        self.log = PaymentLog.objects.create(action='callback', payment_id='unknown-txn', http_status=400)

    def test_rows_cannot_be_updated(self):
        self.log.http_status = 200
        with self.assertRaises(TypeError):
            self.log.save()

    def test_queryset_update_is_blocked(self):
        with self.assertRaises(TypeError):
            PaymentLog.objects.filter(pk=self.log.pk).update(http_status=200)

    def test_rows_cannot_be_deleted(self):
        with self.assertRaises(TypeError):
            self.log.delete()


class PaymentTestCase(PaymentFixturesMixin, TestCase):

    def test_terminal_statuses(self):
        payment = self.create_payment()
        self.assertFalse(payment.is_terminal)
        payment.status = Payment.STATUS_PAID
        self.assertTrue(payment.is_terminal)
