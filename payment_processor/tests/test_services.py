"""
Tests for payment initiation, callback handling and transaction sync.
"""

import uuid
from dataclasses import replace
from decimal import Decimal
from unittest import mock

from django.core import mail
from django.test import TestCase

from apps.bookings.models import Registration
from core.exceptions import (
    ConfigurationError,
    GatewayError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from payment_processor.gateway import EasebuzzConfig
from payment_processor.models import Payment, PaymentLog
from payment_processor.services import (
    CallbackService,
    PaymentInitiationService,
    TransactionSyncService,
)
from .mixins import PaymentFixturesMixin, gateway_response


class PaymentInitiationTestCase(PaymentFixturesMixin, TestCase):
    """Tests for PaymentInitiationService."""

    def setUp(self):
        super().setUp()
        self.service = PaymentInitiationService()

    @mock.patch('payment_processor.gateway.requests.post')
    def test_successful_initiate(self, mock_post):
        mock_post.return_value = gateway_response({'status': 1, 'data': 'access-key-1'})

        result = self.service.initiate(str(self.registration.id), 'http://api.test')

        payment = Payment.objects.get()
        self.registration.refresh_from_db()
        self.assertTrue(result['ok'])
        self.assertEqual(result['transactionId'], str(payment.id))
        self.assertEqual(result['paymentUrl'], 'https://testpay.easebuzz.in/pay/access-key-1')
        self.assertEqual(result['gateway'], {'status': 1, 'data': 'access-key-1'})
        self.assertEqual(payment.status, Payment.STATUS_PENDING)
        self.assertEqual(payment.amount, Decimal('900.00'))
        self.assertEqual(payment.access_key, 'access-key-1')
        self.assertEqual(self.registration.transaction_id, payment.id)

        sent = mock_post.call_args[1]['data']
        self.assertEqual(sent['txnid'], str(payment.id))
        self.assertEqual(sent['amount'], '900.00')
        self.assertEqual(sent['udf1'], str(self.registration.id))
        self.assertEqual(sent['udf4'], str(payment.id))
        self.assertIn('paymentRef=', sent['surl'])

        log = PaymentLog.objects.get(action='initiate')
        self.assertEqual(log.payment_id, str(payment.id))
        self.assertEqual(log.http_status, 200)
        self.assertNotIn('hash', log.request_payload)

    @mock.patch('payment_processor.gateway.requests.post')
    def test_reinitiate_supersedes_pending_attempt(self, mock_post):
        mock_post.return_value = gateway_response({'status': 1, 'data': 'access-key-1'})
        first = self.service.initiate(str(self.registration.id))
        second = self.service.initiate(str(self.registration.id))

        old = Payment.objects.get(pk=first['transactionId'])
        self.registration.refresh_from_db()
        self.assertEqual(old.status, Payment.STATUS_FAILED)
        self.assertEqual(old.gateway_message, f"Superseded by {second['transactionId']}")
        self.assertEqual(str(self.registration.transaction_id), second['transactionId'])

    @mock.patch('payment_processor.gateway.requests.post')
    def test_gateway_rejection(self, mock_post):
        mock_post.return_value = gateway_response({'status': 0, 'error_desc': 'Invalid hash value'})

        with self.assertRaises(GatewayError) as ctx:
            self.service.initiate(str(self.registration.id))

        payment = Payment.objects.get()
        self.assertEqual(ctx.exception.message, 'Invalid hash value')
        self.assertEqual(ctx.exception.category, 'hash_mismatch')
        self.assertEqual(ctx.exception.details['transactionId'], str(payment.id))
        self.assertEqual(payment.status, Payment.STATUS_FAILED)
        self.assertEqual(payment.failure_category, 'hash_mismatch')
        self.assertEqual(PaymentLog.objects.filter(action='initiate').count(), 1)

    @mock.patch('payment_processor.gateway.requests.post')
    def test_gateway_server_error(self, mock_post):
        mock_post.return_value = gateway_response({'message': 'down'}, status_code=503)
        with self.assertRaises(GatewayError) as ctx:
            self.service.initiate(str(self.registration.id))
        self.assertEqual(ctx.exception.category, 'http_5xx')

    def test_paid_registration(self):
        Registration.objects.filter(pk=self.registration.pk).update(payment_status=Registration.PAYMENT_PAID)
        with self.assertRaises(StateConflictError):
            self.service.initiate(str(self.registration.id))
        self.assertFalse(Payment.objects.exists())

    def test_waitlisted_registration(self):
        Registration.objects.filter(pk=self.registration.pk).update(is_waitlisted=True)
        with self.assertRaises(StateConflictError):
            self.service.initiate(str(self.registration.id))

    def test_zero_amount(self):
        Registration.objects.filter(pk=self.registration.pk).update(final_amount=Decimal('0'))
        with self.assertRaises(ValidationError):
            self.service.initiate(str(self.registration.id))
        self.assertFalse(Payment.objects.exists())

    def test_unknown_registration(self):
        with self.assertRaises(NotFoundError):
            self.service.initiate(str(uuid.uuid4()))

    def test_missing_gateway_credentials(self):
        service = PaymentInitiationService(config=EasebuzzConfig(key='', salt=''))
        with self.assertRaises(ConfigurationError):
            service.initiate(str(self.registration.id))
        self.assertFalse(Payment.objects.exists())


class CallbackServiceTestCase(PaymentFixturesMixin, TestCase):
    """Tests for CallbackService."""

    def setUp(self):
        super().setUp()
        self.payment = self.create_payment()
        self.service = CallbackService()

    def test_success_callback_settles_and_issues_ticket(self):
        with self.captureOnCommitCallbacks(execute=True):
            result = self.service.handle(self.callback_params(self.payment))

        self.payment.refresh_from_db()
        self.registration.refresh_from_db()
        self.assertTrue(result.ok)
        self.assertEqual(result.http_status, 200)
        self.assertEqual(self.payment.status, Payment.STATUS_PAID)
        self.assertEqual(self.payment.payment_mode, 'upi')
        self.assertEqual(self.payment.gateway_payment_id, 'E12345')
        self.assertEqual(self.registration.payment_status, Registration.PAYMENT_PAID)
        self.assertTrue(self.registration.ticket_url.endswith(f"tickets/{self.registration.id}.pdf"))

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].attachments[0][2], 'application/pdf')

        log = PaymentLog.objects.get(action='callback')
        self.assertEqual(log.http_status, 200)
        self.assertEqual(log.gateway_status, 'success')

    def test_failure_callback_sends_failure_email(self):
        with self.captureOnCommitCallbacks(execute=True):
            result = self.service.handle(self.callback_params(self.payment, status='failure'))

        self.registration.refresh_from_db()
        self.assertTrue(result.ok)
        self.assertEqual(self.registration.payment_status, Registration.PAYMENT_FAILED)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('Payment failed', mail.outbox[0].subject)

    def test_redelivered_callback_is_idempotent(self):
        params = self.callback_params(self.payment)
        with self.captureOnCommitCallbacks(execute=True):
            self.service.handle(params)
        with self.captureOnCommitCallbacks(execute=True):
            result = self.service.handle(params)

        self.assertEqual(result.reconciliation.side_effects, [])
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(PaymentLog.objects.filter(action='callback').count(), 2)

    def test_bad_hash_is_rejected(self):
        params = self.callback_params(self.payment)
        params['amount'] = '1.00'

        result = self.service.handle(params)

        self.payment.refresh_from_db()
        self.assertFalse(result.ok)
        self.assertEqual(result.http_status, 400)
        self.assertEqual(result.message, 'Invalid callback signature')
        self.assertEqual(self.payment.status, Payment.STATUS_PENDING)
        self.assertEqual(PaymentLog.objects.get(action='callback').http_status, 400)

    def test_empty_body(self):
        result = self.service.handle(None)
        self.assertEqual(result.http_status, 400)
        self.assertEqual(PaymentLog.objects.filter(action='callback').count(), 1)

    def test_unknown_status(self):
        result = self.service.handle(self.callback_params(self.payment, status='mystery'))
        self.payment.refresh_from_db()
        self.assertEqual(result.http_status, 400)
        self.assertEqual(result.message, 'Unknown payment status')
        self.assertEqual(self.payment.status, Payment.STATUS_PENDING)

    def test_unknown_transaction_is_not_an_error(self):
        stranger = self.create_payment()
        Payment.objects.filter(pk=stranger.pk).delete()
        Registration.objects.filter(pk=self.registration.pk).update(transaction_id=self.payment.id)
        params = self.callback_params(stranger, udf1=str(uuid.uuid4()))

        result = self.service.handle(params)

        self.payment.refresh_from_db()
        self.assertTrue(result.ok)
        self.assertFalse(result.reconciliation.payment_found)
        self.assertEqual(self.payment.status, Payment.STATUS_PENDING)

    def test_pending_callback_polls_gateway(self):
        client = mock.Mock()
        client.retrieve.return_value = {
            'success': True,
            'data': {'status': True},
            'status_code': 200,
            'duration_ms': 12,
            'endpoint': 'https://dashboard.test/retrieve',
            'request_payload': {'txnid': self.payment.gateway_txn_id},
            'transaction': {'txnid': self.payment.gateway_txn_id, 'status': 'success'},
        }
        service = CallbackService(config=replace(self.config, pending_retries=3), client=client)

        result = service.handle(self.callback_params(self.payment, status='pending'))

        self.registration.refresh_from_db()
        self.assertEqual(result.flow, 'success')
        self.assertEqual(client.retrieve.call_count, 1)
        self.assertEqual(self.registration.payment_status, Registration.PAYMENT_PAID)
        self.assertEqual(PaymentLog.objects.filter(action='retrieve').count(), 1)

    def test_pending_without_retries_stays_pending(self):
        result = self.service.handle(self.callback_params(self.payment, status='pending'))
        self.registration.refresh_from_db()
        self.assertTrue(result.ok)
        self.assertEqual(result.flow, 'pending')
        self.assertEqual(self.registration.payment_status, Registration.PAYMENT_PENDING)


class TransactionSyncTestCase(PaymentFixturesMixin, TestCase):
    """Tests for TransactionSyncService."""

    def setUp(self):
        super().setUp()
        self.payment = self.create_payment()

    def retrieve_response(self, status):
        return {
            'success': True,
            'data': {'status': True, 'msg': {'txnid': self.payment.gateway_txn_id, 'status': status}},
            'status_code': 200,
            'duration_ms': 10,
            'endpoint': 'https://dashboard.test/retrieve',
            'request_payload': {'txnid': self.payment.gateway_txn_id},
            'transaction': {'txnid': self.payment.gateway_txn_id, 'status': status, 'mode': 'NB'},
        }

    def test_sync_success(self):
        client = mock.Mock()
        client.retrieve.return_value = self.retrieve_response('success')

        result = TransactionSyncService(client=client).sync_registration(str(self.registration.id))

        self.payment.refresh_from_db()
        self.assertTrue(result['ok'])
        self.assertEqual(self.payment.status, Payment.STATUS_PAID)
        self.assertEqual(self.payment.payment_mode, 'netbanking')
        self.assertEqual(PaymentLog.objects.filter(action='transaction').count(), 1)

    def test_sync_failure_skips_failure_email(self):
        client = mock.Mock()
        client.retrieve.return_value = self.retrieve_response('failure')

        with self.captureOnCommitCallbacks(execute=True):
            result = TransactionSyncService(client=client).sync_registration(str(self.registration.id))

        self.assertEqual(result['reconciliation']['sideEffects'], [])
        self.assertEqual(len(mail.outbox), 0)

    def test_registration_without_transaction(self):
        Registration.objects.filter(pk=self.registration.pk).update(transaction_id=None)
        with self.assertRaises(StateConflictError):
            TransactionSyncService(client=mock.Mock()).sync_registration(str(self.registration.id))

    def test_sync_many_reports_each_registration(self):
        client = mock.Mock()
        client.retrieve.return_value = self.retrieve_response('success')

        results = TransactionSyncService(client=client).sync_many([str(self.registration.id), str(uuid.uuid4())])

        self.assertTrue(results[0]['ok'])
        self.assertFalse(results[1]['ok'])
        self.assertEqual(results[1]['error'], 'Registration not found')
